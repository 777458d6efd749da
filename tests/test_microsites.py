def sections_by_id(client, microsite_id, headers):
    res = client.get(f"/api/microsites/{microsite_id}", headers=headers)
    assert res.status_code == 200
    return {s["section_id"]: s for s in res.json()["sections"]}


def test_create_mirrors_template_sections(client, user_headers, template, microsite):
    assert microsite["status"] == "draft"
    assert microsite["color_scheme"] == "classic"
    assert microsite["font_pair"] == "elegant"
    sections = sections_by_id(client, microsite["id"], user_headers)
    assert sorted(sections) == ["s1", "s2", "s3"]
    assert sections["s1"]["values"] == {"groomName": "James", "brideName": "Elizabeth"}
    assert all(s["enabled"] for s in sections.values())


def test_create_bumps_template_usage(client, db, template, microsite):
    assert db["template"].find_one({"slug": template["slug"]})["usage_count"] == 1


def test_section_values_are_copies(client, db, user_headers, template, microsite):
    client.put(f"/api/microsites/{microsite['id']}/sections/s1",
               json={"values": {"groomName": "Tom", "brideName": "Ann"}}, headers=user_headers)
    template_section = db["templatesection"].find_one({"section_id": "s1"})
    assert template_section["sample_values"]["groomName"] == "James"


def test_microsites_are_private_to_their_owner(client, other_headers, microsite):
    res = client.get(f"/api/microsites/{microsite['id']}", headers=other_headers)
    assert res.status_code == 404
    assert res.json() == {"error": "Microsite not found"}


def test_partial_reorder_leaves_unlisted_sections(client, user_headers, microsite):
    res = client.post(f"/api/microsites/{microsite['id']}/sections/reorder",
                      json={"section_order": ["s3", "s1"]}, headers=user_headers)
    assert res.status_code == 200
    orders = {s["section_id"]: s["order"] for s in res.json()["sections"]}
    assert orders == {"s3": 0, "s1": 1, "s2": 1}


def test_section_values_are_validated(client, user_headers, microsite):
    res = client.put(f"/api/microsites/{microsite['id']}/sections/s2",
                     json={"values": {"title": "x" * 30}}, headers=user_headers)
    assert res.status_code == 400
    assert res.json() == {"error": "Invalid section values", "errors": ["Title must be at most 20 characters"]}


def test_required_section_cannot_be_disabled(client, user_headers, microsite):
    res = client.post(f"/api/microsites/{microsite['id']}/sections/s1/toggle", headers=user_headers)
    assert res.status_code == 400
    assert res.json()["error"] == "Section 'Hero' cannot be disabled"

    res = client.post(f"/api/microsites/{microsite['id']}/sections/s2/toggle", headers=user_headers)
    assert res.status_code == 200
    assert res.json()["enabled"] is False


def test_update_checks_color_scheme(client, user_headers, microsite):
    res = client.put(f"/api/microsites/{microsite['id']}", json={"color_scheme": "neon"}, headers=user_headers)
    assert res.status_code == 400

    res = client.put(f"/api/microsites/{microsite['id']}",
                     json={"color_scheme": "modern", "settings": {"max_highlighted_wishes": 2}},
                     headers=user_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["color_scheme"] == "modern"
    assert body["settings"]["max_highlighted_wishes"] == 2
    assert body["settings"]["enable_rsvp"] is True


def test_public_page_only_when_published(client, user_headers, microsite):
    res = client.get(f"/api/microsites/public/{microsite['slug']}")
    assert res.status_code == 404
    assert res.json() == {"error": "Event not found"}

    client.post(f"/api/microsites/{microsite['id']}/publish", headers=user_headers)
    client.post(f"/api/microsites/{microsite['id']}/sections/s2/toggle", headers=user_headers)
    res = client.get(f"/api/microsites/public/{microsite['slug']}")
    assert res.status_code == 200
    body = res.json()
    assert "user_id" not in body["microsite"]
    assert [s["section_id"] for s in body["sections"]] == ["s1", "s3"]

    stats = client.get(f"/api/microsites/{microsite['id']}/stats", headers=user_headers).json()
    assert stats["views"] == 1


def test_render_returns_html(client, published_microsite):
    res = client.get(f"/api/microsites/public/{published_microsite['slug']}/render?device_mode=mobile")
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/html")
    assert "device-mobile" in res.text
    assert "James &amp; Elizabeth" in res.text


def test_rsvp_creates_then_updates(client, db, published_microsite):
    url = f"/api/microsites/public/{published_microsite['slug']}/rsvp"
    res = client.post(url, json={"name": "Ann", "email": "Ann@Example.com", "party_size": 2})
    assert res.status_code == 201
    assert res.json()["message"] == "RSVP submitted successfully"

    res = client.post(url, json={"name": "Ann", "email": "ann@example.com", "status": "not_attending"})
    assert res.status_code == 200
    assert res.json()["message"] == "RSVP updated successfully"
    assert res.json()["guest"]["status"] == "not_attending"
    assert db["guest"].count_documents({}) == 1


def test_rsvp_respects_disabled_setting(client, user_headers, published_microsite):
    client.put(f"/api/microsites/{published_microsite['id']}", json={"settings": {"enable_rsvp": False}},
               headers=user_headers)
    res = client.post(f"/api/microsites/public/{published_microsite['slug']}/rsvp",
                      json={"name": "Ann", "email": "ann@example.com"})
    assert res.status_code == 400
    assert res.json()["error"] == "RSVP is not enabled for this site"


def test_wish_moderation_message(client, user_headers, published_microsite):
    url = f"/api/microsites/public/{published_microsite['slug']}/wish"
    res = client.post(url, json={"author_name": "Bea", "message": "Congrats!"})
    assert res.status_code == 201
    assert res.json()["message"] == "Wish submitted and pending approval"

    client.put(f"/api/microsites/{published_microsite['id']}",
               json={"settings": {"require_wish_approval": False}}, headers=user_headers)
    res = client.post(url, json={"author_name": "Cy", "message": "Cheers!"})
    assert res.json()["message"] == "Wish submitted successfully"

    body = client.get(f"/api/microsites/public/{published_microsite['slug']}").json()
    assert [w["author_name"] for w in body["wishes"]] == ["Cy"]


def test_delete_cascades(client, db, user_headers, published_microsite):
    client.post(f"/api/microsites/public/{published_microsite['slug']}/rsvp",
                json={"name": "Ann", "email": "ann@example.com"})
    res = client.delete(f"/api/microsites/{published_microsite['id']}", headers=user_headers)
    assert res.status_code == 200
    assert db["micrositesection"].count_documents({}) == 0
    assert db["guest"].count_documents({}) == 0
