from tests.conftest import TEMPLATE_PAYLOAD


def test_create_site_copies_latest_version(client, db, site):
    assert site["status"] == "draft"
    assert site["template_version"] == 1
    assert site["selected_color_scheme"] == "classic"
    sections = {s["section_id"]: s for s in site["sections"]}
    assert sections["s1"]["content"] == {"groomName": "James", "brideName": "Elizabeth"}
    assert sections["s1"]["visible"] is True
    assert site["stats"]["views"] == 0


def test_create_site_needs_published_template(client, admin_headers, user_headers):
    template = client.post("/api/templates", json=TEMPLATE_PAYLOAD, headers=admin_headers).json()["template"]
    res = client.post("/api/sites", json={"template_id": template["id"], "title": "Too soon"}, headers=user_headers)
    assert res.status_code == 400
    assert res.json()["error"] == "Template is not published"


def test_publish_reports_missing_fields(client, user_headers, site):
    res = client.put(f"/api/sites/{site['id']}/sections/s1", json={"content": {"groomName": "James"}},
                     headers=user_headers)
    assert res.status_code == 200

    res = client.post(f"/api/sites/{site['id']}/publish", headers=user_headers)
    assert res.status_code == 400
    assert res.json() == {
        "error": "Please fill in all required fields",
        "missing_fields": ["Hero: Bride Name"],
    }


def test_publish_and_public_view(client, user_headers, published_site):
    assert published_site["status"] == "published"
    assert published_site["published_at"]

    res = client.get(f"/api/sites/public/{published_site['slug']}")
    assert res.status_code == 200
    body = res.json()
    assert body["site"]["stats"]["views"] == 1
    assert "user_id" not in body["site"]
    assert [c["id"] for c in body["color_schemes"]] == ["classic", "modern"]

    stats = client.get(f"/api/sites/{published_site['id']}/stats", headers=user_headers).json()
    assert stats["views"] == 1
    assert stats["rsvp"]["total"] == 0


def test_slug_must_be_free(client, user_headers, site, microsite):
    res = client.put(f"/api/sites/{site['id']}/slug", json={"slug": microsite["slug"]}, headers=user_headers)
    assert res.status_code == 400
    assert res.json()["error"] == "This URL is already taken"

    res = client.put(f"/api/sites/{site['id']}/slug", json={"slug": "our-party"}, headers=user_headers)
    assert res.status_code == 200
    assert res.json()["slug"] == "our-party"


def test_slug_format_is_checked(client, user_headers, site):
    res = client.put(f"/api/sites/{site['id']}/slug", json={"slug": "Not A Slug"}, headers=user_headers)
    assert res.status_code == 400


def test_reorder_ignores_unknown_sections(client, user_headers, site):
    res = client.post(f"/api/sites/{site['id']}/sections/reorder",
                      json={"section_order": ["s3", "nope", "s1"]}, headers=user_headers)
    assert res.status_code == 200
    orders = {s["section_id"]: s["order"] for s in res.json()["sections"]}
    assert orders == {"s3": 0, "s1": 2, "s2": 1}


def test_settings_merge(client, user_headers, site):
    res = client.put(f"/api/sites/{site['id']}", json={"title": "Renamed", "settings": {"enable_wishes": False}},
                     headers=user_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["title"] == "Renamed"
    assert body["settings"]["enable_wishes"] is False
    assert body["settings"]["require_wish_approval"] is True


def test_delete_site_cascades(client, db, user_headers, published_site):
    client.post(f"/api/guests/{published_site['id']}/rsvp", json={"name": "Ann"})
    client.post(f"/api/wishes/{published_site['id']}", json={"author_name": "Bea", "message": "Yay"})
    res = client.delete(f"/api/sites/{published_site['id']}", headers=user_headers)
    assert res.status_code == 200
    assert db["site"].count_documents({}) == 0
    assert db["guest"].count_documents({}) == 0
    assert db["wish"].count_documents({}) == 0


def test_other_users_cannot_see_site(client, other_headers, site):
    assert client.get(f"/api/sites/{site['id']}", headers=other_headers).status_code == 404


def test_required_sections_cannot_be_hidden(client, user_headers, site):
    res = client.put(f"/api/sites/{site['id']}/sections/s1", json={"visible": False}, headers=user_headers)
    assert res.status_code == 400
    assert res.json()["error"] == "Section 'Hero' cannot be hidden"

    res = client.put(f"/api/sites/{site['id']}/sections/s2", json={"visible": False}, headers=user_headers)
    assert res.status_code == 200
    assert {s["section_id"]: s["visible"] for s in res.json()["sections"]}["s2"] is False


def test_update_checks_color_scheme_and_font_pair(client, user_headers, site):
    res = client.put(f"/api/sites/{site['id']}", json={"selected_color_scheme": "neon"}, headers=user_headers)
    assert res.status_code == 400
    assert res.json()["error"] == "Unknown color scheme: neon"

    res = client.put(f"/api/sites/{site['id']}", json={"selected_font_pair": "comic"}, headers=user_headers)
    assert res.status_code == 400
    assert res.json()["error"] == "Unknown font pair: comic"

    res = client.put(f"/api/sites/{site['id']}",
                     json={"selected_color_scheme": "modern", "selected_font_pair": "elegant"}, headers=user_headers)
    assert res.status_code == 200
    assert res.json()["selected_color_scheme"] == "modern"


def test_search_with_regex_characters(client, user_headers, site):
    res = client.get("/api/sites?search=(", headers=user_headers)
    assert res.status_code == 200
    assert res.json()["sites"] == []

    res = client.get("/api/microsites?search=[", headers=user_headers)
    assert res.status_code == 200
    assert res.json()["microsites"] == []
