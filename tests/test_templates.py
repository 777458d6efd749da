from tests.conftest import TEMPLATE_PAYLOAD


def test_create_template_starts_at_version_one(client, admin_headers):
    res = client.post("/api/templates", json=TEMPLATE_PAYLOAD, headers=admin_headers)
    assert res.status_code == 201
    body = res.json()
    assert body["template"]["current_version"] == 1
    assert body["template"]["status"] == "draft"
    assert body["template"]["slug"].startswith("garden-wedding-")
    assert body["version"]["version"] == 1
    assert body["version"]["default_color_scheme"] == "classic"
    assert [s["section_id"] for s in body["sections"]] == ["s1", "s2", "s3"]
    assert [s["order"] for s in body["sections"]] == [0, 1, 2]


def test_create_template_requires_admin(client, user_headers):
    res = client.post("/api/templates", json=TEMPLATE_PAYLOAD, headers=user_headers)
    assert res.status_code == 403
    assert res.json() == {"error": "Insufficient permissions"}


def test_create_template_rejects_duplicate_section_ids(client, admin_headers):
    payload = {**TEMPLATE_PAYLOAD, "sections": [TEMPLATE_PAYLOAD["sections"][0]] * 2}
    res = client.post("/api/templates", json=payload, headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["error"] == "Duplicate section id: s1"


def test_published_listing_is_public(client, template, admin_headers):
    client.post("/api/templates", json={**TEMPLATE_PAYLOAD, "name": "Draft"}, headers=admin_headers)
    res = client.get("/api/templates/published")
    assert res.status_code == 200
    templates = res.json()["templates"]
    assert [t["name"] for t in templates] == ["Garden Wedding"]
    assert [c["id"] for c in templates[0]["color_schemes"]] == ["classic", "modern"]


def test_list_templates_rejects_unknown_sort(client, admin_headers, template):
    res = client.get("/api/templates?sort_by=password", headers=admin_headers)
    assert res.status_code == 400


def test_new_version_copies_sections(client, admin_headers, template):
    res = client.post(f"/api/templates/{template['id']}/new-version", json={"changelog": "Fresh look"},
                      headers=admin_headers)
    assert res.status_code == 201
    body = res.json()
    assert body["template"]["current_version"] == 2
    assert body["version"]["version"] == 2
    assert body["version"]["changelog"] == "Fresh look"
    assert [s["section_id"] for s in body["sections"]] == ["s1", "s2", "s3"]

    versions = client.get(f"/api/templates/{template['id']}/versions", headers=admin_headers).json()
    assert [v["version"] for v in versions["versions"]] == [2, 1]


def test_sections_locked_while_version_is_published(client, admin_headers, user_headers, template,
                                                    published_microsite):
    res = client.put(f"/api/templates/{template['id']}/sections/s2", json={"name": "Renamed"},
                     headers=admin_headers)
    assert res.status_code == 400

    client.post(f"/api/templates/{template['id']}/new-version", headers=admin_headers)
    res = client.put(f"/api/templates/{template['id']}/sections/s2", json={"name": "Renamed"},
                     headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["name"] == "Renamed"

    # the microsite still sees the section of the version it was created from
    sections = client.get(f"/api/microsites/{published_microsite['id']}", headers=user_headers).json()
    assert {s["section_id"]: s["name"] for s in sections["template_sections"]}["s2"] == "Our Story"


def test_add_and_delete_section_keeps_order_dense(client, admin_headers, template):
    res = client.post(f"/api/templates/{template['id']}/sections",
                      json={"section_id": "s4", "type": "footer", "name": "Footer"}, headers=admin_headers)
    assert res.status_code == 201
    assert [s["order"] for s in res.json()["sections"]] == [0, 1, 2, 3]

    res = client.delete(f"/api/templates/{template['id']}/sections/s2", headers=admin_headers)
    assert res.status_code == 200
    sections = res.json()["sections"]
    assert [(s["section_id"], s["order"]) for s in sections] == [("s1", 0), ("s3", 1), ("s4", 2)]


def test_reorder_sections_is_partial(client, admin_headers, template):
    res = client.post(f"/api/templates/{template['id']}/sections/reorder", json={"section_order": ["s3", "s1"]},
                      headers=admin_headers)
    assert res.status_code == 200
    orders = {s["section_id"]: s["order"] for s in res.json()["sections"]}
    assert orders == {"s3": 0, "s1": 1, "s2": 1}


def test_duplicate_gets_fresh_section_ids(client, admin_headers, template):
    res = client.post(f"/api/templates/{template['id']}/duplicate", headers=admin_headers)
    assert res.status_code == 201
    body = res.json()
    assert body["template"]["name"] == "Garden Wedding (Copy)"
    assert body["template"]["status"] == "draft"
    ids = [s["section_id"] for s in body["sections"]]
    assert len(ids) == 3
    assert not set(ids) & {"s1", "s2", "s3"}


def test_delete_refused_while_in_use(client, admin_headers, template, microsite):
    res = client.delete(f"/api/templates/{template['id']}", headers=admin_headers)
    assert res.status_code == 400
    assert "cannot be deleted" in res.json()["error"]


def test_delete_unused_template_cascades(client, db, admin_headers, template):
    res = client.delete(f"/api/templates/{template['id']}", headers=admin_headers)
    assert res.status_code == 200
    assert db["templateversion"].count_documents({}) == 0
    assert db["templatesection"].count_documents({}) == 0


def test_preview_renders_sample_values(client, admin_headers, template):
    res = client.post(f"/api/templates/{template['id']}/preview", json={"color_scheme": "modern"},
                      headers=admin_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["color_scheme"]["id"] == "modern"
    assert body["preview_data"]["s1"] == {"groomName": "James", "brideName": "Elizabeth"}
    assert "James &amp; Elizabeth" in body["html"]


def test_status_update_controls_site_creation(client, admin_headers, user_headers):
    template = client.post("/api/templates", json=TEMPLATE_PAYLOAD, headers=admin_headers).json()["template"]
    res = client.put(f"/api/templates/{template['id']}", json={"status": "published"}, headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["template"]["is_active"] is True
    res = client.post("/api/sites", json={"template_id": template["id"], "title": "Ours"}, headers=user_headers)
    assert res.status_code == 201


def test_archiving_blocks_site_creation(client, admin_headers, user_headers, template):
    res = client.put(f"/api/templates/{template['id']}", json={"status": "archived"}, headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["template"]["is_active"] is False
    res = client.post("/api/sites", json={"template_id": template["id"], "title": "Ours"}, headers=user_headers)
    assert res.status_code == 400
    assert res.json()["error"] == "Template is not published"


def test_search_matches_literal_text(client, admin_headers, template):
    client.post("/api/templates", json={**TEMPLATE_PAYLOAD, "name": "Garden (Spring)"}, headers=admin_headers)

    res = client.get("/api/templates/published?search=(")
    assert res.status_code == 200
    assert res.json()["templates"] == []

    res = client.get("/api/templates?search=(spring", headers=admin_headers)
    assert res.status_code == 200
    assert [t["name"] for t in res.json()["templates"]] == ["Garden (Spring)"]

    res = client.get("/api/templates?search=.*", headers=admin_headers)
    assert res.json()["templates"] == []
