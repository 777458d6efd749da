from config import cors_origins


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"
    assert res.json()["timestamp"]


def test_root(client):
    assert client.get("/").json() == {"message": "Evento API running"}


def test_unknown_route(client):
    res = client.get("/api/nowhere")
    assert res.status_code == 404
    assert res.json() == {"error": "Route /api/nowhere not found"}


def test_invalid_object_id(client, user_headers):
    res = client.get("/api/microsites/not-an-id", headers=user_headers)
    assert res.status_code == 400
    assert res.json() == {"error": "Invalid id"}


def test_validation_errors_are_flattened(client):
    res = client.post("/api/auth/login", json={"email": "not-an-email"})
    assert res.status_code == 400
    assert "email" in res.json()["error"]
    assert "password" in res.json()["error"]


def test_cors_origins():
    assert cors_origins("") == ["*"]
    assert cors_origins("https://a.example, https://b.example") == ["https://a.example", "https://b.example"]
    assert cors_origins("https://a.example,*") == ["*"]
