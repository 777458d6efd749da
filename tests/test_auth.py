from datetime import datetime, timedelta, timezone

import jwt

from config import JWT_ALG, JWT_SECRET


def test_register_login_me(client):
    res = client.post("/api/auth/register", json={
        "email": "Jane@Example.com", "password": "secret123", "name": "Jane",
    })
    assert res.status_code == 201
    assert res.json()["user"]["email"] == "jane@example.com"
    assert res.json()["user"]["role"] == "editor"

    res = client.post("/api/auth/login", json={"email": "jane@example.com", "password": "secret123"})
    assert res.status_code == 200
    token = res.json()["token"]

    res = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 200
    assert res.json()["name"] == "Jane"
    assert "password_hash" not in res.json()


def test_register_rejects_taken_email(client, user_headers):
    res = client.post("/api/auth/register", json={
        "email": "owner@example.com", "password": "secret123", "name": "Again",
    })
    assert res.status_code == 400


def test_login_with_wrong_password(client, user_headers):
    res = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "wrong"})
    assert res.status_code == 401
    assert res.json() == {"error": "Invalid credentials"}


def test_missing_and_bad_tokens(client):
    assert client.get("/api/auth/me").json() == {"error": "Authentication required"}
    res = client.get("/api/auth/me", headers={"Authorization": "Bearer nonsense"})
    assert res.status_code == 401
    assert res.json() == {"error": "Invalid token"}


def test_expired_token(client, db, user_headers):
    user = db["adminuser"].find_one({"email": "owner@example.com"})
    token = jwt.encode(
        {"sub": str(user["_id"]), "email": user["email"], "role": user["role"],
         "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        JWT_SECRET,
        algorithm=JWT_ALG,
    )
    res = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401


def test_token_without_subject(client):
    token = jwt.encode(
        {"email": "ghost@example.com", "role": "admin",
         "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
        JWT_SECRET,
        algorithm=JWT_ALG,
    )
    res = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401
    assert res.json() == {"error": "Invalid token"}
