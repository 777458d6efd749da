import io

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from gridfs.errors import NoFile

from database import get_db, get_media_storage
from main import app


class MemoryStorage:
    """In-memory stand-in for the GridFS bucket used by the media routes."""

    def __init__(self):
        self.files = {}

    def upload_from_stream(self, filename, source, metadata=None):
        file_id = ObjectId()
        self.files[file_id] = {"filename": filename, "data": source.read(), "metadata": metadata}
        return file_id

    def open_download_stream(self, file_id):
        if file_id not in self.files:
            raise NoFile(f"no file {file_id}")
        return io.BytesIO(self.files[file_id]["data"])

    def delete(self, file_id):
        if self.files.pop(file_id, None) is None:
            raise NoFile(f"no file {file_id}")


@pytest.fixture
def db():
    return mongomock.MongoClient()["evento_test"]


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def client(db, storage):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_media_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client, email, role="editor"):
    res = client.post("/api/auth/register", json={
        "email": email, "password": "secret123", "name": email.split("@")[0], "role": role,
    })
    assert res.status_code == 201, res.text
    return {"Authorization": f"Bearer {res.json()['token']}"}


@pytest.fixture
def admin_headers(client):
    return register(client, "admin@example.com", role="admin")


@pytest.fixture
def user_headers(client):
    return register(client, "owner@example.com")


@pytest.fixture
def other_headers(client):
    return register(client, "someone@example.com")


TEMPLATE_PAYLOAD = {
    "name": "Garden Wedding",
    "category": "wedding",
    "color_schemes": [
        {"id": "classic", "name": "Classic", "primary": "#8B4557", "secondary": "#D4A5A5", "accent": "#F5E6E8"},
        {"id": "modern", "name": "Modern", "primary": "#1A1A1A", "secondary": "#666666", "accent": "#E8E8E8"},
    ],
    "font_pairs": [{"id": "elegant", "name": "Elegant", "heading": "Playfair Display", "body": "Lato"}],
    "sections": [
        {
            "section_id": "s1",
            "type": "hero",
            "name": "Hero",
            "is_required": True,
            "can_disable": False,
            "fields": [
                {"key": "groomName", "type": "text", "label": "Groom Name", "validation": {"required": True}},
                {"key": "brideName", "type": "text", "label": "Bride Name", "validation": {"required": True}},
            ],
            "sample_values": {"groomName": "James", "brideName": "Elizabeth"},
        },
        {
            "section_id": "s2",
            "type": "story",
            "name": "Our Story",
            "fields": [
                {"key": "title", "type": "text", "label": "Title", "validation": {"max_length": 20}},
            ],
            "sample_values": {"title": "How we met"},
        },
        {
            "section_id": "s3",
            "type": "wishes",
            "name": "Wishes",
            "fields": [{"key": "title", "type": "text", "label": "Title"}],
            "sample_values": {"title": "Send Your Wishes"},
        },
    ],
}


@pytest.fixture
def template(client, admin_headers):
    res = client.post("/api/templates", json=TEMPLATE_PAYLOAD, headers=admin_headers)
    assert res.status_code == 201, res.text
    template_id = res.json()["template"]["id"]
    res = client.post(f"/api/templates/{template_id}/publish", headers=admin_headers)
    assert res.status_code == 200, res.text
    return res.json()["template"]


@pytest.fixture
def microsite(client, user_headers, template):
    res = client.post("/api/microsites", json={"template_id": template["id"], "title": "Our Big Day"},
                      headers=user_headers)
    assert res.status_code == 201, res.text
    return res.json()["microsite"]


@pytest.fixture
def published_microsite(client, user_headers, microsite):
    res = client.post(f"/api/microsites/{microsite['id']}/publish", headers=user_headers)
    assert res.status_code == 200, res.text
    return res.json()


@pytest.fixture
def site(client, user_headers, template):
    res = client.post("/api/sites", json={"template_id": template["id"], "title": "Legacy Party"},
                      headers=user_headers)
    assert res.status_code == 201, res.text
    return res.json()


@pytest.fixture
def published_site(client, user_headers, site):
    res = client.post(f"/api/sites/{site['id']}/publish", headers=user_headers)
    assert res.status_code == 200, res.text
    return res.json()
