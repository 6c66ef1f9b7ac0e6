import itertools

import pytest
from fastapi.testclient import TestClient

from bucketstore.config import get_settings
from bucketstore.main import create_app


@pytest.fixture
def storage_root(tmp_path):
    return tmp_path / "buckets"


@pytest.fixture
def client(tmp_path, storage_root, monkeypatch):
    monkeypatch.setenv("BKS_SECRET_KEY", "test-secret")
    monkeypatch.setenv("BKS_STORAGE_DIR", str(storage_root))
    monkeypatch.setenv("BKS_DATABASE_PATH", str(tmp_path / "metadata.db"))
    monkeypatch.setenv("BKS_MAX_UPLOAD_SIZE_BYTES", "1000")
    monkeypatch.setenv("BKS_MAX_PAGE_SIZE", "5")
    get_settings.cache_clear()

    with TestClient(create_app()) as test_client:
        yield test_client
    get_settings.cache_clear()


@pytest.fixture
def make_user(client):
    """Register a fresh user and return ``(auth_headers, user)``."""
    counter = itertools.count(1)

    def _make(email: str | None = None, password: str = "correct-horse"):
        email = email or f"user{next(counter)}@example.com"
        response = client.post(
            "/auth/register",
            json={"full_name": "Test User", "email": email, "password": password},
        )
        assert response.status_code == 201
        body = response.json()
        return {"Authorization": f"Bearer {body['token']}"}, body["user"]

    return _make


@pytest.fixture
def make_bucket(client):
    def _make(headers: dict, bucket_name: str = "photos") -> dict:
        response = client.post("/bucket/add", json={"bucket_name": bucket_name}, headers=headers)
        assert response.status_code == 201
        return response.json()

    return _make


@pytest.fixture
def upload(client):
    def _upload(headers: dict, bucket_id: str, filename: str = "cat.png", content: bytes = b"png-bytes", mimetype: str = "image/png"):
        return client.post(
            f"/file/{bucket_id}/files",
            files={"file": (filename, content, mimetype)},
            headers=headers,
        )

    return _upload
