"""
Tests for the FastAPI application.

Key testing strategies:
1. FastAPI TestClient with dependency overrides (settings, store)
2. run_notifier is mocked - the run itself is covered in test_orchestrator.py
3. Basic auth: unconfigured, missing, wrong and correct credentials
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

import feedpinger.api as api
from feedpinger.config import Settings, get_settings
from feedpinger.db.kv_store import InMemoryKeyValueStore
from feedpinger.db.sites import SITE_CONFIG_KEY

SITE = {
    "id": "blog",
    "host": "example.com",
    "feedUrl": "https://example.com/feed.json",
    "indexNowKeyEnv": "INDEXNOW_KEY_BLOG",
}

AUTH = ("admin", "pw")


def make_summary(run_id: str = "run_x") -> dict:
    now = datetime.now(UTC)
    return {
        "run_id": run_id,
        "started_at": now,
        "completed_at": now,
        "site_count": 2,
        "completed": 1,
        "skipped": 1,
        "failed": 0,
        "sites": [],
    }


@pytest.fixture
def settings():
    return Settings(
        store_backend="memory",
        admin_username="admin",
        admin_password="pw",
        _env_file=None,
    )


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def client(settings, store):
    api.app.dependency_overrides[get_settings] = lambda: settings
    api.app.dependency_overrides[api.get_store] = lambda: store
    yield TestClient(api.app)
    api.app.dependency_overrides.clear()


class TestHealth:
    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["name"] == "feedpinger"

    def test_health_memory_backend(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["store_backend"] == "memory"
        assert datetime.fromisoformat(body["timestamp"]).utcoffset() == timedelta(0)


class TestRun:
    def test_background_run(self, client, settings):
        with patch.object(api, "run_notifier", AsyncMock(return_value=make_summary())) as mock_run:
            response = client.post("/run")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "started"
        assert body["run_id"].startswith("run_")
        # TestClient runs background tasks before returning
        mock_run.assert_awaited_once_with(settings, run_id=body["run_id"])

    def test_wait_returns_summary(self, client):
        with patch.object(api, "run_notifier", AsyncMock(return_value=make_summary("abc"))):
            response = client.post("/run", json={"wait": True})

        body = response.json()
        assert body["status"] == "completed"
        assert body["summary"]["completed"] == 1
        assert "1 completed, 1 skipped, 0 failed" in body["message"]

    def test_wait_reports_failure(self, client):
        with patch.object(api, "run_notifier", AsyncMock(side_effect=RuntimeError("no db"))):
            response = client.post("/run", json={"wait": True})

        body = response.json()
        assert body["status"] == "failed"
        assert "no db" in body["message"]

    def test_background_failure_is_swallowed(self, client):
        with patch.object(api, "run_notifier", AsyncMock(side_effect=RuntimeError("no db"))):
            response = client.post("/run")

        assert response.json()["status"] == "started"


class TestSitesAuth:
    def test_missing_credentials(self, client):
        response = client.get("/sites")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == 'Basic realm="Admin"'

    def test_wrong_credentials(self, client):
        response = client.get("/sites", auth=("admin", "wrong"))

        assert response.status_code == 401

    def test_unconfigured_admin(self, client, settings):
        api.app.dependency_overrides[get_settings] = lambda: settings.model_copy(
            update={"admin_password": None}
        )

        response = client.get("/sites", auth=AUTH)

        assert response.status_code == 500
        assert "Admin credentials not set" in response.json()["detail"]


class TestSites:
    def test_get_empty(self, client):
        response = client.get("/sites", auth=AUTH)

        assert response.status_code == 200
        assert response.json() == []

    def test_put_then_get(self, client, store):
        response = client.put("/sites", json=[SITE], auth=AUTH)

        assert response.status_code == 200
        assert response.json()["site_count"] == 1
        assert SITE_CONFIG_KEY in store.data

        assert client.get("/sites", auth=AUTH).json() == [SITE]

    def test_put_rejects_non_array(self, client):
        response = client.put("/sites", json={"id": "blog"}, auth=AUTH)

        assert response.status_code == 422

    def test_put_rejects_invalid_site(self, client, store):
        response = client.put("/sites", json=[{"id": "blog"}], auth=AUTH)

        assert response.status_code == 422
        assert SITE_CONFIG_KEY not in store.data

    def test_put_rejects_duplicate_ids(self, client):
        response = client.put("/sites", json=[SITE, SITE], auth=AUTH)

        assert response.status_code == 400

    def test_get_corrupt_record(self, client, store):
        store.data[SITE_CONFIG_KEY] = "{not json"

        response = client.get("/sites", auth=AUTH)

        assert response.status_code == 500
