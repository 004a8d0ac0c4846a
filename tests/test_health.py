import pytest
from fastapi.testclient import TestClient

from loanportal.core import health as health_module
from loanportal.main import app

client = TestClient(app)


@pytest.fixture(autouse=True)
def _mock_env(monkeypatch):
    monkeypatch.setattr(health_module.settings, "environment", "test")
    yield


def _patch_checks(monkeypatch, *, db_status: str = "ok", redis_status: str = "ok") -> None:
    async def fake_db():
        return {"status": db_status} if db_status == "ok" else {"status": db_status, "error": "unreachable"}

    async def fake_redis():
        return {"status": redis_status}

    monkeypatch.setattr(health_module, "_check_db", fake_db)
    monkeypatch.setattr(health_module, "_check_redis", fake_redis)


def test_health_live_returns_ok() -> None:
    response = client.get("/api/v1/health/live")
    assert response.status_code == 200
    body = response.json()
    assert body["code"] == "ok"
    assert body["data"]["status"] == "ok"
    assert "timestamp" in body["data"]


def test_health_ready_ok(monkeypatch, tmp_path) -> None:
    _patch_checks(monkeypatch)
    monkeypatch.setattr(health_module.settings, "local_upload_dir", str(tmp_path))

    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["status"] == "ok"
    assert payload["ready"] is True
    assert payload["environment"] == "test"
    assert payload["checks"]["storage"]["status"] == "ok"


def test_health_ready_degraded(monkeypatch, tmp_path) -> None:
    _patch_checks(monkeypatch, db_status="error")
    monkeypatch.setattr(health_module.settings, "local_upload_dir", str(tmp_path))

    response = client.get("/api/v1/health")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["status"] == "degraded"
    assert payload["ready"] is False
    assert payload["checks"]["database"]["status"] == "error"


def test_status_summary_includes_version(monkeypatch, tmp_path) -> None:
    _patch_checks(monkeypatch)
    monkeypatch.setattr(health_module.settings, "local_upload_dir", str(tmp_path))

    response = client.get("/api/v1/status/summary")
    assert response.status_code == 200
    assert response.json()["data"]["version"] == health_module.APP_VERSION
