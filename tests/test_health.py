"""Tests for GET /api/v1/health."""

from __future__ import annotations

from sqlalchemy.exc import OperationalError

from api.main import __version__


def test_health_ok(api_client) -> None:
    client, _token, _store = api_client
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["version"] == __version__
    assert body["components"] == {"app": "ok", "database": "ok"}


def test_health_degraded_when_database_unreachable(api_client, monkeypatch) -> None:
    client, _token, store = api_client

    def broken_ping() -> bool:
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    monkeypatch.setattr(store, "ping", broken_ping)
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "degraded"
    assert resp.json()["components"]["database"] == "error"


def test_health_needs_no_token(api_client) -> None:
    client, _token, _store = api_client
    assert client.get("/api/v1/health", headers={"Authorization": "Bearer junk"}).status_code == 200
