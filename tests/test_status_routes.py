"""Tests for the status/health routes, CORS policy and app lifespan."""

from __future__ import annotations

from fastapi.testclient import TestClient

from app.adapters.rate_limit.abuse_log import NullAbuseSink
from app.core.app_factory import create_app, parse_origins
from app.core.config import AppSettings, RateLimitSettings, Settings


def _client(cfg: Settings | None = None) -> TestClient:
    return TestClient(create_app(cfg, abuse_sink=NullAbuseSink(), configure_logs=False))


def test_root_status_envelope():
    response = _client().get("/")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Car Rental API is running!"
    assert body["data"]["status"] == "OK"
    assert body["data"]["environment"] == "testing"
    assert body["data"]["version"] == "1.0.0"
    assert body["data"]["timestamp"]


def test_health_reports_rate_limiter():
    client = _client()
    client.get("/")

    body = client.get("/health").json()

    assert body["status"] == "ok"
    assert body["rate_limit"]["enabled"] is True
    assert body["rate_limit"]["tracked_keys"] == 1


def test_health_when_limiter_disabled():
    cfg = Settings(rate_limit=RateLimitSettings(enabled=False, abuse_log_enabled=False))

    body = _client(cfg).get("/health").json()

    assert body["rate_limit"] == {"enabled": False, "tracked_keys": 0}


def test_cors_allows_configured_origin():
    cfg = Settings(app=AppSettings(allowed_origins="http://localhost:3000, https://fleet.example.com"))
    client = _client(cfg)

    response = client.options(
        "/health",
        headers={
            "Origin": "https://fleet.example.com",
            "Access-Control-Request-Method": "GET",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "https://fleet.example.com"


def test_cors_rejects_unknown_origin():
    response = _client().get("/health", headers={"Origin": "https://evil.example.com"})

    assert "access-control-allow-origin" not in response.headers


def test_cors_origin_regex():
    cfg = Settings(app=AppSettings(allowed_origin_regex=r"^https://rental-[a-z0-9-]+\.vercel\.app$"))
    response = _client(cfg).get("/health", headers={"Origin": "https://rental-pr-12.vercel.app"})

    assert response.headers["access-control-allow-origin"] == "https://rental-pr-12.vercel.app"


def test_parse_origins():
    assert parse_origins(" http://a.com ,, http://b.com ") == ["http://a.com", "http://b.com"]
    assert parse_origins(None) == []


def test_lifespan_starts_and_stops_cleanup():
    app = create_app(abuse_sink=NullAbuseSink(), configure_logs=False)
    cleanup = app.state.rate_limit_cleanup

    with TestClient(app) as client:
        assert cleanup.running
        assert client.get("/health").status_code == 200

    assert not cleanup.running
