"""
tests/test_app.py -- Integration tests for app-wide behavior in api/main.py.

Covers:
  - Unknown routes return the JSON envelope with "Route not found"
  - Security headers on every response
  - CORS allows the configured client origin
  - Unhandled exceptions become a generic 500; DEBUG adds the stack
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from api.main import app
from core.config import get_settings


def test_unknown_route_envelope(client):
    resp = client.get("/api/does-not-exist")
    assert resp.status_code == 404
    assert resp.json() == {"message": "Route not found", "code": "http_404"}


def test_security_headers(client):
    resp = client.get("/api/health")
    assert resp.headers["x-content-type-options"] == "nosniff"
    assert resp.headers["x-frame-options"] == "DENY"
    assert resp.headers["x-xss-protection"] == "1; mode=block"


def test_cors_allows_client_origin(client):
    origin = get_settings().client_url
    resp = client.options(
        "/api/auth/login",
        headers={"Origin": origin, "Access-Control-Request-Method": "POST"},
    )
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == origin
    assert resp.headers["access-control-allow-credentials"] == "true"


def test_cors_rejects_other_origin(client):
    resp = client.options(
        "/api/auth/login",
        headers={"Origin": "https://evil.example.com", "Access-Control-Request-Method": "POST"},
    )
    assert "access-control-allow-origin" not in resp.headers


class TestUnhandledError:
    @pytest.fixture
    def crashing_client(self, client, store, monkeypatch):
        def _boom(*args, **kwargs):
            raise RuntimeError("secret internal detail")

        monkeypatch.setattr(store, "email_exists", _boom)
        with TestClient(app, raise_server_exceptions=False) as c:
            yield c

    def test_generic_500(self, crashing_client):
        body = {
            "firstName": "Ana",
            "lastName": "Lopez",
            "email": "ana@x.com",
            "phoneNumber": "0612345678",
            "password": "secret1",
            "skillsNeeded": [],
        }
        resp = crashing_client.post("/api/auth/register/visiteur", json=body)
        assert resp.status_code == 500
        data = resp.json()
        assert data["message"] == "Internal server error"
        assert data["code"] == "internal_error"
        # Tests run with DEBUG=true, so the stack is included.
        assert "RuntimeError" in data["stack"]
