"""
tests/test_login.py -- Integration tests for the role-partitioned login routes.

Covers:
  - POST /login/admin admits administrators only and stamps last_login
  - POST /login admits instructors and learners only
  - Unknown email, wrong password and wrong endpoint share one generic 401
  - Deactivated accounts get 403 on both endpoints
  - Pending instructors get 403 with isPending=true; approved ones get in
"""

from __future__ import annotations

from auth.models import ADMIN, INSTRUCTOR, LEARNER


def _login(client, path: str, email: str, password: str = "secret123"):
    return client.post(path, json={"email": email, "password": password})


class TestAdminLogin:
    def test_admin_login_records_last_login(self, client, store, make_principal, tokens) -> None:
        admin = make_principal(ADMIN, email="admin@example.com")
        assert admin.profile.last_login is None

        resp = _login(client, "/api/auth/login/admin", "admin@example.com")
        assert resp.status_code == 200
        data = resp.json()
        assert data["message"] == "Admin login successful"
        assert data["user"]["lastLogin"] is not None
        assert tokens.verify(data["token"]).principal_id == admin.id
        assert resp.headers["cache-control"] == "no-store"
        assert store.get_by_id(admin.id).profile.last_login is not None

    def test_non_admin_rejected_on_admin_endpoint(self, client, make_principal) -> None:
        make_principal(LEARNER, email="learner@example.com")
        make_principal(INSTRUCTOR, email="prof@example.com", approved=True)
        for email in ("learner@example.com", "prof@example.com"):
            resp = _login(client, "/api/auth/login/admin", email)
            assert resp.status_code == 401
            assert resp.json()["code"] == "invalid_credentials"


class TestSharedLogin:
    def test_learner_login(self, client, make_principal) -> None:
        make_principal(LEARNER, email="learner@example.com")
        resp = _login(client, "/api/auth/login", "learner@example.com")
        assert resp.status_code == 200
        assert resp.json()["user"]["role"] == "visiteur"

    def test_approved_instructor_login(self, client, make_principal) -> None:
        make_principal(INSTRUCTOR, email="prof@example.com", approved=True)
        resp = _login(client, "/api/auth/login", "prof@example.com")
        assert resp.status_code == 200
        assert resp.json()["user"]["isApproved"] is True

    def test_admin_rejected_on_shared_endpoint(self, client, make_principal) -> None:
        make_principal(ADMIN, email="admin@example.com")
        resp = _login(client, "/api/auth/login", "admin@example.com")
        assert resp.status_code == 401
        assert resp.json()["code"] == "invalid_credentials"

    def test_pending_instructor_flagged(self, client, make_principal) -> None:
        make_principal(INSTRUCTOR, email="prof@example.com", approved=False)
        resp = _login(client, "/api/auth/login", "prof@example.com")
        assert resp.status_code == 403
        data = resp.json()
        assert data["isPending"] is True
        assert data["code"] == "pending_approval"
        assert "token" not in data


class TestGenericFailures:
    def test_unknown_email_and_wrong_password_look_the_same(self, client, make_principal) -> None:
        make_principal(LEARNER, email="learner@example.com")
        unknown = _login(client, "/api/auth/login", "ghost@example.com")
        wrong = _login(client, "/api/auth/login", "learner@example.com", password="nope-nope")
        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json()
        assert "isPending" not in unknown.json()

    def test_deactivated_account_forbidden(self, client, make_principal) -> None:
        make_principal(LEARNER, email="off@example.com", active=False)
        make_principal(ADMIN, email="offadmin@example.com", active=False)
        assert _login(client, "/api/auth/login", "off@example.com").status_code == 403
        resp = _login(client, "/api/auth/login/admin", "offadmin@example.com")
        assert resp.status_code == 403
        assert resp.json()["code"] == "account_deactivated"

    def test_malformed_login_body(self, client) -> None:
        resp = client.post("/api/auth/login", json={"email": "nope"})
        assert resp.status_code == 400
        fields = {e["field"] for e in resp.json()["errors"]}
        assert fields == {"email", "password"}
