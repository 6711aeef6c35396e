"""
Registration, approval and session tests.

Verifies:
- Self-registration yields a pending account that cannot sign in
- Only admins approve, reject and delete accounts
- Rejection revokes live sessions
- Registration and status changes are published as signals
"""

import pytest

from backoffice.models import UserStatus
from backoffice.services.auth_service import (
    AccountError,
    PasswordValidationError,
    SqlAlchemyUserRepository,
    UserRepository,
    hash_password,
    validate_password_strength,
    verify_password,
)
from backoffice.signals import user_registered, user_status_changed

PASSWORD = "Password123"


def _register(client, email="new@example.com", password=PASSWORD, **extra):
    return client.post("/api/auth/register", json={"email": email, "password": password, **extra})


def _login(client, email, password=PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})


class TestPasswords:

    @pytest.mark.parametrize("password", ["short1", "allletters", "12345678", None])
    def test_weak_passwords(self, password):
        with pytest.raises(PasswordValidationError):
            validate_password_strength(password)

    def test_hash_and_verify(self, app):
        hashed = hash_password("Password123", rounds=4)
        assert verify_password("Password123", hashed)
        assert not verify_password("Password124", hashed)
        assert not verify_password("Password123", "not-a-bcrypt-hash")


class TestRegistration:

    def test_register_is_pending(self, client):
        resp = _register(client, display_name="Newbie", brand="byko")

        assert resp.status_code == 201
        user = resp.get_json()["user"]
        assert user["status"] == "pending"
        assert user["role"] == "user"
        assert user["brand"] == "byko"
        assert "password_hash" not in user

    def test_pending_cannot_login(self, client):
        _register(client)
        resp = _login(client, "new@example.com")
        assert resp.status_code == 403
        assert "approval" in resp.get_json()["error"]

    def test_weak_password(self, client):
        assert _register(client, password="short").status_code == 400

    def test_bad_email(self, client):
        assert _register(client, email="nope").status_code == 400

    def test_unknown_brand(self, client):
        assert _register(client, brand="acme").status_code == 400

    def test_duplicate_email_is_case_insensitive(self, client):
        _register(client)
        assert _register(client, email="NEW@example.com").status_code == 409

    def test_signal_sent(self, client):
        received = []

        def handler(sender, user, **kwargs):
            received.append(user.email)

        with user_registered.connected_to(handler):
            _register(client)

        assert received == ["new@example.com"]


class TestLogin:

    def test_login_and_me(self, client, staff_user):
        resp = _login(client, "staff@example.com")

        assert resp.status_code == 200
        token = resp.get_json()["token"]
        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.get_json()["user"]["email"] == "staff@example.com"

    def test_bad_password(self, client, staff_user):
        assert _login(client, "staff@example.com", "Wrong12345").status_code == 401

    def test_unknown_user(self, client):
        assert _login(client, "ghost@example.com").status_code == 401

    def test_missing_fields(self, client):
        assert client.post("/api/auth/login", json={"email": "a@b.co"}).status_code == 400

    def test_logout_revokes_token(self, client, staff_headers):
        assert client.post("/api/auth/logout", headers=staff_headers).status_code == 200
        assert client.get("/api/auth/me", headers=staff_headers).status_code == 401
        assert client.post("/api/auth/logout", headers=staff_headers).status_code == 401

    def test_garbage_token(self, client):
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401

    def test_rejected_user_cannot_login(self, client, new_user):
        new_user("gone@example.com", status=UserStatus.REJECTED.value)
        resp = _login(client, "gone@example.com")
        assert resp.status_code == 403


class TestApproval:

    def test_admin_approves_pending_user(self, client, admin_headers):
        user_id = _register(client).get_json()["user"]["id"]

        listed = client.get("/api/admin/users?status=pending", headers=admin_headers).get_json()
        assert [u["id"] for u in listed["users"]] == [user_id]

        resp = client.post(f"/api/admin/users/{user_id}/approve", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["user"]["status"] == "approved"
        assert resp.get_json()["user"]["status_changed_at"] is not None

        assert _login(client, "new@example.com").status_code == 200

    def test_reject_revokes_sessions(self, client, admin_headers, staff_user, staff_headers):
        assert client.get("/api/auth/me", headers=staff_headers).status_code == 200

        resp = client.post(f"/api/admin/users/{staff_user.id}/reject", headers=admin_headers)

        assert resp.get_json()["user"]["status"] == "rejected"
        assert client.get("/api/auth/me", headers=staff_headers).status_code == 401

    def test_status_change_signal(self, client, admin_headers):
        user_id = _register(client).get_json()["user"]["id"]
        received = []

        def handler(sender, user, previous, **kwargs):
            received.append((previous, user.status))

        with user_status_changed.connected_to(handler):
            client.post(f"/api/admin/users/{user_id}/approve", headers=admin_headers)
            client.post(f"/api/admin/users/{user_id}/approve", headers=admin_headers)

        assert received == [("pending", "approved")]

    def test_admin_cannot_change_own_status(self, client, admin_user, admin_headers):
        resp = client.post(f"/api/admin/users/{admin_user.id}/reject", headers=admin_headers)
        assert resp.status_code == 409

    def test_unknown_user(self, client, admin_headers):
        assert client.post("/api/admin/users/999999/approve", headers=admin_headers).status_code == 404

    def test_invalid_status_filter(self, client, admin_headers):
        assert client.get("/api/admin/users?status=banned", headers=admin_headers).status_code == 400

    def test_non_admin_forbidden(self, client, staff_headers):
        resp = client.get("/api/admin/users", headers=staff_headers)
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "Admin access required"

    def test_delete_user(self, client, admin_headers, staff_user):
        assert client.delete(f"/api/admin/users/{staff_user.id}", headers=admin_headers).status_code == 200
        assert _login(client, "staff@example.com").status_code == 401

    def test_admins_cannot_be_deleted(self, client, admin_headers, new_user):
        other = new_user("second-admin@example.com", role="admin")
        assert client.delete(f"/api/admin/users/{other.id}", headers=admin_headers).status_code == 409


def test_account_service_rejects_duplicate(accounts, staff_user):
    with pytest.raises(AccountError):
        accounts.register(email="Staff@Example.com", password=PASSWORD)


def test_user_repository_must_implement_every_method():
    class LookupOnly(UserRepository):
        def get(self, user_id):
            return None

    with pytest.raises(TypeError):
        LookupOnly()
    with pytest.raises(TypeError):
        UserRepository()
    assert isinstance(SqlAlchemyUserRepository(), UserRepository)
