"""
Integration tests for /api/v1/users (Admin-only account management).

Covers:
- create: 201 envelope, hash never exposed, new account can log in, created_by recorded
- create: duplicate -> 409, weak password / bad email -> 400
- list: search, role/status filters, pagination block
- get: 404 for unknown id
- patch: update fields, empty body -> 400, lock-out guards
- Staff caller -> 403 on every route
"""

from __future__ import annotations

import pytest

from auth.models import Role, UserStatus

_NEW_USER = {
    "username": "bob",
    "email": "Bob@Example.com",
    "password": "Bobpass123",
    "fullName": "Bob Builder",
    "role": "Staff",
    "department": "Facilities",
}


class TestCreate:
    def test_create_user(self, api):
        resp = api.client.post("/api/v1/users", json=_NEW_USER, headers=api.admin_headers())
        assert resp.status_code == 201
        body = resp.json()
        assert body["message"] == "User created successfully"
        data = body["data"]
        assert data["username"] == "bob"
        assert data["email"] == "bob@example.com"
        assert data["status"] == "Active"
        assert data["department"] == "Facilities"
        assert "password" not in data and "passwordHash" not in data

        stored = api.user_store.get_by_id(data["userId"])
        assert stored.created_by == api.admin_id
        assert stored.password_hash.startswith("$2b$")

        assert api.login("bob", "Bobpass123").status_code == 200

    @pytest.mark.parametrize("identifier", ["Bob@Example.com", "bob@example.com", "BOB@EXAMPLE.COM"])
    def test_new_user_logs_in_with_email_as_given(self, api, identifier):
        resp = api.client.post("/api/v1/users", json=_NEW_USER, headers=api.admin_headers())
        assert resp.status_code == 201
        login = api.login(identifier, "Bobpass123")
        assert login.status_code == 200
        assert login.json()["data"]["user"]["username"] == "bob"

    def test_duplicate_email_differing_in_case_is_409(self, api):
        dup = dict(_NEW_USER, email="ALICE@example.com")
        resp = api.client.post("/api/v1/users", json=dup, headers=api.admin_headers())
        assert resp.status_code == 409

    def test_duplicate_username_is_409(self, api):
        dup = dict(_NEW_USER, username="alice", email="other@example.com")
        resp = api.client.post("/api/v1/users", json=dup, headers=api.admin_headers())
        assert resp.status_code == 409
        assert resp.json()["error"]["message"] == "Username or email already exists"

    def test_duplicate_email_is_409(self, api):
        dup = dict(_NEW_USER, email="alice@example.com")
        resp = api.client.post("/api/v1/users", json=dup, headers=api.admin_headers())
        assert resp.status_code == 409

    @pytest.mark.parametrize(
        "override",
        [
            {"password": "alllowercase1"},
            {"password": "Short1"},
            {"email": "not-an-email"},
            {"username": "ab"},
            {"role": "Owner"},
        ],
    )
    def test_invalid_body_is_400(self, api, override):
        resp = api.client.post("/api/v1/users", json=dict(_NEW_USER, **override), headers=api.admin_headers())
        assert resp.status_code == 400
        assert resp.json()["success"] is False

    def test_staff_cannot_create(self, api):
        resp = api.client.post("/api/v1/users", json=_NEW_USER, headers=api.staff_headers())
        assert resp.status_code == 403
        assert api.user_store.find_active_by_username_or_email("bob") is None


class TestList:
    def test_list_all(self, api):
        resp = api.client.get("/api/v1/users", headers=api.admin_headers())
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert {u["username"] for u in data["users"]} == {"testadmin", "alice"}
        assert data["pagination"] == {"page": 1, "limit": 25, "total": 2, "totalPages": 1}

    def test_search_is_case_insensitive(self, api):
        resp = api.client.get("/api/v1/users", params={"search": "ALI"}, headers=api.admin_headers())
        assert [u["username"] for u in resp.json()["data"]["users"]] == ["alice"]

    def test_filter_by_role_and_status(self, api):
        api.user_store.update_user(api.staff_id, status=UserStatus.inactive)
        by_role = api.client.get("/api/v1/users", params={"role": "Admin"}, headers=api.admin_headers())
        assert [u["username"] for u in by_role.json()["data"]["users"]] == ["testadmin"]
        by_status = api.client.get("/api/v1/users", params={"status": "Inactive"}, headers=api.admin_headers())
        assert [u["username"] for u in by_status.json()["data"]["users"]] == ["alice"]

    def test_pagination(self, api):
        resp = api.client.get("/api/v1/users", params={"page": 2, "limit": 1}, headers=api.admin_headers())
        data = resp.json()["data"]
        assert len(data["users"]) == 1
        assert data["pagination"] == {"page": 2, "limit": 1, "total": 2, "totalPages": 2}

    @pytest.mark.parametrize("params", [{"page": 0}, {"limit": 101}, {"role": "Owner"}])
    def test_bad_query_is_400(self, api, params):
        resp = api.client.get("/api/v1/users", params=params, headers=api.admin_headers())
        assert resp.status_code == 400


class TestGet:
    def test_get_user(self, api):
        resp = api.client.get(f"/api/v1/users/{api.staff_id}", headers=api.admin_headers())
        assert resp.status_code == 200
        assert resp.json()["data"]["username"] == "alice"

    def test_unknown_user_is_404(self, api):
        resp = api.client.get("/api/v1/users/9999", headers=api.admin_headers())
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "error": {"code": "ERROR", "message": "User not found"}}


class TestPatch:
    def test_update_fields(self, api):
        resp = api.client.patch(
            f"/api/v1/users/{api.staff_id}",
            json={"fullName": "Alice Liddell", "department": "Workshop", "role": "Admin"},
            headers=api.admin_headers(),
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["fullName"] == "Alice Liddell"
        assert data["department"] == "Workshop"
        assert data["role"] == "Admin"

    def test_empty_patch_is_400(self, api):
        resp = api.client.patch(f"/api/v1/users/{api.staff_id}", json={}, headers=api.admin_headers())
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "No fields to update"

    def test_patch_unknown_user_is_404(self, api):
        resp = api.client.patch("/api/v1/users/9999", json={"fullName": "X"}, headers=api.admin_headers())
        assert resp.status_code == 404

    def test_deactivated_user_cannot_log_in(self, api):
        resp = api.client.patch(
            f"/api/v1/users/{api.staff_id}", json={"status": "Inactive"}, headers=api.admin_headers()
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "Inactive"
        assert api.login("alice", api.staff_password).status_code == 401

    def test_admin_cannot_deactivate_self(self, api):
        api.user_store.update_user(api.staff_id, role=Role.admin)  # not the last admin
        resp = api.client.patch(
            f"/api/v1/users/{api.admin_id}", json={"status": "Inactive"}, headers=api.admin_headers()
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "You cannot deactivate your own account"

    def test_last_admin_cannot_be_demoted(self, api):
        other_admin = api.bearer(api.staff_id, "alice", Role.admin)
        resp = api.client.patch(f"/api/v1/users/{api.admin_id}", json={"role": "Staff"}, headers=other_admin)
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Cannot remove the last active admin"
        assert api.user_store.get_by_id(api.admin_id).role is Role.admin

    def test_admin_can_be_demoted_when_another_remains(self, api):
        api.user_store.update_user(api.staff_id, role=Role.admin)
        resp = api.client.patch(f"/api/v1/users/{api.staff_id}", json={"role": "Staff"}, headers=api.admin_headers())
        assert resp.status_code == 200
        assert resp.json()["data"]["role"] == "Staff"

    def test_staff_cannot_patch(self, api):
        resp = api.client.patch(
            f"/api/v1/users/{api.admin_id}", json={"status": "Inactive"}, headers=api.staff_headers()
        )
        assert resp.status_code == 403
        assert api.user_store.get_by_id(api.admin_id).is_active
