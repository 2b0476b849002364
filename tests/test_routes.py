import pytest
from fastapi.testclient import TestClient

from admindash.config import settings
from admindash.core.errors import ErrorKind
from admindash.main import HTTP_STATUS_BY_KIND, app
from admindash.modules.diagnostics import routes as diagnostics_routes

from tests.fakes import access_denied

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def nav_names(payload):
    return [entry["name"] for entry in payload["navigation"]]


def test_every_error_kind_has_a_status():
    assert set(HTTP_STATUS_BY_KIND) == set(ErrorKind)


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.headers["X-Frame-Options"] == "DENY"


class TestAuthRoutes:
    def test_me_requires_session(self, client):
        response = client.get("/api/v1/auth/me")
        assert response.status_code == 401

    def test_me_for_staff(self, client, sign_in_as):
        sign_in_as("u-staff")

        response = client.get("/api/v1/auth/me")

        assert response.status_code == 200
        payload = response.json()
        assert payload["role"]["name"] == "staff"
        assert payload["permissions"] == ["can_view_products"]
        assert payload["session"]["user_id"] == "u-staff"
        assert "access_token" not in response.text
        assert nav_names(payload) == ["Dashboard", "Admin", "Products"]
        assert payload["settings_tabs"] == ["profile", "security"]
        assert payload["is_admin"] is False
        assert payload["is_manager_or_admin"] is False

    def test_me_for_manager(self, client, sign_in_as):
        sign_in_as("u-manager")

        payload = client.get("/api/v1/auth/me").json()

        assert payload["is_admin"] is False
        assert payload["is_manager_or_admin"] is True

    def test_me_for_user_blocked_by_rls(self, db, client, sign_in_as):
        db.failures[("user_profiles", "select")] = access_denied()
        sign_in_as("u-admin")

        response = client.get("/api/v1/auth/me")

        assert response.status_code == 200
        payload = response.json()
        assert payload["user"]["full_name"] == "ada"
        assert payload["role"] is None
        assert payload["permissions"] == []
        assert nav_names(payload) == ["Dashboard", "Admin"]

    def test_login(self, client):
        response = client.post("/api/v1/auth/login", json={"email": "ada@example.com", "password": "secret-password"})

        assert response.status_code == 200
        payload = response.json()
        assert payload["role"]["name"] == "admin"
        assert "can_manage_roles" in payload["permissions"]
        assert "permissions" in payload["settings_tabs"]
        assert payload["is_admin"] is True

    def test_login_with_wrong_password(self, client):
        response = client.post("/api/v1/auth/login", json={"email": "ada@example.com", "password": "nope"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    def test_login_validates_email(self, client):
        response = client.post("/api/v1/auth/login", json={"email": "not-an-email", "password": "x"})
        assert response.status_code == 422

    def test_logout(self, db, client, sign_in_as):
        sign_in_as("u-staff")
        response = client.post("/api/v1/auth/logout")
        assert response.status_code == 200
        assert db.auth.signed_out

    def test_refresh_picks_up_role_change(self, db, client, sign_in_as):
        sign_in_as("u-staff")
        db.tables["role_permissions"].append({"role_id": "r-staff", "permission_id": "p-view-orders"})

        response = client.post("/api/v1/auth/refresh")

        assert response.status_code == 200
        assert "Orders" in nav_names(response.json())

    def test_password_mismatch(self, client, sign_in_as):
        sign_in_as("u-staff")
        response = client.post(
            "/api/v1/auth/password",
            json={"new_password": "abcdef", "confirm_password": "abcdeg"},
        )
        assert response.status_code == 422

    def test_password_change(self, db, client, sign_in_as):
        sign_in_as("u-staff")
        response = client.post(
            "/api/v1/auth/password",
            json={"new_password": "abcdef", "confirm_password": "abcdef"},
        )
        assert response.status_code == 200
        assert db.auth.accounts["sam@example.com"][0] == "abcdef"


class TestUserRoutes:
    def test_update_profile(self, db, client, sign_in_as):
        sign_in_as("u-staff")

        response = client.put("/api/v1/users/me", json={"full_name": "Samantha", "phone": "555-0123"})

        assert response.status_code == 200
        assert response.json()["full_name"] == "Samantha"
        assert db.rows("user_profiles", id="u-staff")[0]["phone"] == "555-0123"

    def test_null_name_is_rejected(self, db, client, sign_in_as):
        sign_in_as("u-staff")

        response = client.put("/api/v1/users/me", json={"full_name": None})

        assert response.status_code == 422
        assert db.rows("user_profiles", id="u-staff")[0]["full_name"] == "Sam Staff"

    def test_empty_update(self, client, sign_in_as):
        sign_in_as("u-staff")
        response = client.put("/api/v1/users/me", json={})
        assert response.status_code == 422
        assert response.json()["kind"] == "validation"

    def test_avatar_upload_replaces_previous(self, db, client, sign_in_as):
        sign_in_as("u-staff")

        first = client.post("/api/v1/users/me/avatar", files={"file": ("me.png", PNG, "image/png")})
        second = client.post("/api/v1/users/me/avatar", files={"file": ("me.png", PNG, "image/png")})

        assert first.status_code == 200
        assert second.status_code == 200
        avatar_url = second.json()["avatar_url"]
        assert db.rows("user_profiles", id="u-staff")[0]["avatar_url"] == avatar_url
        assert len(db.storage.files) == 1
        assert len(db.storage.removed) == 1

    def test_avatar_removed_when_profile_update_fails(self, db, client, sign_in_as):
        sign_in_as("u-staff")
        db.failures[("user_profiles", "update")] = access_denied()

        response = client.post("/api/v1/users/me/avatar", files={"file": ("me.png", PNG, "image/png")})

        assert response.status_code == 500
        assert db.storage.files == {}
        assert len(db.storage.removed) == 1
        assert db.rows("user_profiles", id="u-staff")[0]["avatar_url"] is None

    def test_avatar_must_be_image(self, client, sign_in_as):
        sign_in_as("u-staff")
        response = client.post("/api/v1/users/me/avatar", files={"file": ("doc.pdf", b"%PDF-1.4", "application/pdf")})
        assert response.status_code == 422


class TestRoleRoutes:
    def test_admin_only(self, client, sign_in_as):
        sign_in_as("u-manager")
        response = client.get("/api/v1/roles")
        assert response.status_code == 403
        assert response.json()["detail"] == "Access denied"

    def test_list_roles(self, client, sign_in_as):
        sign_in_as("u-admin")
        response = client.get("/api/v1/roles")
        assert response.status_code == 200
        assert [r["name"] for r in response.json()] == ["admin", "manager", "staff"]

    def test_matrix_toggle(self, db, client, sign_in_as):
        sign_in_as("u-admin")

        response = client.post("/api/v1/roles/matrix/toggle", json={"role_id": "r-staff", "permission_id": "p-view-orders"})

        assert response.status_code == 200
        payload = response.json()
        assert payload["role_permissions"]["r-staff"] == ["p-view-orders", "p-view-products"]
        assert payload["message"] == {"type": "success", "text": "Permission updated successfully"}

    def test_toggle_unknown_permission(self, db, client, sign_in_as):
        sign_in_as("u-admin")

        response = client.post(
            "/api/v1/roles/matrix/toggle",
            json={"role_id": "r-staff", "permission_id": "no-such-permission"},
        )

        assert response.status_code == 422
        assert response.json()["kind"] == "validation"
        assert [row["permission_id"] for row in db.rows("role_permissions", role_id="r-staff")] == ["p-view-products"]

    def test_toggle_unknown_role(self, db, client, sign_in_as):
        sign_in_as("u-admin")

        response = client.post("/api/v1/roles/matrix/toggle", json={"role_id": "no-such-role", "permission_id": "p-view-orders"})

        assert response.status_code == 422
        assert db.rows("role_permissions", role_id="no-such-role") == []

    def test_replace_role_permissions(self, db, client, sign_in_as):
        sign_in_as("u-admin")

        response = client.put("/api/v1/roles/r-manager/permissions", json={"permission_ids": ["p-view-orders"]})

        assert response.status_code == 200
        assert [p["name"] for p in response.json()["permissions"]] == ["can_view_orders"]

    def test_replace_with_unknown_permission(self, db, client, sign_in_as):
        sign_in_as("u-admin")
        before = db.rows("role_permissions", role_id="r-manager")

        response = client.put(
            "/api/v1/roles/r-manager/permissions",
            json={"permission_ids": ["p-view-orders", "no-such-permission"]},
        )

        assert response.status_code == 422
        assert response.json()["detail"] == "Unknown permission: no-such-permission"
        assert db.rows("role_permissions", role_id="r-manager") == before

    def test_assign_role(self, db, client, sign_in_as):
        sign_in_as("u-admin")

        response = client.put("/api/v1/roles/user-roles", json={"user_id": "u-staff", "role_id": "r-manager"})

        assert response.status_code == 200
        assert [row["role_id"] for row in db.rows("user_roles", user_id="u-staff")] == ["r-manager"]

    def test_assign_role_needs_both_fields(self, client, sign_in_as):
        sign_in_as("u-admin")
        response = client.put("/api/v1/roles/user-roles", json={"role_id": "r-manager"})
        assert response.status_code == 422
        assert response.json()["detail"] == "Please select both user and role"

    def test_users_with_roles(self, client, sign_in_as):
        sign_in_as("u-admin")
        response = client.get("/api/v1/roles/users")
        assert response.status_code == 200
        assert {u["id"]: u["role"]["name"] for u in response.json()}["u-staff"] == "staff"

    def test_create_and_delete_role(self, client, sign_in_as):
        sign_in_as("u-admin")

        created = client.post("/api/v1/roles", json={"name": "auditor", "display_name": "Auditor"})
        assert created.status_code == 201

        deleted = client.delete(f"/api/v1/roles/{created.json()['id']}")
        assert deleted.status_code == 204
        assert client.delete("/api/v1/roles/r-nope").status_code == 404

    def test_role_name_format(self, client, sign_in_as):
        sign_in_as("u-admin")
        response = client.post("/api/v1/roles", json={"name": "Bad Name", "display_name": "Bad"})
        assert response.status_code == 422

    def test_unknown_role(self, client, sign_in_as):
        sign_in_as("u-admin")
        response = client.get("/api/v1/roles/r-nope")
        assert response.status_code == 404
        assert response.json()["kind"] == "not_found"


class TestConfiguration:
    def test_missing_configuration(self, monkeypatch):
        monkeypatch.setattr(settings, "supabase_url", "")
        monkeypatch.setattr(settings, "supabase_key", "")

        with TestClient(app) as client:
            response = client.get("/api/v1/auth/me")

        assert response.status_code == 503
        assert response.json()["missing"] == ["SUPABASE_URL", "SUPABASE_KEY"]

    def test_diagnostics_without_configuration(self, monkeypatch):
        monkeypatch.setattr(settings, "supabase_url", "")
        monkeypatch.setattr(settings, "supabase_key", "")

        with TestClient(app) as client:
            response = client.get("/api/v1/diagnostics")

        assert response.status_code == 200
        payload = response.json()
        assert payload["config"]["has_supabase_url"] is False
        assert payload["session"] is None

    def test_diagnostics(self, db, sign_in_as, monkeypatch):
        monkeypatch.setattr(settings, "supabase_url", "https://abcdefghijklmnop.supabase.co")
        monkeypatch.setattr(settings, "supabase_key", "anon-key-that-is-long-enough")

        async def create_client(storage):
            return db
        monkeypatch.setattr(diagnostics_routes.SupabaseClient, "create_client", create_client)
        db.failures[("permissions", "select")] = access_denied()
        sign_in_as("u-new")

        with TestClient(app) as client:
            response = client.get("/api/v1/diagnostics")

        payload = response.json()
        assert payload["config"]["url_starts_with"] == "https://abcdefghijkl..."
        assert payload["session"]["user_id"] == "u-new"
        assert payload["session"]["token_accepted"] is True
        tables = {t["table"]: t for t in payload["tables"]}
        assert tables["roles"] == {"table": "roles", "accessible": True, "count": 3, "error": None, "error_code": None}
        assert tables["permissions"]["accessible"] is False
        assert tables["permissions"]["error_code"] == "42501"
        assert payload["user_profile"]["exists"] is False
        assert payload["user_profile"]["error_kind"] == "not_found"
        assert payload["user_role_count"] == 0
