from admindash.config import Settings
from admindash.config.permissions_config import PERMISSION_MATRIX, permission_name


def role(name):
    return next(r for r in PERMISSION_MATRIX["roles"] if r["name"] == name)


class TestPermissionMatrix:
    def test_permission_names(self):
        assert permission_name("products", "view") == "can_view_products"
        names = [p["name"] for p in PERMISSION_MATRIX["permissions"]]
        assert "can_manage_roles" in names
        assert len(names) == len(set(names))

    def test_every_role_permission_exists(self):
        names = {p["name"] for p in PERMISSION_MATRIX["permissions"]}
        for r in PERMISSION_MATRIX["roles"]:
            assert set(r["permissions"]) <= names

    def test_default_roles(self):
        assert role("admin")["permissions"] == sorted(p["name"] for p in PERMISSION_MATRIX["permissions"])
        assert role("staff")["permissions"] == ["can_view_orders", "can_view_products"]
        assert "can_delete_products" not in role("manager")["permissions"]
        assert "can_manage_roles" not in role("manager")["permissions"]


class TestSettings:
    def test_missing_settings(self):
        config = Settings(supabase_url="", supabase_key="")
        assert config.missing_settings() == ["SUPABASE_URL", "SUPABASE_KEY"]
        assert not config.is_configured

    def test_configured(self):
        config = Settings(supabase_url="https://project.supabase.co", supabase_key="anon-key")
        assert config.is_configured

    def test_cookie_secure_only_in_production(self):
        assert Settings(environment="production").cookie_secure
        assert not Settings(environment="development").cookie_secure
