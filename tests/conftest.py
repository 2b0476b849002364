"""Shared fixtures: an in-memory Supabase seeded with three roles, and the services built on it."""

import copy

import pytest
from fastapi.testclient import TestClient

from admindash.core.dependencies import get_supabase
from admindash.core.timestamps import utc_now
from admindash.main import app
from admindash.modules.auth.resolver import AccessResolver
from admindash.modules.auth.session import SessionProvider
from admindash.modules.auth.store import AuthStore
from admindash.modules.roles.service import RoleLocks, RoleService
from admindash.modules.users.service import ProfileService

from tests.fakes import SHOP_PERMISSIONS, FakeSupabase, make_session, rbac_tables, shop_tables

EMAILS = {
    "u-admin": "ada@example.com",
    "u-manager": "max@example.com",
    "u-staff": "sam@example.com",
}

MANAGER_SHOP_GRANTS = [
    "p-view-customers", "p-create-customers", "p-edit-customers", "p-create-orders", "p-edit-orders",
]


@pytest.fixture
def db() -> FakeSupabase:
    supabase = FakeSupabase(rbac_tables())
    for user_id, email in EMAILS.items():
        supabase.auth.add_account(user_id, email, "secret-password")
    return supabase


@pytest.fixture
def shop(db) -> FakeSupabase:
    """db plus products, customers and orders; admin holds every shop permission, manager all but deleting products"""
    db.tables["permissions"].extend(copy.deepcopy(SHOP_PERMISSIONS))
    for permission in SHOP_PERMISSIONS:
        db.tables["role_permissions"].append({"role_id": "r-admin", "permission_id": permission["id"]})
    for permission_id in MANAGER_SHOP_GRANTS:
        db.tables["role_permissions"].append({"role_id": "r-manager", "permission_id": permission_id})
    db.tables.update(shop_tables(utc_now().isoformat()))
    db.storage.files[("product-images", "1700000000000-abc1234.png")] = b"\x89PNG"
    return db


@pytest.fixture
def client(db):
    app.dependency_overrides[get_supabase] = lambda: db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def sign_in_as(db):
    """Put a session for the given user into the fake auth client, as if read from the cookie."""
    def _sign_in(user_id: str, email: str = None):
        db.auth.session = make_session(user_id, email or EMAILS.get(user_id, f"{user_id}@example.com"))
        return db.auth.session
    return _sign_in


@pytest.fixture
def profile_service(db) -> ProfileService:
    return ProfileService(db, timeout=0.5)


@pytest.fixture
def resolver(db, profile_service) -> AccessResolver:
    return AccessResolver(db, profile_service, query_timeout=0.5)


@pytest.fixture
def session_provider(db) -> SessionProvider:
    return SessionProvider(db)


@pytest.fixture
def store(session_provider, resolver) -> AuthStore:
    return AuthStore(session_provider, resolver)


@pytest.fixture
def role_service(db) -> RoleService:
    return RoleService(db, locks=RoleLocks())
