import asyncio
import gc

import pytest

from admindash.core.errors import BackendError, ErrorKind
from admindash.modules.roles.schemas import Role, RoleCreate
from admindash.modules.roles.service import RoleLocks, RoleService

from tests.fakes import access_denied, api_error


def granted(db, role_id):
    return {row["permission_id"] for row in db.rows("role_permissions", role_id=role_id)}


class TestListing:
    async def test_roles_ordered_by_name(self, role_service):
        roles = await role_service.list_roles()
        assert [role.name for role in roles] == ["admin", "manager", "staff"]

    async def test_permissions_ordered_by_category_then_name(self, role_service):
        permissions = await role_service.list_permissions()
        assert [p.name for p in permissions] == [
            "can_view_orders",
            "can_create_products",
            "can_edit_products",
            "can_view_products",
            "can_manage_roles",
        ]

    async def test_role_with_permissions(self, role_service):
        role = await role_service.get_role_with_permissions("r-staff")
        assert role.name == "staff"
        assert [p.name for p in role.permissions] == ["can_view_products"]

    async def test_missing_role(self, role_service):
        with pytest.raises(BackendError) as exc_info:
            await role_service.get_role_with_permissions("r-nope")
        assert exc_info.value.kind is ErrorKind.NOT_FOUND

    async def test_users_with_roles(self, db, role_service):
        db.tables["user_profiles"].append({"id": "u-new", "full_name": "Nora", "phone": None, "avatar_url": None})

        users = {user.id: user for user in await role_service.list_users_with_roles()}

        assert users["u-admin"].role.name == "admin"
        assert users["u-manager"].role.display_name == "Manager"
        assert users["u-new"].role is None


class TestRolePermissionMap:
    async def test_loads_every_role(self, role_service):
        roles = await role_service.list_roles()
        permission_map = await role_service.load_role_permission_map(roles)

        assert set(permission_map) == {"r-admin", "r-manager", "r-staff"}
        assert len(permission_map["r-admin"]) == 5

    async def test_failed_role_maps_to_empty(self, db, role_service):
        db.failures[("role_permissions", "select")] = access_denied()
        roles = await role_service.list_roles()

        permission_map = await role_service.load_role_permission_map(roles)

        assert permission_map == {"r-admin": [], "r-manager": [], "r-staff": []}

    async def test_queries_run_concurrently(self, db, role_service):
        db.delays["role_permissions"] = 0.1
        roles = await role_service.list_roles()

        loop = asyncio.get_running_loop()
        started = loop.time()
        await role_service.load_role_permission_map(roles)

        assert loop.time() - started < 0.25


class TestReplacePermissions:
    async def test_exact_set_afterwards(self, db, role_service):
        await role_service.update_role_permissions("r-admin", ["p-create-products", "p-view-orders"])
        assert granted(db, "r-admin") == {"p-create-products", "p-view-orders"}

    @pytest.mark.parametrize("before", [[], ["p-view-products"], ["p-edit-products", "p-view-orders", "p-manage-roles"]])
    async def test_independent_of_previous_set(self, db, role_service, before):
        await role_service.update_role_permissions("r-staff", before)
        await role_service.update_role_permissions("r-staff", ["p-create-products", "p-view-orders"])
        assert granted(db, "r-staff") == {"p-create-products", "p-view-orders"}

    async def test_duplicates_are_written_once(self, db, role_service):
        result = await role_service.update_role_permissions("r-staff", ["p-view-orders", "p-view-orders"])
        assert result == ["p-view-orders"]
        assert len(db.rows("role_permissions", role_id="r-staff")) == 1

    async def test_empty_set_clears(self, db, role_service):
        await role_service.update_role_permissions("r-manager", [])
        assert granted(db, "r-manager") == set()
        assert ("role_permissions", "insert") not in db.calls

    async def test_insert_failure_is_reported(self, db, role_service):
        db.failures[("role_permissions", "insert")] = api_error("23503", "foreign key violation")

        with pytest.raises(BackendError) as exc_info:
            await role_service.update_role_permissions("r-staff", ["p-unknown"])

        assert exc_info.value.kind is ErrorKind.MUTATION_FAILED
        assert exc_info.value.code == "23503"

    async def test_writers_for_one_role_do_not_interleave(self, db):
        db.delays["role_permissions"] = 0.01
        service = RoleService(db, locks=RoleLocks())

        await asyncio.gather(
            service.update_role_permissions("r-staff", ["p-view-products", "p-view-orders"]),
            service.update_role_permissions("r-staff", ["p-edit-products"]),
        )

        assert granted(db, "r-staff") == {"p-edit-products"}
        assert len(db.rows("role_permissions", role_id="r-staff")) == 1

    async def test_locks_are_released_after_writes(self, db):
        locks = RoleLocks()
        service = RoleService(db, locks=locks)

        await service.update_role_permissions("r-staff", ["p-view-orders"])
        await service.delete_role("r-manager")
        gc.collect()

        assert len(locks) == 0


class TestAssignRole:
    async def test_replaces_existing_role(self, db, role_service):
        await role_service.assign_user_role("u-staff", "r-manager")

        rows = db.rows("user_roles", user_id="u-staff")
        assert [row["role_id"] for row in rows] == ["r-manager"]

    async def test_repeated_assignments_keep_one_row(self, db, role_service):
        for role_id in ["r-admin", "r-staff", "r-staff", "r-manager"]:
            await role_service.assign_user_role("u-admin", role_id)
            assert len(db.rows("user_roles", user_id="u-admin")) == 1

    async def test_first_assignment(self, db, role_service):
        await role_service.assign_user_role("u-new", "r-staff")
        assert len(db.rows("user_roles", user_id="u-new")) == 1

    async def test_failed_insert_leaves_user_without_role(self, db, role_service):
        db.failures[("user_roles", "insert")] = access_denied()

        with pytest.raises(BackendError) as exc_info:
            await role_service.assign_user_role("u-staff", "r-manager")

        assert exc_info.value.kind is ErrorKind.MUTATION_FAILED
        assert db.rows("user_roles", user_id="u-staff") == []


class TestCreateDeleteRole:
    async def test_create(self, db, role_service):
        role = await role_service.create_role(RoleCreate(name="auditor", display_name="Auditor"))

        assert isinstance(role, Role)
        assert role.id
        assert db.rows("roles", name="auditor")

    async def test_delete_removes_grants_and_assignments(self, db, role_service):
        assert await role_service.delete_role("r-staff") is True

        assert db.rows("roles", id="r-staff") == []
        assert db.rows("role_permissions", role_id="r-staff") == []
        assert db.rows("user_roles", role_id="r-staff") == []

    async def test_delete_unknown(self, role_service):
        assert await role_service.delete_role("r-nope") is False
