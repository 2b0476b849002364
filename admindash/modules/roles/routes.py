from fastapi import APIRouter, Depends, HTTPException, status
from supabase import AsyncClient
from typing import List

from admindash.core.dependencies import get_supabase, require_role
from admindash.modules.auth.evaluator import ADMIN_ROLE
from admindash.modules.auth.store import AuthStore
from admindash.modules.roles.matrix import PermissionMatrix
from admindash.modules.roles.schemas import (
    Permission, PermissionMatrixResponse, PermissionToggle, Role, RoleCreate,
    RolePermissionsUpdate, RoleWithPermissionsResponse, UserRoleAssign, UserRoleResponse
)
from admindash.modules.roles.service import RoleService
from admindash.modules.users.schemas import UserWithRole

router = APIRouter(prefix="/roles", tags=["roles"])

require_admin = require_role(ADMIN_ROLE)


def get_role_service(supabase: AsyncClient = Depends(get_supabase)) -> RoleService:
    return RoleService(supabase)


@router.get("", response_model=List[Role])
async def list_roles(
    store: AuthStore = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    return await service.list_roles()


@router.post("", response_model=Role, status_code=201)
async def create_role(
    role_data: RoleCreate,
    store: AuthStore = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """Create a new role"""
    return await service.create_role(role_data)


@router.get("/permissions", response_model=List[Permission])
async def list_permissions(
    store: AuthStore = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    return await service.list_permissions()


@router.get("/matrix", response_model=PermissionMatrixResponse)
async def get_permission_matrix(
    store: AuthStore = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """Roles, permissions grouped by category, and which role holds which permission"""
    matrix = await PermissionMatrix(service).load()
    return matrix.snapshot()


@router.post("/matrix/toggle", response_model=PermissionMatrixResponse)
async def toggle_permission(
    toggle: PermissionToggle,
    store: AuthStore = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """Grant or revoke one permission; the role's whole permission set is rewritten"""
    matrix = await PermissionMatrix(service).load()
    await matrix.toggle(toggle.role_id, toggle.permission_id)
    return matrix.snapshot()


@router.get("/users", response_model=List[UserWithRole])
async def list_users_with_roles(
    store: AuthStore = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    return await service.list_users_with_roles()


@router.put("/user-roles", response_model=UserRoleResponse)
async def assign_user_role(
    assignment: UserRoleAssign,
    store: AuthStore = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """Replace the user's role with the given one"""
    return await PermissionMatrix(service).assign_role(assignment.user_id, assignment.role_id)


@router.get("/{role_id}", response_model=RoleWithPermissionsResponse)
async def get_role(
    role_id: str,
    store: AuthStore = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """Get role with its permissions"""
    return await service.get_role_with_permissions(role_id)


@router.put("/{role_id}/permissions", response_model=RoleWithPermissionsResponse)
async def replace_role_permissions(
    role_id: str,
    update: RolePermissionsUpdate,
    store: AuthStore = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """Set the role's permissions to exactly the given ids"""
    matrix = await PermissionMatrix(service).load()
    await matrix.replace_permissions(role_id, update.permission_ids)
    return await service.get_role_with_permissions(role_id)


@router.delete("/{role_id}", status_code=204)
async def delete_role(
    role_id: str,
    store: AuthStore = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """Delete role together with its permission grants and user assignments"""
    if not await service.delete_role(role_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")
    return None
