from pydantic import BaseModel, Field
from typing import Dict, Literal, Optional, List


class Permission(BaseModel):
    id: str
    name: str
    category: Optional[str] = None
    description: Optional[str] = None

    class Config:
        from_attributes = True


class Role(BaseModel):
    id: Optional[str] = None
    name: str
    display_name: Optional[str] = None
    description: Optional[str] = None

    class Config:
        from_attributes = True


class RoleWithPermissionsResponse(Role):
    permissions: List[Permission]


class RoleCreate(BaseModel):
    name: str = Field(min_length=1, pattern=r"^[a-z][a-z0-9_]*$")
    display_name: str = Field(min_length=1)
    description: Optional[str] = None


class RolePermissionsUpdate(BaseModel):
    permission_ids: List[str]


class PermissionToggle(BaseModel):
    role_id: str
    permission_id: str


class UserRoleAssign(BaseModel):
    user_id: str = ""
    role_id: str = ""


class UserRoleResponse(BaseModel):
    user_id: str
    role_id: str


class EditorMessage(BaseModel):
    type: Literal["success", "error"]
    text: str


class PermissionMatrixResponse(BaseModel):
    roles: List[Role]
    permissions_by_category: Dict[str, List[Permission]]
    role_permissions: Dict[str, List[str]]  # role_id -> permission ids
    message: Optional[EditorMessage] = None
