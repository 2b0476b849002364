"""Sidebar entries and settings tabs, each gated on a role and/or permission requirement."""

from typing import List
from pydantic import BaseModel, Field


class NavigationItem(BaseModel):
    name: str
    path: str
    allowed_roles: List[str] = Field(default_factory=list)
    required_permissions: List[str] = Field(default_factory=list)
    require_all: bool = True
    children: List["NavigationItem"] = Field(default_factory=list)


class SettingsTab(BaseModel):
    id: str
    label: str
    allowed_roles: List[str] = Field(default_factory=list)


NAVIGATION: List[NavigationItem] = [
    NavigationItem(name="Dashboard", path="/dashboard"),
    NavigationItem(
        name="Admin",
        path="/admin",
        children=[
            NavigationItem(name="Profile", path="/admin/profile"),
            NavigationItem(name="Permission", path="/admin/permission", allowed_roles=["admin"]),
        ],
    ),
    NavigationItem(name="Customers", path="/customers", required_permissions=["can_view_customers"]),
    NavigationItem(
        name="Products",
        path="/products",
        required_permissions=["can_view_products"],
        children=[
            NavigationItem(name="Product List", path="/products", required_permissions=["can_view_products"]),
            NavigationItem(name="Add Product", path="/products/add", required_permissions=["can_create_products"]),
        ],
    ),
    NavigationItem(
        name="Orders",
        path="/orders",
        required_permissions=["can_view_orders", "can_edit_orders"],
        require_all=False,
    ),
]

SETTINGS_TABS: List[SettingsTab] = [
    SettingsTab(id="profile", label="Profile"),
    SettingsTab(id="security", label="Security"),
    SettingsTab(id="permissions", label="Permissions", allowed_roles=["admin"]),
]
