"""
Permissions and Roles Configuration
This config defines the default permission catalogue and the roles that ship with the dashboard.
Used by the seed script to populate/update the roles, permissions and role_permissions tables.
"""

# Permission catalogue grouped by category; names are the machine keys the UI checks
CATEGORIES = {
    "products": {
        "actions": ["view", "create", "edit", "delete"],
        "description": "Product catalogue management"
    },
    "orders": {
        "actions": ["view", "create", "edit", "delete"],
        "description": "Order processing"
    },
    "customers": {
        "actions": ["view", "create", "edit"],
        "description": "Customer records"
    },
    "reports": {
        "actions": ["view"],
        "description": "Sales reports and dashboard widgets"
    },
}

# Permissions that do not follow the can_<action>_<category> pattern
STANDALONE_PERMISSIONS = {
    "can_manage_roles": {
        "category": "settings",
        "description": "Assign roles to users and edit role permissions"
    },
}

ROLE_DEFINITIONS = {
    "admin": {
        "display_name": "Administrator",
        "description": "Full access, including role and permission management",
        "actions": ["view", "create", "edit", "delete"],
        "extra": ["can_manage_roles"]
    },
    "manager": {
        "display_name": "Manager",
        "description": "Manages products, orders and customers",
        "actions": ["view", "create", "edit"],
        "extra": []
    },
    "staff": {
        "display_name": "Staff",
        "description": "Read-only access to products and orders",
        "actions": ["view"],
        "categories": ["products", "orders"],
        "extra": []
    },
}


def permission_name(category: str, action: str) -> str:
    return f"can_{action}_{category}"


def get_permission_matrix():
    """
    Returns a dictionary with all permissions and the default roles
    Format: {
        "permissions": [
            {"name": "can_view_products", "category": "products", "description": "..."},
            ...
        ],
        "roles": [
            {
                "name": "admin",
                "display_name": "Administrator",
                "description": "...",
                "permissions": ["can_create_customers", ...]
            },
            ...
        ]
    }
    """
    permissions = []
    roles = []

    for category, config in CATEGORIES.items():
        for action in config["actions"]:
            permissions.append({
                "name": permission_name(category, action),
                "category": category,
                "description": f"{action.capitalize()} {category}"
            })

    for name, config in STANDALONE_PERMISSIONS.items():
        permissions.append({
            "name": name,
            "category": config["category"],
            "description": config["description"]
        })

    for role_name, role_config in ROLE_DEFINITIONS.items():
        categories = role_config.get("categories", list(CATEGORIES))
        role_permissions = [
            permission_name(category, action)
            for category in categories
            for action in role_config["actions"]
            if action in CATEGORIES[category]["actions"]
        ]
        role_permissions.extend(role_config["extra"])

        roles.append({
            "name": role_name,
            "display_name": role_config["display_name"],
            "description": role_config["description"],
            "permissions": sorted(role_permissions)
        })

    return {
        "permissions": permissions,
        "roles": roles
    }


# Export the matrix for use in seed scripts
PERMISSION_MATRIX = get_permission_matrix()
