"""
Permission catalog and system roles.

Permissions are a fixed vocabulary of ``<area>:<action>`` tags. A user's
effective permissions are the union of the permissions of their roles;
there is no hierarchy, no wildcard and no deny rule.
"""
from typing import Dict, Iterable, List, Literal, get_args

Permission = Literal[
    # Vault permissions
    "vault:create",
    "vault:read",
    "vault:update",
    "vault:delete",
    "vault:manage_members",
    # Memory permissions
    "memory:create",
    "memory:read",
    "memory:update",
    "memory:delete",
    "memory:approve",
    # User permissions
    "user:read",
    "user:update",
    "user:delete",
    # Admin permissions
    "admin:access",
    "admin:manage_users",
    "admin:manage_roles",
    "admin:system_settings",
]

ALL_PERMISSIONS: List[str] = list(get_args(Permission))

DEFAULT_ROLE_ID = "role_user"

SYSTEM_ROLES = [
    {
        "id": "role_admin",
        "name": "Admin",
        "description": "Full access to all features and settings",
        "permissions": list(ALL_PERMISSIONS),
        "is_system": True,
    },
    {
        "id": "role_moderator",
        "name": "Moderator",
        "description": "Can moderate content and manage users",
        "permissions": [
            "vault:read",
            "vault:update",
            "memory:create",
            "memory:read",
            "memory:update",
            "memory:delete",
            "memory:approve",
            "user:read",
        ],
        "is_system": True,
    },
    {
        "id": "role_user",
        "name": "User",
        "description": "Standard user access",
        "permissions": [
            "vault:create",
            "vault:read",
            "memory:create",
            "memory:read",
            "memory:update",
            "memory:delete",
            "user:read",
            "user:update",
        ],
        "is_system": True,
    },
    {
        "id": "role_guest",
        "name": "Guest",
        "description": "Limited access for guests",
        "permissions": ["vault:read", "memory:read"],
        "is_system": True,
    },
]

SYSTEM_ROLE_IDS = frozenset(role["id"] for role in SYSTEM_ROLES)

PERMISSION_CATEGORIES: Dict[str, List[str]] = {
    "Vault Permissions": ["vault:create", "vault:read", "vault:update", "vault:delete", "vault:manage_members"],
    "Memory Permissions": ["memory:create", "memory:read", "memory:update", "memory:delete", "memory:approve"],
    "User Permissions": ["user:read", "user:update", "user:delete"],
    "Admin Permissions": ["admin:access", "admin:manage_users", "admin:manage_roles", "admin:system_settings"],
}

PERMISSION_NAMES = {
    "vault:create": "Create Vaults",
    "vault:read": "View Vaults",
    "vault:update": "Edit Vaults",
    "vault:delete": "Delete Vaults",
    "vault:manage_members": "Manage Vault Members",
    "memory:create": "Create Memories",
    "memory:read": "View Memories",
    "memory:update": "Edit Memories",
    "memory:delete": "Delete Memories",
    "memory:approve": "Approve Memories",
    "user:read": "View User Profiles",
    "user:update": "Edit User Profiles",
    "user:delete": "Delete Users",
    "admin:access": "Access Admin Panel",
    "admin:manage_users": "Manage Users",
    "admin:manage_roles": "Manage Roles",
    "admin:system_settings": "Manage System Settings",
}

PERMISSION_DESCRIPTIONS = {
    "vault:create": "Ability to create new vaults",
    "vault:read": "Ability to view vaults",
    "vault:update": "Ability to edit vault details",
    "vault:delete": "Ability to delete vaults",
    "vault:manage_members": "Ability to add, remove, and manage vault members",
    "memory:create": "Ability to upload new memories",
    "memory:read": "Ability to view memories",
    "memory:update": "Ability to edit memory details",
    "memory:delete": "Ability to delete memories",
    "memory:approve": "Ability to approve or reject memories",
    "user:read": "Ability to view user profiles",
    "user:update": "Ability to edit user profiles",
    "user:delete": "Ability to delete user accounts",
    "admin:access": "Ability to access the admin panel",
    "admin:manage_users": "Ability to manage users and their roles",
    "admin:manage_roles": "Ability to create, edit, and delete roles",
    "admin:system_settings": "Ability to modify system settings",
}


def is_valid_permission(permission: str) -> bool:
    return permission in PERMISSION_NAMES


def has_permission(user_permissions: Iterable[str], required_permission: str) -> bool:
    """Check if a permission set contains a specific permission"""
    return required_permission in set(user_permissions)


def has_any_permission(user_permissions: Iterable[str], required_permissions: Iterable[str]) -> bool:
    """Check if a permission set contains at least one of the given permissions"""
    granted = set(user_permissions)
    return any(permission in granted for permission in required_permissions)


def has_all_permissions(user_permissions: Iterable[str], required_permissions: Iterable[str]) -> bool:
    """Check if a permission set contains every one of the given permissions"""
    granted = set(user_permissions)
    return all(permission in granted for permission in required_permissions)


def get_permissions_by_category() -> Dict[str, List[str]]:
    return {category: list(perms) for category, perms in PERMISSION_CATEGORIES.items()}


def get_permission_name(permission: str) -> str:
    """Human-readable name, falling back to the tag itself"""
    return PERMISSION_NAMES.get(permission, permission)


def get_permission_description(permission: str) -> str:
    return PERMISSION_DESCRIPTIONS.get(permission, "No description available")
