"""Permission catalog routes"""

from fastapi import APIRouter, Depends

from legacy.auth.context import AuthContext, get_auth_context
from legacy.rbac.permissions import (
    ALL_PERMISSIONS, get_permission_description, get_permission_name, get_permissions_by_category
)

router = APIRouter()


def describe(permission: str) -> dict:
    return {
        "permission": permission,
        "name": get_permission_name(permission),
        "description": get_permission_description(permission)
    }


@router.get("")
async def list_permissions(ctx: AuthContext = Depends(get_auth_context)):
    """Every permission with its display name and description"""
    return [describe(p) for p in ALL_PERMISSIONS]


@router.get("/categories")
async def list_permission_categories(ctx: AuthContext = Depends(get_auth_context)):
    """Permissions grouped for the role editor"""
    return {
        category: [describe(p) for p in permissions]
        for category, permissions in get_permissions_by_category().items()
    }
