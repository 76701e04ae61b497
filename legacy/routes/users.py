"""User routes"""

import logging

from fastapi import APIRouter, Depends

from legacy.auth.context import AuthContext, get_auth_context, require_permission
from legacy.models.user import UserUpdate
from legacy.services.account_service import account_service
from legacy.services.vault_service import vault_service
from legacy.services.rbac_service import rbac_service
from legacy.services.realtime import manager

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/me")
async def get_current_user_profile(ctx: AuthContext = Depends(get_auth_context)):
    """Get current user's profile"""
    return ctx.user.model_dump()


@router.put("/me")
async def update_current_user_profile(
    updates: UserUpdate,
    ctx: AuthContext = Depends(get_auth_context)
):
    """Update current user's profile"""
    user = account_service.update_profile(ctx.user.id, updates)
    return user.model_dump()


@router.delete("/me")
async def delete_current_user(ctx: AuthContext = Depends(get_auth_context)):
    """Delete the current account.

    Vaults where the user is the only admin are deleted with it.
    """
    cascade = account_service.delete_account(ctx.user.id)
    for vault_id in cascade["deleted"]:
        manager.forget_vault(vault_id)
    return {"deleted": True, "vaults_deleted": cascade["deleted"], "vaults_left": cascade["left"]}


@router.get("/me/permissions")
async def get_current_user_permissions(ctx: AuthContext = Depends(get_auth_context)):
    """Roles and effective permissions of the current user"""
    return {
        "user_id": ctx.user.id,
        "roles": [r.model_dump() for r in rbac_service.get_user_roles(ctx.user.id)],
        "permissions": sorted(ctx.evaluator.permissions)
    }


@router.get("/me/vaults")
async def get_current_user_vaults(ctx: AuthContext = Depends(get_auth_context)):
    """Vaults the current user belongs to"""
    vaults = vault_service.list_user_vaults(ctx.user.id)
    return [v.model_dump() for v in vaults]


@router.get("")
async def list_users(ctx: AuthContext = Depends(require_permission("admin:manage_users"))):
    """List all users with their roles"""
    return account_service.list_users()


@router.post("/{user_id}/roles/{role_id}")
async def assign_role(
    user_id: str,
    role_id: str,
    ctx: AuthContext = Depends(require_permission("admin:manage_users"))
):
    """Assign a role to a user"""
    account_service.get_user(user_id)
    rbac_service.assign_role_to_user(user_id, role_id)
    return {"user_id": user_id, "role_ids": rbac_service.get_user_role_ids(user_id)}


@router.delete("/{user_id}/roles/{role_id}")
async def remove_role(
    user_id: str,
    role_id: str,
    ctx: AuthContext = Depends(require_permission("admin:manage_users"))
):
    """Remove a role from a user"""
    account_service.get_user(user_id)
    rbac_service.remove_role_from_user(user_id, role_id)
    return {"user_id": user_id, "role_ids": rbac_service.get_user_role_ids(user_id)}
