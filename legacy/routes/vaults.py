"""Vault and vault member routes"""

import logging

from fastapi import APIRouter, Depends, Query

from legacy.auth.context import AuthContext, get_auth_context, require_permission
from legacy.models.vault import VaultCreate, VaultMemberAdd, VaultMemberUpdate, VaultUpdate
from legacy.services.memory_service import memory_service
from legacy.services.realtime import broadcast_vault_event, manager
from legacy.services.vault_service import is_vault_admin, vault_service

logger = logging.getLogger(__name__)
router = APIRouter()


def vault_response(vault, user_id: str) -> dict:
    return {**vault.model_dump(), "is_admin": is_vault_admin(vault, user_id)}


@router.post("")
async def create_vault(
    data: VaultCreate,
    ctx: AuthContext = Depends(require_permission("vault:create"))
):
    """Create a vault; the creator becomes its only admin"""
    vault = vault_service.create_vault(ctx.user, data)
    return vault_response(vault, ctx.user.id)


@router.get("")
async def list_vaults(ctx: AuthContext = Depends(require_permission("vault:read"))):
    """Vaults the current user belongs to"""
    return [vault_response(v, ctx.user.id) for v in vault_service.list_user_vaults(ctx.user.id)]


@router.get("/{vault_id}")
async def get_vault(vault_id: str, ctx: AuthContext = Depends(require_permission("vault:read"))):
    vault = vault_service.get_vault(vault_id)
    vault_service.require_member(vault, ctx.user.id, ctx.evaluator)
    return vault_response(vault, ctx.user.id)


@router.patch("/{vault_id}")
async def update_vault(
    vault_id: str,
    data: VaultUpdate,
    ctx: AuthContext = Depends(get_auth_context)
):
    """Update vault details and moderation settings"""
    vault = vault_service.update_vault(vault_id, ctx.user, data, ctx.evaluator)
    await broadcast_vault_event(vault_id, "vault_updated", {"vault": vault.model_dump()},
                                user_id=ctx.user.id, user_name=ctx.user.name)
    return vault_response(vault, ctx.user.id)


@router.delete("/{vault_id}")
async def delete_vault(vault_id: str, ctx: AuthContext = Depends(get_auth_context)):
    """Delete a vault with all of its memories"""
    vault_service.delete_vault(vault_id, ctx.user, ctx.evaluator)
    await broadcast_vault_event(vault_id, "vault_deleted", {"vault_id": vault_id},
                                user_id=ctx.user.id, user_name=ctx.user.name)
    manager.forget_vault(vault_id)
    return {"deleted": True}


@router.get("/{vault_id}/activity")
async def get_vault_activity(
    vault_id: str,
    limit: int = Query(50, ge=1, le=200),
    ctx: AuthContext = Depends(get_auth_context)
):
    """Recent activity in a vault"""
    return memory_service.list_activity(vault_id, ctx.user, ctx.evaluator, limit=limit)


# Members

@router.get("/{vault_id}/members")
async def list_vault_members(vault_id: str, ctx: AuthContext = Depends(get_auth_context)):
    vault = vault_service.get_vault(vault_id)
    vault_service.require_member(vault, ctx.user.id, ctx.evaluator)
    return [m.model_dump() for m in vault.members]


@router.post("/{vault_id}/members")
async def add_vault_member(
    vault_id: str,
    data: VaultMemberAdd,
    ctx: AuthContext = Depends(get_auth_context)
):
    """Add a user to a vault by id or email"""
    member = vault_service.add_member(vault_id, ctx.user, data, ctx.evaluator)
    await broadcast_vault_event(vault_id, "member_added", {"member": member.model_dump()},
                                user_id=ctx.user.id, user_name=ctx.user.name)
    return member.model_dump()


@router.patch("/{vault_id}/members/{user_id}")
async def update_vault_member(
    vault_id: str,
    user_id: str,
    data: VaultMemberUpdate,
    ctx: AuthContext = Depends(get_auth_context)
):
    """Promote or demote a vault member"""
    member = vault_service.update_member_role(vault_id, ctx.user, user_id, data.role, ctx.evaluator)
    return member.model_dump()


@router.delete("/{vault_id}/members/{user_id}")
async def remove_vault_member(
    vault_id: str,
    user_id: str,
    ctx: AuthContext = Depends(get_auth_context)
):
    """Remove a member from a vault (or leave it)"""
    vault_service.remove_member(vault_id, ctx.user, user_id, ctx.evaluator)
    await broadcast_vault_event(vault_id, "member_removed", {"user_id": user_id},
                                user_id=ctx.user.id, user_name=ctx.user.name)
    return {"deleted": True}
