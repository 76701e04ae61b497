"""Memory, moderation and comment routes"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from legacy.auth.context import AuthContext, get_auth_context, require_permission
from legacy.models.memory import (
    ApprovalStatus, CommentCreate, MediaType, MemoryCreate, MemoryUpdate, RejectRequest
)
from legacy.services.memory_service import memory_service
from legacy.services.realtime import broadcast_vault_event

logger = logging.getLogger(__name__)
router = APIRouter()


async def announce(vault_id: str, event_type: str, data: dict, ctx: AuthContext):
    await broadcast_vault_event(vault_id, event_type, data, user_id=ctx.user.id, user_name=ctx.user.name)


@router.get("/{vault_id}/memories")
async def list_memories(
    vault_id: str,
    status: Optional[ApprovalStatus] = None,
    media_type: Optional[MediaType] = None,
    ctx: AuthContext = Depends(require_permission("memory:read"))
):
    """Memories visible to the caller; only moderators see unapproved ones"""
    memories = memory_service.list_memories(vault_id, ctx.user, ctx.evaluator, status=status, media_type=media_type)
    return [m.model_dump() for m in memories]


@router.post("/{vault_id}/memories")
async def upload_memory(
    vault_id: str,
    data: MemoryCreate,
    ctx: AuthContext = Depends(require_permission("memory:create"))
):
    """Upload a memory; it may need approval before it is visible"""
    memory = memory_service.upload(vault_id, ctx.user, data, ctx.evaluator)
    if memory.approval_status == "approved":
        await announce(vault_id, "memory_uploaded", {"memory": memory.model_dump()}, ctx)
    else:
        # Only the moderation queue learns about pending uploads
        await announce(vault_id, "memory_pending", {"memory_id": memory.id}, ctx)
    return memory.model_dump()


@router.get("/{vault_id}/memories/pending")
async def list_pending_memories(vault_id: str, ctx: AuthContext = Depends(get_auth_context)):
    """Moderation queue"""
    return [m.model_dump() for m in memory_service.list_pending(vault_id, ctx.user, ctx.evaluator)]


@router.get("/{vault_id}/memories/rejected")
async def list_rejected_memories(vault_id: str, ctx: AuthContext = Depends(get_auth_context)):
    """The caller's own rejected memories with rejection reasons"""
    return [m.model_dump() for m in memory_service.list_rejected(vault_id, ctx.user, ctx.evaluator)]


@router.get("/{vault_id}/memories/{memory_id}")
async def get_memory(
    vault_id: str,
    memory_id: str,
    ctx: AuthContext = Depends(require_permission("memory:read"))
):
    return memory_service.get_memory(vault_id, memory_id, ctx.user, ctx.evaluator).model_dump()


@router.patch("/{vault_id}/memories/{memory_id}")
async def update_memory(
    vault_id: str,
    memory_id: str,
    data: MemoryUpdate,
    ctx: AuthContext = Depends(require_permission("memory:update"))
):
    memory = memory_service.update(vault_id, memory_id, ctx.user, data, ctx.evaluator)
    if memory.approval_status == "approved":
        await announce(vault_id, "memory_updated", {"memory": memory.model_dump()}, ctx)
    return memory.model_dump()


@router.delete("/{vault_id}/memories/{memory_id}")
async def delete_memory(vault_id: str, memory_id: str, ctx: AuthContext = Depends(get_auth_context)):
    memory = memory_service.delete(vault_id, memory_id, ctx.user, ctx.evaluator)
    if memory.approval_status == "approved":
        await announce(vault_id, "memory_deleted", {"memory_id": memory_id}, ctx)
    return {"deleted": True}


# Approval workflow

@router.post("/{vault_id}/memories/{memory_id}/approve")
async def approve_memory(vault_id: str, memory_id: str, ctx: AuthContext = Depends(get_auth_context)):
    memory = memory_service.approve(vault_id, memory_id, ctx.user, ctx.evaluator)
    await announce(vault_id, "memory_approved", {"memory": memory.model_dump()}, ctx)
    return memory.model_dump()


@router.post("/{vault_id}/memories/{memory_id}/reject")
async def reject_memory(
    vault_id: str,
    memory_id: str,
    data: RejectRequest,
    ctx: AuthContext = Depends(get_auth_context)
):
    memory = memory_service.reject(vault_id, memory_id, ctx.user, data.reason, ctx.evaluator)
    await announce(vault_id, "memory_rejected", {"memory_id": memory_id}, ctx)
    return memory.model_dump()


@router.post("/{vault_id}/memories/{memory_id}/resubmit")
async def resubmit_memory(vault_id: str, memory_id: str, ctx: AuthContext = Depends(get_auth_context)):
    memory = memory_service.resubmit(vault_id, memory_id, ctx.user, ctx.evaluator)
    await announce(vault_id, "memory_resubmitted", {"memory_id": memory_id}, ctx)
    return memory.model_dump()


# Comments

@router.get("/{vault_id}/memories/{memory_id}/comments")
async def list_comments(vault_id: str, memory_id: str, ctx: AuthContext = Depends(get_auth_context)):
    return [c.model_dump() for c in memory_service.list_comments(vault_id, memory_id, ctx.user, ctx.evaluator)]


@router.post("/{vault_id}/memories/{memory_id}/comments")
async def add_comment(
    vault_id: str,
    memory_id: str,
    data: CommentCreate,
    ctx: AuthContext = Depends(get_auth_context)
):
    memory, comment = memory_service.add_comment(vault_id, memory_id, ctx.user, data, ctx.evaluator)
    # Comments on unapproved memories stay with their creator and moderators
    if memory.approval_status == "approved":
        await announce(vault_id, "comment_added", {"comment": comment.model_dump()}, ctx)
    return comment.model_dump()


@router.delete("/{vault_id}/memories/{memory_id}/comments/{comment_id}")
async def delete_comment(
    vault_id: str,
    memory_id: str,
    comment_id: str,
    ctx: AuthContext = Depends(get_auth_context)
):
    memory, _ = memory_service.delete_comment(vault_id, memory_id, comment_id, ctx.user, ctx.evaluator)
    if memory.approval_status == "approved":
        await announce(vault_id, "comment_deleted", {"memory_id": memory_id, "comment_id": comment_id}, ctx)
    return {"deleted": True}
