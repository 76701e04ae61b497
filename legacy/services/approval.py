"""
Content approval workflow for memories.

A memory uploaded into a vault that requires approval starts ``pending``
unless the uploader is a vault admin. Moderators move it to ``approved`` or
``rejected``; the creator may resubmit a rejected memory, which puts it back
to ``pending``. Any other transition is refused.

    pending  --approve-->  approved
    pending  --reject--->  rejected
    rejected --resubmit->  pending
"""
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from legacy.errors import InvalidInput, InvalidTransition
from legacy.models.memory import ApprovalStamp, Memory
from legacy.models.user import User
from legacy.models.vault import Vault

APPROVE = "approve"
REJECT = "reject"
RESUBMIT = "resubmit"

TRANSITIONS = {
    ("pending", APPROVE): "approved",
    ("pending", REJECT): "rejected",
    ("rejected", RESUBMIT): "pending",
}


def _now() -> str:
    return datetime.utcnow().isoformat()


def initial_approval(vault: Vault, uploader: User, is_vault_admin: bool) -> Tuple[str, Optional[ApprovalStamp]]:
    """Approval status and stamp for a newly uploaded memory"""
    if not vault.settings.require_approval:
        return "approved", None
    if is_vault_admin:
        # Admin uploads into a moderated vault approve themselves
        return "approved", ApprovalStamp(id=uploader.id, name=uploader.name, date=_now())
    return "pending", None


def next_status(current: str, action: str) -> str:
    try:
        return TRANSITIONS[(current, action)]
    except KeyError:
        raise InvalidTransition(current, action) from None


def approve(memory: Memory, approver: User) -> Memory:
    status = next_status(memory.approval_status, APPROVE)
    return memory.model_copy(update={
        "approval_status": status,
        "approved_by": ApprovalStamp(id=approver.id, name=approver.name, date=_now()),
        "rejection_reason": None,
    })


def validate_reason(reason: Optional[str]) -> str:
    """Rejections must explain themselves"""
    cleaned = (reason or "").strip()
    if not cleaned:
        raise InvalidInput("A rejection reason is required")
    return cleaned


def reject(memory: Memory, reason: str) -> Memory:
    cleaned = validate_reason(reason)
    status = next_status(memory.approval_status, REJECT)
    return memory.model_copy(update={
        "approval_status": status,
        "approved_by": None,
        "rejection_reason": cleaned,
    })


def resubmit(memory: Memory) -> Memory:
    status = next_status(memory.approval_status, RESUBMIT)
    return memory.model_copy(update={
        "approval_status": status,
        "rejection_reason": None,
    })


# Read-side projections

def visible_memories(
    memories: Iterable[Memory],
    can_moderate: bool,
    status: Optional[str] = None,
    media_type: Optional[str] = None
) -> List[Memory]:
    """Memories a viewer may browse in the vault gallery.

    Moderators see every state and may filter by it; other viewers only ever
    see approved memories, whatever filter they ask for.
    """
    result = []
    for memory in memories:
        if not can_moderate and memory.approval_status != "approved":
            continue
        if status and memory.approval_status != status:
            continue
        if media_type and memory.media_type != media_type:
            continue
        result.append(memory)
    return result


def pending_memories(memories: Iterable[Memory]) -> List[Memory]:
    return [m for m in memories if m.approval_status == "pending"]


def rejected_memories_for(memories: Iterable[Memory], viewer_id: str) -> List[Memory]:
    """The viewer's own rejected memories, with their rejection reasons"""
    return [
        m for m in memories
        if m.approval_status == "rejected" and m.created_by.id == viewer_id
    ]


def can_view(memory: Memory, viewer_id: str, can_moderate: bool) -> bool:
    if can_moderate or memory.approval_status == "approved":
        return True
    return memory.created_by.id == viewer_id
