"""Memory service

Memories of a vault live in their own ``memories_<vaultId>`` table, newest
first. Status changes go through the approval workflow in
``legacy.services.approval``.
"""

import logging
from typing import List, Optional, Tuple

from legacy.errors import CommentNotFound, InvalidInput, MemoryNotFound, PermissionDenied
from legacy.models.memory import Author, Comment, CommentCreate, Memory, MemoryCreate, MemoryUpdate
from legacy.models.user import User
from legacy.models.vault import Vault
from legacy.services import approval
from legacy.services.database import Database, Q, check_version, db
from legacy.services.rbac_service import PermissionEvaluator
from legacy.services.vault_service import VaultService, is_vault_admin, vault_service

logger = logging.getLogger(__name__)


class MemoryService:
    def __init__(self, database: Database, vaults: VaultService):
        self.db = database
        self.vaults = vaults

    def can_moderate(self, vault: Vault, user_id: str, evaluator: PermissionEvaluator = None) -> bool:
        """Moderators are vault admins and holders of ``memory:approve``"""
        if is_vault_admin(vault, user_id):
            return True
        return bool(evaluator and evaluator.has_permission("memory:approve"))

    def _require_moderator(self, vault: Vault, user_id: str, evaluator: PermissionEvaluator = None):
        self.vaults.require_member(vault, user_id, evaluator)
        if not self.can_moderate(vault, user_id, evaluator):
            raise PermissionDenied("Only vault moderators can review memories")

    def _load_all(self, vault_id: str) -> List[Memory]:
        collection = f"memories_{vault_id}"
        memories = self.db.load_all(Memory, self.db.memories(vault_id).all(), collection)
        return sorted(memories, key=lambda m: m.created_at, reverse=True)

    def _load(self, vault_id: str, memory_id: str) -> Memory:
        doc = self.db.memories(vault_id).get(Q.id == memory_id)
        if not doc:
            raise MemoryNotFound(memory_id)
        return self.db.load(Memory, doc, f"memories_{vault_id}")

    def _save(self, memory: Memory) -> Memory:
        memory = memory.model_copy(update={
            "version": memory.version + 1,
            "updated_at": self.db.timestamp()
        })
        # Full replacement so cleared fields are written as null
        self.db.memories(memory.vault_id).update(memory.model_dump(), Q.id == memory.id)
        return memory

    # =========================================================================
    # Upload and reads
    # =========================================================================

    def upload(
        self,
        vault_id: str,
        uploader: User,
        data: MemoryCreate,
        evaluator: PermissionEvaluator = None
    ) -> Memory:
        with self.db.lock:
            vault = self.vaults.get_vault(vault_id)
            self.vaults.require_member(vault, uploader.id, evaluator)

            status, stamp = approval.initial_approval(vault, uploader, is_vault_admin(vault, uploader.id))
            now = self.db.timestamp()
            memory = Memory(
                id=self.db.generate_id("memory"),
                vault_id=vault_id,
                title=data.title.strip() or "Untitled memory",
                description=data.description,
                media_url=data.media_url,
                media_type=data.media_type,
                thumbnail_url=data.thumbnail_url,
                duration=data.duration,
                created_at=now,
                created_by=Author(id=uploader.id, name=uploader.name),
                tags=data.tags,
                approval_status=status,
                approved_by=stamp,
                version=1,
                updated_at=now
            )
            self.db.memories(vault_id).insert(memory.model_dump())
            self.db.log_activity(
                vault_id, "memory_uploaded", uploader.id, uploader.name,
                f'uploaded "{memory.title}"', memory_id=memory.id
            )

        logger.info(f"Memory {memory.id} uploaded to vault {vault_id} ({status})")
        return memory

    def list_memories(
        self,
        vault_id: str,
        viewer: User,
        evaluator: PermissionEvaluator = None,
        status: Optional[str] = None,
        media_type: Optional[str] = None
    ) -> List[Memory]:
        vault = self.vaults.get_vault(vault_id)
        self.vaults.require_member(vault, viewer.id, evaluator)
        return approval.visible_memories(
            self._load_all(vault_id),
            self.can_moderate(vault, viewer.id, evaluator),
            status=status,
            media_type=media_type
        )

    def list_pending(self, vault_id: str, viewer: User, evaluator: PermissionEvaluator = None) -> List[Memory]:
        """Moderation queue"""
        vault = self.vaults.get_vault(vault_id)
        self._require_moderator(vault, viewer.id, evaluator)
        return approval.pending_memories(self._load_all(vault_id))

    def list_rejected(self, vault_id: str, viewer: User, evaluator: PermissionEvaluator = None) -> List[Memory]:
        """The viewer's own rejected memories"""
        vault = self.vaults.get_vault(vault_id)
        self.vaults.require_member(vault, viewer.id, evaluator)
        return approval.rejected_memories_for(self._load_all(vault_id), viewer.id)

    def get_memory(
        self,
        vault_id: str,
        memory_id: str,
        viewer: User,
        evaluator: PermissionEvaluator = None
    ) -> Memory:
        vault = self.vaults.get_vault(vault_id)
        self.vaults.require_member(vault, viewer.id, evaluator)
        memory = self._load(vault_id, memory_id)
        if not approval.can_view(memory, viewer.id, self.can_moderate(vault, viewer.id, evaluator)):
            # Hidden memories are indistinguishable from missing ones
            raise MemoryNotFound(memory_id)
        return memory

    # =========================================================================
    # Approval workflow
    # =========================================================================

    def approve(self, vault_id: str, memory_id: str, approver: User, evaluator: PermissionEvaluator = None) -> Memory:
        with self.db.lock:
            vault = self.vaults.get_vault(vault_id)
            self._require_moderator(vault, approver.id, evaluator)
            memory = self._save(approval.approve(self._load(vault_id, memory_id), approver))
            self.db.log_activity(
                vault_id, "memory_approved", approver.id, approver.name,
                f'approved "{memory.title}"', memory_id=memory_id
            )

        logger.info(f"Memory {memory_id} approved by {approver.id}")
        return memory

    def reject(
        self,
        vault_id: str,
        memory_id: str,
        moderator: User,
        reason: str,
        evaluator: PermissionEvaluator = None
    ) -> Memory:
        # Blank reasons are bad input, whatever the memory's state
        reason = approval.validate_reason(reason)
        with self.db.lock:
            vault = self.vaults.get_vault(vault_id)
            self._require_moderator(vault, moderator.id, evaluator)
            memory = self._save(approval.reject(self._load(vault_id, memory_id), reason))
            self.db.log_activity(
                vault_id, "memory_rejected", moderator.id, moderator.name,
                f'rejected "{memory.title}"', memory_id=memory_id
            )

        logger.info(f"Memory {memory_id} rejected by {moderator.id}")
        return memory

    def resubmit(self, vault_id: str, memory_id: str, user: User, evaluator: PermissionEvaluator = None) -> Memory:
        with self.db.lock:
            vault = self.vaults.get_vault(vault_id)
            self.vaults.require_member(vault, user.id, evaluator)
            memory = self._load(vault_id, memory_id)
            if memory.created_by.id != user.id:
                raise PermissionDenied("Only the creator can resubmit a memory")
            memory = self._save(approval.resubmit(memory))
            self.db.log_activity(
                vault_id, "memory_resubmitted", user.id, user.name,
                f'resubmitted "{memory.title}"', memory_id=memory_id
            )

        logger.info(f"Memory {memory_id} resubmitted by {user.id}")
        return memory

    # =========================================================================
    # Edits and deletion
    # =========================================================================

    def update(
        self,
        vault_id: str,
        memory_id: str,
        user: User,
        data: MemoryUpdate,
        evaluator: PermissionEvaluator = None
    ) -> Memory:
        with self.db.lock:
            vault = self.vaults.get_vault(vault_id)
            self.vaults.require_member(vault, user.id, evaluator)
            memory = self._load(vault_id, memory_id)
            if memory.created_by.id != user.id and not is_vault_admin(vault, user.id):
                raise PermissionDenied("Only the creator or a vault admin can edit this memory")
            check_version(memory.version, data.expected_version)

            updates = data.model_dump(exclude_unset=True, exclude={"expected_version"})
            updates = {k: v for k, v in updates.items() if v is not None}
            if not updates:
                raise InvalidInput("No updates provided")
            memory = self._save(memory.model_copy(update=updates))

        logger.info(f"Memory {memory_id} updated by {user.id}")
        return memory

    def delete(
        self,
        vault_id: str,
        memory_id: str,
        user: User,
        evaluator: PermissionEvaluator = None
    ) -> Memory:
        """Delete a memory; allowed to its creator, vault admins and ``memory:delete`` holders.

        Memories hidden from the caller are reported missing, as in ``get_memory``.
        """
        with self.db.lock:
            vault = self.vaults.get_vault(vault_id)
            memory = self.get_memory(vault_id, memory_id, user, evaluator)

            allowed = (
                memory.created_by.id == user.id
                or is_vault_admin(vault, user.id)
                or bool(evaluator and evaluator.has_permission("memory:delete"))
            )
            if not allowed:
                raise PermissionDenied("Insufficient permissions to delete this memory")

            self.db.memories(vault_id).remove(Q.id == memory_id)
            self.db.comments.remove(Q.memory_id == memory_id)
            self.db.log_activity(
                vault_id, "memory_deleted", user.id, user.name,
                "deleted a memory", memory_id=memory_id
            )

        logger.info(f"Memory {memory_id} deleted from vault {vault_id} by {user.id}")
        return memory

    # =========================================================================
    # Comments
    # =========================================================================

    def list_comments(
        self,
        vault_id: str,
        memory_id: str,
        viewer: User,
        evaluator: PermissionEvaluator = None
    ) -> List[Comment]:
        self.get_memory(vault_id, memory_id, viewer, evaluator)
        comments = self.db.load_all(Comment, self.db.comments.search(Q.memory_id == memory_id), "comments")
        return sorted(comments, key=lambda c: c.created_at)

    def add_comment(
        self,
        vault_id: str,
        memory_id: str,
        author: User,
        data: CommentCreate,
        evaluator: PermissionEvaluator = None
    ) -> Tuple[Memory, Comment]:
        text = data.text.strip()
        if not text:
            raise InvalidInput("Comment text is required")

        with self.db.lock:
            memory = self.get_memory(vault_id, memory_id, author, evaluator)
            comment = Comment(
                id=self.db.generate_id("comment"),
                memory_id=memory_id,
                vault_id=vault_id,
                user_id=author.id,
                user_name=author.name,
                text=text,
                created_at=self.db.timestamp()
            )
            self.db.comments.insert(comment.model_dump())
            self.db.log_activity(
                vault_id, "comment_added", author.id, author.name,
                f'commented on "{memory.title}"', memory_id=memory_id
            )

        return memory, comment

    def delete_comment(
        self,
        vault_id: str,
        memory_id: str,
        comment_id: str,
        user: User,
        evaluator: PermissionEvaluator = None
    ) -> Tuple[Memory, Comment]:
        with self.db.lock:
            vault = self.vaults.get_vault(vault_id)
            memory = self.get_memory(vault_id, memory_id, user, evaluator)
            doc = self.db.comments.get((Q.id == comment_id) & (Q.memory_id == memory_id))
            if not doc:
                raise CommentNotFound("Comment not found")
            comment = self.db.load(Comment, doc, "comments")

            if comment.user_id != user.id and not self.can_moderate(vault, user.id, evaluator):
                raise PermissionDenied("Only the author or a moderator can delete this comment")

            self.db.comments.remove(Q.id == comment_id)
            self.db.log_activity(
                vault_id, "comment_deleted", user.id, user.name,
                f'deleted a comment on "{memory.title}"', memory_id=memory_id
            )

        logger.info(f"Comment {comment_id} deleted from memory {memory_id} by {user.id}")
        return memory, comment

    def list_activity(self, vault_id: str, viewer: User, evaluator: PermissionEvaluator = None, limit: int = 50) -> List[dict]:
        """Most recent vault activity first"""
        vault = self.vaults.get_vault(vault_id)
        self.vaults.require_member(vault, viewer.id, evaluator)
        can_moderate = self.can_moderate(vault, viewer.id, evaluator)
        memories = {m.id: m for m in self._load_all(vault_id)}

        def visible(event: dict) -> bool:
            memory_id = event.get("memory_id")
            if can_moderate or not memory_id or event["action"] == "memory_deleted":
                return True
            memory = memories.get(memory_id)
            return memory is not None and approval.can_view(memory, viewer.id, False)

        events = [e for e in self.db.activity.search(Q.vault_id == vault_id) if visible(e)]
        events = sorted(events, key=lambda e: e["timestamp"], reverse=True)
        return [dict(e) for e in events[:limit]]


# Singleton instance
memory_service = MemoryService(db, vault_service)
