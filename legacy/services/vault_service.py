"""Vault and vault membership service

Vault membership (``admin``/``member``) is a per-vault authorization layer,
independent of the global RBAC roles. Admin status is always derived by
scanning the embedded ``members`` list.
"""

import logging
from typing import List, Optional

from legacy.config import settings
from legacy.errors import (
    LastAdminViolation, PermissionDenied, UserNotFound, VaultMemberAlreadyExists,
    VaultMemberNotFound, VaultNotFound, InvalidInput
)
from legacy.models.user import User
from legacy.models.vault import (
    Vault, VaultCreate, VaultMember, VaultMemberAdd, VaultSettings, VaultUpdate
)
from legacy.services.database import Database, Q, check_version, db
from legacy.services.rbac_service import PermissionEvaluator

logger = logging.getLogger(__name__)


def is_vault_admin(vault: Vault, user_id: str) -> bool:
    return any(m.user_id == user_id and m.role == "admin" for m in vault.members)


def is_member(vault: Vault, user_id: str) -> bool:
    return any(m.user_id == user_id for m in vault.members)


def vault_admins(vault: Vault) -> List[VaultMember]:
    return [m for m in vault.members if m.role == "admin"]


class VaultService:
    def __init__(self, database: Database):
        self.db = database

    # =========================================================================
    # Access checks
    # =========================================================================

    def require_member(self, vault: Vault, user_id: str, evaluator: PermissionEvaluator = None):
        """Vault content is visible to members and to platform admins"""
        if is_member(vault, user_id):
            return
        if evaluator and evaluator.has_permission("admin:access"):
            return
        raise PermissionDenied("Not a member of this vault")

    def require_manager(
        self,
        vault: Vault,
        user_id: str,
        evaluator: Optional[PermissionEvaluator],
        permission: str
    ):
        """Vault admins, or users holding ``permission`` who can see the vault"""
        if is_vault_admin(vault, user_id):
            return
        if evaluator and evaluator.has_permission(permission):
            self.require_member(vault, user_id, evaluator)
            return
        raise PermissionDenied("Insufficient permissions for this vault")

    # =========================================================================
    # Vaults
    # =========================================================================

    def get_vault(self, vault_id: str) -> Vault:
        doc = self.db.vaults.get(Q.id == vault_id)
        if not doc:
            raise VaultNotFound(vault_id)
        return self.db.load(Vault, doc, "userVaults")

    def vault_exists(self, vault_id: str) -> bool:
        return self.db.vaults.contains(Q.id == vault_id)

    def list_vaults(self) -> List[Vault]:
        return self.db.load_all(Vault, self.db.vaults.all(), "userVaults")

    def list_user_vaults(self, user_id: str) -> List[Vault]:
        """Vaults the user belongs to, newest first"""
        vaults = [v for v in self.list_vaults() if is_member(v, user_id)]
        return sorted(vaults, key=lambda v: v.created_at, reverse=True)

    def _save(self, vault: Vault) -> Vault:
        vault = vault.model_copy(update={
            "version": vault.version + 1,
            "updated_at": self.db.timestamp()
        })
        self.db.vaults.update(vault.model_dump(), Q.id == vault.id)
        return vault

    def create_vault(self, owner: User, data: VaultCreate) -> Vault:
        now = self.db.timestamp()
        vault = Vault(
            id=self.db.generate_id("vault"),
            name=data.name,
            description=data.description,
            cover_image=data.cover_image or settings.default_cover_image,
            theme=data.theme or settings.default_vault_theme,
            created_at=now,
            created_by=owner.id,
            members=[
                VaultMember(
                    user_id=owner.id,
                    name=owner.name,
                    email=owner.email,
                    role="admin",
                    joined_at=now
                )
            ],
            settings=VaultSettings(require_approval=data.require_approval),
            version=1,
            updated_at=now
        )
        with self.db.lock:
            self.db.vaults.insert(vault.model_dump())
            self.db.log_activity(vault.id, "vault_created", owner.id, owner.name, f'created "{vault.name}"')

        logger.info(f"Vault created: {vault.id} by {owner.id}")
        return vault

    def update_vault(
        self,
        vault_id: str,
        actor: User,
        data: VaultUpdate,
        evaluator: PermissionEvaluator = None
    ) -> Vault:
        with self.db.lock:
            vault = self.get_vault(vault_id)
            self.require_manager(vault, actor.id, evaluator, "vault:update")
            check_version(vault.version, data.expected_version)

            updates = data.model_dump(exclude_unset=True, exclude={"expected_version", "require_approval"})
            updates = {k: v for k, v in updates.items() if v is not None}
            if data.require_approval is not None:
                updates["settings"] = vault.settings.model_copy(update={"require_approval": data.require_approval})

            if not updates:
                raise InvalidInput("No updates provided")

            vault = self._save(vault.model_copy(update=updates))
            self.db.log_activity(vault_id, "vault_updated", actor.id, actor.name, "updated the vault")

        logger.info(f"Vault updated: {vault_id} by {actor.id}")
        return vault

    def _purge(self, vault_id: str):
        self.db.drop_memories(vault_id)
        self.db.comments.remove(Q.vault_id == vault_id)
        self.db.activity.remove(Q.vault_id == vault_id)
        self.db.vaults.remove(Q.id == vault_id)

    def delete_vault(self, vault_id: str, actor: User, evaluator: PermissionEvaluator = None) -> Vault:
        """Delete a vault together with its memories, comments and activity"""
        with self.db.lock:
            vault = self.get_vault(vault_id)
            self.require_manager(vault, actor.id, evaluator, "vault:delete")
            self._purge(vault_id)

        logger.info(f"Vault deleted: {vault_id} by {actor.id}")
        return vault

    # =========================================================================
    # Members
    # =========================================================================

    def _find_user(self, data: VaultMemberAdd) -> User:
        if data.user_id:
            doc = self.db.users.get(Q.id == data.user_id)
        elif data.email:
            doc = self.db.users.get(Q.email == data.email.strip().lower())
        else:
            raise InvalidInput("Either user_id or email is required")
        if not doc:
            raise UserNotFound("User not found")
        return self.db.load(User, doc, "users")

    def add_member(
        self,
        vault_id: str,
        actor: User,
        data: VaultMemberAdd,
        evaluator: PermissionEvaluator = None
    ) -> VaultMember:
        with self.db.lock:
            vault = self.get_vault(vault_id)
            self.require_manager(vault, actor.id, evaluator, "vault:manage_members")
            user = self._find_user(data)

            if is_member(vault, user.id):
                raise VaultMemberAlreadyExists("User is already a member of this vault")

            member = VaultMember(
                user_id=user.id,
                name=user.name,
                email=user.email,
                role=data.role,
                joined_at=self.db.timestamp()
            )
            self._save(vault.model_copy(update={"members": vault.members + [member]}))
            self.db.log_activity(vault_id, "user_joined", user.id, user.name, "joined the vault")

        logger.info(f"User {user.id} added to vault {vault_id} as {data.role}")
        return member

    def update_member_role(
        self,
        vault_id: str,
        actor: User,
        user_id: str,
        role: str,
        evaluator: PermissionEvaluator = None
    ) -> VaultMember:
        with self.db.lock:
            vault = self.get_vault(vault_id)
            self.require_manager(vault, actor.id, evaluator, "vault:manage_members")

            members = []
            updated = None
            for m in vault.members:
                if m.user_id == user_id:
                    updated = m.model_copy(update={"role": role})
                    members.append(updated)
                else:
                    members.append(m)
            if updated is None:
                raise VaultMemberNotFound("Vault member not found")
            if not any(m.role == "admin" for m in members):
                raise LastAdminViolation()

            self._save(vault.model_copy(update={"members": members}))

        logger.info(f"User {user_id} is now {role} of vault {vault_id}")
        return updated

    def remove_member(
        self,
        vault_id: str,
        actor: User,
        user_id: str,
        evaluator: PermissionEvaluator = None
    ):
        """Remove a member; members may always remove themselves"""
        with self.db.lock:
            vault = self.get_vault(vault_id)
            if actor.id != user_id:
                self.require_manager(vault, actor.id, evaluator, "vault:manage_members")

            leaving = next((m for m in vault.members if m.user_id == user_id), None)
            if leaving is None:
                raise VaultMemberNotFound("Vault member not found")

            members = [m for m in vault.members if m.user_id != user_id]
            if leaving.role == "admin" and not any(m.role == "admin" for m in members):
                raise LastAdminViolation()

            self._save(vault.model_copy(update={"members": members}))
            self.db.log_activity(vault_id, "user_left", leaving.user_id, leaving.name, "left the vault")

        logger.info(f"User {user_id} removed from vault {vault_id}")

    def sync_member_profile(self, user: User):
        """Propagate a profile change to the member entries that copy it"""
        with self.db.lock:
            for vault in self.list_user_vaults(user.id):
                members = [
                    m.model_copy(update={"name": user.name, "email": user.email}) if m.user_id == user.id else m
                    for m in vault.members
                ]
                self._save(vault.model_copy(update={"members": members}))

    def remove_user_everywhere(self, user_id: str) -> dict:
        """Account deletion cascade.

        Vaults where the user is the only admin are deleted outright; in every
        other vault the user is simply dropped from ``members``.
        """
        deleted, left = [], []
        with self.db.lock:
            for vault in self.list_vaults():
                if not is_member(vault, user_id):
                    continue
                admins = vault_admins(vault)
                if len(admins) == 1 and admins[0].user_id == user_id:
                    self._purge(vault.id)
                    deleted.append(vault.id)
                else:
                    members = [m for m in vault.members if m.user_id != user_id]
                    self._save(vault.model_copy(update={"members": members}))
                    left.append(vault.id)

        logger.info(f"User {user_id} removed from vaults: deleted={deleted} left={left}")
        return {"deleted": deleted, "left": left}


# Singleton instance
vault_service = VaultService(db)
