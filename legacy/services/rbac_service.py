"""Role-based access control service

Roles are global. System roles are defined in code and can never be edited
or deleted; custom roles are stored in the ``roles`` table. Role assignments
map a user id to a list of role ids in the ``userRoles`` table.
"""

import logging
import random
import string
import weakref
from typing import Dict, Iterable, List, Optional, Set

from legacy.errors import (
    RoleAlreadyAssigned, RoleNotAssigned, RoleNotFound, LastRoleViolation, SystemRoleImmutable
)
from legacy.models.role import Role, RoleCreate, RoleUpdate
from legacy.models.user import UserRoleAssignment
from legacy.rbac import permissions as catalog
from legacy.rbac.permissions import DEFAULT_ROLE_ID, SYSTEM_ROLES, SYSTEM_ROLE_IDS
from legacy.services.database import Database, Q, db

logger = logging.getLogger(__name__)


class PermissionEvaluator:
    """Effective permissions of one user.

    Holds the last computed permission set until the service recomputes it
    after a mutation that affects this user.
    """

    def __init__(self, user_id: str, permissions: Iterable[str], role_ids: Iterable[str]):
        self.user_id = user_id
        self.permissions: Set[str] = set(permissions)
        self.role_ids: List[str] = list(role_ids)

    def has_permission(self, permission: str) -> bool:
        return catalog.has_permission(self.permissions, permission)

    def has_any_permission(self, permissions: Iterable[str]) -> bool:
        return catalog.has_any_permission(self.permissions, permissions)

    def has_all_permissions(self, permissions: Iterable[str]) -> bool:
        return catalog.has_all_permissions(self.permissions, permissions)


class RBACService:
    def __init__(self, database: Database):
        self.db = database
        self._evaluators: "weakref.WeakSet[PermissionEvaluator]" = weakref.WeakSet()

    # =========================================================================
    # Roles
    # =========================================================================

    def list_roles(self) -> List[Role]:
        """System roles followed by custom roles"""
        roles = [Role.model_validate(r) for r in SYSTEM_ROLES]
        custom = self.db.load_all(Role, self.db.roles.all(), "roles")
        roles.extend(r for r in custom if r.id not in SYSTEM_ROLE_IDS)
        return roles

    def _roles_by_id(self) -> Dict[str, Role]:
        return {role.id: role for role in self.list_roles()}

    def get_role(self, role_id: str) -> Role:
        role = self._roles_by_id().get(role_id)
        if role is None:
            raise RoleNotFound(role_id)
        return role

    def _new_role_id(self) -> str:
        alphabet = string.ascii_lowercase + string.digits
        existing = self._roles_by_id()
        while True:
            role_id = "role_" + "".join(random.choices(alphabet, k=7))
            if role_id not in existing:
                return role_id

    def create_role(self, data: RoleCreate) -> Role:
        with self.db.lock:
            role = Role(
                id=self._new_role_id(),
                name=data.name,
                description=data.description,
                permissions=data.permissions,
                is_system=False
            )
            self.db.roles.insert(role.model_dump())
        logger.info(f"Role created: {role.id} ({role.name})")
        return role

    def update_role(self, role_id: str, data: RoleUpdate) -> Role:
        with self.db.lock:
            role = self.get_role(role_id)
            if role.is_system:
                raise SystemRoleImmutable("System roles cannot be modified")

            updates = data.model_dump(exclude_unset=True, exclude_none=True)
            updated = role.model_copy(update=updates)
            self.db.roles.update(updated.model_dump(), Q.id == role_id)

        logger.info(f"Role updated: {role_id}")
        self._refresh_users(self._holders_of(role_id))
        return updated

    def delete_role(self, role_id: str):
        with self.db.lock:
            role = self.get_role(role_id)
            if role.is_system:
                raise SystemRoleImmutable("System roles cannot be deleted")

            self.db.roles.remove(Q.id == role_id)

            affected = self._holders_of(role_id)
            for user_id in affected:
                remaining = [r for r in self.get_user_role_ids(user_id) if r != role_id]
                # Every user keeps at least one role
                if not remaining:
                    remaining = [DEFAULT_ROLE_ID]
                    logger.warning(
                        f"User {user_id} lost their only role {role_id}; falling back to {DEFAULT_ROLE_ID}"
                    )
                self._save_assignment(user_id, remaining)

        logger.info(f"Role deleted: {role_id} ({role.name})")
        self._refresh_users(affected)

    # =========================================================================
    # Assignments
    # =========================================================================

    def _assignment_doc(self, user_id: str) -> Optional[dict]:
        return self.db.user_roles.get(Q.user_id == user_id)

    def _save_assignment(self, user_id: str, role_ids: List[str]):
        assignment = UserRoleAssignment(user_id=user_id, role_ids=role_ids)
        self.db.user_roles.upsert(assignment.model_dump(), Q.user_id == user_id)

    def _holders_of(self, role_id: str) -> List[str]:
        docs = self.db.user_roles.search(Q.role_ids.any([role_id]))
        return [doc["user_id"] for doc in docs]

    def get_user_role_ids(self, user_id: str) -> List[str]:
        """Role ids assigned to a user; users without a record hold the default role"""
        doc = self._assignment_doc(user_id)
        if doc is None:
            return [DEFAULT_ROLE_ID]
        return list(self.db.load(UserRoleAssignment, doc, "userRoles").role_ids)

    def get_user_roles(self, user_id: str) -> List[Role]:
        roles = self._roles_by_id()
        return [roles[rid] for rid in self.get_user_role_ids(user_id) if rid in roles]

    def get_user_permissions(self, user_id: str) -> Set[str]:
        """Union of the permissions of every role held by the user"""
        permissions: Set[str] = set()
        for role in self.get_user_roles(user_id):
            permissions.update(role.permissions)
        return permissions

    def initialize_user(self, user_id: str, role_ids: List[str] = None):
        """Create the assignment record for a new user"""
        with self.db.lock:
            self._save_assignment(user_id, list(role_ids or [DEFAULT_ROLE_ID]))

    def assign_role_to_user(self, user_id: str, role_id: str):
        with self.db.lock:
            role = self.get_role(role_id)
            current = self.get_user_role_ids(user_id)

            if role_id in current:
                raise RoleAlreadyAssigned(f'User already has the role "{role.name}"')

            self._save_assignment(user_id, current + [role_id])

        logger.info(f"Role {role_id} assigned to user {user_id}")
        self._refresh_users([user_id])

    def remove_role_from_user(self, user_id: str, role_id: str):
        with self.db.lock:
            role = self.get_role(role_id)
            current = self.get_user_role_ids(user_id)

            if role_id not in current:
                raise RoleNotAssigned(f'User does not have the role "{role.name}"')
            if len(current) == 1:
                raise LastRoleViolation()

            self._save_assignment(user_id, [r for r in current if r != role_id])

        logger.info(f"Role {role_id} removed from user {user_id}")
        self._refresh_users([user_id])

    def remove_user(self, user_id: str):
        """Forget every role assignment of a deleted user"""
        with self.db.lock:
            self.db.user_roles.remove(Q.user_id == user_id)

    # =========================================================================
    # Evaluators
    # =========================================================================

    def evaluator_for(self, user_id: str) -> PermissionEvaluator:
        """Permission evaluator for an active user session"""
        evaluator = PermissionEvaluator(
            user_id,
            self.get_user_permissions(user_id),
            self.get_user_role_ids(user_id)
        )
        self._evaluators.add(evaluator)
        return evaluator

    def refresh(self, evaluator: PermissionEvaluator):
        evaluator.permissions = self.get_user_permissions(evaluator.user_id)
        evaluator.role_ids = self.get_user_role_ids(evaluator.user_id)

    def _refresh_users(self, user_ids: Iterable[str]):
        targets = set(user_ids)
        if not targets:
            return
        for evaluator in list(self._evaluators):
            if evaluator.user_id in targets:
                self.refresh(evaluator)


# Singleton instance
rbac_service = RBACService(db)
