"""Role-based access control service tests"""

import pytest

from legacy.errors import (
    LastRoleViolation, RoleAlreadyAssigned, RoleNotAssigned, RoleNotFound, SystemRoleImmutable
)
from legacy.models.role import RoleCreate, RoleUpdate
from legacy.rbac.permissions import ALL_PERMISSIONS


@pytest.fixture
def curator(rbac):
    """Custom role able to approve memories"""
    return rbac.create_role(RoleCreate(
        name="Curator",
        description="Reviews family uploads",
        permissions=["memory:read", "memory:approve"]
    ))


class TestRoles:
    """Test role listing and lifecycle"""

    def test_system_roles_listed_first(self, rbac, curator):
        roles = rbac.list_roles()
        assert [r.id for r in roles[:4]] == ["role_admin", "role_moderator", "role_user", "role_guest"]
        assert roles[-1].id == curator.id

    def test_create_role(self, rbac, curator):
        assert curator.id.startswith("role_")
        assert not curator.is_system
        assert rbac.get_role(curator.id).permissions == ["memory:read", "memory:approve"]

    def test_create_role_rejects_unknown_permission(self):
        with pytest.raises(ValueError):
            RoleCreate(name="Bad", permissions=["memory:fly"])

    def test_create_role_dedupes_permissions(self):
        role = RoleCreate(name="Dupes", permissions=["vault:read", "vault:read"])
        assert role.permissions == ["vault:read"]

    def test_get_unknown_role(self, rbac):
        with pytest.raises(RoleNotFound):
            rbac.get_role("role_missing")

    def test_update_custom_role(self, rbac, curator):
        updated = rbac.update_role(curator.id, RoleUpdate(description="Keeps the archive tidy"))
        assert updated.description == "Keeps the archive tidy"
        assert updated.name == "Curator"
        assert rbac.get_role(curator.id).description == "Keeps the archive tidy"

    @pytest.mark.parametrize("role_id", ["role_admin", "role_moderator", "role_user", "role_guest"])
    def test_system_roles_are_immutable(self, rbac, role_id):
        with pytest.raises(SystemRoleImmutable):
            rbac.update_role(role_id, RoleUpdate(name="Hacked"))
        with pytest.raises(SystemRoleImmutable):
            rbac.delete_role(role_id)
        assert rbac.get_role(role_id).is_system

    def test_delete_custom_role(self, rbac, curator):
        rbac.delete_role(curator.id)
        with pytest.raises(RoleNotFound):
            rbac.get_role(curator.id)


class TestAssignments:
    """Test role assignment invariants"""

    def test_unknown_user_holds_default_role(self, rbac):
        assert rbac.get_user_role_ids("user_nobody") == ["role_user"]

    def test_initialize_user(self, rbac):
        rbac.initialize_user("user_1")
        assert rbac.get_user_role_ids("user_1") == ["role_user"]

    def test_assign_role(self, rbac, curator):
        rbac.initialize_user("user_1")
        rbac.assign_role_to_user("user_1", curator.id)
        assert rbac.get_user_role_ids("user_1") == ["role_user", curator.id]

    def test_assign_without_record_keeps_default_role(self, rbac, curator):
        rbac.assign_role_to_user("user_2", curator.id)
        assert rbac.get_user_role_ids("user_2") == ["role_user", curator.id]

    def test_assign_twice_conflicts(self, rbac):
        rbac.initialize_user("user_1")
        with pytest.raises(RoleAlreadyAssigned):
            rbac.assign_role_to_user("user_1", "role_user")
        assert rbac.get_user_role_ids("user_1") == ["role_user"]

    def test_assign_unknown_role(self, rbac):
        rbac.initialize_user("user_1")
        with pytest.raises(RoleNotFound):
            rbac.assign_role_to_user("user_1", "role_missing")

    def test_cannot_remove_only_role(self, rbac):
        rbac.initialize_user("user_1")
        with pytest.raises(LastRoleViolation):
            rbac.remove_role_from_user("user_1", "role_user")
        assert rbac.get_user_role_ids("user_1") == ["role_user"]

    def test_remove_role(self, rbac, curator):
        rbac.initialize_user("user_1", ["role_user", curator.id])
        rbac.remove_role_from_user("user_1", "role_user")
        assert rbac.get_user_role_ids("user_1") == [curator.id]

    def test_remove_role_not_held(self, rbac):
        rbac.initialize_user("user_1")
        with pytest.raises(RoleNotAssigned):
            rbac.remove_role_from_user("user_1", "role_guest")

    def test_effective_permissions_are_union(self, rbac, curator):
        rbac.initialize_user("user_1", ["role_guest", curator.id])
        assert rbac.get_user_permissions("user_1") == {"vault:read", "memory:read", "memory:approve"}

    def test_admin_holds_every_permission(self, rbac):
        rbac.initialize_user("user_1", ["role_admin"])
        assert rbac.get_user_permissions("user_1") == set(ALL_PERMISSIONS)

    def test_deleting_role_removes_it_from_holders(self, rbac, curator):
        rbac.initialize_user("user_1", ["role_user", curator.id])
        rbac.delete_role(curator.id)
        assert rbac.get_user_role_ids("user_1") == ["role_user"]

    def test_deleting_only_role_falls_back_to_default(self, rbac, curator):
        rbac.initialize_user("user_1", [curator.id])
        rbac.delete_role(curator.id)
        assert rbac.get_user_role_ids("user_1") == ["role_user"]

    def test_remove_user(self, rbac, curator):
        rbac.initialize_user("user_1", [curator.id])
        rbac.remove_user("user_1")
        assert rbac.get_user_role_ids("user_1") == ["role_user"]


class TestEvaluators:
    """Test that live evaluators follow role changes"""

    def test_evaluator_reflects_roles(self, rbac):
        rbac.initialize_user("user_1", ["role_guest"])
        evaluator = rbac.evaluator_for("user_1")
        assert evaluator.has_permission("memory:read")
        assert not evaluator.has_permission("memory:create")
        assert evaluator.has_any_permission(["memory:create", "vault:read"])
        assert not evaluator.has_all_permissions(["memory:create", "vault:read"])

    def test_assignment_refreshes_evaluator(self, rbac, curator):
        rbac.initialize_user("user_1")
        evaluator = rbac.evaluator_for("user_1")
        assert not evaluator.has_permission("memory:approve")

        rbac.assign_role_to_user("user_1", curator.id)
        assert evaluator.has_permission("memory:approve")
        assert curator.id in evaluator.role_ids

        rbac.remove_role_from_user("user_1", curator.id)
        assert not evaluator.has_permission("memory:approve")

    def test_role_update_refreshes_holders(self, rbac, curator):
        rbac.initialize_user("user_1", ["role_user", curator.id])
        holder = rbac.evaluator_for("user_1")
        rbac.initialize_user("user_2")
        bystander = rbac.evaluator_for("user_2")

        rbac.update_role(curator.id, RoleUpdate(permissions=["memory:read", "vault:delete"]))

        assert holder.has_permission("vault:delete")
        assert not holder.has_permission("memory:approve")
        assert not bystander.has_permission("vault:delete")

    def test_role_delete_refreshes_holders(self, rbac, curator):
        rbac.initialize_user("user_1", [curator.id])
        evaluator = rbac.evaluator_for("user_1")
        rbac.delete_role(curator.id)
        assert not evaluator.has_permission("memory:approve")
        assert evaluator.role_ids == ["role_user"]

    def test_assign_then_remove_restores_permissions(self, rbac):
        rbac.initialize_user("user_1")
        before = rbac.get_user_permissions("user_1")
        evaluator = rbac.evaluator_for("user_1")
        role = rbac.create_role(RoleCreate(
            name="Archivist",
            permissions=["memory:approve", "vault:manage_members", "admin:access"]
        ))

        rbac.assign_role_to_user("user_1", role.id)
        assert rbac.get_user_permissions("user_1") == before | {
            "memory:approve", "vault:manage_members", "admin:access"
        }

        rbac.remove_role_from_user("user_1", role.id)
        assert rbac.get_user_permissions("user_1") == before
        assert evaluator.permissions == before
        assert rbac.get_user_role_ids("user_1") == ["role_user"]
