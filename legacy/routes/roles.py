"""Role management routes"""

from fastapi import APIRouter, Depends

from legacy.auth.context import AuthContext, get_auth_context, require_permission
from legacy.models.role import RoleCreate, RoleUpdate
from legacy.services.rbac_service import rbac_service

router = APIRouter()


@router.get("")
async def list_roles(ctx: AuthContext = Depends(get_auth_context)):
    """List system and custom roles"""
    return [r.model_dump() for r in rbac_service.list_roles()]


@router.get("/{role_id}")
async def get_role(role_id: str, ctx: AuthContext = Depends(get_auth_context)):
    return rbac_service.get_role(role_id).model_dump()


@router.post("")
async def create_role(
    data: RoleCreate,
    ctx: AuthContext = Depends(require_permission("admin:manage_roles"))
):
    """Create a custom role"""
    return rbac_service.create_role(data).model_dump()


@router.patch("/{role_id}")
async def update_role(
    role_id: str,
    data: RoleUpdate,
    ctx: AuthContext = Depends(require_permission("admin:manage_roles"))
):
    """Update a custom role; system roles are immutable"""
    return rbac_service.update_role(role_id, data).model_dump()


@router.delete("/{role_id}")
async def delete_role(
    role_id: str,
    ctx: AuthContext = Depends(require_permission("admin:manage_roles"))
):
    """Delete a custom role and unassign it from every user"""
    rbac_service.delete_role(role_id)
    return {"deleted": True}
