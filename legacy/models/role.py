"""Role models"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List

from legacy.rbac.permissions import is_valid_permission


def _check_permissions(permissions: List[str]) -> List[str]:
    unknown = [p for p in permissions if not is_valid_permission(p)]
    if unknown:
        raise ValueError(f"Unknown permissions: {', '.join(unknown)}")
    # Keep first occurrence order, drop duplicates
    return list(dict.fromkeys(permissions))


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: str = ""
    permissions: List[str] = []

    @field_validator("permissions")
    @classmethod
    def validate_permissions(cls, v: List[str]) -> List[str]:
        return _check_permissions(v)


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = None
    permissions: Optional[List[str]] = None

    @field_validator("permissions")
    @classmethod
    def validate_permissions(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        return _check_permissions(v)


class Role(BaseModel):
    id: str
    name: str
    description: str = ""
    permissions: List[str] = []
    is_system: bool = False

    @field_validator("permissions")
    @classmethod
    def validate_permissions(cls, v: List[str]) -> List[str]:
        return _check_permissions(v)
