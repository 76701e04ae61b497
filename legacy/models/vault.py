"""Vault models"""

from pydantic import BaseModel, Field
from typing import Optional, List, Literal

VaultRole = Literal["admin", "member"]


class VaultSettings(BaseModel):
    require_approval: bool = False


class VaultMember(BaseModel):
    user_id: str
    name: str
    email: str
    role: VaultRole = "member"
    joined_at: str


class VaultCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    cover_image: Optional[str] = None
    theme: Optional[str] = None
    require_approval: bool = False


class VaultUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    cover_image: Optional[str] = None
    theme: Optional[str] = None
    require_approval: Optional[bool] = None
    expected_version: Optional[int] = None


class VaultMemberAdd(BaseModel):
    user_id: Optional[str] = None
    email: Optional[str] = None
    role: VaultRole = "member"


class VaultMemberUpdate(BaseModel):
    role: VaultRole


class Vault(BaseModel):
    id: str
    name: str
    description: str = ""
    cover_image: str
    theme: str
    created_at: str
    created_by: str
    members: List[VaultMember] = []
    # Records written before moderation existed carry no settings
    settings: VaultSettings = VaultSettings()
    version: int = 1
    updated_at: Optional[str] = None
