"""Memory models"""

from pydantic import BaseModel, Field
from typing import Optional, List, Literal

MediaType = Literal["image", "audio", "video"]
ApprovalStatus = Literal["pending", "approved", "rejected"]


class Author(BaseModel):
    id: str
    name: str


class ApprovalStamp(BaseModel):
    id: str
    name: str
    date: str


class MemoryCreate(BaseModel):
    title: str = Field("", max_length=200)
    description: str = ""
    media_url: str = Field(..., min_length=1)
    media_type: MediaType
    thumbnail_url: Optional[str] = None
    duration: Optional[float] = Field(None, ge=0)
    tags: List[str] = []


class MemoryUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    tags: Optional[List[str]] = None
    expected_version: Optional[int] = None


class RejectRequest(BaseModel):
    reason: str = ""


class Memory(BaseModel):
    id: str
    vault_id: str
    title: str
    description: str = ""
    media_url: str
    media_type: MediaType
    thumbnail_url: Optional[str] = None
    duration: Optional[float] = None
    created_at: str
    created_by: Author
    tags: List[str] = []
    # Records written before moderation existed are treated as approved
    approval_status: ApprovalStatus = "approved"
    approved_by: Optional[ApprovalStamp] = None
    rejection_reason: Optional[str] = None
    version: int = 1
    updated_at: Optional[str] = None


class CommentCreate(BaseModel):
    text: str = Field(..., max_length=2000)


class Comment(BaseModel):
    id: str
    memory_id: str
    vault_id: str
    user_id: str
    user_name: str
    text: str
    created_at: str
