"""User models"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List


class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = ""


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    profile_picture: Optional[str] = None


class User(BaseModel):
    id: str
    name: str
    email: str
    profile_picture: Optional[str] = None
    provider: Optional[str] = None
    created_at: str
    updated_at: Optional[str] = None


class UserRoleAssignment(BaseModel):
    user_id: str
    role_ids: List[str] = []
