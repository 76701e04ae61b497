"""Authentication routes (mocked identity, real JWT sessions)"""

import logging

from fastapi import APIRouter

from legacy.auth.jwt import create_access_token
from legacy.models.user import LoginRequest, SignupRequest, User
from legacy.services.account_service import account_service

logger = logging.getLogger(__name__)
router = APIRouter()


def session_response(user: User) -> dict:
    token = create_access_token(data={"sub": user.id, "email": user.email})
    return {
        "access_token": token,
        "token_type": "bearer",
        "user": user.model_dump()
    }


@router.post("/signup")
async def signup(request: SignupRequest):
    """Register a new account"""
    user = account_service.signup(request.name, request.email, request.password)
    return session_response(user)


@router.post("/login")
async def login(request: LoginRequest):
    """Log in by email"""
    user = account_service.login(request.email, request.password)
    logger.info(f"User logged in: {user.id}")
    return session_response(user)


@router.post("/social/{provider}")
async def social_login(provider: str):
    """Log in through a (mocked) social provider"""
    user = account_service.social_login(provider)
    return session_response(user)
