"""Request authentication context"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from legacy.auth.jwt import verify_token
from legacy.errors import UserNotFound
from legacy.models.user import User
from legacy.services.account_service import account_service
from legacy.services.rbac_service import PermissionEvaluator, rbac_service

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


@dataclass
class AuthContext:
    """Authenticated user together with their effective permissions"""
    user: User
    evaluator: PermissionEvaluator

    def has_permission(self, permission: str) -> bool:
        return self.evaluator.has_permission(permission)

    def require(self, permission: str):
        if not self.evaluator.has_permission(permission):
            logger.warning(f"User {self.user.id} lacks {permission}")
            raise HTTPException(status_code=403, detail=f"Missing permission: {permission}")


def resolve_token(token: str) -> Optional[User]:
    """User for a bearer token, or None when the token is invalid"""
    payload = verify_token(token)
    if payload is None or not payload.get("sub"):
        return None
    try:
        return account_service.get_user(payload["sub"])
    except UserNotFound:
        return None


async def get_auth_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> AuthContext:
    """Authenticate the request and load the caller's permissions"""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = resolve_token(credentials.credentials)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return AuthContext(user=user, evaluator=rbac_service.evaluator_for(user.id))


def require_permission(permission: str):
    """Dependency factory gating a route on a global permission"""
    async def checker(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
        ctx.require(permission)
        return ctx
    return checker
