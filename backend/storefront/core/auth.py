"""
Authentication dependencies for the Storefront API

Bearer JWTs are issued by the storefront's auth provider; this service only
verifies them. Roles are never taken from the token: they are resolved
from the user_roles table through RoleRepository.
"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel

from storefront.core.config import settings
from storefront.core.errors import PersistenceError
from storefront.repositories.role_repository import RoleRepository

logger = logging.getLogger(__name__)

# Security scheme for bearer tokens
security = HTTPBearer(auto_error=False)

JWT_ALGORITHM = "HS256"


class TokenUser(BaseModel):
    """User data extracted from JWT token"""
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: str = "user"


def get_auth_secret() -> str:
    if not settings.AUTH_SECRET:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Authentication is not configured",
        )
    return settings.AUTH_SECRET


def decode_token(token: str) -> dict:
    """
    Decode and validate a bearer token.

    Expected payload:
    {
        "sub": "user_id",
        "email": "jane@example.com",
        "name": "Jane",
        "iat": 1234567890,
        "exp": 1234567890
    }
    """
    try:
        return jwt.decode(
            token,
            get_auth_secret(),
            algorithms=[JWT_ALGORITHM],
            options={"verify_aud": False}
        )
    except JWTError as e:
        error_msg = str(e).lower()
        if "expired" in error_msg:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"}
            )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"}
        )


def _user_from_payload(payload: dict) -> Optional[TokenUser]:
    user_id = payload.get("id") or payload.get("sub")
    if not user_id:
        return None
    return TokenUser(id=str(user_id), email=payload.get("email"), name=payload.get("name"))


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenUser:
    """
    Dependency that extracts and validates the current user from JWT.

    Usage:
        @router.get("/protected")
        async def protected_route(user: TokenUser = Depends(get_current_user)):
            return {"message": f"Hello {user.id}"}
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"}
        )

    user = _user_from_payload(decode_token(credentials.credentials))
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload: missing user id",
            headers={"WWW-Authenticate": "Bearer"}
        )
    return user


async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[TokenUser]:
    """
    Optional authentication - returns None if no valid token provided.

    Used by the cart routes, where guests shop with a session id instead.
    """
    if not credentials:
        return None

    try:
        return _user_from_payload(decode_token(credentials.credentials))
    except HTTPException:
        return None


def get_role_repository() -> RoleRepository:
    return RoleRepository()


async def require_admin(
    user: TokenUser = Depends(get_current_user),
    roles: RoleRepository = Depends(get_role_repository),
) -> TokenUser:
    """
    Dependency for admin-only routes. The role comes from user_roles.

    Usage:
        @router.get("/orders")
        async def list_orders(admin: TokenUser = Depends(require_admin)):
            ...
    """
    try:
        role = roles.find_role(user.id)
    except PersistenceError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)

    if role != "admin":
        logger.warning(f"Denied admin access to user {user.id} (role: {role})")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Admin role required"
        )

    return user.model_copy(update={"role": role})
