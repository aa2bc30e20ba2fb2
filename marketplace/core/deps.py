"""
FastAPI dependencies for authentication and authorization.

These dependencies are used to protect endpoints and extract user context.
"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from marketplace.core.database import get_db
from marketplace.core.security import decode_token
from marketplace.models.user import User, UserRole, UserStatus

# HTTP Bearer token scheme (Authorization: Bearer <token>)
security = HTTPBearer()


def _user_from_token(token: str, db: Session) -> Optional[User]:
    """Resolve an access token to a user, or None when it does not decode to one."""
    payload = decode_token(token)
    if payload.get("type") != "access":
        return None
    user_id = payload.get("sub")
    if user_id is None:
        return None
    return db.query(User).filter(User.id == UUID(user_id)).first()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Extract and validate the current user from JWT token.

    This dependency:
    1. Extracts the Bearer token from Authorization header
    2. Decodes and validates the JWT (refresh tokens are rejected)
    3. Fetches the user from the database
    4. Ensures the user is active and not suspended

    Raises:
        HTTPException 401: If token is invalid or user not found
        HTTPException 403: If the account is inactive or suspended
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        user = _user_from_token(credentials.credentials, db)
    except (JWTError, ValueError):
        raise credentials_exception

    if user is None:
        raise credentials_exception

    if not user.is_active or user.status == UserStatus.SUSPENDED:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )

    return user


async def get_verified_user(
    user: User = Depends(get_current_user),
) -> User:
    """
    Get the current user and ensure their email is verified.

    The /auth/me endpoint keeps using get_current_user so unverified users
    can still see their profile and request a code.

    Raises:
        HTTPException 403: If user's email is not verified
    """
    if not user.is_verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Email verification required. Please verify your email to access this feature."
        )

    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(HTTPBearer(auto_error=False)),
    db: Session = Depends(get_db)
) -> Optional[User]:
    """
    User for a valid bearer token, otherwise None.

    Used by endpoints open to guests, e.g. creating a support ticket.
    """
    if not credentials:
        return None

    try:
        user = _user_from_token(credentials.credentials, db)
    except (JWTError, ValueError):
        return None

    return user if user and user.is_active else None


async def get_vendor_user(
    user: User = Depends(get_verified_user),
) -> User:
    """
    Verified user allowed to publish listings and services.

    Raises:
        HTTPException 403: Customer accounts
    """
    if not user.role.can_list:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only vendors, agents and admins can perform this action"
        )
    return user


async def get_admin_user(
    user: User = Depends(get_current_user),
) -> User:
    """
    Require admin, subadmin or superadmin role.

    Raises:
        HTTPException 403: If user is not an admin
    """
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return user


async def get_superadmin_user(
    user: User = Depends(get_current_user),
) -> User:
    """
    Require superadmin role.

    Raises:
        HTTPException 403: If user is not a superadmin
    """
    if user.role != UserRole.SUPERADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Superadmin access required"
        )
    return user


def get_client_ip(request: Request) -> str:
    """Client address, honouring the first X-Forwarded-For hop behind a proxy."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"
