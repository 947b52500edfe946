"""Authentication routes.

This module handles HTTP endpoints for registration, login and the current
user, plus the token and role checks the other routers depend on.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

import pytz
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, JWT_SECRET_KEY
from core.dependencies import UserManagerDep
from core.exceptions import PermissionDeniedError, ValidationError
from schemas.user import (
    LoginRequest,
    LoginResponse,
    OneTimePasswordLoginRequest,
    RegisterRequest,
    Role,
    UpdatePasswordRequest,
    User,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

# HTTP Bearer token security
security = HTTPBearer()


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token.

    Args:
        data: Data to encode in the token.
        expires_delta: Optional expiration time delta.

    Returns:
        Encoded JWT token string.
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(pytz.utc) + expires_delta
    else:
        expire = datetime.now(pytz.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def verify_token(credentials: HTTPAuthorizationCredentials = Depends(security)) -> dict:
    """Verify JWT token from Authorization header.

    Args:
        credentials: HTTP Bearer token credentials.

    Returns:
        Decoded token payload.

    Raises:
        HTTPException: If token is invalid or expired.
    """
    try:
        payload = jwt.decode(
            credentials.credentials, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM]
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )
    if payload.get("sub") is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )
    return payload


def get_current_user(
    token_payload: dict = Depends(verify_token),
    user_manager: UserManagerDep = None,
) -> User:
    """Get current authenticated user.

    Raises:
        HTTPException: If the user behind the token no longer exists.
    """
    user = user_manager.get_user_or_none(token_payload["sub"])
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


def require_role(*roles: Role) -> Callable[..., User]:
    """Build a dependency that admits users holding any of roles."""

    def checker(current_user: User = Depends(get_current_user)) -> User:
        if not any(current_user.has_role(role) for role in roles):
            logger.warning(
                "User %s lacks any of roles %s", current_user.username, [r.value for r in roles]
            )
            raise PermissionDeniedError(
                f"Requires one of the roles: {', '.join(r.value for r in roles)}."
            )
        return current_user

    return checker


def _login_response(user: User) -> LoginResponse:
    token = create_access_token(
        data={"sub": user.username},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    return LoginResponse(user=user, token=token)


@router.post("/register", response_model=User, summary="Register a user")
def register(req: RegisterRequest, user_manager: UserManagerDep = None) -> User:
    """Register a new user.

    The first account of an empty system needs no invitation and becomes
    admin. Every later account must redeem an invitation code, which fixes
    its roles.
    """
    if user_manager.is_database_empty():
        return user_manager.register_user(req.username, req.password)
    if not req.invitation_code:
        raise ValidationError("An invitation code is required to register.")
    return user_manager.register_with_invitation(
        req.username, req.password, req.invitation_code.strip()
    )


@router.post("/login", response_model=LoginResponse, summary="Log in")
def login(req: LoginRequest, user_manager: UserManagerDep = None) -> LoginResponse:
    if not user_manager.login(req.username, req.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )
    return _login_response(user_manager.get_user(req.username))


@router.post(
    "/login/one-time",
    response_model=LoginResponse,
    summary="Log in with a one-time password",
)
def login_one_time(
    req: OneTimePasswordLoginRequest, user_manager: UserManagerDep = None
) -> LoginResponse:
    """Log in once with a one-time password set by an admin.

    The one-time password is cleared on success; the client should prompt
    for a new permanent password right after.
    """
    if not user_manager.redeem_one_time_password(req.username, req.one_time_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or one-time password",
        )
    return _login_response(user_manager.get_user(req.username))


@router.get("/me", response_model=User, summary="Current user")
def me(current_user: User = Depends(get_current_user)) -> User:
    return current_user


@router.put("/me/password", summary="Change own password")
def change_password(
    req: UpdatePasswordRequest,
    current_user: User = Depends(get_current_user),
    user_manager: UserManagerDep = None,
) -> dict:
    user_manager.update_password(current_user.username, req.new_password)
    return {"success": True, "message": "Password updated successfully"}
