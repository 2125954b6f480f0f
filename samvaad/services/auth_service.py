"""
Local account authentication.

Features:
- Email/password signup and login
- bcrypt password hashes (cost 10)
- Stateless HS256 bearer tokens (python-jose) carrying the user id in "sub"
- `get_current_user` dependency for protected endpoints
- `user_id_from_token` for the WebSocket endpoint, which cannot use headers
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from fastapi import APIRouter, Depends, HTTPException, Request, status
from jose import jwt, JWTError

from samvaad.core import state
from samvaad.core.config import settings
from samvaad.core.errors import AuthError
from samvaad.core.logging import get_logger
from samvaad.models.models import LoginRequest, SignupRequest, User

logger = get_logger(__name__)

BCRYPT_ROUNDS = 10
BCRYPT_MAX_BYTES = 72

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


# ============================================================================
# PASSWORDS & TOKENS
# ============================================================================

def _secret(password: str) -> bytes:
    # bcrypt only reads the first 72 bytes; newer releases reject longer input
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """bcrypt hash (``$2b$10$...``) of the password."""
    return bcrypt.hashpw(_secret(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("ascii")


def verify_password(password: str, stored: Optional[str]) -> bool:
    """Check a password against a stored bcrypt hash ($2a$/$2b$/$2y$)."""
    if not stored:
        return False
    try:
        return bcrypt.checkpw(_secret(password), stored.encode("ascii"))
    except ValueError:
        logger.warning("Stored password hash is not a bcrypt hash")
        return False


def create_access_token(user_id: str, expires_minutes: Optional[int] = None) -> str:
    expires = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes if expires_minutes is not None else settings.JWT_EXPIRE_MINUTES
    )
    claims = {"sub": user_id, "exp": expires}
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def user_id_from_token(token: str) -> str:
    """
    Verify a bearer token and return the user id it was issued for.

    Raises:
        AuthError: bad signature, expired, or no subject
    """
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        raise AuthError(f"Token is not valid: {e}") from e
    user_id = claims.get("sub")
    if not user_id:
        raise AuthError("Token has no subject")
    return user_id


def _session_payload(user: User) -> Dict[str, Any]:
    return {"token": create_access_token(user.id), "user": user.public()}


# ============================================================================
# DEPENDENCIES
# ============================================================================

async def get_current_user(request: Request) -> User:
    """
    Resolve the caller from an "Authorization: Bearer <token>" header.
    Use as dependency for protected endpoints.
    """
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "No token, authorization denied")

    token = header.split(" ", 1)[1].strip()
    try:
        user_id = user_id_from_token(token)
    except AuthError as e:
        logger.warning("Auth failed: %s", e)
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Token is not valid")

    user = state.user_manager.get(user_id)
    if not user:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "User not found")
    return user


# ============================================================================
# ENDPOINTS
# ============================================================================

@router.post("/signup")
async def signup(request: SignupRequest):
    """Register with email/password and receive a token."""
    if state.user_manager.find_by_email(request.email):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "User already exists")

    user = state.user_manager.create_user(
        username=request.username,
        email=request.email,
        password_hash=hash_password(request.password),
    )
    return _session_payload(user)


@router.post("/login")
async def login(request: LoginRequest):
    """Exchange email/password for a token."""
    user = state.user_manager.find_by_email(request.email)
    if not user or not verify_password(request.password, user.password):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Invalid credentials")

    logger.info("User logged in: %s", user.id)
    return _session_payload(user)


@router.get("/user")
async def get_user_profile(current_user: User = Depends(get_current_user)):
    """Get current user profile (password hash excluded)."""
    return {"user": current_user.public()}
