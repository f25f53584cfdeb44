"""
Session Authentication

Email + password login and JWT bearer session tokens. This is the identity
layer that request signing sits on top of: it answers "who is calling",
signing answers "did they really send this exact request".
"""
import base64
import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from storefront.core.config import get_settings
from storefront.core.database import get_db
from storefront.core.database.models import User

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


def _prepare_password(password: str) -> bytes:
    """SHA-256 pre-hash so passwords longer than bcrypt's 72-byte limit still count in full."""
    return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest())


def hash_password(password: str) -> str:
    """Hash a password with bcrypt (cost from BCRYPT_ROUNDS)."""
    salt = bcrypt.gensalt(rounds=get_settings().bcrypt_rounds)
    return bcrypt.hashpw(_prepare_password(password), salt).decode("utf-8")


def verify_password(password: str, stored_hash: str) -> bool:
    """Check a password against a bcrypt hash; malformed hashes never match."""
    try:
        return bcrypt.checkpw(_prepare_password(password), stored_hash.encode("utf-8"))
    except ValueError:
        return False


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """Return the active user matching the credentials, or None."""
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if user is None or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def create_session_token(user: User) -> str:
    """Create a JWT session token for an authenticated user."""
    settings = get_settings()
    now = datetime.utcnow()
    payload = {
        "sub": user.id,
        "email": user.email,
        "role": user.role,
        "iat": now,
        "exp": now + timedelta(hours=settings.jwt_expiration_hours),
        "jti": secrets.token_urlsafe(16),
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_session_token(token: str) -> dict:
    """
    Decode and validate a session token.

    Raises:
        HTTPException: If token is invalid or expired
    """
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[JWT_ALGORITHM],
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired. Please log in again.",
        )
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid session token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token",
        )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the authenticated user from the Authorization header.

    This is the identity resolver protected endpoints build on.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    payload = decode_session_token(credentials.credentials)
    user = db.get(User, payload["sub"])
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return user


def require_role(*roles: str):
    """
    Dependency to require one of the given roles.

    Example:
        @router.get("/api/sellers/getOrders")
        async def seller_orders(user: User = Depends(require_role("seller", "admin"))):
            ...
    """
    def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            logger.warning(f"Role check failed: user {user.id} has '{user.role}', needs one of {roles}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return checker
