"""
Login and Signing Key Endpoints

POST /api/login        - verify credentials, rotate signing key, issue session token
POST /api/logout       - end the client session
GET  /api/signing-key  - fetch (or lazily create) the caller's signing key
GET  /api/auth/me      - signed profile lookup
"""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from storefront.api.session import authenticate_user, create_session_token, get_current_user
from storefront.api.signed_auth import (
    SignedRequest,
    get_key_manager,
    require_signed_query,
    signed_json_response,
)
from storefront.core.database import get_db
from storefront.core.database.models import User
from storefront.core.signing.keys import SigningKeyManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])


class LoginRequest(BaseModel):
    """Request body for password login."""
    email: str = Field(..., min_length=3, max_length=320, description="Account email")
    password: str = Field(..., min_length=1, max_length=1024, description="Account password")


@router.post("/login")
def login(
    payload: LoginRequest,
    db: Session = Depends(get_db),
    key_manager: SigningKeyManager = Depends(get_key_manager),
):
    """
    Log in with email and password.

    Every successful login issues a new signing key, which invalidates the
    previous one (requests still signed with it get 403). The response is the
    only place the raw key is sent to the client.
    """
    user = authenticate_user(db, payload.email, payload.password)
    if user is None:
        logger.warning(f"Failed login attempt for {payload.email.strip().lower()}")
        return JSONResponse({"message": "Invalid email or password"}, status_code=401)

    user.last_login_at = datetime.utcnow()
    # Commits last_login_at too; a failed key write fails the whole login
    signing_key = key_manager.regenerate(user.id)
    token = create_session_token(user)

    logger.info(f"User {user.id} logged in")
    return {
        "message": "Login successful",
        "token": token,
        "signingKey": signing_key,
        "user": user.to_public_dict(),
    }


@router.post("/logout")
def logout(user: User = Depends(get_current_user)):
    """Session tokens are stateless; the client drops its token and signing key."""
    logger.info(f"User {user.id} logged out")
    return {"message": "Logged out"}


@router.get("/signing-key")
def get_signing_key(
    user: User = Depends(get_current_user),
    key_manager: SigningKeyManager = Depends(get_key_manager),
):
    """
    Return the caller's signing key, creating one for accounts that predate
    request signing. Requires only a session, since the client cannot sign
    without the key.
    """
    return {"signingKey": key_manager.get_or_create(user.id)}


@router.get("/auth/me")
async def me(signed: SignedRequest = Depends(require_signed_query)):
    return signed_json_response({"success": True, "user": signed.user.to_public_dict()}, signed)
