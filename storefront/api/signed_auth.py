"""
Signed Request Dependencies

Glue between protected endpoints and the signing core. Each protected route
depends on one of:

1. require_signed_query → query-only endpoints (body is never signed)
2. require_signed_body  → JSON-bodied endpoints

Both resolve the caller through the session layer first, then verify
X-Signature / X-Request-Timestamp against the caller's signing key. A
rejected request raises SignatureRejected, which the app turns into the
verifier's 403 response unchanged; the route body never runs.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from fastapi import Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from storefront.api.session import get_current_user
from storefront.core.config import get_settings
from storefront.core.database import get_db
from storefront.core.database.models import User
from storefront.core.signing.keys import DatabaseSigningKeyStore, SigningKeyManager
from storefront.core.signing.signer import sign_response
from storefront.core.signing.verify import HEADER_RESPONSE_SIGNATURE, VerificationResult, verify_request_signature

logger = logging.getLogger(__name__)


class SignatureRejected(Exception):
    """Raised by the signing dependencies when verification fails."""

    def __init__(self, result: VerificationResult):
        super().__init__(result.error_message)
        self.result = result

    @property
    def response(self) -> JSONResponse:
        return self.result.response


@dataclass
class SignedRequest:
    """
    A request that passed signature verification.

    Attributes:
        user: Authenticated caller
        verification: Successful verification result
        key_manager: Key manager bound to this request's DB session
        body: Parsed JSON body ({} for an empty payload), None for query-only routes
    """
    user: User
    verification: VerificationResult
    key_manager: SigningKeyManager
    body: Any = None


def get_key_manager(db: Session = Depends(get_db)) -> SigningKeyManager:
    """Signing key manager backed by the request's database session."""
    return SigningKeyManager(DatabaseSigningKeyStore(db))


def request_url(request: Request) -> str:
    """
    Origin-relative target exactly as the client sent it.

    Prefers the ASGI raw_path so percent-encoding in the path reaches the
    canonicalizer untouched.
    """
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("utf-8", "replace") if raw_path else request.url.path
    query = request.scope.get("query_string", b"").decode("utf-8", "replace")
    return f"{path}?{query}" if query else path


def _reject_constant(name: str):
    raise ValueError(f"Invalid JSON constant: {name}")


async def read_json_body(request: Request) -> Tuple[Any, bool]:
    """
    Read the raw body once and parse it only if non-empty.

    Returns:
        Tuple of (parsed body or None, raw_was_empty)

    Raises:
        HTTPException: 400 if a non-empty body is not valid JSON
    """
    raw = await request.body()
    if not raw:
        return None, True
    try:
        return json.loads(raw, parse_constant=_reject_constant), False
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON body",
        )


def verify_signed_request(
    request: Request,
    user: User,
    key_manager: SigningKeyManager,
    body: Any = None,
) -> VerificationResult:
    """
    Verify the signature of an inbound request for an authenticated user.

    Args:
        request: FastAPI request
        user: Caller resolved by the session layer
        key_manager: Source of the caller's signing key
        body: Parsed body, or None when nothing was sent

    Returns:
        VerificationResult (result.response holds the 403 on failure)
    """
    result = verify_request_signature(
        key_manager,
        user.id,
        method=request.method,
        url=request_url(request),
        headers=request.headers,
        body=body,
        tolerance_ms=get_settings().signature_tolerance_ms,
    )
    if result.success:
        logger.debug(f"Verified signed request: user={user.id} {request.method} {request.url.path}")
    else:
        logger.warning(
            f"Signed request rejected for user {user.id}: "
            f"{result.error.value} - {result.error_message} ({request.method} {request.url.path})"
        )
    return result


async def parse_and_verify_body(
    request: Request,
    user: User,
    key_manager: SigningKeyManager,
) -> Tuple[Any, Optional[JSONResponse]]:
    """
    Parse a JSON body and verify the request signature.

    An empty raw body verifies against the empty body digest (never the
    digest of {}), and the handler receives {}.

    Returns:
        (body, None) on success, (None, 403 response) on rejection
    """
    body, raw_was_empty = await read_json_body(request)
    result = verify_signed_request(request, user, key_manager, None if raw_was_empty else body)
    if not result.success:
        return None, result.response
    return ({} if raw_was_empty else body), None


async def require_signed_query(
    request: Request,
    user: User = Depends(get_current_user),
    key_manager: SigningKeyManager = Depends(get_key_manager),
) -> SignedRequest:
    """
    Dependency for signed endpoints without a body.

    Example:
        @router.get("/api/sellers/getOrders")
        async def seller_orders(signed: SignedRequest = Depends(require_signed_query)):
            ...
    """
    result = verify_signed_request(request, user, key_manager, None)
    if not result.success:
        raise SignatureRejected(result)
    return SignedRequest(user=user, verification=result, key_manager=key_manager)


async def require_signed_body(
    request: Request,
    user: User = Depends(get_current_user),
    key_manager: SigningKeyManager = Depends(get_key_manager),
) -> SignedRequest:
    """Dependency for signed endpoints with a JSON body; exposes it as signed.body."""
    body, raw_was_empty = await read_json_body(request)
    result = verify_signed_request(request, user, key_manager, None if raw_was_empty else body)
    if not result.success:
        raise SignatureRejected(result)
    return SignedRequest(
        user=user,
        verification=result,
        key_manager=key_manager,
        body={} if raw_was_empty else body,
    )


def signed_json_response(content: Any, signed: SignedRequest, status_code: int = 200) -> JSONResponse:
    """
    JSONResponse for a signed endpoint.

    With SIGN_RESPONSES enabled, adds X-Response-Signature (HMAC of the exact
    response body with the caller's signing key) so clients can check the
    response was not altered.
    """
    response = JSONResponse(content, status_code=status_code)
    if get_settings().sign_responses:
        secret = signed.key_manager.get(signed.user.id)
        if secret:
            response.headers[HEADER_RESPONSE_SIGNATURE] = sign_response(response.body.decode("utf-8"), secret)
    return response
