"""
Signature Verification

Server-side gate for signed requests. Rebuilds the canonical request from the
inbound request, recomputes the HMAC with the caller's signing key and
compares it in constant time. A timestamp freshness window bounds replay
exposure without a nonce store.

Checks, in order:
    1. Caller has a signing key             -> KEY_NOT_FOUND
    2. X-Signature and X-Request-Timestamp   -> MISSING_HEADERS
    3. Timestamp parses and is within ±5 min -> STALE_TIMESTAMP
    4. URL parses                            -> MALFORMED_URL
    5. Signature matches                     -> SIGNATURE_MISMATCH
"""

import hmac
import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from starlette.responses import JSONResponse

from storefront.core.signing.canonical import create_canonical_request, split_url
from storefront.core.signing.keys import SigningKeyManager
from storefront.core.signing.signer import sign_request

logger = logging.getLogger(__name__)


HEADER_SIGNATURE = "X-Signature"
HEADER_TIMESTAMP = "X-Request-Timestamp"
HEADER_RESPONSE_SIGNATURE = "X-Response-Signature"

# Timestamp tolerance: ±5 minutes, in milliseconds
TIMESTAMP_TOLERANCE_MS = 300_000

_TIMESTAMP_RE = re.compile(r"-?[0-9]+")

MESSAGE_KEY_NOT_FOUND = "Signing key not found. Please re-login."
MESSAGE_SIGNATURE_REQUIRED = "Request signature required. Please refresh and log in again."
MESSAGE_INVALID_SIGNATURE = "Invalid request signature"


class VerificationError(Enum):
    """Enumeration of possible verification failures."""
    KEY_NOT_FOUND = "key_not_found"
    MISSING_HEADERS = "missing_headers"
    STALE_TIMESTAMP = "stale_timestamp"
    MALFORMED_URL = "malformed_url"
    SIGNATURE_MISMATCH = "signature_mismatch"


_CLIENT_MESSAGES = {
    VerificationError.KEY_NOT_FOUND: MESSAGE_KEY_NOT_FOUND,
    VerificationError.MISSING_HEADERS: MESSAGE_SIGNATURE_REQUIRED,
}


@dataclass
class VerificationResult:
    """
    Result of signature verification.

    Attributes:
        success: Whether verification succeeded
        error: Error type if verification failed
        error_message: Internal description for logs (never sent to clients)
        user_id: Caller the request was verified for
        timestamp: Parsed timestamp in epoch ms (if valid)
    """
    success: bool
    error: Optional[VerificationError] = None
    error_message: Optional[str] = None
    user_id: Optional[str] = None
    timestamp: Optional[int] = None

    @classmethod
    def ok(cls, user_id: str, timestamp: int) -> "VerificationResult":
        """Create a successful result."""
        return cls(success=True, user_id=user_id, timestamp=timestamp)

    @classmethod
    def fail(cls, error: VerificationError, message: str, user_id: Optional[str] = None) -> "VerificationResult":
        """Create a failed result."""
        return cls(success=False, error=error, error_message=message, user_id=user_id)

    @property
    def client_message(self) -> Optional[str]:
        if self.success:
            return None
        return _CLIENT_MESSAGES.get(self.error, MESSAGE_INVALID_SIGNATURE)

    @property
    def response(self) -> Optional[JSONResponse]:
        """Ready-made 403 response for a failed result; None on success."""
        if self.success:
            return None
        return JSONResponse({"message": self.client_message}, status_code=403)


def get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup for both Starlette Headers and plain dicts."""
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, val in headers.items():
        if key.lower() == lowered:
            return val
    return None


def validate_timestamp(timestamp_str: str, now_ms: int, tolerance_ms: int) -> Optional[int]:
    """
    Parse a timestamp header and check it against the freshness window.

    Returns:
        The parsed timestamp, or None if it is malformed or stale
    """
    if not _TIMESTAMP_RE.fullmatch(timestamp_str):
        return None
    timestamp = int(timestamp_str)
    if abs(now_ms - timestamp) > tolerance_ms:
        return None
    return timestamp


def signatures_match(supplied: str, expected: str) -> bool:
    """Constant-time comparison of two hex signatures (case and length sensitive)."""
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


def verify_request_signature(
    key_manager: SigningKeyManager,
    user_id: str,
    method: str,
    url: str,
    headers: Mapping[str, str],
    body: Any = None,
    now_ms: Optional[int] = None,
    tolerance_ms: int = TIMESTAMP_TOLERANCE_MS,
) -> VerificationResult:
    """
    Verify a signed request for an already authenticated user.

    Args:
        key_manager: Source of the caller's signing key
        user_id: Identity established by the session layer
        method: HTTP method
        url: Full request URL (or origin-relative target) as received
        headers: Request headers
        body: Parsed JSON body, or None when the request has no body
            (including an empty raw payload)
        now_ms: Current time in epoch ms (defaults to the system clock)
        tolerance_ms: Freshness window

    Returns:
        VerificationResult; on failure, result.response is the 403 to return

    Raises:
        SigningKeyStorageError: If the key cannot be read
    """
    secret = key_manager.get(user_id)
    if not secret:
        return VerificationResult.fail(
            VerificationError.KEY_NOT_FOUND,
            f"No signing key for user {user_id}",
            user_id=user_id,
        )
    try:
        bytes.fromhex(secret)
    except ValueError:
        # e.g. a legacy plaintext row; the user gets a fresh key at next login
        return VerificationResult.fail(
            VerificationError.KEY_NOT_FOUND,
            f"Stored signing key for user {user_id} is not valid hex",
            user_id=user_id,
        )

    signature = get_header(headers, HEADER_SIGNATURE)
    timestamp_str = get_header(headers, HEADER_TIMESTAMP)
    if not signature or not timestamp_str:
        missing = [
            name for name, value in ((HEADER_SIGNATURE, signature), (HEADER_TIMESTAMP, timestamp_str))
            if not value
        ]
        return VerificationResult.fail(
            VerificationError.MISSING_HEADERS,
            f"Missing required headers: {', '.join(missing)}",
            user_id=user_id,
        )

    if now_ms is None:
        now_ms = int(time.time() * 1000)
    timestamp = validate_timestamp(timestamp_str, now_ms, tolerance_ms)
    if timestamp is None:
        return VerificationResult.fail(
            VerificationError.STALE_TIMESTAMP,
            f"Timestamp invalid or outside window: {timestamp_str!r} (now: {now_ms})",
            user_id=user_id,
        )

    try:
        path, query = split_url(url)
    except ValueError as e:
        return VerificationResult.fail(
            VerificationError.MALFORMED_URL,
            f"Cannot parse request URL: {e}",
            user_id=user_id,
        )

    try:
        canonical = create_canonical_request(method, path, query, body, timestamp_str)
    except (TypeError, ValueError) as e:
        # The client could not have signed a body that has no canonical form
        return VerificationResult.fail(
            VerificationError.SIGNATURE_MISMATCH,
            f"Body has no canonical form: {e}",
            user_id=user_id,
        )

    expected = sign_request(canonical, secret)
    if not signatures_match(signature, expected):
        return VerificationResult.fail(
            VerificationError.SIGNATURE_MISMATCH,
            "Signature verification failed",
            user_id=user_id,
        )

    return VerificationResult.ok(user_id=user_id, timestamp=timestamp)
