"""
HMAC Request Signing Module

Per-user HMAC-SHA256 request signing on top of session authentication.
Every mutating (and some read) API call carries X-Signature and
X-Request-Timestamp, computed over a canonical form of the request with the
user's signing key.
"""

from storefront.core.signing.canonical import (
    BODY_METHODS,
    body_digest,
    build_canonical_request,
    canonical_json,
    canonical_path,
    canonical_query,
    create_canonical_request,
    has_body,
    sort_keys_deep,
    split_url,
)
from storefront.core.signing.signer import (
    generate_signing_secret,
    sign_request,
    sign_response,
)
from storefront.core.signing.keys import (
    DatabaseSigningKeyStore,
    SigningKeyManager,
    SigningKeyStorageError,
    SigningKeyStore,
)
from storefront.core.signing.verify import (
    HEADER_SIGNATURE,
    HEADER_TIMESTAMP,
    VerificationError,
    VerificationResult,
    verify_request_signature,
)

__all__ = [
    # Canonicalization
    "BODY_METHODS",
    "body_digest",
    "build_canonical_request",
    "canonical_json",
    "canonical_path",
    "canonical_query",
    "create_canonical_request",
    "has_body",
    "sort_keys_deep",
    "split_url",
    # Signing
    "generate_signing_secret",
    "sign_request",
    "sign_response",
    # Keys
    "DatabaseSigningKeyStore",
    "SigningKeyManager",
    "SigningKeyStorageError",
    "SigningKeyStore",
    # Verification
    "HEADER_SIGNATURE",
    "HEADER_TIMESTAMP",
    "VerificationError",
    "VerificationResult",
    "verify_request_signature",
]
