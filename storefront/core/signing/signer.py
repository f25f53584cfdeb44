"""
HMAC-SHA256 Signer

Binds a canonical request to a user's signing key. The same functions run
on the client (to produce X-Signature) and on the server (to recompute it).
"""

import hashlib
import hmac
import secrets

# 256-bit signing keys, hex encoded (64 characters)
SIGNING_KEY_BYTES = 32


def generate_signing_secret() -> str:
    """Generate a fresh random signing key as lowercase hex."""
    return secrets.token_hex(SIGNING_KEY_BYTES)


def sign_request(canonical: str, secret_hex: str) -> str:
    """
    Sign a canonical request string.

    Args:
        canonical: Canonical request (see canonical.create_canonical_request)
        secret_hex: User's signing key, hex encoded

    Returns:
        Lowercase hex HMAC-SHA256 digest (64 characters)

    Raises:
        ValueError: If secret_hex is not valid hex
    """
    return hmac.new(bytes.fromhex(secret_hex), canonical.encode("utf-8"), hashlib.sha256).hexdigest()


def sign_response(body_text: str, secret_hex: str) -> str:
    """HMAC-SHA256 of a response body, sent back as X-Response-Signature."""
    return hmac.new(bytes.fromhex(secret_hex), body_text.encode("utf-8"), hashlib.sha256).hexdigest()
