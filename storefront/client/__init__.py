"""
Storefront Client Library

Login plus HMAC request signing for Python clients of the storefront API.

Components:
- session: in-memory signing key holder
- signing: canonical request signing and the httpx SigningAuth flow
- login: login/logout helpers
"""

from .session import SigningKeyHolder, signing_key_holder
from .signing import (
    SigningAuth,
    build_signed_headers,
    encode_json_body,
    verify_response_signature,
)
from .login import LoginError, login, logout

__all__ = [
    # Session
    "SigningKeyHolder",
    "signing_key_holder",
    # Signing
    "SigningAuth",
    "build_signed_headers",
    "encode_json_body",
    "verify_response_signature",
    # Login
    "LoginError",
    "login",
    "logout",
]
