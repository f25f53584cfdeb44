"""
Client-Side Request Signing

Produces X-Signature / X-Request-Timestamp for outgoing requests using the
same canonicalizer and signer the server verifies with.

Usage with httpx:
    holder = SigningKeyHolder()
    token = login(client, "buyer@example.com", "secret", holder=holder)
    auth = SigningAuth(holder, token=token)
    client.post("/api/addToCart", json={"productId": "P1", "quantity": 2}, auth=auth)
"""

import json
import logging
import time
from typing import Any, Callable, Dict, Generator, Optional, Union

import httpx

from storefront.client.session import SigningKeyHolder, signing_key_holder
from storefront.core.signing.canonical import build_canonical_request, canonical_json
from storefront.core.signing.signer import sign_request, sign_response
from storefront.core.signing.verify import (
    HEADER_RESPONSE_SIGNATURE,
    HEADER_SIGNATURE,
    HEADER_TIMESTAMP,
    signatures_match,
)

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def encode_json_body(body: Any) -> bytes:
    """Wire bytes for a JSON body: canonical JSON, or nothing for None."""
    if body is None:
        return b""
    return canonical_json(body).encode("utf-8")


def build_signed_headers(
    secret: str,
    method: str,
    url: str,
    body: Any = None,
    timestamp: Optional[Union[int, str]] = None,
) -> Dict[str, str]:
    """
    Sign a request and return the headers to attach.

    Args:
        secret: Signing key (hex) received at login
        method: HTTP method
        url: Absolute URL or origin-relative target, including the query string
        body: JSON body as sent, or None for no body
        timestamp: Epoch ms (defaults to now)

    Returns:
        Dict with X-Signature and X-Request-Timestamp
    """
    if timestamp is None:
        timestamp = now_ms()
    timestamp_str = str(timestamp)
    canonical = build_canonical_request(method, url, body, timestamp_str)
    return {
        HEADER_SIGNATURE: sign_request(canonical, secret),
        HEADER_TIMESTAMP: timestamp_str,
    }


def _request_json_body(request: httpx.Request) -> Any:
    content = request.read()
    if not content:
        return None
    try:
        return json.loads(content)
    except ValueError as e:
        raise ValueError("SigningAuth can only sign requests with a JSON body") from e


class SigningAuth(httpx.Auth):
    """
    httpx auth flow adding the session bearer token and request signature.

    If no signing key is held yet and a session token is available, the key
    is fetched once from the signing-key endpoint before the request is
    signed.
    """

    requires_response_body = True

    def __init__(
        self,
        holder: Optional[SigningKeyHolder] = None,
        token: Optional[str] = None,
        signing_key_path: str = "/api/signing-key",
        clock: Callable[[], int] = now_ms,
    ):
        self.holder = holder or signing_key_holder
        self.token = token
        self.signing_key_path = signing_key_path
        self.clock = clock

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        if self.token:
            request.headers["Authorization"] = f"Bearer {self.token}"

        secret = self.holder.get()
        if secret is None and "Authorization" in request.headers:
            key_request = httpx.Request(
                "GET",
                request.url.join(self.signing_key_path),
                headers={"Authorization": request.headers["Authorization"]},
            )
            key_response = yield key_request
            if key_response.status_code == 200:
                secret = key_response.json()["signingKey"]
                self.holder.set(secret)
            else:
                logger.warning(f"Could not fetch signing key: HTTP {key_response.status_code}")

        if secret is not None:
            request.headers.update(build_signed_headers(
                secret,
                request.method,
                str(request.url),
                _request_json_body(request),
                timestamp=self.clock(),
            ))
        yield request


def verify_response_signature(response: httpx.Response, secret: str) -> bool:
    """Check X-Response-Signature against the response body."""
    supplied = response.headers.get(HEADER_RESPONSE_SIGNATURE)
    if not supplied:
        return False
    return signatures_match(supplied, sign_response(response.text, secret))
