"""
Login Client

Logs in against the storefront API and keeps the returned signing key in a
SigningKeyHolder so later requests can be signed.
"""

import logging
from typing import Optional

import httpx

from storefront.client.session import SigningKeyHolder, signing_key_holder

logger = logging.getLogger(__name__)


class LoginError(Exception):
    """Raised when login fails."""
    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


def login(
    client: httpx.Client,
    email: str,
    password: str,
    holder: Optional[SigningKeyHolder] = None,
) -> str:
    """
    Log in and store the new signing key.

    Any key held from an earlier login is replaced; the server has already
    invalidated it.

    Args:
        client: httpx client whose base_url points at the API
        email: Account email
        password: Account password
        holder: Where to keep the signing key (default: global holder)

    Returns:
        Session token for the Authorization header

    Raises:
        LoginError: If the server rejects the credentials or is unreachable
    """
    holder = holder or signing_key_holder
    try:
        response = client.post("/api/login", json={"email": email, "password": password})
    except httpx.RequestError as e:
        raise LoginError(f"Failed to connect to backend: {e}", details=str(e)) from e

    if response.status_code != 200:
        holder.clear()
        if response.status_code == 401:
            raise LoginError("Invalid email or password", status_code=401, details=response.text)
        raise LoginError(
            f"Login failed with status {response.status_code}",
            status_code=response.status_code,
            details=response.text,
        )

    data = response.json()
    holder.set(data["signingKey"])
    logger.info(f"Logged in as {data.get('user', {}).get('email', email)}")
    return data["token"]


def logout(client: httpx.Client, token: str, holder: Optional[SigningKeyHolder] = None) -> None:
    """Forget the signing key locally and tell the server the session ended."""
    holder = holder or signing_key_holder
    holder.clear()
    client.post("/api/logout", headers={"Authorization": f"Bearer {token}"})
