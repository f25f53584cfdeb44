"""
In-Memory Signing Key Holder

Keeps the signing key received at login for the lifetime of the client
process. The key is never written to disk.
"""

import logging
import threading
from typing import Optional

logger = logging.getLogger(__name__)


class SigningKeyHolder:
    """Thread-safe holder for the current user's signing key."""

    def __init__(self):
        self._key: Optional[str] = None
        self._lock = threading.Lock()

    def set(self, key: str) -> None:
        with self._lock:
            self._key = key
        logger.debug("Signing key stored")

    def get(self) -> Optional[str]:
        with self._lock:
            return self._key

    def clear(self) -> None:
        """Forget the key (logout, or after the server rejected it)."""
        with self._lock:
            self._key = None
        logger.debug("Signing key cleared")


# Global holder instance
signing_key_holder = SigningKeyHolder()
