"""
Signing Key Lifecycle

Issues, stores and rotates each user's HMAC signing key. This module is the
only place allowed to create, read or overwrite a user's secret.

Lifecycle:
- get_or_create: first time a key is needed for a user that has none
- regenerate: unconditionally on every successful login
- get: on every signed-request verification (never re-issues)

Rotation on login means a user logged in on two devices keeps only the most
recent device signing successfully; the older session gets 403 and has to log
in again. There is no revocation list.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.core.database.models import User
from storefront.core.signing.signer import generate_signing_secret

logger = logging.getLogger(__name__)


class SigningKeyStorageError(Exception):
    """Raised when a signing key cannot be read from or written to storage."""


class SigningKeyStore(ABC):
    """Key-value persistence for signing keys, keyed by user id."""

    @abstractmethod
    def get(self, user_id: str) -> Optional[str]:
        """Return the stored secret (hex) or None."""

    @abstractmethod
    def set(self, user_id: str, secret: str) -> None:
        """Persist secret for user_id, replacing any previous value."""


class DatabaseSigningKeyStore(SigningKeyStore):
    """Stores signing keys in the encrypted users.signing_key column."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> Optional[str]:
        try:
            user = self.db.get(User, user_id)
        except SQLAlchemyError as e:
            raise SigningKeyStorageError(f"Failed to load signing key for user {user_id}") from e
        if user is None:
            return None
        return user.signing_key or None

    def set(self, user_id: str, secret: str) -> None:
        try:
            user = self.db.get(User, user_id)
            if user is None:
                raise SigningKeyStorageError(f"Cannot store signing key: unknown user {user_id}")
            user.signing_key = secret
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise SigningKeyStorageError(f"Failed to store signing key for user {user_id}") from e


class SigningKeyManager:
    """
    Signing key lifecycle on top of a SigningKeyStore.

    Storage errors propagate as SigningKeyStorageError. Nothing is retried:
    a key that was not persisted would make every request of that session
    unverifiable, so the login (or the call) must fail instead.
    """

    def __init__(self, store: SigningKeyStore):
        self.store = store

    def get(self, user_id: str) -> Optional[str]:
        """Read-only lookup; None if the user has never had a key."""
        return self.store.get(user_id)

    def get_or_create(self, user_id: str) -> str:
        """Return the existing key, or issue and persist one if the user has none."""
        existing = self.store.get(user_id)
        if existing:
            return existing
        secret = generate_signing_secret()
        self.store.set(user_id, secret)
        logger.info(f"Issued first signing key for user {user_id}")
        return secret

    def regenerate(self, user_id: str) -> str:
        """Issue a new key, overwriting (and thereby revoking) the previous one."""
        secret = generate_signing_secret()
        self.store.set(user_id, secret)
        logger.info(f"Rotated signing key for user {user_id}")
        return secret
