"""
Database Field Encryption Module

Provides a SQLAlchemy TypeDecorator for encrypting sensitive database fields.
Uses Fernet symmetric encryption (AES-128 in CBC mode with HMAC-SHA256).

The only encrypted field is users.signing_key: a database dump must not be
enough to forge signed requests.

KEY ROTATION SUPPORT:
- DB_ENCRYPTION_KEY: Primary key used for all NEW encryptions
- DB_ENCRYPTION_KEY_OLD: Comma-separated list of previous keys for decryption
  Example: DB_ENCRYPTION_KEY_OLD=oldkey1,oldkey2

Signing keys are rewritten on every login, so rows migrate to the primary
key on their own once users log in again.
"""
import logging
from typing import Optional, List
from sqlalchemy import TypeDecorator, Text
from cryptography.fernet import Fernet, InvalidToken, MultiFernet

from storefront.core.config import get_settings

logger = logging.getLogger(__name__)

# Fernet tokens always start with this prefix (version byte 0x80, base64)
FERNET_PREFIX = "gAAAAA"

primary_cipher: Optional[Fernet] = None
multi_cipher: Optional[MultiFernet] = None


def generate_encryption_key() -> str:
    """Generate a new Fernet key suitable for DB_ENCRYPTION_KEY."""
    return Fernet.generate_key().decode("utf-8")


def _initialize_ciphers():
    """
    Initialize encryption ciphers with key rotation support.

    Uses MultiFernet to support decryption with old keys while
    encrypting only with the primary (newest) key.
    """
    global primary_cipher, multi_cipher

    settings = get_settings()
    if not settings.db_encryption_key:
        error_msg = (
            "DB_ENCRYPTION_KEY not set in environment. "
            "Generate a key with: python -c 'from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())'"
        )
        logger.critical(error_msg)
        raise ValueError("DB_ENCRYPTION_KEY is required to store signing keys")

    try:
        primary = Fernet(settings.db_encryption_key.encode("utf-8"))
    except Exception as e:
        logger.critical(f"Failed to initialize encryption cipher: {e}")
        raise ValueError("DB_ENCRYPTION_KEY is not a valid Fernet key") from e

    all_ciphers: List[Fernet] = [primary]
    old_keys = [k.strip() for k in settings.db_encryption_key_old.split(",") if k.strip()]
    for i, old_key in enumerate(old_keys):
        try:
            all_ciphers.append(Fernet(old_key.encode("utf-8")))
            logger.info(f"Loaded old encryption key #{i+1} for rotation support")
        except Exception as e:
            logger.error(f"Invalid old encryption key #{i+1}: {e}")
            raise ValueError(f"Invalid old encryption key at position {i+1}") from e

    primary_cipher = primary
    multi_cipher = MultiFernet(all_ciphers)

    if len(all_ciphers) > 1:
        logger.info(f"Database encryption initialized with {len(all_ciphers)} keys (1 primary + {len(all_ciphers)-1} old)")
    else:
        logger.info("Database encryption initialized successfully")


def reset_ciphers():
    """Drop cached ciphers so the next use re-reads settings (useful for testing)."""
    global primary_cipher, multi_cipher
    primary_cipher = None
    multi_cipher = None


def _ciphers():
    if multi_cipher is None:
        _initialize_ciphers()
    return primary_cipher, multi_cipher


class EncryptedText(TypeDecorator):
    """
    Encrypted text column type.

    Encrypts text data before storing in database.
    Decrypts when reading from database.

    Usage:
        class User(Base):
            signing_key = Column(EncryptedText)

    Storage format: Fernet token (URL-safe base64, stored as TEXT)
    """

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Optional[str], dialect) -> Optional[str]:
        """Encrypt with the PRIMARY key before storing."""
        if value is None:
            return None

        primary, _ = _ciphers()
        try:
            return primary.encrypt(value.encode("utf-8")).decode("utf-8")
        except Exception as e:
            logger.error(f"Encryption failed for value of length {len(value)}: {e}")
            raise RuntimeError(f"Failed to encrypt data: {e}") from e

    def process_result_value(self, value: Optional[str], dialect) -> Optional[str]:
        """
        Decrypt when reading from database.

        Values that are not Fernet tokens are legacy plaintext rows and are
        returned as-is; they get encrypted on the next write.
        """
        if value is None:
            return None

        if not value.startswith(FERNET_PREFIX):
            return value

        _, multi = _ciphers()
        try:
            return multi.decrypt(value.encode("utf-8")).decode("utf-8")
        except InvalidToken:
            # Treated as "no key": the user re-logs in and gets a fresh one
            logger.critical("DECRYPTION FAILURE - value encrypted with unknown key")
            return None
