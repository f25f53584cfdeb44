"""
SQLAlchemy Database Models

The storefront's own catalog, cart and order tables live in the hosted
database and are not modelled here. This module only maps what the API
needs to authenticate callers and verify their signed requests.

Encryption:
- users.signing_key is encrypted at rest using Fernet
- See storefront/core/database/encryption.py for implementation
"""
from sqlalchemy import Column, String, Boolean, DateTime, Index
from sqlalchemy.orm import declarative_base
from datetime import datetime
import uuid

from storefront.core.database.encryption import EncryptedText

Base = declarative_base()


def _new_user_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    Storefront account (buyer, seller or admin).

    signing_key holds the user's current request-signing secret. It is
    replaced on every successful login; NULL means the user has not been
    issued one yet.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_user_id)
    email = Column(String(320), unique=True, nullable=False)
    username = Column(String(50), unique=True, nullable=True)
    role = Column(String(20), nullable=False, default="buyer")  # 'buyer', 'seller', 'admin'
    password_hash = Column(String(255), nullable=False)
    signing_key = Column(EncryptedText, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index('ix_users_email', 'email'),
        Index('ix_users_role', 'role'),
    )

    def to_public_dict(self) -> dict:
        """Profile fields safe to return to the owner (never the signing key)."""
        return {
            "id": self.id,
            "email": self.email,
            "username": self.username,
            "role": self.role,
        }
