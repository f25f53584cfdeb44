"""
Shared test setup.

Environment is prepared before any storefront import: settings are read once
and cached, and the encryption module needs DB_ENCRYPTION_KEY on first use.
"""
# Load .env BEFORE any other imports
import os
from pathlib import Path
from dotenv import load_dotenv

_repo_root = Path(__file__).parent.parent.parent
load_dotenv(_repo_root / ".env")

# Generate test encryption key if not set
if not os.getenv("DB_ENCRYPTION_KEY"):
    from cryptography.fernet import Fernet
    os.environ["DB_ENCRYPTION_KEY"] = Fernet.generate_key().decode()

os.environ.setdefault("JWT_SECRET", "test-jwt-secret-with-enough-entropy-0123456789")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
# Minimum bcrypt cost keeps the suite fast
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from typing import Dict, Optional
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.core.database.models import Base
from storefront.core.signing.keys import SigningKeyManager, SigningKeyStore


# Fixed clock for verifier tests (2023-12-19T16:07:14Z)
NOW_MS = 1703002034000


class InMemorySigningKeyStore(SigningKeyStore):
    """Dict-backed store for tests that do not need a database."""

    def __init__(self):
        self.keys: Dict[str, str] = {}

    def get(self, user_id: str) -> Optional[str]:
        return self.keys.get(user_id)

    def set(self, user_id: str, secret: str) -> None:
        self.keys[user_id] = secret


@pytest.fixture
def key_store():
    return InMemorySigningKeyStore()


@pytest.fixture
def key_manager(key_store):
    return SigningKeyManager(key_store)


@pytest.fixture
def now_ms():
    return NOW_MS


@pytest.fixture(scope="function")
def test_db():
    """Fresh in-memory SQLite database with the storefront tables."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
