"""
Database connection and session management.
"""
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.exc import OperationalError, DBAPIError
from typing import Generator
import logging
import time

from storefront.core.config import get_settings

logger = logging.getLogger(__name__)

engine = None
SessionLocal = None


def _normalize_url(url: str) -> str:
    # Some hosts hand out postgres:// which SQLAlchemy no longer accepts
    if url.startswith('postgres://'):
        return url.replace('postgres://', 'postgresql://', 1)
    return url


def init_db(max_retries: int = 3, retry_delay: float = 1.0):
    """
    Initialize the database engine and session factory with retry logic.
    Call this once at application startup.

    Args:
        max_retries: Number of connection attempts
        retry_delay: Seconds to wait between retries

    Raises:
        RuntimeError: If connection fails after all retries
    """
    global engine, SessionLocal

    settings = get_settings()
    database_url = _normalize_url(settings.database_url)

    if database_url.startswith('sqlite'):
        engine_kwargs = {'connect_args': {'check_same_thread': False}}
    else:
        engine_kwargs = {
            'pool_pre_ping': True,  # Verify connections before using
            'pool_size': settings.database_pool_size,
            'max_overflow': settings.database_max_overflow,
            'pool_recycle': 3600,
        }

    for attempt in range(max_retries):
        try:
            engine = create_engine(database_url, echo=False, **engine_kwargs)

            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))

            SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

            logger.info(f"Database initialized: {database_url.split('@')[1] if '@' in database_url else 'local'}")
            return

        except (OperationalError, DBAPIError) as e:
            logger.warning(f"Database connection attempt {attempt + 1}/{max_retries} failed: {e}")
            if attempt < max_retries - 1:
                time.sleep(retry_delay * (attempt + 1))
            else:
                logger.error(f"Database initialization failed after {max_retries} attempts")
                raise RuntimeError(f"Failed to connect to database: {e}") from e


def get_db() -> Generator[Session, None, None]:
    """
    Get a database session (FastAPI dependency).

    Usage:
        @router.get("/api/auth/me")
        def me(db: Session = Depends(get_db)):
            ...
    """
    if not SessionLocal:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    db = SessionLocal()
    try:
        yield db
    except (OperationalError, DBAPIError) as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def create_tables():
    """
    Create all tables in the database.
    Only use for initial setup - prefer Alembic migrations for production.
    """
    if not engine:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    from .models import Base
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")
