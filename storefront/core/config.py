"""
Configuration Management

Centralized configuration using Pydantic Settings.
All settings loaded from environment variables with sensible defaults.
"""
import secrets
from typing import Optional, List
from pydantic_settings import BaseSettings
from pydantic import Field, ConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Ignore extra environment variables that aren't defined in the model
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ============================================================
    # Database Configuration
    # ============================================================
    database_url: str = Field("sqlite:///./storefront.db", description="SQLAlchemy connection URL")
    database_pool_size: int = Field(5, description="Database connection pool size")
    database_max_overflow: int = Field(10, description="Max overflow connections")
    db_encryption_key: Optional[str] = Field(
        None,
        description="Fernet key used to encrypt signing keys at rest (DB_ENCRYPTION_KEY)"
    )
    db_encryption_key_old: str = Field(
        "",
        description="Comma-separated previous Fernet keys, accepted for decryption only"
    )

    # ============================================================
    # Session Tokens (identity layer)
    # ============================================================
    jwt_secret: str = Field(
        default_factory=lambda: secrets.token_urlsafe(32),
        description="HS256 secret for session tokens (random per process if unset)"
    )
    jwt_expiration_hours: int = Field(24, description="Session token lifetime in hours")
    jwt_issuer: str = Field("storefront-api", description="Session token issuer claim")
    jwt_audience: str = Field("storefront-clients", description="Session token audience claim")
    bcrypt_rounds: int = Field(12, ge=4, le=31, description="bcrypt cost factor for password hashes")

    # ============================================================
    # Request Signing
    # ============================================================
    signature_tolerance_ms: int = Field(
        300_000,
        description="Max allowed distance between X-Request-Timestamp and server time (ms)"
    )
    sign_responses: bool = Field(False, description="Add X-Response-Signature to signed endpoints")

    # ============================================================
    # API Configuration
    # ============================================================
    allowed_origins: str = Field(
        "http://localhost:3000,http://localhost:8000",
        description="Comma-separated CORS allowed origins"
    )
    api_port: int = Field(8000, description="API server port")

    # ============================================================
    # Logging Configuration
    # ============================================================
    log_level: str = Field("INFO", description="Logging level (DEBUG/INFO/WARNING/ERROR)")
    log_format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string"
    )

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse allowed origins into list."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get application settings (singleton).

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings():
    """Reload settings from environment (useful for testing)."""
    global _settings
    _settings = Settings()
    return _settings
