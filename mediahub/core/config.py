"""
Application configuration using pydantic-settings.
"""
import logging
from pathlib import Path
from typing import Optional

from pydantic import field_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_SQLITE_URL = "sqlite:///./data/mediahub.db"

# Minimum length of ENCRYPTION_KEY accepted by the credential vault
MIN_ENCRYPTION_KEY_LENGTH = 32

# Define the project root directory
PROJECT_ROOT = Path(__file__).parent.parent.parent.resolve()


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = "MediaHub Services"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"

    # Database Configuration
    database_url: str = DEFAULT_SQLITE_URL

    # Credential vault
    # Master secret for AES-256-GCM credential encryption. Validated by the vault
    # on every read so that a missing key fails at configuration-read time.
    encryption_key: Optional[str] = None
    encryption_scrypt_n: int = 2 ** 14
    encryption_scrypt_r: int = 8
    encryption_scrypt_p: int = 1

    # Outbound HTTP
    http_timeout_seconds: float = 30.0

    # Retry policy defaults
    retry_max_retries: int = 3
    retry_base_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 30.0

    # Form-login session cache (upstream sessions expire after 60 minutes)
    form_session_ttl_seconds: int = 55 * 60

    # Logging
    log_level: str = "INFO"
    log_dir: str = "./data/logs"
    log_to_file: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def encryption_configured(self) -> bool:
        """Whether ENCRYPTION_KEY is set and long enough for the vault."""
        return bool(self.encryption_key) and len(self.encryption_key) >= MIN_ENCRYPTION_KEY_LENGTH

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Fall back to the SQLite default for blank URLs."""
        if not v or not v.strip():
            logger.info(
                "DATABASE_URL not provided; defaulting to SQLite at %s", DEFAULT_SQLITE_URL
            )
            return DEFAULT_SQLITE_URL
        return v.strip()

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return (v or "INFO").strip().upper()

    @field_validator('encryption_key')
    @classmethod
    def warn_short_encryption_key(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        """Warn early about a weak ENCRYPTION_KEY; the vault enforces the minimum."""
        if v is not None and not v.strip():
            return None
        if v and len(v) < MIN_ENCRYPTION_KEY_LENGTH:
            logger.warning(
                f"ENCRYPTION_KEY is only {len(v)} characters long. "
                f"At least {MIN_ENCRYPTION_KEY_LENGTH} characters are required. "
                "Generate a secure key with: openssl rand -base64 32"
            )
        return v

    @field_validator('http_timeout_seconds', 'retry_base_delay_seconds', 'retry_max_delay_seconds',
                     'form_session_ttl_seconds')
    @classmethod
    def validate_positive(cls, v, info: ValidationInfo):
        if v <= 0:
            raise ValueError(f"{info.field_name.upper()} must be greater than zero")
        return v

    @field_validator('retry_max_retries')
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("RETRY_MAX_RETRIES must not be negative")
        return v


settings = Settings()
