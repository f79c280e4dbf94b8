"""
Database model for per-user service configurations.

One row per (user, service). Credentials are encrypted with the credential
vault (core/encryption.py) before storage and decrypted on retrieval by the
configuration store; this model never holds plaintext secrets.

Security:
    - api_key_encrypted and password_encrypted hold vault blobs
    - Changing ENCRYPTION_KEY invalidates all encrypted values
    - Never expose encrypted values in responses or logs
"""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, String, Text, UniqueConstraint
from sqlmodel import Field, SQLModel

from mediahub.core.time_utils import utc_now


class ServiceConfig(SQLModel, table=True):
    """
    A user's connection settings for one integrated service.

    Fields:
        user_id: Owner of the configuration
        service_name: Registry identifier (e.g. "radarr")
        base_url: Service base URL, stored without trailing slashes
        api_key_encrypted: Encrypted API key (or "username:password" for form-login services)
        username: Optional login name for form-login services
        password_encrypted: Optional encrypted password for form-login services
        is_enabled: Whether capabilities for this service are exposed
    """
    __tablename__ = "service_config"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    user_id: str = Field(
        sa_column=Column(String(255), nullable=False, index=True)
    )

    service_name: str = Field(
        sa_column=Column(String(50), nullable=False, index=True),
        description="Registry service identifier"
    )

    base_url: str = Field(
        sa_column=Column(String(512), nullable=False),
        description="Service base URL (e.g., http://radarr.local:7878)"
    )

    # Encrypted credentials (text to accommodate variable-length blobs)
    api_key_encrypted: str = Field(
        sa_column=Column(Text, nullable=False),
        description="Encrypted API key"
    )

    username: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True)
    )

    password_encrypted: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
        description="Encrypted password for form-login services"
    )

    is_enabled: bool = Field(default=True)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    __table_args__ = (
        # One configuration per user per service
        UniqueConstraint("user_id", "service_name", name="uq_user_service"),
    )
