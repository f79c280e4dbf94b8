"""
Pydantic schemas shared by the integration framework.

Value Objects:
- ServiceConfiguration: Decrypted, in-memory view of a stored service configuration
- CapabilityCategory: Grouping used when presenting capabilities

Design Principles:
- Decrypted credentials only ever live in ServiceConfiguration instances
- Credential fields are excluded from repr so they never leak into logs
"""
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, Field, field_validator


class ServiceConfiguration(BaseModel):
    """
    A user's decrypted configuration for one service.

    Re-read from the configuration store on every capability invocation;
    never cached beyond the call that fetched it.
    """
    user_id: str
    service_name: str = Field(..., description="Registry identifier, e.g. 'radarr'")
    base_url: str = Field(..., description="Service base URL without trailing slashes")
    api_key: str = Field(
        default="",
        repr=False,
        description="API key, or 'username:password' for form-login services"
    )
    username: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)
    is_enabled: bool = True

    @field_validator('base_url', mode='before')
    @classmethod
    def normalize_base_url(cls, v):
        """Remove trailing slashes from base URL for consistency."""
        if v is None:
            return v
        return str(v).strip().rstrip('/')

    def login_credentials(self) -> Optional[Tuple[str, str]]:
        """
        Return (username, password) for form-login services.

        Explicit username/password fields win; otherwise the api key is split on
        its first colon. Returns None when neither shape is present.
        """
        if self.username and self.password is not None:
            return self.username, self.password
        if self.api_key and ':' in self.api_key:
            username, password = self.api_key.split(':', 1)
            return username, password
        return None


class CapabilityCategory(str, Enum):
    """Categories of capabilities for grouping."""
    SEARCH = "search"
    LIBRARY = "library"
    QUEUE = "queue"
    CALENDAR = "calendar"
    DOWNLOAD = "download"
    REQUEST = "request"
    DISCOVERY = "discovery"
    PLAYBACK = "playback"
    MANAGEMENT = "management"
