"""
Integrations with self-hosted media services.

Architecture:
- schemas.py: ServiceConfiguration and capability categories
- auth.py: Auth strategies (API key header, bearer template, form login, none)
- session_cache.py: Shared login sessions for form-login services
- client.py: Resilient per-service HTTP client (auth, retry, error translation)
- errors.py: Error taxonomy, error-body parsers and the user-facing formatter
- store.py: Encrypted per-user configuration store
- base.py: Capability and ServiceDefinition building blocks
- health.py: Health probes
- registry.py: SERVICE_REGISTRY, capability gating and health checks
- {service}.py: One module per service (radarr, sonarr, jellyfin, jellyseerr, qbittorrent)

Adding a service:
- Create a {service}.py module with a ServiceClient, capability handlers and a ServiceDefinition
- Register it in SERVICE_REGISTRY in registry.py
"""

from mediahub.integrations.errors import (
    ServiceClientError,
    ServiceConfigurationError,
    ServiceLockoutError,
    format_tool_error,
)
from mediahub.integrations.schemas import CapabilityCategory, ServiceConfiguration

__all__ = [
    "CapabilityCategory",
    "ServiceClientError",
    "ServiceConfiguration",
    "ServiceConfigurationError",
    "ServiceLockoutError",
    "format_tool_error",
]
