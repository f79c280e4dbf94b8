"""
Service registry and capability gating.

The set of integrated services is fixed: SERVICE_REGISTRY lists every
ServiceDefinition explicitly. To add a service:
- Implement a module exposing a ServiceDefinition (see radarr.py)
- Add it to SERVICE_REGISTRY

Gating: a service contributes capabilities only when the user's
configuration for it has ``is_enabled is True``. Capabilities marked
``requires_approval`` are instantiated like any other; enforcing the
approval step is the invoking layer's job, the registry only carries the flag.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from mediahub.core.exceptions import ServiceNotFoundError
from mediahub.core.logging_config import LogCategory, log_info, log_warning
from mediahub.integrations.base import BoundCapability, CapabilityContext, ServiceDefinition
from mediahub.integrations.jellyfin import JELLYFIN
from mediahub.integrations.jellyseerr import JELLYSEERR
from mediahub.integrations.qbittorrent import QBITTORRENT
from mediahub.integrations.radarr import RADARR
from mediahub.integrations.schemas import ServiceConfiguration
from mediahub.integrations.sonarr import SONARR

# ================================================================================
# SERVICE REGISTRY
# ================================================================================

SERVICE_REGISTRY: List[ServiceDefinition] = [
    RADARR,
    SONARR,
    JELLYFIN,
    JELLYSEERR,
    QBITTORRENT,
]

_SERVICES_BY_NAME: Dict[str, ServiceDefinition] = {service.name: service for service in SERVICE_REGISTRY}


def get_service(service_name: str) -> ServiceDefinition:
    """
    Get a service definition by name.

    Raises:
        ServiceNotFoundError: If the service is not registered
    """
    service = _SERVICES_BY_NAME.get(service_name)
    if service is None:
        raise ServiceNotFoundError(service_name)
    return service


def get_all_services() -> List[ServiceDefinition]:
    return list(SERVICE_REGISTRY)


def get_service_names() -> List[str]:
    return [service.name for service in SERVICE_REGISTRY]


def _is_enabled(configs: Mapping[str, ServiceConfiguration], service_name: str) -> bool:
    config = configs.get(service_name)
    return config is not None and config.is_enabled is True


def get_enabled_services(configs: Mapping[str, ServiceConfiguration]) -> List[ServiceDefinition]:
    """Services whose configuration is present and enabled, in registry order."""
    return [service for service in SERVICE_REGISTRY if _is_enabled(configs, service.name)]


def get_capability_names_for_service(service_name: str) -> List[str]:
    return list(get_service(service_name).capabilities)


def get_capability_metadata(capability_name: str) -> Optional[Dict[str, Any]]:
    """Describe a capability without instantiating it; None if no service declares it."""
    for service in SERVICE_REGISTRY:
        capability = service.capabilities.get(capability_name)
        if capability is not None:
            return {
                "name": capability.name,
                "service_name": service.name,
                "display_name": capability.display_name,
                "category": capability.category.value,
                "description": capability.description,
                "requires_approval": capability.requires_approval,
            }
    return None


def capability_requires_approval(capability_name: str) -> bool:
    metadata = get_capability_metadata(capability_name)
    return bool(metadata and metadata["requires_approval"])


# ================================================================================
# CAPABILITY GATING
# ================================================================================

@dataclass
class EnabledCapabilities:
    """Capabilities available to one user, keyed by capability name."""
    capabilities: Dict[str, BoundCapability] = field(default_factory=dict)
    names: List[str] = field(default_factory=list)

    @property
    def approval_required(self) -> List[str]:
        return [name for name in self.names if self.capabilities[name].requires_approval]


def get_enabled_capabilities(
    user_id: str,
    configs: Mapping[str, ServiceConfiguration],
    request_id: Optional[str] = None,
) -> EnabledCapabilities:
    """
    Instantiate every capability of every enabled service for a user.

    Args:
        user_id: User the capabilities are bound to
        configs: The user's configurations keyed by service name
        request_id: Optional request ID carried into the capability context

    Returns:
        EnabledCapabilities with the bound capabilities and their names
    """
    context = CapabilityContext(user_id=user_id, request_id=request_id)
    enabled = EnabledCapabilities()

    for service in get_enabled_services(configs):
        for name, capability in service.capabilities.items():
            enabled.capabilities[name] = capability.create(service, context)
            enabled.names.append(name)

    log_info(
        "Resolved enabled capabilities",
        request_id=request_id,
        category=LogCategory.SERVICES,
        user_id=user_id,
        capability_count=len(enabled.names),
    )
    return enabled


# ================================================================================
# HEALTH
# ================================================================================

async def check_service_health(service_name: str, config: ServiceConfiguration) -> bool:
    """
    Probe a service with the given configuration.

    Returns False for unknown services and for any probe failure; True for
    services that declare no probe.
    """
    service = _SERVICES_BY_NAME.get(service_name)
    if service is None:
        log_warning(f"Health check requested for unknown service: {service_name}", category=LogCategory.SERVICES)
        return False
    if service.health_check is None:
        return True

    try:
        healthy = await service.health_check(config, service.client)
    except Exception as e:
        log_warning(
            f"{service.display_name} health check failed",
            category=LogCategory.SERVICES,
            error=f"{type(e).__name__}: {e}",
        )
        return False
    return bool(healthy)
