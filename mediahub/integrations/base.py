"""
Building blocks of the service catalog.

- Capability: a named operation a service exposes, with its category and
  whether the invoking layer must ask the user before running it
- BoundCapability: a Capability bound to one user, ready to be invoked
- ServiceDefinition: one integrated service (client, capabilities, health probe)

Service definitions are plain immutable values created at import time and
listed explicitly in registry.py.
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from mediahub.integrations.auth import AuthStrategy
from mediahub.integrations.client import ServiceClient
from mediahub.integrations.schemas import CapabilityCategory, ServiceConfiguration

CapabilityHandler = Callable[..., Awaitable[Dict[str, Any]]]
HealthCheck = Callable[[ServiceConfiguration, ServiceClient], Awaitable[bool]]


@dataclass(frozen=True)
class CapabilityContext:
    """Who a capability is being instantiated for."""
    user_id: str
    request_id: Optional[str] = None


@dataclass(frozen=True)
class BoundCapability:
    """A capability bound to a user; call it with the capability's parameters."""
    name: str
    service_name: str
    display_name: str
    category: CapabilityCategory
    description: str
    requires_approval: bool
    context: CapabilityContext
    client: ServiceClient = field(repr=False)
    handler: CapabilityHandler = field(repr=False)

    async def __call__(self, **params) -> Dict[str, Any]:
        return await self.handler(self.client, self.context.user_id, **params)


@dataclass(frozen=True)
class Capability:
    """
    A named operation exposed by a service.

    Fields:
        name: Unique capability identifier (e.g. "searchRadarrMovies")
        display_name: Human-readable label
        category: Grouping for presentation
        description: What the capability does, for the orchestration layer
        handler: ``async (client, user_id, **params) -> dict``
        requires_approval: The invoking layer must confirm with the user first
    """
    name: str
    display_name: str
    category: CapabilityCategory
    description: str
    handler: CapabilityHandler = field(repr=False)
    requires_approval: bool = False

    def create(self, service: "ServiceDefinition", context: CapabilityContext) -> BoundCapability:
        """Instantiate this capability for one user."""
        return BoundCapability(
            name=self.name,
            service_name=service.name,
            display_name=self.display_name,
            category=self.category,
            description=self.description,
            requires_approval=self.requires_approval,
            context=context,
            client=service.client,
            handler=self.handler,
        )


@dataclass(frozen=True)
class ServiceDefinition:
    """
    One integrated external service.

    Fields:
        name: Registry identifier, matches ServiceConfiguration.service_name
        display_name: Human-readable name
        description: What the service does
        client: Resilient client used by every capability of the service
        capabilities: Capability name → Capability
        health_check: Probe ``(config, client) -> bool``; None means always healthy
    """
    name: str
    display_name: str
    description: str
    client: ServiceClient = field(repr=False)
    capabilities: Mapping[str, Capability] = field(default_factory=dict)
    health_check: Optional[HealthCheck] = field(default=None, repr=False)

    def __post_init__(self):
        object.__setattr__(self, "capabilities", MappingProxyType(dict(self.capabilities)))

    @property
    def auth_strategy(self) -> AuthStrategy:
        return self.client.auth_strategy

    @property
    def api_version(self) -> str:
        return self.client.api_version


def capability_map(*capabilities: Capability) -> Dict[str, Capability]:
    """Key capabilities by name, rejecting duplicates."""
    result: Dict[str, Capability] = {}
    for capability in capabilities:
        if capability.name in result:
            raise ValueError(f"Duplicate capability name: {capability.name}")
        result[capability.name] = capability
    return result
