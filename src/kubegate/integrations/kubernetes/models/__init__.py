"""Gateway data models."""

from kubegate.integrations.kubernetes.models.discovery import (
    DiscoveredGroup,
    DiscoveredResource,
    DiscoveryResult,
)
from kubegate.integrations.kubernetes.models.principal import (
    ADMIN_ROLE,
    Action,
    PermissionScope,
    Principal,
    RestrictedTo,
    Unrestricted,
)
from kubegate.integrations.kubernetes.models.resource import (
    ImportOutcome,
    Resource,
    ResourceCoordinates,
    WatchEvent,
    WatchEventType,
)

__all__ = [
    "ADMIN_ROLE",
    "Action",
    "DiscoveredGroup",
    "DiscoveredResource",
    "DiscoveryResult",
    "ImportOutcome",
    "PermissionScope",
    "Principal",
    "Resource",
    "ResourceCoordinates",
    "RestrictedTo",
    "Unrestricted",
    "WatchEvent",
    "WatchEventType",
]
