"""Kubernetes access services.

Per-request managers that act on behalf of one principal: listing,
watching, bulk import and single-object operations, plus the kind
resolver and permission gate they share.
"""

from kubegate.services.kubernetes.import_manager import ImportManager
from kubegate.services.kubernetes.kind_resolver import KindResolver
from kubegate.services.kubernetes.permissions import (
    ClaimsPermissionSource,
    PermissionGate,
    PermissionSource,
)
from kubegate.services.kubernetes.resource_list_manager import ResourceListManager
from kubegate.services.kubernetes.resource_manager import ResourceManager
from kubegate.services.kubernetes.watch_manager import (
    WatchHandle,
    WatchManager,
    WatchSession,
    WatchState,
)

__all__ = [
    "ClaimsPermissionSource",
    "ImportManager",
    "KindResolver",
    "PermissionGate",
    "PermissionSource",
    "ResourceListManager",
    "ResourceManager",
    "WatchHandle",
    "WatchManager",
    "WatchSession",
    "WatchState",
]
