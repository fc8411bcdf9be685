"""Kubernetes integration - API client, configuration and exceptions."""

from kubegate.integrations.kubernetes.client import KubernetesClient
from kubegate.integrations.kubernetes.config import (
    AccessConfig,
    ClusterConfig,
    KubeGateConfig,
    load_config,
)
from kubegate.integrations.kubernetes.exceptions import (
    ImportAbortedError,
    KubernetesAuthError,
    KubernetesConflictError,
    KubernetesConnectionError,
    KubernetesError,
    KubernetesNotFoundError,
    KubernetesTimeoutError,
    KubernetesValidationError,
    PermissionDeniedError,
    ResourceResolutionError,
    WatchEventError,
)

__all__ = [
    "AccessConfig",
    "ClusterConfig",
    "ImportAbortedError",
    "KubeGateConfig",
    "KubernetesAuthError",
    "KubernetesClient",
    "KubernetesConflictError",
    "KubernetesConnectionError",
    "KubernetesError",
    "KubernetesNotFoundError",
    "KubernetesTimeoutError",
    "KubernetesValidationError",
    "PermissionDeniedError",
    "ResourceResolutionError",
    "WatchEventError",
    "load_config",
]
