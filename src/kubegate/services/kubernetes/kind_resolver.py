"""Kind to API coordinate resolution.

Resolution runs through three tiers in strict order: a static table of
well-known kinds, the cluster's discovery endpoints, and finally a naive
pluralization guess. The static table is authoritative; nothing found by
the later tiers can override it.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

import structlog

from kubegate.integrations.kubernetes.exceptions import (
    KubernetesError,
    KubernetesValidationError,
    ResourceResolutionError,
)
from kubegate.integrations.kubernetes.models.resource import ResourceCoordinates

if TYPE_CHECKING:
    from kubegate.integrations.kubernetes.models.discovery import DiscoveryResult

logger = structlog.get_logger()

DiscoverySource = Callable[[], "DiscoveryResult"]

KIND_ALIASES: dict[str, str] = {
    "hpa": "HorizontalPodAutoscaler",
    "pvc": "PersistentVolumeClaim",
    "pv": "PersistentVolume",
    "sc": "StorageClass",
    "sa": "ServiceAccount",
    "cr": "ClusterRole",
    "crb": "ClusterRoleBinding",
    "rb": "RoleBinding",
}


def _core(resource: str, namespaced: bool = True) -> ResourceCoordinates:
    return ResourceCoordinates(group="", version="v1", resource=resource, namespaced=namespaced)


def _grouped(
    group: str, version: str, resource: str, namespaced: bool = True
) -> ResourceCoordinates:
    return ResourceCoordinates(
        group=group, version=version, resource=resource, namespaced=namespaced
    )


STATIC_KINDS: dict[str, ResourceCoordinates] = {
    # core/v1
    "Pod": _core("pods"),
    "ConfigMap": _core("configmaps"),
    "Secret": _core("secrets"),
    "Service": _core("services"),
    "ServiceAccount": _core("serviceaccounts"),
    "PersistentVolumeClaim": _core("persistentvolumeclaims"),
    "ResourceQuota": _core("resourcequotas"),
    "LimitRange": _core("limitranges"),
    "Event": _core("events"),
    "Node": _core("nodes", namespaced=False),
    "Namespace": _core("namespaces", namespaced=False),
    "PersistentVolume": _core("persistentvolumes", namespaced=False),
    # apps/v1
    "Deployment": _grouped("apps", "v1", "deployments"),
    "ReplicaSet": _grouped("apps", "v1", "replicasets"),
    "StatefulSet": _grouped("apps", "v1", "statefulsets"),
    "DaemonSet": _grouped("apps", "v1", "daemonsets"),
    # batch/v1
    "Job": _grouped("batch", "v1", "jobs"),
    "CronJob": _grouped("batch", "v1", "cronjobs"),
    # autoscaling/v2
    "HorizontalPodAutoscaler": _grouped("autoscaling", "v2", "horizontalpodautoscalers"),
    # networking.k8s.io/v1
    "Ingress": _grouped("networking.k8s.io", "v1", "ingresses"),
    "NetworkPolicy": _grouped("networking.k8s.io", "v1", "networkpolicies"),
    # storage.k8s.io/v1
    "StorageClass": _grouped("storage.k8s.io", "v1", "storageclasses", namespaced=False),
    # rbac.authorization.k8s.io/v1
    "Role": _grouped("rbac.authorization.k8s.io", "v1", "roles"),
    "RoleBinding": _grouped("rbac.authorization.k8s.io", "v1", "rolebindings"),
    "ClusterRole": _grouped("rbac.authorization.k8s.io", "v1", "clusterroles", namespaced=False),
    "ClusterRoleBinding": _grouped(
        "rbac.authorization.k8s.io", "v1", "clusterrolebindings", namespaced=False
    ),
}

# Kinds whose naive "<lowercase>s" guess lands in the wrong group or version
INFERENCE_OVERRIDES: dict[str, ResourceCoordinates] = {
    "HorizontalPodAutoscaler": STATIC_KINDS["HorizontalPodAutoscaler"],
}

_CANONICAL_BY_LOWER = {kind.lower(): kind for kind in STATIC_KINDS}


def normalize_kind(kind: str) -> str:
    """Expand short aliases and fix the casing of well-known kinds.

    Unknown kinds are returned stripped but otherwise untouched, since
    discovery matches kinds exactly.
    """
    stripped = kind.strip()
    lowered = stripped.lower()
    if lowered in KIND_ALIASES:
        return KIND_ALIASES[lowered]
    return _CANONICAL_BY_LOWER.get(lowered, stripped)


def hint_forces_cluster_scope(namespaced_hint: bool | str | None) -> bool:
    """True only for an explicit false hint (``False`` or ``"false"``)."""
    if isinstance(namespaced_hint, str):
        return namespaced_hint.strip().lower() == "false"
    return namespaced_hint is False


class KindResolver:
    """Resolves textual kinds to ``ResourceCoordinates``.

    Args:
        discover: Callable returning a discovery sweep, usually
            ``KubernetesClient.discover_api_resources``. When None the
            discovery tier is skipped.
    """

    def __init__(self, discover: DiscoverySource | None = None) -> None:
        self._discover = discover
        self._log = logger.bind(entity="kind_resolver")

    def resolve(
        self,
        kind: str,
        api_version: str = "",
        namespaced_hint: bool | str | None = None,
    ) -> ResourceCoordinates:
        """Resolve a kind through the static, discovery and inference tiers.

        Args:
            kind: Kind name or alias (e.g. "Deployment", "hpa").
            api_version: The manifest's apiVersion, used by inference.
            namespaced_hint: An explicit false forces cluster scope.

        Returns:
            The resolved coordinates.

        Raises:
            KubernetesValidationError: If kind is empty.
            ResourceResolutionError: If discovery fails globally.
        """
        canonical = self._require_kind(kind)

        coordinates = STATIC_KINDS.get(canonical)
        tier = "static"
        if coordinates is None:
            coordinates = self._from_discovery(canonical)
            tier = "discovery"
        if coordinates is None:
            coordinates = self._infer(canonical, api_version)
            tier = "inferred"

        if hint_forces_cluster_scope(namespaced_hint):
            coordinates = coordinates.with_scope(False)

        self._log.debug(
            "resolved_kind",
            kind=canonical,
            tier=tier,
            group=coordinates.group,
            version=coordinates.version,
            resource=coordinates.resource,
            namespaced=coordinates.namespaced,
        )
        return coordinates

    def resolve_static(
        self,
        kind: str,
        namespaced_hint: bool | str | None = None,
    ) -> ResourceCoordinates:
        """Resolve using only the static table.

        Used where a wrong guess cannot be tolerated, such as long-lived
        watches.

        Raises:
            KubernetesValidationError: If kind is empty.
            ResourceResolutionError: If the kind is not in the static table.
        """
        canonical = self._require_kind(kind)
        coordinates = STATIC_KINDS.get(canonical)
        if coordinates is None:
            raise ResourceResolutionError(
                message=f"Unsupported resource kind '{canonical}'",
                kind=canonical,
            )
        if hint_forces_cluster_scope(namespaced_hint):
            coordinates = coordinates.with_scope(False)
        return coordinates

    @staticmethod
    def _require_kind(kind: str | None) -> str:
        if not kind or not kind.strip():
            raise KubernetesValidationError(message="Resource kind is required", status_code=400)
        return normalize_kind(kind)

    def _from_discovery(self, kind: str) -> ResourceCoordinates | None:
        if self._discover is None:
            return None

        try:
            result = self._discover()
        except KubernetesError as e:
            raise ResourceResolutionError(
                message=f"API discovery failed while resolving '{kind}': {e.message}",
                kind=kind,
                original_error=e,
            ) from e

        for group_version, error in result.failed_groups.items():
            self._log.warning("discovery_group_failed", group_version=group_version, error=error)

        for group in result.groups:
            for discovered in group.resources:
                if discovered.kind == kind and not discovered.is_subresource:
                    return ResourceCoordinates.from_api_version(
                        group.group_version,
                        resource=discovered.name,
                        namespaced=discovered.namespaced,
                    )
        return None

    @staticmethod
    def _infer(kind: str, api_version: str) -> ResourceCoordinates:
        if kind in INFERENCE_OVERRIDES:
            return INFERENCE_OVERRIDES[kind]
        return ResourceCoordinates.from_api_version(
            api_version.strip(),
            resource=f"{kind.lower()}s",
            namespaced=True,
        )
