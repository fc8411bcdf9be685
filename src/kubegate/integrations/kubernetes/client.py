"""Kubernetes API client wrapper.

One ``KubernetesClient`` is one authenticated connection to one cluster. It
hands out typed API groups on demand, addresses arbitrary kinds through the
dynamic client by resolved coordinates, sweeps the discovery endpoints and
turns upstream exceptions into gateway errors. Calls are never retried; a
failure is terminal for the request that made it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

import structlog
import urllib3

from kubegate.integrations.kubernetes.exceptions import (
    KubernetesAuthError,
    KubernetesConflictError,
    KubernetesConnectionError,
    KubernetesError,
    KubernetesNotFoundError,
    KubernetesTimeoutError,
    KubernetesValidationError,
)
from kubegate.integrations.kubernetes.models.discovery import (
    DiscoveredGroup,
    DiscoveredResource,
    DiscoveryResult,
)

if TYPE_CHECKING:
    from kubernetes.client import (
        ApiClient,
        ApisApi,
        AppsV1Api,
        AutoscalingV2Api,
        BatchV1Api,
        CoreV1Api,
        NetworkingV1Api,
        RbacAuthorizationV1Api,
        StorageV1Api,
    )
    from kubernetes.dynamic import DynamicClient
    from kubernetes.dynamic.resource import Resource as DynamicResource

    from kubegate.integrations.kubernetes.config import KubeGateConfig
    from kubegate.integrations.kubernetes.models.resource import ResourceCoordinates

logger = structlog.get_logger()

# Accessor name -> class in ``kubernetes.client``.
TYPED_APIS: dict[str, str] = {
    "core_v1": "CoreV1Api",
    "apps_v1": "AppsV1Api",
    "batch_v1": "BatchV1Api",
    "autoscaling_v2": "AutoscalingV2Api",
    "networking_v1": "NetworkingV1Api",
    "rbac_v1": "RbacAuthorizationV1Api",
    "storage_v1": "StorageV1Api",
    "apis": "ApisApi",
}


class KubernetesClient:
    """Authenticated handle on one cluster's API.

    Credentials come from the active cluster's kubeconfig and context, or
    from the in-cluster service account when no kubeconfig can be loaded.

    Example:
        ```python
        config = KubeGateConfig.from_env()
        with KubernetesClient(config) as client:
            coords = KindResolver(discover=client.discover_api_resources).resolve("Deployment")
            handle = client.resource_for(coords, "Deployment")
        ```
    """

    def __init__(self, config: KubeGateConfig) -> None:
        self._config = config
        self._context: str | None = None
        self._api_client: ApiClient | None = None
        self._apis: dict[str, Any] = {}
        self._dynamic: DynamicClient | None = None

        self._connect()

        logger.info(
            "kubernetes_client_initialized",
            context=self._context,
            default_namespace=config.get_active_namespace(),
        )

    def _connect(self) -> None:
        from kubernetes import config
        from kubernetes.config import ConfigException

        context = self._config.get_active_context()
        kubeconfig = self._config.get_active_kubeconfig()

        try:
            config.load_kube_config(config_file=kubeconfig, context=context)
            self._context = context
            logger.debug("loaded_kubeconfig", context=context, kubeconfig=kubeconfig)
        except ConfigException:
            try:
                config.load_incluster_config()
            except ConfigException as e:
                raise KubernetesConnectionError(
                    message="Cannot load Kubernetes configuration: no usable kubeconfig "
                    "and not running inside a cluster",
                    original_error=e,
                ) from e
            self._context = "in-cluster"
            logger.debug("loaded_incluster_config")

        self._reset()

    def _reset(self) -> None:
        self._api_client = None
        self._apis.clear()
        self._dynamic = None

    # =========================================================================
    # API Handles
    # =========================================================================

    @property
    def api_client(self) -> ApiClient:
        """Shared low-level ApiClient behind every typed group and the dynamic client."""
        if self._api_client is None:
            from kubernetes.client import ApiClient

            self._api_client = ApiClient()
        return self._api_client

    def _typed_api(self, name: str) -> Any:
        api = self._apis.get(name)
        if api is None:
            import kubernetes.client

            api = getattr(kubernetes.client, TYPED_APIS[name])(self.api_client)
            self._apis[name] = api
        return api

    @property
    def core_v1(self) -> CoreV1Api:
        """Pods, services, config maps, secrets, nodes, namespaces, volumes."""
        return cast("CoreV1Api", self._typed_api("core_v1"))

    @property
    def apps_v1(self) -> AppsV1Api:
        """Deployments, replica sets, stateful sets, daemon sets."""
        return cast("AppsV1Api", self._typed_api("apps_v1"))

    @property
    def batch_v1(self) -> BatchV1Api:
        """Jobs and cron jobs."""
        return cast("BatchV1Api", self._typed_api("batch_v1"))

    @property
    def autoscaling_v2(self) -> AutoscalingV2Api:
        return cast("AutoscalingV2Api", self._typed_api("autoscaling_v2"))

    @property
    def networking_v1(self) -> NetworkingV1Api:
        """Ingresses and network policies."""
        return cast("NetworkingV1Api", self._typed_api("networking_v1"))

    @property
    def rbac_v1(self) -> RbacAuthorizationV1Api:
        """Roles, cluster roles and their bindings."""
        return cast("RbacAuthorizationV1Api", self._typed_api("rbac_v1"))

    @property
    def storage_v1(self) -> StorageV1Api:
        return cast("StorageV1Api", self._typed_api("storage_v1"))

    @property
    def apis_api(self) -> ApisApi:
        """Named API group list used by discovery."""
        return cast("ApisApi", self._typed_api("apis"))

    @property
    def dynamic(self) -> DynamicClient:
        """Dynamic client used for coordinate-addressed calls."""
        if self._dynamic is None:
            from kubernetes.dynamic import DynamicClient

            self._dynamic = DynamicClient(self.api_client)
        return self._dynamic

    # =========================================================================
    # Coordinate Addressing
    # =========================================================================

    def resource_for(self, coordinates: ResourceCoordinates, kind: str = "") -> DynamicResource:
        """Build a dynamic resource handle for resolved coordinates.

        The handle is built directly from the coordinates rather than looked
        up through the dynamic client's own discovery cache, so the
        coordinates the caller resolved are exactly the ones addressed.

        Args:
            coordinates: Resolved group, version, resource and scope.
            kind: Kind name carried on the handle for error messages.

        Returns:
            A handle supporting get, server_side_apply, delete and watch.
        """
        from kubernetes.dynamic.resource import Resource as DynamicResource

        return DynamicResource(
            prefix=coordinates.api_prefix,
            group=coordinates.group,
            api_version=coordinates.version,
            kind=kind or coordinates.resource,
            namespaced=coordinates.namespaced,
            name=coordinates.resource,
            client=self.dynamic,
        )

    # =========================================================================
    # Discovery
    # =========================================================================

    def discover_api_resources(self) -> DiscoveryResult:
        """Sweep the discovery endpoints for every served resource.

        The core group comes first, followed by the preferred version of
        each named group in server order. A group whose resource list cannot
        be read is recorded in ``failed_groups`` and the sweep continues.

        Returns:
            Discovered groups and per-group failures.

        Raises:
            KubernetesError: If the group list itself cannot be read.
        """
        result = DiscoveryResult()
        try:
            core_resources = self.core_v1.get_api_resources(_request_timeout=self.timeout)
            group_list = self.apis_api.get_api_versions(_request_timeout=self.timeout)
        except Exception as e:
            raise self.translate_api_exception(e, resource_type="APIDiscovery") from e

        result.groups.append(_discovered_group("v1", core_resources))

        for group in group_list.groups or []:
            preferred = group.preferred_version or (group.versions[0] if group.versions else None)
            if preferred is None:
                continue
            group_version = preferred.group_version
            try:
                resource_list = self.api_client.call_api(
                    f"/apis/{group_version}",
                    "GET",
                    header_params={"Accept": "application/json"},
                    response_type="V1APIResourceList",
                    auth_settings=["BearerToken"],
                    _return_http_data_only=True,
                    _request_timeout=self.timeout,
                )
            except Exception as e:
                result.failed_groups[group_version] = str(e)
                continue
            result.groups.append(_discovered_group(group_version, resource_list))

        logger.debug(
            "discovered_api_resources",
            groups=len(result.groups),
            failed=len(result.failed_groups),
        )
        return result

    # =========================================================================
    # Error Translation
    # =========================================================================

    @staticmethod
    def translate_api_exception(
        e: Exception,
        resource_type: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
    ) -> KubernetesError:
        """Map an upstream failure onto the gateway error hierarchy.

        Gateway errors pass through untouched. Client-side deadlines become
        ``KubernetesTimeoutError``; ``ApiException`` statuses map to the
        auth, not-found, conflict and validation errors; anything else is a
        plain ``KubernetesError`` carrying the object context.
        """
        from kubernetes.client import ApiException

        if isinstance(e, KubernetesError):
            return e
        if isinstance(e, urllib3.exceptions.TimeoutError):
            return KubernetesTimeoutError(message=f"Request timed out: {e}")

        target: dict[str, Any] = {
            "resource_type": resource_type,
            "resource_name": resource_name,
            "namespace": namespace,
        }
        if not isinstance(e, ApiException):
            return KubernetesError(message=str(e), **target)

        status = e.status
        if status in (401, 403):
            return KubernetesAuthError(
                message=e.reason or "Upstream API rejected the gateway credentials",
                status_code=status,
                reason=e.reason,
            )
        if status == 404:
            return KubernetesNotFoundError(**target)
        if status == 409:
            return KubernetesConflictError(**target)
        if status in (400, 422):
            return KubernetesValidationError(
                message=e.reason or "Rejected by the API server",
                status_code=status,
                **target,
            )
        return KubernetesError(
            message=e.reason or f"Kubernetes API error: {status}", status_code=status, **target
        )

    # =========================================================================
    # Active Cluster
    # =========================================================================

    @property
    def default_namespace(self) -> str:
        """Namespace used when a call names none."""
        return self._config.get_active_namespace()

    @property
    def timeout(self) -> int:
        """Per-call request deadline in seconds."""
        return self._config.get_active_timeout()

    def get_current_context(self) -> str:
        """Kubeconfig context in use, or ``in-cluster``."""
        return self._context or "unknown"

    def close(self) -> None:
        """Release pooled connections and forget every cached handle."""
        if self._api_client is not None:
            self._api_client.close()
        self._reset()
        logger.debug("kubernetes_client_closed")

    def __enter__(self) -> KubernetesClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


def _discovered_group(group_version: str, resource_list: Any) -> DiscoveredGroup:
    resources = tuple(
        DiscoveredResource(kind=r.kind, name=r.name, namespaced=bool(r.namespaced))
        for r in (getattr(resource_list, "resources", None) or [])
    )
    return DiscoveredGroup(group_version=group_version, resources=resources)
