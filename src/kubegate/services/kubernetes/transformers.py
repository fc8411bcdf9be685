"""Kind-keyed transformers from raw API objects to ``Resource`` envelopes.

``TRANSFORMERS`` maps a canonical kind name to a function
``(client, namespace, options) -> list[Resource]``. A namespace of None
means "all namespaces" for namespaced kinds and is ignored for
cluster-scoped kinds. Registering a new kind is one ``_register`` call
with a mapper returning ``(status, details)``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from kubegate.integrations.kubernetes.models.base import (
    _get_annotations,
    _get_labels,
    _rfc3339,
    _safe_get,
    _to_plain,
)
from kubegate.integrations.kubernetes.models.resource import Resource

if TYPE_CHECKING:
    from kubegate.integrations.kubernetes.client import KubernetesClient

ACTIVE = "Active"


@dataclass(frozen=True)
class ListOptions:
    """Options forwarded to every upstream list call."""

    label_selector: str | None = None
    field_selector: str | None = None
    timeout_seconds: int | None = None

    def as_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for the kubernetes client ``list_*`` methods."""
        kwargs: dict[str, Any] = {}
        if self.label_selector:
            kwargs["label_selector"] = self.label_selector
        if self.field_selector:
            kwargs["field_selector"] = self.field_selector
        if self.timeout_seconds:
            kwargs["_request_timeout"] = self.timeout_seconds
        return kwargs


Transformer = Callable[["KubernetesClient", "str | None", ListOptions], list[Resource]]
Mapper = Callable[[Any], tuple[str, dict[str, Any]]]

TRANSFORMERS: dict[str, Transformer] = {}
CLUSTER_SCOPED_KINDS: set[str] = set()


# ---------------------------------------------------------------------------
# Status derivation
# ---------------------------------------------------------------------------


def replica_status(ready: int | None, desired: int | None) -> str:
    """Workload status as ``"<ready>/<desired>"``."""
    return f"{ready or 0}/{desired or 0}"


def job_status(succeeded: int | None, failed: int | None) -> str:
    """Completed beats Failed beats Running."""
    if (succeeded or 0) > 0:
        return "Completed"
    if (failed or 0) > 0:
        return "Failed"
    return "Running"


def cronjob_status(
    suspend: bool | None,
    active_jobs: int,
    last_successful: datetime | None,
    last_schedule: datetime | None,
) -> str:
    """Derive a CronJob status.

    Suspension is checked first and overrides everything. Active child
    jobs come next. Otherwise the last schedule is compared with the last
    success: a schedule strictly after the last success means the most
    recent run failed.
    """
    if suspend:
        return "Suspended"
    if active_jobs > 0:
        return "Running"
    if last_successful is not None:
        if last_schedule is not None and last_successful < last_schedule:
            return "Failed"
        return "Succeeded"
    if last_schedule is not None:
        return "Failed"
    return ACTIVE


def node_status(conditions: list[Any] | None, unschedulable: bool | None) -> str:
    """``Ready``/``NotReady`` from the Ready condition, plus cordon state."""
    status = "Ready"
    for condition in conditions or []:
        if condition.type == "Ready" and condition.status != "True":
            status = "NotReady"
    if unschedulable:
        status += ",SchedulingDisabled"
    return status


def container_state(container_status: Any) -> dict[str, Any]:
    """Summarize one container status entry, including its current state."""
    info: dict[str, Any] = {
        "name": container_status.name,
        "ready": bool(container_status.ready),
        "restartCount": container_status.restart_count or 0,
        "image": container_status.image,
    }
    waiting = _safe_get(container_status, "state", "waiting")
    running = _safe_get(container_status, "state", "running")
    terminated = _safe_get(container_status, "state", "terminated")
    if waiting is not None:
        info.update(state="Waiting", reason=waiting.reason or "", message=waiting.message or "")
    elif running is not None:
        info.update(state="Running", startedAt=_rfc3339(running.started_at))
    elif terminated is not None:
        info.update(
            state="Terminated", reason=terminated.reason or "", exitCode=terminated.exit_code
        )
        if terminated.started_at:
            info["startedAt"] = _rfc3339(terminated.started_at)
        if terminated.finished_at:
            info["finishedAt"] = _rfc3339(terminated.finished_at)
    return info


def image_tag(image: str | None) -> str:
    """Short tag for display: the tag, a digest prefix, or ``latest``."""
    if not image:
        return ""
    if "@sha256:" in image:
        digest = image.split("@sha256:", 1)[1]
        return f"{digest[:8]}..."
    name = image.rsplit("/", 1)[-1]
    if ":" in name:
        return name.rsplit(":", 1)[1]
    return "latest"


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def _list_items(
    client: KubernetesClient,
    api_attr: str,
    plural: str,
    namespace: str | None,
    options: ListOptions,
    cluster_scoped: bool,
) -> list[Any]:
    api = getattr(client, api_attr)
    kwargs = options.as_kwargs()
    if cluster_scoped:
        result = getattr(api, f"list_{plural}")(**kwargs)
    elif namespace:
        result = getattr(api, f"list_namespaced_{plural}")(namespace, **kwargs)
    else:
        result = getattr(api, f"list_{plural}_for_all_namespaces")(**kwargs)
    return list(result.items or [])


def _register(
    kind: str,
    api_attr: str,
    plural: str,
    mapper: Mapper,
    cluster_scoped: bool = False,
) -> None:
    def transform(
        client: KubernetesClient,
        namespace: str | None,
        options: ListOptions,
    ) -> list[Resource]:
        resources = []
        for obj in _list_items(client, api_attr, plural, namespace, options, cluster_scoped):
            status, details = mapper(obj)
            resources.append(
                Resource.from_k8s_object(
                    obj,
                    kind=kind,
                    status=status,
                    details=details,
                    namespaced=not cluster_scoped,
                )
            )
        return resources

    transform.__name__ = f"transform_{plural}"
    TRANSFORMERS[kind] = transform
    if cluster_scoped:
        CLUSTER_SCOPED_KINDS.add(kind)


# ---------------------------------------------------------------------------
# Workloads
# ---------------------------------------------------------------------------


def _pod_template_containers(obj: Any) -> list[Any]:
    return _safe_get(obj, "spec", "template", "spec", "containers", default=[])


def _map_deployment(obj: Any) -> tuple[str, dict[str, Any]]:
    containers = _pod_template_containers(obj)
    images = [c.image for c in containers]
    ports = [p.container_port for c in containers for p in (c.ports or [])]
    volumes = _safe_get(obj, "spec", "template", "spec", "volumes", default=[])
    pvcs = [v.persistent_volume_claim.claim_name for v in volumes if v.persistent_volume_claim]
    replicas = _safe_get(obj, "spec", "replicas", default=0)
    ready = _safe_get(obj, "status", "ready_replicas", default=0)
    return replica_status(ready, replicas), {
        "replicas": replicas,
        "ready": ready,
        "available": _safe_get(obj, "status", "available_replicas", default=0),
        "updated": _safe_get(obj, "status", "updated_replicas", default=0),
        "images": images,
        "imageTag": image_tag(images[0]) if images else "",
        "ports": ports,
        "pvcs": pvcs,
        "podLabels": _safe_get(obj, "spec", "selector", "match_labels", default={}),
        "labels": _get_labels(obj),
    }


def _map_replica_set(obj: Any) -> tuple[str, dict[str, Any]]:
    images = [c.image for c in _pod_template_containers(obj)]
    replicas = _safe_get(obj, "spec", "replicas", default=0)
    ready = _safe_get(obj, "status", "ready_replicas", default=0)
    owners = _safe_get(obj, "metadata", "owner_references", default=[])
    return replica_status(ready, replicas), {
        "replicas": replicas,
        "ready": ready,
        "availableReplicas": _safe_get(obj, "status", "available_replicas", default=0),
        "images": images,
        "imageTag": image_tag(images[0]) if images else "",
        "owner": f"{owners[0].kind}/{owners[0].name}" if owners else "",
        "podLabels": _safe_get(obj, "spec", "selector", "match_labels", default={}),
        "labels": _get_labels(obj),
    }


def _map_stateful_set(obj: Any) -> tuple[str, dict[str, Any]]:
    replicas = _safe_get(obj, "status", "replicas", default=0)
    ready = _safe_get(obj, "status", "ready_replicas", default=0)
    return replica_status(ready, replicas), {
        "replicas": replicas,
        "ready": ready,
        "current": _safe_get(obj, "status", "current_replicas", default=0),
        "updated": _safe_get(obj, "status", "updated_replicas", default=0),
        "serviceName": _safe_get(obj, "spec", "service_name", default=""),
        "podManagement": _safe_get(obj, "spec", "pod_management_policy", default=""),
        "updateStrategy": _to_plain(_safe_get(obj, "spec", "update_strategy")),
        "selector": _safe_get(obj, "spec", "selector", "match_labels", default={}),
    }


def _map_daemon_set(obj: Any) -> tuple[str, dict[str, Any]]:
    desired = _safe_get(obj, "status", "desired_number_scheduled", default=0)
    ready = _safe_get(obj, "status", "number_ready", default=0)
    return replica_status(ready, desired), {
        "desired": desired,
        "current": _safe_get(obj, "status", "current_number_scheduled", default=0),
        "ready": ready,
        "available": _safe_get(obj, "status", "number_available", default=0),
        "updated": _safe_get(obj, "status", "updated_number_scheduled", default=0),
        "misscheduled": _safe_get(obj, "status", "number_misscheduled", default=0),
        "nodeSelector": _safe_get(obj, "spec", "template", "spec", "node_selector", default={}),
        "selector": _safe_get(obj, "spec", "selector", "match_labels", default={}),
    }


def _map_hpa(obj: Any) -> tuple[str, dict[str, Any]]:
    current = _safe_get(obj, "status", "current_replicas", default=0)
    desired = _safe_get(obj, "status", "desired_replicas", default=0)
    target = _safe_get(obj, "spec", "scale_target_ref")
    return f"{current}/{desired} replicas", {
        "minReplicas": _safe_get(obj, "spec", "min_replicas"),
        "maxReplicas": _safe_get(obj, "spec", "max_replicas"),
        "current": current,
        "desired": desired,
        "target": f"{target.kind}/{target.name}" if target else "",
        "metrics": _to_plain(_safe_get(obj, "spec", "metrics")),
        "lastScaleTime": _rfc3339(_safe_get(obj, "status", "last_scale_time")),
    }


def _map_pod(obj: Any) -> tuple[str, dict[str, Any]]:
    spec_containers = _safe_get(obj, "spec", "containers", default=[])
    init_containers = _safe_get(obj, "spec", "init_containers", default=[])
    statuses = [
        *_safe_get(obj, "status", "init_container_statuses", default=[]),
        *_safe_get(obj, "status", "container_statuses", default=[]),
    ]
    container_statuses = [container_state(cs) for cs in statuses]
    ready_count = sum(1 for cs in container_statuses if cs["ready"])
    total = len(spec_containers) + len(init_containers)

    conditions = []
    for condition in _safe_get(obj, "status", "conditions", default=[]):
        info: dict[str, Any] = {"type": condition.type, "status": condition.status}
        if condition.reason:
            info["reason"] = condition.reason
        if condition.message:
            info["message"] = condition.message
        if condition.last_transition_time:
            info["lastTransitionTime"] = _rfc3339(condition.last_transition_time)
        conditions.append(info)

    return _safe_get(obj, "status", "phase", default="Unknown"), {
        "node": _safe_get(obj, "spec", "node_name", default=""),
        "ip": _safe_get(obj, "status", "pod_ip", default=""),
        "restarts": sum(cs["restartCount"] for cs in container_statuses),
        "ready": f"{ready_count}/{total}",
        "readyCount": ready_count,
        "totalContainers": total,
        "containers": [c.name for c in (*init_containers, *spec_containers)],
        "initContainers": [c.name for c in init_containers],
        "containerStatuses": container_statuses,
        "conditions": conditions,
        "statusReason": _safe_get(obj, "status", "reason", default=""),
        "statusMessage": _safe_get(obj, "status", "message", default=""),
        "qosClass": _safe_get(obj, "status", "qos_class", default=""),
        "startTime": _rfc3339(_safe_get(obj, "status", "start_time")),
        "serviceAccount": _safe_get(obj, "spec", "service_account_name", default=""),
        "labels": _get_labels(obj),
    }


_register("Deployment", "apps_v1", "deployment", _map_deployment)
_register("ReplicaSet", "apps_v1", "replica_set", _map_replica_set)
_register("StatefulSet", "apps_v1", "stateful_set", _map_stateful_set)
_register("DaemonSet", "apps_v1", "daemon_set", _map_daemon_set)
_register("HorizontalPodAutoscaler", "autoscaling_v2", "horizontal_pod_autoscaler", _map_hpa)
_register("Pod", "core_v1", "pod", _map_pod)


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------


def _map_job(obj: Any) -> tuple[str, dict[str, Any]]:
    succeeded = _safe_get(obj, "status", "succeeded", default=0)
    failed = _safe_get(obj, "status", "failed", default=0)
    return job_status(succeeded, failed), {
        "active": _safe_get(obj, "status", "active", default=0),
        "succeeded": succeeded,
        "failed": failed,
        "startTime": _rfc3339(_safe_get(obj, "status", "start_time")),
        "completionTime": _rfc3339(_safe_get(obj, "status", "completion_time")),
        "parallelism": _safe_get(obj, "spec", "parallelism"),
        "completions": _safe_get(obj, "spec", "completions"),
        "backoffLimit": _safe_get(obj, "spec", "backoff_limit"),
        "activeDeadline": _safe_get(obj, "spec", "active_deadline_seconds"),
    }


def _map_cron_job(obj: Any) -> tuple[str, dict[str, Any]]:
    suspend = _safe_get(obj, "spec", "suspend")
    active = _safe_get(obj, "status", "active", default=[])
    last_successful = _safe_get(obj, "status", "last_successful_time")
    last_schedule = _safe_get(obj, "status", "last_schedule_time")
    status = cronjob_status(suspend, len(active), last_successful, last_schedule)
    return status, {
        "schedule": _safe_get(obj, "spec", "schedule", default=""),
        "suspend": bool(suspend),
        "concurrency": _safe_get(obj, "spec", "concurrency_policy", default=""),
        "startingDeadline": _safe_get(obj, "spec", "starting_deadline_seconds"),
        "active": len(active),
        "lastSchedule": _rfc3339(last_schedule),
        "lastSuccessful": _rfc3339(last_successful),
    }


_register("Job", "batch_v1", "job", _map_job)
_register("CronJob", "batch_v1", "cron_job", _map_cron_job)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def _map_config_map(obj: Any) -> tuple[str, dict[str, Any]]:
    keys = sorted([*(obj.data or {}), *(obj.binary_data or {})])
    return ACTIVE, {"keys": keys, "keysCount": len(keys)}


def _map_secret(obj: Any) -> tuple[str, dict[str, Any]]:
    # Key names only; values never leave the cluster through a list call
    keys = sorted(obj.data or {})
    return ACTIVE, {"type": obj.type or "", "keys": keys, "keysCount": len(keys)}


def _map_service_account(obj: Any) -> tuple[str, dict[str, Any]]:
    return ACTIVE, {
        "secrets": len(obj.secrets or []),
        "automountToken": obj.automount_service_account_token,
    }


def _map_resource_quota(obj: Any) -> tuple[str, dict[str, Any]]:
    return ACTIVE, {
        "hard": dict(_safe_get(obj, "status", "hard", default={})),
        "used": dict(_safe_get(obj, "status", "used", default={})),
    }


def _map_limit_range(obj: Any) -> tuple[str, dict[str, Any]]:
    return ACTIVE, {"limits": _to_plain(_safe_get(obj, "spec", "limits", default=[]))}


_register("ConfigMap", "core_v1", "config_map", _map_config_map)
_register("Secret", "core_v1", "secret", _map_secret)
_register("ServiceAccount", "core_v1", "service_account", _map_service_account)
_register("ResourceQuota", "core_v1", "resource_quota", _map_resource_quota)
_register("LimitRange", "core_v1", "limit_range", _map_limit_range)


# ---------------------------------------------------------------------------
# Networking
# ---------------------------------------------------------------------------


def _load_balancer_addresses(obj: Any) -> list[str]:
    addresses = []
    for ingress in _safe_get(obj, "status", "load_balancer", "ingress", default=[]):
        if ingress.ip:
            addresses.append(ingress.ip)
        if ingress.hostname:
            addresses.append(ingress.hostname)
    return addresses


def _map_service(obj: Any) -> tuple[str, dict[str, Any]]:
    service_type = _safe_get(obj, "spec", "type", default="ClusterIP")
    ports = [
        f"{p.port}:{p.target_port if p.target_port is not None else p.port}/{p.protocol or 'TCP'}"
        for p in _safe_get(obj, "spec", "ports", default=[])
    ]
    return service_type, {
        "type": service_type,
        "clusterIP": _safe_get(obj, "spec", "cluster_ip", default=""),
        "externalIPs": [
            *_safe_get(obj, "spec", "external_i_ps", default=[]),
            *_load_balancer_addresses(obj),
        ],
        "ports": ports,
        "selector": _safe_get(obj, "spec", "selector", default={}),
    }


def _ingress_path(path: Any) -> dict[str, Any]:
    service = _safe_get(path, "backend", "service")
    info: dict[str, Any] = {"path": path.path or "/", "pathType": path.path_type or ""}
    if service is not None:
        info["serviceName"] = service.name
        info["servicePort"] = _safe_get(service, "port", "name") or _safe_get(
            service, "port", "number"
        )
    return info


def _map_ingress(obj: Any) -> tuple[str, dict[str, Any]]:
    rules = [
        {
            "host": rule.host or "",
            "paths": [_ingress_path(p) for p in _safe_get(rule, "http", "paths", default=[])],
        }
        for rule in _safe_get(obj, "spec", "rules", default=[])
    ]
    tls = [
        {"hosts": t.hosts or [], "secretName": t.secret_name or ""}
        for t in _safe_get(obj, "spec", "tls", default=[])
    ]
    return ACTIVE, {
        "class": _safe_get(obj, "spec", "ingress_class_name", default=""),
        "rules": rules,
        "tls": tls,
        "loadBalancer": _load_balancer_addresses(obj),
        "annotations": _get_annotations(obj),
    }


def _map_network_policy(obj: Any) -> tuple[str, dict[str, Any]]:
    return ACTIVE, {
        "podSelector": _to_plain(_safe_get(obj, "spec", "pod_selector")) or {},
        "policyTypes": _safe_get(obj, "spec", "policy_types", default=[]),
    }


_register("Service", "core_v1", "service", _map_service)
_register("Ingress", "networking_v1", "ingress", _map_ingress)
_register("NetworkPolicy", "networking_v1", "network_policy", _map_network_policy)


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


def _map_pvc(obj: Any) -> tuple[str, dict[str, Any]]:
    return _safe_get(obj, "status", "phase", default="Pending"), {
        "accessModes": _safe_get(obj, "spec", "access_modes", default=[]),
        "capacity": _safe_get(obj, "status", "capacity", default={}).get("storage", ""),
        "requested": _safe_get(obj, "spec", "resources", "requests", default={}).get(
            "storage", ""
        ),
        "storageClassName": _safe_get(obj, "spec", "storage_class_name", default=""),
        "volumeName": _safe_get(obj, "spec", "volume_name", default=""),
    }


def _map_pv(obj: Any) -> tuple[str, dict[str, Any]]:
    claim = _safe_get(obj, "spec", "claim_ref")
    return _safe_get(obj, "status", "phase", default="Pending"), {
        "accessModes": _safe_get(obj, "spec", "access_modes", default=[]),
        "capacity": _safe_get(obj, "spec", "capacity", default={}).get("storage", ""),
        "storageClassName": _safe_get(obj, "spec", "storage_class_name", default=""),
        "reclaimPolicy": _safe_get(obj, "spec", "persistent_volume_reclaim_policy", default=""),
        "claimRef": f"{claim.namespace}/{claim.name}" if claim else "",
    }


def _map_storage_class(obj: Any) -> tuple[str, dict[str, Any]]:
    reclaim = obj.reclaim_policy or ""
    return reclaim, {
        "provisioner": obj.provisioner,
        "reclaimPolicy": reclaim,
        "volumeBindingMode": obj.volume_binding_mode or "",
        "allowVolumeExpansion": obj.allow_volume_expansion,
        "parameters": obj.parameters or {},
        "mountOptions": obj.mount_options or [],
    }


_register("PersistentVolumeClaim", "core_v1", "persistent_volume_claim", _map_pvc)
_register("PersistentVolume", "core_v1", "persistent_volume", _map_pv, cluster_scoped=True)
_register(
    "StorageClass", "storage_v1", "storage_class", _map_storage_class, cluster_scoped=True
)


# ---------------------------------------------------------------------------
# RBAC
# ---------------------------------------------------------------------------


def _map_role(obj: Any) -> tuple[str, dict[str, Any]]:
    return ACTIVE, {"rules": _to_plain(obj.rules or [])}


def _map_binding(obj: Any) -> tuple[str, dict[str, Any]]:
    return ACTIVE, {
        "subjects": _to_plain(obj.subjects or []),
        "roleRef": _to_plain(obj.role_ref) or {},
    }


_register("Role", "rbac_v1", "role", _map_role)
_register("RoleBinding", "rbac_v1", "role_binding", _map_binding)
_register("ClusterRole", "rbac_v1", "cluster_role", _map_role, cluster_scoped=True)
_register(
    "ClusterRoleBinding", "rbac_v1", "cluster_role_binding", _map_binding, cluster_scoped=True
)


# ---------------------------------------------------------------------------
# Cluster
# ---------------------------------------------------------------------------


def _map_node(obj: Any) -> tuple[str, dict[str, Any]]:
    conditions = _safe_get(obj, "status", "conditions", default=[])
    unschedulable = _safe_get(obj, "spec", "unschedulable", default=False)
    images = [
        img.names[0] for img in _safe_get(obj, "status", "images", default=[]) if img.names
    ]
    return node_status(conditions, unschedulable), {
        "addresses": _to_plain(_safe_get(obj, "status", "addresses", default=[])),
        "nodeInfo": _to_plain(_safe_get(obj, "status", "node_info")) or {},
        "capacity": dict(_safe_get(obj, "status", "capacity", default={})),
        "allocatable": dict(_safe_get(obj, "status", "allocatable", default={})),
        "conditions": {c.type: c.status for c in conditions},
        "images": images,
        "taints": _to_plain(_safe_get(obj, "spec", "taints", default=[])),
        "podCIDR": _safe_get(obj, "spec", "pod_cidr", default=""),
        "podCIDRs": _safe_get(obj, "spec", "pod_cid_rs", default=[]),
        "unschedulable": bool(unschedulable),
        "labels": _get_labels(obj),
        "annotations": _get_annotations(obj),
    }


def _map_namespace(obj: Any) -> tuple[str, dict[str, Any]]:
    return _safe_get(obj, "status", "phase", default=ACTIVE), {
        "labels": _get_labels(obj),
        "annotations": _get_annotations(obj),
    }


_register("Node", "core_v1", "node", _map_node, cluster_scoped=True)
_register("Namespace", "core_v1", "namespace", _map_namespace, cluster_scoped=True)
