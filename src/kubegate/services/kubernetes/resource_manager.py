"""Single-object operations.

Get, apply and delete work on any kind by name. Deployments and CronJobs
additionally support scaling, rolling restarts and manual runs.
"""

from __future__ import annotations

import re
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from kubegate.integrations.kubernetes.config import AccessConfig
from kubegate.integrations.kubernetes.exceptions import (
    KubernetesValidationError,
    PermissionDeniedError,
)
from kubegate.integrations.kubernetes.models.principal import Action
from kubegate.services.kubernetes.base import K8sBaseManager
from kubegate.services.kubernetes.kind_resolver import KindResolver, normalize_kind
from kubegate.services.kubernetes.manifests import (
    DISPLAY_ONLY_METADATA_FIELDS,
    ManifestSource,
    dump_yaml,
    load_documents,
    manifest_metadata,
    read_source,
    strip_server_fields,
)

if TYPE_CHECKING:
    from kubegate.integrations.kubernetes.client import KubernetesClient
    from kubegate.integrations.kubernetes.models.resource import ResourceCoordinates
    from kubegate.services.kubernetes.permissions import PermissionGate

# RFC 1123 subdomain
_NAME_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")
MAX_NAME_LENGTH = 253

DELETE_GRACE_PERIOD_SECONDS = 30

RESTARTED_AT_ANNOTATION = "kubectl.kubernetes.io/restartedAt"
MANUAL_INSTANTIATE_ANNOTATION = "cronjob.kubernetes.io/instantiate"


def validate_resource_name(name: str) -> str:
    """Check a name is a valid RFC 1123 subdomain.

    Args:
        name: Object name to validate.

    Returns:
        The name, unchanged.

    Raises:
        KubernetesValidationError: If the name is empty, too long or malformed.
    """
    if not name:
        raise KubernetesValidationError(message="Resource name is required", status_code=400)
    if len(name) > MAX_NAME_LENGTH:
        raise KubernetesValidationError(
            message=f"Resource name exceeds {MAX_NAME_LENGTH} characters",
            status_code=400,
            resource_name=name,
        )
    if not _NAME_PATTERN.match(name):
        raise KubernetesValidationError(
            message=f"Invalid resource name '{name}': must consist of lowercase alphanumeric "
            "characters, '-' or '.', and start and end with an alphanumeric character",
            status_code=400,
            resource_name=name,
        )
    return name


class ResourceManager(K8sBaseManager):
    """Reads, applies and deletes individual objects for one principal."""

    _entity_name = "resource"

    def __init__(
        self,
        client: KubernetesClient,
        gate: PermissionGate,
        resolver: KindResolver | None = None,
        access: AccessConfig | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            client: Kubernetes API client instance.
            gate: Permission gate for the calling principal.
            resolver: Kind resolver; defaults to one backed by discovery.
            access: Field manager identity and protected namespaces.
        """
        super().__init__(client, gate)
        self._resolver = resolver or KindResolver(discover=client.discover_api_resources)
        self._access = access or AccessConfig()

    # =========================================================================
    # Get
    # =========================================================================

    def get_resource(
        self,
        kind: str,
        name: str,
        namespace: str | None = None,
        *,
        api_version: str = "",
        namespaced_hint: bool | str | None = None,
    ) -> dict[str, Any]:
        """Fetch one object, cleaned for editing.

        Raises:
            KubernetesValidationError: If the name is invalid.
            PermissionDeniedError: If the principal lacks view access.
            KubernetesNotFoundError: If the object does not exist.
        """
        validate_resource_name(name)
        canonical = normalize_kind(kind)
        coordinates = self._resolver.resolve(canonical, api_version, namespaced_hint)
        target = self._target_namespace(coordinates, namespace)
        if target is not None:
            self._gate.require_action(target, Action.VIEW)

        resource = self._client.resource_for(coordinates, canonical)
        try:
            obj = resource.get(name=name, namespace=target, **self._request_options())
        except Exception as e:
            self._handle_api_error(e, canonical, name, target)

        self._log.debug("got_resource", kind=canonical, name=name, namespace=target)
        return strip_server_fields(obj.to_dict(), DISPLAY_ONLY_METADATA_FIELDS)

    def get_resource_yaml(
        self,
        kind: str,
        name: str,
        namespace: str | None = None,
        *,
        api_version: str = "",
        namespaced_hint: bool | str | None = None,
    ) -> str:
        """Fetch one object as YAML suitable for editing and re-applying."""
        return dump_yaml(
            self.get_resource(
                kind,
                name,
                namespace,
                api_version=api_version,
                namespaced_hint=namespaced_hint,
            )
        )

    # =========================================================================
    # Apply
    # =========================================================================

    def apply_resource(
        self,
        manifest: ManifestSource | dict[str, Any],
        *,
        kind: str | None = None,
        name: str | None = None,
        namespace: str | None = None,
    ) -> dict[str, Any]:
        """Create or update one object by forced server-side apply.

        Args:
            manifest: A single YAML/JSON document, or an already decoded mapping.
            kind: Expected kind; the document must match when given.
            name: Expected name; the document must match when given.
            namespace: Target namespace; overrides an empty document namespace
                and must match a non-empty one.

        Returns:
            The applied object as returned by the API server.

        Raises:
            KubernetesValidationError: If the document is malformed or does
                not match the expected kind, name or namespace.
            PermissionDeniedError: If the principal lacks edit access.
        """
        document = self._single_document(manifest)

        doc_kind = str(document.get("kind") or "").strip()
        if not doc_kind:
            raise KubernetesValidationError(message="Document is missing 'kind'", status_code=400)
        if kind and normalize_kind(kind) != normalize_kind(doc_kind):
            raise KubernetesValidationError(
                message=f"Document kind '{doc_kind}' does not match '{kind}'",
                status_code=400,
                resource_type=doc_kind,
            )

        metadata = manifest_metadata(document)
        doc_name = validate_resource_name(str(metadata.get("name") or "").strip())
        if name and name != doc_name:
            raise KubernetesValidationError(
                message=f"Document name '{doc_name}' does not match '{name}'",
                status_code=400,
                resource_type=doc_kind,
                resource_name=doc_name,
            )

        doc_namespace = str(metadata.get("namespace") or "").strip()
        if namespace and doc_namespace and namespace != doc_namespace:
            raise KubernetesValidationError(
                message=f"Document namespace '{doc_namespace}' does not match '{namespace}'",
                status_code=400,
                resource_type=doc_kind,
                resource_name=doc_name,
            )

        coordinates = self._resolver.resolve(doc_kind, str(document.get("apiVersion") or ""))
        body = strip_server_fields(document)
        target = self._target_namespace(coordinates, doc_namespace or namespace)
        if target is not None:
            self._require_writable(target)
            body.setdefault("metadata", {})["namespace"] = target
        else:
            self._gate.require_cluster_admin()

        resource = self._client.resource_for(coordinates, doc_kind)
        try:
            applied = resource.server_side_apply(
                body=body,
                name=doc_name,
                namespace=target,
                field_manager=self._access.field_manager,
                force_conflicts=True,
                **self._request_options(),
            )
        except Exception as e:
            self._handle_api_error(e, doc_kind, doc_name, target)

        self._log.info("applied_resource", kind=doc_kind, name=doc_name, namespace=target)
        return applied.to_dict()

    # =========================================================================
    # Delete
    # =========================================================================

    def delete_resource(
        self,
        kind: str,
        name: str,
        namespace: str | None = None,
        *,
        force: bool = False,
        api_version: str = "",
        namespaced_hint: bool | str | None = None,
    ) -> None:
        """Delete one object.

        A normal delete waits for dependents (foreground propagation with a
        30 second grace period). A forced delete is immediate and leaves
        dependents to the garbage collector.

        Raises:
            KubernetesValidationError: If the name is invalid.
            PermissionDeniedError: If the principal lacks edit access.
            KubernetesNotFoundError: If the object does not exist.
        """
        validate_resource_name(name)
        canonical = normalize_kind(kind)
        coordinates = self._resolver.resolve(canonical, api_version, namespaced_hint)
        target = self._target_namespace(coordinates, namespace)
        if target is not None:
            self._require_writable(target)
        else:
            self._gate.require_cluster_admin()

        body = {
            "gracePeriodSeconds": 0 if force else DELETE_GRACE_PERIOD_SECONDS,
            "propagationPolicy": "Background" if force else "Foreground",
        }
        resource = self._client.resource_for(coordinates, canonical)
        try:
            resource.delete(name=name, namespace=target, body=body, **self._request_options())
        except Exception as e:
            self._handle_api_error(e, canonical, name, target)

        self._log.info(
            "deleted_resource", kind=canonical, name=name, namespace=target, force=force
        )

    # =========================================================================
    # Deployment and CronJob actions
    # =========================================================================

    def scale_deployment(self, name: str, namespace: str | None = None, *, delta: int) -> int:
        """Change a Deployment's replica count by ``delta``.

        The new count never drops below zero.

        Returns:
            The replica count written to the scale subresource.

        Raises:
            KubernetesValidationError: If the name is invalid or ``delta`` is 0.
            PermissionDeniedError: If the principal lacks edit access.
            KubernetesNotFoundError: If the Deployment does not exist.
        """
        validate_resource_name(name)
        if delta == 0:
            raise KubernetesValidationError(
                message="Invalid delta: must be non-zero",
                status_code=400,
                resource_type="Deployment",
                resource_name=name,
            )
        ns = self._resolve_namespace(namespace)
        self._require_writable(ns)

        self._log.info("scaling_deployment", name=name, namespace=ns, delta=delta)
        try:
            scale = self._client.apps_v1.read_namespaced_deployment_scale(
                name=name, namespace=ns, **self._request_options()
            )
            current = scale.spec.replicas or 0
            scale.spec.replicas = max(0, current + delta)
            self._client.apps_v1.replace_namespaced_deployment_scale(
                name=name, namespace=ns, body=scale, **self._request_options()
            )
        except Exception as e:
            self._handle_api_error(e, "Deployment", name, ns)

        replicas: int = scale.spec.replicas
        self._log.info("scaled_deployment", name=name, namespace=ns, replicas=replicas)
        return replicas

    def restart_deployment(self, name: str, namespace: str | None = None) -> str:
        """Trigger a rolling restart by stamping the pod template.

        Returns:
            The ``restartedAt`` timestamp written to the template.
        """
        validate_resource_name(name)
        ns = self._resolve_namespace(namespace)
        self._require_writable(ns)

        restarted_at = datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
        patch = {
            "spec": {
                "template": {"metadata": {"annotations": {RESTARTED_AT_ANNOTATION: restarted_at}}}
            }
        }
        self._log.info("restarting_deployment", name=name, namespace=ns)
        try:
            self._client.apps_v1.patch_namespaced_deployment(
                name=name, namespace=ns, body=patch, **self._request_options()
            )
        except Exception as e:
            self._handle_api_error(e, "Deployment", name, ns)

        self._log.info("restarted_deployment", name=name, namespace=ns, restarted_at=restarted_at)
        return restarted_at

    def trigger_cron_job(self, name: str, namespace: str | None = None) -> str:
        """Run a CronJob now by creating a Job from its template.

        The Job is named ``<cronjob>-manual-<unix seconds>`` and owned by
        the CronJob, so it is cleaned up with it.

        Returns:
            Name of the created Job.

        Raises:
            KubernetesValidationError: If the name is invalid.
            PermissionDeniedError: If the principal lacks edit access.
            KubernetesNotFoundError: If the CronJob does not exist.
        """
        from kubernetes.client import V1Job, V1ObjectMeta, V1OwnerReference

        validate_resource_name(name)
        ns = self._resolve_namespace(namespace)
        self._require_writable(ns)

        try:
            cron_job = self._client.batch_v1.read_namespaced_cron_job(
                name=name, namespace=ns, **self._request_options()
            )
        except Exception as e:
            self._handle_api_error(e, "CronJob", name, ns)

        job_name = f"{name}-manual-{int(time.time())}"
        body = V1Job(
            metadata=V1ObjectMeta(
                name=job_name,
                namespace=ns,
                annotations={MANUAL_INSTANTIATE_ANNOTATION: "manual"},
                owner_references=[
                    V1OwnerReference(
                        api_version="batch/v1",
                        kind="CronJob",
                        name=cron_job.metadata.name,
                        uid=cron_job.metadata.uid,
                        controller=True,
                        block_owner_deletion=True,
                    )
                ],
            ),
            spec=cron_job.spec.job_template.spec,
        )

        self._log.info("triggering_cron_job", name=name, namespace=ns, job=job_name)
        try:
            self._client.batch_v1.create_namespaced_job(
                namespace=ns, body=body, **self._request_options()
            )
        except Exception as e:
            self._handle_api_error(e, "Job", job_name, ns)

        self._log.info("triggered_cron_job", name=name, namespace=ns, job=job_name)
        return job_name

    # =========================================================================
    # Helpers
    # =========================================================================

    def _target_namespace(
        self, coordinates: ResourceCoordinates, namespace: str | None
    ) -> str | None:
        if not coordinates.namespaced:
            return None
        return self._resolve_namespace(namespace)

    def _require_writable(self, namespace: str) -> None:
        if namespace in self._access.system_namespaces:
            raise PermissionDeniedError(
                message=f"Writing to system namespace '{namespace}' is not allowed",
                principal=self._gate.principal.identity,
                namespace=namespace,
                action=Action.EDIT,
            )
        self._gate.require_action(namespace, Action.EDIT)

    def _single_document(self, manifest: ManifestSource | dict[str, Any]) -> dict[str, Any]:
        if isinstance(manifest, dict):
            return manifest
        documents = load_documents(read_source(manifest, self._access.max_import_bytes))
        if len(documents) != 1:
            raise KubernetesValidationError(
                message=f"Expected exactly one document, found {len(documents)}",
                status_code=400,
            )
        return documents[0]
