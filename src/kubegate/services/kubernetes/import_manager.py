"""Bulk manifest import.

Applies a multi-document YAML or JSON stream to the cluster one document
at a time using forced server-side apply. Imports are fail-fast and not
transactional: documents applied before a failure stay applied, and the
failure reports which ones they were.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from kubegate.integrations.kubernetes.config import AccessConfig
from kubegate.integrations.kubernetes.exceptions import (
    ImportAbortedError,
    KubernetesError,
    KubernetesValidationError,
    PermissionDeniedError,
)
from kubegate.integrations.kubernetes.models.principal import Action
from kubegate.integrations.kubernetes.models.resource import ImportOutcome
from kubegate.services.kubernetes.base import K8sBaseManager
from kubegate.services.kubernetes.kind_resolver import KindResolver
from kubegate.services.kubernetes.manifests import (
    ManifestSource,
    load_documents,
    manifest_metadata,
    read_source,
    resource_identifier,
    strip_server_fields,
)
from kubegate.services.kubernetes.permissions import DEFAULT_NAMESPACE

if TYPE_CHECKING:
    from kubegate.integrations.kubernetes.client import KubernetesClient
    from kubegate.services.kubernetes.permissions import PermissionGate


class ImportManager(K8sBaseManager):
    """Applies manifest streams on behalf of one principal."""

    _entity_name = "import"

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
            resolver: Kind resolver; defaults to one backed by the
                client's discovery sweep.
            access: Import limits and field manager identity.
        """
        super().__init__(client, gate)
        self._resolver = resolver or KindResolver(discover=client.discover_api_resources)
        self._access = access or AccessConfig()

    def import_manifests(self, source: ManifestSource) -> ImportOutcome:
        """Apply every document in a manifest stream.

        Args:
            source: YAML or JSON text, bytes, or a readable stream with
                ``---`` separated documents.

        Returns:
            The identifiers of every applied document.

        Raises:
            KubernetesValidationError: If the stream is oversized, cannot be
                parsed, holds no documents or too many. Nothing is written.
            ImportAbortedError: If a document fails; earlier documents
                remain applied.
        """
        documents = load_documents(read_source(source, self._access.max_import_bytes))

        if not documents:
            raise KubernetesValidationError(
                message="No resources found in manifest", status_code=400
            )

        limit = self._access.max_import_documents
        if len(documents) > limit:
            raise KubernetesValidationError(
                message=f"Too many documents: {len(documents)} (maximum {limit})",
                status_code=400,
            )

        self._log.info("import_started", documents=len(documents))

        applied: list[str] = []
        for index, document in enumerate(documents):
            try:
                identifier = self._apply_document(document)
            except Exception as e:
                cause = self._as_kubernetes_error(e, document)
                self._log.warning(
                    "import_document_failed",
                    document_index=index,
                    applied=len(applied),
                    error=cause.message,
                )
                raise ImportAbortedError(
                    cause=cause,
                    document_index=index,
                    applied_identifiers=applied,
                ) from e
            applied.append(identifier)
            self._log.info("import_document_applied", identifier=identifier, document_index=index)

        self._log.info("import_completed", applied=len(applied))
        return ImportOutcome.from_identifiers(applied)

    # =========================================================================
    # Per-document steps
    # =========================================================================

    def _apply_document(self, document: dict[str, Any]) -> str:
        kind = str(document.get("kind") or "").strip()
        if not kind:
            raise KubernetesValidationError(
                message="Document is missing 'kind'", status_code=400
            )

        metadata = manifest_metadata(document)
        name = str(metadata.get("name") or "").strip()
        if not name:
            raise KubernetesValidationError(
                message=f"{kind} document is missing 'metadata.name'",
                status_code=400,
                resource_type=kind,
            )

        declared_namespace = str(metadata.get("namespace") or "").strip()
        if declared_namespace in self._access.system_namespaces:
            raise PermissionDeniedError(
                message=f"Importing into system namespace '{declared_namespace}' is not allowed",
                principal=self._gate.principal.identity,
                namespace=declared_namespace,
                action=Action.EDIT,
            )

        coordinates = self._resolver.resolve(kind, str(document.get("apiVersion") or ""))

        body = strip_server_fields(document)
        namespace: str | None = None
        if coordinates.namespaced:
            namespace = declared_namespace or DEFAULT_NAMESPACE
            self._gate.require_action(namespace, Action.EDIT)
            body.setdefault("metadata", {})["namespace"] = namespace
        else:
            self._gate.require_cluster_admin()

        resource = self._client.resource_for(coordinates, kind)
        try:
            resource.server_side_apply(
                body=body,
                name=name,
                namespace=namespace,
                field_manager=self._access.field_manager,
                force_conflicts=True,
                **self._request_options(),
            )
        except Exception as e:
            self._handle_api_error(e, kind, name, namespace)

        return resource_identifier(kind, namespace or "", name)

    def _as_kubernetes_error(self, e: Exception, document: dict[str, Any]) -> KubernetesError:
        if isinstance(e, KubernetesError):
            return e
        metadata = manifest_metadata(document)
        return self._client.translate_api_exception(
            e,
            resource_type=str(document.get("kind") or "") or None,
            resource_name=metadata.get("name"),
            namespace=metadata.get("namespace"),
        )
