"""Permission-filtered resource listing.

Lists any registered kind across the namespaces the calling principal may
see and returns normalized ``Resource`` envelopes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from kubegate.services.kubernetes.base import K8sBaseManager
from kubegate.services.kubernetes.kind_resolver import normalize_kind
from kubegate.services.kubernetes.transformers import (
    CLUSTER_SCOPED_KINDS,
    TRANSFORMERS,
    ListOptions,
    Transformer,
)

if TYPE_CHECKING:
    from kubegate.integrations.kubernetes.client import KubernetesClient
    from kubegate.integrations.kubernetes.models.resource import Resource
    from kubegate.services.kubernetes.permissions import PermissionGate


class ResourceListManager(K8sBaseManager):
    """Lists resources of one kind on behalf of one principal."""

    _entity_name = "resource_list"

    def __init__(
        self,
        client: KubernetesClient,
        gate: PermissionGate,
        transformers: dict[str, Transformer] | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            client: Kubernetes API client instance.
            gate: Permission gate for the calling principal.
            transformers: Kind dispatch table; defaults to ``TRANSFORMERS``.
        """
        super().__init__(client, gate)
        self._transformers = TRANSFORMERS if transformers is None else transformers

    def list_resources(
        self,
        kind: str,
        namespace: str | None = None,
        *,
        all_namespaces: bool = False,
        label_selector: str | None = None,
        field_selector: str | None = None,
    ) -> list[Resource]:
        """List resources of a kind.

        Args:
            kind: Kind name or alias. Unknown kinds return an empty list.
            namespace: Target namespace; defaults to "default".
            all_namespaces: List across every namespace the principal can see.
            label_selector: Filter by label selector.
            field_selector: Filter by field selector.

        Returns:
            Resources the principal may see.

        Raises:
            PermissionDeniedError: If the principal cannot see the requested
                namespace, or its permissions could not be read.
            KubernetesError: If an upstream list call fails.
        """
        canonical = normalize_kind(kind)
        targets: list[str | None]
        if canonical in CLUSTER_SCOPED_KINDS:
            # One query whatever the namespace scope; still fails secure
            self._gate.scope()
            targets = [None]
        else:
            targets = self._gate.namespaces_to_query(
                None if all_namespaces else self._resolve_namespace(namespace),
                all_namespaces,
            )

        transformer = self._transformers.get(canonical)
        if transformer is None:
            self._log.debug("unsupported_list_kind", kind=canonical)
            return []

        options = ListOptions(
            label_selector=label_selector,
            field_selector=field_selector,
            timeout_seconds=self._client.timeout,
        )

        collected: list[Resource] = []
        for target in targets:
            try:
                collected.extend(transformer(self._client, target, options))
            except Exception as e:
                self._handle_api_error(e, canonical, None, target)

        visible = self._gate.filter_resources(collected)
        self._log.debug(
            "listed_resources",
            kind=canonical,
            namespaces=len(targets),
            count=len(visible),
            filtered=len(collected) - len(visible),
        )
        return visible
