"""Shared plumbing for the gateway managers.

List, watch, import and single-object managers all act for one principal,
talk to one client and translate upstream failures the same way.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, NoReturn

import structlog

if TYPE_CHECKING:
    from kubegate.integrations.kubernetes.client import KubernetesClient
    from kubegate.services.kubernetes.permissions import PermissionGate

logger = structlog.get_logger()


class K8sBaseManager:
    """Base class for managers that act on behalf of one principal.

    A manager is built per request around the caller's ``PermissionGate``
    and keeps nothing between requests. Subclasses name themselves through
    ``_entity_name``, which is bound into every log line together with the
    principal's identity.
    """

    _entity_name: str = ""

    def __init__(self, client: KubernetesClient, gate: PermissionGate) -> None:
        self._client = client
        self._gate = gate
        self._log = logger.bind(entity=self._entity_name, principal=gate.principal.identity)

    def _resolve_namespace(self, namespace: str | None) -> str:
        """Return ``namespace``, or the client's default namespace when unset."""
        return namespace or self._client.default_namespace

    def _request_options(self) -> dict[str, Any]:
        """Keyword arguments that bound a single upstream call by the deadline."""
        return {"_request_timeout": self._client.timeout}

    def _handle_api_error(
        self,
        e: Exception,
        resource_type: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
    ) -> NoReturn:
        """Re-raise ``e`` as the matching ``KubernetesError`` subclass.

        Errors that are already gateway errors propagate unchanged; anything
        else goes through ``KubernetesClient.translate_api_exception`` with
        the object context attached.
        """
        translated = self._client.translate_api_exception(
            e,
            resource_type=resource_type,
            resource_name=resource_name,
            namespace=namespace,
        )
        if translated is e:
            raise e
        raise translated from e
