"""Kubernetes access gateway exceptions.

Every failure the gateway surfaces is a ``KubernetesError``. Upstream
``ApiException``s are translated into these types by
``KubernetesClient.translate_api_exception``; local checks raise them directly.
"""

from __future__ import annotations

from typing import Any


def _describe(
    outcome: str,
    resource_type: str | None,
    resource_name: str | None,
    namespace: str | None,
) -> str | None:
    """Build ``Kind 'name' <outcome> in namespace 'ns'``, or None without kind and name."""
    if not (resource_type and resource_name):
        return None
    text = f"{resource_type} '{resource_name}' {outcome}"
    if namespace:
        text = f"{text} in namespace '{namespace}'"
    return text


class KubernetesError(Exception):
    """Root of the gateway error hierarchy.

    Attributes:
        message: Text shown to the caller.
        status_code: HTTP status associated with the failure, if any.
        resource_type: Kind of the object the call was about.
        resource_name: Name of that object.
        namespace: Namespace of that object; empty or None when cluster-scoped.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        resource_type: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.resource_type = resource_type
        self.resource_name = resource_name
        self.namespace = namespace

    def __str__(self) -> str:
        text = self.message
        if self.status_code:
            text = f"{text} (status: {self.status_code})"
        if self.resource_type and self.resource_name:
            target = f"{self.resource_type}/{self.resource_name}"
            if self.namespace:
                target = f"{target} in {self.namespace}"
            text = f"{text} [{target}]"
        return text


class KubernetesConnectionError(KubernetesError):
    """Raised when no cluster client can be built or the API server is unreachable."""

    def __init__(
        self,
        message: str = "Unable to reach the Kubernetes API server",
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message=message)
        self.original_error = original_error


class KubernetesAuthError(KubernetesError):
    """Raised when the upstream API rejects the gateway's own credentials (401/403).

    This is distinct from ``PermissionDeniedError``, which is the gateway
    refusing the calling principal before any upstream call is made.
    """

    def __init__(
        self,
        message: str = "Upstream API rejected the gateway credentials",
        status_code: int | None = 401,
        reason: str | None = None,
    ) -> None:
        super().__init__(message=message, status_code=status_code)
        self.reason = reason


class KubernetesNotFoundError(KubernetesError):
    """Raised when a requested object does not exist upstream (404)."""

    def __init__(
        self,
        message: str = "Object not found",
        resource_type: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
    ) -> None:
        super().__init__(
            message=_describe("not found", resource_type, resource_name, namespace) or message,
            status_code=404,
            resource_type=resource_type,
            resource_name=resource_name,
            namespace=namespace,
        )


class KubernetesValidationError(KubernetesError):
    """Raised for malformed input, either caught locally or rejected upstream (400/422).

    Covers a missing or malformed kind or name, undecodable manifests and
    imports over the document cap. Never retryable.

    Attributes:
        validation_errors: Field path to problem, when the API reported them.
    """

    def __init__(
        self,
        message: str = "Invalid manifest",
        validation_errors: dict[str, Any] | None = None,
        status_code: int | None = 422,
        resource_type: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=status_code,
            resource_type=resource_type,
            resource_name=resource_name,
            namespace=namespace,
        )
        self.validation_errors = validation_errors or {}


class KubernetesConflictError(KubernetesError):
    """Raised on a 409 from the upstream API."""

    def __init__(
        self,
        message: str = "Conflicts with the live object",
        resource_type: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
    ) -> None:
        outcome = "conflicts with the live object"
        super().__init__(
            message=_describe(outcome, resource_type, resource_name, namespace) or message,
            status_code=409,
            resource_type=resource_type,
            resource_name=resource_name,
            namespace=namespace,
        )


class KubernetesTimeoutError(KubernetesError):
    """Raised when an upstream call exceeds the request deadline."""

    def __init__(
        self,
        message: str = "Upstream call exceeded the request deadline",
        timeout_seconds: float | None = None,
    ) -> None:
        if timeout_seconds:
            message = f"{message} (after {timeout_seconds}s)"
        super().__init__(message=message)
        self.timeout_seconds = timeout_seconds


class PermissionDeniedError(KubernetesError):
    """Raised when the calling principal may not perform an operation.

    Also raised when the permission source itself fails, since a failed
    lookup is treated exactly like "no access".
    """

    def __init__(
        self,
        message: str = "Permission denied",
        principal: str | None = None,
        namespace: str | None = None,
        action: str | None = None,
    ) -> None:
        """Initialize PermissionDeniedError.

        Args:
            message: Human-readable error message.
            principal: Identity of the denied caller.
            namespace: Namespace the caller tried to reach.
            action: Action that was refused ("view", "edit", "admin").
        """
        super().__init__(message=message, status_code=403, namespace=namespace)
        self.principal = principal
        self.action = action


class ResourceResolutionError(KubernetesError):
    """Raised when a kind cannot be mapped to API coordinates."""

    def __init__(
        self,
        message: str | None = None,
        kind: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(
            message=message or f"Cannot resolve resource kind '{kind}'",
            resource_type=kind,
        )
        self.kind = kind
        self.original_error = original_error


class WatchEventError(KubernetesError):
    """Raised for a single malformed watch event.

    The watch itself stays open; callers skip the event and continue.
    """

    def __init__(self, message: str = "Malformed watch event", event: Any = None) -> None:
        super().__init__(message=message)
        self.event = event


class ImportAbortedError(KubernetesError):
    """Raised when a bulk import stops at a failing document.

    Imports are not transactional: every document listed in
    ``applied_identifiers`` was written to the cluster before the failure
    and remains applied.

    Attributes:
        cause: The typed error that stopped the import.
        document_index: Zero-based index of the failing document.
        applied_identifiers: ``kind/namespace/name`` of documents already applied.
    """

    def __init__(
        self,
        cause: KubernetesError,
        document_index: int,
        applied_identifiers: list[str] | None = None,
    ) -> None:
        """Initialize ImportAbortedError.

        Args:
            cause: The typed error raised for the failing document.
            document_index: Zero-based index of the failing document.
            applied_identifiers: Identifiers of documents applied before the failure.
        """
        applied = list(applied_identifiers or [])
        message = f"Import aborted at document {document_index + 1}: {cause.message}"
        if applied:
            message += f" ({len(applied)} already applied)"
        super().__init__(
            message=message,
            status_code=cause.status_code,
            resource_type=cause.resource_type,
            resource_name=cause.resource_name,
            namespace=cause.namespace,
        )
        self.cause = cause
        self.document_index = document_index
        self.applied_identifiers = applied
