"""Coordinates, the normalized Resource envelope and wire messages."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import ConfigDict, Field

from kubegate.integrations.kubernetes.models.base import (
    GatewayModel,
    _rfc3339,
    _safe_get,
)


class ResourceCoordinates(GatewayModel):
    """Where a kind lives on the API surface."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    group: str = Field(default="", description="API group, empty for the core group")
    version: str = Field(description="API version within the group")
    resource: str = Field(description="Plural resource name used in URLs")
    namespaced: bool = Field(default=True, description="Whether objects live in a namespace")

    @property
    def api_version(self) -> str:
        """The ``apiVersion`` string for this group and version."""
        return f"{self.group}/{self.version}" if self.group else self.version

    @property
    def api_prefix(self) -> str:
        """URL prefix: ``api`` for the core group, ``apis`` otherwise."""
        return "apis" if self.group else "api"

    @classmethod
    def from_api_version(
        cls,
        api_version: str,
        resource: str,
        namespaced: bool = True,
    ) -> ResourceCoordinates:
        """Build coordinates by splitting an ``apiVersion`` on ``/``.

        An empty apiVersion means core ``v1``.
        """
        group, _, version = api_version.rpartition("/")
        return cls(
            group=group,
            version=version or "v1",
            resource=resource,
            namespaced=namespaced,
        )

    def with_scope(self, namespaced: bool) -> ResourceCoordinates:
        """Copy of these coordinates with a different scope flag."""
        if namespaced == self.namespaced:
            return self
        return self.model_copy(update={"namespaced": namespaced})


class Resource(GatewayModel):
    """Normalized envelope for any listed object."""

    uid: str = Field(default="", description="Unique id of the live object instance")
    name: str = Field(description="Object name")
    namespace: str = Field(default="", description="Namespace, empty for cluster-scoped kinds")
    kind: str = Field(description="Canonical kind name")
    status: str = Field(default="", description="Kind-specific status summary")
    created_at: str = Field(default="", alias="createdAt", description="RFC3339 creation time")
    details: dict[str, Any] = Field(default_factory=dict, description="Kind-specific payload")

    @classmethod
    def from_k8s_object(
        cls,
        obj: Any,
        kind: str,
        status: str,
        details: dict[str, Any] | None = None,
        namespaced: bool = True,
    ) -> Resource:
        """Create from a kubernetes SDK object's metadata."""
        return cls(
            uid=_safe_get(obj, "metadata", "uid", default=""),
            name=_safe_get(obj, "metadata", "name", default=""),
            namespace=_safe_get(obj, "metadata", "namespace", default="") if namespaced else "",
            kind=kind,
            status=status,
            created_at=_rfc3339(_safe_get(obj, "metadata", "creation_timestamp")),
            details=details or {},
        )


class WatchEventType(StrEnum):
    """Change types pushed to watch clients."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"


class WatchEvent(GatewayModel):
    """Minimal wire message for one change; carries no object body."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: WatchEventType
    name: str
    namespace: str = ""


class ImportOutcome(GatewayModel):
    """Result of a successful bulk import."""

    status: str = "applied"
    applied_count: int = Field(default=0, alias="appliedCount")
    applied_identifiers: list[str] = Field(default_factory=list, alias="appliedIdentifiers")

    @classmethod
    def from_identifiers(cls, identifiers: list[str]) -> ImportOutcome:
        """Build an outcome from the identifiers recorded during import."""
        return cls(applied_count=len(identifiers), applied_identifiers=list(identifiers))
