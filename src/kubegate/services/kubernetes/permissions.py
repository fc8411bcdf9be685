"""Namespace-scoped permission checks for a single principal.

Every check fails secure: when the permission source raises, the
principal is treated as having no access at all, administrators
included.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, TypeVar

import structlog

from kubegate.integrations.kubernetes.exceptions import PermissionDeniedError
from kubegate.integrations.kubernetes.models.principal import (
    Action,
    PermissionScope,
    Principal,
    RestrictedTo,
    Unrestricted,
)

logger = structlog.get_logger()

DEFAULT_NAMESPACE = "default"

_NamespacedT = TypeVar("_NamespacedT")


class PermissionSource(Protocol):
    """Answers permission questions for a principal."""

    def scope_for(self, principal: Principal) -> PermissionScope:
        """Return the principal's namespace scope."""
        ...

    def is_cluster_admin(self, principal: Principal) -> bool:
        """Return True when the principal may manage cluster-scoped objects."""
        ...


class ClaimsPermissionSource:
    """Derives permissions from the principal's own claims.

    An admin role or an empty permissions map is unrestricted; anything
    else is restricted to the namespaces in the map.
    """

    def scope_for(self, principal: Principal) -> PermissionScope:
        if principal.is_admin or not principal.permissions:
            return Unrestricted()
        return RestrictedTo(levels=dict(principal.permissions))

    def is_cluster_admin(self, principal: Principal) -> bool:
        return principal.is_admin


class PermissionGate:
    """Permission decisions for one principal during one request.

    Args:
        principal: The calling principal.
        source: Where permission answers come from. Defaults to the
            principal's own claims.
    """

    def __init__(self, principal: Principal, source: PermissionSource | None = None) -> None:
        self.principal = principal
        self._source = source or ClaimsPermissionSource()
        self._log = logger.bind(entity="permission_gate", principal=principal.identity)

    # =========================================================================
    # Scope
    # =========================================================================

    def scope(self) -> PermissionScope:
        """Return the principal's scope.

        Raises:
            PermissionDeniedError: If the permission source fails.
        """
        try:
            return self._source.scope_for(self.principal)
        except Exception as e:
            self._log.warning("permission_source_failed", error=str(e))
            raise PermissionDeniedError(
                message="Permission lookup failed; access denied",
                principal=self.principal.identity,
            ) from e

    def allowed_namespaces(self) -> frozenset[str]:
        """Return the allowed namespaces; an empty set means unrestricted.

        Raises:
            PermissionDeniedError: If the permission source fails.
        """
        scope = self.scope()
        if isinstance(scope, Unrestricted):
            return frozenset()
        return scope.namespaces

    # =========================================================================
    # Checks
    # =========================================================================

    def has_access(self, namespace: str) -> bool:
        """True if the principal may see anything in the namespace."""
        try:
            scope = self.scope()
        except PermissionDeniedError:
            return False
        return isinstance(scope, Unrestricted) or namespace in scope.namespaces

    def can_perform(self, namespace: str, action: Action | str) -> bool:
        """True if the principal's level in the namespace covers the action.

        Edit implies view. Unknown actions are denied.
        """
        try:
            requested = Action(action)
        except ValueError:
            return False
        try:
            scope = self.scope()
        except PermissionDeniedError:
            return False
        if isinstance(scope, Unrestricted):
            return True
        granted = scope.levels.get(namespace)
        return granted is not None and Action(granted).rank >= requested.rank

    def is_cluster_admin(self) -> bool:
        """True if the principal may write cluster-scoped objects."""
        try:
            return bool(self._source.is_cluster_admin(self.principal))
        except Exception as e:
            self._log.warning("permission_source_failed", error=str(e))
            return False

    def require_access(self, namespace: str) -> None:
        """Raise PermissionDeniedError unless the namespace is visible."""
        if not self.has_access(namespace):
            raise PermissionDeniedError(
                message=f"Access denied to namespace '{namespace}'",
                principal=self.principal.identity,
                namespace=namespace,
                action=Action.VIEW,
            )

    def require_action(self, namespace: str, action: Action | str) -> None:
        """Raise PermissionDeniedError unless the action is allowed in the namespace."""
        if not self.can_perform(namespace, action):
            raise PermissionDeniedError(
                message=f"Insufficient permissions: {action} access required in namespace "
                f"'{namespace}'",
                principal=self.principal.identity,
                namespace=namespace,
                action=str(action),
            )

    def require_cluster_admin(self) -> None:
        """Raise PermissionDeniedError unless the principal is a cluster admin."""
        if not self.is_cluster_admin():
            raise PermissionDeniedError(
                message="Cluster administrator privilege required for cluster-scoped resources",
                principal=self.principal.identity,
                action="admin",
            )

    # =========================================================================
    # Multi-namespace queries
    # =========================================================================

    def namespaces_to_query(
        self,
        namespace: str | None = None,
        all_namespaces: bool = False,
    ) -> list[str | None]:
        """Decide which namespaces an upstream list must actually query.

        Args:
            namespace: A specific namespace; defaults to "default".
            all_namespaces: Request every namespace the principal can see.

        Returns:
            ``[None]`` for one unfiltered query, otherwise the namespaces
            to query one at a time.

        Raises:
            PermissionDeniedError: If the principal cannot see the requested
                namespace, or the permission source fails.
        """
        scope = self.scope()
        if all_namespaces:
            if isinstance(scope, Unrestricted):
                return [None]
            return sorted(scope.namespaces)

        target = namespace or DEFAULT_NAMESPACE
        if isinstance(scope, RestrictedTo) and target not in scope.namespaces:
            raise PermissionDeniedError(
                message=f"Access denied to namespace '{target}'",
                principal=self.principal.identity,
                namespace=target,
                action=Action.VIEW,
            )
        return [target]

    def filter_resources(
        self,
        items: Iterable[_NamespacedT],
    ) -> list[_NamespacedT]:
        """Drop every item whose namespace the principal cannot see.

        Items with an empty namespace are cluster-scoped and pass. When the
        permission source fails nothing passes.
        """
        try:
            scope = self.scope()
        except PermissionDeniedError:
            return []
        if isinstance(scope, Unrestricted):
            return list(items)
        allowed = scope.namespaces
        return [
            item
            for item in items
            if not getattr(item, "namespace", "") or getattr(item, "namespace", "") in allowed
        ]
