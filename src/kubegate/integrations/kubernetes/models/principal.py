"""Principal and permission scope models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from pydantic import ConfigDict, Field

from kubegate.integrations.kubernetes.models.base import GatewayModel

ADMIN_ROLE = "admin"


class Action(StrEnum):
    """Actions a principal may perform in a namespace."""

    VIEW = "view"
    EDIT = "edit"

    @property
    def rank(self) -> int:
        """Ordering used for level comparisons; edit implies view."""
        return 2 if self is Action.EDIT else 1


class Principal(GatewayModel):
    """The authenticated caller of a single request.

    An empty permissions map means the caller is unrestricted. A
    non-empty map limits the caller to the listed namespaces, each at
    most at the recorded level.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    identity: str = Field(description="Caller identity, e.g. a user name")
    role: str = Field(default="", description="Caller role claim")
    permissions: dict[str, Action] = Field(
        default_factory=dict,
        description="Namespace to permission level",
    )

    @property
    def is_admin(self) -> bool:
        """True when the role claim grants cluster administration."""
        return self.role == ADMIN_ROLE


@dataclass(frozen=True)
class Unrestricted:
    """Scope of a principal that may see every namespace."""


@dataclass(frozen=True)
class RestrictedTo:
    """Scope limited to an explicit set of namespaces."""

    levels: dict[str, Action] = field(default_factory=dict)

    @property
    def namespaces(self) -> frozenset[str]:
        """The namespaces this scope covers."""
        return frozenset(self.levels)

    def __hash__(self) -> int:
        return hash(tuple(sorted(self.levels.items())))


PermissionScope = Unrestricted | RestrictedTo
