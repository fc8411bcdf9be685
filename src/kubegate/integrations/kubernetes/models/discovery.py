"""Shapes returned by the API discovery primitive."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DiscoveredResource:
    """One resource listed by a discovery group."""

    kind: str
    name: str
    namespaced: bool

    @property
    def is_subresource(self) -> bool:
        """Subresources such as ``pods/log`` carry a slash in their name."""
        return "/" in self.name


@dataclass(frozen=True)
class DiscoveredGroup:
    """A group version with the resources it serves."""

    group_version: str
    resources: tuple[DiscoveredResource, ...] = ()


@dataclass
class DiscoveryResult:
    """Result of a discovery sweep.

    Groups that could not be read individually are kept in
    ``failed_groups`` instead of failing the whole sweep.
    """

    groups: list[DiscoveredGroup] = field(default_factory=list)
    failed_groups: dict[str, str] = field(default_factory=dict)
