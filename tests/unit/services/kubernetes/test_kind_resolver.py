"""Unit tests for KindResolver."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from kubegate.integrations.kubernetes.exceptions import (
    KubernetesConnectionError,
    KubernetesValidationError,
    ResourceResolutionError,
)
from kubegate.integrations.kubernetes.models.discovery import (
    DiscoveredGroup,
    DiscoveredResource,
    DiscoveryResult,
)
from kubegate.services.kubernetes.kind_resolver import (
    STATIC_KINDS,
    KindResolver,
    hint_forces_cluster_scope,
    normalize_kind,
)


def _discovery(*groups: DiscoveredGroup, failed: dict[str, str] | None = None) -> MagicMock:
    return MagicMock(return_value=DiscoveryResult(groups=list(groups), failed_groups=failed or {}))


WIDGETS = DiscoveredGroup(
    group_version="example.com/v1",
    resources=(
        DiscoveredResource(kind="Widget", name="widgets/status", namespaced=True),
        DiscoveredResource(kind="Widget", name="widgets", namespaced=True),
        DiscoveredResource(kind="Gadget", name="gadgets", namespaced=False),
    ),
)


@pytest.mark.unit
@pytest.mark.kubernetes
class TestNormalizeKind:
    """Tests for kind normalization."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("hpa", "HorizontalPodAutoscaler"),
            ("PVC", "PersistentVolumeClaim"),
            ("deployment", "Deployment"),
            (" ConfigMap ", "ConfigMap"),
            ("Widget", "Widget"),
        ],
    )
    def test_normalize(self, raw: str, expected: str) -> None:
        """Aliases expand and well-known kinds get canonical casing."""
        assert normalize_kind(raw) == expected

    @pytest.mark.parametrize(
        ("hint", "expected"),
        [
            (False, True),
            ("false", True),
            ("FALSE", True),
            (True, False),
            (None, False),
            ("", False),
        ],
    )
    def test_hint(self, hint: bool | str | None, expected: bool) -> None:
        """Only an explicit false forces cluster scope."""
        assert hint_forces_cluster_scope(hint) is expected


@pytest.mark.unit
@pytest.mark.kubernetes
class TestStaticTier:
    """Tests for the static table."""

    def test_static_kind(self) -> None:
        """Well-known kinds resolve without discovery."""
        discover = _discovery()
        coords = KindResolver(discover).resolve("Deployment")

        assert coords.api_version == "apps/v1"
        assert coords.resource == "deployments"
        assert coords.namespaced
        discover.assert_not_called()

    def test_static_beats_discovery(self) -> None:
        """Discovery cannot override a static entry."""
        rogue = DiscoveredGroup(
            group_version="extensions/v1beta1",
            resources=(DiscoveredResource(kind="Deployment", name="deployments", namespaced=True),),
        )
        resolver = KindResolver(_discovery(rogue))

        first = resolver.resolve("Deployment")
        second = resolver.resolve("deployment", api_version="extensions/v1beta1")

        assert first == second == STATIC_KINDS["Deployment"]

    def test_cluster_scoped_static(self) -> None:
        """Cluster-scoped kinds keep their scope."""
        assert not KindResolver().resolve("ClusterRole").namespaced

    def test_hint_forces_cluster_scope(self) -> None:
        """A false hint overrides the table's scope."""
        coords = KindResolver().resolve("ConfigMap", namespaced_hint="false")
        assert not coords.namespaced
        assert STATIC_KINDS["ConfigMap"].namespaced

    def test_resolve_static_unknown(self) -> None:
        """resolve_static refuses kinds outside the table."""
        with pytest.raises(ResourceResolutionError, match="Widget"):
            KindResolver(_discovery(WIDGETS)).resolve_static("Widget")

    @pytest.mark.parametrize("kind", ["", "   "])
    def test_empty_kind(self, kind: str) -> None:
        """An empty kind is a validation error."""
        with pytest.raises(KubernetesValidationError):
            KindResolver().resolve(kind)


@pytest.mark.unit
@pytest.mark.kubernetes
class TestDiscoveryTier:
    """Tests for discovery-backed resolution."""

    def test_discovered_kind_skips_subresources(self) -> None:
        """The first non-subresource exact match is used."""
        coords = KindResolver(_discovery(WIDGETS)).resolve("Widget")

        assert coords.group == "example.com"
        assert coords.version == "v1"
        assert coords.resource == "widgets"
        assert coords.namespaced

    def test_discovered_scope(self) -> None:
        """Discovery reports cluster scope."""
        assert not KindResolver(_discovery(WIDGETS)).resolve("Gadget").namespaced

    def test_global_failure(self) -> None:
        """A failed sweep raises ResourceResolutionError."""
        discover = MagicMock(side_effect=KubernetesConnectionError("down"))

        with pytest.raises(ResourceResolutionError) as exc_info:
            KindResolver(discover).resolve("Widget")

        assert isinstance(exc_info.value.original_error, KubernetesConnectionError)

    def test_group_failure_is_not_fatal(self) -> None:
        """Failed groups are skipped and resolution continues."""
        coords = KindResolver(_discovery(WIDGETS, failed={"broken.io/v1": "503"})).resolve("Widget")
        assert coords.resource == "widgets"


@pytest.mark.unit
@pytest.mark.kubernetes
class TestInferenceTier:
    """Tests for naive inference."""

    def test_inferred_from_api_version(self) -> None:
        """Unknown kinds pluralize onto the given apiVersion."""
        coords = KindResolver(_discovery()).resolve("Widget", api_version="example.com/v2")

        assert coords.group == "example.com"
        assert coords.version == "v2"
        assert coords.resource == "widgets"
        assert coords.namespaced

    def test_inferred_without_discovery(self) -> None:
        """Without a discovery source inference applies directly."""
        coords = KindResolver().resolve("Thing")
        assert coords.api_version == "v1"
        assert coords.resource == "things"

    def test_inferred_with_cluster_hint(self) -> None:
        """The hint applies to inferred coordinates too."""
        coords = KindResolver().resolve("Thing", "example.com/v1", namespaced_hint=False)
        assert not coords.namespaced
