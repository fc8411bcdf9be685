"""Unit tests for ResourceListManager."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from kubernetes.client import ApiException, V1ConfigMap, V1ConfigMapList, V1ObjectMeta

from kubegate.integrations.kubernetes.exceptions import (
    KubernetesAuthError,
    PermissionDeniedError,
)
from kubegate.integrations.kubernetes.models.resource import Resource
from kubegate.services.kubernetes.permissions import PermissionGate
from kubegate.services.kubernetes.resource_list_manager import ResourceListManager


def _config_map(name: str, namespace: str) -> V1ConfigMap:
    return V1ConfigMap(
        metadata=V1ObjectMeta(name=name, namespace=namespace, uid=f"uid-{name}"),
        data={"key": "value"},
    )


def _resource(name: str, namespace: str) -> Resource:
    return Resource(name=name, namespace=namespace, kind="ConfigMap", status="Active")


@pytest.mark.unit
@pytest.mark.kubernetes
class TestListResources:
    """Tests for listing through the real transformer table."""

    def test_restricted_principal_sees_only_its_namespace(
        self, mock_k8s_client: MagicMock, team_a_viewer_gate: PermissionGate
    ) -> None:
        """A team-a viewer listing all namespaces gets only team-a objects."""
        mock_k8s_client.core_v1.list_namespaced_config_map.return_value = V1ConfigMapList(
            items=[_config_map("app-config", "team-a")]
        )
        manager = ResourceListManager(mock_k8s_client, team_a_viewer_gate)

        resources = manager.list_resources("ConfigMap", all_namespaces=True)

        assert [(r.name, r.namespace) for r in resources] == [("app-config", "team-a")]
        assert resources[0].status == "Active"
        mock_k8s_client.core_v1.list_namespaced_config_map.assert_called_once_with(
            "team-a", _request_timeout=30
        )
        mock_k8s_client.core_v1.list_config_map_for_all_namespaces.assert_not_called()

    def test_out_of_scope_items_are_filtered(
        self, mock_k8s_client: MagicMock, team_a_viewer_gate: PermissionGate
    ) -> None:
        """Objects outside the scope are dropped even if upstream returns them."""
        mock_k8s_client.core_v1.list_namespaced_config_map.return_value = V1ConfigMapList(
            items=[_config_map("mine", "team-a"), _config_map("theirs", "team-b")]
        )
        manager = ResourceListManager(mock_k8s_client, team_a_viewer_gate)

        resources = manager.list_resources("configmap", "team-a")

        assert [r.name for r in resources] == ["mine"]

    def test_unrestricted_all_namespaces(
        self, mock_k8s_client: MagicMock, unrestricted_gate: PermissionGate
    ) -> None:
        """Unrestricted principals get one unfiltered query."""
        mock_k8s_client.core_v1.list_config_map_for_all_namespaces.return_value = (
            V1ConfigMapList(items=[_config_map("a", "team-a"), _config_map("b", "team-b")])
        )
        manager = ResourceListManager(mock_k8s_client, unrestricted_gate)

        resources = manager.list_resources("ConfigMap", all_namespaces=True, label_selector="x=y")

        assert len(resources) == 2
        mock_k8s_client.core_v1.list_config_map_for_all_namespaces.assert_called_once_with(
            label_selector="x=y", _request_timeout=30
        )

    def test_default_namespace(
        self, mock_k8s_client: MagicMock, unrestricted_gate: PermissionGate
    ) -> None:
        """No namespace lists the client default."""
        mock_k8s_client.core_v1.list_namespaced_config_map.return_value = V1ConfigMapList(
            items=[]
        )
        manager = ResourceListManager(mock_k8s_client, unrestricted_gate)

        assert manager.list_resources("ConfigMap") == []
        mock_k8s_client.core_v1.list_namespaced_config_map.assert_called_once_with(
            "default", _request_timeout=30
        )

    def test_unknown_kind_is_empty(
        self, mock_k8s_client: MagicMock, unrestricted_gate: PermissionGate
    ) -> None:
        """Kinds without a transformer list nothing."""
        manager = ResourceListManager(mock_k8s_client, unrestricted_gate)

        assert manager.list_resources("Widget") == []


@pytest.mark.unit
@pytest.mark.kubernetes
class TestQueryPlanning:
    """Tests for per-namespace query planning."""

    def test_one_query_per_allowed_namespace(
        self, mock_k8s_client: MagicMock, team_a_editor_gate: PermissionGate
    ) -> None:
        """Restricted principals query each namespace in turn."""
        transformer = MagicMock(
            side_effect=lambda _client, ns, _opts: [_resource(f"cm-{ns}", ns)]
        )
        manager = ResourceListManager(
            mock_k8s_client, team_a_editor_gate, transformers={"ConfigMap": transformer}
        )

        resources = manager.list_resources("ConfigMap", all_namespaces=True)

        assert [c.args[1] for c in transformer.call_args_list] == ["team-a", "team-b"]
        assert [r.name for r in resources] == ["cm-team-a", "cm-team-b"]

    def test_options_carry_selectors_and_deadline(
        self, mock_k8s_client: MagicMock, unrestricted_gate: PermissionGate
    ) -> None:
        """Selectors and the client deadline reach the transformer."""
        transformer = MagicMock(return_value=[])
        manager = ResourceListManager(
            mock_k8s_client, unrestricted_gate, transformers={"Pod": transformer}
        )

        manager.list_resources("pod", "team-a", label_selector="app=web", field_selector="x=1")

        options = transformer.call_args.args[2]
        assert options.label_selector == "app=web"
        assert options.field_selector == "x=1"
        assert options.timeout_seconds == 30

    def test_cluster_scoped_kind_single_query(
        self, mock_k8s_client: MagicMock, team_a_editor_gate: PermissionGate
    ) -> None:
        """Cluster-scoped kinds are queried once, without a namespace."""
        transformer = MagicMock(
            return_value=[Resource(name="node-1", kind="Node", status="Ready")]
        )
        manager = ResourceListManager(
            mock_k8s_client, team_a_editor_gate, transformers={"Node": transformer}
        )

        resources = manager.list_resources("node", all_namespaces=True)

        transformer.assert_called_once()
        assert transformer.call_args.args[:2] == (mock_k8s_client, None)
        assert [r.name for r in resources] == ["node-1"]

    @pytest.mark.parametrize("namespace", [None, "team-b"])
    def test_cluster_scoped_kind_ignores_namespace(
        self,
        mock_k8s_client: MagicMock,
        team_a_viewer_gate: PermissionGate,
        namespace: str | None,
    ) -> None:
        """A restricted principal lists cluster-scoped kinds without naming a namespace."""
        transformer = MagicMock(
            return_value=[Resource(name="node-1", kind="Node", status="Ready")]
        )
        manager = ResourceListManager(
            mock_k8s_client, team_a_viewer_gate, transformers={"Node": transformer}
        )

        resources = manager.list_resources("Node", namespace)

        transformer.assert_called_once()
        assert transformer.call_args.args[1] is None
        assert [r.name for r in resources] == ["node-1"]

    def test_cluster_scoped_kind_fails_secure(
        self, mock_k8s_client: MagicMock, failing_gate: PermissionGate
    ) -> None:
        """A failing permission source still denies cluster-scoped listing."""
        transformer = MagicMock(return_value=[])
        manager = ResourceListManager(
            mock_k8s_client, failing_gate, transformers={"Node": transformer}
        )

        with pytest.raises(PermissionDeniedError):
            manager.list_resources("Node")

        transformer.assert_not_called()


@pytest.mark.unit
@pytest.mark.kubernetes
class TestListErrors:
    """Tests for permission and upstream failures."""

    def test_denied_namespace(
        self, mock_k8s_client: MagicMock, team_a_viewer_gate: PermissionGate
    ) -> None:
        """A namespace outside the scope is refused before any query."""
        manager = ResourceListManager(mock_k8s_client, team_a_viewer_gate)

        with pytest.raises(PermissionDeniedError):
            manager.list_resources("ConfigMap", "team-b")

        mock_k8s_client.core_v1.list_namespaced_config_map.assert_not_called()

    def test_failing_permission_source(
        self, mock_k8s_client: MagicMock, failing_gate: PermissionGate
    ) -> None:
        """A failing permission source denies listing entirely."""
        manager = ResourceListManager(mock_k8s_client, failing_gate)

        with pytest.raises(PermissionDeniedError):
            manager.list_resources("ConfigMap", all_namespaces=True)

        mock_k8s_client.core_v1.list_config_map_for_all_namespaces.assert_not_called()

    def test_upstream_error_translated(
        self, mock_k8s_client: MagicMock, unrestricted_gate: PermissionGate
    ) -> None:
        """Upstream failures surface as gateway errors."""
        mock_k8s_client.core_v1.list_namespaced_config_map.side_effect = ApiException(
            status=403, reason="Forbidden"
        )
        manager = ResourceListManager(mock_k8s_client, unrestricted_gate)

        with pytest.raises(KubernetesAuthError) as exc_info:
            manager.list_resources("ConfigMap", "team-a")

        assert exc_info.value.status_code == 403
