"""Unit tests for the resource commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
import typer
from typer.testing import CliRunner

from kubegate.integrations.kubernetes.exceptions import (
    ImportAbortedError,
    KubernetesConflictError,
    KubernetesNotFoundError,
    KubernetesValidationError,
    PermissionDeniedError,
)
from kubegate.integrations.kubernetes.models.resource import ImportOutcome, Resource
from kubegate.services.kubernetes.kind_resolver import KindResolver
from kubegate.services.kubernetes.watch_manager import WatchHandle

MANIFEST = """\
apiVersion: v1
kind: ConfigMap
metadata:
  name: app-config
  namespace: team-a
"""


@pytest.fixture
def manifest_file(tmp_path: Path) -> Path:
    """Write a single-document manifest to disk."""
    path = tmp_path / "configmap.yaml"
    path.write_text(MANIFEST)
    return path


def _raw_event(event_type: str, name: str) -> dict[str, Any]:
    return {
        "type": event_type,
        "raw_object": {"metadata": {"name": name, "namespace": "team-a"}},
    }


@pytest.mark.unit
@pytest.mark.kubernetes
class TestListCommand:
    """Tests for ``list``."""

    def test_list_table(
        self, cli_runner: CliRunner, app: typer.Typer, mock_services: MagicMock
    ) -> None:
        """list should print a table of resources."""
        mock_services.list_manager.return_value.list_resources.return_value = [
            Resource(name="app-config", namespace="team-a", kind="ConfigMap", status="Active")
        ]

        result = cli_runner.invoke(app, ["list", "configmap", "-A", "-l", "app=web"])

        assert result.exit_code == 0
        assert "app-config" in result.stdout
        mock_services.list_manager.return_value.list_resources.assert_called_once_with(
            "configmap",
            None,
            all_namespaces=True,
            label_selector="app=web",
            field_selector=None,
        )

    def test_list_json(
        self, cli_runner: CliRunner, app: typer.Typer, mock_services: MagicMock
    ) -> None:
        """list -o json should print the wire envelopes."""
        mock_services.list_manager.return_value.list_resources.return_value = [
            Resource(name="web", namespace="team-a", kind="Deployment", status="2/3")
        ]

        result = cli_runner.invoke(app, ["list", "deployment", "-n", "team-a", "-o", "json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["total"] == 1
        assert data["data"][0]["status"] == "2/3"

    def test_list_permission_denied(
        self, cli_runner: CliRunner, app: typer.Typer, mock_services: MagicMock
    ) -> None:
        """list should exit 1 when the namespace is not visible."""
        mock_services.list_manager.return_value.list_resources.side_effect = (
            PermissionDeniedError("Access denied to namespace 'team-b'")
        )

        result = cli_runner.invoke(app, ["list", "pod", "-n", "team-b"])

        assert result.exit_code == 1
        assert "Permission denied" in result.output


@pytest.mark.unit
@pytest.mark.kubernetes
class TestWatchCommand:
    """Tests for ``watch``."""

    def test_watch_json_lines(
        self, cli_runner: CliRunner, app: typer.Typer, mock_services: MagicMock
    ) -> None:
        """watch should print one JSON event per line until upstream closes."""
        watcher = MagicMock()
        mock_services.watch_manager.return_value.start.return_value = WatchHandle(
            watcher,
            iter([_raw_event("ADDED", "a"), {"type": "BOOKMARK"}, _raw_event("DELETED", "a")]),
            kind="ConfigMap",
            namespace="team-a",
        )

        result = cli_runner.invoke(app, ["watch", "configmap", "-n", "team-a"])

        assert result.exit_code == 0
        lines = [json.loads(line) for line in result.stdout.splitlines() if line]
        assert lines == [
            {"type": "ADDED", "name": "a", "namespace": "team-a"},
            {"type": "DELETED", "name": "a", "namespace": "team-a"},
        ]
        watcher.stop.assert_called_once()

    def test_watch_sse(
        self, cli_runner: CliRunner, app: typer.Typer, mock_services: MagicMock
    ) -> None:
        """--sse should frame events as server-sent events."""
        mock_services.watch_manager.return_value.start.return_value = WatchHandle(
            MagicMock(), iter([_raw_event("MODIFIED", "b")]), kind="Pod", namespace="team-a"
        )

        result = cli_runner.invoke(app, ["watch", "pod", "--sse"])

        assert result.exit_code == 0
        assert result.stdout.startswith('data: {"type":"MODIFIED"')
        assert result.stdout.endswith("\n\n")

    def test_watch_denied(
        self, cli_runner: CliRunner, app: typer.Typer, mock_services: MagicMock
    ) -> None:
        """watch should exit 1 when the scope is not allowed."""
        mock_services.watch_manager.return_value.start.side_effect = PermissionDeniedError(
            "Watching all namespaces requires unrestricted access"
        )

        result = cli_runner.invoke(app, ["watch", "pod", "-A"])

        assert result.exit_code == 1
        mock_services.watch_manager.return_value.start.assert_called_once_with(
            "pod", None, all_namespaces=True, label_selector=None
        )


@pytest.mark.unit
@pytest.mark.kubernetes
class TestImportCommand:
    """Tests for ``import``."""

    def test_import_file(
        self,
        cli_runner: CliRunner,
        app: typer.Typer,
        mock_services: MagicMock,
        manifest_file: Path,
    ) -> None:
        """import should pass the file bytes and list applied objects."""
        manager = mock_services.import_manager.return_value
        manager.import_manifests.return_value = ImportOutcome.from_identifiers(
            ["ConfigMap/team-a/app-config"]
        )

        result = cli_runner.invoke(app, ["import", str(manifest_file)])

        assert result.exit_code == 0
        assert "ConfigMap/team-a/app-config" in result.stdout
        manager.import_manifests.assert_called_once_with(MANIFEST.encode())

    def test_import_stdin_json(
        self, cli_runner: CliRunner, app: typer.Typer, mock_services: MagicMock
    ) -> None:
        """import - should read standard input."""
        manager = mock_services.import_manager.return_value
        manager.import_manifests.return_value = ImportOutcome.from_identifiers(["Secret/default/s"])

        result = cli_runner.invoke(app, ["import", "-", "-o", "json"], input=MANIFEST)

        assert result.exit_code == 0
        assert json.loads(result.stdout) == {
            "status": "applied",
            "appliedCount": 1,
            "appliedIdentifiers": ["Secret/default/s"],
        }
        manager.import_manifests.assert_called_once_with(MANIFEST.encode())

    def test_import_missing_file(
        self, cli_runner: CliRunner, app: typer.Typer, tmp_path: Path
    ) -> None:
        """import should reject a missing file."""
        result = cli_runner.invoke(app, ["import", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 2

    def test_import_aborted(
        self,
        cli_runner: CliRunner,
        app: typer.Typer,
        mock_services: MagicMock,
        manifest_file: Path,
    ) -> None:
        """import should report documents applied before the failure."""
        mock_services.import_manager.return_value.import_manifests.side_effect = (
            ImportAbortedError(
                cause=KubernetesConflictError(resource_type="Deployment", resource_name="web"),
                document_index=1,
                applied_identifiers=["ConfigMap/team-a/app-config"],
            )
        )

        result = cli_runner.invoke(app, ["import", str(manifest_file)])

        assert result.exit_code == 1
        assert "document 2" in result.output
        assert "ConfigMap/team-a/app-config" in result.output

    def test_import_too_many(
        self,
        cli_runner: CliRunner,
        app: typer.Typer,
        mock_services: MagicMock,
        manifest_file: Path,
    ) -> None:
        """import should report validation failures."""
        mock_services.import_manager.return_value.import_manifests.side_effect = (
            KubernetesValidationError("Too many documents: 51 (maximum 50)", status_code=400)
        )

        result = cli_runner.invoke(app, ["import", str(manifest_file)])

        assert result.exit_code == 1
        assert "Too many documents" in result.output


@pytest.mark.unit
@pytest.mark.kubernetes
class TestGetApplyDelete:
    """Tests for ``get``, ``apply`` and ``delete``."""

    def test_get_yaml(
        self, cli_runner: CliRunner, app: typer.Typer, mock_services: MagicMock
    ) -> None:
        """get should print YAML by default."""
        manager = mock_services.resource_manager.return_value
        manager.get_resource_yaml.return_value = MANIFEST

        result = cli_runner.invoke(app, ["get", "configmap", "app-config", "-n", "team-a"])

        assert result.exit_code == 0
        assert result.stdout == MANIFEST
        manager.get_resource_yaml.assert_called_once_with(
            "configmap", "app-config", "team-a", api_version=""
        )

    def test_get_json(
        self, cli_runner: CliRunner, app: typer.Typer, mock_services: MagicMock
    ) -> None:
        """get -o json should print the cleaned object."""
        manager = mock_services.resource_manager.return_value
        manager.get_resource.return_value = {"kind": "Widget", "metadata": {"name": "w1"}}

        result = cli_runner.invoke(
            app, ["get", "widget", "w1", "--api-version", "example.com/v1", "-o", "json"]
        )

        assert result.exit_code == 0
        assert json.loads(result.stdout)["kind"] == "Widget"
        manager.get_resource.assert_called_once_with(
            "widget", "w1", None, api_version="example.com/v1"
        )

    def test_get_not_found(
        self, cli_runner: CliRunner, app: typer.Typer, mock_services: MagicMock
    ) -> None:
        """get should exit 1 for missing objects."""
        mock_services.resource_manager.return_value.get_resource_yaml.side_effect = (
            KubernetesNotFoundError(resource_type="Pod", resource_name="gone")
        )

        result = cli_runner.invoke(app, ["get", "pod", "gone"])

        assert result.exit_code == 1
        assert "Resource not found" in result.output

    def test_apply(
        self,
        cli_runner: CliRunner,
        app: typer.Typer,
        mock_services: MagicMock,
        manifest_file: Path,
    ) -> None:
        """apply should report the applied identifier."""
        manager = mock_services.resource_manager.return_value
        manager.apply_resource.return_value = {
            "kind": "ConfigMap",
            "metadata": {"name": "app-config", "namespace": "team-a"},
        }

        result = cli_runner.invoke(app, ["apply", str(manifest_file), "-n", "team-a"])

        assert result.exit_code == 0
        assert "Applied ConfigMap/team-a/app-config" in result.stdout
        manager.apply_resource.assert_called_once_with(MANIFEST.encode(), namespace="team-a")

    def test_delete_with_yes(
        self, cli_runner: CliRunner, app: typer.Typer, mock_services: MagicMock
    ) -> None:
        """delete --yes should skip the prompt."""
        manager = mock_services.resource_manager.return_value

        result = cli_runner.invoke(
            app, ["delete", "pod", "web-0", "-n", "team-a", "--force", "--yes"]
        )

        assert result.exit_code == 0
        assert "Deleted pod 'web-0'" in result.stdout
        manager.delete_resource.assert_called_once_with(
            "pod", "web-0", "team-a", force=True, api_version=""
        )

    def test_delete_cancelled(
        self, cli_runner: CliRunner, app: typer.Typer, mock_services: MagicMock
    ) -> None:
        """Declining the prompt deletes nothing."""
        result = cli_runner.invoke(app, ["delete", "pod", "web-0"], input="n\n")

        assert result.exit_code == 0
        assert "Deletion cancelled" in result.stdout
        mock_services.resource_manager.return_value.delete_resource.assert_not_called()


@pytest.mark.unit
@pytest.mark.kubernetes
class TestActionCommands:
    """Tests for ``scale``, ``restart`` and ``trigger``."""

    def test_scale_down(
        self, cli_runner: CliRunner, app: typer.Typer, mock_services: MagicMock
    ) -> None:
        """scale should pass a negative delta and report the new count."""
        manager = mock_services.resource_manager.return_value
        manager.scale_deployment.return_value = 1

        result = cli_runner.invoke(app, ["scale", "web", "--by=-1", "-n", "team-a"])

        assert result.exit_code == 0
        assert "Scaled Deployment 'web' to 1 replicas" in result.stdout
        manager.scale_deployment.assert_called_once_with("web", "team-a", delta=-1)

    def test_scale_requires_delta(self, cli_runner: CliRunner, app: typer.Typer) -> None:
        """scale without --by is a usage error."""
        result = cli_runner.invoke(app, ["scale", "web"])

        assert result.exit_code == 2

    def test_scale_zero_delta(
        self, cli_runner: CliRunner, app: typer.Typer, mock_services: MagicMock
    ) -> None:
        """A rejected delta exits 1."""
        mock_services.resource_manager.return_value.scale_deployment.side_effect = (
            KubernetesValidationError(message="Invalid delta: must be non-zero", status_code=400)
        )

        result = cli_runner.invoke(app, ["scale", "web", "--by", "0"])

        assert result.exit_code == 1
        assert "Invalid delta" in result.output

    def test_restart(
        self, cli_runner: CliRunner, app: typer.Typer, mock_services: MagicMock
    ) -> None:
        """restart should call the manager with the namespace."""
        manager = mock_services.resource_manager.return_value

        result = cli_runner.invoke(app, ["restart", "web", "-n", "team-a"])

        assert result.exit_code == 0
        assert "Restarted Deployment 'web'" in result.stdout
        manager.restart_deployment.assert_called_once_with("web", "team-a")

    def test_restart_denied(
        self, cli_runner: CliRunner, app: typer.Typer, mock_services: MagicMock
    ) -> None:
        """restart should exit 1 without edit access."""
        mock_services.resource_manager.return_value.restart_deployment.side_effect = (
            PermissionDeniedError(message="Principal 'alice' may not edit namespace 'team-a'")
        )

        result = cli_runner.invoke(app, ["restart", "web", "-n", "team-a"])

        assert result.exit_code == 1
        assert "Permission denied" in result.output

    def test_trigger(
        self, cli_runner: CliRunner, app: typer.Typer, mock_services: MagicMock
    ) -> None:
        """trigger should report the created Job."""
        manager = mock_services.resource_manager.return_value
        manager.trigger_cron_job.return_value = "nightly-manual-1700000000"

        result = cli_runner.invoke(app, ["trigger", "nightly"])

        assert result.exit_code == 0
        assert "nightly-manual-1700000000" in result.stdout
        manager.trigger_cron_job.assert_called_once_with("nightly", None)


@pytest.mark.unit
@pytest.mark.kubernetes
class TestResolveCommand:
    """Tests for ``resolve``."""

    def test_resolve_offline(
        self, cli_runner: CliRunner, app: typer.Typer, mock_services: MagicMock
    ) -> None:
        """resolve --offline should skip discovery."""
        mock_services.resolver.return_value = KindResolver()

        result = cli_runner.invoke(app, ["resolve", "hpa", "--offline", "-o", "json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["resource"] == "horizontalpodautoscalers"
        assert data["apiVersion"] == "autoscaling/v2"
        mock_services.resolver.assert_called_once_with(discovery=False)

    def test_resolve_cluster_scoped(
        self, cli_runner: CliRunner, app: typer.Typer, mock_services: MagicMock
    ) -> None:
        """--cluster-scoped should force cluster scope."""
        mock_services.resolver.return_value = KindResolver()

        result = cli_runner.invoke(
            app,
            [
                "resolve",
                "Widget",
                "--api-version",
                "example.com/v1",
                "--cluster-scoped",
                "--offline",
                "-o",
                "json",
            ],
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["resource"] == "widgets"
        assert data["namespaced"] is False
