"""Shared fixtures for gateway service tests."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from kubegate.integrations.kubernetes.client import KubernetesClient
from kubegate.integrations.kubernetes.models.principal import Action, Principal
from kubegate.services.kubernetes.permissions import PermissionGate


@pytest.fixture
def mock_k8s_client() -> MagicMock:
    """Create a mock Kubernetes client.

    Typed API groups and ``resource_for`` are plain mocks; error
    translation is the real implementation so managers raise real
    gateway errors.
    """
    mock_client = MagicMock()
    mock_client.default_namespace = "default"
    mock_client.timeout = 30
    mock_client.translate_api_exception.side_effect = KubernetesClient.translate_api_exception
    return mock_client


@pytest.fixture
def admin_gate() -> PermissionGate:
    """Gate for a cluster administrator."""
    return PermissionGate(Principal(identity="root", role="admin"))


@pytest.fixture
def unrestricted_gate() -> PermissionGate:
    """Gate for a non-admin principal with no namespace restrictions."""
    return PermissionGate(Principal(identity="ops", role="operator"))


@pytest.fixture
def team_a_viewer_gate() -> PermissionGate:
    """Gate for a principal that may only view team-a."""
    return PermissionGate(Principal(identity="alice", permissions={"team-a": Action.VIEW}))


@pytest.fixture
def team_a_editor_gate() -> PermissionGate:
    """Gate for a principal that may edit team-a and view team-b."""
    return PermissionGate(
        Principal(
            identity="bob",
            permissions={"team-a": Action.EDIT, "team-b": Action.VIEW},
        )
    )


@pytest.fixture
def failing_gate() -> PermissionGate:
    """Gate whose permission source always fails."""
    source = MagicMock()
    source.scope_for.side_effect = RuntimeError("permission store unavailable")
    source.is_cluster_admin.side_effect = RuntimeError("permission store unavailable")
    return PermissionGate(Principal(identity="root", role="admin"), source=source)
