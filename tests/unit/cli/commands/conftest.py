"""Shared fixtures for gateway command tests."""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import MagicMock

import pytest
import typer

from kubegate.cli.commands.resources import register_resource_commands


@pytest.fixture
def mock_services() -> MagicMock:
    """Create a mock GatewayServices."""
    return MagicMock()


@pytest.fixture
def get_services(mock_services: MagicMock) -> Callable[[], MagicMock]:
    """Create a factory function that returns the mock services."""
    return lambda: mock_services


@pytest.fixture
def app(get_services: Callable[[], MagicMock]) -> typer.Typer:
    """Create a test app with the resource commands."""
    app = typer.Typer()
    register_resource_commands(app, get_services)
    return app
