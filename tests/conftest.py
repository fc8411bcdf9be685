"""Shared pytest fixtures for kubegate tests."""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog
from typer.testing import CliRunner


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def temp_config_file(tmp_path: Path) -> Path:
    """Create a temporary gateway config file."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
namespace: apps
access:
  field_manager: kubegate-test
  max_import_documents: 10
clusters:
  staging:
    context: staging-ctx
    namespace: staging
    timeout: 15
active_cluster: staging
"""
    )
    return config_path


@pytest.fixture(autouse=True)
def reset_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Clear KUBEGATE_ variables and keep log files out of the home directory."""
    for key in list(os.environ.keys()):
        if key.startswith("KUBEGATE_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr("kubegate.logging.config.LOG_DIR", tmp_path / "logs")


@pytest.fixture(autouse=True)
def structlog_to_stderr() -> Iterator[None]:
    """Keep log lines off stdout so command output stays machine-readable."""
    structlog.configure(logger_factory=structlog.PrintLoggerFactory(file=sys.stderr))
    yield
    structlog.reset_defaults()
