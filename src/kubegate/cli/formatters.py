"""Output formatters for gateway CLI commands.

Commands pick a formatter with ``get_formatter`` and hand it resource
envelopes or plain mappings; the formatter decides how they render.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Sequence
from enum import StrEnum
from typing import Any

import yaml
from rich.console import Console
from rich.table import Table

# (field, header) pairs for resource envelopes
RESOURCE_COLUMNS: list[tuple[str, str]] = [
    ("name", "Name"),
    ("namespace", "Namespace"),
    ("kind", "Kind"),
    ("status", "Status"),
    ("createdAt", "Created"),
]


class OutputFormat(StrEnum):
    """Supported output formats for CLI commands."""

    TABLE = "table"
    JSON = "json"
    YAML = "yaml"


def _to_data(item: Any) -> Any:
    if hasattr(item, "to_wire"):
        return item.to_wire()
    if hasattr(item, "model_dump"):
        return item.model_dump(mode="json")
    return item


class Formatter(ABC):
    """Renders command results to a console."""

    def __init__(self, console: Console) -> None:
        self.console = console

    @abstractmethod
    def format_list(
        self,
        resources: Sequence[Any],
        columns: list[tuple[str, str]] | None = None,
        title: str = "",
    ) -> None:
        """Render a list of envelopes."""

    @abstractmethod
    def format_dict(self, data: dict[str, Any], title: str = "") -> None:
        """Render one mapping."""

    def format_success(self, message: str) -> None:
        self.console.print(f"[green]{message}[/green]")


class TableFormatter(Formatter):
    """Rich table output."""

    def format_list(
        self,
        resources: Sequence[Any],
        columns: list[tuple[str, str]] | None = None,
        title: str = "",
    ) -> None:
        columns = columns or RESOURCE_COLUMNS
        table = Table(title=title or None, show_header=True)
        for _field, header in columns:
            style = "cyan" if header.lower() in ("name", "namespace") else None
            table.add_column(header, style=style, overflow="fold")

        for resource in resources:
            data = _to_data(resource)
            table.add_row(*(self._cell(data.get(field)) for field, _ in columns))

        self.console.print(table)
        self.console.print(f"\n[dim]Total: {len(resources)} resources[/dim]")

    def format_dict(self, data: dict[str, Any], title: str = "") -> None:
        table = Table(title=title or None, show_header=True)
        table.add_column("Key", style="cyan", no_wrap=True)
        table.add_column("Value", style="green", overflow="fold")
        for key, value in data.items():
            table.add_row(str(key), self._cell(value, expand=True))
        self.console.print(table)

    @staticmethod
    def _cell(value: Any, expand: bool = False) -> str:
        if value is None or value == "":
            return "-"
        if isinstance(value, bool):
            return "Yes" if value else "No"
        if isinstance(value, list):
            if not value:
                return "-"
            if expand or len(value) <= 3:
                return ", ".join(str(v) for v in value)
            return ", ".join(str(v) for v in value[:3]) + f" (+{len(value) - 3})"
        if isinstance(value, dict):
            return json.dumps(value, indent=2 if expand else None, default=str)
        return str(value)


class JsonFormatter(Formatter):
    """JSON output; lists are wrapped as ``{"data": [...], "total": n}``."""

    def format_list(
        self,
        resources: Sequence[Any],
        columns: list[tuple[str, str]] | None = None,
        title: str = "",
    ) -> None:
        data = [_to_data(r) for r in resources]
        self.console.print_json(json.dumps({"data": data, "total": len(data)}, default=str))

    def format_dict(self, data: dict[str, Any], title: str = "") -> None:
        self.console.print_json(json.dumps(data, default=str))


class YamlFormatter(Formatter):
    """YAML output."""

    def format_list(
        self,
        resources: Sequence[Any],
        columns: list[tuple[str, str]] | None = None,
        title: str = "",
    ) -> None:
        data = [_to_data(r) for r in resources]
        self.console.print(
            yaml.safe_dump(data, default_flow_style=False, sort_keys=False), markup=False
        )

    def format_dict(self, data: dict[str, Any], title: str = "") -> None:
        self.console.print(
            yaml.safe_dump(data, default_flow_style=False, sort_keys=False), markup=False
        )


def get_formatter(format_type: OutputFormat, console: Console | None = None) -> Formatter:
    """Return the formatter for an output format."""
    formatters: dict[OutputFormat, type[Formatter]] = {
        OutputFormat.TABLE: TableFormatter,
        OutputFormat.JSON: JsonFormatter,
        OutputFormat.YAML: YamlFormatter,
    }
    return formatters.get(format_type, TableFormatter)(console or Console())
