"""Shared options and error handling for gateway CLI commands."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

from kubegate.cli.formatters import OutputFormat
from kubegate.integrations.kubernetes.exceptions import (
    ImportAbortedError,
    KubernetesAuthError,
    KubernetesConflictError,
    KubernetesConnectionError,
    KubernetesError,
    KubernetesNotFoundError,
    KubernetesTimeoutError,
    KubernetesValidationError,
    PermissionDeniedError,
    ResourceResolutionError,
)
from kubegate.integrations.kubernetes.models.principal import Action

# Results go to stdout, diagnostics to stderr
console = Console()
err_console = Console(stderr=True)


# =============================================================================
# Common Typer Option Annotations
# =============================================================================

OutputOption = Annotated[
    OutputFormat,
    typer.Option(
        "--output",
        "-o",
        help="Output format: table, json, or yaml",
        case_sensitive=False,
    ),
]

NamespaceOption = Annotated[
    str | None,
    typer.Option(
        "--namespace",
        "-n",
        help="Kubernetes namespace (defaults to config or 'default')",
    ),
]

AllNamespacesOption = Annotated[
    bool,
    typer.Option(
        "--all-namespaces",
        "-A",
        help="Span every namespace the caller may see",
    ),
]

LabelSelectorOption = Annotated[
    str | None,
    typer.Option(
        "--selector",
        "-l",
        help="Label selector (e.g., 'app=nginx,tier=frontend')",
    ),
]

FieldSelectorOption = Annotated[
    str | None,
    typer.Option(
        "--field-selector",
        help="Field selector (e.g., 'status.phase=Running')",
    ),
]

ApiVersionOption = Annotated[
    str,
    typer.Option(
        "--api-version",
        help="apiVersion used when the kind is not well known (e.g., 'example.com/v1')",
    ),
]

KindArgument = Annotated[str, typer.Argument(help="Resource kind or alias (e.g., Deployment, hpa)")]

NameArgument = Annotated[str, typer.Argument(help="Resource name")]

ManifestArgument = Annotated[
    str,
    typer.Argument(help="Manifest file path, or '-' to read from stdin"),
]


# =============================================================================
# Principal Options
# =============================================================================


def parse_grants(grants: list[str] | None) -> dict[str, Action]:
    """Parse repeated ``NAMESPACE=LEVEL`` options into a permissions map.

    Raises:
        typer.BadParameter: If an entry is malformed or names an unknown level.
    """
    permissions: dict[str, Action] = {}
    for grant in grants or []:
        namespace, sep, level = grant.partition("=")
        namespace, level = namespace.strip(), level.strip().lower()
        if not sep or not namespace or not level:
            raise typer.BadParameter(
                f"expected NAMESPACE=LEVEL, got '{grant}'", param_hint="--grant"
            )
        try:
            permissions[namespace] = Action(level)
        except ValueError:
            levels = ", ".join(a.value for a in Action)
            raise typer.BadParameter(
                f"unknown level '{level}' (expected one of: {levels})", param_hint="--grant"
            ) from None
    return permissions


# =============================================================================
# Error Handling
# =============================================================================


def handle_k8s_error(error: KubernetesError) -> None:
    """Print a gateway error for humans and exit.

    Raises:
        typer.Exit: Always exits with code 1.
    """
    if isinstance(error, ImportAbortedError):
        err_console.print(
            f"[red]Error:[/red] Import stopped at document {error.document_index + 1}"
        )
        err_console.print(f"  {error.cause.message}")
        if error.applied_identifiers:
            err_console.print("\n  Already applied (not rolled back):")
            for identifier in error.applied_identifiers:
                err_console.print(f"    - {identifier}")

    elif isinstance(error, PermissionDeniedError):
        err_console.print("[red]Error:[/red] Permission denied")
        err_console.print(f"  {error.message}")

    elif isinstance(error, ResourceResolutionError):
        err_console.print("[red]Error:[/red] Cannot resolve resource kind")
        err_console.print(f"  {error.message}")
        err_console.print("\n[dim]Hint: Pass --api-version for custom resource kinds.[/dim]")

    elif isinstance(error, KubernetesConnectionError):
        err_console.print("[red]Error:[/red] Cannot connect to Kubernetes cluster")
        err_console.print(f"  {error.message}")
        if error.original_error:
            err_console.print(f"  Cause: {error.original_error}")
        err_console.print(
            "\n[dim]Hint: Check that your kubeconfig is valid and the cluster is reachable.[/dim]"
        )

    elif isinstance(error, KubernetesAuthError):
        err_console.print("[red]Error:[/red] Authentication/authorization failed")
        err_console.print(f"  {error.message}")

    elif isinstance(error, KubernetesNotFoundError):
        err_console.print("[red]Error:[/red] Resource not found")
        err_console.print(f"  {error.message}")

    elif isinstance(error, KubernetesValidationError):
        err_console.print("[red]Error:[/red] Validation failed")
        err_console.print(f"  {error.message}")
        if error.validation_errors:
            err_console.print("\n  Field errors:")
            for field, err in error.validation_errors.items():
                err_console.print(f"    - {field}: {err}")

    elif isinstance(error, KubernetesConflictError):
        err_console.print("[red]Error:[/red] Resource conflict")
        err_console.print(f"  {error.message}")

    elif isinstance(error, KubernetesTimeoutError):
        err_console.print("[red]Error:[/red] Operation timed out")
        err_console.print(f"  {error.message}")
        err_console.print("\n[dim]Hint: Raise the deadline with KUBEGATE_TIMEOUT.[/dim]")

    else:
        err_console.print(f"[red]Error:[/red] {error.message}")
        if error.status_code:
            err_console.print(f"  HTTP Status: {error.status_code}")

    raise typer.Exit(1)


def confirm_delete(kind: str, name: str, namespace: str | None = None) -> bool:
    """Prompt the user to confirm a deletion."""
    msg = f"Are you sure you want to delete {kind} '{name}'"
    if namespace:
        msg += f" in namespace '{namespace}'"
    return typer.confirm(msg + "?", default=False)
