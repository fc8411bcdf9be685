"""Main CLI entry point using Typer."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from kubegate import __version__
from kubegate.cli.commands.base import console, parse_grants
from kubegate.cli.commands.resources import register_resource_commands
from kubegate.cli.services import GatewayServices
from kubegate.integrations.kubernetes.models.principal import Principal
from kubegate.logging.config import configure_logging

app = typer.Typer(
    name="kubegate",
    help="Permission-scoped gateway to Kubernetes resources.",
    no_args_is_help=True,
    add_completion=True,
)

_services: GatewayServices | None = None


def get_services() -> GatewayServices:
    """Services for the current invocation, built by the app callback."""
    if _services is None:
        raise RuntimeError("CLI services requested before the app callback ran")
    return _services


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"kubegate version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Enable verbose output.")
    ] = False,
    debug: Annotated[bool, typer.Option("--debug", help="Enable debug mode.")] = False,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config", "-c", help="Config file (default ~/.config/kubegate/config.yaml)."
        ),
    ] = None,
    identity: Annotated[
        str,
        typer.Option("--as", help="Identity of the calling principal.", envvar="KUBEGATE_AS"),
    ] = "cli",
    role: Annotated[
        str,
        typer.Option("--role", help="Role claim of the caller; 'admin' is unrestricted."),
    ] = "",
    grants: Annotated[
        list[str] | None,
        typer.Option(
            "--grant",
            help="Namespace grant as NAMESPACE=view|edit; repeatable. None means unrestricted.",
        ),
    ] = None,
) -> None:
    """kubegate - list, watch and change cluster objects within a principal's namespaces."""
    global _services

    configure_logging(verbose=verbose, debug=debug)
    principal = Principal(identity=identity, role=role, permissions=parse_grants(grants))
    _services = GatewayServices(principal, config_path=config)
    ctx.call_on_close(_services.close)


register_resource_commands(app, get_services)


if __name__ == "__main__":
    app()
