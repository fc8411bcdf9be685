"""Resource commands: list, watch, import, get, apply, delete, resolve and actions.

Actions are the Deployment and CronJob operations: scale, restart and trigger.
"""

from __future__ import annotations

import sys
import threading
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer

from kubegate.cli.commands.base import (
    AllNamespacesOption,
    ApiVersionOption,
    FieldSelectorOption,
    KindArgument,
    LabelSelectorOption,
    ManifestArgument,
    NameArgument,
    NamespaceOption,
    OutputOption,
    confirm_delete,
    console,
    err_console,
    handle_k8s_error,
)
from kubegate.cli.formatters import OutputFormat, get_formatter
from kubegate.integrations.kubernetes.exceptions import KubernetesError
from kubegate.services.kubernetes.manifests import manifest_metadata, resource_identifier
from kubegate.services.kubernetes.watch_manager import (
    WatchSession,
    format_sse,
    watch_for_disconnect,
)

if TYPE_CHECKING:
    from kubegate.cli.services import GatewayServices
    from kubegate.integrations.kubernetes.models.resource import WatchEvent

# ---------------------------------------------------------------------------
# Command-specific options
# ---------------------------------------------------------------------------

ExitOnStdinCloseOption = Annotated[
    bool,
    typer.Option(
        "--exit-on-stdin-close",
        help="Stop watching when standard input reaches EOF",
    ),
]

SseOption = Annotated[
    bool,
    typer.Option("--sse", help="Frame events as server-sent events"),
]

ImmediateOption = Annotated[
    bool,
    typer.Option(
        "--force",
        help="Delete immediately without waiting for dependents",
    ),
]

YesOption = Annotated[
    bool,
    typer.Option("--yes", "-y", help="Skip the confirmation prompt"),
]

ClusterScopedOption = Annotated[
    bool,
    typer.Option("--cluster-scoped", help="Force cluster scope for the resolved kind"),
]

OfflineOption = Annotated[
    bool,
    typer.Option("--offline", help="Skip API discovery; use the built-in table and inference"),
]

DeltaOption = Annotated[
    int,
    typer.Option("--by", help="Replicas to add (negative to remove); must be non-zero"),
]

IMPORT_COLUMNS = [("identifier", "Applied")]


def _read_manifest(source: str) -> bytes:
    if source == "-":
        return sys.stdin.buffer.read()
    path = Path(source)
    if not path.is_file():
        raise typer.BadParameter(f"File not found: {source}", param_hint="FILE")
    return path.read_bytes()


# ---------------------------------------------------------------------------
# Command registration
# ---------------------------------------------------------------------------


def register_resource_commands(
    app: typer.Typer,
    get_services: Callable[[], GatewayServices],
) -> None:
    """Register the resource commands on the gateway CLI app."""

    # -----------------------------------------------------------------
    # list
    # -----------------------------------------------------------------

    @app.command("list")
    def list_resources(
        kind: KindArgument,
        namespace: NamespaceOption = None,
        all_namespaces: AllNamespacesOption = False,
        label_selector: LabelSelectorOption = None,
        field_selector: FieldSelectorOption = None,
        output: OutputOption = OutputFormat.TABLE,
    ) -> None:
        """List resources of a kind the caller may see.

        Examples:
            kubegate list deployments -n team-a
            kubegate --grant team-a=view list configmap -A -o json
        """
        try:
            manager = get_services().list_manager()
            resources = manager.list_resources(
                kind,
                namespace,
                all_namespaces=all_namespaces,
                label_selector=label_selector,
                field_selector=field_selector,
            )
            get_formatter(output, console).format_list(resources, title=kind)
        except KubernetesError as e:
            handle_k8s_error(e)

    # -----------------------------------------------------------------
    # watch
    # -----------------------------------------------------------------

    @app.command("watch")
    def watch_resources(
        kind: KindArgument,
        namespace: NamespaceOption = None,
        all_namespaces: AllNamespacesOption = False,
        label_selector: LabelSelectorOption = None,
        exit_on_stdin_close: ExitOnStdinCloseOption = False,
        sse: SseOption = False,
    ) -> None:
        """Stream change events for a kind, one JSON object per line.

        Examples:
            kubegate watch pods -n team-a
            kubegate watch deployments -n team-a --sse --exit-on-stdin-close
        """

        def emit(event: WatchEvent) -> None:
            if sse:
                typer.echo(format_sse(event), nl=False)
            else:
                typer.echo(event.model_dump_json())

        try:
            handle = get_services().watch_manager().start(
                kind,
                namespace,
                all_namespaces=all_namespaces,
                label_selector=label_selector,
            )
            token = threading.Event()
            if exit_on_stdin_close:
                watch_for_disconnect(sys.stdin.readline, token)
            session = WatchSession(handle, emit, token)
            try:
                session.run()
            except KeyboardInterrupt:
                session.cancel()
                err_console.print("[dim]Watch cancelled[/dim]")
        except KubernetesError as e:
            handle_k8s_error(e)

    # -----------------------------------------------------------------
    # import
    # -----------------------------------------------------------------

    @app.command("import")
    def import_manifests(
        source: ManifestArgument,
        output: OutputOption = OutputFormat.TABLE,
    ) -> None:
        """Apply every document in a multi-document manifest.

        Documents are applied in order; the import stops at the first
        failure and reports what was already applied.

        Examples:
            kubegate import bundle.yaml
            cat bundle.yaml | kubegate import -
        """
        try:
            outcome = get_services().import_manager().import_manifests(_read_manifest(source))
            if output == OutputFormat.TABLE:
                rows = [{"identifier": i} for i in outcome.applied_identifiers]
                get_formatter(output, console).format_list(rows, IMPORT_COLUMNS)
            else:
                get_formatter(output, console).format_dict(outcome.to_wire())
        except KubernetesError as e:
            handle_k8s_error(e)

    # -----------------------------------------------------------------
    # get
    # -----------------------------------------------------------------

    @app.command("get")
    def get_resource(
        kind: KindArgument,
        name: NameArgument,
        namespace: NamespaceOption = None,
        api_version: ApiVersionOption = "",
        output: OutputOption = OutputFormat.YAML,
    ) -> None:
        """Show one object, cleaned of server-managed fields.

        Examples:
            kubegate get deployment web -n team-a
            kubegate get widget w1 --api-version example.com/v1 -o json
        """
        try:
            manager = get_services().resource_manager()
            if output == OutputFormat.YAML:
                typer.echo(
                    manager.get_resource_yaml(kind, name, namespace, api_version=api_version),
                    nl=False,
                )
            else:
                data = manager.get_resource(kind, name, namespace, api_version=api_version)
                get_formatter(output, console).format_dict(data, title=f"{kind} {name}")
        except KubernetesError as e:
            handle_k8s_error(e)

    # -----------------------------------------------------------------
    # apply
    # -----------------------------------------------------------------

    @app.command("apply")
    def apply_resource(
        source: ManifestArgument,
        namespace: NamespaceOption = None,
    ) -> None:
        """Create or update one object from a single-document manifest.

        Examples:
            kubegate apply deployment.yaml -n team-a
        """
        try:
            applied = get_services().resource_manager().apply_resource(
                _read_manifest(source), namespace=namespace
            )
            metadata = manifest_metadata(applied)
            identifier = resource_identifier(
                str(applied.get("kind", "")),
                str(metadata.get("namespace") or ""),
                str(metadata.get("name", "")),
            )
            console.print(f"[green]Applied {identifier}[/green]")
        except KubernetesError as e:
            handle_k8s_error(e)

    # -----------------------------------------------------------------
    # delete
    # -----------------------------------------------------------------

    @app.command("delete")
    def delete_resource(
        kind: KindArgument,
        name: NameArgument,
        namespace: NamespaceOption = None,
        api_version: ApiVersionOption = "",
        force: ImmediateOption = False,
        yes: YesOption = False,
    ) -> None:
        """Delete one object.

        Examples:
            kubegate delete deployment web -n team-a
            kubegate delete pod stuck-0 -n team-a --force --yes
        """
        if not yes and not confirm_delete(kind, name, namespace):
            console.print("[yellow]Deletion cancelled[/yellow]")
            raise typer.Exit(0)
        try:
            get_services().resource_manager().delete_resource(
                kind, name, namespace, force=force, api_version=api_version
            )
            console.print(f"[green]Deleted {kind} '{name}'[/green]")
        except KubernetesError as e:
            handle_k8s_error(e)

    # -----------------------------------------------------------------
    # scale / restart / trigger
    # -----------------------------------------------------------------

    @app.command("scale")
    def scale_deployment(
        name: NameArgument,
        delta: DeltaOption,
        namespace: NamespaceOption = None,
    ) -> None:
        """Scale a Deployment up or down by a number of replicas.

        Examples:
            kubegate scale web --by 2 -n team-a
            kubegate scale web --by=-1 -n team-a
        """
        try:
            replicas = get_services().resource_manager().scale_deployment(
                name, namespace, delta=delta
            )
            console.print(f"[green]Scaled Deployment '{name}' to {replicas} replicas[/green]")
        except KubernetesError as e:
            handle_k8s_error(e)

    @app.command("restart")
    def restart_deployment(
        name: NameArgument,
        namespace: NamespaceOption = None,
    ) -> None:
        """Start a rolling restart of a Deployment.

        Examples:
            kubegate restart web -n team-a
        """
        try:
            get_services().resource_manager().restart_deployment(name, namespace)
            console.print(f"[green]Restarted Deployment '{name}'[/green]")
        except KubernetesError as e:
            handle_k8s_error(e)

    @app.command("trigger")
    def trigger_cron_job(
        name: NameArgument,
        namespace: NamespaceOption = None,
    ) -> None:
        """Run a CronJob now.

        Examples:
            kubegate trigger nightly-report -n team-a
        """
        try:
            job_name = get_services().resource_manager().trigger_cron_job(name, namespace)
            console.print(f"[green]Created Job '{job_name}' from CronJob '{name}'[/green]")
        except KubernetesError as e:
            handle_k8s_error(e)

    # -----------------------------------------------------------------
    # resolve
    # -----------------------------------------------------------------

    @app.command("resolve")
    def resolve_kind(
        kind: KindArgument,
        api_version: ApiVersionOption = "",
        cluster_scoped: ClusterScopedOption = False,
        offline: OfflineOption = False,
        output: OutputOption = OutputFormat.TABLE,
    ) -> None:
        """Show the API coordinates a kind resolves to.

        Examples:
            kubegate resolve hpa
            kubegate resolve Widget --api-version example.com/v1 --offline
        """
        try:
            resolver = get_services().resolver(discovery=not offline)
            coordinates = resolver.resolve(
                kind, api_version, namespaced_hint=False if cluster_scoped else None
            )
            data = coordinates.to_wire()
            data["apiVersion"] = coordinates.api_version
            get_formatter(output, console).format_dict(data, title=kind)
        except KubernetesError as e:
            handle_k8s_error(e)
