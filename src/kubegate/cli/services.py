"""Per-invocation wiring of configuration, principal and managers."""

from __future__ import annotations

from pathlib import Path

import structlog
import typer

from kubegate.integrations.kubernetes.client import KubernetesClient
from kubegate.integrations.kubernetes.config import KubeGateConfig, load_config
from kubegate.integrations.kubernetes.models.principal import Principal
from kubegate.services.kubernetes.import_manager import ImportManager
from kubegate.services.kubernetes.kind_resolver import KindResolver
from kubegate.services.kubernetes.permissions import PermissionGate
from kubegate.services.kubernetes.resource_list_manager import ResourceListManager
from kubegate.services.kubernetes.resource_manager import ResourceManager
from kubegate.services.kubernetes.watch_manager import WatchManager

logger = structlog.get_logger()


class GatewayServices:
    """Builds managers for one CLI invocation.

    The configuration and cluster client are created on first use, so
    commands that never reach the cluster (``--help``, ``resolve`` without
    discovery) do not need a kubeconfig.

    Args:
        principal: The caller the managers act for.
        config_path: Explicit config file; the default location otherwise.
    """

    def __init__(self, principal: Principal, config_path: Path | None = None) -> None:
        self.principal = principal
        self._config_path = config_path
        self._config: KubeGateConfig | None = None
        self._client: KubernetesClient | None = None
        self._gate: PermissionGate | None = None

    @property
    def config(self) -> KubeGateConfig:
        if self._config is None:
            try:
                self._config = load_config(self._config_path)
            except (OSError, ValueError) as e:
                raise typer.BadParameter(str(e), param_hint="--config") from e
            logger.debug("loaded_config", path=str(self._config_path or "default"))
        return self._config

    @property
    def client(self) -> KubernetesClient:
        if self._client is None:
            self._client = KubernetesClient(self.config)
        return self._client

    @property
    def gate(self) -> PermissionGate:
        if self._gate is None:
            self._gate = PermissionGate(self.principal)
        return self._gate

    def resolver(self, discovery: bool = True) -> KindResolver:
        """Kind resolver, optionally backed by the cluster's discovery sweep."""
        return KindResolver(discover=self.client.discover_api_resources if discovery else None)

    def list_manager(self) -> ResourceListManager:
        return ResourceListManager(self.client, self.gate)

    def watch_manager(self) -> WatchManager:
        return WatchManager(self.client, self.gate)

    def import_manager(self) -> ImportManager:
        return ImportManager(
            self.client, self.gate, resolver=self.resolver(), access=self.config.access
        )

    def resource_manager(self) -> ResourceManager:
        return ResourceManager(
            self.client, self.gate, resolver=self.resolver(), access=self.config.access
        )

    def close(self) -> None:
        """Release the cluster client if one was created."""
        if self._client is not None:
            self._client.close()
            self._client = None
