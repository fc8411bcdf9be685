"""Gateway configuration models."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "kubegate" / "config.yaml"

DEFAULT_SYSTEM_NAMESPACES = ("kube-system", "kube-public", "kube-node-lease")


class ClusterConfig(BaseModel):
    """Connection settings for a single Kubernetes cluster."""

    model_config = ConfigDict(extra="forbid")

    context: str = ""
    kubeconfig: str = "~/.kube/config"
    namespace: str = "default"
    timeout: int = 30

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        """Validate timeout is positive."""
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v

    @field_validator("kubeconfig")
    @classmethod
    def validate_kubeconfig(cls, v: str) -> str:
        """Expand ~ in kubeconfig path."""
        return str(Path(v).expanduser())


class AccessConfig(BaseModel):
    """Limits and identities applied by the access core."""

    model_config = ConfigDict(extra="forbid")

    field_manager: str = Field(
        default="kubegate",
        description="Field manager identity used for server-side apply",
    )
    max_import_documents: int = Field(
        default=50,
        description="Maximum number of non-empty documents per import",
    )
    max_import_bytes: int = Field(
        default=1024 * 1024,
        description="Maximum size of an import payload in bytes",
    )
    request_timeout: int = Field(
        default=30,
        description="Deadline in seconds for a single upstream call",
    )
    system_namespaces: list[str] = Field(default_factory=lambda: list(DEFAULT_SYSTEM_NAMESPACES))

    @field_validator("max_import_documents", "max_import_bytes", "request_timeout")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate limits are positive."""
        if v <= 0:
            raise ValueError("value must be positive")
        return v

    @field_validator("field_manager")
    @classmethod
    def validate_field_manager(cls, v: str) -> str:
        """Validate the field manager is not blank."""
        if not v.strip():
            raise ValueError("field_manager must not be empty")
        return v.strip()


class KubeGateConfig(BaseModel):
    """Complete gateway configuration."""

    model_config = ConfigDict(extra="forbid")

    clusters: dict[str, ClusterConfig] = {}
    active_cluster: str | None = None
    kubeconfig: str | None = None
    namespace: str = "default"
    access: AccessConfig = AccessConfig()
    output_format: Literal["table", "json", "yaml"] = "table"

    @classmethod
    def from_env(cls, base_config: dict[str, Any] | None = None) -> KubeGateConfig:
        """Create configuration with environment variable overrides.

        Environment variables take precedence over base_config values.

        Supported environment variables:
            KUBEGATE_CONTEXT: Override active Kubernetes context
            KUBEGATE_NAMESPACE: Override default namespace
            KUBEGATE_KUBECONFIG: Override kubeconfig path
            KUBEGATE_TIMEOUT: Upstream request deadline in seconds
            KUBEGATE_FIELD_MANAGER: Field manager for server-side apply
            KUBEGATE_MAX_IMPORT_DOCUMENTS: Document cap for bulk import
            KUBEGATE_OUTPUT: Output format (table, json, yaml)
        """
        config_dict = dict(base_config) if base_config else {}
        access = dict(config_dict.get("access") or {})

        if context := os.environ.get("KUBEGATE_CONTEXT"):
            config_dict["active_cluster"] = context

        if kubeconfig := os.environ.get("KUBEGATE_KUBECONFIG"):
            config_dict["kubeconfig"] = kubeconfig

        if namespace := os.environ.get("KUBEGATE_NAMESPACE"):
            config_dict["namespace"] = namespace

        if timeout := os.environ.get("KUBEGATE_TIMEOUT"):
            access["request_timeout"] = int(timeout)

        if field_manager := os.environ.get("KUBEGATE_FIELD_MANAGER"):
            access["field_manager"] = field_manager

        if max_documents := os.environ.get("KUBEGATE_MAX_IMPORT_DOCUMENTS"):
            access["max_import_documents"] = int(max_documents)

        if output_format := os.environ.get("KUBEGATE_OUTPUT"):
            config_dict["output_format"] = output_format

        config_dict["access"] = access
        instance = cls.model_validate(config_dict)

        # Environment overrides win over per-cluster settings
        for cluster_cfg in instance.clusters.values():
            if kubeconfig:
                cluster_cfg.kubeconfig = str(Path(kubeconfig).expanduser())
            if namespace:
                cluster_cfg.namespace = namespace
            if timeout:
                cluster_cfg.timeout = int(timeout)

        return instance

    @field_validator("kubeconfig")
    @classmethod
    def validate_kubeconfig(cls, v: str | None) -> str | None:
        """Expand ~ in kubeconfig path."""
        return str(Path(v).expanduser()) if v else None

    def _active_cluster_config(self) -> ClusterConfig | None:
        if self.active_cluster and self.active_cluster in self.clusters:
            return self.clusters[self.active_cluster]
        if self.clusters and not self.active_cluster:
            return next(iter(self.clusters.values()))
        return None

    def get_active_context(self) -> str | None:
        """Get the active cluster context name.

        Returns the context of the named cluster when active_cluster matches
        one, the raw active_cluster value otherwise, or the first configured
        cluster's context. None lets kubeconfig pick its current context.
        """
        if cluster := self._active_cluster_config():
            return cluster.context or None
        return self.active_cluster

    def get_active_kubeconfig(self) -> str | None:
        """Get the kubeconfig path for the active cluster, if any."""
        if cluster := self._active_cluster_config():
            return cluster.kubeconfig
        return self.kubeconfig

    def get_active_namespace(self) -> str:
        """Get the default namespace for the active cluster."""
        if cluster := self._active_cluster_config():
            return cluster.namespace
        return self.namespace

    def get_active_timeout(self) -> int:
        """Get the upstream request deadline in seconds."""
        if cluster := self._active_cluster_config():
            return cluster.timeout
        return self.access.request_timeout


def load_config(path: str | Path | None = None) -> KubeGateConfig:
    """Load configuration from a YAML file with environment overrides.

    A missing file at the default location is not an error; the
    defaults plus environment overrides are used instead.

    Args:
        path: Explicit config file path. Must exist when given.

    Returns:
        The validated configuration.

    Raises:
        FileNotFoundError: If an explicit path does not exist.
        ValueError: If the file does not contain a mapping.
    """
    config_path = Path(path).expanduser() if path else DEFAULT_CONFIG_PATH
    if path and not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    data: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open() as f:
            loaded = yaml.safe_load(f)
        if loaded is not None and not isinstance(loaded, dict):
            raise ValueError(f"Config file must contain a mapping: {config_path}")
        data = loaded or {}

    return KubeGateConfig.from_env(data)
