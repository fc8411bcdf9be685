"""Manifest decoding and cleanup shared by the write paths."""

from __future__ import annotations

import copy
from typing import IO, Any

from kubegate.integrations.kubernetes.exceptions import KubernetesValidationError

# Fields populated by the API server; a write carrying stale copies of
# them can collide with the live object
SERVER_MANAGED_METADATA_FIELDS = (
    "creationTimestamp",
    "managedFields",
    "resourceVersion",
    "uid",
)

# Also dropped when presenting a live object for editing
DISPLAY_ONLY_METADATA_FIELDS = ("generation", "selfLink")

ManifestSource = str | bytes | IO[str] | IO[bytes]


def read_source(source: ManifestSource, max_bytes: int | None = None) -> str:
    """Read a manifest source into text, enforcing a size limit.

    Raises:
        KubernetesValidationError: If the input is too large or not UTF-8.
    """
    data = source if isinstance(source, str | bytes) else source.read()
    raw = data.encode("utf-8") if isinstance(data, str) else data
    if max_bytes is not None and len(raw) > max_bytes:
        raise KubernetesValidationError(
            message=f"Manifest input exceeds {max_bytes} bytes",
            status_code=413,
        )
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise KubernetesValidationError(
            message=f"Manifest input is not valid UTF-8: {e}", status_code=400
        ) from e


def load_documents(content: str) -> list[dict[str, Any]]:
    """Decode a ``---`` separated YAML or JSON stream.

    Empty documents are skipped.

    Raises:
        KubernetesValidationError: If the stream cannot be parsed or a
            document is not a mapping.
    """
    from ruamel.yaml import YAML
    from ruamel.yaml.error import YAMLError

    yaml = YAML(typ="safe")
    try:
        documents = list(yaml.load_all(content))
    except YAMLError as e:
        raise KubernetesValidationError(
            message=f"Failed to decode manifest: {e}", status_code=400
        ) from e

    manifests: list[dict[str, Any]] = []
    for index, doc in enumerate(documents):
        if doc is None or doc == {}:
            continue
        if not isinstance(doc, dict):
            raise KubernetesValidationError(
                message=f"Document {index + 1} is a {type(doc).__name__}, expected a mapping",
                status_code=400,
            )
        manifests.append(doc)
    return manifests


def strip_server_fields(
    manifest: dict[str, Any],
    extra_fields: tuple[str, ...] = (),
) -> dict[str, Any]:
    """Return a deep copy of the manifest without server-managed metadata."""
    cleaned = copy.deepcopy(manifest)
    metadata = cleaned.get("metadata")
    if isinstance(metadata, dict):
        for meta_field in (*SERVER_MANAGED_METADATA_FIELDS, *extra_fields):
            metadata.pop(meta_field, None)
    return cleaned


def manifest_metadata(manifest: dict[str, Any]) -> dict[str, Any]:
    """Return the manifest's metadata mapping, or an empty dict."""
    metadata = manifest.get("metadata")
    return metadata if isinstance(metadata, dict) else {}


def resource_identifier(kind: str, namespace: str, name: str) -> str:
    """``kind/namespace/name`` with ``-`` for cluster-scoped objects."""
    return f"{kind}/{namespace or '-'}/{name}"


def dump_yaml(manifest: dict[str, Any]) -> str:
    """Serialize a manifest as block-style YAML, keeping key order."""
    import yaml

    return yaml.safe_dump(manifest, default_flow_style=False, sort_keys=False)
