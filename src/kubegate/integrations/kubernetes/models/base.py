"""Base models and SDK helpers for the resource envelope."""

from __future__ import annotations

from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from kubernetes.client import ApiClient

RFC3339_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class GatewayModel(BaseModel):
    """Base class for every model that crosses the gateway boundary."""

    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump to the camelCase dictionary sent to callers."""
        return self.model_dump(by_alias=True, mode="json")


def _safe_get(obj: Any, *attrs: str, default: Any = None) -> Any:
    """Safely traverse nested attributes on kubernetes SDK objects."""
    current = obj
    for attr in attrs:
        if current is None:
            return default
        current = getattr(current, attr, None)
    return current if current is not None else default


def _rfc3339(value: Any) -> str:
    """Format a timestamp as RFC3339 in UTC, or "" when absent."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC).strftime(RFC3339_FORMAT)
    return str(value)


def _get_labels(obj: Any) -> dict[str, str]:
    """Extract labels dict, empty when unset."""
    labels = _safe_get(obj, "metadata", "labels")
    return dict(labels) if labels else {}


def _get_annotations(obj: Any) -> dict[str, str]:
    """Extract annotations dict, empty when unset."""
    annotations = _safe_get(obj, "metadata", "annotations")
    return dict(annotations) if annotations else {}


@cache
def _serializer() -> ApiClient:
    from kubernetes.client import ApiClient

    return ApiClient()


def _to_plain(obj: Any) -> Any:
    """Convert SDK model objects into JSON-ready dicts with API field names."""
    if obj is None:
        return None
    return _serializer().sanitize_for_serialization(obj)
