"""Change-watch pipeline.

A watch goes through three pieces:

- ``WatchManager.start`` opens exactly one upstream watch for a kind and
  namespace scope and returns a ``WatchHandle``.
- ``WatchManager.transform`` reduces a raw event to a ``WatchEvent``.
- ``WatchSession`` pumps events from the handle to a transport callback
  until the upstream stream ends or the shared cancellation token is set.

The token is the only cancellation signal. ``watch_for_disconnect`` sets
it from a background reader on the client's transport, so the session
never touches the transport itself.
"""

from __future__ import annotations

import functools
import threading
from collections.abc import Callable, Iterator
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog
from kubernetes import watch

from kubegate.integrations.kubernetes.exceptions import (
    PermissionDeniedError,
    WatchEventError,
)
from kubegate.integrations.kubernetes.models.principal import Unrestricted
from kubegate.integrations.kubernetes.models.resource import WatchEvent, WatchEventType
from kubegate.services.kubernetes.base import K8sBaseManager
from kubegate.services.kubernetes.kind_resolver import KindResolver, normalize_kind

if TYPE_CHECKING:
    from kubegate.integrations.kubernetes.client import KubernetesClient
    from kubegate.services.kubernetes.permissions import PermissionGate

logger = structlog.get_logger()


class WatchState(StrEnum):
    """Lifecycle of one watch session."""

    OPEN = "open"
    CANCEL_REQUESTED = "cancel_requested"
    CLOSED = "closed"


class WatchHandle:
    """One open upstream watch.

    Iterating yields raw upstream events. ``stop`` releases the upstream
    watcher and is safe to call more than once; only the first call
    reaches the watcher.
    """

    def __init__(
        self,
        watcher: Any,
        stream: Iterator[Any],
        kind: str,
        namespace: str | None,
        on_error: Callable[[Exception], Any] | None = None,
    ) -> None:
        self.kind = kind
        self.namespace = namespace
        self._watcher = watcher
        self._stream = stream
        self._on_error = on_error
        self._stopped = False
        self._stop_lock = threading.Lock()

    @property
    def stopped(self) -> bool:
        """Whether the upstream watcher has been released."""
        return self._stopped

    def __iter__(self) -> Iterator[Any]:
        try:
            yield from self._stream
        except Exception as e:
            if self._on_error is None:
                raise
            self._on_error(e)

    def stop(self) -> None:
        """Release the upstream watcher.

        May be called from the pump and the cancel path at once.
        """
        with self._stop_lock:
            if self._stopped:
                return
            self._stopped = True
        self._watcher.stop()
        logger.debug("watch_stopped", kind=self.kind, namespace=self.namespace)


class WatchManager(K8sBaseManager):
    """Opens watches and decodes their events for one principal."""

    _entity_name = "watch"

    def __init__(
        self,
        client: KubernetesClient,
        gate: PermissionGate,
        resolver: KindResolver | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            client: Kubernetes API client instance.
            gate: Permission gate for the calling principal.
            resolver: Kind resolver; only its static table is used here.
        """
        super().__init__(client, gate)
        self._resolver = resolver or KindResolver()

    def start(
        self,
        kind: str,
        namespace: str | None = None,
        *,
        all_namespaces: bool = False,
        label_selector: str | None = None,
    ) -> WatchHandle:
        """Open one upstream watch for a kind.

        Args:
            kind: Kind name or alias; must be in the static kind table.
            namespace: Namespace to watch; defaults to the client default.
            all_namespaces: Watch every namespace. Requires unrestricted access.
            label_selector: Filter by label selector.

        Returns:
            The open watch handle.

        Raises:
            ResourceResolutionError: If the kind is not a well-known kind.
            PermissionDeniedError: If the principal may not watch the scope.
        """
        coordinates = self._resolver.resolve_static(kind)
        canonical = normalize_kind(kind)

        # Fails secure when the permission source is down
        scope = self._gate.scope()

        target: str | None = None
        if coordinates.namespaced:
            if all_namespaces:
                if not isinstance(scope, Unrestricted):
                    raise PermissionDeniedError(
                        message="Watching all namespaces requires unrestricted access",
                        principal=self._gate.principal.identity,
                        action="view",
                    )
            else:
                target = self._resolve_namespace(namespace)
                self._gate.require_access(target)

        resource = self._client.resource_for(coordinates, canonical)
        watcher = watch.Watch()
        kwargs: dict[str, Any] = {"watcher": watcher}
        if target:
            kwargs["namespace"] = target
        if label_selector:
            kwargs["label_selector"] = label_selector

        try:
            stream = resource.watch(**kwargs)
        except Exception as e:
            watcher.stop()
            self._handle_api_error(e, canonical, None, target)

        self._log.info(
            "watch_started",
            kind=canonical,
            namespace=target,
            cluster_scoped=not coordinates.namespaced,
        )
        return WatchHandle(
            watcher,
            stream,
            kind=canonical,
            namespace=target,
            on_error=functools.partial(
                self._handle_api_error, resource_type=canonical, namespace=target
            ),
        )

    @staticmethod
    def transform(raw_event: Any) -> WatchEvent:
        """Reduce a raw upstream event to ``{type, name, namespace}``.

        Accepts the dicts produced by kubernetes watch streams, reading
        metadata from ``raw_object`` when present and from ``object``
        otherwise.

        Raises:
            WatchEventError: If the event is malformed or of an
                unsupported type (e.g. ERROR or BOOKMARK).
        """
        if not isinstance(raw_event, dict):
            raise WatchEventError("Watch event is not a mapping", event=raw_event)

        try:
            event_type = WatchEventType(raw_event.get("type"))
        except ValueError as e:
            raise WatchEventError(
                f"Unsupported watch event type: {raw_event.get('type')!r}", event=raw_event
            ) from e

        obj = raw_event.get("raw_object")
        if obj is None:
            obj = raw_event.get("object")

        if isinstance(obj, dict):
            metadata = obj.get("metadata") or {}
            name = metadata.get("name")
            namespace = metadata.get("namespace")
        else:
            metadata = getattr(obj, "metadata", None)
            name = getattr(metadata, "name", None)
            namespace = getattr(metadata, "namespace", None)

        if not name:
            raise WatchEventError("Watch event object has no name", event=raw_event)

        return WatchEvent(type=event_type, name=name, namespace=namespace or "")


class WatchSession:
    """Drives one watch from upstream events to a transport callback.

    ``OPEN`` until the upstream stream ends (``CLOSED``) or the token is
    set (``CANCEL_REQUESTED`` then ``CLOSED``). Either way the handle is
    stopped exactly once, and nothing is emitted once the token is set.

    Args:
        handle: The open upstream watch.
        emit: Called with each decoded event.
        token: Shared cancellation token.
        transform: Event decoder; defaults to ``WatchManager.transform``.
    """

    def __init__(
        self,
        handle: WatchHandle,
        emit: Callable[[WatchEvent], None],
        token: threading.Event | None = None,
        transform: Callable[[Any], WatchEvent] = WatchManager.transform,
    ) -> None:
        self._handle = handle
        self._emit = emit
        self.token = token or threading.Event()
        self._transform = transform
        self._state = WatchState.OPEN
        self._log = logger.bind(entity="watch_session", kind=handle.kind)

    @property
    def state(self) -> WatchState:
        """Current lifecycle state."""
        return self._state

    def cancel(self) -> None:
        """Request cancellation; the pump stops before its next emit."""
        self.token.set()

    def _release_on_cancel(self) -> None:
        self.token.wait()
        self._handle.stop()

    def run(self) -> int:
        """Pump events until upstream closes or cancellation is requested.

        A helper thread stops the handle as soon as the token is set, which
        unblocks a pump waiting on a quiet stream. The token is set once
        the session closes, whichever path closed it.

        Returns:
            Number of events emitted.

        Raises:
            KubernetesError: If the upstream watch fails mid-stream.
        """
        emitted = 0
        canceller = threading.Thread(
            target=self._release_on_cancel, name="kubegate-watch-cancel", daemon=True
        )
        canceller.start()
        try:
            if self.token.is_set():
                return emitted
            for raw_event in self._handle:
                if self.token.is_set():
                    break
                try:
                    event = self._transform(raw_event)
                except WatchEventError as e:
                    self._log.debug("watch_event_skipped", reason=e.message)
                    continue
                if self.token.is_set():
                    break
                self._emit(event)
                emitted += 1
        except Exception as e:
            if not self.token.is_set():
                self.token.set()
                raise
            # Stream torn down by the cancel path
            self._log.debug("watch_stream_released", error=str(e))
        finally:
            if self.token.is_set():
                self._state = WatchState.CANCEL_REQUESTED
            self.token.set()
            self._handle.stop()
            canceller.join()
            self._state = WatchState.CLOSED
            self._log.debug("watch_session_closed", emitted=emitted)
        return emitted


def watch_for_disconnect(
    read: Callable[[], Any],
    token: threading.Event,
) -> threading.Thread:
    """Set ``token`` when the client's transport closes.

    Starts a daemon thread that calls ``read`` until it raises or returns
    an empty value (EOF), then sets the token. Data read is discarded.

    Args:
        read: Blocking read on the client's inbound transport.
        token: Shared cancellation token.

    Returns:
        The started reader thread.
    """

    def _reader() -> None:
        while not token.is_set():
            try:
                data = read()
            except Exception as e:
                logger.debug("client_transport_closed", error=str(e))
                break
            if not data:
                logger.debug("client_transport_eof")
                break
        token.set()

    thread = threading.Thread(target=_reader, name="kubegate-disconnect-reader", daemon=True)
    thread.start()
    return thread


def format_sse(event: WatchEvent) -> str:
    """Frame an event as one server-sent-events message."""
    return f"data: {event.model_dump_json()}\n\n"
