"""BaseWatcher: the reconnecting watch loop shared by every watcher.

One iteration of the loop lists a fresh snapshot of the kind (the resync
point), opens a change stream from the snapshot's resourceVersion, and
applies and publishes every event in the order received.  When the stream
fails or the server closes it, the loop backs off and starts over with a
new snapshot, so a reconnect can never leave the local view permanently
stale.  The loop only exits through stop().

Stream failures are logged, counted, and forwarded to subscribers as ERROR
change events; they never terminate the watcher.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, Generic

from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

from k8swatch.collector.client import ResourceClient, WatchStreamError
from k8swatch.hub import Observer, Subscription, SubscriptionHub
from k8swatch.models.config import WatchConfig
from k8swatch.models.lifecycle import LifecycleState
from k8swatch.models.resources import (
    ResourceDescriptor,
    ResourceEvent,
    ResourceSnapshot,
    ResourceT,
    WatchEventType,
    resource_version_of,
)
from k8swatch.observability.logging import get_logger
from k8swatch.observability.metrics import watch_events_total, watcher_reconnects_total

Predicate = Callable[[WatchEventType, Any], bool]


class BaseWatcher(Generic[ResourceT]):
    """Keeps the change stream of one resource kind open until stopped.

    Subclasses hook into the loop through ``_on_snapshot`` (called after each
    resync) and ``_apply`` (called for each event before it is published).
    Set ``resync_on_connect = False`` for watchers that keep no local state.
    """

    resync_on_connect: bool = True

    def __init__(
        self,
        client: ResourceClient,
        descriptor: ResourceDescriptor,
        config: WatchConfig | None = None,
        *,
        predicate: Predicate | None = None,
        name: str = "",
    ) -> None:
        self._client = client
        self._descriptor = descriptor
        self._config = config or WatchConfig()
        self._predicate = predicate
        self._name = name or f"{descriptor.kind.lower()}-watcher"
        self._hub: SubscriptionHub[ResourceEvent[ResourceT]] = SubscriptionHub(name=self._name)
        self._log = get_logger("collector.watcher").bind(
            watcher=self._name,
            kind=descriptor.kind,
            api_version=descriptor.group_version,
            namespace=self._config.namespace or "*",
        )

        self._state = LifecycleState.NOT_STARTED
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self._resource_version = ""
        self._consecutive_failures = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def descriptor(self) -> ResourceDescriptor:
        return self._descriptor

    @property
    def state(self) -> LifecycleState:
        return self._state

    def subscribe(
        self,
        observer: Observer[ResourceEvent[ResourceT]] | Callable[[ResourceEvent[ResourceT]], None],
        on_error: Callable[[BaseException], None] | None = None,
        on_completed: Callable[[], None] | None = None,
    ) -> Subscription:
        """Subscribe to the events published from now on."""
        return self._hub.subscribe(observer, on_error, on_completed)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the watch loop as a background task and return immediately.

        Rejected (logged, no effect) once a stop has been requested.
        """
        if self._state in (LifecycleState.STOPPING, LifecycleState.STOPPED):
            self._log.warning("watcher_start_rejected", state=self._state.value)
            return
        if self._state == LifecycleState.RUNNING:
            self._log.debug("watcher_already_running")
            return
        self._state = LifecycleState.RUNNING
        self._running = True
        self._task = asyncio.create_task(self._watch_loop(), name=f"watch-{self._name}")
        self._log.info("watcher_started")

    async def stop(self, timeout: float | None = None) -> None:
        """Request cancellation and wait for the loop to exit.

        With a *timeout*, returns after at most that many seconds even if the
        loop has not exited yet; the watcher then stays STOPPING and a later
        stop() call waits again.
        """
        task = self._task
        if task is None:
            return
        if self._state == LifecycleState.RUNNING:
            self._state = LifecycleState.STOPPING
            self._running = False
            self._stop_event.set()
            task.cancel()

        done, _ = await asyncio.wait({task}, timeout=timeout)
        if task not in done:
            self._log.warning("watcher_stop_timed_out", timeout=timeout)
            return
        # A task cancelled before its first step never enters the loop's finally.
        self._hub.on_completed()
        self._state = LifecycleState.STOPPED
        self._log.info("watcher_stopped")

    # ------------------------------------------------------------------
    # Watch loop
    # ------------------------------------------------------------------

    async def _watch_loop(self) -> None:
        try:
            while self._running:
                try:
                    await self._run_watch()
                except Exception as exc:
                    if not self._running:
                        break
                    await self._handle_loop_exception(exc)
        except asyncio.CancelledError:
            self._log.debug("watch_loop_cancelled")
        finally:
            self._hub.on_completed()
            self._log.debug("watch_loop_exited")

    async def _run_watch(self) -> None:
        """One resync-then-stream iteration."""
        if self.resync_on_connect:
            await self._resync()

        stream = self._client.open_stream(
            self._descriptor,
            namespace=self._config.namespace,
            label_selector=self._config.label_selector,
            field_selector=self._config.field_selector,
            resource_version=self._resource_version,
        )
        self._log.info("watch_stream_opened", resource_version=self._resource_version or "latest")

        received = 0
        try:
            async for event_type, resource in stream:
                if not self._running:
                    return
                received += 1
                self._consecutive_failures = 0
                self._on_next(event_type, resource)
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        if not self._running:
            return
        self._log.info("watch_stream_closed", events=received)
        await self._handle_stream_end(received)

    async def _resync(self) -> None:
        self._log.debug(
            "resync_started",
            label_selector=self._config.label_selector,
            field_selector=self._config.field_selector,
        )
        snapshot = await self._client.list_snapshot(
            self._descriptor,
            namespace=self._config.namespace,
            label_selector=self._config.label_selector,
            field_selector=self._config.field_selector,
        )
        self._resource_version = snapshot.resource_version
        self._on_snapshot(snapshot)
        self._log.debug("resync_complete", count=len(snapshot.items), resource_version=snapshot.resource_version)

    def _on_snapshot(self, snapshot: ResourceSnapshot[ResourceT]) -> None:
        """Hook: a fresh snapshot has been listed."""

    def _apply(self, event: ResourceEvent[ResourceT]) -> None:
        """Hook: update local state from *event* before it is published."""

    def _on_next(self, event_type: WatchEventType, resource: ResourceT) -> None:
        if event_type == WatchEventType.ERROR:
            raise WatchStreamError(None, "ErrorEvent", "stream delivered an ERROR event")

        watch_events_total.labels(watcher=self._name, type=event_type.value).inc()
        if not self.resync_on_connect:
            self._resource_version = resource_version_of(resource) or self._resource_version
        event: ResourceEvent[ResourceT] = ResourceEvent(type=event_type, resource=resource)
        self._apply(event)

        if self._predicate is not None and not self._predicate(event_type, resource):
            return
        self._hub.on_next(event)

    # ------------------------------------------------------------------
    # Failure handling
    # ------------------------------------------------------------------

    async def _handle_stream_end(self, received: int) -> None:
        """The server closed the stream: resync on the next iteration."""
        if received == 0:
            self._consecutive_failures += 1
        watcher_reconnects_total.labels(watcher=self._name, reason="stream_end").inc()
        await self._backoff("stream_end")

    async def _handle_loop_exception(self, exc: Exception) -> None:
        """Log *exc*, forward it to subscribers as an ERROR event, then back off."""
        self._consecutive_failures += 1
        if getattr(exc, "status", None) == 410:
            # Expired resourceVersion: the next stream starts from the current state.
            self._resource_version = ""
        if isinstance(exc, ApiException):
            self._log.error(
                "watch_api_error",
                status=exc.status,
                reason=exc.reason,
                error=str(exc),
                consecutive_failures=self._consecutive_failures,
            )
            reason = "api_error"
        else:
            self._log.error(
                "watch_stream_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                consecutive_failures=self._consecutive_failures,
            )
            reason = "error"
        watcher_reconnects_total.labels(watcher=self._name, reason=reason).inc()

        self._hub.on_next(ResourceEvent(type=WatchEventType.ERROR, error=exc))
        await self._backoff(reason)

    def _backoff_delay(self) -> float:
        if self._consecutive_failures == 0 or self._config.backoff_base <= 0:
            return 0.0
        exponent = min(self._consecutive_failures - 1, 16)
        delay = self._config.backoff_base * 2**exponent
        return min(delay, self._config.backoff_max)

    async def _backoff(self, reason: str) -> None:
        """Wait before reconnecting.  Returns early when stop() is called."""
        delay = self._backoff_delay()
        if delay <= 0:
            return
        self._log.debug("watch_backoff", reason=reason, delay=delay)
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except TimeoutError:
            pass
