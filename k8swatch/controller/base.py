"""ResourceController: drives a user reconcile routine for one resource kind.

Startup order: reconcile once (awaited; a failure aborts startup) ->
subscribe to the watcher -> start the watcher -> arm the periodic timer.
Shutdown runs in reverse: disarm timer, unsubscribe, stop the watcher, then
wait for in-flight reconciles.

Reconcile is triggered at startup, on every timer tick and on every stream
ERROR event.  Triggered runs are fire-and-forget tasks: their failures are
logged and counted, never raised to a caller.  With the default
ALLOW_OVERLAP policy triggered runs may overlap, so reconcile() must be safe
under concurrent invocation.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from enum import StrEnum

from k8swatch.collector.client import ResourceClient
from k8swatch.collector.resource_watcher import CustomResourceWatcher
from k8swatch.collector.watcher import Predicate
from k8swatch.hub import Subscription
from k8swatch.models.config import ControllerConfig, WatchConfig
from k8swatch.models.lifecycle import LifecycleState
from k8swatch.models.resources import CustomResource, ResourceDescriptor, ResourceEvent, WatchEventType
from k8swatch.observability.logging import get_logger
from k8swatch.observability.metrics import reconcile_total


class ReconcilePolicy(StrEnum):
    """Handling of a trigger that arrives while a triggered reconcile runs."""

    ALLOW_OVERLAP = "allow_overlap"  # start another run concurrently
    SINGLE_FLIGHT = "single_flight"  # coalesce into one follow-up run


class ResourceController(ABC):
    """Base class for a controller of one custom resource kind.

    Subclasses implement :meth:`reconcile`.  The current mirror of the kind is
    available through :attr:`resources`.
    """

    def __init__(
        self,
        client: ResourceClient,
        descriptor: ResourceDescriptor,
        config: ControllerConfig | None = None,
        watch_config: WatchConfig | None = None,
        *,
        predicate: Predicate | None = None,
        policy: ReconcilePolicy = ReconcilePolicy.ALLOW_OVERLAP,
        name: str = "",
    ) -> None:
        self._descriptor = descriptor
        self._config = config or ControllerConfig()
        if self._config.reconcile_period <= 0:
            raise ValueError(f"reconcile_period must be positive, got {self._config.reconcile_period}")
        self._policy = policy
        self._name = name or f"{descriptor.kind.lower()}-controller"
        self._watcher = CustomResourceWatcher(
            client,
            descriptor,
            watch_config,
            predicate=predicate,
            name=f"{self._name}-watcher",
        )
        self._log = get_logger("controller").bind(
            controller=self._name,
            kind=descriptor.kind,
            api_version=descriptor.group_version,
        )

        self._state = LifecycleState.NOT_STARTED
        self._subscription: Subscription | None = None
        self._timer: asyncio.Task[None] | None = None
        self._inflight: set[asyncio.Task[None]] = set()
        self._flight: asyncio.Task[None] | None = None
        self._pending = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def watcher(self) -> CustomResourceWatcher:
        return self._watcher

    @property
    def resources(self) -> list[CustomResource]:
        return self._watcher.resources

    @abstractmethod
    async def reconcile(self) -> None:
        """Bring managed state toward the desired state.  Must be idempotent."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Reconcile once, then start watching and (optionally) the timer.

        A failure of the initial reconcile propagates and nothing is started.
        """
        if self._state != LifecycleState.NOT_STARTED:
            self._log.warning("controller_start_rejected", state=self._state.value)
            return

        self._log.info("controller_starting")
        try:
            await self.reconcile()
        except Exception:
            reconcile_total.labels(controller=self._name, trigger="startup", result="error").inc()
            self._log.error("startup_reconcile_failed", exc_info=True)
            raise
        reconcile_total.labels(controller=self._name, trigger="startup", result="success").inc()

        self._subscription = self._watcher.subscribe(self._on_event, self._on_error, self._on_completed)
        self._state = LifecycleState.RUNNING
        await self._watcher.start()
        if self._config.auto_reconcile:
            self._timer = asyncio.create_task(self._reconcile_timer(), name=f"reconcile-timer-{self._name}")
        self._log.info(
            "controller_started",
            auto_reconcile=self._config.auto_reconcile,
            period=self._config.reconcile_period,
            policy=self._policy.value,
        )

    async def stop(self, timeout: float | None = None) -> None:
        """Stop timer, subscription and watcher, then settle in-flight reconciles.

        *timeout* (default ``ControllerConfig.stop_timeout``; None waits
        indefinitely) bounds the whole call.  In-flight triggered reconciles
        still running when it elapses are cancelled and abandoned.  If the
        watcher has not exited by then the controller stays STOPPING and a
        later stop() call waits for it again.
        """
        if self._state not in (LifecycleState.RUNNING, LifecycleState.STOPPING):
            return
        if timeout is None:
            timeout = self._config.stop_timeout
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        def remaining() -> float | None:
            return None if deadline is None else max(0.0, deadline - loop.time())

        self._state = LifecycleState.STOPPING
        self._pending = False

        if self._timer is not None:
            self._timer.cancel()
            await asyncio.gather(self._timer, return_exceptions=True)
            self._timer = None
        if self._subscription is not None:
            self._subscription.dispose()
            self._subscription = None
        await self._watcher.stop(remaining())

        inflight = set(self._inflight)
        if inflight:
            _, not_done = await asyncio.wait(inflight, timeout=remaining())
            if not_done:
                for task in not_done:
                    task.cancel()
                await asyncio.gather(*not_done, return_exceptions=True)
                self._log.warning("reconcile_abandoned", count=len(not_done), timeout=timeout)

        if self._watcher.state != LifecycleState.STOPPED:
            self._log.warning("controller_stop_incomplete", watcher_state=self._watcher.state.value, timeout=timeout)
            return
        self._state = LifecycleState.STOPPED
        self._log.info("controller_stopped")

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    async def _reconcile_timer(self) -> None:
        loop = asyncio.get_running_loop()
        period = self._config.reconcile_period
        next_tick = loop.time() + period
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            next_tick += period
            self._trigger_reconcile("timer")

    def _trigger_reconcile(self, trigger: str) -> None:
        """Schedule a reconcile run without waiting for it."""
        if self._state != LifecycleState.RUNNING:
            return
        if self._policy == ReconcilePolicy.SINGLE_FLIGHT and self._flight is not None:
            self._pending = True
            self._log.debug("reconcile_coalesced", trigger=trigger)
            return

        task = asyncio.create_task(self._run_reconcile(trigger), name=f"reconcile-{self._name}-{trigger}")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        if self._policy == ReconcilePolicy.SINGLE_FLIGHT:
            self._flight = task

    async def _run_reconcile(self, trigger: str) -> None:
        try:
            while True:
                self._log.debug("reconcile_started", trigger=trigger)
                try:
                    await self.reconcile()
                except Exception as exc:
                    reconcile_total.labels(controller=self._name, trigger=trigger, result="error").inc()
                    self._log.error("reconcile_failed", trigger=trigger, error=str(exc), exc_info=True)
                else:
                    reconcile_total.labels(controller=self._name, trigger=trigger, result="success").inc()

                if not (self._pending and self._state == LifecycleState.RUNNING):
                    return
                self._pending = False
                trigger = "coalesced"
        finally:
            if self._flight is asyncio.current_task():
                self._flight = None

    # ------------------------------------------------------------------
    # Watcher callbacks
    # ------------------------------------------------------------------

    def _on_event(self, event: ResourceEvent[CustomResource]) -> None:
        if event.type == WatchEventType.ERROR:
            self._log.warning("watch_error_observed", error=str(event.error))
            self._trigger_reconcile("watch_error")
            return
        resource = event.resource
        self._log.debug(
            "resource_event_received",
            type=event.type.value,
            name=resource.name if resource is not None else "",
            namespace=resource.namespace if resource is not None else "",
        )

    def _on_error(self, error: BaseException) -> None:
        self._log.error("watch_failed", error=str(error))
        self._trigger_reconcile("watch_error")

    def _on_completed(self) -> None:
        self._log.debug("watch_completed")
