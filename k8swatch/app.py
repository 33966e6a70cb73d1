"""Application bootstrap for k8swatch.

Wires components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → K8s client → metrics endpoint
              → cluster event listener → custom resource watcher

Shutdown is graceful: components are stopped in reverse startup order and
each component's stop error is caught and logged independently.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

from k8swatch.config import load_config
from k8swatch.models.config import AppConfig
from k8swatch.models.resources import ResourceDescriptor, ResourceEvent, WatchEventType
from k8swatch.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

    from k8swatch.collector import CustomResourceWatcher, EventListener, KubernetesResourceClient
    from k8swatch.hub import Subscription

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class WatchApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    ``stop()`` is safe on an app that was never started or already stopped.
    """

    def __init__(self) -> None:
        self.config: AppConfig | None = None

        self._client: KubernetesResourceClient | None = None
        self._event_listener: EventListener | None = None
        self._resource_watcher: CustomResourceWatcher | None = None
        self._subscriptions: list[Subscription] = []

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        self.config = load_config()

        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("k8swatch starting", version=_k8swatch_version())

        await self._start_k8s_client()
        self._start_metrics()
        await self._start_event_listener()
        await self._start_resource_watcher()

        self._running = True
        self._log.info("k8swatch started")

    async def _start_k8s_client(self) -> None:
        """Load in-cluster config, falling back to kubeconfig, and build the client."""
        assert self._log is not None
        self._log.debug("starting k8s client")
        try:
            import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]

            from k8swatch.collector import KubernetesResourceClient

            try:
                k8s_config.load_incluster_config()
                self._log.info("k8s client configured from in-cluster service account")
            except k8s_config.ConfigException:
                await k8s_config.load_kube_config()
                self._log.info("k8s client configured from kubeconfig")

            self._client = KubernetesResourceClient()
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    def _start_metrics(self) -> None:
        """Expose Prometheus metrics when a port is configured.  Non-fatal."""
        assert self._log is not None
        assert self.config is not None
        port = self.config.metrics.port
        if not port:
            self._log.info("metrics endpoint disabled")
            return
        try:
            from prometheus_client import start_http_server

            start_http_server(port)
            self._log.info("metrics endpoint started", port=port)
        except Exception as exc:
            self._log.warning("metrics endpoint failed to start", port=port, error=str(exc))

    async def _start_event_listener(self) -> None:
        """Start the cluster Event listener; every Event is logged."""
        assert self._log is not None
        assert self.config is not None
        assert self._client is not None
        self._log.debug("starting event listener")
        try:
            from k8swatch.collector import EventListener

            listener = EventListener(self._client, self.config.watch)
            self._subscriptions.append(listener.subscribe(_log_cluster_event))
            await listener.start()
            self._event_listener = listener
        except Exception as exc:
            raise _ComponentError("event_listener", exc) from exc

    async def _start_resource_watcher(self) -> None:
        """Start the custom resource watcher if a resource kind is configured."""
        assert self._log is not None
        assert self.config is not None
        assert self._client is not None
        resource = self.config.resource
        if not resource.api_version:
            self._log.info("custom resource watcher disabled (no resource kind configured)")
            return

        self._log.debug("starting custom resource watcher")
        try:
            from k8swatch.collector import CustomResourceWatcher

            descriptor = ResourceDescriptor.from_api_version(resource.api_version, resource.kind, resource.plural)
            watcher = CustomResourceWatcher(self._client, descriptor, self.config.watch)
            log = get_logger("app.resources").bind(kind=descriptor.kind)

            def _log_resource_event(event: ResourceEvent[object]) -> None:
                if event.type == WatchEventType.ERROR:
                    log.warning("resource_watch_error", error=str(event.error))
                    return
                log.info("resource_event", type=event.type.value, mirrored=len(watcher))

            self._subscriptions.append(watcher.subscribe(_log_resource_event))
            await watcher.start()
            self._resource_watcher = watcher
        except Exception as exc:
            raise _ComponentError("resource_watcher", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("k8swatch shutting down")
        self._running = False

        for subscription in self._subscriptions:
            subscription.dispose()
        self._subscriptions.clear()

        await self._stop_component("resource_watcher", self._resource_watcher)
        await self._stop_component("event_listener", self._event_listener)
        self._resource_watcher = None
        self._event_listener = None
        await self._stop_k8s_client()

        log.info("k8swatch stopped")

    async def _stop_component(self, name: str, component: object | None) -> None:
        """Call stop() on a component, catching all errors."""
        if component is None:
            return
        log = self._log or get_logger("app")
        stop_fn = getattr(component, "stop", None)
        if stop_fn is None:
            return
        try:
            await asyncio.wait_for(stop_fn(), timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component stop timed out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component stop raised an error", component=name, error=str(exc))

    async def _stop_k8s_client(self) -> None:
        """Close the kubernetes-asyncio ApiClient connection pool."""
        if self._client is None:
            return
        log = self._log or get_logger("app")
        client, self._client = self._client, None
        try:
            await client.close()
        except Exception as exc:
            log.debug("k8s client close raised (non-fatal)", error=str(exc))


def _log_cluster_event(event: ResourceEvent[object]) -> None:
    log = get_logger("app.events")
    if event.type == WatchEventType.ERROR:
        log.warning("event_watch_error", error=str(event.error))
        return
    obj = event.resource
    involved = getattr(obj, "involved_object", None)
    log.info(
        "cluster_event",
        type=event.type.value,
        reason=getattr(obj, "reason", None),
        message=getattr(obj, "message", None),
        namespace=getattr(involved, "namespace", None),
        object=f"{getattr(involved, 'kind', '')}/{getattr(involved, 'name', '')}",
    )


def _k8swatch_version() -> str:
    from k8swatch import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = WatchApp()
    loop = asyncio.get_running_loop()
    shutdown = asyncio.Event()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown.set)

    try:
        await app.start()
        await shutdown.wait()
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if app._running:
            await app.stop()
