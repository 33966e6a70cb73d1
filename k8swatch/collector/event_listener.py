"""EventListener: uncached listener for core v1 cluster Events."""

from __future__ import annotations

from k8swatch.collector.client import ResourceClient
from k8swatch.collector.watcher import BaseWatcher, Predicate
from k8swatch.models.config import WatchConfig
from k8swatch.models.resources import CORE_EVENT


class EventListener(BaseWatcher[object]):
    """Republishes cluster Events (CoreV1Event models) to subscribers.

    Keeps no local state, so it skips the list call on reconnect and resumes
    from the last resourceVersion it saw instead.
    """

    resync_on_connect = False

    def __init__(
        self,
        client: ResourceClient,
        config: WatchConfig | None = None,
        *,
        predicate: Predicate | None = None,
        name: str = "event-listener",
    ) -> None:
        super().__init__(client, CORE_EVENT, config, predicate=predicate, name=name)
