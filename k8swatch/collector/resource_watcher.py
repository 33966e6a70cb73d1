"""CustomResourceWatcher: a BaseWatcher that keeps a ResourceMirror of its kind."""

from __future__ import annotations

from collections.abc import Iterator

from k8swatch.cache.resource_mirror import ResourceMirror
from k8swatch.collector.client import ResourceClient
from k8swatch.collector.watcher import BaseWatcher, Predicate
from k8swatch.models.config import WatchConfig
from k8swatch.models.resources import CustomResource, ResourceDescriptor, ResourceEvent, ResourceSnapshot
from k8swatch.observability.metrics import mirror_size


class CustomResourceWatcher(BaseWatcher[CustomResource]):
    """Watches a custom resource kind and mirrors its instances locally.

    The mirror is replaced by every resync snapshot and updated from every
    change event, including events the predicate keeps from subscribers.
    Iterating the watcher yields a point-in-time copy of the mirror.
    """

    def __init__(
        self,
        client: ResourceClient,
        descriptor: ResourceDescriptor,
        config: WatchConfig | None = None,
        *,
        predicate: Predicate | None = None,
        name: str = "",
        mirror: ResourceMirror[CustomResource] | None = None,
    ) -> None:
        super().__init__(client, descriptor, config, predicate=predicate, name=name)
        self._mirror: ResourceMirror[CustomResource] = mirror if mirror is not None else ResourceMirror()

    @property
    def mirror(self) -> ResourceMirror[CustomResource]:
        return self._mirror

    @property
    def resources(self) -> list[CustomResource]:
        return self._mirror.snapshot()

    def __iter__(self) -> Iterator[CustomResource]:
        return iter(self._mirror)

    def __len__(self) -> int:
        return len(self._mirror)

    def _on_snapshot(self, snapshot: ResourceSnapshot[CustomResource]) -> None:
        self._mirror.replace_all(snapshot.items)
        mirror_size.labels(watcher=self._name).set(len(self._mirror))

    def _apply(self, event: ResourceEvent[CustomResource]) -> None:
        if self._mirror.apply(event):
            mirror_size.labels(watcher=self._name).set(len(self._mirror))
