"""In-memory mirror of the currently-known instances of one resource kind.

The mirror is mutated only by the watcher that owns it, one event at a time
under an exclusive lock.  Readers always receive a point-in-time copy.

ADDED events are appended without checking for an existing entry with the
same uid: a duplicate ADDED produces two entries.  MODIFIED and DELETED for
an unknown uid are dropped.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Iterator
from typing import Generic

from k8swatch.models.resources import ResourceEvent, ResourceT, WatchEventType, resource_uid


class ResourceMirror(Generic[ResourceT]):
    """Local authoritative copy of the instances of a resource kind."""

    def __init__(self, uid_of: Callable[[ResourceT], str] = resource_uid) -> None:
        self._uid_of = uid_of
        self._items: list[ResourceT] = []
        self._lock = threading.Lock()

    def replace_all(self, items: Iterable[ResourceT]) -> None:
        """Replace the whole content with a freshly listed snapshot."""
        snapshot = list(items)
        with self._lock:
            self._items = snapshot

    def apply(self, event: ResourceEvent[ResourceT]) -> bool:
        """Apply one change event.  Returns True if the content changed."""
        resource = event.resource
        if resource is None or event.type in (WatchEventType.BOOKMARK, WatchEventType.ERROR):
            return False
        with self._lock:
            if event.type == WatchEventType.ADDED:
                self._items.append(resource)
                return True
            index = self._index_of(self._uid_of(resource))
            if index is None:
                return False
            if event.type == WatchEventType.MODIFIED:
                self._items[index] = resource
            else:
                del self._items[index]
            return True

    def _index_of(self, uid: str) -> int | None:
        for i, item in enumerate(self._items):
            if self._uid_of(item) == uid:
                return i
        return None

    def get(self, uid: str) -> ResourceT | None:
        with self._lock:
            index = self._index_of(uid)
            return None if index is None else self._items[index]

    def snapshot(self) -> list[ResourceT]:
        with self._lock:
            return list(self._items)

    def __iter__(self) -> Iterator[ResourceT]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
