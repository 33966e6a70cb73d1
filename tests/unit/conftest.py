"""Shared fakes and helpers for k8swatch unit tests.

FakeResourceClient scripts one list result and one stream per connection so
watchers, listeners and controllers can be exercised without a cluster.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest

from k8swatch.models.resources import (
    CustomResource,
    ResourceDescriptor,
    ResourceSnapshot,
    WatchEventType,
)

TEST_DESCRIPTOR = ResourceDescriptor.from_api_version("example.com/v1", "Test", "tests")

# Stream script item: keep the stream open until the watcher is stopped.
HOLD = object()


def make_resource(uid: str, name: str = "", value: str = "", resource_version: str = "1") -> CustomResource:
    """Create a Test custom resource with sensible defaults."""
    return CustomResource(
        api_version="example.com/v1",
        kind="Test",
        metadata={
            "uid": uid,
            "name": name or f"test-{uid}",
            "namespace": "default",
            "resourceVersion": resource_version,
        },
        spec={"value": value},
    )


class FakeResourceClient:
    """Scripted ResourceClient.

    ``streams`` holds one script per opened stream.  A script is a list of
    (event type, resource) pairs, exceptions (raised at that point) and HOLD.
    A script that runs out ends the stream as a server-side close.  Once all
    scripts are used, further streams stay open until cancelled.

    ``snapshots`` are returned (or raised) in order; the last one repeats.
    """

    def __init__(
        self,
        snapshots: list[ResourceSnapshot[Any] | Exception] | None = None,
        streams: list[list[Any]] | None = None,
    ) -> None:
        self._snapshots = list(snapshots or [])
        self._streams = list(streams or [])
        self.calls: list[str] = []
        self.list_kwargs: list[dict[str, Any]] = []
        self.stream_kwargs: list[dict[str, Any]] = []
        self.streams_closed = 0

    @property
    def snapshot_calls(self) -> int:
        return self.calls.count("list")

    @property
    def stream_calls(self) -> int:
        return self.calls.count("watch")

    async def list_snapshot(self, descriptor: ResourceDescriptor, **kwargs: Any) -> ResourceSnapshot[Any]:
        self.calls.append("list")
        self.list_kwargs.append(kwargs)
        if not self._snapshots:
            return ResourceSnapshot(items=[], resource_version="100")
        result = self._snapshots.pop(0) if len(self._snapshots) > 1 else self._snapshots[0]
        if isinstance(result, Exception):
            raise result
        return result

    async def open_stream(
        self, descriptor: ResourceDescriptor, **kwargs: Any
    ) -> AsyncIterator[tuple[WatchEventType, Any]]:
        self.calls.append("watch")
        self.stream_kwargs.append(kwargs)
        script = self._streams.pop(0) if self._streams else [HOLD]
        try:
            for item in script:
                if item is HOLD:
                    await asyncio.Event().wait()
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self.streams_closed += 1


async def wait_until(condition: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll *condition* until it holds; fail the test after *timeout* seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            pytest.fail("condition not met before timeout")
        await asyncio.sleep(0.005)


class EventRecorder:
    """Observer collecting everything a hub delivers."""

    def __init__(self) -> None:
        self.events: list[Any] = []
        self.errors: list[BaseException] = []
        self.completed = 0

    def on_next(self, event: Any) -> None:
        self.events.append(event)

    def on_error(self, error: BaseException) -> None:
        self.errors.append(error)

    def on_completed(self) -> None:
        self.completed += 1
