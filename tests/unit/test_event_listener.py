"""Unit tests for k8swatch.collector.event_listener.EventListener."""

from __future__ import annotations

from types import SimpleNamespace

from conftest import HOLD, EventRecorder, FakeResourceClient, wait_until
from kubernetes_asyncio.client.exceptions import ApiException

from k8swatch.collector import EventListener
from k8swatch.models.config import WatchConfig
from k8swatch.models.resources import CORE_EVENT, WatchEventType


def _core_event(name: str, resource_version: str, reason: str = "Scheduled") -> SimpleNamespace:
    return SimpleNamespace(
        metadata=SimpleNamespace(uid=f"uid-{name}", name=name, resource_version=resource_version),
        reason=reason,
        message=f"{name} happened",
    )


class TestEventListener:
    async def test_listener_never_lists(self) -> None:
        client = FakeResourceClient(streams=[[(WatchEventType.ADDED, _core_event("e1", "10")), HOLD]])
        listener = EventListener(client, WatchConfig(backoff_base=0))
        recorder = EventRecorder()
        listener.subscribe(recorder)

        await listener.start()
        try:
            await wait_until(lambda: len(recorder.events) == 1)
            assert client.calls == ["watch"]
            assert listener.descriptor == CORE_EVENT
            assert recorder.events[0].resource.reason == "Scheduled"
        finally:
            await listener.stop()

    async def test_reconnect_resumes_from_last_resource_version(self) -> None:
        client = FakeResourceClient(
            streams=[
                [
                    (WatchEventType.ADDED, _core_event("e1", "10")),
                    (WatchEventType.MODIFIED, _core_event("e1", "11")),
                ],
                [HOLD],
            ]
        )
        listener = EventListener(client, WatchConfig(backoff_base=0))

        await listener.start()
        try:
            await wait_until(lambda: client.stream_calls == 2)
            assert client.stream_kwargs[0]["resource_version"] == ""
            assert client.stream_kwargs[1]["resource_version"] == "11"
        finally:
            await listener.stop()

    async def test_gone_restarts_from_current_state(self) -> None:
        client = FakeResourceClient(
            streams=[
                [(WatchEventType.ADDED, _core_event("e1", "10")), ApiException(status=410, reason="Gone")],
                [HOLD],
            ]
        )
        listener = EventListener(client, WatchConfig(backoff_base=0))
        recorder = EventRecorder()
        listener.subscribe(recorder)

        await listener.start()
        try:
            await wait_until(lambda: client.stream_calls == 2)
            assert client.stream_kwargs[1]["resource_version"] == ""
            assert recorder.events[-1].type == WatchEventType.ERROR
        finally:
            await listener.stop()

    async def test_predicate_filters_events(self) -> None:
        client = FakeResourceClient(
            streams=[
                [
                    (WatchEventType.ADDED, _core_event("e1", "1", reason="BackOff")),
                    (WatchEventType.ADDED, _core_event("e2", "2", reason="Pulled")),
                    HOLD,
                ]
            ]
        )
        listener = EventListener(
            client,
            WatchConfig(backoff_base=0),
            predicate=lambda event_type, event: event.reason == "BackOff",
        )
        recorder = EventRecorder()
        listener.subscribe(recorder)

        await listener.start()
        try:
            await wait_until(lambda: listener._resource_version == "2")
            assert [e.resource.reason for e in recorder.events] == ["BackOff"]
        finally:
            await listener.stop()

    async def test_stop_completes_subscribers(self) -> None:
        client = FakeResourceClient()
        listener = EventListener(client)
        recorder = EventRecorder()
        listener.subscribe(recorder)

        await listener.start()
        await wait_until(lambda: client.stream_calls == 1)
        await listener.stop()

        assert recorder.completed == 1
