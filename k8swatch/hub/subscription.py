"""Subscription hub: broadcasts change events to a mutable set of listeners.

Listeners may subscribe and dispose from any thread at any time.  Each
broadcast iterates a snapshot of the listener set taken when it starts, and
skips listeners disposed while it is in progress.

Callbacks run synchronously on the caller's task (the watcher loop), so a
slow listener delays every other listener and the processing of the next
stream event.  Listeners must hand long work off to their own tasks.

An exception raised by one listener is logged and does not prevent delivery
to the others.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from k8swatch.observability.logging import get_logger

_log = get_logger("hub.subscription")

EventT = TypeVar("EventT")
EventT_contra = TypeVar("EventT_contra", contravariant=True)


@runtime_checkable
class Observer(Protocol[EventT_contra]):
    """Receives the events and terminal signals of a hub."""

    def on_next(self, event: EventT_contra) -> None: ...

    def on_error(self, error: BaseException) -> None: ...

    def on_completed(self) -> None: ...


class _CallbackObserver(Generic[EventT]):
    def __init__(
        self,
        on_next: Callable[[EventT], None],
        on_error: Callable[[BaseException], None] | None = None,
        on_completed: Callable[[], None] | None = None,
    ) -> None:
        self._on_next = on_next
        self._on_error = on_error
        self._on_completed = on_completed

    def on_next(self, event: EventT) -> None:
        self._on_next(event)

    def on_error(self, error: BaseException) -> None:
        if self._on_error is not None:
            self._on_error(error)

    def on_completed(self) -> None:
        if self._on_completed is not None:
            self._on_completed()


class Subscription:
    """Handle held by a listener.  ``dispose()`` is idempotent."""

    def __init__(self, hub: SubscriptionHub[Any], observer: Observer[Any]) -> None:
        self._hub = hub
        self.observer = observer
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def dispose(self) -> None:
        if not self._active:
            return
        self._active = False
        self._hub._remove(self)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()


class SubscriptionHub(Generic[EventT]):
    """Fan-out point for the events of one watcher.

    Follows the observer contract: once ``on_error`` or ``on_completed`` has
    been broadcast, the hub is terminated and delivers nothing further.
    Subscribing to a terminated hub replays only the terminal signal.
    """

    def __init__(self, name: str = "hub") -> None:
        self._name = name
        self._subscriptions: dict[int, Subscription] = {}
        self._lock = threading.Lock()
        self._terminated = False
        self._terminal_error: BaseException | None = None

    @property
    def terminated(self) -> bool:
        return self._terminated

    def subscribe(
        self,
        observer: Observer[EventT] | Callable[[EventT], None],
        on_error: Callable[[BaseException], None] | None = None,
        on_completed: Callable[[], None] | None = None,
    ) -> Subscription:
        """Add a listener.  It receives only events broadcast after this call.

        *observer* is either an Observer or a plain ``on_next`` callable, in
        which case the optional *on_error* and *on_completed* callables
        complete it.
        """
        if not isinstance(observer, Observer):
            observer = _CallbackObserver(observer, on_error, on_completed)
        subscription = Subscription(self, observer)
        with self._lock:
            if not self._terminated:
                self._subscriptions[id(subscription)] = subscription
                return subscription
            terminal_error = self._terminal_error
        # Terminated hub: deliver the terminal signal outside the lock.
        subscription._active = False
        if terminal_error is not None:
            self._deliver(subscription, "on_error", terminal_error)
        else:
            self._deliver(subscription, "on_completed")
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions.pop(id(subscription), None)

    def _snapshot(self) -> list[Subscription]:
        with self._lock:
            return list(self._subscriptions.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def on_next(self, event: EventT) -> None:
        if self._terminated:
            return
        for subscription in self._snapshot():
            if subscription.active:
                self._deliver(subscription, "on_next", event)

    def on_error(self, error: BaseException) -> None:
        self._terminate("on_error", error)

    def on_completed(self) -> None:
        self._terminate("on_completed")

    def _terminate(self, signal: str, *args: Any) -> None:
        with self._lock:
            if self._terminated:
                return
            self._terminated = True
            if args:
                self._terminal_error = args[0]
            subscriptions = list(self._subscriptions.values())
            self._subscriptions.clear()
        for subscription in subscriptions:
            if subscription.active:
                subscription._active = False
                self._deliver(subscription, signal, *args)

    def _deliver(self, subscription: Subscription, signal: str, *args: Any) -> None:
        try:
            getattr(subscription.observer, signal)(*args)
        except Exception as exc:
            _log.error(
                "listener_callback_failed",
                hub=self._name,
                signal=signal,
                error=str(exc),
                exc_info=True,
            )
