"""Subscriber fan-out for k8swatch.

Exports:
    Observer         -- Protocol every listener satisfies (on_next/on_error/on_completed).
    Subscription     -- Handle returned by subscribe(); dispose() removes the listener.
    SubscriptionHub  -- Broadcasts change events and terminal signals to all listeners.
"""

from k8swatch.hub.subscription import Observer, Subscription, SubscriptionHub

__all__ = ["Observer", "Subscription", "SubscriptionHub"]
