"""Prometheus metrics for watchers, mirrors and controllers."""

from __future__ import annotations

from prometheus_client import Counter, Gauge

watch_events_total = Counter(
    "k8swatch_watch_events_total",
    "Change events received from watch streams",
    ["watcher", "type"],
)

watcher_reconnects_total = Counter(
    "k8swatch_watcher_reconnects_total",
    "Watch stream reconnects, by termination reason",
    ["watcher", "reason"],
)

mirror_size = Gauge(
    "k8swatch_mirror_size",
    "Number of resources currently held by a resource mirror",
    ["watcher"],
)

reconcile_total = Counter(
    "k8swatch_reconcile_total",
    "Reconcile invocations, by trigger and outcome",
    ["controller", "trigger", "result"],
)
