"""Collector package for k8swatch.

Provides reconnecting Kubernetes watch-stream collectors.

Submodules
----------
client           -- ResourceClient contract and its kubernetes-asyncio implementation.
watcher          -- BaseWatcher: resync-then-stream loop, back-off, error fan-out.
resource_watcher -- CustomResourceWatcher: custom resources with a local mirror.
event_listener   -- EventListener: uncached core v1 Event listener.
"""

from k8swatch.collector.client import KubernetesResourceClient, ResourceClient, WatchStreamError
from k8swatch.collector.event_listener import EventListener
from k8swatch.collector.resource_watcher import CustomResourceWatcher
from k8swatch.collector.watcher import BaseWatcher

__all__ = [
    "BaseWatcher",
    "CustomResourceWatcher",
    "EventListener",
    "KubernetesResourceClient",
    "ResourceClient",
    "WatchStreamError",
]
