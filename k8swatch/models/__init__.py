"""Core data structures for k8swatch."""

from k8swatch.models.config import AppConfig, ControllerConfig, WatchConfig
from k8swatch.models.lifecycle import LifecycleState
from k8swatch.models.resources import (
    CORE_EVENT,
    CustomResource,
    ResourceDescriptor,
    ResourceEvent,
    ResourceSnapshot,
    WatchEventType,
    resource_uid,
)

__all__ = [
    "CORE_EVENT",
    "AppConfig",
    "ControllerConfig",
    "CustomResource",
    "LifecycleState",
    "ResourceDescriptor",
    "ResourceEvent",
    "ResourceSnapshot",
    "WatchConfig",
    "WatchEventType",
    "resource_uid",
]
