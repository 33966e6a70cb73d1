"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class WatchConfig:
    """Watch stream scope and reconnect policy.

    An empty namespace watches cluster-wide.  ``backoff_base`` of 0 retries
    immediately after every stream termination.
    """

    namespace: str = ""
    label_selector: str = ""
    field_selector: str = ""
    backoff_base: float = 0.5
    backoff_max: float = 30.0


@dataclass
class ControllerConfig:
    """Reconcile scheduling configuration."""

    auto_reconcile: bool = True
    reconcile_period: float = 60.0
    stop_timeout: float | None = None


@dataclass
class ResourceKindConfig:
    """Custom resource kind to watch.  Disabled when api_version is empty."""

    api_version: str = ""
    kind: str = ""
    plural: str = ""


@dataclass
class MetricsConfig:
    """Prometheus endpoint configuration.  Disabled when port is 0."""

    port: int = 0


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class AppConfig:
    """Top-level k8swatch configuration."""

    watch: WatchConfig = field(default_factory=WatchConfig)
    controller: ControllerConfig = field(default_factory=ControllerConfig)
    resource: ResourceKindConfig = field(default_factory=ResourceKindConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    log: LogConfig = field(default_factory=LogConfig)
