"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from k8swatch.models.config import (
    AppConfig,
    ControllerConfig,
    LogConfig,
    MetricsConfig,
    ResourceKindConfig,
    WatchConfig,
)
from k8swatch.models.resources import ResourceDescriptor


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"K8SWATCH_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None) -> float:
    val = float(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    return val


def _env_optional_float(key: str) -> float | None:
    val = _env(key, "")
    return float(val) if val else None


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_resource(resource: ResourceKindConfig) -> ResourceKindConfig:
    if resource.api_version:
        # Raises ValueError for a malformed apiVersion or a missing kind/plural.
        ResourceDescriptor.from_api_version(resource.api_version, resource.kind, resource.plural)
    return resource


def load_config() -> AppConfig:
    """Load configuration from K8SWATCH_* environment variables."""
    return AppConfig(
        watch=WatchConfig(
            namespace=_env("NAMESPACE", ""),
            label_selector=_env("LABEL_SELECTOR", ""),
            field_selector=_env("FIELD_SELECTOR", ""),
            backoff_base=_env_float("BACKOFF_BASE", 0.5, min_val=0.0),
            backoff_max=_env_float("BACKOFF_MAX", 30.0, min_val=0.0),
        ),
        controller=ControllerConfig(
            auto_reconcile=_env_bool("AUTO_RECONCILE", True),
            reconcile_period=_env_float("RECONCILE_PERIOD", 60.0, min_val=0.01),
            stop_timeout=_env_optional_float("STOP_TIMEOUT"),
        ),
        resource=_validate_resource(
            ResourceKindConfig(
                api_version=_env("RESOURCE_API_VERSION", ""),
                kind=_env("RESOURCE_KIND", ""),
                plural=_env("RESOURCE_PLURAL", ""),
            )
        ),
        metrics=MetricsConfig(
            port=_env_int("METRICS_PORT", 0, min_val=0, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
