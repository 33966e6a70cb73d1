"""Cluster API access used by the watchers.

ResourceClient is the contract a watcher needs: list a snapshot of a kind and
open a change stream with the same filters.  KubernetesResourceClient
implements it on top of kubernetes-asyncio.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import Any, Protocol

from kubernetes_asyncio import client, watch  # type: ignore[import-untyped]

from k8swatch.models.resources import (
    CORE_EVENT,
    CustomResource,
    ResourceDescriptor,
    ResourceSnapshot,
    WatchEventType,
)
from k8swatch.observability.logging import get_logger

_log = get_logger("collector.client")


class WatchStreamError(Exception):
    """Raised when the server reports an ERROR event on a watch stream."""

    def __init__(self, status: int | None, reason: str, message: str = "") -> None:
        super().__init__(f"watch stream error {status} {reason}: {message}".rstrip(": "))
        self.status = status
        self.reason = reason
        self.message = message


class ResourceClient(Protocol):
    """List and watch operations for one resource kind."""

    async def list_snapshot(
        self,
        descriptor: ResourceDescriptor,
        *,
        namespace: str = "",
        label_selector: str = "",
        field_selector: str = "",
    ) -> ResourceSnapshot[Any]: ...

    def open_stream(
        self,
        descriptor: ResourceDescriptor,
        *,
        namespace: str = "",
        label_selector: str = "",
        field_selector: str = "",
        resource_version: str = "",
    ) -> AsyncIterator[tuple[WatchEventType, Any]]:
        """Yield (event type, resource) pairs until the server closes the stream.

        Transport failures and server-reported errors are raised.
        """
        ...


class KubernetesResourceClient:
    """ResourceClient backed by the kubernetes-asyncio API client.

    Custom resources are listed through CustomObjectsApi and converted to
    CustomResource values; the core Event kind goes through CoreV1Api and
    yields the client's CoreV1Event models unchanged.
    """

    def __init__(self, api_client: client.ApiClient | None = None) -> None:
        self._owns_api_client = api_client is None
        self._api_client = api_client or client.ApiClient()
        self._custom_api = client.CustomObjectsApi(self._api_client)
        self._core_api = client.CoreV1Api(self._api_client)

    async def close(self) -> None:
        """Close the connection pool of an ApiClient created by this instance."""
        if self._owns_api_client:
            await self._api_client.close()

    def _list_call(
        self,
        descriptor: ResourceDescriptor,
        namespace: str,
        label_selector: str,
        field_selector: str,
    ) -> tuple[Callable[..., Any], tuple[str, ...], dict[str, Any]]:
        kwargs: dict[str, Any] = {}
        if label_selector:
            kwargs["label_selector"] = label_selector
        if field_selector:
            kwargs["field_selector"] = field_selector

        if descriptor == CORE_EVENT:
            if namespace:
                return self._core_api.list_namespaced_event, (namespace,), kwargs
            return self._core_api.list_event_for_all_namespaces, (), kwargs

        group, version, plural = descriptor.api_group, descriptor.api_version, descriptor.plural
        if namespace:
            return self._custom_api.list_namespaced_custom_object, (group, version, namespace, plural), kwargs
        return self._custom_api.list_cluster_custom_object, (group, version, plural), kwargs

    async def list_snapshot(
        self,
        descriptor: ResourceDescriptor,
        *,
        namespace: str = "",
        label_selector: str = "",
        field_selector: str = "",
    ) -> ResourceSnapshot[Any]:
        func, args, kwargs = self._list_call(descriptor, namespace, label_selector, field_selector)
        result = await func(*args, **kwargs)

        if isinstance(result, dict):
            metadata = result.get("metadata") or {}
            items = [CustomResource.from_dict(raw) for raw in result.get("items") or []]
            resource_version = str(metadata.get("resourceVersion", ""))
        else:
            items = list(result.items or [])
            resource_version = getattr(result.metadata, "resource_version", None) or ""

        _log.debug(
            "resources_listed",
            kind=descriptor.kind,
            api_version=descriptor.group_version,
            namespace=namespace,
            count=len(items),
            resource_version=resource_version,
        )
        return ResourceSnapshot(items=items, resource_version=resource_version)

    async def open_stream(
        self,
        descriptor: ResourceDescriptor,
        *,
        namespace: str = "",
        label_selector: str = "",
        field_selector: str = "",
        resource_version: str = "",
    ) -> AsyncIterator[tuple[WatchEventType, Any]]:
        func, args, kwargs = self._list_call(descriptor, namespace, label_selector, field_selector)
        kwargs["allow_watch_bookmarks"] = True
        if resource_version:
            kwargs["resource_version"] = resource_version

        w = watch.Watch()
        try:
            async for event in w.stream(func, *args, **kwargs):
                event_type = WatchEventType(event["type"])
                if event_type == WatchEventType.ERROR:
                    raise _stream_error(event.get("raw_object"))
                obj = event["object"]
                if isinstance(obj, dict):
                    obj = CustomResource.from_dict(obj)
                yield event_type, obj
        finally:
            await w.close()

    async def create_custom_object(
        self,
        descriptor: ResourceDescriptor,
        resource: CustomResource,
        namespace: str = "",
    ) -> CustomResource:
        """Create *resource*, namespaced when *namespace* is set, cluster-scoped otherwise."""
        body = resource.to_dict()
        if namespace:
            created = await self._custom_api.create_namespaced_custom_object(
                descriptor.api_group, descriptor.api_version, namespace, descriptor.plural, body
            )
        else:
            created = await self._custom_api.create_cluster_custom_object(
                descriptor.api_group, descriptor.api_version, descriptor.plural, body
            )
        _log.info(
            "custom_object_created",
            kind=descriptor.kind,
            namespace=namespace,
            name=resource.name,
        )
        return CustomResource.from_dict(created)


def _stream_error(raw: object) -> WatchStreamError:
    """Build the exception for an ERROR event from its Status payload."""
    if not isinstance(raw, dict):
        return WatchStreamError(None, "Unknown")
    code = raw.get("code")
    return WatchStreamError(
        int(code) if isinstance(code, int) else None,
        str(raw.get("reason", "Unknown")),
        str(raw.get("message", "")),
    )
