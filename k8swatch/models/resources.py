"""Resource identity and change event data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Generic, TypeVar

ResourceT = TypeVar("ResourceT")


class WatchEventType(StrEnum):
    """Type of notification delivered by a watch stream."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    BOOKMARK = "BOOKMARK"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ResourceDescriptor:
    """Static identity of a watched resource kind.

    Created once per kind and shared by every watcher of that kind.
    ``api_group`` is empty for the core group (``apiVersion: v1``).
    """

    api_group: str
    api_version: str
    kind: str
    plural: str

    @classmethod
    def from_api_version(cls, api_version: str, kind: str, plural: str) -> ResourceDescriptor:
        """Build a descriptor from an ``apiVersion`` string such as ``example.com/v1``."""
        if not api_version:
            raise ValueError("api_version must not be empty")
        if not kind:
            raise ValueError("kind must not be empty")
        if not plural:
            raise ValueError("plural must not be empty")
        group, _, version = api_version.rpartition("/")
        if not version or api_version.count("/") > 1:
            raise ValueError(f"Invalid apiVersion: {api_version}")
        return cls(api_group=group, api_version=version, kind=kind, plural=plural)

    @property
    def group_version(self) -> str:
        """Return the ``apiVersion`` string as it appears on the wire."""
        if self.api_group:
            return f"{self.api_group}/{self.api_version}"
        return self.api_version


@dataclass(frozen=True)
class CustomResource:
    """A custom resource instance as returned by the cluster API."""

    api_version: str
    kind: str
    metadata: dict[str, Any] = field(default_factory=dict)
    spec: dict[str, Any] = field(default_factory=dict)
    status: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> CustomResource:
        return cls(
            api_version=str(raw.get("apiVersion", "")),
            kind=str(raw.get("kind", "")),
            metadata=dict(raw.get("metadata") or {}),
            spec=dict(raw.get("spec") or {}),
            status=dict(raw.get("status") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": self.metadata,
            "spec": self.spec,
        }
        if self.status:
            body["status"] = self.status
        return body

    @property
    def uid(self) -> str:
        return str(self.metadata.get("uid", ""))

    @property
    def name(self) -> str:
        return str(self.metadata.get("name", ""))

    @property
    def namespace(self) -> str:
        return str(self.metadata.get("namespace", ""))


@dataclass(frozen=True)
class ResourceEvent(Generic[ResourceT]):
    """One notification from a watch stream.

    ``resource`` is None for ERROR events, which carry the stream failure in
    ``error`` instead.  Immutable: consumed and discarded by listeners.
    """

    type: WatchEventType
    resource: ResourceT | None = None
    error: BaseException | None = None


def resource_uid(resource: object) -> str:
    """Return ``metadata.uid`` of a resource, whatever its representation.

    Handles CustomResource values, raw dicts and kubernetes client models.
    """
    if isinstance(resource, CustomResource):
        return resource.uid
    if isinstance(resource, dict):
        metadata = resource.get("metadata") or {}
        return str(metadata.get("uid", "")) if isinstance(metadata, dict) else ""
    metadata = getattr(resource, "metadata", None)
    uid = getattr(metadata, "uid", None)
    return str(uid) if uid is not None else ""


@dataclass(frozen=True)
class ResourceSnapshot(Generic[ResourceT]):
    """Result of listing a resource kind: the items plus the list resourceVersion.

    Watching from ``resource_version`` continues exactly where the list ended.
    """

    items: list[ResourceT] = field(default_factory=list)
    resource_version: str = ""


CORE_EVENT = ResourceDescriptor(api_group="", api_version="v1", kind="Event", plural="events")


def resource_version_of(resource: object) -> str:
    """Return ``metadata.resourceVersion`` of a resource, or "" when absent."""
    if isinstance(resource, CustomResource):
        return str(resource.metadata.get("resourceVersion", ""))
    if isinstance(resource, dict):
        metadata = resource.get("metadata") or {}
        return str(metadata.get("resourceVersion", "")) if isinstance(metadata, dict) else ""
    metadata = getattr(resource, "metadata", None)
    version = getattr(metadata, "resource_version", None)
    return str(version) if version is not None else ""
