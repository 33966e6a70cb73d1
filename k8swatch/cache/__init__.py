"""Cache layer for k8swatch.

Submodules:
    resource_mirror -- In-memory mirror of the instances of one resource kind,
                       updated from watch stream change events.
"""

from k8swatch.cache.resource_mirror import ResourceMirror

__all__ = ["ResourceMirror"]
