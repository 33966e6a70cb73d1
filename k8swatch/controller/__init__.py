"""Reconcile controllers for k8swatch.

Exports:
    ResourceController -- ABC operator authors subclass; implements reconcile().
    ReconcilePolicy    -- How overlapping triggered reconciles are handled.
"""

from k8swatch.controller.base import ReconcilePolicy, ResourceController

__all__ = ["ReconcilePolicy", "ResourceController"]
