"""k8swatch: reconnecting Kubernetes watchers, resource mirrors and reconcile controllers."""

__version__ = "0.1.0"
