"""Logging and metrics for k8swatch."""
