"""k8swatch command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``k8swatch`` script).
"""

from k8swatch.cli.main import cli

__all__ = ["cli"]
