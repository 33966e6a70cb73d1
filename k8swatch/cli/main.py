"""Click commands: run the watcher process or print the effective configuration."""

from __future__ import annotations

import asyncio
import dataclasses
import json

import click

from k8swatch import __version__
from k8swatch.config import load_config


@click.group()
@click.version_option(__version__, prog_name="k8swatch")
def cli() -> None:
    """Watch Kubernetes resources and cluster events."""


@cli.command()
@click.option("--namespace", envvar="K8SWATCH_NAMESPACE", default="", help="Namespace to watch (empty: cluster-wide).")
@click.option("--log-level", envvar="K8SWATCH_LOG_LEVEL", default="info", show_default=True)
def run(namespace: str, log_level: str) -> None:
    """Run the event listener (and the configured resource watcher) until interrupted."""
    import os

    from k8swatch.app import main

    os.environ["K8SWATCH_NAMESPACE"] = namespace
    os.environ["K8SWATCH_LOG_LEVEL"] = log_level
    asyncio.run(main())


@cli.command("config")
def show_config() -> None:
    """Print the configuration resolved from K8SWATCH_* variables as JSON."""
    try:
        config = load_config()
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(json.dumps(dataclasses.asdict(config), indent=2))
