"""CLI command handler for creating a default config file."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from s3_migrator.cli.common import cli
from s3_migrator.core.config import create_default_config


@cli.command("init-config")
@click.option(
    "--output",
    default="config.yaml",
    show_default=True,
    help="Where to write the default config YAML",
)
def init_config(output: str) -> None:
    """Write a default config file (never overwrites an existing one)."""
    if not create_default_config(Path(output)):
        sys.exit(1)
    click.echo(f"Default config written to {output}")
