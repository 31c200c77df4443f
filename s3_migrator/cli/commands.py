#!/usr/bin/env python3
"""
Main execution module for the S3 to dStorage migration tool.

Importing this module registers every subcommand on the click group.
"""

from s3_migrator.cli import config_cmd, migrate_cmd  # noqa: F401
from s3_migrator.cli.common import cli, handle_exception

__all__ = ["cli", "handle_exception", "main"]


def main() -> None:
    """Entry point for the ``s3-migrator`` console script."""
    cli()
