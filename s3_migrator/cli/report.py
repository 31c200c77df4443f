"""
Report generation for S3 to dStorage migrations
"""

from __future__ import annotations

import datetime
import logging
import os
from dataclasses import asdict
from typing import Any

import click
import yaml

from s3_migrator.constants import REPORT_FILE_NAME
from s3_migrator.core.config import MigrationConfig
from s3_migrator.types import MigrationSummary
from s3_migrator.utils.logging import log_with_context


def build_report(summary: MigrationSummary, config: MigrationConfig) -> dict[str, Any]:
    """Build the report document for a finished run."""
    return {
        "generated_at": datetime.datetime.now().isoformat(timespec="seconds"),
        "dry_run": summary.dry_run,
        "settings": {
            "allocation_id": config.allocation_id,
            "region": config.region,
            "buckets": list(config.buckets) or "all",
            "prefix": config.prefix,
            "concurrency": config.concurrency,
            "delete_source": config.delete_source,
            "encrypt": config.encrypt,
            "commit": config.commit,
            "who_pays": config.who_pays.value if config.who_pays else None,
        },
        "summary": {
            "objects_listed": summary.objects_listed,
            "directory_markers": summary.directory_markers,
            "already_migrated": summary.already_migrated,
            "new_objects": summary.new_objects,
            "incomplete_retried": summary.incomplete_retried,
            "succeeded": summary.succeeded,
            "failed": summary.failed,
            "bytes_transferred": summary.bytes_transferred,
            "committed": summary.committed,
            "commit_failures": summary.commit_failures,
            "source_deleted": summary.source_deleted,
            "source_delete_failures": summary.source_delete_failures,
        },
        "failed_transfers": [asdict(f) for f in summary.failed_transfers],
    }


def generate_report(
    summary: MigrationSummary,
    config: MigrationConfig,
    output_dir: str = ".",
    output_file: str = REPORT_FILE_NAME,
) -> str:
    """Write the migration report as YAML and return its path."""
    report_path = os.path.join(output_dir, output_file)
    os.makedirs(output_dir, exist_ok=True)

    if summary.failed_transfers:
        log_with_context(
            logging.WARNING,
            f"Migration completed with {len(summary.failed_transfers)} failed object(s)",
        )

    with open(report_path, "w") as f:
        yaml.safe_dump(
            build_report(summary, config), f, default_flow_style=False, sort_keys=False
        )

    log_with_context(logging.INFO, f"Migration report saved to {report_path}")
    return report_path


def print_summary(summary: MigrationSummary, report_file: str | None = None) -> None:
    """Print a summary of the run to the console."""
    title = "DRY RUN SUMMARY" if summary.dry_run else "MIGRATION SUMMARY"
    click.echo("\n" + "=" * 80)
    click.echo(title)
    click.echo("=" * 80)
    click.echo(f"Objects listed: {summary.objects_listed}")
    click.echo(f"Directory markers ignored: {summary.directory_markers}")
    click.echo(f"Already migrated: {summary.already_migrated}")
    if summary.dry_run:
        click.echo(f"New objects that would be uploaded: {summary.new_objects}")
        click.echo(
            f"Incomplete objects that would be re-uploaded: {summary.incomplete_retried}"
        )
    else:
        click.echo(f"New objects: {summary.new_objects}")
        click.echo(f"Incomplete objects retried: {summary.incomplete_retried}")
        click.echo(f"Succeeded: {summary.succeeded}")
        click.echo(f"Failed: {summary.failed}")
        click.echo(f"Bytes transferred: {summary.bytes_transferred}")
        if summary.commit_failures:
            click.echo(f"Metadata commit failures: {summary.commit_failures}")
        if summary.source_delete_failures:
            click.echo(f"Source delete failures: {summary.source_delete_failures}")

    if report_file:
        click.echo(f"\nDetailed report saved to {report_file}")
    click.echo("=" * 80)
    if summary.dry_run:
        click.echo("\nTo perform the actual migration, run again without --dry_run")
        click.echo("=" * 80)
