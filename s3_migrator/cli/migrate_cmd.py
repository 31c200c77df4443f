"""CLI command handler for the migrate workflow."""

from __future__ import annotations

import datetime
import logging
import os
import sys
from pathlib import Path
from types import SimpleNamespace

import click

from s3_migrator.cli.common import cli, common_options, handle_exception
from s3_migrator.cli.report import generate_report, print_summary
from s3_migrator.constants import OUTPUT_ROOT
from s3_migrator.core.config import MigrationConfig, load_config
from s3_migrator.core.migrator import S3Migrator
from s3_migrator.services.s3_adapter import S3Source
from s3_migrator.services.storage_adapter import FilesystemStore
from s3_migrator.utils.logging import log_with_context, setup_logger


# ---------------------------------------------------------------------------
# migrate subcommand
# ---------------------------------------------------------------------------


@cli.command()
@common_options
@click.option("--allocation", default=None, help="Allocation ID for dStorage (required)")
@click.option("--region", "-r", default=None, help="S3 region")
@click.option(
    "--bucket",
    multiple=True,
    help="Specific S3 bucket to migrate (repeatable; default: all buckets)",
)
@click.option("--prefix", default=None, help="S3 key prefix to use during migration")
@click.option(
    "--concurrency",
    type=int,
    default=None,
    help="Number of files to process concurrently (default: 10, 0 for unlimited)",
)
@click.option(
    "--delete_source",
    is_flag=True,
    default=False,
    help="Remove migrated files from the source (S3)",
)
@click.option(
    "--encrypt", is_flag=True, default=False, help="Encrypt and upload the files"
)
@click.option(
    "--commit",
    is_flag=True,
    default=False,
    help="Commit the metadata transaction after each upload",
)
@click.option(
    "--who_pays",
    default=None,
    help="Who pays for reads of the uploaded files: owner or 3rd_party",
)
@click.option("--endpoint_url", default=None, help="Endpoint of an S3-compatible source")
@click.option(
    "--storage_root",
    default=None,
    help="Directory holding the dStorage allocations (default: current directory)",
)
@click.option(
    "--dry_run",
    is_flag=True,
    default=False,
    help="Plan only - list what would be migrated without transferring anything",
)
def migrate(
    config: str | None,
    verbose: bool,
    debug_api: bool,
    allocation: str | None,
    region: str | None,
    bucket: tuple[str, ...],
    prefix: str | None,
    concurrency: int | None,
    delete_source: bool,
    encrypt: bool,
    commit: bool,
    who_pays: str | None,
    endpoint_url: str | None,
    storage_root: str | None,
    dry_run: bool,
) -> None:
    """Migrate objects from S3 to dStorage."""
    args = SimpleNamespace(
        config=config,
        verbose=verbose,
        debug_api=debug_api,
        allocation=allocation,
        region=region,
        bucket=bucket,
        prefix=prefix,
        concurrency=concurrency,
        # Unset flags stay None so they never mask config file values
        delete_source=delete_source or None,
        encrypt=encrypt or None,
        commit=commit or None,
        who_pays=who_pays,
        endpoint_url=endpoint_url,
        storage_root=storage_root,
        dry_run=dry_run or None,
    )

    # Create output directory early so all operations are logged to file
    output_dir = create_migration_output_directory()
    setup_logger(args.verbose, args.debug_api, output_dir)
    log_with_context(logging.INFO, f"Output directory: {output_dir}")

    orchestrator = MigrationOrchestrator(args, output_dir)
    try:
        orchestrator.load_configuration()
        log_startup_info(orchestrator.config)
        orchestrator.run_migration()
    except (Exception, KeyboardInterrupt) as e:
        handle_exception(e)
        sys.exit(1)


# ---------------------------------------------------------------------------
# MigrationOrchestrator
# ---------------------------------------------------------------------------


class MigrationOrchestrator:
    """Builds the collaborators for a run from CLI arguments and runs it."""

    def __init__(self, args: SimpleNamespace, output_dir: str = "."):
        self.args = args
        self.output_dir = output_dir
        self.config: MigrationConfig | None = None
        self.migrator: S3Migrator | None = None

    def load_configuration(self) -> MigrationConfig:
        """Merge the config file with command-line options and validate."""
        config_path = Path(self.args.config) if self.args.config else None
        self.config = load_config(
            config_path,
            allocation_id=self.args.allocation,
            region=self.args.region,
            buckets=self.args.bucket,
            prefix=self.args.prefix,
            concurrency=self.args.concurrency,
            delete_source=self.args.delete_source,
            encrypt=self.args.encrypt,
            commit=self.args.commit,
            who_pays=self.args.who_pays,
            endpoint_url=self.args.endpoint_url,
            storage_root=self.args.storage_root,
            dry_run=self.args.dry_run,
        )
        return self.config

    def create_migrator(self) -> S3Migrator:
        """Create a migrator wired to S3 and the filesystem content store."""
        config = self.config or self.load_configuration()
        source = S3Source.from_config(config.region, config.endpoint_url)
        store = FilesystemStore(config.storage_root)
        return S3Migrator(config, source, store)

    def run_migration(self) -> None:
        """Run the migration, then write and print the report."""
        self.migrator = self.create_migrator()
        summary = self.migrator.run()
        report_file = generate_report(summary, self.migrator.config, self.output_dir)
        print_summary(summary, report_file)


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def log_startup_info(config: MigrationConfig | None) -> None:
    """Log startup information.

    Args:
        config: The validated run configuration.
    """
    if config is None:
        return
    log_with_context(logging.INFO, "Starting migration with the following parameters:")
    log_with_context(logging.INFO, f"- Allocation: {config.allocation_id}")
    log_with_context(logging.INFO, f"- Storage root: {config.storage_root}")
    log_with_context(logging.INFO, f"- Region: {config.region or '(default)'}")
    log_with_context(
        logging.INFO, f"- Buckets: {', '.join(config.buckets) or '(all)'}"
    )
    log_with_context(logging.INFO, f"- Prefix: {config.prefix or '(none)'}")
    log_with_context(logging.INFO, f"- Concurrency: {config.concurrency or 'unlimited'}")
    log_with_context(logging.INFO, f"- Delete source: {config.delete_source}")
    log_with_context(logging.INFO, f"- Encrypt: {config.encrypt}")
    log_with_context(logging.INFO, f"- Commit: {config.commit}")
    log_with_context(logging.INFO, f"- Dry run: {config.dry_run}")


def create_migration_output_directory() -> str:
    """Create output directory for migration with timestamp.

    Returns:
        The path to the newly created output directory.
    """
    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    output_dir = os.path.join(OUTPUT_ROOT, f"run_{timestamp}")
    os.makedirs(output_dir, exist_ok=True)
    return output_dir
