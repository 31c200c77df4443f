"""
Main migrator class for the S3 to dStorage migration tool
"""

from __future__ import annotations

import logging
import time

from tqdm import tqdm

from s3_migrator.core.config import MigrationConfig
from s3_migrator.core.dispatcher import BoundedDispatcher
from s3_migrator.core.enumerator import iter_objects, resolve_buckets
from s3_migrator.core.resume import (
    DestinationIndex,
    build_destination_index,
    make_transfer_item,
)
from s3_migrator.core.transfer import TransferWorker
from s3_migrator.services.s3_adapter import ObjectSource
from s3_migrator.services.storage_adapter import ContentStore
from s3_migrator.types import (
    Classification,
    MigrationSummary,
    ObjectDescriptor,
    TransferItem,
    TransferOutcome,
)
from s3_migrator.utils.logging import log_with_context


class S3Migrator:
    """Migrates objects from S3 buckets into a dStorage allocation.

    A run has two phases. Planning resolves the allocation, indexes what
    it already holds, and enumerates and classifies every source object.
    Transfer then dispatches the planned items with bounded concurrency and
    waits for all of them. Planning finishes before the first upload, so a
    fatal listing error in any bucket leaves the destination untouched.
    """

    def __init__(
        self,
        config: MigrationConfig,
        source: ObjectSource,
        store: ContentStore,
        show_progress: bool = True,
    ):
        self.config = config
        self.source = source
        self.store = store
        self.show_progress = show_progress
        self.summary = MigrationSummary(dry_run=config.dry_run)
        self.dispatcher: BoundedDispatcher | None = None

    def run(self) -> MigrationSummary:
        """Run the migration and return its summary.

        Raises:
            AllocationError: If the destination cannot be resolved or listed.
            ListingError: If any source bucket cannot be listed.
        """
        start_time = time.time()
        log_with_context(logging.INFO, "Starting migration from S3")

        index = build_destination_index(
            self.store, self.config.allocation_id, self.config.exclude_paths
        )
        buckets = resolve_buckets(self.source, self.config.buckets)
        items = self.plan(index, buckets)

        log_with_context(
            logging.INFO,
            f"Planned {len(items)} transfer(s): {self.summary.new_objects} new, "
            f"{self.summary.incomplete_retried} incomplete, "
            f"{self.summary.already_migrated} already migrated",
        )

        if self.config.dry_run:
            for item in items:
                action = "re-upload" if item.needs_cleanup else "upload"
                log_with_context(
                    logging.INFO,
                    f"[DRY RUN] Would {action} {item.source_uri} -> {item.remote_path}",
                    bucket=item.bucket,
                    key=item.key,
                )
        elif items:
            self.transfer(index, items)

        elapsed = time.time() - start_time
        log_with_context(
            logging.INFO,
            f"Migration complete in {elapsed:.1f}s: {self.summary.succeeded} succeeded, "
            f"{self.summary.failed} failed",
        )
        return self.summary

    def plan(self, index: DestinationIndex, buckets: list[str]) -> list[TransferItem]:
        """Enumerate and classify every object in ``buckets``."""
        items: list[TransferItem] = []
        for descriptor in iter_objects(
            self.source, buckets, self.config.prefix, on_marker=self._count_marker
        ):
            self.summary.objects_listed += 1
            classification = index.classify(descriptor)
            if classification == Classification.SKIP:
                self.summary.already_migrated += 1
                log_with_context(
                    logging.DEBUG,
                    f"Skipping {descriptor.remote_path}, already migrated",
                    bucket=descriptor.bucket,
                    key=descriptor.key,
                )
                continue
            if classification == Classification.RETRY_INCOMPLETE:
                self.summary.incomplete_retried += 1
                log_with_context(
                    logging.DEBUG,
                    f"Migration was incomplete for {descriptor.remote_path}",
                    bucket=descriptor.bucket,
                    key=descriptor.key,
                )
            else:
                self.summary.new_objects += 1

            item = make_transfer_item(descriptor, classification)
            if item is not None:
                items.append(item)
        return items

    def transfer(
        self, index: DestinationIndex, items: list[TransferItem]
    ) -> list[TransferOutcome]:
        """Dispatch the planned items and fold their outcomes into the summary."""
        worker = TransferWorker(self.config, self.source, self.store, index.allocation)
        pbar = tqdm(
            total=len(items),
            desc="Migrating objects",
            unit="obj",
            disable=not self.show_progress,
        )

        def on_complete(outcome: TransferOutcome) -> None:
            pbar.update(1)

        self.dispatcher = BoundedDispatcher(
            worker, self.config.concurrency, on_complete=on_complete
        )
        try:
            outcomes = self.dispatcher.run(items)
        finally:
            pbar.close()

        for outcome in outcomes:
            self.summary.record(outcome)
        return outcomes

    def _count_marker(self, descriptor: ObjectDescriptor) -> None:
        self.summary.objects_listed += 1
        self.summary.directory_markers += 1
