"""Per-object transfer protocol.

For one transfer item, in order:

1. delete the stale destination copy when an earlier run left it incomplete
2. open the source object as a stream
3. stream it to the destination and wait for the upload result
4. optionally commit the upload's metadata transaction
5. optionally delete the source object

Failures in steps 1-3 abandon the item. Failures in steps 4-5 are logged and
recorded on the outcome but do not undo the upload.
"""

from __future__ import annotations

import logging

from s3_migrator.constants import COMMIT_OPERATION_UPLOAD
from s3_migrator.core.config import MigrationConfig
from s3_migrator.exceptions import CommitError, DeleteError, TransferError
from s3_migrator.services.s3_adapter import ObjectSource
from s3_migrator.services.storage_adapter import Allocation, ContentStore
from s3_migrator.types import (
    SourceObject,
    TransferItem,
    TransferOutcome,
    TransferStatus,
)
from s3_migrator.utils.logging import log_with_context


class TransferWorker:
    """Moves single objects from the source to a resolved allocation."""

    def __init__(
        self,
        config: MigrationConfig,
        source: ObjectSource,
        store: ContentStore,
        allocation: Allocation,
    ) -> None:
        self.config = config
        self.source = source
        self.store = store
        self.allocation = allocation

    def __call__(self, item: TransferItem) -> TransferOutcome:
        return self.transfer(item)

    def transfer(self, item: TransferItem) -> TransferOutcome:
        """Run the full protocol for one item. Never raises for item failures."""
        config = self.config.copy()
        outcome = TransferOutcome(
            bucket=item.bucket,
            key=item.key,
            remote_path=item.remote_path,
            status=TransferStatus.FAILED,
        )
        log_with_context(
            logging.DEBUG,
            f"Uploading {item.source_uri} to remote '{item.remote_path}'",
            bucket=item.bucket,
            key=item.key,
        )

        try:
            if item.needs_cleanup:
                self.delete_incomplete_upload(item)
                outcome.cleaned_up = True
            outcome.bytes_transferred = self.upload(item, config)
        except (TransferError, DeleteError) as e:
            outcome.error = str(e)
            log_with_context(
                logging.ERROR,
                f"Upload to storage failed for {item.source_uri}: {e}",
                bucket=item.bucket,
                key=item.key,
            )
            return outcome

        outcome.status = TransferStatus.SUCCEEDED

        if config.commit:
            try:
                self.commit(item)
                outcome.committed = True
            except CommitError as e:
                outcome.commit_error = str(e)
                log_with_context(
                    logging.ERROR,
                    f"Metadata commit failed for '{item.remote_path}': {e}",
                    bucket=item.bucket,
                    key=item.key,
                )

        if config.delete_source:
            try:
                self.delete_source(item)
                outcome.source_deleted = True
            except DeleteError as e:
                outcome.source_delete_error = str(e)
                log_with_context(
                    logging.WARNING,
                    f"Error removing source file {item.source_uri}: {e}",
                    bucket=item.bucket,
                    key=item.key,
                )

        log_with_context(
            logging.INFO,
            f"Migrated {item.source_uri} -> {item.remote_path} "
            f"({outcome.bytes_transferred} bytes)",
            bucket=item.bucket,
            key=item.key,
        )
        return outcome

    # -- Steps ----------------------------------------------------------------

    def delete_incomplete_upload(self, item: TransferItem) -> None:
        """Remove the partial copy an earlier run left at the destination."""
        log_with_context(
            logging.INFO,
            f"Removing incomplete upload at '{item.remote_path}'",
            bucket=item.bucket,
            key=item.key,
        )
        try:
            self.store.delete_file(self.allocation, item.remote_path)
        except Exception as e:
            raise DeleteError(
                f"Delete of incomplete upload '{item.remote_path}' failed: {e}",
                bucket=item.bucket,
                key=item.key,
            ) from e

    def open_source(self, item: TransferItem) -> SourceObject:
        try:
            return self.source.open_object(item.bucket, item.key)
        except Exception as e:
            raise TransferError(
                f"Unable to open {item.source_uri}: {e}",
                bucket=item.bucket,
                key=item.key,
            ) from e

    def upload(self, item: TransferItem, config: MigrationConfig) -> int:
        """Stream the source object to the destination.

        Returns:
            Number of bytes uploaded.

        Raises:
            TransferError: If the source cannot be opened or the upload does
                not report success.
        """
        source_object = self.open_source(item)
        try:
            result = self.store.upload_stream(
                self.allocation,
                item.remote_path,
                source_object.body,
                source_object.size,
                source_object.content_type or item.descriptor.content_type,
                config.upload_attributes,
            )
        except Exception as e:
            raise TransferError(
                f"Upload failed: {e}", bucket=item.bucket, key=item.key
            ) from e
        finally:
            source_object.close()

        if not result.success:
            raise TransferError(
                f"Upload failed to complete: {result.error or 'no success signal'}",
                bucket=item.bucket,
                key=item.key,
            )
        return source_object.size

    def commit(self, item: TransferItem) -> None:
        try:
            result = self.store.commit_metadata(
                self.allocation, item.remote_path, COMMIT_OPERATION_UPLOAD
            )
        except Exception as e:
            raise CommitError(
                str(e), bucket=item.bucket, key=item.key
            ) from e
        if not result.success:
            raise CommitError(
                result.error or "commit did not report success",
                bucket=item.bucket,
                key=item.key,
            )

    def delete_source(self, item: TransferItem) -> None:
        try:
            self.source.delete_object(item.bucket, item.key)
        except Exception as e:
            raise DeleteError(str(e), bucket=item.bucket, key=item.key) from e
