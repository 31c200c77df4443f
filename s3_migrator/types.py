"""Shared type definitions for the S3 to dStorage migration tool.

Provides the dataclasses that flow through the migration pipeline: object
descriptors produced by enumeration, transfer items produced by the resume
filter, and the structured results returned by content stores and workers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import IO, TYPE_CHECKING, Any

if TYPE_CHECKING:
    from s3_migrator.core.dispatcher import DispatchState

# ---------------------------------------------------------------------------
# Source-side types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ObjectDescriptor:
    """One object found while listing a source bucket."""

    bucket: str
    key: str
    size: int
    content_type: str = ""

    @property
    def remote_path(self) -> str:
        """Destination path for this object: ``/<bucket>/<key>``."""
        return f"/{self.bucket}/{self.key}"


@dataclass
class SourceObject:
    """An opened source object: a readable body plus its size and type."""

    body: IO[bytes] | Any
    size: int
    content_type: str = ""

    def close(self) -> None:
        close = getattr(self.body, "close", None)
        if callable(close):
            close()


# ---------------------------------------------------------------------------
# Destination-side types
# ---------------------------------------------------------------------------


class WhoPays(str, Enum):
    """Who is charged for reads of an uploaded file."""

    OWNER = "owner"
    THIRD_PARTY = "3rd_party"


@dataclass(frozen=True)
class UploadAttributes:
    """Attributes attached to an uploaded file."""

    who_pays_for_reads: WhoPays | None = None
    encrypt: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"encrypt": self.encrypt}
        if self.who_pays_for_reads is not None:
            data["who_pays_for_reads"] = self.who_pays_for_reads.value
        return data


@dataclass
class OperationResult:
    """Completion signal for an upload or a metadata commit.

    Content stores return this instead of raising so that a reported
    non-success and a propagated error can be handled the same way.
    """

    success: bool
    error: str | None = None

    @classmethod
    def ok(cls) -> OperationResult:
        return cls(success=True)

    @classmethod
    def failed(cls, error: str) -> OperationResult:
        return cls(success=False, error=error)


# ---------------------------------------------------------------------------
# Pipeline types
# ---------------------------------------------------------------------------


class Classification(str, Enum):
    """Resume filter verdict for an enumerated object."""

    SKIP = "skip"
    RETRY_INCOMPLETE = "retry_incomplete"
    NEW = "new"


@dataclass
class TransferItem:
    """A single object scheduled for transfer.

    Created by the resume filter and consumed exactly once by one worker.
    ``needs_cleanup`` is set when the destination already holds an object at
    the same path with a different size.
    """

    descriptor: ObjectDescriptor
    remote_path: str
    needs_cleanup: bool = False
    dispatch_state: DispatchState | None = field(
        default=None, repr=False, compare=False
    )

    @property
    def bucket(self) -> str:
        return self.descriptor.bucket

    @property
    def key(self) -> str:
        return self.descriptor.key

    @property
    def source_uri(self) -> str:
        return f"s3://{self.descriptor.bucket}/{self.descriptor.key}"


class TransferStatus(str, Enum):
    """Terminal state reached by a transfer worker."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class TransferOutcome:
    """Structured result from :meth:`TransferWorker.transfer`.

    A succeeded item may still carry ``commit_error`` or
    ``source_delete_error``; neither undoes the upload.
    """

    bucket: str
    key: str
    remote_path: str
    status: TransferStatus
    bytes_transferred: int = 0
    cleaned_up: bool = False
    committed: bool = False
    source_deleted: bool = False
    error: str | None = None
    commit_error: str | None = None
    source_delete_error: str | None = None

    @property
    def success(self) -> bool:
        """True when the object was uploaded to the destination."""
        return self.status == TransferStatus.SUCCEEDED


@dataclass
class FailedTransfer:
    """An object that failed to migrate."""

    bucket: str
    key: str
    error: str


@dataclass
class MigrationSummary:
    """Aggregate counters for one migration run."""

    objects_listed: int = 0
    directory_markers: int = 0
    already_migrated: int = 0
    new_objects: int = 0
    incomplete_retried: int = 0
    succeeded: int = 0
    failed: int = 0
    bytes_transferred: int = 0
    committed: int = 0
    commit_failures: int = 0
    source_deleted: int = 0
    source_delete_failures: int = 0
    dry_run: bool = False
    failed_transfers: list[FailedTransfer] = field(default_factory=list)

    @property
    def scheduled(self) -> int:
        """Number of objects handed to the dispatcher (or that would be)."""
        return self.new_objects + self.incomplete_retried

    def record(self, outcome: TransferOutcome) -> None:
        """Fold one worker outcome into the counters."""
        if outcome.success:
            self.succeeded += 1
            self.bytes_transferred += outcome.bytes_transferred
        else:
            self.failed += 1
            self.failed_transfers.append(
                FailedTransfer(
                    bucket=outcome.bucket,
                    key=outcome.key,
                    error=outcome.error or "unknown error",
                )
            )
        if outcome.committed:
            self.committed += 1
        if outcome.commit_error:
            self.commit_failures += 1
        if outcome.source_deleted:
            self.source_deleted += 1
        if outcome.source_delete_error:
            self.source_delete_failures += 1
