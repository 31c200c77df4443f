"""Custom exception hierarchy for the S3 to dStorage migration tool."""

from __future__ import annotations


class MigratorError(Exception):
    """Base exception for all migration-related errors."""


class ConfigError(MigratorError):
    """Raised when configuration is invalid or missing."""


class AllocationError(MigratorError):
    """Raised when the destination allocation cannot be resolved or listed."""


class AllocationNotFoundError(AllocationError):
    """Raised by a content store when the allocation ID does not exist."""


class ListingError(MigratorError):
    """Raised when a source bucket (or the bucket list) cannot be listed."""


class ObjectNotFoundError(MigratorError):
    """Raised by a source when the requested object no longer exists."""


class ItemError(MigratorError):
    """Base class for failures scoped to a single object.

    These never abort the run; the object is logged and abandoned.
    """

    def __init__(self, message: str, bucket: str = "", key: str = "") -> None:
        super().__init__(message)
        self.bucket = bucket
        self.key = key


class TransferError(ItemError):
    """Raised when opening, streaming, or uploading an object fails."""


class DeleteError(ItemError):
    """Raised when deleting a stale destination copy or a source object fails."""


class CommitError(ItemError):
    """Raised when the metadata commit for an uploaded object fails."""
