"""Shared test fixtures for the s3_migrator test suite."""

from __future__ import annotations

import io
import logging
import threading
import time
from typing import Any, Iterable, Iterator

import pytest

from s3_migrator.constants import LOGGER_NAME
from s3_migrator.core.config import MigrationConfig
from s3_migrator.exceptions import AllocationNotFoundError, ObjectNotFoundError
from s3_migrator.services.storage_adapter import Allocation
from s3_migrator.types import (
    ObjectDescriptor,
    OperationResult,
    SourceObject,
    UploadAttributes,
)


class TrackingStream(io.BytesIO):
    """BytesIO that remembers whether it was closed by the code under test."""

    was_closed = False

    def close(self) -> None:
        self.was_closed = True
        super().close()


class FakeSource:
    """In-memory, thread-safe stand-in for an S3 source."""

    def __init__(self, buckets: dict[str, dict[str, bytes]] | None = None) -> None:
        self.buckets = buckets or {}
        self.content_types: dict[tuple[str, str], str] = {}
        self.fail_listing: set[str] = set()
        self.fail_listing_after: dict[str, int] = {}
        self.fail_discovery = False
        self.fail_open: set[tuple[str, str]] = set()
        self.fail_delete: set[tuple[str, str]] = set()
        self.list_calls: list[tuple[str, str]] = []
        self.opened: list[tuple[str, str]] = []
        self.deleted: list[tuple[str, str]] = []
        self.streams: list[TrackingStream] = []
        self._lock = threading.Lock()

    def list_containers(self) -> list[str]:
        if self.fail_discovery:
            raise OSError("access denied")
        return list(self.buckets)

    def list_objects(self, bucket: str, prefix: str = "") -> Iterator[ObjectDescriptor]:
        self.list_calls.append((bucket, prefix))
        if bucket in self.fail_listing:
            raise OSError(f"cannot list {bucket}")
        for n, key in enumerate(sorted(self.buckets.get(bucket, {}))):
            if bucket in self.fail_listing_after and n >= self.fail_listing_after[bucket]:
                raise OSError(f"page fetch failed for {bucket}")
            if not key.startswith(prefix):
                continue
            yield ObjectDescriptor(bucket=bucket, key=key, size=len(self.buckets[bucket][key]))

    def open_object(self, bucket: str, key: str) -> SourceObject:
        with self._lock:
            self.opened.append((bucket, key))
        if (bucket, key) in self.fail_open:
            raise OSError(f"connection reset reading {key}")
        if key not in self.buckets.get(bucket, {}):
            raise ObjectNotFoundError(f"s3://{bucket}/{key} not found")
        data = self.buckets[bucket][key]
        stream = TrackingStream(data)
        with self._lock:
            self.streams.append(stream)
        return SourceObject(
            body=stream,
            size=len(data),
            content_type=self.content_types.get((bucket, key), "application/octet-stream"),
        )

    def delete_object(self, bucket: str, key: str) -> None:
        if (bucket, key) in self.fail_delete:
            raise OSError(f"cannot delete {key}")
        with self._lock:
            self.deleted.append((bucket, key))


class FakeStore:
    """In-memory, thread-safe stand-in for a dStorage content store.

    Records every call in ``events`` (in call order) and tracks how many
    uploads run at the same time.
    """

    def __init__(
        self,
        allocations: dict[str, dict[str, bytes]] | None = None,
        upload_delay: float = 0.0,
    ) -> None:
        self.allocations = allocations if allocations is not None else {"alloc-1": {}}
        self.upload_delay = upload_delay
        self.fail_resolve: Exception | None = None
        self.fail_list: Exception | None = None
        self.fail_upload: set[str] = set()
        self.raise_upload: set[str] = set()
        self.fail_delete: set[str] = set()
        self.fail_commit: set[str] = set()
        self.events: list[tuple[Any, ...]] = []
        self.uploads: list[dict[str, Any]] = []
        self.commits: list[tuple[str, str]] = []
        self.exclude_paths_seen: tuple[str, ...] | None = None
        self.active_uploads = 0
        self.peak_uploads = 0
        self._lock = threading.Lock()

    def resolve_allocation(self, allocation_id: str) -> Allocation:
        if self.fail_resolve is not None:
            raise self.fail_resolve
        if allocation_id not in self.allocations:
            raise AllocationNotFoundError(f"allocation {allocation_id} not found")
        return Allocation(id=allocation_id, root=None)  # type: ignore[arg-type]

    def list_all_files(
        self, allocation: Allocation, exclude_paths: Iterable[str] = ()
    ) -> dict[str, int]:
        self.exclude_paths_seen = tuple(exclude_paths)
        if self.fail_list is not None:
            raise self.fail_list
        return {p: len(d) for p, d in self.allocations[allocation.id].items()}

    def upload_stream(
        self,
        allocation: Allocation,
        remote_path: str,
        stream: Any,
        size: int,
        content_type: str,
        attributes: UploadAttributes,
    ) -> OperationResult:
        with self._lock:
            self.active_uploads += 1
            self.peak_uploads = max(self.peak_uploads, self.active_uploads)
            self.events.append(("upload", remote_path, size))
        try:
            if self.upload_delay:
                time.sleep(self.upload_delay)
            if remote_path in self.raise_upload:
                raise OSError("blobber unreachable")
            data = stream.read()
            if remote_path in self.fail_upload:
                return OperationResult.failed("upload status reported failure")
            with self._lock:
                self.allocations[allocation.id][remote_path] = data
                self.uploads.append(
                    {
                        "path": remote_path,
                        "size": size,
                        "content_type": content_type,
                        "attributes": attributes,
                    }
                )
            return OperationResult.ok()
        finally:
            with self._lock:
                self.active_uploads -= 1

    def delete_file(self, allocation: Allocation, remote_path: str) -> None:
        with self._lock:
            self.events.append(("delete", remote_path))
        if remote_path in self.fail_delete:
            raise OSError(f"delete of {remote_path} failed")
        with self._lock:
            self.allocations[allocation.id].pop(remote_path, None)

    def commit_metadata(
        self, allocation: Allocation, remote_path: str, operation: str
    ) -> OperationResult:
        with self._lock:
            self.events.append(("commit", remote_path))
        if remote_path in self.fail_commit:
            return OperationResult.failed("commit rejected")
        with self._lock:
            self.commits.append((remote_path, operation))
        return OperationResult.ok()


@pytest.fixture()
def fake_source():
    """Return an empty FakeSource; tests fill ``buckets`` as needed."""
    return FakeSource()


@pytest.fixture()
def fake_store():
    """Return a FakeStore with one empty allocation, ``alloc-1``."""
    return FakeStore()


@pytest.fixture()
def base_config():
    """Return a valid config pointing at ``alloc-1``."""
    return MigrationConfig(allocation_id="alloc-1", concurrency=4)


@pytest.fixture(autouse=True)
def restore_migrator_logger():
    """Undo handler changes made by setup_logger (e.g. from CLI tests)."""
    logger = logging.getLogger(LOGGER_NAME)
    handlers = logger.handlers[:]
    level = logger.level
    yield
    for handler in logger.handlers[:]:
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in logger.handlers:
            logger.addHandler(handler)
    logger.setLevel(level)


@pytest.fixture()
def make_source():
    """Factory fixture: ``make_source({"bucket": {"key": b"data"}})``."""
    return FakeSource


@pytest.fixture()
def make_store():
    """Factory fixture: ``make_store({"alloc-1": {"/b/k": b"data"}}, upload_delay=0.01)``."""
    return FakeStore
