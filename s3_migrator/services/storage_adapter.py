"""Content store adapters for the migration destination.

``ContentStore`` is the interface the migration core consumes.
``FilesystemStore`` implements it over a local or mounted directory tree in
which every allocation is a directory under ``storage_root``. Files are
addressed by ``"/"``-rooted paths inside their allocation.

Store bookkeeping (upload attributes and the metadata commit log) lives in
a ``.dstorage`` directory inside each allocation and is never listed as
content.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any, Iterable, Protocol

from s3_migrator.constants import STREAM_CHUNK_SIZE
from s3_migrator.exceptions import AllocationNotFoundError
from s3_migrator.types import OperationResult, UploadAttributes
from s3_migrator.utils.logging import log_with_context

METADATA_DIR = ".dstorage"
COMMIT_LOG = "commits.jsonl"
ATTRIBUTES_FILE = "attributes.jsonl"


@dataclass(frozen=True)
class Allocation:
    """Handle of a resolved allocation."""

    id: str
    root: Path


class ContentStore(Protocol):
    """Interface of the store objects are migrated to."""

    def resolve_allocation(self, allocation_id: str) -> Allocation: ...

    def list_all_files(
        self, allocation: Allocation, exclude_paths: Iterable[str] = ()
    ) -> dict[str, int]: ...

    def upload_stream(
        self,
        allocation: Allocation,
        remote_path: str,
        stream: IO[bytes] | Any,
        size: int,
        content_type: str,
        attributes: UploadAttributes,
    ) -> OperationResult: ...

    def delete_file(self, allocation: Allocation, remote_path: str) -> None: ...

    def commit_metadata(
        self, allocation: Allocation, remote_path: str, operation: str
    ) -> OperationResult: ...


class FilesystemStore:
    """Content store backed by a directory tree."""

    def __init__(self, storage_root: str | Path) -> None:
        self.storage_root = Path(storage_root)
        self._metadata_lock = threading.Lock()

    # -- Allocations ----------------------------------------------------------

    def resolve_allocation(self, allocation_id: str) -> Allocation:
        """Return the handle for ``allocation_id``.

        Raises:
            AllocationNotFoundError: If the allocation directory does not exist.
        """
        root = self.storage_root / allocation_id
        if not allocation_id or not root.is_dir():
            raise AllocationNotFoundError(
                f"Allocation '{allocation_id}' not found under {self.storage_root}"
            )
        return Allocation(id=allocation_id, root=root)

    # -- Files ----------------------------------------------------------------

    def list_all_files(
        self, allocation: Allocation, exclude_paths: Iterable[str] = ()
    ) -> dict[str, int]:
        """Recursively list every file in the allocation with its size.

        Args:
            allocation: Resolved allocation handle.
            exclude_paths: Allocation paths to skip, relative to the allocation
                root (``".git"`` skips ``/.git`` and everything below it).

        Returns:
            Mapping of ``"/"``-rooted path to size in bytes.
        """
        excluded = {"/" + p.strip("/") for p in exclude_paths if p.strip("/")}
        # Store bookkeeping lives only at the allocation root
        excluded.add("/" + METADATA_DIR)

        files: dict[str, int] = {}
        for dirpath, dirnames, filenames in os.walk(allocation.root, onerror=_raise):
            rel_dir = Path(dirpath).relative_to(allocation.root)
            dirnames[:] = [
                d for d in dirnames if _remote_path(rel_dir, d) not in excluded
            ]
            for name in filenames:
                remote_path = _remote_path(rel_dir, name)
                if remote_path in excluded:
                    continue
                files[remote_path] = (Path(dirpath) / name).stat().st_size
        return files

    def upload_stream(
        self,
        allocation: Allocation,
        remote_path: str,
        stream: IO[bytes] | Any,
        size: int,
        content_type: str,
        attributes: UploadAttributes,
    ) -> OperationResult:
        """Stream ``stream`` into the allocation at ``remote_path``.

        The body is copied in chunks; it is never read into memory whole.
        A byte count that disagrees with ``size`` is reported as a failure
        and the short file is left in place.
        """
        target = self._local_path(allocation, remote_path)
        written = 0
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as out:
                while True:
                    chunk = stream.read(STREAM_CHUNK_SIZE)
                    if not chunk:
                        break
                    out.write(chunk)
                    written += len(chunk)
        except OSError as e:
            return OperationResult.failed(f"write to {remote_path} failed: {e}")

        if written != size:
            return OperationResult.failed(
                f"size mismatch for {remote_path}: expected {size} bytes, wrote {written}"
            )

        if attributes.encrypt:
            log_with_context(
                logging.WARNING,
                "Encryption is not supported by the filesystem store, file stored as-is",
                path=remote_path,
            )
        self._append_metadata(
            allocation,
            ATTRIBUTES_FILE,
            {
                "path": remote_path,
                "size": size,
                "content_type": content_type,
                **attributes.to_dict(),
            },
        )
        return OperationResult.ok()

    def delete_file(self, allocation: Allocation, remote_path: str) -> None:
        """Remove a file.

        Raises:
            OSError: If the file cannot be removed (including when missing).
        """
        self._local_path(allocation, remote_path).unlink()

    def commit_metadata(
        self, allocation: Allocation, remote_path: str, operation: str
    ) -> OperationResult:
        """Record a metadata transaction for ``remote_path`` in the commit log."""
        target = self._local_path(allocation, remote_path)
        try:
            size = target.stat().st_size
            self._append_metadata(
                allocation,
                COMMIT_LOG,
                {"path": remote_path, "operation": operation, "size": size},
            )
        except OSError as e:
            return OperationResult.failed(f"commit for {remote_path} failed: {e}")
        return OperationResult.ok()

    # -- Helpers --------------------------------------------------------------

    def _local_path(self, allocation: Allocation, remote_path: str) -> Path:
        relative = remote_path.lstrip("/")
        target = (allocation.root / relative).resolve()
        root = allocation.root.resolve()
        if root != target and root not in target.parents:
            raise OSError(f"Path {remote_path} escapes allocation {allocation.id}")
        return target

    def _append_metadata(
        self, allocation: Allocation, file_name: str, record: dict[str, Any]
    ) -> None:
        record = {**record, "recorded_at": datetime.now(timezone.utc).isoformat()}
        meta_dir = allocation.root / METADATA_DIR
        with self._metadata_lock:
            meta_dir.mkdir(exist_ok=True)
            with open(meta_dir / file_name, "a") as f:
                f.write(json.dumps(record) + "\n")


def _remote_path(rel_dir: Path, name: str) -> str:
    return "/" + (rel_dir / name).as_posix()


def _raise(error: OSError) -> None:
    raise error
