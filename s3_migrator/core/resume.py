"""Resume filter.

Builds a one-time index of what already exists at the destination and uses
it to decide, per enumerated object, whether it was already migrated, was
left incomplete by an earlier run, or is new.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from s3_migrator.exceptions import AllocationError
from s3_migrator.services.storage_adapter import Allocation, ContentStore
from s3_migrator.types import Classification, ObjectDescriptor, TransferItem
from s3_migrator.utils.logging import log_with_context


@dataclass
class DestinationIndex:
    """Destination path -> stored size, captured once before dispatch."""

    allocation: Allocation
    sizes: dict[str, int] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.sizes)

    def classify(self, descriptor: ObjectDescriptor) -> Classification:
        """Compare a source object with what the destination holds at its path."""
        existing = self.sizes.get(descriptor.remote_path)
        if existing is None:
            return Classification.NEW
        if existing == descriptor.size:
            return Classification.SKIP
        return Classification.RETRY_INCOMPLETE


def build_destination_index(
    store: ContentStore, allocation_id: str, exclude_paths: Iterable[str]
) -> DestinationIndex:
    """Resolve the allocation and list everything already stored in it.

    Raises:
        AllocationError: If the allocation cannot be resolved or listed.
    """
    try:
        allocation = store.resolve_allocation(allocation_id)
    except AllocationError as e:
        log_with_context(logging.ERROR, f"Error fetching the allocation: {e}")
        raise
    except Exception as e:
        log_with_context(logging.ERROR, f"Error fetching the allocation: {e}")
        raise AllocationError(
            f"Error fetching allocation {allocation_id}: {e}"
        ) from e

    try:
        sizes = dict(store.list_all_files(allocation, tuple(exclude_paths)))
    except Exception as e:
        log_with_context(logging.ERROR, f"Error getting remote files: {e}")
        raise AllocationError(
            f"Error listing files in allocation {allocation_id}: {e}"
        ) from e

    log_with_context(
        logging.INFO,
        f"Found {len(sizes)} existing file(s) in allocation {allocation_id}",
    )
    return DestinationIndex(allocation=allocation, sizes=sizes)


def make_transfer_item(
    descriptor: ObjectDescriptor, classification: Classification
) -> TransferItem | None:
    """Build the transfer item for a classified object, or None to skip it."""
    if classification == Classification.SKIP:
        return None
    return TransferItem(
        descriptor=descriptor,
        remote_path=descriptor.remote_path,
        needs_cleanup=classification == Classification.RETRY_INCOMPLETE,
    )
