"""Source enumeration.

Lists the buckets to migrate and flattens each bucket's paginated listing
into one lazy sequence of object descriptors. Zero-size objects are
directory markers and never leave the enumerator.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Iterator

from s3_migrator.exceptions import ListingError
from s3_migrator.services.s3_adapter import ObjectSource
from s3_migrator.types import ObjectDescriptor
from s3_migrator.utils.logging import log_with_context


def resolve_buckets(source: ObjectSource, buckets: Iterable[str] = ()) -> list[str]:
    """Return the explicit bucket list, or discover every bucket when empty.

    Raises:
        ListingError: If bucket discovery fails.
    """
    explicit = [b for b in buckets if b]
    if explicit:
        return explicit

    try:
        discovered = list(source.list_containers())
    except Exception as e:
        log_with_context(logging.ERROR, f"Unable to list buckets: {e}")
        raise ListingError(f"Unable to list buckets: {e}") from e

    log_with_context(
        logging.INFO, f"Discovered {len(discovered)} bucket(s) to migrate"
    )
    return discovered


def iter_bucket_objects(
    source: ObjectSource,
    bucket: str,
    prefix: str = "",
    on_marker: Callable[[ObjectDescriptor], None] | None = None,
) -> Iterator[ObjectDescriptor]:
    """Yield the non-empty objects of one bucket.

    Calling this again restarts the listing of that bucket from the start.

    Args:
        source: Object source to list from.
        bucket: Bucket name.
        prefix: Key prefix filter.
        on_marker: Optional callback for each skipped zero-size object.

    Raises:
        ListingError: If any page of the listing fails.
    """
    try:
        for descriptor in source.list_objects(bucket, prefix):
            if descriptor.size == 0:
                if on_marker is not None:
                    on_marker(descriptor)
                continue
            yield descriptor
    except ListingError:
        raise
    except Exception as e:
        log_with_context(
            logging.ERROR, f"Unable to list items in bucket {bucket!r}: {e}", bucket=bucket
        )
        raise ListingError(f"Unable to list items in bucket {bucket!r}: {e}") from e


def iter_objects(
    source: ObjectSource,
    buckets: Iterable[str],
    prefix: str = "",
    on_marker: Callable[[ObjectDescriptor], None] | None = None,
) -> Iterator[ObjectDescriptor]:
    """Yield the non-empty objects of every bucket, one bucket after another."""
    for bucket in buckets:
        log_with_context(logging.DEBUG, f"Listing bucket {bucket}", bucket=bucket)
        yield from iter_bucket_objects(source, bucket, prefix, on_marker)
