"""Typed adapter for the Amazon S3 API.

Wraps a boto3 S3 client behind the narrow interface the migration core
consumes: list buckets, lazily list objects, open an object as a stream,
and delete an object. Listing pagination is hidden from callers.

The adapter does **not** add retry logic; botocore's own configuration
applies.
"""

from __future__ import annotations

from typing import Any, Iterator, Protocol

import boto3
from botocore.exceptions import ClientError

from s3_migrator.exceptions import ObjectNotFoundError
from s3_migrator.types import ObjectDescriptor, SourceObject

_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}


class ObjectSource(Protocol):
    """Interface of the store objects are migrated from."""

    def list_containers(self) -> list[str]: ...

    def list_objects(self, bucket: str, prefix: str = "") -> Iterator[ObjectDescriptor]: ...

    def open_object(self, bucket: str, key: str) -> SourceObject: ...

    def delete_object(self, bucket: str, key: str) -> None: ...


class S3Source:
    """Thin typed wrapper around a boto3 S3 client."""

    def __init__(self, client: Any) -> None:
        self._client = client

    @classmethod
    def from_config(
        cls, region: str = "", endpoint_url: str | None = None
    ) -> S3Source:
        """Build a client for the given region (and S3-compatible endpoint)."""
        kwargs: dict[str, Any] = {}
        if region:
            kwargs["region_name"] = region
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        session = boto3.session.Session()
        return cls(session.client("s3", **kwargs))

    # -- Buckets --------------------------------------------------------------

    def list_containers(self) -> list[str]:
        """List the names of all buckets visible to the credentials."""
        result = self._client.list_buckets()
        return [b["Name"] for b in result.get("Buckets", [])]

    # -- Objects --------------------------------------------------------------

    def list_objects(self, bucket: str, prefix: str = "") -> Iterator[ObjectDescriptor]:
        """Yield every object in ``bucket`` under ``prefix``, page by page.

        Args:
            bucket: Bucket name.
            prefix: Key prefix filter; empty lists the whole bucket.

        Yields:
            One ObjectDescriptor per listed object. Content type is not part
            of a listing and is left empty.
        """
        paginator = self._client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
            for item in page.get("Contents", []):
                yield ObjectDescriptor(
                    bucket=bucket,
                    key=item["Key"],
                    size=int(item.get("Size", 0)),
                )

    def open_object(self, bucket: str, key: str) -> SourceObject:
        """Open an object for streaming.

        Returns:
            SourceObject whose ``body`` is the botocore streaming body.

        Raises:
            ObjectNotFoundError: If the key no longer exists.
        """
        try:
            out = self._client.get_object(Bucket=bucket, Key=key)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(f"s3://{bucket}/{key} not found") from e
            raise
        return SourceObject(
            body=out["Body"],
            size=int(out.get("ContentLength", 0)),
            content_type=out.get("ContentType") or "",
        )

    def delete_object(self, bucket: str, key: str) -> None:
        self._client.delete_object(Bucket=bucket, Key=key)
