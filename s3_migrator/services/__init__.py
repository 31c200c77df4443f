"""Service integrations for the migration source (S3) and destination (content store)."""

__all__ = [
    "s3_adapter",
    "storage_adapter",
]
