"""Shared constants for the S3 to dStorage migration tool."""

# Destination paths that are never considered migrated content
DEFAULT_EXCLUDE_PATHS = (".DS_Store", ".git")

DEFAULT_CONCURRENCY = 10

# CRUD operation name recorded by the metadata commit
COMMIT_OPERATION_UPLOAD = "Upload"

# Chunk size used when streaming object bodies
STREAM_CHUNK_SIZE = 8 * 1024 * 1024

LOGGER_NAME = "s3_migrator"

REPORT_FILE_NAME = "migration_report.yaml"
OUTPUT_ROOT = "migration_logs"
