#!/usr/bin/env python3
"""
S3 to dStorage migration tool
"""

__version__ = "0.1.0"

from s3_migrator.core.config import MigrationConfig, load_config

# Import the main classes and functions for easier access
from s3_migrator.core.migrator import S3Migrator
from s3_migrator.services.s3_adapter import S3Source
from s3_migrator.services.storage_adapter import FilesystemStore
from s3_migrator.types import MigrationSummary
