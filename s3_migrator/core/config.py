"""
Configuration module for the S3 to dStorage migration tool.

This module provides the immutable run configuration, loading of optional
YAML config files merged with command-line overrides, validation of the
values a run cannot start without, and creation of a default config file.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from s3_migrator.constants import DEFAULT_CONCURRENCY, DEFAULT_EXCLUDE_PATHS
from s3_migrator.exceptions import ConfigError
from s3_migrator.types import UploadAttributes, WhoPays
from s3_migrator.utils.logging import log_with_context


def parse_who_pays(value: str | WhoPays | None) -> WhoPays | None:
    """Parse a who-pays-for-reads designation.

    Args:
        value: ``"owner"``, ``"3rd_party"``, a ``WhoPays`` member, or empty.

    Returns:
        The parsed ``WhoPays`` value, or None when no value was supplied.

    Raises:
        ConfigError: If the value is not a known designation.
    """
    if value is None or value == "":
        return None
    if isinstance(value, WhoPays):
        return value
    try:
        return WhoPays(str(value).strip().lower())
    except ValueError:
        valid = ", ".join(w.value for w in WhoPays)
        raise ConfigError(
            f"Invalid who_pays value '{value}'. Must be one of: {valid}"
        ) from None


@dataclass(frozen=True)
class MigrationConfig:
    """Typed, immutable configuration for one migration run.

    Workers receive their own value copy via :meth:`copy`.
    """

    # Destination
    allocation_id: str = ""
    storage_root: str = "."
    exclude_paths: tuple[str, ...] = DEFAULT_EXCLUDE_PATHS

    # Source
    region: str = ""
    endpoint_url: str | None = None
    buckets: tuple[str, ...] = ()
    prefix: str = ""

    # Dispatch
    concurrency: int = DEFAULT_CONCURRENCY

    # Per-object behavior
    delete_source: bool = False
    encrypt: bool = False
    commit: bool = False
    who_pays: WhoPays | None = None

    dry_run: bool = False

    # Raw values that were not recognized, kept for diagnostics
    extra: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MigrationConfig:
        """Create a MigrationConfig from a raw config dictionary."""
        known = {f.name for f in dataclasses.fields(cls)} - {"extra"}
        extra = {k: v for k, v in data.items() if k not in known}

        buckets = data.get("buckets") or ()
        if isinstance(buckets, str):
            buckets = [b.strip() for b in buckets.split(",") if b.strip()]

        exclude_paths = data.get("exclude_paths")
        if exclude_paths is None:
            exclude_paths = DEFAULT_EXCLUDE_PATHS

        concurrency = data.get("concurrency", DEFAULT_CONCURRENCY)
        try:
            concurrency = int(concurrency)
        except (TypeError, ValueError):
            raise ConfigError(
                f"Invalid concurrency value '{concurrency}'. Must be an integer"
            ) from None

        return cls(
            allocation_id=str(data.get("allocation_id") or ""),
            storage_root=str(data.get("storage_root") or "."),
            exclude_paths=tuple(exclude_paths),
            region=data.get("region") or "",
            endpoint_url=data.get("endpoint_url") or None,
            buckets=tuple(buckets),
            prefix=data.get("prefix") or "",
            concurrency=concurrency,
            delete_source=bool(data.get("delete_source", False)),
            encrypt=bool(data.get("encrypt", False)),
            commit=bool(data.get("commit", False)),
            who_pays=parse_who_pays(data.get("who_pays")),
            dry_run=bool(data.get("dry_run", False)),
            extra=extra,
        )

    def copy(self, **changes: Any) -> MigrationConfig:
        """Return an independent value copy, optionally with changed fields."""
        return dataclasses.replace(self, extra=dict(self.extra), **changes)

    def validate(self) -> None:
        """Check the values a run cannot start without.

        Raises:
            ConfigError: If the allocation ID is missing or a value is out of range.
        """
        if not self.allocation_id:
            raise ConfigError("An allocation ID is required (--allocation)")
        if self.concurrency < 0:
            raise ConfigError(
                f"Invalid concurrency {self.concurrency}. Use 0 for unlimited"
            )

    @property
    def upload_attributes(self) -> UploadAttributes:
        return UploadAttributes(who_pays_for_reads=self.who_pays, encrypt=self.encrypt)


def load_config(config_path: Path | None = None, **overrides: Any) -> MigrationConfig:
    """
    Load configuration from a YAML file and apply command-line overrides.

    Loads the optional configuration file, then applies every override whose
    value is not None (so unset CLI options never mask file values), and
    validates the result.

    Args:
        config_path: Path to the config YAML file, or None to skip the file
        **overrides: Values from the command line, keyed by config field name

    Returns:
        A validated MigrationConfig

    Raises:
        ConfigError: If the file is not valid YAML or the merged configuration
            is invalid
    """
    raw: dict[str, Any] = {}

    if config_path is not None:
        if config_path.exists():
            try:
                with open(config_path) as f:
                    loaded_config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid config file {config_path}: {e}") from e
            except OSError as e:
                raise ConfigError(f"Failed to read config file {config_path}: {e}") from e

            # Handle None result from empty file
            if loaded_config is not None:
                if not isinstance(loaded_config, dict):
                    raise ConfigError(
                        f"Config file {config_path} must contain a mapping"
                    )
                raw = loaded_config
            log_with_context(logging.INFO, f"Loaded configuration from {config_path}")
        else:
            log_with_context(
                logging.WARNING,
                f"Config file {config_path} not found, using default settings",
            )

    for name, value in overrides.items():
        if value is None:
            continue
        # Empty CLI tuples (multiple=True options) should not mask file values
        if isinstance(value, (list, tuple)) and not value:
            continue
        raw[name] = value

    config = MigrationConfig.from_dict(raw)
    if config.extra:
        log_with_context(
            logging.WARNING,
            f"Ignoring unknown config keys: {', '.join(sorted(config.extra))}",
        )
    config.validate()
    return config


def create_default_config(output_path: Path) -> bool:
    """
    Create a default configuration file with recommended settings.

    The function will not overwrite an existing configuration file.

    Args:
        output_path: Path where the default config should be saved

    Returns:
        True if the config file was created successfully, False otherwise
    """
    if output_path.exists():
        log_with_context(
            logging.WARNING,
            f"Config file {output_path} already exists, not overwriting",
        )
        return False

    default_config = {
        "allocation_id": "",
        "storage_root": ".",
        "region": "us-east-1",
        "endpoint_url": None,
        # Empty list migrates every bucket the credentials can see
        "buckets": [],
        "prefix": "",
        "concurrency": DEFAULT_CONCURRENCY,
        "delete_source": False,
        "encrypt": False,
        "commit": False,
        "who_pays": "owner",
        "exclude_paths": list(DEFAULT_EXCLUDE_PATHS),
    }

    try:
        with open(output_path, "w") as f:
            yaml.safe_dump(default_config, f, default_flow_style=False, sort_keys=False)
        log_with_context(logging.INFO, f"Created default config file at {output_path}")
        return True
    except OSError as e:
        log_with_context(logging.ERROR, f"Failed to create default config file: {e}")
        return False
