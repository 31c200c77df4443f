"""
Logging module for the S3 to dStorage migration tool
"""

import logging
import os
from typing import Any, Optional

from s3_migrator.constants import LOGGER_NAME

# Loggers of the AWS SDK, raised to DEBUG when --debug_api is given
_SDK_LOGGERS = ("botocore", "boto3", "urllib3")


class EnhancedFormatter(logging.Formatter):
    """
    Formatter that adds module/line context in verbose mode and appends the
    object being migrated when a record carries ``bucket``/``key`` extras
    """

    def __init__(
        self,
        fmt=None,
        datefmt=None,
        style="%",
        verbose=False,
        include_object_context=False,
    ):
        if verbose:
            fmt = "%(asctime)s - %(name)s - %(levelname)s - [%(module)s:%(lineno)d] - %(message)s"
        elif not fmt:
            fmt = "%(asctime)s - %(levelname)s - %(message)s"

        super().__init__(fmt, datefmt, style)
        self.include_object_context = include_object_context

    def format(self, record):
        result = super().format(record)

        if self.include_object_context:
            bucket = getattr(record, "bucket", None)
            key = getattr(record, "key", None)
            if bucket and key:
                result += f" [s3://{bucket}/{key}]"
            elif bucket:
                result += f" [s3://{bucket}]"

        return result


def setup_main_log_file(output_dir: str) -> logging.FileHandler:
    """
    Set up a file handler for the main log file of a migration run.

    Args:
        output_dir: The output directory path

    Returns:
        The file handler for the main log file
    """
    os.makedirs(output_dir, exist_ok=True)
    log_file = os.path.join(output_dir, "migration.log")

    file_handler = logging.FileHandler(log_file, mode="w")
    file_handler.setLevel(logging.DEBUG)  # Always use DEBUG level for file handlers
    file_handler.setFormatter(
        EnhancedFormatter(
            "%(asctime)s - %(threadName)s - %(levelname)s - %(message)s",
            include_object_context=True,
        )
    )

    logger = logging.getLogger(LOGGER_NAME)
    logger.addHandler(file_handler)

    logger.info(f"Main log file created at: {log_file}")
    return file_handler


def setup_logger(
    verbose: bool = False, debug_api: bool = False, output_dir: Optional[str] = None
) -> logging.Logger:
    """
    Set up and return the logger with appropriate formatting.

    Args:
        verbose: If True, set console handler to DEBUG level; otherwise INFO level
        debug_api: If True, enable botocore request/response logging
        output_dir: Optional output directory for the main log file

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(LOGGER_NAME)

    # Clear any existing handlers to prevent duplicate messages
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    # SDK loggers share our handlers when --debug_api was given before
    for name in _SDK_LOGGERS:
        sdk_logger = logging.getLogger(name)
        for handler in sdk_logger.handlers[:]:
            sdk_logger.removeHandler(handler)
        sdk_logger.setLevel(logging.NOTSET)

    logger.setLevel(logging.DEBUG)  # Always set logger to DEBUG to capture all logs

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(
        EnhancedFormatter(verbose=verbose, include_object_context=verbose)
    )
    logger.addHandler(console_handler)

    if output_dir:
        setup_main_log_file(output_dir)

    if debug_api:
        for name in _SDK_LOGGERS:
            sdk_logger = logging.getLogger(name)
            sdk_logger.setLevel(logging.DEBUG)
            for handler in logger.handlers:
                sdk_logger.addHandler(handler)
        logger.info("API debug logging enabled for the AWS SDK")

    return logger


def log_with_context(level: int, message: str, **kwargs: Any) -> None:
    """
    Log a message with additional context information.

    Args:
        level: The logging level (e.g., logging.INFO)
        message: The log message
        **kwargs: Additional context to include in the log record
            (``bucket``, ``key``, ``path``...). ``exc_info`` is passed through.
    """
    exc_info = kwargs.pop("exc_info", None)
    extras = {k: v for k, v in kwargs.items() if v is not None}

    logger = logging.getLogger(LOGGER_NAME)
    logger.log(level, message, extra=extras, exc_info=exc_info)


def get_logger() -> logging.Logger:
    """Get the s3_migrator logger, creating it with defaults if needed."""
    migrator_logger = logging.getLogger(LOGGER_NAME)
    if not migrator_logger.handlers:
        migrator_logger.setLevel(logging.INFO)
        handler = logging.StreamHandler()
        handler.setLevel(logging.INFO)
        handler.setFormatter(EnhancedFormatter())
        migrator_logger.addHandler(handler)
    return migrator_logger


# Module logger - will be properly initialized when setup_logger is called
logger = get_logger()
