"""
Logging configuration for the mapsimplify CLI.

Logs to stderr so that JSON output on stdout stays machine-readable. If the
MAPSIMPLIFY_LOG_FILE env var is set, also logs to that file.
"""

import logging
import os
import sys
from pathlib import Path

from mapsimplify.config import ENV_LOG_FILE

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(verbose: bool = False, quiet: bool = False) -> logging.Logger:
    """
    Configure the root logger for a CLI invocation.

    Args:
        verbose: Enable debug logging
        quiet: Suppress all logging except errors

    Returns:
        The package logger
    """
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    # Remove any existing handlers
    root.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(level)
    stderr_handler.setFormatter(formatter)
    root.addHandler(stderr_handler)

    # Optional file logging, always at debug level
    log_file = os.getenv(ENV_LOG_FILE)
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        root.setLevel(logging.DEBUG)

    return logging.getLogger("mapsimplify")
