"""Shared modules for mesh-bootstrap.

Paths, logging configuration and the run log used by every stage.
"""

from .logging import RunLog, RunLogEntry, configure_logging, get_logger
from .paths import STATE_FILE, get_log_file

__all__ = [
    # Paths
    "STATE_FILE",
    "get_log_file",
    # Logging
    "configure_logging",
    "get_logger",
    "RunLog",
    "RunLogEntry",
]
