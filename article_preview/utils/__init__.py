"""
Shared utility functions.

This package contains utility code used across the routing,
resolution and rendering layers.
"""

from .logging import (
    JsonlFormatter,
    get_logger,
    log_event,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "log_event",
    "JsonlFormatter",
]
