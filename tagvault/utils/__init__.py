"""Utility modules for tagvault.

Provides common utilities:
- Logging configuration
"""

from .logging import (
    ProgressLogger,
    console,
    get_logger,
    setup_logging,
)


__all__ = [
    "setup_logging",
    "get_logger",
    "console",
    "ProgressLogger",
]
