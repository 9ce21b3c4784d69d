"""
Utility functions for the evaluation harness.

Provides helpers for logging configuration in notebook workflows.
"""

from .notebook_logging import (
    configure_notebook_logging,
    quiet_library_logging,
    verbose_library_logging,
)

__all__ = [
    "configure_notebook_logging",
    "quiet_library_logging",
    "verbose_library_logging",
]
