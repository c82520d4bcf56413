"""Utility modules for Al-Hadi Media"""

from .logging_setup import get_logger, log_exception, setup_logging
from .progress import ProgressSimulator

__all__ = [
    "get_logger",
    "log_exception",
    "setup_logging",
    "ProgressSimulator",
]
