"""Utilities for logging and retries."""

from utils.logger import setup_logger, get_logger
from utils.retry import retry_transient, is_retryable

__all__ = [
    "setup_logger",
    "get_logger",
    "retry_transient",
    "is_retryable",
]
