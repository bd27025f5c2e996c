"""
Utility functions for Codeask
"""
from .logging import log, log_exception
from .hashing import compute_content_hash
from .settle import Settled, settle_all
from .progress import (
    index_progress,
    send_progress,
    init_index_progress,
    progress_reporter,
    cleanup_index_progress
)

__all__ = [
    "log",
    "log_exception",
    "compute_content_hash",
    "Settled",
    "settle_all",
    "index_progress",
    "send_progress",
    "init_index_progress",
    "progress_reporter",
    "cleanup_index_progress",
]
