"""Utility modules for webdav-backup"""

from .logger import (
    get_logger,
    mask_credentials,
    setup_logging,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "mask_credentials",
]
