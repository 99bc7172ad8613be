"""
Logging configuration for webdav-backup
"""

import logging
import re
from typing import cast

import structlog
from rich.console import Console
from rich.logging import RichHandler

from webdav_backup.config import get_settings

_URL_CREDENTIALS = re.compile(r"(?P<scheme>https?://)[^/@\s]+@")


def setup_logging() -> None:
    """Set up structured logging with rich formatting"""

    settings = get_settings()

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logs_dir = settings.log_dir
    logs_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=log_level,
        force=True,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=Console(stderr=True),
                show_time=True,
                show_path=True,
                markup=True,
                rich_tracebacks=True,
            ),
            logging.FileHandler(logs_dir / "webdav_backup.log", encoding="utf-8"),
        ],
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            (
                structlog.processors.JSONRenderer()
                if settings.log_format == "json"
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance"""
    logger = structlog.get_logger(name)
    return cast("structlog.stdlib.BoundLogger", logger)


def mask_credentials(url: str) -> str:
    """Strip ``user:password@`` from a URL before it is logged."""
    return _URL_CREDENTIALS.sub(r"\g<scheme>[REDACTED]@", url)
