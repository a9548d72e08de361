"""Centralized logging configuration."""
from __future__ import annotations

import logging
from logging.config import dictConfig

from shedai.core.context import get_request_id, get_user_id


class RequestIdFilter(logging.Filter):
    """Add request_id and user_id attributes to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        record.user_id = get_user_id() or "-"
        return True


def configure_logging(*, log_level: str = "INFO", engine_log_level: str | None = None) -> None:
    """Configure application logging once at startup.

    ``engine_log_level`` lets the scheduling engine run noisier (repair and
    backfill decisions are logged at DEBUG) without flooding the rest of the app.
    """
    if getattr(configure_logging, "_configured", False):
        return

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(request_id)s | %(user_id)s | %(message)s",
                }
            },
            "filters": {
                "request_id": {
                    "()": "shedai.core.logging.RequestIdFilter",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "level": "DEBUG",
                    "filters": ["request_id"],
                }
            },
            "loggers": {
                "shedai.engine": {"level": engine_log_level or log_level},
            },
            "root": {
                "handlers": ["console"],
                "level": log_level,
            },
        }
    )

    logging.getLogger(__name__).debug("Logging configured at %s", log_level)
    setattr(configure_logging, "_configured", True)
