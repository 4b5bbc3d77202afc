"""Logging configuration helpers."""
from __future__ import annotations

import json
import logging
from logging.config import dictConfig
from typing import Any, Dict

from .config import Settings, load_settings


class _JsonFormatter(logging.Formatter):
    """Lightweight JSON formatter that avoids external dependencies."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = record.stack_info
        return json.dumps(payload)


def build_logging_config(settings: Settings | None = None) -> Dict[str, Any]:
    """Return a dictionary config for the ``gemini_client`` loggers."""

    settings = settings or load_settings()
    log_settings = settings.logging
    formatter = "json" if log_settings.json_format else "console"
    handlers: Dict[str, Any] = {
        "default": {
            "class": "logging.StreamHandler",
            "formatter": formatter,
            "level": log_settings.level,
        },
    }
    if log_settings.log_file is not None:
        handlers["client_file"] = {
            "class": "logging.FileHandler",
            "formatter": "json",
            "level": log_settings.level,
            "filename": str(log_settings.log_file),
            "encoding": "utf-8",
            "mode": "a",
        }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": f"{__name__}._JsonFormatter",
            },
            "console": {
                "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            },
        },
        "handlers": handlers,
        "loggers": {
            "gemini_client": {
                "handlers": list(handlers),
                "level": log_settings.level,
                "propagate": False,
            },
            "httpx": {"handlers": ["default"], "level": "WARNING", "propagate": False},
        },
    }


def setup_logging(settings: Settings | None = None) -> None:
    """Configure logging for applications embedding the client."""

    settings = settings or load_settings()
    if settings.logging.log_file is not None:
        settings.logging.log_file.parent.mkdir(parents=True, exist_ok=True)
    dictConfig(build_logging_config(settings))


__all__ = ["setup_logging", "build_logging_config"]
