"""Logging configuration helpers."""

from __future__ import annotations

import logging
import logging.config
import re
from typing import Any

from .config import LoggingSettings

_TOKEN_PATTERNS = (
    re.compile(r"(Bearer\s+)[A-Za-z0-9._~+/=-]+"),
    re.compile(r"([?&](?:access_)?token=)[^&\s'\"]+"),
)
_MASK = "***"


class TokenRedactingFilter(logging.Filter):
    """Mask bearer tokens and ``token=`` query values in rendered messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def redact(text: str) -> str:
    """Return ``text`` with credentials replaced by a mask."""
    for pattern in _TOKEN_PATTERNS:
        text = pattern.sub(rf"\g<1>{_MASK}", text)
    return text


def _structured_formatter() -> dict[str, Any]:
    """Return a dictConfig fragment for structured key/value logs."""
    return {
        "format": "ts={asctime} level={levelname} logger={name} msg={message!r}",
        "style": "{",
    }


def _plain_formatter() -> dict[str, Any]:
    """Return a dictConfig fragment for human readable logs."""
    return {
        "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
    }


def configure_logging(settings: LoggingSettings) -> None:
    """Configure application logging according to provided settings."""
    formatter = _structured_formatter() if settings.structured else _plain_formatter()
    handler: dict[str, Any] = {
        "class": "logging.StreamHandler",
        "formatter": "default",
        "level": settings.level,
    }
    filters: dict[str, Any] = {}
    if settings.redact_tokens:
        filters["redact"] = {"()": TokenRedactingFilter}
        handler["filters"] = ["redact"]

    dict_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": filters,
        "formatters": {"default": formatter},
        "handlers": {"console": handler},
        "loggers": {
            name: {"level": level} for name, level in settings.library_levels.items()
        },
        "root": {
            "handlers": ["console"],
            "level": settings.level,
        },
    }

    logging.config.dictConfig(dict_config)


__all__ = ["TokenRedactingFilter", "configure_logging", "redact"]
