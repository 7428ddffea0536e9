"""Tests for logging utilities."""

from __future__ import annotations

import logging

from inbox_reception.core.config import LoggingSettings
from inbox_reception.core.logging import TokenRedactingFilter, configure_logging, redact


def test_configure_logging_sets_root_level() -> None:
    """configure_logging should set the root logger level according to settings."""

    settings = LoggingSettings(level="DEBUG", structured=False)
    configure_logging(settings)
    assert logging.getLogger().level == logging.DEBUG


def test_http_client_logging_is_quietened() -> None:
    configure_logging(LoggingSettings(level="DEBUG", structured=True))
    assert logging.getLogger("httpx").level == logging.WARNING


def test_library_levels_are_configurable() -> None:
    configure_logging(LoggingSettings(library_levels={"httpcore": "ERROR"}))
    assert logging.getLogger("httpcore").level == logging.ERROR


def test_redact_masks_bearer_and_query_tokens() -> None:
    text = "GET https://oauth.test/revoke?token=ya29.secret&x=1 Bearer ya29.other"
    assert redact(text) == "GET https://oauth.test/revoke?token=***&x=1 Bearer ***"


def test_redacting_filter_rewrites_formatted_message() -> None:
    record = logging.LogRecord(
        "httpx", logging.INFO, __file__, 1, "Request: %s", ("POST /x?token=abc",), None
    )

    assert TokenRedactingFilter().filter(record)
    assert record.getMessage() == "Request: POST /x?token=***"
