"""Core utilities for configuration, logging, sessions and shared models."""

from .config import AppSettings, load_app_settings
from .logging import configure_logging
from .session import SessionContext, SessionManager

__all__ = [
    "AppSettings",
    "SessionContext",
    "SessionManager",
    "configure_logging",
    "load_app_settings",
]
