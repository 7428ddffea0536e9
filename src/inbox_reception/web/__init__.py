"""Web application entry point for Inbox Reception.

Serve with ``uvicorn --factory inbox_reception.web:create_app``.
"""

from .app import create_app

__all__ = ["create_app"]
