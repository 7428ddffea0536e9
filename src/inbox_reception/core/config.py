"""Application configuration models and loader utilities."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, cast

from dotenv import dotenv_values
from pydantic import BaseModel, Field


class GmailSettings(BaseModel):
    """Settings controlling access to the Gmail REST API."""

    api_base_url: str = Field(
        default="https://gmail.googleapis.com/gmail/v1",
        description="Base URL of the Gmail API",
    )
    user_id: str = Field(default="me", description="Mailbox owner identifier")
    detail_concurrency: int = Field(
        default=8, ge=1, description="Concurrent message detail requests per window"
    )
    timeout_seconds: float = Field(
        default=30.0, gt=0, description="Request timeout for Gmail calls"
    )
    web_base_url: str = Field(
        default="https://mail.google.com/mail/u/0/#inbox/",
        description="Prefix used to build 'open in Gmail' links",
    )


class AuthSettings(BaseModel):
    """Settings for the bearer credential provider."""

    access_token: str | None = Field(
        default=None, description="OAuth access token with Gmail modify scope"
    )
    token_file: Path | None = Field(
        default=None, description="File containing an OAuth access token"
    )
    revoke_url: str = Field(
        default="https://accounts.google.com/o/oauth2/revoke",
        description="OAuth token revocation endpoint",
    )


class LlmSettings(BaseModel):
    """Settings for the local LLM provider."""

    base_url: str = Field(
        default="http://localhost:11434", description="Ollama server URL"
    )
    model: str = Field(default="gemma3:4b", description="Model identifier")
    summarizer_model: str | None = Field(
        default=None, description="Model used for detailed summaries"
    )
    translator_model: str | None = Field(
        default=None, description="Model used for summary translation"
    )
    timeout_seconds: int = Field(
        default=120, description="Request timeout for LLM calls"
    )
    temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Sampling temperature for LLM completions",
    )
    max_attempts: int = Field(
        default=3, ge=1, description="Attempts per generation request"
    )


class ProfileSettings(BaseModel):
    """Settings controlling how the priority profile is sampled and refreshed."""

    refresh_hours: float = Field(
        default=24.0, gt=0, description="Maximum profile age before a rebuild"
    )
    important_sample: int = Field(default=15, ge=1)
    ignored_sample: int = Field(default=15, ge=1)
    spam_sample: int = Field(default=10, ge=1)
    trash_sample: int = Field(default=10, ge=1)


class ScoringSettings(BaseModel):
    """Settings controlling the scoring window and batching."""

    window_days: int = Field(
        default=2, ge=1, description="How far back unread mail is considered"
    )
    window_size: int = Field(
        default=7, ge=1, description="Maximum messages scored in one scan"
    )
    batch_size: int = Field(
        default=5, ge=1, description="Messages sent per inference call"
    )
    score_threshold: int = Field(
        default=40,
        ge=0,
        le=100,
        description="Scores below this value are shown as low priority",
    )


class TranslationSettings(BaseModel):
    """Settings for on-demand summary translation."""

    source_language: str = Field(default="en")
    languages: dict[str, str] = Field(
        default_factory=lambda: {
            "es": "Spanish",
            "fr": "French",
            "de": "German",
            "hi": "Hindi",
            "zh": "Chinese",
        },
        description="Selectable target languages",
    )
    revert_delay_seconds: float = Field(
        default=3.0, ge=0, description="Delay before a failed selection resets"
    )


class StorageSettings(BaseModel):
    """Settings for local persistence."""

    db_path: Path = Field(
        default=Path("./inbox_reception.db"), description="SQLite database path"
    )


class LoggingSettings(BaseModel):
    """Logging preferences."""

    level: str = Field(default="INFO", description="Root logging level")
    structured: bool = Field(
        default=False, description="Toggle JSON structured logging"
    )
    library_levels: dict[str, str] = Field(
        default_factory=lambda: {"httpx": "WARNING", "httpcore": "WARNING"},
        description="Level overrides for third-party loggers",
    )
    redact_tokens: bool = Field(
        default=True, description="Mask bearer tokens in log records"
    )


class AppSettings(BaseModel):
    """Aggregated application configuration."""

    gmail: GmailSettings = Field(default_factory=GmailSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    llm: LlmSettings = Field(default_factory=LlmSettings)
    profile: ProfileSettings = Field(default_factory=ProfileSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    translation: TranslationSettings = Field(default_factory=TranslationSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


ENV_PREFIX = "INBOX_RECEPTION_"


def _normalize_key(raw_key: str) -> list[str]:
    """Convert an environment variable key into a nested attribute path."""
    trimmed = raw_key.removeprefix(ENV_PREFIX)
    return [segment.lower() for segment in trimmed.split("__") if segment]


def _merge_into_tree(tree: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a value to a nested dictionary given a path."""
    cursor = tree
    for segment in path[:-1]:
        next_node = cursor.setdefault(segment, {})
        cursor = cast(dict[str, Any], next_node)
    cursor[path[-1]] = value


def _collect_env_values(
    env_file: Path | str | None, *, include_environment: bool = True
) -> dict[str, Any]:
    """Load configuration values from environment variables and optional file."""
    collected: dict[str, Any] = {}

    file_values = {}
    if env_file:
        env_path = Path(env_file)
        if env_path.is_file():
            file_values = {
                key: value
                for key, value in dotenv_values(env_path).items()
                if key and key.startswith(ENV_PREFIX)
            }

    env_values: dict[str, str] = {}
    if include_environment:
        env_values = {
            key: value
            for key, value in os.environ.items()
            if key.startswith(ENV_PREFIX)
        }

    combined: dict[str, Any] = {**file_values, **env_values}

    for key, value in combined.items():
        path = _normalize_key(key)
        if not path:
            continue
        normalized_value: Any = value
        if isinstance(value, str) and value == "":
            normalized_value = None
        elif isinstance(value, str):
            lowercase_value = value.lower()
            if lowercase_value == "true":
                normalized_value = True
            elif lowercase_value == "false":
                normalized_value = False
        _merge_into_tree(collected, path, normalized_value)

    return collected


@lru_cache(maxsize=1)
def load_app_settings(
    env_file: Path | str | None = None,
    include_environment: bool = True,
    **overrides: Any,
) -> AppSettings:
    """Load application settings, applying env files and overrides."""
    collected = _collect_env_values(
        env_file, include_environment=include_environment
    )
    if overrides:
        collected.update(overrides)
    return AppSettings.model_validate(collected)


__all__ = [
    "AppSettings",
    "AuthSettings",
    "GmailSettings",
    "LlmSettings",
    "LoggingSettings",
    "ProfileSettings",
    "ScoringSettings",
    "StorageSettings",
    "TranslationSettings",
    "load_app_settings",
]
