"""Core domain models used across the application."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

PENDING_SCORE = -1
PENDING_TITLE = "Analyzing..."
FAILED_TITLE = "AI analysis failed for this email."
FAILED_REASON = "AI model failed to process this batch."


@dataclass(slots=True)
class Credential:
    """Bearer token held by a signed-in session."""

    token: str = field(repr=False)
    acquired_at: datetime


@dataclass(frozen=True, slots=True)
class Capabilities:
    """Optional services negotiated once at sign-in."""

    summarization: bool = False
    translation: bool = False


@dataclass(frozen=True, slots=True)
class MessageRef:
    """Identity of a message returned by a search."""

    id: str


@dataclass(frozen=True, slots=True)
class MessageDetail:
    """Full message as fetched from the mail store."""

    id: str
    headers: tuple[tuple[str, str], ...]
    snippet: str

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> MessageDetail:
        """Build a detail record from a ``format=full`` API response."""
        raw_headers = (payload.get("payload") or {}).get("headers") or []
        headers = tuple(
            (str(item.get("name", "")), str(item.get("value", "")))
            for item in raw_headers
        )
        return cls(
            id=str(payload["id"]),
            headers=headers,
            snippet=payload.get("snippet") or "",
        )

    def header(self, name: str) -> str:
        """Return the first header matching ``name`` case-insensitively."""
        wanted = name.lower()
        for key, value in self.headers:
            if key.lower() == wanted:
                return value
        return ""

    @property
    def sender(self) -> str:
        return self.header("From")

    @property
    def subject(self) -> str:
        return self.header("Subject")


class UserProfile(BaseModel):
    """Sender and keyword signals learned from mailbox history."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    high_priority_senders: tuple[str, ...] = Field(alias="highPrioritySenders")
    high_priority_keywords: tuple[str, ...] = Field(alias="highPriorityKeywords")
    low_priority_senders: tuple[str, ...] = Field(alias="lowPrioritySenders")
    low_priority_keywords: tuple[str, ...] = Field(alias="lowPriorityKeywords")

    def to_payload(self) -> dict[str, list[str]]:
        """Return the camelCase JSON form used in prompts and storage."""
        return self.model_dump(by_alias=True, mode="json")


@dataclass(frozen=True, slots=True)
class ProfileRecord:
    """A profile persisted together with its build time."""

    profile: UserProfile
    built_at: datetime

    def is_stale(self, now: datetime, max_age: timedelta) -> bool:
        return now - self.built_at > max_age


class AnalysisResult(BaseModel):
    """Score and summary produced for one message."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    score: int = Field(ge=PENDING_SCORE, le=100)
    summarized_title: str = Field(alias="summarizedTitle")
    summary_points: tuple[str, ...] = Field(alias="summaryPoints")
    positive_reasons: tuple[str, ...] = Field(alias="positiveReasons")
    negative_reasons: tuple[str, ...] = Field(alias="negativeReasons")

    @field_validator("score", mode="before")
    @classmethod
    def _round_score(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("score must be numeric")
        if isinstance(value, float):
            return round(value)
        return value

    @classmethod
    def placeholder(cls, message_id: str) -> AnalysisResult:
        """Return the pending record shown before a batch resolves."""
        return cls(
            id=message_id,
            score=PENDING_SCORE,
            summarized_title=PENDING_TITLE,
            summary_points=(),
            positive_reasons=(),
            negative_reasons=(),
        )

    @classmethod
    def failure(cls, message_id: str) -> AnalysisResult:
        """Return the synthetic record used when a batch call fails."""
        return cls(
            id=message_id,
            score=0,
            summarized_title=FAILED_TITLE,
            summary_points=(),
            positive_reasons=(),
            negative_reasons=(FAILED_REASON,),
        )

    @property
    def is_pending(self) -> bool:
        return self.score == PENDING_SCORE

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


@dataclass(frozen=True, slots=True)
class ScoredMessage:
    """A fetched message joined with its current analysis."""

    detail: MessageDetail
    analysis: AnalysisResult

    @property
    def id(self) -> str:
        return self.detail.id

    @property
    def score(self) -> int:
        return self.analysis.score


class OutputConstraint(Mapping[str, Any]):
    """JSON schema for a model reply, generated from the type that validates it.

    The mapping view is the schema sent to the model. :meth:`validate` checks a
    decoded reply against the same type.
    """

    def __init__(self, shape: Any) -> None:
        self._adapter: TypeAdapter[Any] = TypeAdapter(shape)
        self._schema: dict[str, Any] = self._adapter.json_schema(by_alias=True)

    def __getitem__(self, key: str) -> Any:
        return self._schema[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._schema)

    def __len__(self) -> int:
        return len(self._schema)

    def validate(self, value: Any) -> None:
        """Raise :class:`pydantic.ValidationError` when ``value`` does not fit."""
        self._adapter.validate_python(value)


__all__ = [
    "AnalysisResult",
    "Capabilities",
    "Credential",
    "FAILED_REASON",
    "FAILED_TITLE",
    "MessageDetail",
    "MessageRef",
    "OutputConstraint",
    "PENDING_SCORE",
    "PENDING_TITLE",
    "ProfileRecord",
    "ScoredMessage",
    "UserProfile",
]
