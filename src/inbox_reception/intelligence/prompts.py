"""Prompt templates and output schemas for profile building and scoring."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from textwrap import dedent

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from inbox_reception.core.models import MessageDetail, OutputConstraint, UserProfile


class _Reply(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, strict=True)


class ProfileReply(_Reply):
    """Profile reply; all four lists are required."""

    high_priority_senders: list[str]
    high_priority_keywords: list[str]
    low_priority_senders: list[str]
    low_priority_keywords: list[str]


class AnalysisReply(_Reply):
    """One scored message in a batch reply."""

    id: str
    score: float
    summarized_title: str
    summary_points: list[str]
    positive_reasons: list[str]
    negative_reasons: list[str]


PROFILE_SCHEMA = OutputConstraint(ProfileReply)
SCORING_SCHEMA = OutputConstraint(list[AnalysisReply])


def sender_subject_pairs(messages: Sequence[MessageDetail]) -> list[dict[str, str]]:
    """Reduce messages to ``{from, subject}`` pairs."""
    return [{"from": item.sender, "subject": item.subject} for item in messages]


def build_profile_prompt(
    *,
    important: Sequence[MessageDetail],
    ignored: Sequence[MessageDetail],
    spam: Sequence[MessageDetail],
    trashed: Sequence[MessageDetail],
) -> str:
    """Compose the prompt deriving a priority profile from mailbox history."""
    sections = {
        "HIGH PRIORITY emails (user marked as important or starred)": important,
        "IGNORED emails (user left unread)": ignored,
        "JUNK emails (found in spam)": spam,
        "DELETED emails (found in trash)": trashed,
    }
    history = "\n".join(
        f"- {label}: {json.dumps(sender_subject_pairs(items))}"
        for label, items in sections.items()
    )
    prompt = """
    Analyze the user's email behavior to create a profile of their priorities.
    {history}

    Based on this, generate a JSON object summarizing the user's preferences.
    This object should identify:
    1. 'highPrioritySenders': Senders from important/starred emails.
    2. 'highPriorityKeywords': Keywords from subjects of important/starred emails.
    3. 'lowPrioritySenders': Senders often found in unread, spam, or trash.
    4. 'lowPriorityKeywords': Keywords (like 'promotion', 'newsletter') found in ignored emails.

    Return ONLY the JSON object.
    """
    return dedent(prompt).strip().format(history=history)


def scoring_items(batch: Sequence[MessageDetail]) -> list[dict[str, str]]:
    """Return the per-message fields sent to the model for scoring."""
    return [
        {
            "id": item.id,
            "from": item.sender,
            "subject": item.subject,
            "snippet": item.snippet,
        }
        for item in batch
    ]


def build_scoring_prompt(profile: UserProfile, batch: Sequence[MessageDetail]) -> str:
    """Compose the prompt scoring one batch of messages against ``profile``."""
    prompt = """
    Based on the user profile below, analyze each email in the provided array.
    USER PROFILE: {profile}
    EMAILS TO ANALYZE: {emails}

    Return a JSON array where each object contains:
    1. 'id': The original email ID.
    2. 'score': A relevance score from 0 to 100.
    3. 'summarizedTitle': A concise, descriptive title (max 10 words).
    4. 'summaryPoints': An array of strings with 2-4 key points summarizing the email's content.
    5. 'positiveReasons': An array of strings explaining why it's important.
    6. 'negativeReasons': An array of strings for why it might be low priority.
    """
    return (
        dedent(prompt)
        .strip()
        .format(
            profile=json.dumps(profile.to_payload()),
            emails=json.dumps(scoring_items(batch)),
        )
    )


def build_translation_prompt(
    text: str, *, source_language: str, target_language: str
) -> str:
    """Compose a translation-only prompt."""
    prompt = """
    Translate the text below from {source} to {target}.
    Reply with the translation only, without quotes or commentary.

    {text}
    """
    return (
        dedent(prompt)
        .strip()
        .format(source=source_language, target=target_language, text=text)
    )


def language_name(code: str, languages: Mapping[str, str]) -> str:
    """Return a display name for a language code."""
    return languages.get(code, code)


__all__ = [
    "AnalysisReply",
    "PROFILE_SCHEMA",
    "ProfileReply",
    "SCORING_SCHEMA",
    "build_profile_prompt",
    "build_scoring_prompt",
    "build_translation_prompt",
    "language_name",
    "scoring_items",
    "sender_subject_pairs",
]
