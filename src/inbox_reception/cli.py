"""Command-line entry point for Inbox Reception."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from pathlib import Path

from inbox_reception.core import AppSettings, configure_logging, load_app_settings
from inbox_reception.core.interfaces import (
    AuthError,
    ProfileGenerationError,
    SearchFetchError,
    SummarizationError,
    TranslationError,
)
from inbox_reception.core.models import ScoredMessage
from inbox_reception.intelligence import (
    LLMError,
    TranslatableSummary,
    is_low_priority,
    sort_by_score,
)
from inbox_reception.service import ReceptionService, build_service
from inbox_reception.storage import SqliteKeyValueStore

COMMANDS = (
    "info",
    "scan",
    "sign-out",
    "mark-read",
    "trash",
    "summarize",
    "translate",
)


class ConsoleSink:
    """Progress sink printing status lines and batch progress to stdout."""

    def __init__(self) -> None:
        self.snapshot: tuple[ScoredMessage, ...] = ()

    def on_batch(self, snapshot: Sequence[ScoredMessage]) -> None:
        self.snapshot = tuple(snapshot)
        scored = sum(1 for item in snapshot if not item.analysis.is_pending)
        print(f"  scored {scored}/{len(snapshot)}")

    def set_status(self, message: str) -> None:
        print(message)


def build_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser."""
    parser = argparse.ArgumentParser(description="Inbox Reception triage assistant")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file containing configuration overrides.",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="info",
        choices=COMMANDS,
        help="Operation to execute.",
    )
    parser.add_argument(
        "--message-id",
        dest="message_id",
        default=None,
        help="Message id for the mark-read and trash commands.",
    )
    parser.add_argument(
        "--text",
        dest="texts",
        action="append",
        default=[],
        help="Text to summarize or translate; repeat for several summary points.",
    )
    parser.add_argument(
        "--language",
        default="",
        help="Target language code for the translate command (empty restores).",
    )
    parser.add_argument(
        "--threshold",
        type=int,
        default=None,
        help="Override the low priority score threshold when listing results.",
    )
    return parser


def execute(args: argparse.Namespace, settings: AppSettings) -> int:
    """Execute the requested CLI command and return the exit status."""
    command = args.command
    if command == "info":
        print("Inbox Reception is ready. Provide a Gmail access token to get started.")
        print(f"Gmail API: {settings.gmail.api_base_url}")
        print(f"LLM: {settings.llm.base_url} ({settings.llm.model})")
        print(f"Database path: {settings.storage.db_path}")
        return 0
    if command in ("mark-read", "trash") and not args.message_id:
        print(f"The {command} command requires --message-id.")
        return 2
    if command in ("summarize", "translate") and not args.texts:
        print(f"The {command} command requires at least one --text.")
        return 2
    with SqliteKeyValueStore(settings.storage) as store:
        service = build_service(settings, store)
        return asyncio.run(_run(service, args, settings))


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_app_settings(env_file=args.env_file)
    configure_logging(settings.logging)
    return execute(args, settings)


async def _run(
    service: ReceptionService, args: argparse.Namespace, settings: AppSettings
) -> int:
    try:
        await service.sign_in(interactive=False)
    except (AuthError, LLMError) as exc:
        print(f"Sign-in failed: {exc}")
        return 1

    command = args.command
    if command == "scan":
        threshold = (
            args.threshold
            if args.threshold is not None
            else settings.scoring.score_threshold
        )
        return await _run_scan(service, threshold)
    if command == "sign-out":
        revoked = await service.sign_out()
        print("Signed out." if revoked else "Signed out; token revocation failed.")
        return 0
    if command == "mark-read":
        return _report(await service.mark_as_read(args.message_id), "Marked as read")
    if command == "trash":
        return _report(await service.trash(args.message_id), "Moved to trash")
    if command == "summarize":
        return await _run_summarize(service, "\n".join(args.texts))
    return await _run_translate(service, args.language, args.texts, settings)


async def _run_scan(service: ReceptionService, threshold: int) -> int:
    """Run one scan and print the sorted results."""
    sink = ConsoleSink()
    try:
        await service.analyze(sink)
    except (AuthError, SearchFetchError, ProfileGenerationError) as exc:
        print(f"Scan failed: {exc}")
        return 1

    results = sort_by_score(sink.snapshot)
    if not results:
        return 0
    header = f"{'Score':>5}  {'Id':<18}  {'From':<30}  Title"
    print(header)
    print("-" * len(header))
    for item in results:
        marker = "~" if is_low_priority(item.score, threshold) else " "
        sender = item.detail.sender[:30]
        print(
            f"{item.score:>5}{marker} {item.id:<18}  {sender:<30}  "
            f"{item.analysis.summarized_title}"
        )
    return 0


async def _run_summarize(service: ReceptionService, text: str) -> int:
    try:
        summarizer = service.summarizer()
        async for chunk in summarizer.summarize_detailed(text):
            print(chunk, end="", flush=True)
    except SummarizationError as exc:
        print(f"\n{exc}")
        return 1
    print()
    return 0


async def _run_translate(
    service: ReceptionService,
    language: str,
    texts: Sequence[str],
    settings: AppSettings,
) -> int:
    summary = TranslatableSummary(texts)
    if language and language not in settings.translation.languages:
        choices = ", ".join(sorted(settings.translation.languages))
        print(f"Unsupported language '{language}'. Choose one of: {choices}")
        return 2
    status = 0
    try:
        await summary.translate_to(service.translator(), language)
    except TranslationError as exc:
        print(f"Translation failed: {exc}")
        status = 1
    for point in summary.current:
        print(f"- {point}")
    return status


def _report(success: bool, message: str) -> int:
    print(message if success else "Action failed. See logs for details.")
    return 0 if success else 1


if __name__ == "__main__":
    raise SystemExit(main())
