"""FastAPI application exposing scans, message actions, summaries and translations."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

from fastapi import FastAPI, Request, status as http_status
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from inbox_reception.core import AppSettings, load_app_settings
from inbox_reception.core.interfaces import (
    AuthError,
    ProfileGenerationError,
    ScanInProgressError,
    SearchFetchError,
    StaleSessionError,
    SummarizationError,
    SummarizerUnavailableError,
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

LOGGER = logging.getLogger(__name__)


class SummaryRequest(BaseModel):
    """Body for ``POST /api/summaries``."""

    message_id: str | None = None
    snippet: str | None = None


class TranslationRequest(BaseModel):
    """Body for ``POST /api/translations``."""

    points: list[str] = Field(default_factory=list)
    language: str = ""


class StatusBoard:
    """Remember the last status line for polling clients."""

    def __init__(self) -> None:
        self.message = ""

    def set_status(self, message: str) -> None:
        self.message = message


class QueueSink:
    """Progress sink forwarding scan events to an SSE stream."""

    def __init__(
        self,
        queue: asyncio.Queue[tuple[str, Any]],
        board: StatusBoard,
        threshold: int,
        link_base: str = "",
    ) -> None:
        self._queue = queue
        self._board = board
        self._threshold = threshold
        self._link_base = link_base

    def on_batch(self, snapshot: Sequence[ScoredMessage]) -> None:
        results = _serialize_results(snapshot, self._threshold, self._link_base)
        self._queue.put_nowait(("batch", results))

    def set_status(self, message: str) -> None:
        self._board.set_status(message)
        self._queue.put_nowait(("status", message))


class BoardSink:
    """Progress sink used by the blocking scan endpoint."""

    def __init__(self, board: StatusBoard) -> None:
        self._board = board
        self.batches = 0

    def on_batch(self, snapshot: Sequence[ScoredMessage]) -> None:
        self.batches += 1

    def set_status(self, message: str) -> None:
        self._board.set_status(message)


def create_app(
    settings: AppSettings | None = None, service: ReceptionService | None = None
) -> FastAPI:
    """Create and configure the FastAPI application."""
    app_settings = settings or load_app_settings()
    store: SqliteKeyValueStore | None = None
    if service is None:
        store = SqliteKeyValueStore(app_settings.storage)
        service = build_service(app_settings, store)
    reception = service
    threshold = app_settings.scoring.score_threshold
    link_base = app_settings.gmail.web_base_url
    board = StatusBoard()
    app = FastAPI(title="Inbox Reception")

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        """Close the key-value store on app shutdown."""
        if store is not None:
            store.close()
            LOGGER.info("Key-value store closed")

    @app.exception_handler(AuthError)
    async def auth_error_handler(_: Request, exc: AuthError) -> JSONResponse:
        return _error(http_status.HTTP_401_UNAUTHORIZED, str(exc))

    @app.exception_handler(ScanInProgressError)
    async def scan_busy_handler(_: Request, exc: ScanInProgressError) -> JSONResponse:
        return _error(http_status.HTTP_409_CONFLICT, str(exc))

    @app.exception_handler(StaleSessionError)
    async def stale_session_handler(_: Request, exc: StaleSessionError) -> JSONResponse:
        return _error(http_status.HTTP_409_CONFLICT, "Session changed; result discarded.")

    @app.get("/api/status")
    async def get_status() -> dict[str, Any]:
        context = reception.session.current
        capabilities = context.capabilities if context else None
        return {
            "signedIn": context is not None,
            "scanning": reception.scanning,
            "status": board.message,
            "capabilities": {
                "summarization": bool(capabilities and capabilities.summarization),
                "translation": bool(capabilities and capabilities.translation),
            },
            "languages": app_settings.translation.languages,
            "results": _serialize_results(reception.latest(), threshold, link_base),
        }

    @app.post("/api/sign-in")
    async def sign_in() -> JSONResponse:
        try:
            context = await reception.sign_in(interactive=True)
        except LLMError as exc:
            return _error(http_status.HTTP_503_SERVICE_UNAVAILABLE, str(exc))
        board.set_status("")
        return JSONResponse({"signedIn": True, "sessionId": context.session_id})

    @app.post("/api/sign-out")
    async def sign_out() -> dict[str, Any]:
        revoked = await reception.sign_out()
        board.set_status("")
        return {"signedIn": False, "revoked": revoked}

    @app.post("/api/scan")
    async def scan() -> JSONResponse:
        sink = BoardSink(board)
        try:
            snapshot = await reception.analyze(sink)
        except (SearchFetchError, ProfileGenerationError) as exc:
            return _error(http_status.HTTP_502_BAD_GATEWAY, str(exc))
        return JSONResponse(
            {
                "status": board.message,
                "batches": sink.batches,
                "results": _serialize_results(
                    snapshot, threshold, link_base, sort=True
                ),
            }
        )

    @app.get("/api/scan/stream")
    async def scan_stream() -> StreamingResponse:
        reception.session.require()
        if reception.scanning:
            raise ScanInProgressError("A scan is already running")
        queue: asyncio.Queue[tuple[str, Any]] = asyncio.Queue()
        sink = QueueSink(queue, board, threshold, link_base)

        async def run_scan() -> None:
            try:
                await reception.analyze(sink)
            except (
                AuthError,
                ScanInProgressError,
                SearchFetchError,
                ProfileGenerationError,
            ) as exc:
                queue.put_nowait(("error", str(exc)))
                return
            except Exception:  # pylint: disable=broad-except
                LOGGER.exception("Streamed scan failed unexpectedly")
                queue.put_nowait(("error", "Scan failed. See logs for details."))
                return
            queue.put_nowait(("done", board.message))

        task = asyncio.create_task(run_scan())

        async def generate() -> AsyncIterator[str]:
            while True:
                event, data = await queue.get()
                yield f"event: {event}\ndata: {json.dumps(data)}\n\n"
                if event in ("done", "error"):
                    break
            await task

        return StreamingResponse(generate(), media_type="text/event-stream")

    @app.post("/api/messages/{message_id}/read")
    async def mark_as_read(message_id: str) -> JSONResponse:
        return _action_result(await reception.mark_as_read(message_id))

    @app.post("/api/messages/{message_id}/trash")
    async def trash(message_id: str) -> JSONResponse:
        return _action_result(await reception.trash(message_id))

    @app.post("/api/summaries")
    async def summarize(body: SummaryRequest) -> JSONResponse:
        snippet = body.snippet
        if body.message_id is not None:
            item = reception.find(body.message_id)
            if item is None:
                return _error(http_status.HTTP_404_NOT_FOUND, "Unknown message id.")
            snippet = item.detail.snippet
        try:
            points = await reception.summarize(snippet or "")
        except SummarizerUnavailableError as exc:
            return _error(http_status.HTTP_503_SERVICE_UNAVAILABLE, str(exc))
        except SummarizationError as exc:
            return _error(http_status.HTTP_502_BAD_GATEWAY, str(exc))
        return JSONResponse({"points": points})

    @app.post("/api/translations")
    async def translate(body: TranslationRequest) -> JSONResponse:
        summary = TranslatableSummary(body.points)
        session_id = reception.session.require().session_id
        try:
            points = await summary.translate_to(reception.translator(), body.language)
        except TranslationError as exc:
            reception.session.ensure_current(session_id)
            return JSONResponse(
                {
                    "points": summary.current,
                    "language": summary.language,
                    "failed": True,
                    "detail": str(exc),
                    "resetAfterSeconds": app_settings.translation.revert_delay_seconds,
                },
                status_code=http_status.HTTP_502_BAD_GATEWAY,
            )
        reception.session.ensure_current(session_id)
        return JSONResponse(
            {"points": points, "language": summary.language, "failed": False}
        )

    return app


def _serialize_results(
    items: Sequence[ScoredMessage],
    threshold: int,
    link_base: str = "",
    *,
    sort: bool = False,
) -> list[dict[str, Any]]:
    ordered = sort_by_score(items) if sort else items
    return [
        {
            **item.analysis.to_payload(),
            "sender": item.detail.sender,
            "subject": item.detail.subject,
            "snippet": item.detail.snippet,
            "link": f"{link_base}{item.id}",
            "lowPriority": is_low_priority(item.score, threshold),
        }
        for item in ordered
    ]


def _action_result(success: bool) -> JSONResponse:
    if success:
        return JSONResponse({"success": True})
    return JSONResponse(
        {"success": False, "detail": "Action failed. See logs for details."},
        status_code=http_status.HTTP_502_BAD_GATEWAY,
    )


def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse({"detail": detail}, status_code=status_code)


__all__ = ["create_app"]
