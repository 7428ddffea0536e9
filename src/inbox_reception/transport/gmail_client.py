"""Gmail REST adapter providing search, detail fetch and label mutation."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

import httpx

from ..core.config import GmailSettings
from ..core.interfaces import AuthError, MailGateway, SearchFetchError
from ..core.models import MessageDetail, MessageRef
from ..core.session import SessionManager

LOGGER = logging.getLogger(__name__)

_MAX_PAGE_SIZE = 500


class LabelMutationError(RuntimeError):
    """Raised when the mail store rejects a label change."""


class GmailClient(MailGateway):
    """Async wrapper around the ``users.messages`` endpoints."""

    def __init__(
        self,
        settings: GmailSettings,
        session: SessionManager,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Bind the client to settings and the session supplying the token."""
        self._settings = settings
        self._session = session
        self._transport = transport

    # Public API ---------------------------------------------------------------
    async def search(self, query: str, max_results: int) -> list[MessageRef]:
        """Return ids matching ``query``; any failure yields an empty list."""
        try:
            headers = self._headers()
            async with self._client() as client:
                return await self._list_refs(client, headers, query, max_results)
        except (httpx.HTTPError, AuthError, ValueError, KeyError) as exc:
            LOGGER.error("Search failed for query %r: %s", query, exc)
            return []

    async def fetch_details(self, refs: Sequence[MessageRef]) -> list[MessageDetail]:
        """Fetch full messages in fixed-size concurrent windows."""
        headers = self._headers()
        async with self._client() as client:
            return await self._fetch_windows(client, headers, refs)

    async def fetch_messages(
        self, query: str, max_results: int, *, strict: bool = False
    ) -> list[MessageDetail]:
        """Search and fetch in one step.

        Any failure, including a single detail request, fails the whole call.
        In the default soft mode the failure is logged and an empty list is
        returned, which callers cannot tell apart from "no results". With
        ``strict=True`` a :class:`SearchFetchError` is raised instead.
        """
        try:
            headers = self._headers()
            async with self._client() as client:
                refs = await self._list_refs(client, headers, query, max_results)
                if not refs:
                    return []
                return await self._fetch_windows(client, headers, refs)
        except (httpx.HTTPError, AuthError, ValueError, KeyError) as exc:
            if strict:
                raise SearchFetchError(
                    f"Failed to fetch messages for query {query!r}"
                ) from exc
            LOGGER.error("Failed to fetch messages for query %r: %s", query, exc)
            return []

    async def mutate_labels(
        self,
        message_id: str,
        add_labels: Sequence[str] = (),
        remove_labels: Sequence[str] = (),
    ) -> bool:
        """Apply label changes to a message, returning ``False`` on any failure."""
        body = {"addLabelIds": list(add_labels), "removeLabelIds": list(remove_labels)}
        try:
            headers = self._headers()
            async with self._client() as client:
                response = await client.post(
                    f"/messages/{message_id}/modify",
                    json=body,
                    headers=headers,
                )
                if not response.is_success:
                    raise LabelMutationError(
                        f"API Error: {_error_message(response)}"
                    )
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.error("Failed to modify email %s: %s", message_id, exc)
            return False
        LOGGER.debug(
            "Modified labels on %s (+%s -%s)", message_id, add_labels, remove_labels
        )
        return True

    async def trash(self, message_id: str) -> bool:
        """Move a message to the trash."""
        return await self.mutate_labels(message_id, ["TRASH"], [])

    async def mark_as_read(self, message_id: str) -> bool:
        """Remove the unread label from a message."""
        return await self.mutate_labels(message_id, [], ["UNREAD"])

    # Internal helpers ---------------------------------------------------------
    def _client(self) -> httpx.AsyncClient:
        base = self._settings.api_base_url.rstrip("/")
        return httpx.AsyncClient(
            base_url=f"{base}/users/{self._settings.user_id}",
            timeout=self._settings.timeout_seconds,
            transport=self._transport,
        )

    def _headers(self) -> dict[str, str]:
        # Read once per public call; every request in that call reuses it.
        credential = self._session.require().credential
        return {"Authorization": f"Bearer {credential.token}"}

    async def _list_refs(
        self,
        client: httpx.AsyncClient,
        headers: dict[str, str],
        query: str,
        max_results: int,
    ) -> list[MessageRef]:
        refs: list[MessageRef] = []
        page_token: str | None = None
        while len(refs) < max_results:
            params: dict[str, str | int] = {
                "q": query,
                "maxResults": min(max_results - len(refs), _MAX_PAGE_SIZE),
            }
            if page_token:
                params["pageToken"] = page_token
            response = await client.get(
                "/messages", params=params, headers=headers
            )
            _raise_for_status(response)
            payload = response.json()
            refs.extend(MessageRef(id=item["id"]) for item in payload.get("messages", []))
            page_token = payload.get("nextPageToken")
            if not page_token:
                break
        return refs[:max_results]

    async def _fetch_windows(
        self,
        client: httpx.AsyncClient,
        headers: dict[str, str],
        refs: Sequence[MessageRef],
    ) -> list[MessageDetail]:
        details: list[MessageDetail] = []
        width = self._settings.detail_concurrency
        for start in range(0, len(refs), width):
            window = refs[start : start + width]
            results = await asyncio.gather(
                *(self._fetch_one(client, headers, ref) for ref in window)
            )
            details.extend(results)
        LOGGER.debug("Fetched %d message detail(s)", len(details))
        return details

    async def _fetch_one(
        self, client: httpx.AsyncClient, headers: dict[str, str], ref: MessageRef
    ) -> MessageDetail:
        response = await client.get(
            f"/messages/{ref.id}",
            params={"format": "full"},
            headers=headers,
        )
        _raise_for_status(response)
        return MessageDetail.from_api(response.json())


def _raise_for_status(response: httpx.Response) -> None:
    if response.status_code == 401:
        raise AuthError("Gmail rejected the access token")
    response.raise_for_status()


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return f"HTTP {response.status_code}"


__all__ = ["GmailClient", "LabelMutationError"]
