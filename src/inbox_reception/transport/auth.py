"""Bearer token provider backed by configuration and Google's revoke endpoint."""

from __future__ import annotations

import json
import logging

import httpx

from ..core.config import AuthSettings
from ..core.datetime_utils import utc_now
from ..core.interfaces import AuthError, AuthProvider
from ..core.models import Credential

LOGGER = logging.getLogger(__name__)


class TokenAuthProvider(AuthProvider):
    """Supply a pre-issued OAuth access token and revoke it on sign-out.

    The token comes from ``AuthSettings.access_token`` or, failing that,
    from ``AuthSettings.token_file``. The file may hold the bare token or a
    JSON document with a ``token``/``access_token`` field, as written by
    Google's client libraries. Consent flows are handled elsewhere.
    """

    def __init__(
        self,
        settings: AuthSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    async def acquire_token(self, interactive: bool = True) -> Credential:
        token = self._settings.access_token or self._read_token_file()
        if not token:
            hint = "" if interactive else " (non-interactive)"
            raise AuthError(f"No access token available{hint}")
        return Credential(token=token, acquired_at=utc_now())

    async def revoke(self, credential: Credential) -> bool:
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.get(
                    self._settings.revoke_url, params={"token": credential.token}
                )
        except httpx.HTTPError as exc:
            LOGGER.warning("Token revocation failed: %s", exc)
            return False
        if not response.is_success:
            LOGGER.warning("Token revocation returned HTTP %s", response.status_code)
        return response.is_success

    def _read_token_file(self) -> str | None:
        path = self._settings.token_file
        if path is None or not path.is_file():
            return None
        content = path.read_text(encoding="utf-8").strip()
        if not content.startswith("{"):
            return content or None
        try:
            payload = json.loads(content)
        except json.JSONDecodeError as exc:
            raise AuthError(f"Token file {path} is not valid JSON") from exc
        return payload.get("token") or payload.get("access_token")


__all__ = ["TokenAuthProvider"]
