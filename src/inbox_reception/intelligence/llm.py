"""LLM client abstractions used by intelligence features."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin

import httpx
from pydantic import ValidationError

from inbox_reception.core.config import LlmSettings
from inbox_reception.core.interfaces import LanguageModel, StreamingSummarizer
from inbox_reception.core.models import Capabilities, OutputConstraint

LOGGER = logging.getLogger(__name__)


class LLMError(RuntimeError):
    """Raised when the LLM provider fails to respond as expected."""


@dataclass(slots=True)
class OllamaClient(LanguageModel, StreamingSummarizer):
    """Thin asynchronous client for the Ollama HTTP API."""

    settings: LlmSettings
    transport: httpx.AsyncBaseTransport | None = None

    async def generate(
        self,
        prompt: str,
        *,
        model: str | None = None,
        response_format: Mapping[str, Any] | None = None,
    ) -> str:
        """Send a non-streaming completion request to the Ollama server."""
        payload = self._payload(prompt, model=model, stream=False)
        if response_format is not None:
            payload["format"] = dict(response_format)
        data: dict[str, object] | None = None
        last_error: Exception | None = None
        attempts = self.settings.max_attempts
        for attempt in range(1, attempts + 1):
            try:
                async with self._client() as client:
                    response = await client.post(
                        _endpoint(self.settings.base_url, "api/generate"), json=payload
                    )
                    response.raise_for_status()
                    data = response.json()
                break
            except httpx.HTTPError as exc:  # pragma: no cover - network dependent
                last_error = exc
                LOGGER.debug("Ollama attempt %s/%s failed: %s", attempt, attempts, exc)
            except json.JSONDecodeError as exc:
                raise LLMError("LLM returned invalid JSON") from exc

            if attempt < attempts:
                await asyncio.sleep(min(2**attempt, 8))

        if data is None:
            raise LLMError("LLM request failed after retries") from last_error

        result = data.get("response")
        if not isinstance(result, str):
            raise LLMError("LLM response missing 'response' field")
        return result

    async def prompt(self, text: str, response_constraint: OutputConstraint) -> str:
        """Generate JSON constrained by ``response_constraint`` and verify it."""
        raw = await self.generate(text, response_format=response_constraint)
        try:
            response_constraint.validate(json.loads(raw))
        except json.JSONDecodeError as exc:
            raise LLMError("LLM output was not valid JSON") from exc
        except ValidationError as exc:
            raise LLMError(
                f"LLM output violates schema ({exc.error_count()} error(s))"
            ) from exc
        return raw

    async def summarize_streaming(self, text: str) -> AsyncIterator[str]:
        """Stream a key-point summary of ``text`` as it is generated."""
        instruction = (
            "Summarize the following email as a list of key points. "
            "Write one point per line, each starting with '- '. "
            "Use plain text only.\n\n"
            f"{text}"
        )
        payload = self._payload(
            instruction, model=self.settings.summarizer_model, stream=True
        )
        try:
            async with self._client() as client:
                async with client.stream(
                    "POST",
                    _endpoint(self.settings.base_url, "api/generate"),
                    json=payload,
                ) as response:
                    response.raise_for_status()
                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue
                        chunk = json.loads(line)
                        if chunk.get("error"):
                            raise LLMError(str(chunk["error"]))
                        piece = chunk.get("response")
                        if piece:
                            yield piece
                        if chunk.get("done"):
                            break
        except httpx.HTTPError as exc:
            raise LLMError("LLM stream failed") from exc
        except json.JSONDecodeError as exc:
            raise LLMError("LLM stream returned invalid JSON") from exc

    async def available_models(self) -> set[str]:
        """Return the model names installed on the Ollama server."""
        try:
            async with self._client() as client:
                response = await client.get(
                    _endpoint(self.settings.base_url, "api/tags")
                )
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, json.JSONDecodeError) as exc:
            raise LLMError("Unable to list LLM models") from exc
        return {str(item.get("name")) for item in payload.get("models", [])}

    @property
    def provider_id(self) -> str:
        """Return a human readable identifier for the configured model."""
        return f"ollama:{self.settings.model}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.timeout_seconds, transport=self.transport
        )

    def _payload(self, prompt: str, *, model: str | None, stream: bool) -> dict[str, Any]:
        return {
            "model": model or self.settings.model,
            "prompt": prompt,
            "stream": stream,
            "options": {"temperature": self.settings.temperature},
        }


async def negotiate_capabilities(client: OllamaClient) -> Capabilities:
    """Probe the server once for the optional summarizer and translator models.

    Raises :class:`LLMError` when the server is unreachable or the scoring
    model itself is not installed, since nothing can be scored without it.
    """
    installed = await client.available_models()
    settings = client.settings
    if not _is_installed(settings.model, installed):
        raise LLMError(f"Model '{settings.model}' is not available on the server")
    capabilities = Capabilities(
        summarization=_is_installed(settings.summarizer_model or settings.model, installed),
        translation=_is_installed(settings.translator_model or settings.model, installed),
    )
    if not capabilities.summarization:
        LOGGER.warning("Summarizer model is not available.")
    if not capabilities.translation:
        LOGGER.warning("Translator model is not available.")
    return capabilities


def _is_installed(name: str, installed: set[str]) -> bool:
    return name in installed or f"{name}:latest" in installed


def _endpoint(base_url: str, path: str) -> str:
    trimmed = base_url.rstrip("/") + "/"
    return urljoin(trimmed, path)


__all__ = ["LLMError", "OllamaClient", "negotiate_capabilities"]
