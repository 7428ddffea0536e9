"""Translation of summary points with per-session translator reuse."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass, field

from inbox_reception.core.interfaces import Translator, TranslatorFactory, TranslationError

from .llm import LLMError, OllamaClient
from .prompts import build_translation_prompt, language_name

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class OllamaTranslator(Translator):
    """Translator for one language pair backed by the local LLM."""

    client: OllamaClient
    source_language: str
    target_language: str
    languages: Mapping[str, str] = field(default_factory=dict)

    async def translate(self, text: str) -> str:
        if not text.strip():
            return text
        prompt = build_translation_prompt(
            text,
            source_language=language_name(self.source_language, self.languages),
            target_language=language_name(self.target_language, self.languages),
        )
        output = await self.client.generate(
            prompt, model=self.client.settings.translator_model
        )
        return output.strip()


@dataclass(slots=True)
class OllamaTranslatorFactory(TranslatorFactory):
    """Create LLM translators for the configured target languages."""

    client: OllamaClient
    languages: Mapping[str, str]

    async def create(self, source_language: str, target_language: str) -> Translator:
        if target_language not in self.languages:
            raise TranslationError(f"Unsupported target language '{target_language}'")
        return OllamaTranslator(
            client=self.client,
            source_language=source_language,
            target_language=target_language,
            languages=self.languages,
        )


class TranslatorAdapter:
    """Translate lists of strings, caching one translator per language pair."""

    def __init__(
        self,
        factory: TranslatorFactory | None,
        *,
        source_language: str = "en",
        cache: MutableMapping[str, Translator] | None = None,
    ) -> None:
        """``factory`` is ``None`` when translation was not negotiated."""
        self._factory = factory
        self._source_language = source_language
        self._cache: MutableMapping[str, Translator] = cache if cache is not None else {}

    @property
    def available(self) -> bool:
        return self._factory is not None

    async def translate(self, target_language: str, texts: Sequence[str]) -> list[str]:
        """Return ``texts`` translated to ``target_language`` in input order."""
        if self._factory is None:
            raise TranslationError("Translator API is not available.")
        try:
            translator = await self._translator_for(self._factory, target_language)
            translated = await asyncio.gather(
                *(translator.translate(text) for text in texts)
            )
        except TranslationError:
            raise
        except (LLMError, ValueError) as exc:
            LOGGER.error("Translation to %s failed: %s", target_language, exc)
            raise TranslationError(f"Translation to {target_language} failed") from exc
        return list(translated)

    async def _translator_for(
        self, factory: TranslatorFactory, target_language: str
    ) -> Translator:
        key = f"{self._source_language}-{target_language}"
        translator = self._cache.get(key)
        if translator is None:
            LOGGER.info("Creating translator %s", key)
            translator = await factory.create(self._source_language, target_language)
            self._cache[key] = translator
        return translator


class TranslatableSummary:
    """Summary points that remember their original text.

    Translation always starts from the original text. On failure the
    original text is restored exactly and the selection is marked failed
    until :meth:`reset` returns it to the neutral state.
    """

    def __init__(self, points: Sequence[str]) -> None:
        self.original: tuple[str, ...] = tuple(points)
        self.current: list[str] = list(points)
        self.language: str | None = None
        self.failed = False

    async def translate_to(self, adapter: TranslatorAdapter, target_language: str) -> list[str]:
        """Translate to ``target_language``; an empty code restores the original."""
        if not target_language:
            self.current = list(self.original)
            self.reset()
            return self.current
        try:
            translated = await adapter.translate(target_language, self.original)
        except TranslationError:
            self.current = list(self.original)
            self.language = None
            self.failed = True
            raise
        self.current = translated
        self.language = target_language
        self.failed = False
        return self.current

    def reset(self) -> None:
        """Return the language selection to the neutral state."""
        self.language = None
        self.failed = False

    async def reset_after(self, delay_seconds: float) -> None:
        """Reset the selection once ``delay_seconds`` have passed."""
        await asyncio.sleep(delay_seconds)
        self.reset()


__all__ = [
    "OllamaTranslator",
    "OllamaTranslatorFactory",
    "TranslatableSummary",
    "TranslatorAdapter",
]
