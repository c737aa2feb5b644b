"""Cache-first translation client that never raises to its callers."""

from __future__ import annotations

import asyncio
import logging
import pathlib
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .cache import TranslationCache
from .errors import ErrorCategory, TranslationProviderError
from .policy import FailurePolicy
from .providers import TranslationProvider, build_provider_from_settings

logger = logging.getLogger(__name__)


class TranslationClient:
    """Translates text for the current UI language.

    Lookups go cache, primary provider, fallback provider. Any failure
    degrades to returning the input unchanged and is reported to the failure
    policy. Concurrent requests for the same text share one provider call, so
    callers may fan out one request per text node.
    """

    def __init__(
        self,
        provider: TranslationProvider,
        *,
        fallback: TranslationProvider | None = None,
        cache: TranslationCache | None = None,
        policy: FailurePolicy | None = None,
        source_language: str = "en",
        timeout: float | None = None,
    ) -> None:
        self.provider = provider
        self.fallback = fallback
        self.cache = cache if cache is not None else TranslationCache()
        self.policy = policy or FailurePolicy()
        self.source_language = source_language
        self.current_language = source_language
        self.timeout = timeout
        self._inflight: Dict[Tuple[str, str], asyncio.Future] = {}

    def _resolve(self, target_language: str | None) -> str:
        return target_language or self.current_language

    def _needs_translation(self, text: str, target: str) -> bool:
        return bool(text and text.strip()) and target != self.source_language

    async def translate(self, text: str, target_language: str | None = None) -> str:
        translated, _ = await self.translate_result(text, target_language)
        return translated

    async def translate_result(
        self, text: str, target_language: str | None = None
    ) -> Tuple[str, bool]:
        """Like `translate`, plus whether a translation was obtained.

        Text that needs no translation counts as obtained. On failure the
        input comes back with False.
        """

        target = self._resolve(target_language)
        if not self._needs_translation(text, target):
            return text, True

        cached = self.cache.get(text, target)
        if cached is not None:
            return cached, True

        key = (TranslationCache.key(text), target)
        pending = self._inflight.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._fetch(key[0], target))
            self._inflight[key] = pending
            pending.add_done_callback(lambda _: self._inflight.pop(key, None))
        # one cancelled caller must not cancel the fetch shared with the others
        translated = await asyncio.shield(pending)
        if translated is None:
            return text, False
        return translated, True

    def translate_cached(self, text: str, target_language: str | None = None) -> str:
        """Return the cached translation, or `text` when none is cached yet."""

        target = self._resolve(target_language)
        if not self._needs_translation(text, target):
            return text
        cached = self.cache.get(text, target)
        return text if cached is None else cached

    async def translate_many(
        self,
        texts: Sequence[str],
        target_language: str | None = None,
    ) -> List[str]:
        """Batch variant of `translate`; failed texts come back unchanged."""

        target = self._resolve(target_language)
        results = list(texts)
        missing: List[str] = []
        for index, text in enumerate(texts):
            if not self._needs_translation(text, target):
                continue
            cached = self.cache.get(text, target)
            if cached is not None:
                results[index] = cached
            elif TranslationCache.key(text) not in missing:
                missing.append(TranslationCache.key(text))

        if missing:
            translated = await self._fetch_batch(missing, target)
            if translated is not None:
                for original, value in zip(missing, translated):
                    self.cache.put(original, target, value)
                for index, text in enumerate(texts):
                    if self._needs_translation(text, target):
                        results[index] = self.cache.get(text, target) or text
        return results

    def clear_cache(self) -> None:
        self.cache.clear()

    async def aclose(self) -> None:
        await self.provider.aclose()
        if self.fallback is not None:
            await self.fallback.aclose()

    # --- Internal helpers -------------------------------------------------

    def _providers(self) -> List[TranslationProvider]:
        providers = [self.provider]
        if self.fallback is not None:
            providers.append(self.fallback)
        return providers

    async def _call(self, awaitable):
        if self.timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, self.timeout)

    async def _fetch(self, text: str, target: str) -> Optional[str]:
        for provider in self._providers():
            try:
                translated = await self._call(
                    provider.translate(
                        text,
                        source_language=self.source_language,
                        target_language=target,
                    )
                )
            except Exception as exc:
                self._report(provider, exc, f"Could not translate {text[:60]!r} to {target}")
                continue
            if provider is not self.provider:
                logger.info("Fallback provider %s translated %r", provider.name, text[:60])
            self.policy.record_success()
            self.cache.put(text, target, translated)
            return translated
        return None

    async def _fetch_batch(self, texts: List[str], target: str) -> Optional[List[str]]:
        for provider in self._providers():
            try:
                return await self._call(
                    provider.translate_batch(
                        texts,
                        source_language=self.source_language,
                        target_language=target,
                    )
                )
            except Exception as exc:
                self._report(provider, exc, f"Could not translate {len(texts)} texts to {target}")
        return None

    def _report(self, provider: TranslationProvider, exc: Exception, message: str) -> None:
        if isinstance(exc, asyncio.TimeoutError):
            category = ErrorCategory.NETWORK
            details = f"{provider.name}: timed out after {self.timeout}s"
        elif isinstance(exc, TranslationProviderError):
            category = ErrorCategory.TRANSLATION
            details = f"{provider.name}: {exc}"
        else:
            category = ErrorCategory.OTHER
            details = f"{provider.name}: {type(exc).__name__}: {exc}"
        self.policy.handle_error(category, message, details)


def build_client(
    settings: Any,
    *,
    provider_name: str | None = None,
    source_language: str | None = None,
    policy: FailurePolicy | None = None,
    debug: bool = False,
) -> TranslationClient:
    """Assemble a client, its providers and cache from configuration."""

    provider = build_provider_from_settings(settings, provider_name, debug=debug)
    fallback = None
    fallback_name = settings.TRANSLATION_FALLBACK_PROVIDER
    if fallback_name and fallback_name != provider.name:
        fallback = build_provider_from_settings(settings, fallback_name, debug=debug)

    cache_path = settings.BABELSWEEP_CACHE_PATH
    cache = (
        TranslationCache.load(pathlib.Path(cache_path).expanduser())
        if cache_path
        else TranslationCache()
    )
    return TranslationClient(
        provider,
        fallback=fallback,
        cache=cache,
        policy=policy,
        source_language=source_language or settings.BABELSWEEP_BASE_LANGUAGE,
        timeout=settings.BABELSWEEP_REQUEST_TIMEOUT,
    )
