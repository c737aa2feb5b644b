"""Translation provider abstractions."""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

import httpx

from .errors import (
    TranslationProviderConfigurationError,
    TranslationProviderError,
)

logger = logging.getLogger(__name__)

GOOGLE_TRANSLATE_URL = "https://translation.googleapis.com/language/translate/v2"
DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class Language:
    code: str
    name: str
    native_name: str
    rtl: bool = False


SUPPORTED_LANGUAGES: List[Language] = [
    Language("en", "English", "English"),
    Language("es", "Spanish", "Español"),
    Language("fr", "French", "Français"),
    Language("de", "German", "Deutsch"),
    Language("it", "Italian", "Italiano"),
    Language("pt", "Portuguese", "Português"),
    Language("ru", "Russian", "Русский"),
    Language("zh", "Chinese", "中文"),
    Language("ja", "Japanese", "日本語"),
    Language("ko", "Korean", "한국어"),
    Language("ar", "Arabic", "العربية", rtl=True),
    Language("hi", "Hindi", "हिन्दी"),
    Language("th", "Thai", "ไทย"),
    Language("vi", "Vietnamese", "Tiếng Việt"),
    Language("nl", "Dutch", "Nederlands"),
    Language("sv", "Swedish", "Svenska"),
    Language("da", "Danish", "Dansk"),
    Language("no", "Norwegian", "Norsk"),
    Language("fi", "Finnish", "Suomi"),
    Language("pl", "Polish", "Polski"),
]


class TranslationProvider(ABC):
    """Abstract adapter for translation backends.

    Providers raise `TranslationProviderError` on failure; absorbing failures
    is the job of `TranslationClient`.
    """

    name = "abstract"

    @abstractmethod
    async def translate(
        self,
        text: str,
        *,
        source_language: str | None,
        target_language: str,
    ) -> str:
        """Translate a single text."""

    async def translate_batch(
        self,
        texts: Sequence[str],
        *,
        source_language: str | None,
        target_language: str,
    ) -> List[str]:
        """Translate several texts, preserving order."""

        results = await asyncio.gather(
            *(
                self.translate(
                    text,
                    source_language=source_language,
                    target_language=target_language,
                )
                for text in texts
            )
        )
        return list(results)

    async def list_languages(self) -> List[Dict[str, str]]:
        return [{"code": lang.code, "name": lang.name} for lang in SUPPORTED_LANGUAGES]

    async def aclose(self) -> None:
        """Release network resources held by the provider."""


class EchoTranslationProvider(TranslationProvider):
    """A provider that returns the original text (useful for testing)."""

    name = "echo"

    async def translate(
        self,
        text: str,
        *,
        source_language: str | None,
        target_language: str,
    ) -> str:
        return text


class _HttpProvider(TranslationProvider):
    """Shared httpx plumbing for HTTP-based providers."""

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
        debug: bool = False,
    ) -> None:
        self.debug = debug
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        self._log_debug(f"provider.request {method} {url}", kwargs.get("json"))
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = _error_detail(exc.response)
            raise TranslationProviderError(
                f"HTTP {exc.response.status_code}: {detail}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.RequestError as exc:
            raise TranslationProviderError(
                f"Translation service temporarily unavailable: "
                f"{type(exc).__name__}: {exc}"
            ) from exc
        try:
            payload = response.json()
        except ValueError as exc:
            raise TranslationProviderError(
                f"Translation provider returned invalid JSON: {exc}"
            ) from exc
        self._log_debug("provider.response", payload)
        return payload

    def _log_debug(self, label: str, payload: Any) -> None:
        if not self.debug:
            return
        try:
            if isinstance(payload, (dict, list)):
                message = json.dumps(payload, ensure_ascii=False, indent=2)
            else:
                message = str(payload)
        except (TypeError, ValueError):
            message = repr(payload)
        logger.debug("[%s] %s:\n%s", self.name, label, message)


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or "No details"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error)
        message = body.get("message")
        if error and message:
            return f"{error}: {message}"
        if error or message:
            return str(error or message)
    return str(body)[:200]


class BackendTranslationProvider(_HttpProvider):
    """Talks to a translation proxy exposing `/api/translate`."""

    name = "backend"

    def __init__(self, base_url: str, **kwargs: Any) -> None:
        if not base_url:
            raise TranslationProviderConfigurationError(
                "Translation backend URL missing. Set TRANSLATION_BACKEND_URL or "
                "choose a different provider."
            )
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")

    async def translate(
        self,
        text: str,
        *,
        source_language: str | None,
        target_language: str,
    ) -> str:
        payload = await self._request(
            "POST",
            f"{self.base_url}/api/translate",
            json={
                "text": text,
                "targetLanguage": target_language,
                "sourceLanguage": source_language or "en",
            },
        )
        translated = payload.get("translatedText") if isinstance(payload, dict) else None
        if not isinstance(translated, str):
            raise TranslationProviderError(
                "Translation provider response malformed: missing translatedText."
            )
        return translated

    async def translate_batch(
        self,
        texts: Sequence[str],
        *,
        source_language: str | None,
        target_language: str,
    ) -> List[str]:
        if not texts:
            return []
        payload = await self._request(
            "POST",
            f"{self.base_url}/api/translate/batch",
            json={
                "texts": list(texts),
                "targetLanguage": target_language,
                "sourceLanguage": source_language or "en",
            },
        )
        items = payload.get("translations") if isinstance(payload, dict) else None
        if not isinstance(items, list) or len(items) != len(texts):
            raise TranslationProviderError(
                "Translation provider response malformed: translation count mismatch."
            )
        results: List[str] = []
        for item in items:
            translated = item.get("translatedText") if isinstance(item, dict) else None
            if not isinstance(translated, str):
                raise TranslationProviderError(
                    "Translation provider response malformed: missing translatedText."
                )
            results.append(translated)
        return results

    async def list_languages(self) -> List[Dict[str, str]]:
        payload = await self._request("GET", f"{self.base_url}/api/languages")
        languages = payload.get("languages") if isinstance(payload, dict) else None
        if not isinstance(languages, list):
            raise TranslationProviderError(
                "Translation provider response malformed: missing languages."
            )
        return [
            {"code": str(item["code"]), "name": str(item.get("name", item["code"]))}
            for item in languages
            if isinstance(item, dict) and "code" in item
        ]

    async def health(self) -> Dict[str, Any]:
        return await self._request("GET", f"{self.base_url}/api/health")


class GoogleTranslationProvider(_HttpProvider):
    """Calls the Google Cloud Translation v2 REST API with an API key."""

    name = "google"

    def __init__(self, api_key: str | None, **kwargs: Any) -> None:
        if not api_key:
            raise TranslationProviderConfigurationError(
                "Google Translate configuration missing. Set GOOGLE_TRANSLATE_API_KEY "
                "or choose a different provider."
            )
        super().__init__(**kwargs)
        self.api_key = api_key

    async def translate(
        self,
        text: str,
        *,
        source_language: str | None,
        target_language: str,
    ) -> str:
        results = await self.translate_batch(
            [text],
            source_language=source_language,
            target_language=target_language,
        )
        return results[0]

    async def translate_batch(
        self,
        texts: Sequence[str],
        *,
        source_language: str | None,
        target_language: str,
    ) -> List[str]:
        if not texts:
            return []
        form: Dict[str, Any] = {
            "q": list(texts),
            "target": target_language,
            "format": "text",
            "key": self.api_key,
        }
        if source_language:
            form["source"] = source_language
        payload = await self._request("POST", GOOGLE_TRANSLATE_URL, data=form)
        try:
            translations = payload["data"]["translations"]
            results = [str(item["translatedText"]) for item in translations]
        except (KeyError, TypeError) as exc:
            raise TranslationProviderError(
                "Translation provider response malformed: missing translations."
            ) from exc
        if len(results) != len(texts):
            raise TranslationProviderError(
                "Translation provider response malformed: translation count mismatch."
            )
        return results

    async def list_languages(self) -> List[Dict[str, str]]:
        payload = await self._request(
            "GET",
            f"{GOOGLE_TRANSLATE_URL}/languages",
            params={"key": self.api_key, "target": "en"},
        )
        try:
            languages = payload["data"]["languages"]
        except (KeyError, TypeError) as exc:
            raise TranslationProviderError(
                "Translation provider response malformed: missing languages."
            ) from exc
        return [
            {"code": item["language"], "name": item.get("name", item["language"])}
            for item in languages
        ]


class OpenAITranslationProvider(TranslationProvider):
    """Translation provider that uses OpenAI chat models."""

    name = "openai"
    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(
        self,
        api_key: str | None,
        *,
        model: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        client: Any = None,
        debug: bool = False,
    ) -> None:
        self.debug = debug
        self.model = model or self.DEFAULT_MODEL
        self._client = client or self._build_client(api_key, timeout)

    def _build_client(self, api_key: str | None, timeout: float) -> Any:
        if not api_key:
            raise TranslationProviderConfigurationError(
                "OpenAI configuration missing. Set OPENAI_API_KEY or choose a "
                "different provider."
            )
        try:
            from openai import AsyncOpenAI  # type: ignore
        except ImportError as exc:  # pragma: no cover - import guard
            raise TranslationProviderConfigurationError(
                "OpenAI Python SDK not installed. Install with `pip install openai`."
            ) from exc
        return AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def translate(
        self,
        text: str,
        *,
        source_language: str | None,
        target_language: str,
    ) -> str:
        results = await self.translate_batch(
            [text],
            source_language=source_language,
            target_language=target_language,
        )
        return results[0]

    async def translate_batch(
        self,
        texts: Sequence[str],
        *,
        source_language: str | None,
        target_language: str,
    ) -> List[str]:
        if not texts:
            return []

        system_prompt = (
            "You are a professional user-interface translator. Return only JSON. "
            "Translate each text into the requested language. Keep numbers, "
            "placeholders and punctuation. Respond strictly with an object shaped as "
            '{"translations": [{"id": "...", "translated": "..."}]}. '
            "Do not add commentary. Do not wrap the JSON in markdown code fences."
        )
        user_payload = {
            "target_language": target_language,
            "source_language": source_language,
            "texts": [{"id": str(index), "text": text} for index, text in enumerate(texts)],
        }
        self._log_debug("provider.request.payload", user_payload)

        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                temperature=0,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {
                        "role": "user",
                        "content": json.dumps(user_payload, ensure_ascii=False),
                    },
                ],
            )
        except Exception as exc:  # pragma: no cover - network call
            raise TranslationProviderError(
                f"Translation service temporarily unavailable: {exc}"
            ) from exc

        content = self._message_content(response)
        self._log_debug("provider.response.content", content)
        items = self._normalise_translations(content)

        mapping: Dict[str, str] = {}
        for item in items:
            if not isinstance(item, dict):
                raise TranslationProviderError(
                    "Translation provider response malformed: expected objects."
                )
            item_id = item.get("id")
            translated = item.get("translated")
            if not isinstance(item_id, str) or not isinstance(translated, str):
                raise TranslationProviderError(
                    "Translation provider response malformed: missing fields."
                )
            mapping[item_id] = translated

        missing = [str(index) for index in range(len(texts)) if str(index) not in mapping]
        if missing:
            raise TranslationProviderError(
                "Translation output missing expected ids: " + ", ".join(missing)
            )
        return [mapping[str(index)] for index in range(len(texts))]

    def _message_content(self, response: Any) -> str:
        for choice in getattr(response, "choices", None) or []:
            message = getattr(choice, "message", None)
            content = getattr(message, "content", None)
            if content:
                return str(content)
        raise TranslationProviderError(
            "Translation provider response empty or unrecognised."
        )

    def _strip_code_fence(self, text: str) -> str:
        """Remove leading/trailing markdown code fences if present."""

        stripped = text.strip()
        if not stripped.startswith("```"):
            return stripped
        first_newline = stripped.find("\n")
        if first_newline == -1:
            return stripped
        body = stripped[first_newline + 1 :]
        closing_index = body.rfind("```")
        if closing_index != -1:
            body = body[:closing_index]
        return body.strip()

    def _normalise_translations(self, content: str) -> list[Any]:
        try:
            payload = json.loads(self._strip_code_fence(content))
        except json.JSONDecodeError as exc:
            raise TranslationProviderError(
                f"Translation provider returned invalid JSON: {exc}"
            ) from exc

        if isinstance(payload, dict):
            translations = payload.get("translations")
            if isinstance(translations, list):
                return translations
        if isinstance(payload, list):
            return payload
        raise TranslationProviderError(
            "Translation provider response malformed: could not find translations list."
        )

    def _log_debug(self, label: str, payload: Any) -> None:
        if not self.debug:
            return
        if isinstance(payload, (dict, list)):
            payload = json.dumps(payload, ensure_ascii=False, indent=2)
        logger.debug("[openai] %s:\n%s", label, payload)

    async def aclose(self) -> None:
        close = getattr(self._client, "close", None)
        if close is not None:
            await close()


def build_provider(
    name: str | None,
    *,
    backend_url: str | None = None,
    google_api_key: str | None = None,
    openai_api_key: str | None = None,
    openai_model: str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    debug: bool = False,
) -> TranslationProvider:
    """Factory to create providers by name."""

    normalized = (name or "backend").strip().lower().replace("_", "-")
    if normalized in {"backend", "proxy", "server", "default"}:
        return BackendTranslationProvider(backend_url or "", timeout=timeout, debug=debug)
    if normalized in {"google", "google-translate", "gcloud"}:
        return GoogleTranslationProvider(google_api_key, timeout=timeout, debug=debug)
    if normalized in {"openai", "gpt", "llm"}:
        return OpenAITranslationProvider(
            openai_api_key, model=openai_model, timeout=timeout, debug=debug
        )
    if normalized in {"echo", "noop", "mock"}:
        return EchoTranslationProvider()
    raise TranslationProviderConfigurationError(
        f"Unknown translation provider '{name}'."
    )


def build_provider_from_settings(
    settings: Any,
    name: str | None = None,
    *,
    debug: bool = False,
) -> TranslationProvider:
    """Create a provider using credentials from a loaded configuration."""

    return build_provider(
        name or settings.TRANSLATION_PROVIDER,
        backend_url=settings.TRANSLATION_BACKEND_URL,
        google_api_key=settings.GOOGLE_TRANSLATE_API_KEY,
        openai_api_key=settings.OPENAI_API_KEY,
        openai_model=settings.OPENAI_MODEL,
        timeout=settings.BABELSWEEP_REQUEST_TIMEOUT,
        debug=debug or settings.BABELSWEEP_PROVIDER_DEBUG,
    )
