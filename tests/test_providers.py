import asyncio
import json
from types import SimpleNamespace
from urllib.parse import parse_qs

import httpx
import pytest

from babelsweep.errors import TranslationProviderConfigurationError, TranslationProviderError
from babelsweep.providers import (
    SUPPORTED_LANGUAGES,
    BackendTranslationProvider,
    EchoTranslationProvider,
    GoogleTranslationProvider,
    OpenAITranslationProvider,
    build_provider,
)


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def run(coroutine):
    return asyncio.run(coroutine)


class TestBackendProvider:
    def test_translate_posts_expected_payload(self):
        seen = []

        def handler(request):
            seen.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"translatedText": "Bonjour"})

        provider = BackendTranslationProvider("http://proxy/", client=mock_client(handler))
        result = run(provider.translate("Hello", source_language=None, target_language="fr"))

        assert result == "Bonjour"
        assert seen == [
            ("/api/translate", {"text": "Hello", "targetLanguage": "fr", "sourceLanguage": "en"})
        ]

    def test_batch_preserves_order(self):
        def handler(request):
            body = json.loads(request.content)
            assert request.url.path == "/api/translate/batch"
            return httpx.Response(
                200,
                json={"translations": [{"translatedText": t.upper()} for t in body["texts"]]},
            )

        provider = BackendTranslationProvider("http://proxy", client=mock_client(handler))
        result = run(
            provider.translate_batch(["a", "b"], source_language="en", target_language="fr")
        )
        assert result == ["A", "B"]

    def test_batch_count_mismatch_is_an_error(self):
        def handler(request):
            return httpx.Response(200, json={"translations": [{"translatedText": "A"}]})

        provider = BackendTranslationProvider("http://proxy", client=mock_client(handler))
        with pytest.raises(TranslationProviderError, match="count mismatch"):
            run(provider.translate_batch(["a", "b"], source_language="en", target_language="fr"))

    def test_http_error_carries_status_and_message(self):
        def handler(request):
            return httpx.Response(
                500, json={"error": "Translation failed", "message": "quota exceeded"}
            )

        provider = BackendTranslationProvider("http://proxy", client=mock_client(handler))
        with pytest.raises(TranslationProviderError) as info:
            run(provider.translate("Hello", source_language="en", target_language="fr"))
        assert info.value.status_code == 500
        assert "quota exceeded" in str(info.value)

    def test_connection_error_is_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        provider = BackendTranslationProvider("http://proxy", client=mock_client(handler))
        with pytest.raises(TranslationProviderError, match="temporarily unavailable"):
            run(provider.translate("Hello", source_language="en", target_language="fr"))

    def test_malformed_response(self):
        provider = BackendTranslationProvider(
            "http://proxy",
            client=mock_client(lambda request: httpx.Response(200, json={"text": "x"})),
        )
        with pytest.raises(TranslationProviderError, match="translatedText"):
            run(provider.translate("Hello", source_language="en", target_language="fr"))

    def test_languages_and_health(self):
        def handler(request):
            if request.url.path == "/api/languages":
                return httpx.Response(
                    200, json={"languages": [{"code": "fr", "name": "French"}, {"bad": 1}]}
                )
            return httpx.Response(200, json={"status": "OK"})

        provider = BackendTranslationProvider("http://proxy", client=mock_client(handler))
        assert run(provider.list_languages()) == [{"code": "fr", "name": "French"}]
        assert run(provider.health()) == {"status": "OK"}

    def test_missing_url_is_a_configuration_error(self):
        with pytest.raises(TranslationProviderConfigurationError):
            BackendTranslationProvider("")


class TestGoogleProvider:
    def test_batch_uses_form_encoding(self):
        forms = []

        def handler(request):
            forms.append(parse_qs(request.content.decode()))
            return httpx.Response(
                200,
                json={"data": {"translations": [{"translatedText": "Bonjour"}, {"translatedText": "Monde"}]}},
            )

        provider = GoogleTranslationProvider("secret", client=mock_client(handler))
        result = run(
            provider.translate_batch(["Hello", "World"], source_language="en", target_language="fr")
        )

        assert result == ["Bonjour", "Monde"]
        assert forms[0]["q"] == ["Hello", "World"]
        assert forms[0]["target"] == ["fr"]
        assert forms[0]["source"] == ["en"]
        assert forms[0]["format"] == ["text"]
        assert forms[0]["key"] == ["secret"]

    def test_google_error_message_is_surfaced(self):
        def handler(request):
            return httpx.Response(403, json={"error": {"message": "API key not valid"}})

        provider = GoogleTranslationProvider("bad", client=mock_client(handler))
        with pytest.raises(TranslationProviderError, match="API key not valid"):
            run(provider.translate("Hello", source_language=None, target_language="fr"))

    def test_requires_api_key(self):
        with pytest.raises(TranslationProviderConfigurationError):
            GoogleTranslationProvider(None)


class FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def openai_provider(content):
    completions = FakeCompletions(content)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAITranslationProvider(None, client=client), completions


class TestOpenAIProvider:
    def test_translations_are_mapped_by_id(self):
        content = json.dumps(
            {"translations": [{"id": "1", "translated": "Monde"}, {"id": "0", "translated": "Bonjour"}]}
        )
        provider, completions = openai_provider(content)

        result = run(
            provider.translate_batch(["Hello", "World"], source_language="en", target_language="fr")
        )

        assert result == ["Bonjour", "Monde"]
        assert completions.calls[0]["model"] == OpenAITranslationProvider.DEFAULT_MODEL
        payload = json.loads(completions.calls[0]["messages"][1]["content"])
        assert payload["target_language"] == "fr"

    def test_code_fenced_output_is_accepted(self):
        provider, _ = openai_provider('```json\n[{"id": "0", "translated": "Hallo"}]\n```')
        assert run(provider.translate("Hello", source_language="en", target_language="de")) == "Hallo"

    @pytest.mark.parametrize(
        "content, message",
        [
            ("not json", "invalid JSON"),
            ('{"translations": []}', "missing expected ids"),
            ('{"other": 1}', "could not find"),
        ],
    )
    def test_bad_output_raises(self, content, message):
        provider, _ = openai_provider(content)
        with pytest.raises(TranslationProviderError, match=message):
            run(provider.translate("Hello", source_language="en", target_language="de"))

    def test_requires_api_key_without_client(self):
        with pytest.raises(TranslationProviderConfigurationError):
            OpenAITranslationProvider(None)


class TestFactory:
    def test_synonyms(self):
        assert isinstance(build_provider("noop"), EchoTranslationProvider)
        assert isinstance(build_provider(None, backend_url="http://x"), BackendTranslationProvider)
        assert isinstance(build_provider("Google_Translate", google_api_key="k"), GoogleTranslationProvider)

    def test_unknown_provider(self):
        with pytest.raises(TranslationProviderConfigurationError, match="Unknown"):
            build_provider("babelfish")

    def test_default_language_list(self):
        languages = run(EchoTranslationProvider().list_languages())
        assert len(languages) == len(SUPPORTED_LANGUAGES) == 20
        assert {"code": "ar", "name": "Arabic"} in languages
