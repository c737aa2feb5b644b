from types import SimpleNamespace

import pytest

from babelsweep.configuration import (
    _format_validation_errors,
    _normalise_provider_name,
    _validate_provider_settings,
)
from babelsweep.errors import TranslationProviderConfigurationError


def settings(**overrides):
    values = dict(
        TRANSLATION_PROVIDER="backend",
        TRANSLATION_FALLBACK_PROVIDER=None,
        TRANSLATION_BACKEND_URL="http://localhost:3001",
        GOOGLE_TRANSLATE_API_KEY=None,
        OPENAI_API_KEY=None,
        BABELSWEEP_SETTLE_DELAY=0.8,
        BABELSWEEP_MUTATION_DELAY=1.5,
        BABELSWEEP_REQUEST_TIMEOUT=10.0,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_defaults_are_valid():
    _validate_provider_settings(settings())


@pytest.mark.parametrize(
    "overrides, expected",
    [
        ({"TRANSLATION_PROVIDER": "google"}, "GOOGLE_TRANSLATE_API_KEY is required"),
        ({"TRANSLATION_FALLBACK_PROVIDER": "openai"}, "OPENAI_API_KEY is required"),
        ({"TRANSLATION_BACKEND_URL": ""}, "TRANSLATION_BACKEND_URL is required"),
        ({"BABELSWEEP_SETTLE_DELAY": -1}, "must not be negative"),
        ({"BABELSWEEP_REQUEST_TIMEOUT": 0}, "must be positive"),
    ],
)
def test_invalid_settings(overrides, expected):
    with pytest.raises(TranslationProviderConfigurationError, match=expected):
        _validate_provider_settings(settings(**overrides))


def test_all_problems_are_listed():
    with pytest.raises(TranslationProviderConfigurationError) as info:
        _validate_provider_settings(
            settings(TRANSLATION_PROVIDER="google", TRANSLATION_FALLBACK_PROVIDER="openai")
        )
    lines = str(info.value).splitlines()
    assert lines[0] == "Configuration validation errors detected:"
    assert len(lines) == 3


@pytest.mark.parametrize(
    "raw, expected",
    [("Proxy", "backend"), (" GPT ", "openai"), ("google-translate", "google"), ("echo", "echo")],
)
def test_provider_synonyms(raw, expected):
    assert _normalise_provider_name(raw) == expected


def test_format_validation_errors():
    message = _format_validation_errors(
        [
            {"path": ["SERVER_PORT"], "message": "Input should be a valid integer", "source": "env:process:SERVER_PORT"},
            {"path": [], "msg": "Bad layer"},
        ]
    )
    assert message.splitlines() == [
        "Configuration validation errors detected:",
        "- SERVER_PORT: Input should be a valid integer (source: env:process:SERVER_PORT)",
        "- Bad layer",
    ]
