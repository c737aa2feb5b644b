"""Prepper-backed configuration loader for BabelSweep."""

from __future__ import annotations

import os
from functools import lru_cache
from itertools import chain
from pathlib import Path
from typing import Any, Iterator, Literal, Mapping, Sequence

from dotenv import dotenv_values
from prepper import (
    ConfigNotFound,
    Field,
    IoError,
    SchemaError,
    SchemaModel,
    ValidationError,
    model_validator,
)
from prepper.config import ConfigInstance
from prepper.loaders import _parse_file, _path_to_source, discover_file_paths
from prepper.merge import merge_layer
from prepper.provenance import ProvenanceRecorder

from .errors import TranslationProviderConfigurationError

APP_NAME = "BabelSweep"

ProviderName = Literal["backend", "google", "openai", "echo"]

PROVIDER_SYNONYMS = {
    "proxy": "backend",
    "server": "backend",
    "google_translate": "google",
    "google-translate": "google",
    "gpt": "openai",
    "llm": "openai",
    "noop": "echo",
    "mock": "echo",
}


def _normalise_provider_name(value: str) -> str:
    normalized = value.strip().lower()
    return PROVIDER_SYNONYMS.get(normalized, normalized)


class BabelSweepConfig(SchemaModel):
    """Schema describing all supported configuration options."""

    TRANSLATION_PROVIDER: ProviderName = Field(
        default="backend",
        description="Primary translation provider.",
    )
    TRANSLATION_FALLBACK_PROVIDER: ProviderName | None = Field(
        default=None,
        description="Provider consulted when the primary provider fails.",
    )
    TRANSLATION_BACKEND_URL: str = Field(default="http://localhost:3001")
    GOOGLE_TRANSLATE_API_KEY: str | None = Field(default=None, secret=True)
    OPENAI_API_KEY: str | None = Field(default=None, secret=True)
    OPENAI_MODEL: str | None = Field(default=None)
    BABELSWEEP_BASE_LANGUAGE: str = Field(default="en")
    BABELSWEEP_SETTLE_DELAY: float = Field(default=0.8)
    BABELSWEEP_MUTATION_DELAY: float = Field(default=1.5)
    BABELSWEEP_REQUEST_TIMEOUT: float = Field(default=10.0)
    BABELSWEEP_CACHE_PATH: str | None = Field(default=None)
    BABELSWEEP_PROVIDER_DEBUG: bool = Field(default=False)
    SERVER_HOST: str = Field(default="127.0.0.1")
    SERVER_PORT: int = Field(default=3001)

    @model_validator(mode="before")
    def _normalise_providers(data: Any) -> Any:
        if isinstance(data, dict):
            for key in ("TRANSLATION_PROVIDER", "TRANSLATION_FALLBACK_PROVIDER"):
                raw_value = data.get(key)
                if isinstance(raw_value, str):
                    normalized = _normalise_provider_name(raw_value)
                    if key == "TRANSLATION_FALLBACK_PROVIDER" and normalized in {"", "none"}:
                        data[key] = None
                    else:
                        data[key] = normalized
        return data


Layer = tuple[Mapping[str, Any], str, str]


def _yaml_layers(app_dir: Path) -> Iterator[Layer]:
    """Yield each discovered BabelSweep YAML file, lowest precedence first."""

    for path, label in discover_file_paths(APP_NAME, "yaml", app_dir=app_dir, extra_paths=None):
        parsed = _parse_file(path, "yaml")
        if not isinstance(parsed, Mapping):
            raise IoError(f"{path} must contain a mapping of setting names to values.")
        yield parsed, _path_to_source(label, "yaml", path), "file"


def _env_layers(app_dir: Path) -> Iterator[Layer]:
    """Yield one single-key layer per known setting found in .env or the environment."""

    known = set(BabelSweepConfig.__field_infos__)
    sources: list[tuple[str, Mapping[str, str | None]]] = []
    dotenv_path = app_dir / ".env"
    if dotenv_path.exists():
        sources.append((".env", dotenv_values(dotenv_path)))
    sources.append(("process", os.environ))

    for origin, values in sources:
        for key in sorted(known.intersection(values)):
            value = values[key]
            if isinstance(value, str):
                yield {key: value}, f"env:{origin}:{key}", "env"


@lru_cache(maxsize=1)
def _load_config_instance(app_dir: Path | None = None) -> ConfigInstance:
    """Merge YAML, .env and environment layers into one validated instance."""

    base_dir = app_dir or Path.cwd()
    provenance = ProvenanceRecorder()
    merged: dict[str, Any] = {}
    try:
        for values, source, layer in chain(_yaml_layers(base_dir), _env_layers(base_dir)):
            merge_layer(merged, values, provenance=provenance, source=source, layer=layer)
        # every field has a default, so an empty layer set is valid
        model = BabelSweepConfig.validate(merged, provenance=provenance)
    except ConfigNotFound as exc:
        raise TranslationProviderConfigurationError(
            f"Configuration could not be located: {exc}"
        ) from exc
    except IoError as exc:
        raise TranslationProviderConfigurationError(
            f"Configuration files could not be read: {exc}"
        ) from exc
    except SchemaError as exc:
        raise TranslationProviderConfigurationError(
            f"Configuration schema error: {exc}"
        ) from exc
    except ValidationError as exc:
        raise TranslationProviderConfigurationError(
            _format_validation_errors(exc.to_dict())
        ) from exc

    _validate_provider_settings(model)
    return ConfigInstance(
        model=model,
        provenance=provenance,
        env_prefix=None,
        schema_cls=BabelSweepConfig,
    )


def _validate_provider_settings(settings: Any) -> None:
    """Check that every selected provider has the credentials it needs."""

    errors: list[str] = []
    selected = [
        ("TRANSLATION_PROVIDER", settings.TRANSLATION_PROVIDER),
        ("TRANSLATION_FALLBACK_PROVIDER", settings.TRANSLATION_FALLBACK_PROVIDER),
    ]
    for setting, provider in selected:
        if provider == "backend" and not settings.TRANSLATION_BACKEND_URL:
            errors.append(
                f"TRANSLATION_BACKEND_URL is required when {setting} is 'backend'."
            )
        elif provider == "google" and not settings.GOOGLE_TRANSLATE_API_KEY:
            errors.append(
                f"GOOGLE_TRANSLATE_API_KEY is required when {setting} is 'google'."
            )
        elif provider == "openai" and not settings.OPENAI_API_KEY:
            errors.append(
                f"OPENAI_API_KEY is required when {setting} is 'openai'."
            )

    if settings.BABELSWEEP_SETTLE_DELAY < 0 or settings.BABELSWEEP_MUTATION_DELAY < 0:
        errors.append("Sweep delays must not be negative.")
    if settings.BABELSWEEP_REQUEST_TIMEOUT <= 0:
        errors.append("BABELSWEEP_REQUEST_TIMEOUT must be positive.")

    if errors:
        bullet_list = "\n".join(f"- {message}" for message in errors)
        raise TranslationProviderConfigurationError(
            "Configuration validation errors detected:\n" + bullet_list
        )


def _format_validation_errors(entries: Sequence[dict[str, Any]]) -> str:
    """Render prepper validation entries as the bullet list shown to users."""

    lines = ["Configuration validation errors detected:"]
    for entry in entries:
        path = entry.get("path") or []
        if isinstance(path, (list, tuple)):
            setting = ".".join(str(part) for part in path if part not in (None, ""))
        else:
            setting = str(path)
        text = str(entry.get("message") or entry.get("msg") or "Invalid value")
        if setting:
            text = f"{setting}: {text}"
        if entry.get("source"):
            text += f" (source: {entry['source']})"
        lines.append(f"- {text}")
    return "\n".join(lines)


def get_config(app_dir: Path | None = None) -> ConfigInstance:
    return _load_config_instance(app_dir=app_dir)


def get_settings(app_dir: Path | None = None) -> BabelSweepConfig:
    """Return the validated settings model."""

    return get_config(app_dir=app_dir).model()
