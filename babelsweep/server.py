"""Translation proxy service.

Exposes the HTTP contract consumed by `BackendTranslationProvider`, so
browsers and sweeps never need provider credentials of their own.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import TranslationProviderError
from .providers import SUPPORTED_LANGUAGES, TranslationProvider

logger = logging.getLogger(__name__)


# ==================== Request models ====================

class TranslateRequest(BaseModel):
    text: Optional[str] = None
    targetLanguage: Optional[str] = None
    sourceLanguage: str = "en"


class BatchTranslateRequest(BaseModel):
    texts: Optional[List[str]] = None
    targetLanguage: Optional[str] = None
    sourceLanguage: str = "en"


def _error(status_code: int, error: str, message: str | None = None) -> JSONResponse:
    body = {"error": error}
    if message is not None:
        body["message"] = message
    return JSONResponse(status_code=status_code, content=body)


def create_app(provider: TranslationProvider, *, service_name: str | None = None) -> FastAPI:
    """Build the proxy application around `provider`."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Translation proxy ready (provider: %s)", provider.name)
        yield
        await provider.aclose()

    app = FastAPI(
        title="BabelSweep translation proxy",
        description="Translates UI text on behalf of BabelSweep clients",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.provider = provider

    # ==================== Endpoints ====================

    @app.post("/api/translate")
    async def translate(request: TranslateRequest):
        if not request.text or not request.targetLanguage:
            return _error(400, "Missing required parameters: text and targetLanguage")

        source = request.sourceLanguage
        target = request.targetLanguage
        if target == source:
            return {
                "translatedText": request.text,
                "sourceLanguage": source,
                "targetLanguage": target,
            }

        logger.info("Translating %r from %s to %s", request.text[:60], source, target)
        try:
            translated = await provider.translate(
                request.text, source_language=source, target_language=target
            )
        except TranslationProviderError as exc:
            logger.error("Translation error: %s", exc)
            return _error(500, "Translation failed", str(exc))

        return {
            "translatedText": translated,
            "sourceLanguage": source,
            "targetLanguage": target,
            "originalText": request.text,
        }

    @app.post("/api/translate/batch")
    async def translate_batch(request: BatchTranslateRequest):
        if request.texts is None or not request.targetLanguage:
            return _error(
                400, "Missing required parameters: texts (array) and targetLanguage"
            )

        source = request.sourceLanguage
        target = request.targetLanguage
        if target == source:
            translated = list(request.texts)
        else:
            logger.info(
                "Batch translating %d texts from %s to %s",
                len(request.texts),
                source,
                target,
            )
            try:
                translated = await provider.translate_batch(
                    request.texts, source_language=source, target_language=target
                )
            except TranslationProviderError as exc:
                logger.error("Batch translation error: %s", exc)
                return _error(500, "Batch translation failed", str(exc))

        return {
            "translations": [
                {
                    "originalText": original,
                    "translatedText": value,
                    "sourceLanguage": source,
                    "targetLanguage": target,
                }
                for original, value in zip(request.texts, translated)
            ]
        }

    @app.get("/api/languages")
    async def languages():
        try:
            items = await provider.list_languages()
        except TranslationProviderError as exc:
            logger.warning("Falling back to built-in language list: %s", exc)
            items = [{"code": lang.code, "name": lang.name} for lang in SUPPORTED_LANGUAGES]
        return {"languages": items}

    @app.get("/api/health")
    async def health():
        return {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": service_name or f"BabelSweep translation proxy ({provider.name})",
        }

    # ==================== Error handlers ====================

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError):
        return _error(400, "Invalid request body", str(exc.errors()))

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return _error(404, "Endpoint not found")
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception):
        logger.exception("Unhandled error")
        return _error(500, "Internal server error", str(exc))

    return app


def run_server(provider: TranslationProvider, *, host: str, port: int) -> None:
    """Serve the proxy with uvicorn until interrupted."""

    import uvicorn

    app = create_app(provider)
    logger.info("Translation endpoint: http://%s:%d/api/translate", host, port)
    uvicorn.run(app, host=host, port=port)
