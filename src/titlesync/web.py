from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from pathlib import Path

from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .cache import default_cache_path, load_cache, save_cache
from .translate import (
    MAX_BATCH_CHARS,
    MyMemoryClient,
    TranslationError,
    TranslationInputError,
    TranslationUnavailableError,
    default_provider_url,
    translate_titles,
    validate_request,
)


@dataclass(slots=True)
class WebConfig:
    cache_path: Path = field(default_factory=default_cache_path)
    provider_url: str = field(default_factory=default_provider_url)
    timeout: float = 30.0
    max_batch_chars: int = MAX_BATCH_CHARS


def _translate_with_cache(
    config: WebConfig,
    client: MyMemoryClient,
    titles: list[str],
    target_lang: str,
) -> dict[str, str]:
    cache = load_cache(config.cache_path)
    translations, updated_cache = translate_titles(
        titles,
        target_lang,
        cache,
        client,
        max_length=config.max_batch_chars,
    )
    save_cache(config.cache_path, updated_cache)
    return translations


def _split_query_titles(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [title for title in raw.split(",") if title]


def create_app(config: WebConfig, client: MyMemoryClient | None = None) -> FastAPI:
    app = FastAPI(title="titlesync")
    app.state.config = config
    app.state.client = client or MyMemoryClient(config.provider_url, timeout=config.timeout)
    cache_lock = threading.Lock()

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse({"detail": "Invalid payload."}, status_code=400)

    async def _run_translation(titles: object, target_lang: object) -> JSONResponse:
        try:
            checked_titles, checked_lang = validate_request(titles, target_lang)
        except TranslationInputError as exc:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid input: {exc}",
            ) from exc

        loop = asyncio.get_running_loop()

        def work() -> dict[str, str]:
            with cache_lock:
                return _translate_with_cache(config, app.state.client, checked_titles, checked_lang)

        try:
            translations = await loop.run_in_executor(None, work)
        except (TranslationError, TranslationUnavailableError) as exc:
            raise HTTPException(status_code=500, detail="Translation failed") from exc
        return JSONResponse(translations)

    @app.get("/api/translate")
    async def api_translate_query(
        titles: str | None = Query(None),
        target_lang: str | None = Query(None, alias="targetLang"),
    ) -> JSONResponse:
        return await _run_translation(_split_query_titles(titles), target_lang)

    @app.post("/api/translate")
    async def api_translate(payload: object = Body(None)) -> JSONResponse:
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Invalid payload.")
        return await _run_translation(payload.get("titles"), payload.get("targetLang"))

    return app


__all__ = ["WebConfig", "create_app"]
