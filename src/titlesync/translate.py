from __future__ import annotations

import copy
import json
import os
from typing import Callable, Iterable, Sequence

import requests

from .cache import TranslationCache, cached_translation, store_translation

DEFAULT_PROVIDER_URL = "https://api.mymemory.translated.net/get"
PROVIDER_URL_ENV = "TITLESYNC_PROVIDER_URL"
SOURCE_LANG = "en"
BATCH_SEPARATOR = "||"
MAX_BATCH_CHARS = 500

ProgressCallback = Callable[[dict[str, object]], None]

_DEBUG_LOG = False


def set_debug_logging(enabled: bool) -> None:
    global _DEBUG_LOG
    _DEBUG_LOG = enabled


def _debug_log(message: str) -> None:
    if _DEBUG_LOG:
        print(f"[titlesync translate debug] {message}")


class TranslationInputError(ValueError):
    """Raised when titles or the target language are missing."""


class TranslationError(RuntimeError):
    """Raised when the translation provider returns an unusable response."""


class TranslationUnavailableError(ConnectionError):
    """Raised when the translation provider cannot be reached."""


def default_provider_url() -> str:
    return os.environ.get(PROVIDER_URL_ENV) or DEFAULT_PROVIDER_URL


def _emit_progress(progress: ProgressCallback | None, event: str, **payload: object) -> None:
    if progress is None:
        return
    data: dict[str, object] = {"event": event}
    data.update(payload)
    progress(data)


def unique_titles(titles: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for title in titles:
        if title in seen:
            continue
        seen.add(title)
        ordered.append(title)
    return ordered


def validate_request(titles: object, target_lang: object) -> tuple[list[str], str]:
    if not isinstance(titles, (list, tuple)) or not titles:
        raise TranslationInputError("titles must be a non-empty array")
    if not all(isinstance(title, str) for title in titles):
        raise TranslationInputError("titles must contain only strings")
    if not isinstance(target_lang, str) or not target_lang.strip():
        raise TranslationInputError("targetLang is required")
    return list(titles), target_lang.strip()


def batch_titles(titles: Sequence[str], max_length: int = MAX_BATCH_CHARS) -> list[list[str]]:
    """
    Group titles so each joined batch fits the provider's per-request budget.

    Every title costs its length plus the separator width. A batch is closed
    before a title that would push it over ``max_length``; a title that is
    longer than the budget on its own still gets a batch of its own.
    """
    separator_width = len(BATCH_SEPARATOR)
    batches: list[list[str]] = []
    batch: list[str] = []
    batch_length = 0
    for title in titles:
        cost = len(title) + separator_width
        if batch and batch_length + cost > max_length:
            batches.append(batch)
            batch = []
            batch_length = 0
        batch.append(title)
        batch_length += cost
    if batch:
        batches.append(batch)
    return batches


class MyMemoryClient:
    """
    Thin wrapper around the MyMemory translation API.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 30.0,
        *,
        source_lang: str = SOURCE_LANG,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = (base_url or default_provider_url()).rstrip("/")
        self.timeout = timeout
        self.source_lang = source_lang
        self._session = session or requests.Session()

    def translate_text(self, text: str, target_lang: str) -> str:
        langpair = f"{self.source_lang}|{target_lang}"
        _debug_log(f"GET {self.base_url} langpair={langpair} chars={len(text)}")
        try:
            resp = self._session.get(
                self.base_url,
                params={"q": text, "langpair": langpair},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise TranslationUnavailableError(
                f"Failed to contact translation provider at {self.base_url}"
            ) from exc

        if not 200 <= resp.status_code < 300:
            raise TranslationError(
                f"Translation API error: status {resp.status_code}: {resp.reason or resp.text}"
            )

        try:
            payload = resp.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise TranslationError("Translation provider returned invalid JSON") from exc

        status = payload.get("responseStatus") if isinstance(payload, dict) else None
        # MyMemory reports quota and language-pair failures inside an HTTP 200
        if status is not None and str(status).strip() != "200":
            detail = payload.get("responseDetails") or status
            raise TranslationError(f"Translation API error: responseStatus {status}: {detail}")

        response_data = payload.get("responseData") if isinstance(payload, dict) else None
        translated = response_data.get("translatedText") if isinstance(response_data, dict) else None
        if not isinstance(translated, str):
            raise TranslationError("Translation provider response is missing translatedText")
        _debug_log(f"received {len(translated)} chars")
        return translated

    def translate_batch(self, titles: Sequence[str], target_lang: str) -> list[str]:
        translated = self.translate_text(BATCH_SEPARATOR.join(titles), target_lang)
        pieces = translated.split(BATCH_SEPARATOR)
        if len(pieces) != len(titles):
            raise TranslationError(
                f"Translation provider returned {len(pieces)} segment(s) for {len(titles)} title(s)"
            )
        return [piece.strip() for piece in pieces]

    def close(self) -> None:
        self._session.close()


def translate_titles(
    titles: Sequence[str],
    target_lang: str,
    cache: TranslationCache,
    client: MyMemoryClient,
    *,
    max_length: int = MAX_BATCH_CHARS,
    progress: ProgressCallback | None = None,
) -> tuple[dict[str, str], TranslationCache]:
    """
    Translate titles, serving what it can from ``cache``.

    Returns the translations keyed by original title and an updated copy of
    the cache. ``cache`` is not modified, so a failing batch leaves the
    caller's state untouched.
    """
    titles, target_lang = validate_request(titles, target_lang)
    translations: dict[str, str] = {}
    updated_cache = copy.deepcopy(cache)

    pending: list[str] = []
    for title in unique_titles(titles):
        hit = cached_translation(updated_cache, title, target_lang)
        if hit is not None:
            translations[title] = hit
        else:
            pending.append(title)

    batches = batch_titles(pending, max_length)
    _debug_log(
        f"{len(translations)} cache hit(s), {len(pending)} title(s) in {len(batches)} batch(es)"
    )
    _emit_progress(progress, "start", batch_count=len(batches), cached=len(translations))
    for batch_index, batch in enumerate(batches, start=1):
        translated = client.translate_batch(batch, target_lang)
        for title, text in zip(batch, translated):
            translations[title] = text
            store_translation(updated_cache, title, target_lang, text)
        _emit_progress(
            progress,
            "batch_done",
            batch_index=batch_index,
            batch_count=len(batches),
            titles=len(batch),
        )
    return translations, updated_cache


class RemoteTranslator:
    """
    Client for a running titlesync ``/api/translate`` endpoint.
    """

    def __init__(self, server_url: str, timeout: float = 120.0) -> None:
        self.server_url = server_url.rstrip("/")
        self.timeout = timeout
        self._session = requests.Session()

    def translate(self, titles: Sequence[str], target_lang: str) -> dict[str, str]:
        titles, target_lang = validate_request(titles, target_lang)
        url = f"{self.server_url}/api/translate"
        _debug_log(f"POST {url} titles={len(titles)} targetLang={target_lang}")
        try:
            resp = self._session.post(
                url,
                json={"titles": titles, "targetLang": target_lang},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise TranslationUnavailableError(f"Failed to contact titlesync at {self.server_url}") from exc
        try:
            payload = resp.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise TranslationError("titlesync returned invalid JSON") from exc
        if resp.status_code == 400:
            detail = payload.get("detail") if isinstance(payload, dict) else None
            raise TranslationInputError(str(detail or "Invalid translation request"))
        if resp.status_code != 200:
            detail = payload.get("detail") if isinstance(payload, dict) else None
            raise TranslationError(str(detail or f"Translation failed ({resp.status_code})"))
        if not isinstance(payload, dict) or not all(
            isinstance(key, str) and isinstance(value, str) for key, value in payload.items()
        ):
            raise TranslationError("titlesync returned an unexpected payload")
        return payload

    def close(self) -> None:
        self._session.close()


__all__ = [
    "BATCH_SEPARATOR",
    "DEFAULT_PROVIDER_URL",
    "MAX_BATCH_CHARS",
    "MyMemoryClient",
    "RemoteTranslator",
    "TranslationError",
    "TranslationInputError",
    "TranslationUnavailableError",
    "batch_titles",
    "default_provider_url",
    "set_debug_logging",
    "translate_titles",
    "unique_titles",
    "validate_request",
]
