from __future__ import annotations

import json
import os
import warnings
from pathlib import Path

CACHE_FILE_ENV = "TITLESYNC_CACHE_FILE"
DEFAULT_CACHE_FILENAME = "translation-cache.json"

TranslationCache = dict[str, dict[str, str]]


def default_cache_path() -> Path:
    override = os.environ.get(CACHE_FILE_ENV)
    if override:
        return Path(override).expanduser()
    return Path.cwd() / DEFAULT_CACHE_FILENAME


def _coerce_cache(raw: object) -> TranslationCache:
    cache: TranslationCache = {}
    if not isinstance(raw, dict):
        return cache
    for title, languages in raw.items():
        if not isinstance(title, str) or not isinstance(languages, dict):
            continue
        entries = {
            lang: text
            for lang, text in languages.items()
            if isinstance(lang, str) and isinstance(text, str)
        }
        if entries:
            cache[title] = entries
    return cache


def load_cache(path: Path) -> TranslationCache:
    """
    Read the whole translation cache.

    A missing file is an empty cache. An unreadable or malformed file is also
    treated as empty, with a warning.
    """
    if not path.exists():
        return {}
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        warnings.warn(
            f"Failed to load translation cache {path}; starting with an empty cache ({exc}).",
            RuntimeWarning,
            stacklevel=2,
        )
        return {}
    if not isinstance(raw, dict):
        warnings.warn(
            f"Translation cache {path} is not a JSON object; starting with an empty cache.",
            RuntimeWarning,
            stacklevel=2,
        )
        return {}
    return _coerce_cache(raw)


def save_cache(path: Path, cache: TranslationCache) -> bool:
    """
    Rewrite the whole cache file. Returns False when it could not be written.

    Concurrent writers to the same file are not coordinated; the last write
    wins.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(cache, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
    except OSError as exc:
        warnings.warn(
            f"Failed to save translation cache {path}: {exc}",
            RuntimeWarning,
            stacklevel=2,
        )
        return False
    return True


def cached_translation(cache: TranslationCache, title: str, target_lang: str) -> str | None:
    return cache.get(title, {}).get(target_lang)


def store_translation(cache: TranslationCache, title: str, target_lang: str, text: str) -> None:
    cache.setdefault(title, {})[target_lang] = text


__all__ = [
    "CACHE_FILE_ENV",
    "DEFAULT_CACHE_FILENAME",
    "TranslationCache",
    "cached_translation",
    "default_cache_path",
    "load_cache",
    "save_cache",
    "store_translation",
]
