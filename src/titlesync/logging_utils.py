from __future__ import annotations

from copy import copy, deepcopy
from typing import Any
from urllib.parse import parse_qsl, unquote, urlsplit

from uvicorn.config import LOGGING_CONFIG
from uvicorn.logging import AccessFormatter as UvicornAccessFormatter

MAX_LOGGED_QUERY_VALUE = 80


def _shorten(value: str, limit: int = MAX_LOGGED_QUERY_VALUE) -> str:
    if len(value) <= limit:
        return value
    return f"{value[: limit - 1]}…(+{len(value) - limit + 1})"


def format_request_path(full_path: str) -> str:
    """Decode a request path for logging and shorten long query values."""
    try:
        parts = urlsplit(full_path)
        path = unquote(parts.path, encoding="utf-8", errors="replace")
        if not parts.query:
            return path
        pairs = parse_qsl(parts.query, keep_blank_values=True)
        query = "&".join(f"{key}={_shorten(value)}" for key, value in pairs)
        return f"{path}?{query}"
    except ValueError:
        return full_path


class Utf8AccessFormatter(UvicornAccessFormatter):
    """Uvicorn access formatter that prints readable translation requests."""

    def formatMessage(self, record):  # type: ignore[override]
        try:
            client_addr, method, full_path, http_version, status_code = record.args
        except (TypeError, ValueError):
            return super().formatMessage(record)
        if isinstance(full_path, str):
            full_path = format_request_path(full_path)
        new_record = copy(record)
        new_record.args = (client_addr, method, full_path, http_version, status_code)
        return super().formatMessage(new_record)


def build_uvicorn_log_config() -> dict[str, Any]:
    config = deepcopy(LOGGING_CONFIG)
    formatter = config.get("formatters", {}).get("access")
    if isinstance(formatter, dict):
        formatter["()"] = "titlesync.logging_utils.Utf8AccessFormatter"
    return config
