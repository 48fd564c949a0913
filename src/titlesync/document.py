from __future__ import annotations

import json
from pathlib import Path
from typing import Iterator, Union

JSONValue = Union[None, bool, int, float, str, list["JSONValue"], dict[str, "JSONValue"]]

TITLE_KEY = "title"
DISPLAY_NAME_KEY = "displayName"
_DISPLAY_NAME_MATCH = DISPLAY_NAME_KEY.lower()


class ParseError(ValueError):
    """Raised when document text is not valid JSON."""

    def __init__(self, message: str, lineno: int | None = None, colno: int | None = None) -> None:
        super().__init__(message)
        self.lineno = lineno
        self.colno = colno


def _reject_constant(name: str) -> float:
    raise ValueError(f"Invalid JSON constant: {name}")


def parse(text: str) -> JSONValue:
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as exc:
        raise ParseError(str(exc), exc.lineno, exc.colno) from exc
    except ValueError as exc:
        raise ParseError(str(exc)) from exc


def serialize(value: JSONValue, indent: int = 2) -> str:
    return json.dumps(value, ensure_ascii=False, indent=indent)


def load_document(path: Path) -> JSONValue:
    return parse(path.read_text(encoding="utf-8"))


def save_document(path: Path, value: JSONValue) -> None:
    path.write_text(serialize(value) + "\n", encoding="utf-8")


def find_title_key(obj: dict[str, JSONValue]) -> str | None:
    """Return the first key (insertion order) equal to ``title`` ignoring case."""
    for key in obj:
        if key.lower() == TITLE_KEY:
            return key
    return None


def find_display_name_key(obj: dict[str, JSONValue]) -> str | None:
    for key in obj:
        if key.lower() == _DISPLAY_NAME_MATCH:
            return key
    return None


def display_name_keys(obj: dict[str, JSONValue]) -> list[str]:
    return [key for key in obj if key.lower() == _DISPLAY_NAME_MATCH]


def iter_objects(value: JSONValue) -> Iterator[dict[str, JSONValue]]:
    """Yield every object node in depth-first pre-order."""
    if isinstance(value, dict):
        yield value
        for child in value.values():
            yield from iter_objects(child)
    elif isinstance(value, list):
        for item in value:
            yield from iter_objects(item)


__all__ = [
    "DISPLAY_NAME_KEY",
    "JSONValue",
    "ParseError",
    "TITLE_KEY",
    "display_name_keys",
    "find_display_name_key",
    "find_title_key",
    "iter_objects",
    "load_document",
    "parse",
    "save_document",
    "serialize",
]
