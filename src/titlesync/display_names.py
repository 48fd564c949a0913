from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Mapping

from .document import (
    DISPLAY_NAME_KEY,
    JSONValue,
    display_name_keys,
    find_display_name_key,
    find_title_key,
    iter_objects,
)

MatchMode = Literal["value", "title"]


class TitleNotFoundError(KeyError):
    """Raised when a title has no entry in the display-name index."""


@dataclass
class DisplayNameEntry:
    title: str
    display_name: str

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "displayName": self.display_name}


DisplayNameIndex = dict[str, DisplayNameEntry]


def _title_of(obj: dict[str, JSONValue]) -> str | None:
    key = find_title_key(obj)
    if key is None:
        return None
    value = obj[key]
    return value if isinstance(value, str) else None


def extract(root: JSONValue) -> DisplayNameIndex:
    """
    Build the title -> display name index from a document.

    Objects are visited in pre-order, so when the same title appears on
    several nodes the last one visited provides the display name.
    """
    index: DisplayNameIndex = {}
    for obj in iter_objects(root):
        title = _title_of(obj)
        if title is None:
            continue
        display_key = find_display_name_key(obj)
        if display_key is None:
            continue
        display_name = obj[display_key]
        if isinstance(display_name, str):
            index[title] = DisplayNameEntry(title, display_name)
    return index


def update_display_name(
    index: DisplayNameIndex,
    tree: JSONValue,
    title: str,
    new_value: str,
    *,
    match: MatchMode = "value",
) -> int:
    """
    Rename the display name of ``title`` in both the index and the document.

    With ``match="value"`` every object whose display name equals the old
    value is rewritten, including objects that belong to other titles sharing
    that string. ``match="title"`` limits the rewrite to objects carrying
    ``title``. Returns the number of rewritten nodes.
    """
    entry = index.get(title)
    if entry is None:
        raise TitleNotFoundError(title)
    if match not in ("value", "title"):
        raise ValueError(f"match must be 'value' or 'title', got {match!r}")
    old_value = entry.display_name
    entry.display_name = new_value

    rewritten = 0
    for obj in iter_objects(tree):
        display_key = find_display_name_key(obj)
        if display_key is None:
            continue
        if match == "title":
            if _title_of(obj) != title:
                continue
        elif obj[display_key] != old_value:
            continue
        obj[display_key] = new_value
        rewritten += 1
    return rewritten


def _fill_value(index: DisplayNameIndex, value: JSONValue) -> JSONValue:
    if isinstance(value, list):
        return [_fill_value(index, item) for item in value]
    if not isinstance(value, dict):
        return value

    obj = dict(value)
    display_key = find_display_name_key(obj)
    if display_key is not None:
        current = obj[display_key]
        if isinstance(current, str):
            obj[display_key] = current.strip()
    else:
        title = _title_of(obj)
        if title is not None:
            trimmed = title.strip()
            known = index.get(trimmed)
            if known is not None:
                obj[DISPLAY_NAME_KEY] = known.display_name.strip()
            else:
                obj[DISPLAY_NAME_KEY] = trimmed
                index[trimmed] = DisplayNameEntry(trimmed, trimmed)

    for key in obj:
        obj[key] = _fill_value(index, obj[key])
    return obj


def fill_missing(index: DisplayNameIndex, tree: JSONValue) -> JSONValue:
    """
    Return a copy of ``tree`` where every titled object has a display name.

    Existing display names are whitespace-trimmed. Titles missing from the
    index are registered with themselves as display name. ``tree`` itself is
    left untouched; ``index`` is updated in place.
    """
    return _fill_value(index, tree)


def merge_translations(
    index: DisplayNameIndex,
    tree: JSONValue,
    translations: Mapping[str, str],
) -> int:
    """
    Write translated display names into ``tree`` and re-derive ``index``.

    Returns the number of objects that received a translation.
    """
    merged = 0
    for obj in iter_objects(tree):
        title = _title_of(obj)
        if title is not None and title in translations:
            for key in display_name_keys(obj):
                del obj[key]
            obj[DISPLAY_NAME_KEY] = str(translations[title]).strip()
            merged += 1
            continue
        display_key = find_display_name_key(obj)
        if display_key is not None and isinstance(obj[display_key], str):
            obj[display_key] = obj[display_key].strip()

    index.clear()
    index.update(extract(tree))
    return merged


def index_payload(index: DisplayNameIndex) -> dict[str, dict[str, str]]:
    return {title: entry.to_dict() for title, entry in index.items()}


__all__ = [
    "DisplayNameEntry",
    "DisplayNameIndex",
    "MatchMode",
    "TitleNotFoundError",
    "extract",
    "fill_missing",
    "index_payload",
    "merge_translations",
    "update_display_name",
]
