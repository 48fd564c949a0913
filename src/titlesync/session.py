from __future__ import annotations

import copy
from pathlib import Path
from typing import Callable, Mapping

from .display_names import (
    DisplayNameIndex,
    MatchMode,
    extract,
    fill_missing,
    merge_translations,
    update_display_name,
)
from .document import JSONValue, load_document, parse, save_document, serialize
from .translate import TranslationInputError

Translator = Callable[[list[str], str], Mapping[str, str]]


class DocumentSession:
    """
    Editable state for one JSON document.

    The tree is the source of truth; ``index`` is re-derived from it after
    every load, gap-fill and translation merge. A failed load or translation
    leaves both untouched.
    """

    def __init__(self, tree: JSONValue = None) -> None:
        self.tree: JSONValue = tree
        self.index: DisplayNameIndex = extract(tree)
        self.path: Path | None = None

    @classmethod
    def from_text(cls, text: str) -> "DocumentSession":
        return cls(parse(text))

    @classmethod
    def from_file(cls, path: Path) -> "DocumentSession":
        session = cls(load_document(path))
        session.path = path
        return session

    def load_text(self, text: str) -> None:
        tree = parse(text)
        self.tree = tree
        self.index = extract(tree)

    def to_text(self) -> str:
        return serialize(self.tree)

    def save(self, path: Path | None = None) -> Path:
        target = path or self.path
        if target is None:
            raise ValueError("No output path given for an unsaved document.")
        save_document(target, self.tree)
        self.path = target
        return target

    def titles(self) -> list[str]:
        return list(self.index)

    def fill_missing(self) -> None:
        self.tree = fill_missing(self.index, self.tree)
        self.index = extract(self.tree)

    def rename(self, title: str, display_name: str, *, match: MatchMode = "value") -> int:
        return update_display_name(self.index, self.tree, title, display_name, match=match)

    def apply_translations(self, translations: Mapping[str, str]) -> int:
        return merge_translations(self.index, self.tree, translations)

    def translate(self, target_lang: str, translator: Translator) -> int:
        """
        Translate every indexed title and merge the result.

        ``translator`` receives the distinct titles and the language and must
        return the complete mapping; if it raises, nothing is merged.
        """
        # index keys are raw title values, so "Sun " is sent and cached untrimmed
        titles = self.titles()
        if not titles:
            raise TranslationInputError("Document has no titled entries to translate.")
        if not target_lang or not target_lang.strip():
            raise TranslationInputError("targetLang is required")
        translations = dict(translator(titles, target_lang.strip()))
        tree = copy.deepcopy(self.tree)
        index: DisplayNameIndex = {}
        merged = merge_translations(index, tree, translations)
        self.tree = tree
        self.index = index
        return merged


__all__ = ["DocumentSession", "Translator"]
