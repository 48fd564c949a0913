from .display_names import (
    DisplayNameEntry,
    DisplayNameIndex,
    TitleNotFoundError,
    extract,
    fill_missing,
    merge_translations,
    update_display_name,
)
from .document import ParseError, parse, serialize
from .session import DocumentSession
from .translate import (
    MyMemoryClient,
    TranslationError,
    TranslationInputError,
    TranslationUnavailableError,
    batch_titles,
    translate_titles,
)

__all__ = [
    "DisplayNameEntry",
    "DisplayNameIndex",
    "DocumentSession",
    "MyMemoryClient",
    "ParseError",
    "TitleNotFoundError",
    "TranslationError",
    "TranslationInputError",
    "TranslationUnavailableError",
    "batch_titles",
    "extract",
    "fill_missing",
    "merge_translations",
    "parse",
    "serialize",
    "translate_titles",
    "update_display_name",
]
