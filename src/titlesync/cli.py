from __future__ import annotations

import argparse
import json
import socket
import sys
from importlib import metadata
from pathlib import Path
from typing import Mapping

import tomllib
import uvicorn
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeElapsedColumn
from rich.table import Table
from rich.text import Text

from .cache import CACHE_FILE_ENV, default_cache_path, load_cache, save_cache
from .display_names import TitleNotFoundError, index_payload
from .document import ParseError
from .logging_utils import build_uvicorn_log_config
from .session import DocumentSession
from .translate import (
    MAX_BATCH_CHARS,
    PROVIDER_URL_ENV,
    MyMemoryClient,
    RemoteTranslator,
    TranslationError,
    TranslationInputError,
    TranslationUnavailableError,
    default_provider_url,
    set_debug_logging,
    translate_titles,
)
from .web import WebConfig, create_app

SUBCOMMANDS = ("list", "fill", "rename", "translate", "web")


def _read_local_version() -> str | None:
    try:
        pyproject_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
    except IndexError:  # pragma: no cover - defensive
        return None
    try:
        with pyproject_path.open("rb") as fh:
            data = tomllib.load(fh)
    except (FileNotFoundError, tomllib.TOMLDecodeError):
        return None
    return data.get("project", {}).get("version")


try:
    __version__ = metadata.version("titlesync")
except metadata.PackageNotFoundError:
    __version__ = _read_local_version() or "0.0.0+unknown"


def _add_version_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"titlesync {__version__}",
    )


def _add_document_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("document", help="Path to the JSON document.")
    parser.add_argument(
        "-o",
        "--output",
        help="Write the edited document here instead of overwriting the input.",
    )


def _add_translation_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--cache-file",
        help=f"Translation cache file (default: ${CACHE_FILE_ENV} or ./translation-cache.json).",
    )
    parser.add_argument(
        "--provider-url",
        help=f"Translation provider endpoint (default: ${PROVIDER_URL_ENV} or MyMemory).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Seconds to wait for each provider request (default: 30).",
    )
    parser.add_argument(
        "--max-batch-chars",
        type=int,
        default=MAX_BATCH_CHARS,
        help="Character budget per provider request (default: %(default)s).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Print provider requests and cache statistics.",
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description=(
            "Keep displayName fields in sync with title fields in JSON documents. "
            f"Subcommands: {', '.join(SUBCOMMANDS)}."
        ),
    )
    _add_version_flag(ap)
    return ap


def build_list_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="List every title and its display name.")
    _add_version_flag(ap)
    ap.add_argument("document", help="Path to the JSON document.")
    ap.add_argument(
        "--json",
        action="store_true",
        help="Print the index as JSON instead of a table.",
    )
    return ap


def build_fill_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Add a displayName to every titled entry that lacks one and trim existing ones.",
    )
    _add_version_flag(ap)
    _add_document_args(ap)
    return ap


def build_rename_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Change the display name of one title.")
    _add_version_flag(ap)
    _add_document_args(ap)
    ap.add_argument("title", help="Title whose display name changes.")
    ap.add_argument("display_name", help="New display name.")
    ap.add_argument(
        "--match",
        choices=["value", "title"],
        default="value",
        help=(
            "'value' (default) rewrites every entry sharing the old display name; "
            "'title' only rewrites entries carrying this title."
        ),
    )
    return ap


def build_translate_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Translate display names and merge them into the document.")
    _add_version_flag(ap)
    _add_document_args(ap)
    ap.add_argument(
        "-l",
        "--lang",
        required=True,
        help="Target language code, e.g. fr or de.",
    )
    ap.add_argument(
        "--server",
        help="Base URL of a running `titlesync web` instance to translate through.",
    )
    ap.add_argument(
        "--fill",
        action="store_true",
        help="Fill missing display names before translating so every title is included.",
    )
    _add_translation_config_args(ap)
    return ap


def build_web_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Serve the title translation endpoint.")
    _add_version_flag(ap)
    ap.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface for the web server (default: 127.0.0.1).",
    )
    ap.add_argument(
        "--port",
        type=int,
        default=5173,
        help="Port for the web server (default: 5173).",
    )
    _add_translation_config_args(ap)
    return ap


def _web_config_from_args(args: argparse.Namespace) -> WebConfig:
    cache_path = Path(args.cache_file).expanduser() if args.cache_file else default_cache_path()
    return WebConfig(
        cache_path=cache_path,
        provider_url=args.provider_url or default_provider_url(),
        timeout=args.timeout,
        max_batch_chars=args.max_batch_chars,
    )


def _open_session(path_text: str) -> DocumentSession:
    path = Path(path_text).expanduser()
    if not path.is_file():
        raise SystemExit(f"Document not found: {path}")
    try:
        return DocumentSession.from_file(path)
    except ParseError as exc:
        raise SystemExit(f"Invalid JSON in {path}: {exc}") from exc


def _save_session(session: DocumentSession, output: str | None) -> Path:
    target = Path(output).expanduser() if output else None
    return session.save(target)


def _run_list(args: argparse.Namespace) -> int:
    session = _open_session(args.document)
    if args.json:
        print(json.dumps(index_payload(session.index), ensure_ascii=False, indent=2))
        return 0
    console = Console()
    if not session.index:
        console.print("No titled entries with a display name.")
        return 0
    table = Table("Title", "Display name")
    for title, entry in session.index.items():
        table.add_row(Text(title), Text(entry.display_name))
    console.print(table)
    return 0


def _run_fill(args: argparse.Namespace) -> int:
    session = _open_session(args.document)
    before = len(session.index)
    session.fill_missing()
    path = _save_session(session, args.output)
    added = len(session.index) - before
    print(f"Filled {added} new title(s); {len(session.index)} indexed. Saved {path}")
    return 0


def _run_rename(args: argparse.Namespace) -> int:
    session = _open_session(args.document)
    try:
        rewritten = session.rename(args.title, args.display_name, match=args.match)
    except TitleNotFoundError as exc:
        raise SystemExit(f"Title not found: {args.title}") from exc
    path = _save_session(session, args.output)
    print(f"Updated {rewritten} entr{'y' if rewritten == 1 else 'ies'}. Saved {path}")
    return 0


class _BatchProgress:
    def __init__(self, enabled: bool) -> None:
        self.console = Console(stderr=True)
        self.enabled = enabled and self.console.is_terminal
        self.progress: Progress | None = None
        self.task = None

    def __call__(self, event: Mapping[str, object]) -> None:
        if not self.enabled:
            return
        if event.get("event") == "start":
            batch_count = event.get("batch_count")
            if not isinstance(batch_count, int) or batch_count <= 0:
                return
            self.progress = Progress(
                TextColumn("{task.description}"),
                BarColumn(bar_width=None),
                TaskProgressColumn(),
                TimeElapsedColumn(),
                console=self.console,
                transient=True,
            )
            self.progress.start()
            self.task = self.progress.add_task("Translating", total=batch_count)
        elif event.get("event") == "batch_done" and self.progress is not None:
            self.progress.advance(self.task)

    def close(self) -> None:
        if self.progress is not None:
            self.progress.stop()
            self.progress = None


def _local_translator(args: argparse.Namespace):
    config = _web_config_from_args(args)

    def translate(titles: list[str], target_lang: str) -> dict[str, str]:
        cache = load_cache(config.cache_path)
        client = MyMemoryClient(config.provider_url, timeout=config.timeout)
        progress = _BatchProgress(enabled=True)
        try:
            translations, updated_cache = translate_titles(
                titles,
                target_lang,
                cache,
                client,
                max_length=config.max_batch_chars,
                progress=progress,
            )
        finally:
            progress.close()
            client.close()
        save_cache(config.cache_path, updated_cache)
        return translations

    return translate


def _remote_translator(server_url: str):
    def translate(titles: list[str], target_lang: str) -> dict[str, str]:
        remote = RemoteTranslator(server_url)
        try:
            return remote.translate(titles, target_lang)
        finally:
            remote.close()

    return translate


def _run_translate(args: argparse.Namespace) -> int:
    set_debug_logging(bool(getattr(args, "debug", False)))
    session = _open_session(args.document)
    if args.fill:
        session.fill_missing()
    translator = (
        _remote_translator(args.server)
        if args.server
        else _local_translator(args)
    )
    try:
        merged = session.translate(args.lang, translator)
    except TranslationInputError as exc:
        raise SystemExit(str(exc)) from exc
    except (TranslationError, TranslationUnavailableError) as exc:
        raise SystemExit(f"Translation failed: {exc}") from exc
    path = _save_session(session, args.output)
    print(f"Translated {merged} entr{'y' if merged == 1 else 'ies'} to {args.lang}. Saved {path}")
    return 0


def _resolve_local_ip(host: str) -> str:
    if host not in {"", "0.0.0.0"}:
        return host
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            return sock.getsockname()[0]
    except OSError:
        return "127.0.0.1"


def _run_web(args: argparse.Namespace) -> None:
    set_debug_logging(bool(getattr(args, "debug", False)))
    config = _web_config_from_args(args)
    app = create_app(config)
    url = f"http://{_resolve_local_ip(args.host)}:{args.port}/api/translate"
    print(f"Translation cache: {config.cache_path}")
    print(f"Endpoint: {url}")
    print("Press Ctrl+C to stop.\n")
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level="info",
        log_config=build_uvicorn_log_config(),
    )


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    if argv and argv[0] == "list":
        return _run_list(build_list_parser().parse_args(argv[1:]))
    if argv and argv[0] == "fill":
        return _run_fill(build_fill_parser().parse_args(argv[1:]))
    if argv and argv[0] == "rename":
        return _run_rename(build_rename_parser().parse_args(argv[1:]))
    if argv and argv[0] == "translate":
        return _run_translate(build_translate_parser().parse_args(argv[1:]))
    if argv and argv[0] == "web":
        _run_web(build_web_parser().parse_args(argv[1:]))
        return 0

    parser = build_parser()
    if not argv:
        parser.print_help()
        return 0
    parser.parse_args(argv)
    raise SystemExit(f"Unknown command: {argv[0]}. Choose one of: {', '.join(SUBCOMMANDS)}.")


if __name__ == "__main__":
    raise SystemExit(main())
