from __future__ import annotations

import logging

from titlesync.logging_utils import (
    MAX_LOGGED_QUERY_VALUE,
    Utf8AccessFormatter,
    build_uvicorn_log_config,
    format_request_path,
)


def test_format_request_path_decodes_titles() -> None:
    path = "/api/translate?titles=Caf%C3%A9,Home&targetLang=fr"
    assert format_request_path(path) == "/api/translate?titles=Café,Home&targetLang=fr"


def test_format_request_path_shortens_long_values() -> None:
    titles = ",".join(f"title{idx}" for idx in range(40))
    formatted = format_request_path(f"/api/translate?titles={titles}")
    value = formatted.split("titles=", 1)[1]
    assert value.startswith("title0,title1")
    assert len(value) < len(titles)
    assert value.endswith(f"(+{len(titles) - MAX_LOGGED_QUERY_VALUE + 1})")


def test_access_formatter_rewrites_path() -> None:
    formatter = Utf8AccessFormatter(fmt="%(request_line)s %(status_code)s", use_colors=False)
    record = logging.LogRecord(
        name="uvicorn.access",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg='%s - "%s %s HTTP/%s" %d',
        args=("127.0.0.1:5000", "GET", "/api/translate?titles=%C3%89t%C3%A9", "1.1", 200),
        exc_info=None,
    )
    assert formatter.format(record) == "GET /api/translate?titles=Été HTTP/1.1 200 OK"


def test_log_config_points_at_formatter() -> None:
    config = build_uvicorn_log_config()
    assert config["formatters"]["access"]["()"] == "titlesync.logging_utils.Utf8AccessFormatter"
