from __future__ import annotations

import asyncio
import json

import pytest
from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError

from titlesync.cache import load_cache
from titlesync.translate import TranslationUnavailableError
from titlesync.web import WebConfig, create_app


class _FakeClient:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.batches: list[tuple[list[str], str]] = []

    def translate_batch(self, titles, target_lang):
        if self.fail:
            raise TranslationUnavailableError("provider down")
        self.batches.append((list(titles), target_lang))
        return [f"{title}-{target_lang}" for title in titles]

    def close(self) -> None:
        pass


def _find_route(app, path: str, method: str):
    method = method.upper()
    for route in app.router.routes:
        if getattr(route, "path", None) == path and method in getattr(route, "methods", set()):
            return route.endpoint
    raise RuntimeError(f"Route {method} {path} not found")


def _app(tmp_path, client: _FakeClient):
    config = WebConfig(cache_path=tmp_path / "translation-cache.json")
    return create_app(config, client=client), config


def test_post_translate_returns_mapping_and_writes_cache(tmp_path) -> None:
    client = _FakeClient()
    app, config = _app(tmp_path, client)
    route = _find_route(app, "/api/translate", "POST")
    response = asyncio.run(route({"titles": ["Home", "Sun", "Home"], "targetLang": "fr"}))
    assert response.status_code == 200
    assert json.loads(response.body) == {"Home": "Home-fr", "Sun": "Sun-fr"}
    assert client.batches == [(["Home", "Sun"], "fr")]
    assert load_cache(config.cache_path) == {"Home": {"fr": "Home-fr"}, "Sun": {"fr": "Sun-fr"}}


def test_second_request_is_served_from_cache(tmp_path) -> None:
    client = _FakeClient()
    app, _ = _app(tmp_path, client)
    route = _find_route(app, "/api/translate", "POST")
    asyncio.run(route({"titles": ["Home"], "targetLang": "fr"}))
    response = asyncio.run(route({"titles": ["Home", "Moon"], "targetLang": "fr"}))
    assert json.loads(response.body) == {"Home": "Home-fr", "Moon": "Moon-fr"}
    assert client.batches == [(["Home"], "fr"), (["Moon"], "fr")]


def test_get_translate_splits_comma_separated_titles(tmp_path) -> None:
    client = _FakeClient()
    app, _ = _app(tmp_path, client)
    route = _find_route(app, "/api/translate", "GET")
    response = asyncio.run(route(titles="Home,Sun,", target_lang="de"))
    assert json.loads(response.body) == {"Home": "Home-de", "Sun": "Sun-de"}


@pytest.mark.parametrize(
    "payload",
    [
        {"targetLang": "fr"},
        {"titles": [], "targetLang": "fr"},
        {"titles": "Home", "targetLang": "fr"},
        {"titles": ["Home"]},
        {"titles": ["Home"], "targetLang": "  "},
    ],
)
def test_post_translate_rejects_invalid_input(tmp_path, payload) -> None:
    client = _FakeClient()
    app, config = _app(tmp_path, client)
    route = _find_route(app, "/api/translate", "POST")
    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(route(payload))
    assert excinfo.value.status_code == 400
    assert client.batches == []
    assert not config.cache_path.exists()


@pytest.mark.parametrize("payload", [None, ["Home"], "Home", 42])
def test_post_translate_rejects_missing_or_non_object_body(tmp_path, payload) -> None:
    client = _FakeClient()
    app, config = _app(tmp_path, client)
    route = _find_route(app, "/api/translate", "POST")
    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(route(payload))
    assert excinfo.value.status_code == 400
    assert excinfo.value.detail == "Invalid payload."
    assert client.batches == []
    assert not config.cache_path.exists()


def test_unparseable_body_is_400(tmp_path) -> None:
    app, _ = _app(tmp_path, _FakeClient())
    handler = app.exception_handlers[RequestValidationError]
    response = asyncio.run(handler(None, RequestValidationError([{"type": "json_invalid"}])))
    assert response.status_code == 400
    assert json.loads(response.body) == {"detail": "Invalid payload."}

def test_get_translate_rejects_missing_params(tmp_path) -> None:
    app, _ = _app(tmp_path, _FakeClient())
    route = _find_route(app, "/api/translate", "GET")
    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(route(titles=None, target_lang="fr"))
    assert excinfo.value.status_code == 400
    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(route(titles="Home", target_lang=None))
    assert excinfo.value.status_code == 400


def test_upstream_failure_is_500_and_keeps_cache(tmp_path) -> None:
    cache_path = tmp_path / "translation-cache.json"
    cache_path.write_text(json.dumps({"Home": {"fr": "Accueil"}}), encoding="utf-8")
    app, config = _app(tmp_path, _FakeClient(fail=True))
    route = _find_route(app, "/api/translate", "POST")
    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(route({"titles": ["Home", "Sun"], "targetLang": "fr"}))
    assert excinfo.value.status_code == 500
    assert excinfo.value.detail == "Translation failed"
    assert load_cache(config.cache_path) == {"Home": {"fr": "Accueil"}}
