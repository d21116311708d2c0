# Synkuru test scripts
from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from providers.sync._mod_ANILIST import ANILISTClient
from providers.sync.anilist import ListStatus
from sk_platform.cache import QueryCache
from sk_platform.errors import NotFoundError
from sk_platform.gateway import RequestGateway
from sk_platform.limiter import Limiter


async def _no_sleep(seconds: float) -> None:
    await asyncio.sleep(0)


class Upstream:
    """Scripted AniList endpoint keyed by a substring of the query."""

    def __init__(self, routes: dict[str, httpx.Response]) -> None:
        self.routes = routes
        self.requests: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        body["auth"] = request.headers.get("Authorization")
        self.requests.append(body)
        for needle, resp in self.routes.items():
            if needle in body["query"]:
                return resp
        return httpx.Response(200, json={"data": {}})


def _client(http: httpx.AsyncClient) -> ANILISTClient:
    gw = RequestGateway(http, Limiter(min_time=0, sleep=_no_sleep), endpoint="https://anilist.test/graphql")
    cache = QueryCache()
    gw.add_mutation_listener(cache.clear)
    return ANILISTClient(gw, cache)


@pytest.mark.asyncio
async def test_viewer_is_cached_per_token() -> None:
    up = Upstream({"Viewer": httpx.Response(200, json={"data": {"Viewer": {"id": 42}}})})
    async with httpx.AsyncClient(transport=httpx.MockTransport(up)) as http:
        al = _client(http)
        assert await al.viewer("tok-a") == {"id": 42}
        assert await al.viewer("tok-a") == {"id": 42}
        await al.viewer("tok-b")
    assert [r["auth"] for r in up.requests] == ["Bearer tok-a", "Bearer tok-b"]


@pytest.mark.asyncio
async def test_media_list_entry_is_parsed_and_not_cached() -> None:
    payload = {"data": {"Media": {"id": 21, "episodes": 12, "format": "TV",
                                  "mediaListEntry": {"id": 9, "status": "CURRENT", "progress": 5}}}}
    up = Upstream({"mediaListEntry": httpx.Response(200, json=payload)})
    async with httpx.AsyncClient(transport=httpx.MockTransport(up)) as http:
        al = _client(http)
        state = await al.media_list_entry(21, "tok")
        await al.media_list_entry(21, "tok")

    assert state.progress == 5
    assert state.status is ListStatus.CURRENT
    assert state.total_episodes == 12
    assert not state.is_movie
    assert len(up.requests) == 2
    assert up.requests[0]["variables"] == {"mediaId": 21, "type": "ANIME"}


@pytest.mark.asyncio
async def test_media_without_list_entry() -> None:
    payload = {"data": {"Media": {"id": 199, "episodes": 1, "format": "MOVIE", "mediaListEntry": None}}}
    up = Upstream({"mediaListEntry": httpx.Response(200, json=payload)})
    async with httpx.AsyncClient(transport=httpx.MockTransport(up)) as http:
        state = await _client(http).media_list_entry(199, "tok")
    assert state.progress == 0 and state.status is None and state.is_movie


@pytest.mark.asyncio
async def test_media_not_found_raises_not_found() -> None:
    body = {"errors": [{"message": "Not Found.", "status": 404}], "data": {"Media": None}}
    up = Upstream({"mediaListEntry": httpx.Response(404, json=body)})
    async with httpx.AsyncClient(transport=httpx.MockTransport(up)) as http:
        with pytest.raises(NotFoundError):
            await _client(http).media_list_entry(1, "tok")


@pytest.mark.asyncio
async def test_save_progress_sends_mutation_and_clears_query_cache() -> None:
    up = Upstream({
        "Viewer": httpx.Response(200, json={"data": {"Viewer": {"id": 42}}}),
        "SaveMediaListEntry": httpx.Response(
            200, json={"data": {"SaveMediaListEntry": {"id": 9, "status": "COMPLETED", "progress": 12}}}),
    })
    async with httpx.AsyncClient(transport=httpx.MockTransport(up)) as http:
        al = _client(http)
        await al.viewer("tok")
        assert len(al.cache) == 1
        saved = await al.save_progress(21, 12, ListStatus.COMPLETED, "tok")
        assert len(al.cache) == 0

    assert saved == {"id": 9, "status": "COMPLETED", "progress": 12}
    assert up.requests[-1]["variables"] == {"mediaId": 21, "progress": 12, "status": "COMPLETED"}


@pytest.mark.asyncio
async def test_search_by_name_returns_first_hit_or_none() -> None:
    hit = {"data": {"Page": {"media": [{"id": 20958, "episodes": 12}]}}}
    up = Upstream({"search:": httpx.Response(200, json=hit)})
    async with httpx.AsyncClient(transport=httpx.MockTransport(up)) as http:
        al = _client(http)
        assert await al.search_by_name("Attack on Titan 2", "tok") == {"id": 20958, "episodes": 12}

    empty = Upstream({"search:": httpx.Response(200, json={"data": {"Page": {"media": []}}})})
    async with httpx.AsyncClient(transport=httpx.MockTransport(empty)) as http:
        assert await _client(http).search_by_name("Nothing", "tok") is None
