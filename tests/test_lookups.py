# Synkuru test scripts
from __future__ import annotations

from typing import Any, Optional

import httpx
import pytest

from providers.mapping import ArmClient, KitsuMappings
from providers._common import to_int
from providers.metadata import CinemetaProvider, FanartProvider, LogoService, pick_logo
from sk_platform.cache import MemoCache
from sk_platform.id_map import Scheme


def _http(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_kitsu_mappings_picks_anilist_row() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/edge/anime/1376/mappings"
        return httpx.Response(200, json={"data": [
            {"attributes": {"externalSite": "myanimelist/anime", "externalId": "1535"}},
            {"attributes": {"externalSite": "anilist/anime", "externalId": "1535"}},
        ]})

    async with _http(handler) as http:
        assert await KitsuMappings(http).anilist_id("1376") == 1535


@pytest.mark.asyncio
async def test_kitsu_failure_is_no_mapping() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    async with _http(handler) as http:
        assert await KitsuMappings(http).anilist_id(1376) is None


@pytest.mark.asyncio
async def test_arm_forward_and_reverse() -> None:
    seen: list[dict[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        params = dict(request.url.params)
        seen.append(params)
        if params["source"] == "imdb":
            return httpx.Response(200, json={"anilist": 199})
        return httpx.Response(200, json={"thetvdb": 81797, "themoviedb": None})

    async with _http(handler) as http:
        arm = ArmClient(http)
        assert await arm.anilist_id("imdb", "tt0245429") == 199
        assert await arm.external_ids(21) == {Scheme.TVDB: 81797}

    assert seen[0] == {"source": "imdb", "id": "tt0245429", "include": "anilist"}
    assert seen[1] == {"source": "anilist", "id": "21", "include": "thetvdb,themoviedb"}


@pytest.mark.asyncio
async def test_arm_404_is_no_mapping() -> None:
    async with _http(lambda r: httpx.Response(404)) as http:
        assert await ArmClient(http).anilist_id(Scheme.TMDB, 1) is None
        assert await ArmClient(http).external_ids(1) == {}


@pytest.mark.asyncio
async def test_cinemeta_title() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/meta/series/tt2560140.json"
        return httpx.Response(200, json={"meta": {"name": "Attack on Titan"}})

    async with _http(handler) as http:
        assert await CinemetaProvider(http).title("tt2560140", "series") == "Attack on Titan"


def test_pick_logo_prefers_english_hd_and_forces_https() -> None:
    hd = [{"lang": "ja", "url": "http://a/ja.png"}, {"lang": "en", "url": "http://a/en.png"}]
    normal = [{"lang": "", "url": "https://a/und.png"}]
    assert pick_logo(hd, normal) == "https://a/en.png"
    assert pick_logo([{"lang": "ja", "url": "https://a/ja.png"}], None) == "https://a/ja.png"
    assert pick_logo(None, []) is None


@pytest.mark.asyncio
async def test_fanart_without_key_skips_the_request() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200, json={})

    async with _http(handler) as http:
        assert await FanartProvider(http, "").logo_url(81797, "tv") is None
    assert calls == 0


class FakeResolver:
    def __init__(self, answers: dict[Scheme, Any]) -> None:
        self.answers = answers
        self.calls: list[tuple] = []

    async def resolve_external_id(self, canonical_id: int, target: Any) -> Optional[Any]:
        self.calls.append((canonical_id, target))
        return self.answers.get(target)


@pytest.mark.asyncio
async def test_logo_service_routes_by_format_and_caches_misses() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        assert request.url.params["api_key"] == "k"
        if request.url.path.endswith("/movies/37854"):
            return httpx.Response(200, json={"movielogo": [{"lang": "en", "url": "https://m.png"}]})
        return httpx.Response(200, json={"hdtvlogo": [{"lang": "en", "url": "https://tv.png"}]})

    resolver = FakeResolver({Scheme.TMDB: 37854, Scheme.TVDB: 81797})
    async with _http(handler) as http:
        svc = LogoService(FanartProvider(http, "k"), resolver, MemoCache(10, 3600))
        assert await svc.logo_for(21, "MOVIE") == "https://m.png"
        assert await svc.logo_for(21, "TV") == "https://tv.png"
        assert await svc.logo_for(21, "TV") == "https://tv.png"

        empty = LogoService(FanartProvider(http, "k"), FakeResolver({}), MemoCache(10, 3600))
        assert await empty.logo_for(5, "TV") is None
        assert await empty.logo_for(5, "TV") is None
        assert len(empty.resolver.calls) == 1

    assert paths == ["/v3/movies/37854", "/v3/tv/81797"]


class BrokenResolver(FakeResolver):
    async def resolve_external_id(self, canonical_id: int, target: Any) -> Optional[Any]:
        self.calls.append((canonical_id, target))
        raise RuntimeError("database is locked")


@pytest.mark.asyncio
async def test_logo_service_treats_lookup_failure_as_no_logo() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("fanart must not be called")

    resolver = BrokenResolver({})
    async with _http(handler) as http:
        svc = LogoService(FanartProvider(http, "k"), resolver, MemoCache(10, 3600))
        assert await svc.logo_for(21, "TV") is None
        assert await svc.logo_for(21, "TV") is None
    assert len(resolver.calls) == 1


def test_to_int_is_lenient() -> None:
    assert to_int("12") == 12
    assert to_int(" 12.0 ") == 12
    assert to_int(7) == 7
    assert to_int(True) is None
    assert to_int("") is None
    assert to_int("abc") is None
    assert to_int("inf") is None
