# providers/metadata/_meta_FANART.py
# Synkuru - fanart.tv logo provider
# Copyright (c) 2025-2026 Synkuru
from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

import httpx

from sk_platform._log import log as sk_log
from sk_platform.cache import MemoCache
from sk_platform.id_map import ExternalId, Scheme
from .._common import fetch_json

PREFERRED_LANGS = ("en", "und")


def _log(level: str, msg: str, **fields: Any) -> None:
    sk_log("FANART", "logo", level, msg, **fields)


def pick_logo(hd: Iterable[Mapping[str, Any]] | None, normal: Iterable[Mapping[str, Any]] | None) -> str | None:
    """First English or unlabelled logo, HD list first; https only."""
    merged = [e for e in [*(hd or []), *(normal or [])] if isinstance(e, Mapping)]
    if not merged:
        return None
    preferred = next((e for e in merged if not e.get("lang") or e.get("lang") in PREFERRED_LANGS), None)
    logo = preferred or merged[0]
    url = str(logo.get("url") or "").strip()
    if not url:
        return None
    if url.startswith("http:"):
        url = "https:" + url[len("http:"):]
    return url


class FanartProvider:
    name = "FANART"

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str | Callable[[], str],
        *,
        base_url: str = "https://webservice.fanart.tv/v3",
        timeout: float = 5.0,
    ) -> None:
        self.http = http
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = float(timeout)
        self._warned = False

    def _key(self) -> str:
        k = self._api_key() if callable(self._api_key) else self._api_key
        return str(k or "").strip()

    async def logo_url(self, external_api_id: ExternalId, kind: str) -> str | None:
        """kind is "movies" (TMDB id) or "tv" (TVDB id)."""
        key = self._key()
        if not key:
            if not self._warned:
                _log("warn", "FANART_API_KEY is not set, logos disabled")
                self._warned = True
            return None

        data = await fetch_json(
            self.http,
            f"{self.base_url}/{kind}/{external_api_id}",
            params={"api_key": key},
            provider=self.name,
            feature="logo",
            timeout=self.timeout,
        )
        if not isinstance(data, Mapping):
            return None
        if kind == "tv":
            return pick_logo(data.get("hdtvlogo"), data.get("tvlogo"))
        return pick_logo(data.get("hdmovielogo"), data.get("movielogo"))


class LogoService:
    """anilist id -> logo url, via the id resolver and fanart.tv; misses are cached too."""

    def __init__(self, fanart: FanartProvider, resolver: Any, cache: MemoCache) -> None:
        self.fanart = fanart
        self.resolver = resolver
        self.cache = cache

    async def logo_for(self, anilist_id: int, media_format: str | None) -> str | None:
        is_movie = str(media_format or "").upper() == "MOVIE"
        ck = f"logo_{anilist_id}_{'MOVIE' if is_movie else 'TV'}"
        if self.cache.has(ck):
            return self.cache.get(ck)

        target = Scheme.TMDB if is_movie else Scheme.TVDB
        kind = "movies" if is_movie else "tv"

        try:
            ext = await self.resolver.resolve_external_id(anilist_id, target)
        except Exception as e:
            _log("warn", "id lookup for logo failed", anilist=anilist_id, target=target.value,
                 error=f"{e.__class__.__name__}: {e}")
            self.cache.set(ck, None)
            return None
        if not ext:
            _log("debug", "no external id for logo", anilist=anilist_id, target=target.value)
            self.cache.set(ck, None)
            return None

        url = await self.fanart.logo_url(ext, kind)
        self.cache.set(ck, url)
        return url
