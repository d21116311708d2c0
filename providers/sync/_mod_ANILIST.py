# /providers/sync/_mod_ANILIST.py
# Synkuru AniList client
# Copyright (c) 2025-2026 Synkuru

from __future__ import annotations

import hashlib
from typing import Any, Mapping

from sk_platform._log import log as sk_log
from sk_platform.cache import QueryCache, cache_key
from sk_platform.errors import NotFoundError, UpstreamAPIError
from sk_platform.gateway import RequestGateway, RequestSpec

from .anilist._common import ListStatus, MediaListState, to_int

__VERSION__ = "0.1.0"
__all__ = ["ANILISTClient", "GQL_VIEWER", "GQL_SEARCH", "GQL_ENTRY", "GQL_SAVE_PROGRESS"]


GQL_VIEWER = "query { Viewer { id } }"

GQL_SEARCH = """
query ($search: String, $type: MediaType, $perPage: Int) {
  Page(page: 1, perPage: $perPage) {
    media(search: $search, type: $type) {
      id
      episodes
    }
  }
}
""".strip()

GQL_ENTRY = """
query ($mediaId: Int, $type: MediaType) {
  Media(id: $mediaId, type: $type) {
    id
    episodes
    format
    mediaListEntry {
      id
      status
      progress
    }
  }
}
""".strip()

GQL_SAVE_PROGRESS = """
mutation ($mediaId: Int, $progress: Int, $status: MediaListStatus) {
  SaveMediaListEntry(mediaId: $mediaId, progress: $progress, status: $status) {
    id
    status
    progress
  }
}
""".strip()


def _dbg(msg: str, **fields: Any) -> None:
    sk_log("ANILIST", "client", "debug", msg, **fields)

def _info(msg: str, **fields: Any) -> None:
    sk_log("ANILIST", "client", "info", msg, **fields)

def _error(msg: str, **fields: Any) -> None:
    sk_log("ANILIST", "client", "error", msg, **fields)


def _scope(credential: str | None) -> str:
    # Cached results are per user; never share them across tokens.
    tok = (credential or "").encode("utf-8")
    return hashlib.sha256(tok).hexdigest()[:16] if tok else "anon"


class ANILISTClient:
    def __init__(self, gateway: RequestGateway, cache: QueryCache) -> None:
        self.gateway = gateway
        self.cache = cache

    async def gql(
        self,
        query: str,
        variables: Mapping[str, Any] | None = None,
        credential: str | None = None,
        *,
        cached: bool = False,
        mutation: bool = False,
        requires_auth: bool = True,
        feature: str | None = None,
    ) -> dict[str, Any]:
        spec = RequestSpec(
            query=query,
            variables=dict(variables or {}),
            credential=credential,
            mutation=mutation,
            requires_auth=requires_auth,
            label=feature,
        )
        if cached and not mutation:
            key = f"{_scope(credential)}|{cache_key(query, spec.variables)}"
            body = await self.cache.get_or_compute(key, lambda: self.gateway.execute(spec))
        else:
            body = await self.gateway.execute(spec)
        data = body.get("data") if isinstance(body, Mapping) else None
        return data if isinstance(data, dict) else {}

    async def viewer(self, credential: str) -> dict[str, Any]:
        data = await self.gql(GQL_VIEWER, {}, credential, cached=True, feature="viewer")
        v = data.get("Viewer")
        return dict(v) if isinstance(v, Mapping) else {}

    async def search_by_name(self, name: str, credential: str) -> dict[str, Any] | None:
        variables = {"search": name, "type": "ANIME", "perPage": 1}
        try:
            data = await self.gql(GQL_SEARCH, variables, credential, cached=True, feature="media:search")
        except UpstreamAPIError as e:
            _error("search by name failed", name=name, error=str(e))
            return None
        page = data.get("Page")
        media = page.get("media") if isinstance(page, Mapping) else None
        first = media[0] if isinstance(media, list) and media else None
        if not isinstance(first, Mapping) or not to_int(first.get("id")):
            _info("no match by name", name=name)
            return None
        _info("matched by name", name=name, anilist=first.get("id"))
        return dict(first)

    async def media_list_entry(self, media_id: int, credential: str) -> MediaListState:
        """Current list state; never cached since it changes outside this process."""
        try:
            data = await self.gql(GQL_ENTRY, {"mediaId": int(media_id), "type": "ANIME"}, credential,
                                  feature="progress:lookup")
        except UpstreamAPIError as e:
            if e.not_found:
                raise NotFoundError(f"anilist:{media_id} not found") from e
            raise
        media = data.get("Media")
        if not isinstance(media, Mapping):
            raise NotFoundError(f"anilist:{media_id} not found")
        entry = media.get("mediaListEntry")
        entry = entry if isinstance(entry, Mapping) else {}
        return MediaListState(
            media_id=int(media_id),
            progress=to_int(entry.get("progress")) or 0,
            status=ListStatus.parse(entry.get("status")),
            total_episodes=to_int(media.get("episodes")),
            is_movie=str(media.get("format") or "").upper() == "MOVIE",
        )

    async def save_progress(
        self,
        media_id: int,
        progress: int,
        status: ListStatus | None,
        credential: str,
    ) -> dict[str, Any]:
        variables: dict[str, Any] = {"mediaId": int(media_id), "progress": int(progress)}
        if status is not None:
            variables["status"] = status.value
        data = await self.gql(GQL_SAVE_PROGRESS, variables, credential, mutation=True, feature="progress:save")
        saved = data.get("SaveMediaListEntry")
        _dbg("saved", anilist=media_id, result=saved)
        return dict(saved) if isinstance(saved, Mapping) else {}

    def health(self) -> dict[str, Any]:
        """Local view only; probing AniList would spend reservoir tokens."""
        return {
            "ok": not self.gateway.limiter.paused,
            "limiter": self.gateway.limiter.stats(),
            "query_cache": len(self.cache),
        }
