# /sk_platform/id_resolver.py
# Synkuru - resolve ids across schemes: memo cache -> sqlite -> remote lookups
# Copyright (c) 2025-2026 Synkuru
from __future__ import annotations

import sqlite3
from typing import Any, Optional, Protocol

from ._log import log as sk_log
from .cache import MemoCache
from .id_map import ExternalId, Scheme, normalize_id, scheme_from
from .mapping_store import MappingStore

__all__ = ["IdResolver"]


class _KitsuLookup(Protocol):
    async def anilist_id(self, kitsu_id: Any) -> Optional[int]: ...


class _CrossReference(Protocol):
    async def anilist_id(self, scheme: Any, external_id: Any) -> Optional[int]: ...
    async def external_ids(self, anilist_id: int, include: Any = ...) -> dict[Scheme, ExternalId]: ...


def _log(level: str, msg: str, **fields: Any) -> None:
    sk_log("IDMAP", "resolve", level, msg, **fields)


class IdResolver:
    def __init__(
        self,
        store: MappingStore,
        kitsu: _KitsuLookup,
        arm: _CrossReference,
        *,
        canonical_cache: MemoCache | None = None,
        external_cache: MemoCache | None = None,
    ) -> None:
        self.store = store
        self.kitsu = kitsu
        self.arm = arm
        self.canonical_cache = canonical_cache or MemoCache(maxsize=10000, ttl=86400)
        self.external_cache = external_cache or MemoCache(maxsize=5000, ttl=7 * 86400)

    # scheme:id -> anilist --------------------------------------------------

    async def resolve_canonical_id(self, external_id: Any, scheme: Any) -> Optional[int]:
        sc = scheme_from(scheme)
        ext = normalize_id(sc, external_id)
        if ext is None:
            return None
        if sc is Scheme.ANILIST:
            return int(ext)

        ck = f"{sc.value}:{ext}"
        cached = self.canonical_cache.get(ck)
        if cached is not None:
            return cached

        try:
            stored = await self.store.canonical_for(sc, ext)
        except sqlite3.Error as e:
            _log("error", "database read failed", key=ck, error=str(e))
            stored = None
        if stored:
            self.canonical_cache.set(ck, stored)
            _log("debug", "db hit", key=ck, anilist=stored)
            return stored

        anilist_id: Optional[int] = None
        if sc is Scheme.KITSU:
            anilist_id = await self.kitsu.anilist_id(ext)
            if not anilist_id:
                _log("debug", "kitsu mappings miss, trying ARM", key=ck)
        if not anilist_id:
            anilist_id = await self.arm.anilist_id(sc, ext)

        if not anilist_id:
            _log("info", "no mapping found", key=ck)
            return None

        _log("info", "resolved", key=ck, anilist=anilist_id)
        self.canonical_cache.set(ck, anilist_id)
        await self._remember(anilist_id, sc, ext)
        return anilist_id

    # anilist -> scheme:id --------------------------------------------------

    async def resolve_external_id(self, canonical_id: int, target: Any) -> Optional[ExternalId]:
        sc = scheme_from(target)
        aid = int(canonical_id)
        if sc is Scheme.ANILIST:
            return aid
        ck = f"anilist:{aid}:{sc.value}"
        cached = self.external_cache.get(ck)
        if cached is not None:
            return cached

        try:
            stored = await self.store.external_for(aid, sc)
        except sqlite3.Error as e:
            _log("error", "database read failed", key=ck, error=str(e))
            stored = None
        if stored is not None:
            self.external_cache.set(ck, stored)
            _log("debug", "db hit", key=ck, external_id=stored)
            return stored

        include = tuple(dict.fromkeys((Scheme.TVDB, Scheme.TMDB, sc)))
        found = await self.arm.external_ids(aid, include)
        for other, value in found.items():
            self.external_cache.set(f"anilist:{aid}:{other.value}", value)
            await self._remember(aid, other, value)

        ext = found.get(sc)
        if ext is None:
            _log("info", "no external id", anilist=aid, target=sc.value)
        return ext

    async def _remember(self, anilist_id: int, scheme: Scheme, external_id: ExternalId) -> None:
        try:
            await self.store.upsert(anilist_id, scheme, external_id)
        except (sqlite3.Error, ValueError) as e:
            _log("error", "database write failed", anilist=anilist_id, scheme=scheme.value, error=str(e))
