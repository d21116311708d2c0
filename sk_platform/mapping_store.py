# /sk_platform/mapping_store.py
# Synkuru - durable anilist <-> external id table
# Copyright (c) 2025-2026 Synkuru
from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

import aiosqlite

from ._log import log as sk_log
from .errors import ConstraintConflictError
from .id_map import ExternalId, Scheme, normalize_id, scheme_from

__all__ = ["MappingStore", "COLUMNS"]

# Fixed scheme -> column table; SQL is only ever built from these values.
COLUMNS: Mapping[Scheme, str] = MappingProxyType({
    Scheme.KITSU: "kitsu",
    Scheme.IMDB: "imdb",
    Scheme.TVDB: "thetvdb",
    Scheme.TMDB: "themoviedb",
})

_SCHEMA = """
CREATE TABLE IF NOT EXISTS ids (
    anilist INTEGER PRIMARY KEY NOT NULL,
    kitsu INTEGER UNIQUE,
    imdb TEXT UNIQUE,
    thetvdb INTEGER UNIQUE,
    themoviedb INTEGER UNIQUE
);
"""


def _log(level: str, msg: str, **fields: Any) -> None:
    sk_log("SQLITE", "ids", level, msg, **fields)


def _column(scheme: Any) -> str:
    sc = scheme_from(scheme)
    col = COLUMNS.get(sc)
    if col is None:
        raise ValueError(f"no mapping column for scheme {sc.value!r}")
    return col


class MappingStore:
    """One row per AniList id; each alternate id is unique across the table."""

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)
        self._db: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    async def __aenter__(self) -> "MappingStore":
        await self.open()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def open(self) -> None:
        if self._db is not None:
            return
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.executescript(_SCHEMA)
        await self._db.commit()
        _log("info", "database ready", path=self._db_path)

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
            _log("debug", "database closed")

    @property
    def is_open(self) -> bool:
        return self._db is not None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("MappingStore is not open")
        return self._db

    async def canonical_for(self, scheme: Any, external_id: Any) -> Optional[int]:
        col = _column(scheme)
        ext = normalize_id(scheme, external_id)
        if ext is None:
            return None
        async with self.db.execute(f"SELECT anilist FROM ids WHERE {col} = ?", (ext,)) as cur:
            row = await cur.fetchone()
        return int(row["anilist"]) if row else None

    async def external_for(self, canonical_id: int, scheme: Any) -> Optional[ExternalId]:
        col = _column(scheme)
        async with self.db.execute(f"SELECT {col} FROM ids WHERE anilist = ?", (int(canonical_id),)) as cur:
            row = await cur.fetchone()
        return row[col] if row and row[col] is not None else None

    async def row(self, canonical_id: int) -> Optional[dict[str, Any]]:
        async with self.db.execute("SELECT * FROM ids WHERE anilist = ?", (int(canonical_id),)) as cur:
            row = await cur.fetchone()
        return dict(row) if row else None

    async def upsert(self, canonical_id: int, scheme: Any, external_id: Any) -> bool:
        """Record scheme:external_id for canonical_id; True when a row changed.

        An external id already owned by another AniList id is left alone.
        """
        try:
            return await self._upsert(int(canonical_id), scheme, external_id)
        except ConstraintConflictError as e:
            _log("warn", "unique constraint, existing mapping kept",
                 scheme=e.scheme, external_id=e.external_id, anilist=e.canonical_id)
            return False

    async def _upsert(self, canonical_id: int, scheme: Any, external_id: Any) -> bool:
        col = _column(scheme)
        ext = normalize_id(scheme, external_id)
        if ext is None:
            raise ValueError(f"unusable {col} id: {external_id!r}")
        sql = (
            f"INSERT INTO ids (anilist, {col}) VALUES (?, ?) "
            f"ON CONFLICT(anilist) DO UPDATE SET {col} = excluded.{col} "
            f"WHERE {col} IS NULL OR {col} != excluded.{col}"
        )
        # One transaction per write; a rollback must never take a sibling's insert with it.
        async with self._write_lock:
            try:
                cur = await self.db.execute(sql, (canonical_id, ext))
            except sqlite3.IntegrityError as e:
                await self.db.rollback()
                if "UNIQUE" not in str(e).upper():
                    raise
                raise ConstraintConflictError(col, ext, canonical_id) from e
            changed = cur.rowcount > 0
            await cur.close()
            await self.db.commit()
        if changed:
            _log("debug", "stored mapping", scheme=col, external_id=ext, anilist=canonical_id)
        return changed
