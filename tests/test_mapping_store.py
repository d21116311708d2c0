# Synkuru test scripts
from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from sk_platform.id_map import ALTERNATE_SCHEMES, Scheme
from sk_platform.mapping_store import COLUMNS, MappingStore


def test_every_alternate_scheme_has_a_column() -> None:
    assert set(COLUMNS) == set(ALTERNATE_SCHEMES)


@pytest.mark.asyncio
async def test_upsert_then_lookup_both_ways(tmp_path: Path) -> None:
    async with MappingStore(tmp_path / "db" / "ids.db") as store:
        assert await store.upsert(21, Scheme.KITSU, "12")
        assert await store.upsert(21, "tvdb", 81797)
        assert await store.canonical_for("kitsu", 12) == 21
        assert await store.external_for(21, Scheme.TVDB) == 81797
        assert await store.external_for(21, Scheme.TMDB) is None
        assert await store.row(21) == {
            "anilist": 21, "kitsu": 12, "imdb": None, "thetvdb": 81797, "themoviedb": None,
        }
    assert (tmp_path / "db" / "ids.db").exists()


@pytest.mark.asyncio
async def test_same_upsert_twice_leaves_row_unchanged(tmp_path: Path) -> None:
    async with MappingStore(tmp_path / "ids.db") as store:
        assert await store.upsert(5114, Scheme.IMDB, "tt1355642") is True
        before = await store.row(5114)
        assert await store.upsert(5114, Scheme.IMDB, "tt1355642") is False
        assert await store.row(5114) == before


@pytest.mark.asyncio
async def test_conflicting_alternate_id_keeps_existing_mapping(tmp_path: Path) -> None:
    async with MappingStore(tmp_path / "ids.db") as store:
        await store.upsert(1, Scheme.TMDB, 500)
        assert await store.upsert(2, Scheme.TMDB, 500) is False
        assert await store.canonical_for(Scheme.TMDB, 500) == 1
        assert await store.row(2) is None

        # the store is still usable after the rolled back write
        assert await store.upsert(2, Scheme.TMDB, 501) is True


@pytest.mark.asyncio
async def test_anilist_is_not_a_store_column(tmp_path: Path) -> None:
    async with MappingStore(tmp_path / "ids.db") as store:
        with pytest.raises(ValueError):
            await store.canonical_for(Scheme.ANILIST, 1)
        with pytest.raises(ValueError):
            await store.upsert(1, Scheme.KITSU, "none")


@pytest.mark.asyncio
async def test_closed_store_refuses_queries(tmp_path: Path) -> None:
    store = MappingStore(tmp_path / "ids.db")
    assert not store.is_open
    with pytest.raises(RuntimeError):
        await store.row(1)


@pytest.mark.asyncio
async def test_rejected_write_does_not_undo_a_concurrent_one(tmp_path: Path) -> None:
    async with MappingStore(tmp_path / "ids.db") as store:
        await store.upsert(1, Scheme.TVDB, 100)
        ok, clash = await asyncio.gather(
            store.upsert(3, Scheme.TMDB, 555),
            store.upsert(2, Scheme.TVDB, 100),
        )
        assert (ok, clash) == (True, False)
        assert await store.canonical_for(Scheme.TMDB, 555) == 3
        assert await store.canonical_for(Scheme.TVDB, 100) == 1
        assert await store.row(2) is None
