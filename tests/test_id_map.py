# Synkuru test scripts
from __future__ import annotations

import pytest

from sk_platform.id_map import Scheme, WatchEvent, normalize_id, scheme_from


def test_scheme_from_accepts_aliases() -> None:
    assert scheme_from("tvdb") is Scheme.TVDB
    assert scheme_from("TheMovieDB") is Scheme.TMDB
    assert scheme_from(" Kitsu ") is Scheme.KITSU
    assert scheme_from(Scheme.IMDB) is Scheme.IMDB


def test_scheme_from_rejects_unknown() -> None:
    with pytest.raises(ValueError):
        scheme_from("mal")


def test_normalize_imdb_ids() -> None:
    assert normalize_id("imdb", "tt0137523") == "tt0137523"
    assert normalize_id("imdb", "imdb://title/TT0137523") == "tt0137523"
    assert normalize_id("imdb", "137523") == "tt137523"
    assert normalize_id("imdb", "") is None


def test_normalize_numeric_ids() -> None:
    assert normalize_id("kitsu", " 42 ") == 42
    assert normalize_id("anilist", "tvdb-21") == 21
    assert normalize_id("tmdb", 0) is None
    assert normalize_id("tvdb", "null") is None
    assert normalize_id("tvdb", True) is None


def test_watch_event_movie_flag() -> None:
    ev = WatchEvent(scheme=Scheme.KITSU, external_id=1, episode=1, media_type="movie")
    assert ev.is_movie
    assert not WatchEvent(scheme=Scheme.KITSU, external_id=1, episode=3).is_movie
