# /sk_platform/id_map.py
# Identifier schemes understood by Synkuru.
# - AniList ids are canonical; kitsu/imdb/thetvdb/themoviedb are alternates.
# - Normalize raw ids so cache keys and store rows compare equal.
# - WatchEvent is the structured input of the progress sync.

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple, Union

__all__ = [
    "Scheme", "ALTERNATE_SCHEMES", "NUMERIC_SCHEMES",
    "ExternalId", "normalize_id", "scheme_from", "WatchEvent",
]


class Scheme(str, Enum):
    ANILIST = "anilist"
    KITSU = "kitsu"
    IMDB = "imdb"
    TVDB = "thetvdb"
    TMDB = "themoviedb"

    def __str__(self) -> str:
        return self.value


ALTERNATE_SCHEMES: Tuple[Scheme, ...] = (Scheme.KITSU, Scheme.IMDB, Scheme.TVDB, Scheme.TMDB)
NUMERIC_SCHEMES: Tuple[Scheme, ...] = (Scheme.ANILIST, Scheme.KITSU, Scheme.TVDB, Scheme.TMDB)

ExternalId = Union[int, str]

_ALIASES = {
    "anilist": Scheme.ANILIST,
    "kitsu": Scheme.KITSU,
    "imdb": Scheme.IMDB,
    "tvdb": Scheme.TVDB,
    "thetvdb": Scheme.TVDB,
    "tmdb": Scheme.TMDB,
    "themoviedb": Scheme.TMDB,
}

# --- tiny utils ---------------------------------------------------------------

_CLEAN_SENTINELS = {"none", "null", "nan", "undefined", "unknown", "0", ""}
_IMDB_RE = re.compile(r"(tt\d+)")


def scheme_from(value: Any) -> Scheme:
    if isinstance(value, Scheme):
        return value
    key = str(value or "").strip().lower()
    try:
        return _ALIASES[key]
    except KeyError:
        raise ValueError(f"unsupported id scheme: {value!r}") from None


def normalize_id(scheme: Any, val: Any) -> Optional[ExternalId]:
    """Normalize an id for *scheme*; None when it is empty or unusable."""
    sc = scheme_from(scheme)
    if val is None or isinstance(val, bool):
        return None
    s = str(val).strip()
    if s.lower() in _CLEAN_SENTINELS:
        return None

    if sc is Scheme.IMDB:
        s = s.lower()
        m = _IMDB_RE.search(s)
        if m:
            return m.group(1)
        digits = re.sub(r"\D+", "", s)
        return f"tt{digits}" if digits else None

    digits = re.sub(r"\D+", "", s)
    if not digits:
        return None
    n = int(digits)
    return n or None


@dataclass(frozen=True)
class WatchEvent:
    """One "episode started" signal from the addon host."""

    scheme: Scheme
    external_id: Optional[ExternalId]
    episode: int
    media_type: str = "series"
    season: Optional[int] = None
    title: Optional[str] = None
    restrict_to_listed: bool = False
    search_by_title: bool = False
    credential: str = ""

    @property
    def is_movie(self) -> bool:
        return self.media_type == "movie"
