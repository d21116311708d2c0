# /providers/sync/anilist/_catalog.py
# AniList Module for catalog listing
# Copyright (c) 2025-2026 Synkuru
from __future__ import annotations

import asyncio
import datetime as dt
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Optional, Protocol

from sk_platform.errors import SynkuruError

from ._common import ListStatus, make_logger, to_int

__all__ = [
    "CatalogDef", "CATALOGS", "ADDON_CATALOGS", "GQL_LIST_COLLECTION",
    "CatalogService", "map_media_to_meta", "release_info", "released_date",
]

_log = make_logger("catalog")


@dataclass(frozen=True)
class CatalogDef:
    id: str
    name: str
    statuses: tuple[ListStatus, ...]
    sort: str = "UPDATED_TIME_DESC"


_ALL = (
    CatalogDef("CURRENT", "Currently watching", (ListStatus.CURRENT, ListStatus.REPEATING)),
    CatalogDef("REPEATING", "Repeating", (ListStatus.REPEATING,)),
    CatalogDef("PLANNING", "Planning to watch", (ListStatus.PLANNING,), sort="POPULARITY_DESC"),
    CatalogDef("COMPLETED", "Completed", (ListStatus.COMPLETED,)),
    CatalogDef("PAUSED", "Paused", (ListStatus.PAUSED,)),
    CatalogDef("WATCHING", "Watching", (ListStatus.CURRENT,)),
    CatalogDef("DROPPED", "Dropped", (ListStatus.DROPPED,)),
)

CATALOGS: Mapping[str, CatalogDef] = MappingProxyType({c.id: c for c in _ALL})

# Listed in the manifest; WATCHING and DROPPED are served but not advertised.
ADDON_CATALOGS: tuple[CatalogDef, ...] = tuple(
    CATALOGS[k] for k in ("CURRENT", "REPEATING", "PLANNING", "COMPLETED", "PAUSED")
)

GQL_LIST_COLLECTION = """
query ($userId: Int, $status: [MediaListStatus], $sort: [MediaListSort]) {
  MediaListCollection(userId: $userId, type: ANIME, status_in: $status, sort: $sort,
                      forceSingleCompletedList: true, chunk: 1, perChunk: 500) {
    lists {
      status
      entries {
        media {
          ...MediaFields
        }
      }
    }
  }
}

fragment MediaFields on Media {
  id
  format
  status
  title { userPreferred romaji }
  genres
  coverImage { extraLarge large medium }
  bannerImage
  description(asHtml: false)
  startDate { year month day }
  endDate { year month day }
  averageScore
  duration
  countryOfOrigin
  siteUrl
}
""".strip()


# --- projection ---------------------------------------------------------------

def _date(media: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    d = media.get(key)
    return d if isinstance(d, Mapping) else {}


def release_info(media: Mapping[str, Any] | None) -> str:
    if not media or not isinstance(media.get("startDate"), Mapping):
        return "Unknown Year"
    start = to_int(_date(media, "startDate").get("year"))
    end = to_int(_date(media, "endDate").get("year"))
    status = str(media.get("status") or "").upper()

    if str(media.get("format") or "").upper() == "MOVIE":
        return str(start) if start else "Unknown Year"
    if status == "RELEASING":
        return f"{start} - Airing" if start else "Airing"
    if status == "FINISHED":
        if not start:
            return "Finished"
        if not end or end == start:
            return str(start)
        return f"{start} - {end}"
    if status == "NOT_YET_RELEASED":
        return f"Coming {start}" if start else "Not Yet Released"
    if status == "CANCELLED":
        return f"Cancelled ({start})" if start else "Cancelled"
    if status == "HIATUS":
        if not start:
            return "On Hiatus"
        if end and end != start:
            return f"On Hiatus ({start}-{end})"
        return f"On Hiatus ({start})"
    return str(start) if start else "Unknown Status"


def released_date(media: Mapping[str, Any] | None) -> Optional[str]:
    """ISO date when the start date is complete, else YYYY-MM or YYYY."""
    if not media:
        return None
    sd = _date(media, "startDate")
    year = to_int(sd.get("year"))
    if not year:
        return None
    month = to_int(sd.get("month"))
    day = to_int(sd.get("day"))
    if month and day:
        try:
            return dt.date(year, month, day).isoformat()
        except ValueError:
            return f"{year}-{month:02d}"
    if month:
        return f"{year}-{month:02d}"
    return str(year)


def map_media_to_meta(media: Mapping[str, Any] | None, logo: Optional[str] = None) -> Optional[dict[str, Any]]:
    mid = to_int(media.get("id")) if isinstance(media, Mapping) else None
    if not media or not mid:
        return None
    title = media.get("title") if isinstance(media.get("title"), Mapping) else {}
    cover = media.get("coverImage") if isinstance(media.get("coverImage"), Mapping) else {}
    score = media.get("averageScore")
    duration = to_int(media.get("duration"))
    return {
        "id": f"anilist:{mid}",
        "type": "movie" if str(media.get("format") or "").upper() == "MOVIE" else "series",
        "name": title.get("userPreferred") or title.get("romaji") or f"Anime {mid}",
        "genres": list(media.get("genres") or []),
        "poster": cover.get("extraLarge") or cover.get("large") or cover.get("medium"),
        "background": media.get("bannerImage"),
        "description": media.get("description"),
        "logo": logo,
        "releaseInfo": release_info(media),
        "imdbRating": f"{float(score) / 10:.1f}" if score else None,
        "released": released_date(media),
        "runtime": f"{duration} min" if duration else None,
        "country": media.get("countryOfOrigin"),
        "website": media.get("siteUrl"),
    }


# --- service ------------------------------------------------------------------

class _Client(Protocol):
    async def viewer(self, credential: str) -> dict[str, Any]: ...
    async def gql(self, query: str, variables: Any = None, credential: Optional[str] = None, **kw: Any) -> dict[str, Any]: ...


class _Logos(Protocol):
    async def logo_for(self, anilist_id: int, media_format: Optional[str]) -> Optional[str]: ...


class CatalogService:
    def __init__(self, client: _Client, logos: _Logos | None = None) -> None:
        self.client = client
        self.logos = logos

    async def _media(self, cat: CatalogDef, credential: str) -> list[Mapping[str, Any]]:
        viewer = await self.client.viewer(credential)
        user_id = to_int(viewer.get("id"))
        if not user_id:
            _log("viewer id unavailable; check the token", level="error")
            return []

        variables = {
            "userId": user_id,
            "status": [s.value for s in cat.statuses],
            "sort": [cat.sort],
        }
        data = await self.client.gql(GQL_LIST_COLLECTION, variables, credential, cached=True, feature="catalog:index")
        coll = data.get("MediaListCollection")
        lists = coll.get("lists") if isinstance(coll, Mapping) else None
        if not isinstance(lists, list):
            _log("no lists returned", level="warn", user=user_id, catalog=cat.id)
            return []

        wanted = {s.value for s in cat.statuses}
        out: list[Mapping[str, Any]] = []
        for lst in lists:
            if not isinstance(lst, Mapping) or lst.get("status") not in wanted:
                continue
            for entry in lst.get("entries") or []:
                media = entry.get("media") if isinstance(entry, Mapping) else None
                if isinstance(media, Mapping):
                    out.append(media)
        return out

    async def _meta(self, media: Mapping[str, Any]) -> Optional[dict[str, Any]]:
        mid = to_int(media.get("id"))
        if not mid:
            return None
        logo = await self.logos.logo_for(mid, media.get("format")) if self.logos else None
        return map_media_to_meta(media, logo)

    async def get_catalog(self, catalog_id: str, credential: str) -> list[dict[str, Any]]:
        cat = CATALOGS.get(str(catalog_id or "").upper())
        if cat is None:
            _log("unsupported catalog", level="warn", catalog=catalog_id)
            return []
        try:
            media = await self._media(cat, credential)
        except SynkuruError as e:
            _log("catalog fetch failed", level="error", catalog=cat.id, error=str(e))
            return []

        results = await asyncio.gather(*(self._meta(m) for m in media), return_exceptions=True)
        metas: list[dict[str, Any]] = []
        for m, res in zip(media, results):
            if isinstance(res, BaseException):
                if isinstance(res, asyncio.CancelledError):
                    raise res
                _log("meta projection failed", level="warn", anilist=m.get("id"), error=str(res))
                continue
            if res:
                metas.append(res)
        _log("catalog built", level="debug", catalog=cat.id, items=len(metas))
        return metas
