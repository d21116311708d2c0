# /api/addonAPI.py
# Synkuru - Stremio addon routes (manifest, catalog, subtitles)
# Copyright (c) 2025-2026 Synkuru
from __future__ import annotations

import json
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from providers.sync.anilist import ADDON_CATALOGS
from sk_platform._log import log as sk_log
from sk_platform.errors import ConfigurationError, SynkuruError
from sk_platform.id_map import Scheme, WatchEvent, normalize_id

router = APIRouter(tags=["addon"])

ADDON_ID = "com.Ju1-js.Synkuru"
ADDON_VERSION = "0.0.1"
ASSETS = "https://raw.githubusercontent.com/Ju1-js/synkuru/main/static/media"


def _log(level: str, msg: str, **fields: Any) -> None:
    sk_log("ADDON", "handler", level, msg, **fields)


class AddonConfig(BaseModel):
    """Per-install settings, carried in the first URL path segment."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    token: str = ""
    enable_search: bool = Field(default=False, alias="enableSearch")
    pre_added_only: bool = Field(default=False, alias="preAddedOnly")

    @classmethod
    def from_segment(cls, raw: str) -> "AddonConfig":
        try:
            data = json.loads(raw or "{}")
        except ValueError as e:
            raise ConfigurationError("config segment is not valid JSON") from e
        if not isinstance(data, dict):
            raise ConfigurationError("config segment must be a JSON object")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError("invalid addon config") from e


def manifest(configured: bool = False) -> dict[str, Any]:
    return {
        "id": ADDON_ID,
        "version": ADDON_VERSION,
        "name": "Synkuru",
        "description": "Synkuru keeps your AniList progress in sync and shows your AniList lists as catalogs.",
        "background": f"{ASSETS}/addon-background.png",
        "logo": f"{ASSETS}/addon-logo.png",
        "resources": ["catalog", "subtitles"],
        "types": ["anime", "movie", "series"],
        "catalogs": [{"id": c.id, "type": "anime", "name": c.name} for c in ADDON_CATALOGS],
        "idPrefixes": ["anilist", "tt", "kitsu"],
        "behaviorHints": {"configurable": True, "configurationRequired": not configured},
        "config": [{"key": "token", "type": "text", "title": "Anilist token"}],
    }


def _episode(raw: Optional[str]) -> Optional[int]:
    try:
        n = int(str(raw or "").strip())
    except ValueError:
        return None
    return n if n > 0 else None


def parse_stremio_id(
    media_type: str,
    stremio_id: str,
    *,
    enable_search: bool = False,
    restrict_to_listed: bool = False,
    credential: str = "",
) -> Optional[WatchEvent]:
    """Turn a Stremio video id into a WatchEvent; None when it carries nothing to sync.

    kitsu:ID:EP and anilist:ID:EP name the work directly. tt…:SEASON:EP only
    syncs a movie (by imdb id) or, with title search enabled, a series by name.
    """
    is_movie = media_type == "movie"
    parts = str(stremio_id or "").split(":")
    head = parts[0].lower()
    common = dict(media_type="movie" if is_movie else "series",
                  restrict_to_listed=restrict_to_listed, credential=credential)

    if head in ("kitsu", "anilist"):
        scheme = Scheme.KITSU if head == "kitsu" else Scheme.ANILIST
        ext = normalize_id(scheme, parts[1] if len(parts) > 1 else None)
        episode = 1 if is_movie else _episode(parts[2] if len(parts) > 2 else None)
        if ext is None or episode is None:
            return None
        return WatchEvent(scheme=scheme, external_id=ext, episode=episode, **common)

    if head.startswith("tt"):
        ext = normalize_id(Scheme.IMDB, parts[0])
        if ext is None:
            return None
        if is_movie:
            return WatchEvent(scheme=Scheme.IMDB, external_id=ext, episode=1, **common)
        if not enable_search:
            return None
        season = _episode(parts[1] if len(parts) > 1 else None)
        episode = _episode(parts[2] if len(parts) > 2 else None)
        if episode is None:
            return None
        return WatchEvent(scheme=Scheme.IMDB, external_id=ext, episode=episode, season=season,
                          search_by_title=True, **common)

    return None


def _services(request: Request) -> Any:
    svc = getattr(request.app.state, "services", None)
    if svc is None:
        raise HTTPException(status_code=503, detail="services are not ready")
    return svc


# --- routes -------------------------------------------------------------------

@router.get("/manifest.json")
def api_manifest() -> dict[str, Any]:
    return manifest(configured=False)


@router.get("/{config}/manifest.json")
def api_manifest_configured(config: str) -> dict[str, Any]:
    try:
        AddonConfig.from_segment(config)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return manifest(configured=True)


async def _catalog(request: Request, config: str, media_type: str, catalog_id: str) -> dict[str, Any]:
    try:
        cfg = AddonConfig.from_segment(config)
        if media_type != "anime" or not cfg.token:
            return {"metas": []}
        metas = await _services(request).catalog.get_catalog(catalog_id, cfg.token)
    except SynkuruError as e:
        _log("error", "catalog failed", catalog=catalog_id, error=str(e))
        return {"metas": []}
    except Exception as e:
        _log("error", "catalog crashed", catalog=catalog_id, error=f"{e.__class__.__name__}: {e}")
        return {"metas": []}
    return {"metas": metas}


@router.get("/{config}/catalog/{media_type}/{catalog_id}.json")
async def api_catalog(request: Request, config: str, media_type: str, catalog_id: str) -> dict[str, Any]:
    return await _catalog(request, config, media_type, catalog_id)


@router.get("/{config}/catalog/{media_type}/{catalog_id}/{extra}.json")
async def api_catalog_extra(request: Request, config: str, media_type: str, catalog_id: str, extra: str) -> dict[str, Any]:
    return await _catalog(request, config, media_type, catalog_id)


async def _subtitles(request: Request, config: str, media_type: str, item_id: str) -> dict[str, Any]:
    # Stremio only needs an answer; sync outcomes never change it.
    try:
        cfg = AddonConfig.from_segment(config)
        event = parse_stremio_id(
            media_type,
            item_id,
            enable_search=cfg.enable_search,
            restrict_to_listed=cfg.pre_added_only,
            credential=cfg.token,
        )
        if event is None:
            _log("debug", "nothing to sync", type=media_type, id=item_id)
            return {"subtitles": []}
        await _services(request).progress.handle_watch_event(event)
    except SynkuruError as e:
        _log("error", "watch event failed", type=media_type, id=item_id, error=str(e))
    except Exception as e:
        _log("error", "watch event crashed", type=media_type, id=item_id, error=f"{e.__class__.__name__}: {e}")
    return {"subtitles": []}


@router.get("/{config}/subtitles/{media_type}/{item_id}.json")
async def api_subtitles(request: Request, config: str, media_type: str, item_id: str) -> dict[str, Any]:
    return await _subtitles(request, config, media_type, item_id)


@router.get("/{config}/subtitles/{media_type}/{item_id}/{extra}.json")
async def api_subtitles_extra(request: Request, config: str, media_type: str, item_id: str, extra: str) -> dict[str, Any]:
    return await _subtitles(request, config, media_type, item_id)


@router.get("/healthz")
def api_health(request: Request) -> dict[str, Any]:
    svc = _services(request)
    anilist = svc.anilist.health()
    db_ok = bool(svc.store.is_open)
    return {"ok": bool(anilist.get("ok")) and db_ok, "anilist": anilist, "database": {"open": db_ok}}
