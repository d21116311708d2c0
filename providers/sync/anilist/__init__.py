# /providers/sync/anilist/__init__.py
# AniList progress sync and catalog listing
from __future__ import annotations

from ._catalog import ADDON_CATALOGS, CATALOGS, CatalogService
from ._common import ListStatus, MediaListState
from ._progress import ProgressDecision, ProgressSync, decide

__all__ = [
    "ADDON_CATALOGS", "CATALOGS", "CatalogService",
    "ListStatus", "MediaListState",
    "ProgressDecision", "ProgressSync", "decide",
]
