# providers/mapping/_map_KITSU.py
# Synkuru - Kitsu mappings lookup (kitsu id -> anilist id)
# Copyright (c) 2025-2026 Synkuru
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from sk_platform._log import log as sk_log
from .._common import fetch_json, to_int

ANILIST_SITE = "anilist/anime"


class KitsuMappings:
    name = "KITSU"

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        base_url: str = "https://kitsu.io/api/edge",
        timeout: float = 5.0,
    ) -> None:
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.timeout = float(timeout)

    async def anilist_id(self, kitsu_id: Any) -> int | None:
        kid = to_int(kitsu_id)
        if not kid:
            return None
        data = await fetch_json(
            self.http,
            f"{self.base_url}/anime/{kid}/mappings",
            provider=self.name,
            feature="mappings",
            timeout=self.timeout,
        )
        rows = data.get("data") if isinstance(data, Mapping) else None
        if not isinstance(rows, list):
            return None
        for row in rows:
            attrs = row.get("attributes") if isinstance(row, Mapping) else None
            if isinstance(attrs, Mapping) and attrs.get("externalSite") == ANILIST_SITE:
                aid = to_int(attrs.get("externalId"))
                if aid:
                    sk_log(self.name, "mappings", "debug", "resolved", kitsu=kid, anilist=aid)
                    return aid
        return None
