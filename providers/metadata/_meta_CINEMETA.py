# providers/metadata/_meta_CINEMETA.py
# Synkuru - Cinemeta title lookup (name-based fallback for imdb series)
# Copyright (c) 2025-2026 Synkuru
from __future__ import annotations

from collections.abc import Mapping

import httpx

from sk_platform.id_map import Scheme, normalize_id
from .._common import fetch_json


class CinemetaProvider:
    name = "CINEMETA"

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        base_url: str = "https://v3-cinemeta.strem.io",
        timeout: float = 5.0,
    ) -> None:
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.timeout = float(timeout)

    async def title(self, imdb_id: str, media_type: str) -> str | None:
        iid = normalize_id(Scheme.IMDB, imdb_id)
        if not iid:
            return None
        kind = "movie" if media_type == "movie" else "series"
        data = await fetch_json(
            self.http,
            f"{self.base_url}/meta/{kind}/{iid}.json",
            provider=self.name,
            feature="title",
            timeout=self.timeout,
        )
        meta = data.get("meta") if isinstance(data, Mapping) else None
        if not isinstance(meta, Mapping):
            return None
        name = str(meta.get("name") or "").strip()
        return name or None
