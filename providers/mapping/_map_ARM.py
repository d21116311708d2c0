# providers/mapping/_map_ARM.py
# Synkuru - ARM (anime relations mapper) cross-reference lookups
# Copyright (c) 2025-2026 Synkuru
from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import httpx

from sk_platform._log import log as sk_log
from sk_platform.id_map import ExternalId, Scheme, normalize_id, scheme_from
from .._common import fetch_json

DEFAULT_INCLUDE: tuple[Scheme, ...] = (Scheme.TVDB, Scheme.TMDB)


class ArmClient:
    """General-purpose cross-reference service, keyed by any supported scheme."""

    name = "ARM"

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        base_url: str = "https://arm.haglund.dev",
        timeout: float = 5.0,
    ) -> None:
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.timeout = float(timeout)

    async def _ids(self, source: Scheme, value: ExternalId, include: Iterable[Scheme]) -> Mapping[str, Any]:
        data = await fetch_json(
            self.http,
            f"{self.base_url}/api/v2/ids",
            params={
                "source": source.value,
                "id": value,
                "include": ",".join(s.value for s in include),
            },
            provider=self.name,
            feature="ids",
            timeout=self.timeout,
        )
        return data if isinstance(data, Mapping) else {}

    async def anilist_id(self, scheme: Any, external_id: Any) -> int | None:
        sc = scheme_from(scheme)
        ext = normalize_id(sc, external_id)
        if ext is None:
            return None
        data = await self._ids(sc, ext, (Scheme.ANILIST,))
        aid = normalize_id(Scheme.ANILIST, data.get(Scheme.ANILIST.value))
        if aid:
            sk_log(self.name, "ids", "debug", "resolved", source=sc.value, id=ext, anilist=aid)
        return int(aid) if aid else None

    async def external_ids(
        self,
        anilist_id: int,
        include: Iterable[Scheme] = DEFAULT_INCLUDE,
    ) -> dict[Scheme, ExternalId]:
        wanted = tuple(include)
        data = await self._ids(Scheme.ANILIST, int(anilist_id), wanted)
        out: dict[Scheme, ExternalId] = {}
        for sc in wanted:
            v = normalize_id(sc, data.get(sc.value))
            if v is not None:
                out[sc] = v
        return out
