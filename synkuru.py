# synkuru.py
# Synkuru - Stremio addon backend for AniList
# Copyright (c) 2025-2026 Synkuru
from __future__ import annotations

import os
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import register
from providers.mapping import ArmClient, KitsuMappings
from providers.metadata import CinemetaProvider, FanartProvider, LogoService
from providers.sync._mod_ANILIST import ANILISTClient
from providers.sync.anilist import CatalogService, ProgressSync
from sk_platform._log import log as sk_log
from sk_platform.cache import MemoCache, QueryCache
from sk_platform.config_base import database_path, load_config
from sk_platform.gateway import RequestGateway
from sk_platform.id_resolver import IdResolver
from sk_platform.limiter import Limiter
from sk_platform.mapping_store import MappingStore

__all__ = ["Services", "build_services", "create_app", "main"]


@dataclass
class Services:
    """Process-wide service graph shared by every request."""

    http: httpx.AsyncClient
    store: MappingStore
    limiter: Limiter
    gateway: RequestGateway
    query_cache: QueryCache
    anilist: ANILISTClient
    resolver: IdResolver
    logos: LogoService
    catalog: CatalogService
    progress: ProgressSync
    _closers: list[Callable[[], Awaitable[Any]]] = field(default_factory=list, repr=False)

    async def aclose(self) -> None:
        for fn in reversed(self._closers):
            await fn()
        self._closers.clear()


def _apply_debug_env_from_config(cfg: Dict[str, Any]) -> None:
    if bool((cfg.get("runtime") or {}).get("debug")):
        os.environ.setdefault("SK_DEBUG", "1")


async def build_services(cfg: Dict[str, Any], *, http: Optional[httpx.AsyncClient] = None) -> Services:
    al = cfg.get("anilist") or {}
    lim = cfg.get("limiter") or {}
    cc = cfg.get("cache") or {}
    lk = cfg.get("lookups") or {}
    lookup_timeout = float(lk.get("timeout", 5.0))

    closers: list[Callable[[], Awaitable[Any]]] = []
    if http is None:
        http = httpx.AsyncClient(follow_redirects=True)
        closers.append(http.aclose)

    store = MappingStore(database_path(cfg))
    await store.open()
    closers.append(store.close)

    limiter = Limiter(
        max_concurrent=int(lim.get("max_concurrent", 5)),
        reservoir=int(lim.get("reservoir", 30)),
        refresh_amount=int(lim.get("refresh_amount", 30)),
        refresh_interval=float(lim.get("refresh_interval", 60.0)),
        min_time=float(lim.get("min_time", 0.2)),
    )
    gateway = RequestGateway(
        http,
        limiter,
        endpoint=str(al.get("endpoint") or "https://graphql.anilist.co"),
        timeout=float(al.get("timeout", 15.0)),
        max_retries=int(al.get("max_retries", 3)),
        default_retry_after=float(lim.get("default_retry_after", 60.0)),
    )
    query_cache = QueryCache(int(cc.get("query_max", 500)), float(cc.get("query_ttl", 600)))
    gateway.add_mutation_listener(query_cache.clear)

    anilist = ANILISTClient(gateway, query_cache)
    resolver = IdResolver(
        store,
        KitsuMappings(http, base_url=str(lk.get("kitsu_url")), timeout=lookup_timeout),
        ArmClient(http, base_url=str(lk.get("arm_url")), timeout=lookup_timeout),
        canonical_cache=MemoCache(int(cc.get("anilist_id_max", 10000)), float(cc.get("anilist_id_ttl", 86400))),
        external_cache=MemoCache(int(cc.get("external_id_max", 5000)), float(cc.get("external_id_ttl", 604800))),
    )
    fanart_key = str((cfg.get("fanart") or {}).get("api_key") or "")
    logos = LogoService(
        FanartProvider(http, fanart_key, base_url=str(lk.get("fanart_url")), timeout=lookup_timeout),
        resolver,
        MemoCache(int(cc.get("logo_max", 500)), float(cc.get("logo_ttl", 3600))),
    )
    cinemeta = CinemetaProvider(http, base_url=str(lk.get("cinemeta_url")), timeout=lookup_timeout)

    return Services(
        http=http,
        store=store,
        limiter=limiter,
        gateway=gateway,
        query_cache=query_cache,
        anilist=anilist,
        resolver=resolver,
        logos=logos,
        catalog=CatalogService(anilist, logos),
        progress=ProgressSync(anilist, resolver, cinemeta),
        _closers=closers,
    )


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Build the app; pass `services` to skip building (and closing) them on startup."""

    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
        if services is not None:
            app.state.services = services
            yield
            return
        cfg = load_config()
        _apply_debug_env_from_config(cfg)
        svc = await build_services(cfg)
        app.state.services = svc
        sk_log("SYNKURU", "startup", "info", "services ready", db=str(database_path(cfg)))
        try:
            yield
        finally:
            await svc.aclose()
            app.state.services = None
            sk_log("SYNKURU", "shutdown", "info", "services closed")

    app = FastAPI(title="Synkuru", version="0.0.1", lifespan=_lifespan)
    app.state.services = services
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    register(app)
    return app


# Entry point
def main(host: Optional[str] = None, port: Optional[int] = None) -> None:
    cfg = load_config()
    rt = cfg.get("runtime") or {}
    host = host or str(rt.get("host") or "0.0.0.0")
    port = int(port or rt.get("port") or 7000)
    debug = bool(rt.get("debug"))

    print("\nSynkuru addon running:")
    print(f"  Install: http://127.0.0.1:{port}/manifest.json")
    print(f"  Bind:    {host}:{port}")
    print(f"  DB:      {database_path(cfg)}\n")

    uvicorn.run(
        create_app(),
        host=host,
        port=port,
        log_level=("debug" if debug else "warning"),
        access_log=debug,
    )


if __name__ == "__main__":
    main()
