from __future__ import annotations

from fastapi import FastAPI

from .addonAPI import AddonConfig, manifest, parse_stremio_id, router as addon_router

__all__ = [
    "addon_router",
    "AddonConfig",
    "manifest",
    "parse_stremio_id",
    "register",
]

def register(app: FastAPI) -> None:
    app.include_router(addon_router)
