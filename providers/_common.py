# /providers/_common.py
# Synkuru - shared helpers for the auxiliary HTTP lookups
# Copyright (c) 2025-2026 Synkuru
from __future__ import annotations

import json
from typing import Any, Mapping

import httpx

from sk_platform._log import log as sk_log

__all__ = ["UA", "safe_json", "fetch_json", "to_int"]

UA = "Synkuru/1.0"


def safe_json(resp: httpx.Response) -> Any:
    try:
        if not (resp.text or "").strip():
            return {}
        ctype = (resp.headers.get("Content-Type") or "").lower()
        if "json" in ctype:
            return resp.json()
        return json.loads(resp.text)
    except ValueError:
        return {}


def to_int(v: Any) -> int | None:
    """Lenient int: accepts "12" and "12.0"; bools, blanks and junk are None."""
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v
    s = str(v).strip()
    if not s:
        return None
    try:
        return int(float(s))
    except (ValueError, OverflowError):
        return None


async def fetch_json(
    http: httpx.AsyncClient,
    url: str,
    *,
    provider: str,
    feature: str,
    params: Mapping[str, Any] | None = None,
    timeout: float = 5.0,
    quiet_404: bool = True,
) -> Any | None:
    """GET url and decode JSON; every failure is logged and returned as None."""
    try:
        r = await http.get(
            url,
            params=dict(params or {}),
            headers={"Accept": "application/json", "User-Agent": UA},
            timeout=timeout,
        )
    except httpx.HTTPError as e:
        sk_log(provider, feature, "error", "request error", url=url, error=f"{e.__class__.__name__}: {e}")
        return None

    if r.status_code == 404 and quiet_404:
        sk_log(provider, feature, "info", "not found", url=url)
        return None
    if not r.is_success:
        sk_log(provider, feature, "error", "http error", url=url, status=r.status_code, reason=r.reason_phrase)
        return None
    return safe_json(r)
