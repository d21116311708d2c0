# /sk_platform/gateway.py
# Synkuru - the single chokepoint for AniList GraphQL traffic
# Copyright (c) 2025-2026 Synkuru
from __future__ import annotations

import time
from dataclasses import dataclass, field
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Mapping

import httpx

from ._log import log as sk_log, make_emitter
from .errors import ConfigurationError, ThrottledError, UpstreamAPIError
from .limiter import Limiter

__all__ = ["RequestSpec", "RequestGateway", "label_anilist", "retry_after_seconds"]

UA = "Synkuru/1.0"


def _log(level: str, msg: str, **fields: Any) -> None:
    sk_log("ANILIST", "gateway", level, msg, **fields)


def label_anilist(query: str) -> str:
    q = str(query or "")
    if "SaveMediaListEntry" in q:
        return "progress:save"
    if "MediaListCollection" in q:
        return "catalog:index"
    if "mediaListEntry" in q:
        return "progress:lookup"
    if "Viewer" in q:
        return "viewer"
    if "search:" in q:
        return "media:search"
    return "graphql"


def retry_after_seconds(header: str | None, default: float) -> float:
    """Retry-After as seconds; accepts delta-seconds or an HTTP date."""
    if not header:
        return default
    h = header.strip()
    try:
        return max(0.0, float(h))
    except ValueError:
        pass
    try:
        dt = parsedate_to_datetime(h)
    except (TypeError, ValueError):
        return default
    return max(0.0, dt.timestamp() - time.time())


@dataclass(frozen=True)
class RequestSpec:
    query: str
    variables: Mapping[str, Any] = field(default_factory=dict)
    credential: str | None = None
    mutation: bool = False
    requires_auth: bool = True
    label: str | None = None

    @property
    def feature(self) -> str:
        return self.label or label_anilist(self.query)


def _error_messages(payload: Any) -> list[str]:
    if not isinstance(payload, Mapping):
        return []
    errs = payload.get("errors")
    if not isinstance(errs, list):
        return []
    out: list[str] = []
    for e in errs:
        if isinstance(e, Mapping) and e.get("message"):
            out.append(str(e["message"]))
        elif e:
            out.append(str(e))
    return out


def _json_or_none(r: httpx.Response) -> Any:
    try:
        return r.json()
    except ValueError:
        return None


class RequestGateway:
    """Every AniList query and mutation goes through `execute`.

    Admission is delegated to the Limiter. A 429 sets the limiter's shared
    pause and the request is retried up to `max_retries` times; any other
    failure surfaces at once as UpstreamAPIError.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        limiter: Limiter,
        *,
        endpoint: str = "https://graphql.anilist.co",
        timeout: float = 15.0,
        max_retries: int = 3,
        default_retry_after: float = 60.0,
        ctx: Any = None,
    ) -> None:
        self.http = http
        self.limiter = limiter
        self.endpoint = endpoint
        self.timeout = float(timeout)
        self.max_retries = max(0, int(max_retries))
        self.default_retry_after = float(default_retry_after)
        self._emit = make_emitter(ctx)
        self._mutation_listeners: list[Callable[[], None]] = []

    def add_mutation_listener(self, fn: Callable[[], None]) -> None:
        self._mutation_listeners.append(fn)

    async def execute(self, spec: RequestSpec) -> dict[str, Any]:
        if spec.requires_auth and not (spec.credential or "").strip():
            raise ConfigurationError("AniList credential is missing")

        feature = spec.feature
        attempt = 0
        while True:
            attempt += 1
            try:
                async with self.limiter.slot():
                    body = await self._dispatch(spec, feature, attempt)
            except ThrottledError as e:
                self._emit("api:throttled", {"feature": feature, "attempt": attempt, "retry_after": e.retry_after})
                if attempt > self.max_retries:
                    _log("error", "rate limit retries exhausted", op=feature, attempts=attempt)
                    self._emit("api:failed", {"feature": feature, "attempt": attempt, "status": 429})
                    raise
                _log("warn", "rate limited (429)", op=feature, attempt=attempt, retry_after=e.retry_after)
                self.limiter.pause(e.retry_after)
                continue
            except UpstreamAPIError as e:
                _log("error", "request failed", op=feature, status=e.status, error=str(e))
                self._emit("api:failed", {"feature": feature, "attempt": attempt, "status": e.status})
                raise

            self._emit("api:success", {"feature": feature, "attempt": attempt})
            if spec.mutation:
                for fn in self._mutation_listeners:
                    fn()
            return body

    async def _dispatch(self, spec: RequestSpec, feature: str, attempt: int) -> dict[str, Any]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": UA,
        }
        if spec.credential:
            headers["Authorization"] = f"Bearer {spec.credential}"
        payload = {"query": spec.query, "variables": dict(spec.variables or {})}

        _log("debug", "dispatch", op=feature, attempt=attempt)
        self._emit("api:dispatch", {"feature": feature, "attempt": attempt})
        try:
            r = await self.http.post(self.endpoint, json=payload, headers=headers, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise UpstreamAPIError(f"AniList request timed out after {self.timeout:g}s") from e
        except httpx.HTTPError as e:
            raise UpstreamAPIError(f"AniList transport error: {e.__class__.__name__}: {e}") from e

        if r.status_code == 429:
            ra = retry_after_seconds(r.headers.get("Retry-After"), self.default_retry_after)
            raise ThrottledError(ra, body=r.text)

        j = _json_or_none(r)
        if not r.is_success:
            body = r.text
            raise UpstreamAPIError(
                f"AniList http:{r.status_code} {r.reason_phrase} - {body[:500]}",
                status=r.status_code,
                body=body,
                messages=_error_messages(j),
            )
        if not isinstance(j, dict):
            raise UpstreamAPIError("AniList returned a malformed body", status=r.status_code, body=r.text)

        messages = _error_messages(j)
        if j.get("errors"):
            raise UpstreamAPIError(
                "AniList API returned errors: " + "; ".join(messages or ["unknown error"]),
                status=r.status_code,
                body=r.text,
                messages=messages,
            )
        return j
