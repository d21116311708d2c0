# /providers/sync/anilist/_progress.py
# AniList Module for progress reconciliation
# Copyright (c) 2025-2026 Synkuru
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol

from sk_platform.errors import ConfigurationError, NotFoundError, ThrottledError, UpstreamAPIError
from sk_platform.id_map import Scheme, WatchEvent

from ._common import ListStatus, MediaListState, make_logger, to_int

__all__ = ["ProgressDecision", "decide", "ProgressSync"]

_log = make_logger("progress")


@dataclass(frozen=True)
class ProgressDecision:
    write: bool
    reason: str
    media_id: Optional[int] = None
    progress: Optional[int] = None
    status: Optional[ListStatus] = None
    previous_progress: Optional[int] = None
    previous_status: Optional[ListStatus] = None


def _skip(reason: str, state: MediaListState | None = None) -> ProgressDecision:
    if state is None:
        return ProgressDecision(False, reason)
    return ProgressDecision(
        False,
        reason,
        media_id=state.media_id,
        previous_progress=state.progress,
        previous_status=state.status,
    )


def decide(state: MediaListState | None, episode: int, *, restrict_to_listed: bool = False) -> ProgressDecision:
    """Transition policy for one watch event against the current list entry.

    Progress only moves forward. A movie always lands on progress 1 and
    COMPLETED. A series is completed once progress reaches the episode total;
    below that a COMPLETED entry is reopened as CURRENT and any other status is
    kept. An episode past a known total is treated as bad numbering and skipped.
    """
    if state is None:
        return _skip("not_found")
    if restrict_to_listed and not state.on_list:
        return _skip("not_listed", state)

    target = 1 if state.is_movie else int(episode)
    if target <= state.progress:
        return _skip("not_ahead", state)

    total = state.total_episodes if state.total_episodes and state.total_episodes > 0 else None
    if not state.is_movie and total is not None and target > total:
        return _skip("beyond_total", state)

    if state.is_movie or (total is not None and target >= total):
        status = ListStatus.COMPLETED
    elif state.status is ListStatus.COMPLETED:
        status = ListStatus.CURRENT
    elif state.status is None:
        status = ListStatus.CURRENT
    else:
        status = state.status

    return ProgressDecision(
        True,
        "advance",
        media_id=state.media_id,
        progress=target,
        status=status,
        previous_progress=state.progress,
        previous_status=state.status,
    )


class _Client(Protocol):
    async def media_list_entry(self, media_id: int, credential: str) -> MediaListState: ...
    async def save_progress(self, media_id: int, progress: int, status: ListStatus | None, credential: str) -> Any: ...
    async def search_by_name(self, name: str, credential: str) -> Optional[dict[str, Any]]: ...


class _Resolver(Protocol):
    async def resolve_canonical_id(self, external_id: Any, scheme: Any) -> Optional[int]: ...


class _TitleLookup(Protocol):
    async def title(self, imdb_id: str, media_type: str) -> Optional[str]: ...


class ProgressSync:
    def __init__(self, client: _Client, resolver: _Resolver, title_lookup: _TitleLookup | None = None) -> None:
        self.client = client
        self.resolver = resolver
        self.title_lookup = title_lookup

    async def _title_for(self, event: WatchEvent) -> Optional[str]:
        if event.title:
            return event.title
        if self.title_lookup is None or event.scheme is not Scheme.IMDB or not event.external_id:
            return None
        name = await self.title_lookup.title(str(event.external_id), event.media_type)
        if not name:
            return None
        season = to_int(event.season) or 1
        return f"{name} {season}" if season > 1 else name

    async def resolve_media_id(self, event: WatchEvent) -> Optional[int]:
        # One imdb series id spans several AniList entries (one per season),
        # so series events from imdb only resolve by title.
        by_id = event.external_id is not None and not (event.scheme is Scheme.IMDB and not event.is_movie)
        if by_id:
            aid = await self.resolver.resolve_canonical_id(event.external_id, event.scheme)
            if aid:
                return aid
        if not event.search_by_title:
            return None
        name = await self._title_for(event)
        if not name:
            _log("no title for name search", level="info", scheme=event.scheme.value, id=event.external_id)
            return None
        hit = await self.client.search_by_name(name, event.credential)
        return to_int(hit.get("id")) if hit else None

    async def handle_watch_event(self, event: WatchEvent) -> ProgressDecision:
        if not (event.credential or "").strip():
            raise ConfigurationError("AniList credential is missing")

        media_id = await self.resolve_media_id(event)
        if not media_id:
            _log("no AniList id for event", level="info", scheme=event.scheme.value, id=event.external_id,
                 episode=event.episode)
            return _skip("unresolved")

        try:
            state: MediaListState | None = await self.client.media_list_entry(media_id, event.credential)
        except NotFoundError:
            state = None
        except (UpstreamAPIError, ThrottledError) as e:
            _log("list entry fetch failed", level="error", anilist=media_id, error=str(e))
            raise

        decision = decide(state, event.episode, restrict_to_listed=event.restrict_to_listed)
        if not decision.write:
            _log("no update", level="info", anilist=media_id, reason=decision.reason, episode=event.episode,
                 progress=decision.previous_progress)
            return decision

        if decision.progress is None:
            raise ValueError(f"write decision for anilist:{media_id} carries no progress")
        try:
            await self.client.save_progress(media_id, decision.progress, decision.status, event.credential)
        except (UpstreamAPIError, ThrottledError) as e:
            _log("progress write failed", level="error", anilist=media_id, progress=decision.progress, error=str(e))
            raise

        _log("progress updated", level="info", anilist=media_id, progress=decision.progress,
             status=decision.status.value if decision.status else None,
             was=decision.previous_progress)
        return decision
