# /providers/sync/anilist/_common.py
# AniList shared types and helpers
# Copyright (c) 2025-2026 Synkuru
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from providers._common import to_int
from sk_platform._log import make_logger as _sk_make_logger

__all__ = ["ListStatus", "MediaListState", "to_int", "make_logger"]


class ListStatus(str, Enum):
    CURRENT = "CURRENT"
    PLANNING = "PLANNING"
    COMPLETED = "COMPLETED"
    DROPPED = "DROPPED"
    PAUSED = "PAUSED"
    REPEATING = "REPEATING"

    @classmethod
    def parse(cls, value: Any) -> Optional["ListStatus"]:
        if value is None:
            return None
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return None


@dataclass(frozen=True)
class MediaListState:
    """The user's list entry for one media, as AniList reports it right now."""

    media_id: int
    progress: int
    status: Optional[ListStatus]
    total_episodes: Optional[int]
    is_movie: bool

    @property
    def on_list(self) -> bool:
        return self.status is not None


def make_logger(feature: str) -> Callable[..., None]:
    return _sk_make_logger("ANILIST", feature)
