# /sk_platform/errors.py
# Synkuru - error taxonomy
# Copyright (c) 2025-2026 Synkuru
from __future__ import annotations

from typing import Any, Sequence

__all__ = [
    "SynkuruError",
    "ThrottledError",
    "UpstreamAPIError",
    "NotFoundError",
    "ConstraintConflictError",
    "ConfigurationError",
]


class SynkuruError(RuntimeError):
    pass


class ThrottledError(SynkuruError):
    """Upstream answered 429; retried by the gateway until its budget runs out."""

    def __init__(self, retry_after: float, *, body: str = "") -> None:
        self.retry_after = float(retry_after)
        self.body = body
        super().__init__(f"rate limited, retry after {self.retry_after:g}s")


class UpstreamAPIError(SynkuruError):
    """Non-2xx answer, transport failure, malformed body or GraphQL errors."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        body: str = "",
        messages: Sequence[str] = (),
    ) -> None:
        self.status = status
        self.body = body
        self.messages = list(messages)
        super().__init__(message)

    @property
    def not_found(self) -> bool:
        if self.status == 404:
            return True
        return any("not found" in m.lower() for m in self.messages)


class NotFoundError(SynkuruError):
    """Nothing to do: no mapping exists or the media is absent upstream."""


class ConstraintConflictError(SynkuruError):
    """An alternate-scheme id is already mapped to a different canonical id."""

    def __init__(self, scheme: str, external_id: Any, canonical_id: int) -> None:
        self.scheme = scheme
        self.external_id = external_id
        self.canonical_id = canonical_id
        super().__init__(f"{scheme}:{external_id} already mapped; anilist:{canonical_id} not stored")


class ConfigurationError(SynkuruError):
    pass
