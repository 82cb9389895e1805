from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

SAFETY_MARGIN_SECONDS = 300

Clock = Callable[[], float]


@dataclass
class CachedToken:
    value: str
    expires_at: float


class TokenCache:
    """Single-entry cache for the service-level bearer token.

    The entry expires ``SAFETY_MARGIN_SECONDS`` before the lifetime reported by the
    identity endpoint.
    """

    def __init__(self, clock: Clock = time.time, margin_seconds: float = SAFETY_MARGIN_SECONDS) -> None:
        self._clock = clock
        self._margin = margin_seconds
        self._entry: Optional[CachedToken] = None

    def get(self) -> Optional[str]:
        if self._entry is None:
            return None
        if self._clock() >= self._entry.expires_at:
            return None
        return self._entry.value

    def put(self, value: str, ttl_seconds: float) -> CachedToken:
        self._entry = CachedToken(value=value, expires_at=self._clock() + (float(ttl_seconds) - self._margin))
        return self._entry

    def invalidate(self) -> None:
        self._entry = None

    @property
    def expires_at(self) -> Optional[float]:
        return self._entry.expires_at if self._entry else None
