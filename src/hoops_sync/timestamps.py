from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Any, Callable, Iterable, Mapping, Optional

from .errors import GameDocumentError

MATCH_HOUR = 19
MATCH_MINUTE = 30


def first_operation_time(details: Iterable[Mapping[str, Any]]) -> Optional[Any]:
    for detail in details or []:
        ts = detail.get("timestamp")
        if ts is not None:
            return ts
    return None


def match_timestamp(
    operation_ms: Optional[Any] = None,
    now: Optional[Callable[[], float]] = None,
    tz: Optional[tzinfo] = None,
) -> int:
    """Return epoch milliseconds for 19:30:00.000 on the calendar date of ``operation_ms``.

    Without an operation time the current date is used (``now`` returns epoch seconds
    and defaults to the system clock). ``tz`` defaults to the local timezone.
    """
    if operation_ms is not None:
        try:
            base = datetime.fromtimestamp(float(operation_ms) / 1000.0, tz=tz)
        except (TypeError, ValueError, OverflowError, OSError):
            raise GameDocumentError(f"operation timestamp must be epoch milliseconds, got {operation_ms!r}") from None
    elif now is not None:
        base = datetime.fromtimestamp(now(), tz=tz)
    else:
        base = datetime.now(tz=tz)
    pinned = base.replace(hour=MATCH_HOUR, minute=MATCH_MINUTE, second=0, microsecond=0)
    return int(round(pinned.timestamp() * 1000))
