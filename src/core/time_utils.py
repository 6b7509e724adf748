"""Timestamp normalization helpers (core domain)."""

from __future__ import annotations

from datetime import datetime, timezone
import math
import time
from typing import Any

# Anything below this is treated as seconds since the epoch.
_MS_THRESHOLD = 1_000_000_000_000


def to_ms(raw: Any) -> int:
    """Return a millisecond epoch for a seconds/ms number, numeric string or datetime.

    Unparseable, empty or non-positive input yields 0 so callers can treat it
    as "unknown".
    """

    if isinstance(raw, datetime):
        if raw.tzinfo is None:
            raw = raw.replace(tzinfo=timezone.utc)
        return max(0, int(raw.timestamp() * 1000))

    try:
        value = float(raw or 0)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(value) or value <= 0:
        return 0
    if value < _MS_THRESHOLD:
        value *= 1000
    return int(value)


def now_ms() -> int:
    return int(time.time() * 1000)
