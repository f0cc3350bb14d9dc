# lazy_farms/services/farming.py
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""Mission / gem-level helpers shared by the mission, factory and boost CLIs."""

import time

from lazy_farms.core.constants import DAY, HOUR, MINUTE, GEM_LEVELS

# Mission lifecycle states.
CLOSED = "closed"
PENDING = "pending"
COMPLETED = "completed"
ACTIVE = "active"


def _now(now: int | None) -> int:
    return int(time.time()) if now is None else int(now)


def lookup_level(rank: int) -> str:
    """On-chain gem rank → level name; unknown ranks come back as text."""
    if 0 <= rank < len(GEM_LEVELS):
        return GEM_LEVELS[rank]
    return str(rank)


def get_level(name: str | int) -> int:
    """
    Level name (`C`, `sr`, ...) or numeric string → on-chain rank.

    Raises:
        ValueError: neither a level name nor an integer.
    """
    text = str(name).strip().upper()
    if text in GEM_LEVELS:
        return GEM_LEVELS.index(text)
    try:
        return int(text)
    except ValueError:
        raise ValueError(
            f"Unknown gem level: {name!r} (expected one of {', '.join(GEM_LEVELS)} or a number)"
        ) from None


def mission_status(
    start: int, end: int, paused: bool = False, closed: bool = False, now: int | None = None
) -> str:
    """
    Lifecycle state of a mission.

    `end == 0` means the mission has no end. A paused mission that has started
    is still reported as active; pausing only blocks new entries.
    """
    if closed:
        return CLOSED
    ts = _now(now)
    if start > ts:
        return PENDING
    if 0 < end < ts:
        return COMPLETED
    return ACTIVE


def time_remaining(end: int, now: int | None = None) -> int:
    """Seconds until `end` (negative once overdue)."""
    return int(end) - _now(now)


def format_duration(seconds: int) -> str:
    """`45s`, `12m`, `3h 5m`, `2d 4h`."""
    seconds = int(seconds)
    if seconds < MINUTE:
        return f"{seconds}s"
    minutes = seconds // MINUTE
    if seconds < HOUR:
        return f"{minutes}m"
    hours = seconds // HOUR
    if seconds < DAY:
        rest = minutes % 60
        return f"{hours}h {rest}m" if rest else f"{hours}h"
    days = seconds // DAY
    rest = hours % 24
    return f"{days}d {rest}h" if rest else f"{days}d"
