# app/core/intervals.py
"""
Half-open interval algebra used by availability and conflict checks.

Intervals are ``[start, end)``. Endpoints are either minutes (ints, usually
minutes of a local day) or aware datetimes; a single call never mixes them.
Two back-to-back intervals (``a.end == b.start``) do not overlap.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable, List, Optional

from app.core.errors import InvalidTimeFormat

MINUTES_PER_DAY = 24 * 60

_HHMM_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


@dataclass(frozen=True, order=True)
class Interval:
    start: Any
    end: Any

    @property
    def is_empty(self) -> bool:
        return not self.start < self.end

    @property
    def length(self):
        return self.end - self.start


def overlaps(a: Interval, b: Interval) -> bool:
    return a.start < b.end and a.end > b.start


def _delta(endpoint, minutes: int):
    if isinstance(endpoint, datetime):
        return timedelta(minutes=minutes)
    return minutes


def buffer(interval: Interval, minutes_before: int, minutes_after: int) -> Interval:
    """Widen ``interval`` by the given margins.

    Minute intervals may leave ``[0, 1440)``; use ``wrap_day`` to fold them
    back onto a day or ``clip`` to cut them to one.
    """
    return Interval(
        interval.start - _delta(interval.start, minutes_before),
        interval.end + _delta(interval.end, minutes_after),
    )


def clip(interval: Interval, lower, upper) -> Optional[Interval]:
    start = max(interval.start, lower)
    end = min(interval.end, upper)
    if start < end:
        return Interval(start, end)
    return None


def wrap_day(interval: Interval) -> List[Interval]:
    """Fold a minutes-of-day interval onto ``[0, 1440)`` modulo one day."""
    if interval.length >= MINUTES_PER_DAY:
        return [Interval(0, MINUTES_PER_DAY)]
    start = interval.start % MINUTES_PER_DAY
    end = start + interval.length
    if end <= MINUTES_PER_DAY:
        return [Interval(start, end)] if start < end else []
    return [Interval(0, end - MINUTES_PER_DAY), Interval(start, MINUTES_PER_DAY)]


def merge(intervals: Iterable[Interval]) -> List[Interval]:
    """Coalesce overlapping or touching intervals; empties are dropped."""
    merged: List[Interval] = []
    for current in sorted(i for i in intervals if not i.is_empty):
        if merged and current.start <= merged[-1].end:
            last = merged[-1]
            if current.end > last.end:
                merged[-1] = Interval(last.start, current.end)
        else:
            merged.append(current)
    return merged


def subtract(base: Iterable[Interval], cuts: Iterable[Interval]) -> List[Interval]:
    """Remove every ``cut`` from every ``base`` range.

    Sweep: cuts sorted by start, each base range walked left to right with a
    cursor. Output pieces are non-empty and chronological.
    """
    ordered_cuts = sorted(c for c in cuts if not c.is_empty)
    free: List[Interval] = []

    for rng in sorted(b for b in base if not b.is_empty):
        cursor = rng.start
        for cut in ordered_cuts:
            if cut.start >= rng.end:
                break
            if cut.end <= cursor:
                continue
            if cut.start > cursor:
                free.append(Interval(cursor, cut.start))
            cursor = max(cursor, cut.end)
            if cursor >= rng.end:
                break
        if cursor < rng.end:
            free.append(Interval(cursor, rng.end))

    return free


def parse_hhmm(value: str) -> int:
    """``"HH:MM"`` in ``[00:00, 24:00)`` → minutes of day."""
    match = _HHMM_RE.match(value or "") if isinstance(value, str) else None
    if not match:
        raise InvalidTimeFormat("time must look like HH:MM", value=value)
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise InvalidTimeFormat("time must be between 00:00 and 23:59", value=value)
    return hours * 60 + minutes


def format_hhmm(minutes: int) -> str:
    total = minutes % MINUTES_PER_DAY
    return f"{total // 60:02d}:{total % 60:02d}"
