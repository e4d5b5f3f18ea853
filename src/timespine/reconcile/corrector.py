"""
Interval correction: which records a new fact touches, and the finest
partition of history those records and the fact induce.

Given a timeline ``[a ── b) [b ── c) [c ── ∞)`` and a new interval
``[x, y)`` with ``a < x < b`` and ``c < y``:

- head  = the record containing ``x``       → ``[a, b)``
- range = records strictly inside ``(x, y)`` → ``[b, c)``
- tail  = the record containing ``y``       → ``[c, ∞)``

Timeframes are the consecutive pairs of the sorted, de-duplicated boundary
set ``{a, b, c, ∞, x, y}``; attribute membership is constant inside each.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime

from timespine.core.temporal import TemporalRecord, Timeframe


def _head(history: Iterable[TemporalRecord], point: datetime) -> TemporalRecord | None:
    for record in history:
        if record.effective_from <= point < record.effective_till:
            return record
    return None


def _tail(history: Iterable[TemporalRecord], point: datetime) -> TemporalRecord | None:
    for record in history:
        if record.effective_from < point <= record.effective_till:
            return record
    return None


def fetch_affected(
    history: Sequence[TemporalRecord],
    new_from: datetime,
    new_till: datetime,
) -> list[TemporalRecord]:
    """Return head, range and tail records, de-duplicated, ordered by effective_from.

    A missing head or tail is not an error: the new interval starts or ends
    in a gap or beyond current history.
    """
    head = _head(history, new_from)
    tail = _tail(history, new_till)
    in_range = [
        record
        for record in history
        if record.effective_from > new_from and record.effective_till < new_till
    ]

    affected: list[TemporalRecord] = []
    for record in [head, *in_range, tail]:
        if record is not None and not any(record is seen for seen in affected):
            affected.append(record)
    return sorted(affected, key=lambda r: r.effective_from)


def compute_timeframes(
    affected: Sequence[TemporalRecord],
    new_from: datetime,
    new_till: datetime,
) -> list[Timeframe]:
    """Finest partition over every affected boundary plus the new interval's."""
    boundaries = {new_from, new_till}
    for record in affected:
        boundaries.add(record.effective_from)
        boundaries.add(record.effective_till)
    points = sorted(boundaries)
    return [Timeframe(start, end) for start, end in zip(points, points[1:])]


__all__ = ["compute_timeframes", "fetch_affected"]
