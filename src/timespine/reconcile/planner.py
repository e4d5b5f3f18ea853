"""
Reconciliation planning: turn a timeline's current history plus one fact
into the exact set of records to insert and to invalidate.

Pure functions.  Nothing here reads a clock or touches storage, so the same
history and fact always yield the same plan.

Architecture:
    ::

        history, fact
              │
              ▼
        fetch_affected ──▶ compute_timeframes ──▶ reconstruct ──▶ squish
              │                                                   │
              └──────────── invalidated ─────── ReconcilePlan ◀───┘ inserts

Tags:
    reconcile, planner, bitemporal, timespine
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from timespine.core.errors import InvalidIntervalError, NoEffectiveRecordError
from timespine.core.temporal import DraftRecord, Fact, TemporalRecord
from timespine.reconcile.corrector import compute_timeframes, fetch_affected
from timespine.reconcile.reconstructor import reconstruct
from timespine.reconcile.squisher import squish


@dataclass(frozen=True, slots=True)
class ReconcilePlan:
    """Drafts to insert and historically-valid records they supersede."""

    inserts: tuple[DraftRecord, ...]
    invalidated: tuple[TemporalRecord, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.inserts and not self.invalidated


def plan_create(fact: Fact) -> ReconcilePlan:
    """First record of an empty timeline."""
    draft = DraftRecord(
        identifiers=dict(fact.identifiers),
        attributes=dict(fact.attributes),
        effective_from=fact.effective_from,
        effective_till=fact.effective_till,
    )
    return ReconcilePlan(inserts=(draft,))


def plan_update(history: Sequence[TemporalRecord], fact: Fact) -> ReconcilePlan:
    """Overlay *fact* on *history* (historically-valid records only).

    Every affected record is invalidated and replaced by the squished
    partition, even when the replacement is identical in content.
    """
    affected = fetch_affected(history, fact.effective_from, fact.effective_till)
    timeframes = compute_timeframes(affected, fact.effective_from, fact.effective_till)
    drafts = reconstruct(
        timeframes,
        affected,
        fact.attributes,
        fact.identifiers,
        fact.effective_from,
        fact.effective_till,
    )
    return ReconcilePlan(inserts=tuple(squish(drafts)), invalidated=tuple(affected))


def find_open_record(history: Sequence[TemporalRecord]) -> TemporalRecord | None:
    """The historically-valid record whose effective interval never ends."""
    for record in history:
        if record.is_historically_valid and record.is_open_ended:
            return record
    return None


def plan_terminate(
    history: Sequence[TemporalRecord], effective_till: datetime
) -> ReconcilePlan:
    """Close the open-ended record at *effective_till*.

    Raises:
        NoEffectiveRecordError: no open-ended historically-valid record.
        InvalidIntervalError: *effective_till* precedes the record's start.
    """
    record = find_open_record(history)
    if record is None:
        raise NoEffectiveRecordError()
    if record.effective_from > effective_till:
        raise InvalidIntervalError(record.effective_from, effective_till)

    closed = record.to_draft().spanning(effective_till)
    return ReconcilePlan(inserts=(closed,), invalidated=(record,))


__all__ = [
    "ReconcilePlan",
    "find_open_record",
    "plan_create",
    "plan_terminate",
    "plan_update",
]
