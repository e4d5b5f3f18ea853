"""
Bitemporal data model: records, drafts, timeframes and facts.

Two independent time axes:

- **Effective axis** (``effective_from`` / ``effective_till``): business
  reality - when was this fact true in the real world?
- **Valid axis** (``valid_from`` / ``valid_till``): bookkeeping - when did
  the system believe this version?

Both intervals are half-open ``[from, till)``.  ``INFINITE`` on either
``till`` means "still true" / "still believed".

Architecture:
    ::

        Fact ──(reconcile)──▶ DraftRecord ──(commit)──▶ TemporalRecord
        (validated request)   (no system fields)       (id, created_at,
                                                        valid_from/till)

All types are frozen dataclasses: a draft is built, validated and handed to
the committer; nothing downstream can mutate it.

Tags:
    temporal, bi-temporal, record, timeframe, timespine
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from timespine.core.timestamps import INFINITE, to_iso8601

# Fields owned by the engine or the store, never part of business attributes.
SYSTEM_FIELDS: frozenset[str] = frozenset(
    {"id", "record_id", "created_at", "updated_at", "valid_from", "valid_till"}
)
EFFECTIVE_FIELDS: frozenset[str] = frozenset({"effective_from", "effective_till"})


def timeline_key(identifiers: Mapping[str, Any]) -> tuple[tuple[str, Any], ...]:
    """Hashable, order-independent key for a timeline's identifiers."""
    return tuple(sorted(identifiers.items()))


@dataclass(frozen=True, slots=True)
class Timeframe:
    """A half-open effective sub-interval ``[effective_from, effective_till)``."""

    effective_from: datetime
    effective_till: datetime

    def within(self, start: datetime, end: datetime) -> bool:
        """True if this timeframe lies inside ``[start, end)``."""
        return start <= self.effective_from and self.effective_till <= end


@dataclass(frozen=True, slots=True)
class DraftRecord:
    """A record-to-be: identifiers, business attributes and an effective interval.

    Drafts carry no system fields.  Two drafts describe the same belief when
    :meth:`same_belief` holds, which is what the squisher merges on.
    """

    identifiers: Mapping[str, Any]
    attributes: Mapping[str, Any]
    effective_from: datetime
    effective_till: datetime

    @property
    def timeframe(self) -> Timeframe:
        return Timeframe(self.effective_from, self.effective_till)

    def same_belief(self, other: DraftRecord) -> bool:
        """Deep-equal non-temporal content (identifiers and attributes)."""
        return dict(self.identifiers) == dict(other.identifiers) and dict(
            self.attributes
        ) == dict(other.attributes)

    def spanning(self, effective_till: datetime) -> DraftRecord:
        """Copy of this draft widened to end at *effective_till*."""
        return replace(self, effective_till=effective_till)


@dataclass(frozen=True, slots=True)
class TemporalRecord:
    """One committed, versioned snapshot of an entity.

    Attributes:
        identifiers: Key/value pairs naming the timeline.
        attributes: Business fields (opaque to the engine).
        effective_from: Start of real-world validity (inclusive).
        effective_till: End of real-world validity (exclusive).
        valid_from: When the system started believing this record.
        valid_till: When it was superseded, ``INFINITE`` while believed.
        record_id: Store-assigned identifier.
        created_at: Store-assigned audit timestamp.
    """

    identifiers: Mapping[str, Any]
    attributes: Mapping[str, Any]
    effective_from: datetime
    effective_till: datetime
    valid_from: datetime
    valid_till: datetime = INFINITE
    record_id: Any = None
    created_at: datetime | None = None

    # -- query helpers -------------------------------------------------------

    @property
    def is_historically_valid(self) -> bool:
        """True while this record is the current belief."""
        return self.valid_till == INFINITE

    @property
    def is_open_ended(self) -> bool:
        """True if the fact is still effective (no effective end)."""
        return self.effective_till == INFINITE

    @property
    def timeframe(self) -> Timeframe:
        return Timeframe(self.effective_from, self.effective_till)

    def effective_contains(self, point: datetime) -> bool:
        """Was this fact true in the real world at *point*?"""
        return self.effective_from <= point < self.effective_till

    def valid_at(self, system_time: datetime) -> bool:
        """Did the system believe this record at *system_time*?"""
        return self.valid_from <= system_time < self.valid_till

    def get(self, name: str, default: Any = None) -> Any:
        """Business attribute or identifier lookup."""
        if name in self.attributes:
            return self.attributes[name]
        return self.identifiers.get(name, default)

    def to_draft(self) -> DraftRecord:
        """Business content of this record, system fields stripped."""
        return DraftRecord(
            identifiers=dict(self.identifiers),
            attributes=dict(self.attributes),
            effective_from=self.effective_from,
            effective_till=self.effective_till,
        )

    def to_dict(self) -> dict[str, Any]:
        """Flat JSON-friendly representation."""
        return {
            "record_id": self.record_id,
            **dict(self.identifiers),
            **dict(self.attributes),
            "effective_from": to_iso8601(self.effective_from),
            "effective_till": to_iso8601(self.effective_till),
            "valid_from": to_iso8601(self.valid_from),
            "valid_till": to_iso8601(self.valid_till),
        }


@dataclass(frozen=True, slots=True)
class Fact:
    """A validated, default-filled request to change one timeline.

    Built by :func:`timespine.core.validation.prepare_fact`; every field is
    final by the time a reconciler sees it.
    """

    identifiers: Mapping[str, Any]
    attributes: Mapping[str, Any]
    effective_from: datetime
    effective_till: datetime
    current_time: datetime

    @property
    def timeframe(self) -> Timeframe:
        return Timeframe(self.effective_from, self.effective_till)


__all__ = [
    "EFFECTIVE_FIELDS",
    "SYSTEM_FIELDS",
    "DraftRecord",
    "Fact",
    "TemporalRecord",
    "Timeframe",
    "timeline_key",
]
