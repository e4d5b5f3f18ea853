"""Derive the attributes each timeframe carries after a correction."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from timespine.core.temporal import DraftRecord, TemporalRecord, Timeframe


def _covering(
    affected: Sequence[TemporalRecord], timeframe: Timeframe
) -> TemporalRecord | None:
    # At most one match: historically-valid intervals never overlap.
    for record in affected:
        if (
            record.effective_from <= timeframe.effective_from
            and record.effective_till >= timeframe.effective_till
        ):
            return record
    return None


def reconstruct(
    timeframes: Sequence[Timeframe],
    affected: Sequence[TemporalRecord],
    new_attributes: Mapping[str, Any],
    identifiers: Mapping[str, Any],
    new_from: datetime,
    new_till: datetime,
) -> list[DraftRecord]:
    """Build one draft per timeframe.

    - Covered by an old record: inherit its attributes, overlaid field by
      field with *new_attributes* when the timeframe lies in
      ``[new_from, new_till)``.
    - In a gap: *new_attributes* alone.  Previously unknown periods do not
      inherit from neighbouring records.
    """
    drafts: list[DraftRecord] = []
    for timeframe in timeframes:
        matched = _covering(affected, timeframe)
        if matched is not None:
            attributes = dict(matched.attributes)
            if timeframe.within(new_from, new_till):
                attributes.update(new_attributes)
        else:
            attributes = dict(new_attributes)

        drafts.append(
            DraftRecord(
                identifiers=dict(identifiers),
                attributes=attributes,
                effective_from=timeframe.effective_from,
                effective_till=timeframe.effective_till,
            )
        )
    return drafts


__all__ = ["reconstruct"]
