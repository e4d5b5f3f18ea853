"""Declarative base and the versioned-record table.

Uses SQLAlchemy 2.0 ``DeclarativeBase`` with a ``type_annotation_map``
that maps Python built-in types to portable SA column types.

Every version of every timeline lives in one table.  Timestamps are stored
as naive UTC ``DateTime`` values; the store re-attaches UTC on read.
``timeline_key`` is the canonical JSON of the identifiers, indexed together
with ``valid_till`` so "current belief of timeline X" is a single index
range scan.

Tags:
    orm, sqlalchemy, tables, bitemporal, timespine
"""

from __future__ import annotations

import datetime
import json
from collections.abc import Mapping
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class TimespineBase(DeclarativeBase):
    """Shared declarative base for timespine tables.

    * ``str``   → ``Text``
    * ``int``   → ``Integer``
    * ``datetime.datetime`` → ``DateTime``
    * ``dict``  → ``JSON``    (stored as TEXT in SQLite, native JSON elsewhere)
    """

    type_annotation_map = {
        str: Text,
        int: Integer,
        datetime.datetime: DateTime,
        dict: JSON,
    }


def canonical_key(identifiers: Mapping[str, Any]) -> str:
    """Stable text form of a timeline's identifiers."""
    return json.dumps(dict(identifiers), sort_keys=True, separators=(",", ":"), default=str)


class TemporalRecordTable(TimespineBase):
    __tablename__ = "timespine_records"
    __table_args__ = (
        Index("ix_timespine_records_timeline_valid", "timeline_key", "valid_till"),
    )

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    timeline_key: Mapped[str] = mapped_column(Text, nullable=False)
    identifiers: Mapped[dict] = mapped_column(JSON, nullable=False)
    attributes: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    effective_from: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False)
    effective_till: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False)
    valid_from: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False)
    valid_till: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return (
            f"TemporalRecordTable(id={self.id!r}, timeline_key={self.timeline_key!r}, "
            f"effective=[{self.effective_from}, {self.effective_till}), "
            f"valid=[{self.valid_from}, {self.valid_till}))"
        )


class TimelineLockTable(TimespineBase):
    """One row per timeline, updated by every writer before it reads history.

    The update holds the row's write lock until commit, so writers to the
    same timeline run one after another even when the timeline is empty.
    """

    __tablename__ = "timespine_timeline_locks"

    timeline_key: Mapped[str] = mapped_column(Text, primary_key=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


__all__ = ["TemporalRecordTable", "TimelineLockTable", "TimespineBase", "canonical_key"]
