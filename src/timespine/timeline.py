"""
Timeline engine: the caller-facing API over one entity's bitemporal history.

Manifesto:
    A timeline is every version of one entity, named by its identifier
    fields.  Callers state facts ("amount was 10 from Sept 21"); the engine
    works out which stored versions the fact overlaps, splits and merges
    them into a non-overlapping partition, and commits the result
    atomically.  Nothing is ever deleted: superseded versions are closed in
    valid time and stay queryable with ``as_of``.

Architecture:
    ::

        Timeline.update(attrs, from, till)
              │
              ├── prepare_fact()          defaults + validation (no I/O)
              └── Reconciler.apply()      native or set-oriented
                      │
                      ├── lock timeline, read history
                      ├── TimelineNotFoundError if empty
                      └── plan_update() → commit_plan() in one transaction

Lifecycle:
    Empty ──create──▶ Active ──terminate──▶ Terminated
                        ▲                       │
                        └──update to INFINITE───┘

Example::

    store = InMemoryTimelineStore()
    timeline = Timeline(store, {"wrapper_id": 1})
    timeline.create({"amount": 50}, effective_from="2018-09-20T00:00:00Z")
    timeline.update({"amount": 10}, effective_from="2018-09-21T00:00:00Z")
    [r.attributes["amount"] for r in timeline.effective_history()]  # [50, 10]

Tags:
    timeline, bitemporal, engine, reconcile, timespine
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from timespine.core.errors import (
    AlreadyExistsError,
    IncompleteIdentifierError,
    TimelineError,
)
from timespine.core.logging import LogContext, get_logger
from timespine.core.schema import SchemaDescriptor, is_blank
from timespine.core.temporal import Fact, TemporalRecord
from timespine.core.timestamps import ensure_utc, from_iso8601, utc_now
from timespine.core.validation import prepare_fact
from timespine.reconcile.committer import commit_plan
from timespine.reconcile.planner import find_open_record, plan_create, plan_terminate
from timespine.reconcile.strategy import NativeReconciler, Reconciler
from timespine.storage.protocols import StoreTransaction, TimelineStore

logger = get_logger(__name__)

TimeLike = datetime | str | None


class Timeline:
    """One entity's history, bound to a store.

    Args:
        store: Persistence collaborator.
        identifiers: Field/value pairs naming the timeline.
        schema: Optional identifier fields and enum label mappings.
        reconciler: Strategy for ``update``; defaults to native.
        clock: Source of ``current_time`` when a call omits it.
    """

    def __init__(
        self,
        store: TimelineStore,
        identifiers: Mapping[str, Any],
        *,
        schema: SchemaDescriptor | None = None,
        reconciler: Reconciler | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._identifiers = dict(identifiers)
        if schema is not None:
            schema.require_identifiers(self._identifiers)
        elif not self._identifiers or any(is_blank(v) for v in self._identifiers.values()):
            raise IncompleteIdentifierError(
                "Timeline identifiers can't be empty"
            ).with_context(identifiers=self._identifiers)

        self._store = store
        self._schema = schema
        self._reconciler = reconciler or NativeReconciler()
        self._clock = clock

    def __repr__(self) -> str:
        return f"Timeline({self._identifiers!r}, mode={self._reconciler.mode.value})"

    @property
    def identifiers(self) -> dict[str, Any]:
        return dict(self._identifiers)

    # -- reads ---------------------------------------------------------------

    def effective_history(self) -> list[TemporalRecord]:
        """Historically-valid records ordered by effective_from."""
        return self._store.query_historically_valid(self._identifiers)

    def history_as_of(self, system_time: datetime | str) -> list[TemporalRecord]:
        """What the timeline looked like to the system at *system_time*."""
        return self._store.query_as_of(self._identifiers, from_iso8601(system_time))

    def effective_at(
        self, point: datetime | str, *, as_of: TimeLike = None
    ) -> TemporalRecord | None:
        """The record true at *point*, by current belief or as of a system time."""
        at = from_iso8601(point)
        records = (
            self.effective_history() if as_of is None else self.history_as_of(as_of)
        )
        for record in records:
            if record.effective_contains(at):
                return record
        return None

    def open_record(self) -> TemporalRecord | None:
        """The historically-valid record with no effective end, if any."""
        return find_open_record(self.effective_history())

    def has_history(self) -> bool:
        return bool(self.effective_history())

    # -- writes --------------------------------------------------------------

    def _prepare(
        self,
        attrs: Mapping[str, Any],
        effective_from: TimeLike,
        effective_till: TimeLike,
        current_time: TimeLike,
    ) -> Fact:
        return prepare_fact(
            self._identifiers,
            attrs,
            effective_from=effective_from,
            effective_till=effective_till,
            current_time=current_time,
            schema=self._schema,
            clock=self._clock,
        )

    def create(
        self,
        attrs: Mapping[str, Any],
        effective_from: TimeLike = None,
        effective_till: TimeLike = None,
        *,
        current_time: TimeLike = None,
    ) -> TemporalRecord:
        """Write the first record of an empty timeline.

        Raises:
            AlreadyExistsError: the timeline has historically-valid records.
            ValidationError: the fact is malformed.
        """
        fact = self._prepare(attrs, effective_from, effective_till, current_time)

        def _create(txn: StoreTransaction) -> TemporalRecord:
            if txn.query_historically_valid(self._identifiers):
                raise AlreadyExistsError().with_context(identifiers=self.identifiers)
            return commit_plan(txn, plan_create(fact), fact.current_time)[0]

        with LogContext(timeline=self.identifiers):
            record = self._store.run_in_transaction(_create)
            logger.info(
                "timeline_created",
                record_id=record.record_id,
                effective_from=record.effective_from.isoformat(),
                effective_till=record.effective_till.isoformat(),
            )
        return record

    def update(
        self,
        attrs: Mapping[str, Any],
        effective_from: TimeLike = None,
        effective_till: TimeLike = None,
        *,
        current_time: TimeLike = None,
        raise_error: bool = True,
    ) -> bool:
        """Overlay *attrs* on ``[effective_from, effective_till)``.

        Returns ``True`` without writing when *attrs* is empty.  With
        ``raise_error=False`` a failure is logged and ``False`` returned.

        Raises:
            TimelineNotFoundError: the timeline has no history.
            ValidationError: the fact is malformed.
            StorageFailureError: the transaction rolled back.
        """
        if not attrs:
            return True

        with LogContext(timeline=self.identifiers):
            try:
                fact = self._prepare(attrs, effective_from, effective_till, current_time)
                stats = self._reconciler.apply(self._store, fact)
            except TimelineError as e:
                if raise_error:
                    raise
                logger.error("timeline_update_failed", error=e.to_dict())
                return False

            logger.info(
                "timeline_reconciled",
                mode=self._reconciler.mode.value,
                inserted=stats.inserted,
                invalidated=stats.invalidated,
                effective_from=fact.effective_from.isoformat(),
                effective_till=fact.effective_till.isoformat(),
            )
        return True

    def create_or_update(
        self,
        attrs: Mapping[str, Any],
        effective_from: TimeLike = None,
        effective_till: TimeLike = None,
        *,
        current_time: TimeLike = None,
        raise_error: bool = True,
    ) -> bool:
        """``create`` on an empty timeline, ``update`` otherwise."""
        if self.has_history():
            return self.update(
                attrs,
                effective_from,
                effective_till,
                current_time=current_time,
                raise_error=raise_error,
            )
        try:
            self.create(attrs, effective_from, effective_till, current_time=current_time)
        except TimelineError as e:
            if raise_error:
                raise
            logger.error("timeline_create_failed", timeline=self.identifiers, error=e.to_dict())
            return False
        return True

    def terminate(
        self,
        effective_till: TimeLike = None,
        *,
        current_time: TimeLike = None,
        raise_error: bool = True,
    ) -> bool:
        """Close the open-ended record at *effective_till* (default: now).

        Raises:
            NoEffectiveRecordError: no open-ended historically-valid record.
            InvalidIntervalError: *effective_till* precedes that record's start.
        """
        now = from_iso8601(current_time) or ensure_utc(self._clock())
        till = from_iso8601(effective_till) or now

        def _terminate(txn: StoreTransaction) -> TemporalRecord:
            plan = plan_terminate(txn.query_historically_valid(self._identifiers), till)
            return commit_plan(txn, plan, now)[0]

        with LogContext(timeline=self.identifiers):
            try:
                record = self._store.run_in_transaction(_terminate)
            except TimelineError as e:
                if raise_error:
                    raise e.with_context(identifiers=self.identifiers)
                logger.error("timeline_terminate_failed", error=e.to_dict())
                return False

            logger.info(
                "timeline_terminated",
                record_id=record.record_id,
                effective_till=till.isoformat(),
            )
        return True


__all__ = ["Timeline"]
