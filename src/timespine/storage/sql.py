"""
SQLAlchemy-backed timeline store.

Every ``run_in_transaction`` call opens a fresh session and wraps the
callable in ``session.begin()``: the block commits when the callable
returns and rolls back on any exception.

Before a transaction reads a timeline's history it takes that timeline's
lock: it upserts the timeline's row in ``timespine_timeline_locks`` and
bumps its ``version``.  The write holds a row lock on PostgreSQL and the
database write lock on SQLite until commit, so a second writer to the same
timeline waits and then reads the first writer's result.  Empty timelines
are covered too, since the lock row exists independently of any record.
History reads also take ``SELECT ... FOR UPDATE`` when ``lock_rows`` is
enabled.  A lock wait that times out or deadlocks surfaces as a retryable
``StorageFailureError``.

``bulk_reconcile`` is the set-oriented path: every timeline in the payload
is locked in key order, their historically-valid rows are fetched with one
query, then facts are planned and applied in order, flushing inserts as
they go.

Example::

    engine = create_timespine_engine("sqlite:///:memory:")
    store = SqlAlchemyTimelineStore(engine)
    store.create_all()

Tags:
    storage, sqlalchemy, transaction, locking, bitemporal, timespine
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy import insert, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from timespine.core.errors import StorageFailureError, TimelineError, TimelineStateError
from timespine.core.logging import get_logger
from timespine.core.settings import TimespineSettings
from timespine.core.temporal import DraftRecord, TemporalRecord, timeline_key
from timespine.core.timestamps import (
    INFINITE,
    ensure_utc,
    generate_record_id,
    to_naive_utc,
    utc_now,
)
from timespine.reconcile.batch import BatchStats, apply_facts, fact_from_payload
from timespine.storage.orm import (
    TemporalRecordTable,
    TimelineLockTable,
    TimespineBase,
    canonical_key,
)
from timespine.storage.session import create_timespine_engine, timespine_session_factory

logger = get_logger(__name__)

T = TypeVar("T")

_INFINITE_NAIVE = to_naive_utc(INFINITE)


def _to_record(row: TemporalRecordTable) -> TemporalRecord:
    return TemporalRecord(
        identifiers=dict(row.identifiers),
        attributes=dict(row.attributes or {}),
        effective_from=ensure_utc(row.effective_from),
        effective_till=ensure_utc(row.effective_till),
        valid_from=ensure_utc(row.valid_from),
        valid_till=ensure_utc(row.valid_till),
        record_id=row.id,
        created_at=ensure_utc(row.created_at),
    )


class _SqlTransaction:
    """Transaction handle bound to one open session."""

    def __init__(self, session: Session, *, lock_rows: bool, serialize: bool = True) -> None:
        self._session = session
        self._lock_rows = lock_rows
        self._serialize = serialize
        self._locked: set[str] = set()

    def lock_timelines(self, keys: Iterable[str]) -> None:
        """Take the write lock of each timeline in *keys*, in sorted order.

        Held until the transaction ends.  Keys already locked by this
        transaction are skipped.
        """
        pending = sorted(set(keys) - self._locked)
        if not pending:
            return

        table = TimelineLockTable.__table__
        rows = [{"timeline_key": key, "version": 0} for key in pending]
        dialect = self._session.get_bind().dialect.name
        if dialect in ("sqlite", "postgresql"):
            upsert = sqlite_insert if dialect == "sqlite" else postgresql_insert
            self._session.execute(
                upsert(table).values(rows).on_conflict_do_nothing(index_elements=["timeline_key"])
            )
        else:
            existing = set(
                self._session.scalars(
                    select(table.c.timeline_key).where(table.c.timeline_key.in_(pending))
                )
            )
            missing = [row for row in rows if row["timeline_key"] not in existing]
            if missing:
                self._session.execute(insert(table), missing)

        for key in pending:
            self._session.execute(
                update(table)
                .where(table.c.timeline_key == key)
                .values(version=table.c.version + 1)
            )
        self._locked.update(pending)

    def _current_rows(self, keys: Sequence[str]) -> list[TemporalRecordTable]:
        if self._serialize:
            self.lock_timelines(keys)
        stmt = (
            select(TemporalRecordTable)
            .where(
                TemporalRecordTable.timeline_key.in_(keys),
                TemporalRecordTable.valid_till == _INFINITE_NAIVE,
            )
            .order_by(TemporalRecordTable.effective_from)
        )
        if self._lock_rows:
            stmt = stmt.with_for_update()
        return list(self._session.scalars(stmt))

    def query_historically_valid(
        self, identifiers: Mapping[str, Any]
    ) -> list[TemporalRecord]:
        return [_to_record(row) for row in self._current_rows([canonical_key(identifiers)])]

    def prefetch(
        self, identifier_sets: Iterable[Mapping[str, Any]]
    ) -> dict[tuple, list[TemporalRecord]]:
        """Historically-valid records of several timelines in one query."""
        by_canonical: dict[str, tuple] = {}
        for identifiers in identifier_sets:
            by_canonical.setdefault(canonical_key(identifiers), timeline_key(identifiers))

        found: dict[tuple, list[TemporalRecord]] = {key: [] for key in by_canonical.values()}
        if not by_canonical:
            return found
        for row in self._current_rows(list(by_canonical)):
            found[by_canonical[row.timeline_key]].append(_to_record(row))
        return found

    def insert(self, draft: DraftRecord, valid_from: datetime) -> TemporalRecord:
        key = canonical_key(draft.identifiers)
        if self._serialize:
            self.lock_timelines([key])
        row = TemporalRecordTable(
            id=generate_record_id(),
            timeline_key=key,
            identifiers=dict(draft.identifiers),
            attributes=dict(draft.attributes),
            effective_from=to_naive_utc(draft.effective_from),
            effective_till=to_naive_utc(draft.effective_till),
            valid_from=to_naive_utc(valid_from),
            valid_till=_INFINITE_NAIVE,
            created_at=to_naive_utc(utc_now()),
        )
        self._session.add(row)
        self._session.flush()
        return _to_record(row)

    def mark_invalid(self, record_id: Any, at_time: datetime) -> None:
        row = self._session.get(TemporalRecordTable, record_id)
        if row is None or row.valid_till != _INFINITE_NAIVE:
            raise TimelineStateError(
                f"record {record_id} is not historically valid"
            ).with_context(record_id=record_id)
        row.valid_till = to_naive_utc(at_time)
        self._session.flush()


class SqlAlchemyTimelineStore:
    """:class:`~timespine.storage.protocols.TimelineStore` on SQLAlchemy 2.0."""

    def __init__(self, engine: Engine, *, lock_rows: bool = True) -> None:
        self._engine = engine
        self._session_factory = timespine_session_factory(engine)
        self._lock_rows = lock_rows

    @classmethod
    def from_settings(cls, settings: TimespineSettings) -> SqlAlchemyTimelineStore:
        """Build a store from ``database_url`` / ``database_echo`` / ``lock_rows``."""
        engine = create_timespine_engine(settings.database_url, echo=settings.database_echo)
        return cls(engine, lock_rows=settings.lock_rows)

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_all(self) -> None:
        """Create the ``timespine_records`` table if missing."""
        TimespineBase.metadata.create_all(self._engine)
        logger.debug("tables_created", url=self._engine.url.render_as_string(hide_password=True))

    def run_in_transaction(self, fn: Callable[[_SqlTransaction], T]) -> T:
        session = self._session_factory()
        try:
            with session.begin():
                return fn(_SqlTransaction(session, lock_rows=self._lock_rows))
        except TimelineError:
            logger.debug("transaction_rolled_back", store="sqlalchemy")
            raise
        except Exception as e:
            logger.warning("transaction_failed", store="sqlalchemy", error=str(e))
            raise StorageFailureError(
                f"database transaction failed: {e}",
                retryable=isinstance(e, OperationalError),
                cause=e,
            ) from e
        finally:
            session.close()

    def _read(self, fn: Callable[[Session], T]) -> T:
        try:
            with self._session_factory() as session:
                return fn(session)
        except SQLAlchemyError as e:
            raise StorageFailureError(
                f"database read failed: {e}",
                retryable=isinstance(e, OperationalError),
                cause=e,
            ) from e

    def query_historically_valid(
        self, identifiers: Mapping[str, Any]
    ) -> list[TemporalRecord]:
        return self._read(
            lambda session: _SqlTransaction(
                session, lock_rows=False, serialize=False
            ).query_historically_valid(identifiers)
        )

    def query_as_of(
        self, identifiers: Mapping[str, Any], system_time: datetime
    ) -> list[TemporalRecord]:
        at = to_naive_utc(system_time)
        stmt = (
            select(TemporalRecordTable)
            .where(
                TemporalRecordTable.timeline_key == canonical_key(identifiers),
                TemporalRecordTable.valid_from <= at,
                TemporalRecordTable.valid_till > at,
            )
            .order_by(TemporalRecordTable.effective_from)
        )
        return self._read(
            lambda session: [_to_record(row) for row in session.scalars(stmt)]
        )

    def bulk_reconcile(
        self,
        payload: Sequence[Mapping[str, Any]],
        latest_transactions: bool = False,
        *,
        create_missing: bool = True,
    ) -> BatchStats:
        facts = [fact_from_payload(item) for item in payload]

        def _apply(txn: _SqlTransaction) -> BatchStats:
            histories = txn.prefetch(fact.identifiers for fact in facts)
            return apply_facts(
                txn,
                facts,
                latest_transactions=latest_transactions,
                create_missing=create_missing,
                histories=histories,
            )

        stats = self.run_in_transaction(_apply)
        logger.debug("bulk_reconciled", store="sqlalchemy", items=stats.items)
        return stats


__all__ = ["SqlAlchemyTimelineStore"]
