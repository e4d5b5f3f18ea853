"""
Tests for the SQLAlchemy store (orm, session, sql modules).

Most tests run against in-memory SQLite via ``create_timespine_engine``;
concurrent-writer tests use a file-backed database and real threads.
"""

from __future__ import annotations

import threading
import time
from datetime import UTC, datetime

import pytest
from sqlalchemy import inspect, select

from timespine.core.errors import (
    AlreadyExistsError,
    StaleTransactionError,
    StorageFailureError,
    TimelineError,
)
from timespine.core.settings import TimespineSettings
from timespine.core.temporal import DraftRecord, Fact
from timespine.core.timestamps import INFINITE
from timespine.reconcile.committer import commit_plan
from timespine.reconcile.planner import plan_create
from timespine.storage.orm import (
    TemporalRecordTable,
    TimelineLockTable,
    TimespineBase,
    canonical_key,
)
from timespine.storage.session import (
    TimespineSession,
    create_timespine_engine,
    timespine_session_factory,
)
from timespine.storage.sql import SqlAlchemyTimelineStore
from timespine.timeline import Timeline

IDS = {"wrapper_id": 1, "reporting_currency": "USD"}


def _d(day: int) -> datetime:
    return datetime(2018, 9, day, tzinfo=UTC)


def _draft(start, end, **attrs) -> DraftRecord:
    return DraftRecord(IDS, attrs, start, end)


def _payload(start: str, amount: int, ids=IDS) -> dict:
    return {
        "identifiers": ids,
        "update_attrs": {"amount": amount},
        "effective_from": start,
        "effective_till": "3000-01-01T00:00:00Z",
        "current_time": "2018-09-25T00:00:00Z",
    }


# =========================================================================
# ORM / session
# =========================================================================


class TestSchema:
    def test_table_created(self, sql_store, engine):
        insp = inspect(engine)
        assert {"timespine_records", "timespine_timeline_locks"} <= set(insp.get_table_names())
        columns = {c["name"] for c in insp.get_columns("timespine_records")}
        assert {
            "id",
            "timeline_key",
            "identifiers",
            "attributes",
            "effective_from",
            "effective_till",
            "valid_from",
            "valid_till",
            "created_at",
        } <= columns

    def test_index_on_timeline_and_validity(self, sql_store, engine):
        indexes = inspect(engine).get_indexes("timespine_records")
        assert any(ix["column_names"] == ["timeline_key", "valid_till"] for ix in indexes)

    def test_metadata_registered(self):
        assert "timespine_records" in TimespineBase.metadata.tables

    def test_canonical_key_order_independent(self):
        assert canonical_key({"b": 2, "a": 1}) == canonical_key({"a": 1, "b": 2}) == '{"a":1,"b":2}'

    def test_session_factory(self, engine):
        factory = timespine_session_factory(engine)
        with factory() as session:
            assert isinstance(session, TimespineSession)
            assert session.expire_on_commit is False


# =========================================================================
# Store
# =========================================================================


class TestSqlStore:
    def test_insert_round_trip_is_utc(self, sql_store):
        record = sql_store.run_in_transaction(
            lambda txn: txn.insert(_draft(_d(20), INFINITE, amount=50), _d(20))
        )
        loaded = sql_store.query_historically_valid(IDS)
        assert loaded == [record]
        assert loaded[0].effective_from.tzinfo is not None
        assert loaded[0].valid_till == INFINITE

    def test_rows_stored_naive(self, sql_store, engine):
        sql_store.run_in_transaction(
            lambda txn: txn.insert(_draft(_d(20), INFINITE, amount=50), _d(20))
        )
        with timespine_session_factory(engine)() as session:
            row = session.scalars(select(TemporalRecordTable)).one()
        assert row.effective_from == datetime(2018, 9, 20)
        assert row.timeline_key == canonical_key(IDS)

    def test_rollback_on_failure(self, sql_store):
        def _work(txn):
            txn.insert(_draft(_d(20), INFINITE, amount=50), _d(20))
            raise RuntimeError("boom")

        with pytest.raises(StorageFailureError) as exc:
            sql_store.run_in_transaction(_work)
        assert isinstance(exc.value.cause, RuntimeError)
        assert sql_store.query_historically_valid(IDS) == []

    def test_mark_invalid_and_as_of(self, sql_store):
        first = sql_store.run_in_transaction(
            lambda txn: txn.insert(_draft(_d(20), INFINITE, amount=50), _d(20))
        )

        def _correct(txn):
            txn.insert(_draft(_d(20), INFINITE, amount=10), _d(22))
            txn.mark_invalid(first.record_id, _d(22))

        sql_store.run_in_transaction(_correct)
        assert [r.attributes["amount"] for r in sql_store.query_historically_valid(IDS)] == [10]
        assert sql_store.query_as_of(IDS, _d(21))[0].attributes == {"amount": 50}
        assert sql_store.query_as_of(IDS, _d(23))[0].attributes == {"amount": 10}

    def test_missing_table_is_storage_failure(self, engine):
        store = SqlAlchemyTimelineStore(engine)
        with pytest.raises(StorageFailureError):
            store.query_historically_valid(IDS)

    def test_from_settings(self):
        settings = TimespineSettings(
            _env_file=None, database_url="sqlite:///:memory:", lock_rows=False
        )
        store = SqlAlchemyTimelineStore.from_settings(settings)
        store.create_all()
        assert store.query_historically_valid(IDS) == []


class TestSqlBulkReconcile:
    def test_prefetch_and_apply(self, sql_store):
        other = {"wrapper_id": 2, "reporting_currency": "USD"}
        stats = sql_store.bulk_reconcile(
            [
                _payload("2018-09-20T00:00:00Z", 50),
                _payload("2018-09-20T00:00:00Z", 5, ids=other),
                _payload("2018-09-21T00:00:00Z", 10),
            ]
        )
        assert stats.items == 3
        assert stats.inserted == 4
        assert stats.invalidated == 1
        assert [r.attributes["amount"] for r in sql_store.query_historically_valid(IDS)] == [50, 10]
        assert [r.attributes["amount"] for r in sql_store.query_historically_valid(other)] == [5]

    def test_latest_transactions_rolls_back_whole_batch(self, sql_store):
        with pytest.raises(StaleTransactionError):
            sql_store.bulk_reconcile(
                [
                    _payload("2018-09-21T00:00:00Z", 50),
                    _payload("2018-09-20T00:00:00Z", 10),
                ],
                latest_transactions=True,
            )
        assert sql_store.query_historically_valid(IDS) == []


class TestTimelineLocks:
    def test_lock_row_bumped_per_write(self, sql_store, engine):
        timeline = Timeline(sql_store, IDS)
        timeline.create({"amount": 1}, effective_from=_d(1))
        timeline.update({"amount": 2}, effective_from=_d(2))

        with timespine_session_factory(engine)() as session:
            lock = session.get(TimelineLockTable, canonical_key(IDS))
        assert lock is not None
        assert lock.version == 2

    def test_reads_take_no_lock(self, sql_store, engine):
        sql_store.query_historically_valid(IDS)
        with timespine_session_factory(engine)() as session:
            assert session.scalars(select(TimelineLockTable)).all() == []


def _hold_lock_then_create(store, started: threading.Event, hold: float):
    """Transaction that reads an empty history, waits, then creates."""

    def _work(txn):
        history = txn.query_historically_valid(IDS)
        started.set()
        time.sleep(hold)
        fact = Fact(IDS, {"amount": 2}, _d(1), INFINITE, _d(1))
        commit_plan(txn, plan_create(fact), fact.current_time)
        return history

    return store.run_in_transaction(_work)


class TestConcurrentWriters:
    """Writers to one timeline run one after another, even on an empty timeline."""

    def test_racing_creates_leave_one_record(self, database_url):
        store = SqlAlchemyTimelineStore(create_timespine_engine(database_url))
        store.create_all()
        started = threading.Event()
        outcome: dict = {}

        def _first():
            outcome["first_saw"] = _hold_lock_then_create(store, started, hold=0.3)

        def _second():
            started.wait(5)
            try:
                Timeline(store, IDS).create({"amount": 1}, effective_from=_d(1))
            except TimelineError as e:
                outcome["second_error"] = e

        threads = [threading.Thread(target=_first), threading.Thread(target=_second)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=15)

        assert outcome["first_saw"] == []
        assert isinstance(outcome.get("second_error"), AlreadyExistsError)
        history = store.query_historically_valid(IDS)
        assert [dict(r.attributes) for r in history] == [{"amount": 2}]
        store.engine.dispose()

    def test_lock_timeout_is_retryable(self, database_url):
        store = SqlAlchemyTimelineStore(
            create_timespine_engine(
                database_url, connect_args={"check_same_thread": False, "timeout": 0.05}
            )
        )
        store.create_all()
        started = threading.Event()
        outcome: dict = {}

        holder = threading.Thread(
            target=lambda: _hold_lock_then_create(store, started, hold=1.0)
        )
        holder.start()
        started.wait(5)
        try:
            Timeline(store, IDS).create({"amount": 1}, effective_from=_d(1))
        except StorageFailureError as e:
            outcome["error"] = e
        holder.join(timeout=15)

        assert outcome["error"].retryable is True
        assert [dict(r.attributes) for r in store.query_historically_valid(IDS)] == [
            {"amount": 2}
        ]
        store.engine.dispose()

def test_engine_factory_sqlite_memory_shares_connection():
    eng = create_timespine_engine("sqlite:///:memory:")
    TimespineBase.metadata.create_all(eng)
    assert "timespine_records" in inspect(eng).get_table_names()
    eng.dispose()
