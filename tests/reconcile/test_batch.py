"""
Tests for timespine.reconcile.batch module.

Tests cover:
- Sequential application sees earlier facts of the same batch
- Latest-transaction strictness (including records created in-batch)
- Payload conversion used by the set-oriented path
"""

from datetime import UTC, datetime

import pytest

from timespine.core.errors import StaleTransactionError, TimelineNotFoundError
from timespine.core.temporal import Fact
from timespine.core.timestamps import INFINITE
from timespine.reconcile.batch import (
    BatchStats,
    apply_facts,
    check_latest,
    fact_from_payload,
    fact_to_payload,
)
from timespine.storage.memory import InMemoryTimelineStore

IDS = {"wrapper_id": 1}
OTHER = {"wrapper_id": 2}


def _d(day: int) -> datetime:
    return datetime(2018, 9, day, tzinfo=UTC)


def _fact(ids, start, end=INFINITE, now=None, **attrs) -> Fact:
    return Fact(ids, attrs, start, end, current_time=now or _d(25))


class TestApplyFacts:
    def test_create_then_update_same_timeline(self):
        store = InMemoryTimelineStore()
        stats = store.run_in_transaction(
            lambda txn: apply_facts(
                txn,
                [_fact(IDS, _d(20), amount=50), _fact(IDS, _d(21), amount=10)],
            )
        )
        assert stats == BatchStats(items=2, inserted=3, invalidated=1, timelines=1)

        history = store.query_historically_valid(IDS)
        assert [(r.effective_from, r.attributes["amount"]) for r in history] == [
            (_d(20), 50),
            (_d(21), 10),
        ]

    def test_independent_timelines(self):
        store = InMemoryTimelineStore()
        stats = store.run_in_transaction(
            lambda txn: apply_facts(
                txn, [_fact(IDS, _d(20), amount=1), _fact(OTHER, _d(20), amount=2)]
            )
        )
        assert stats.timelines == 2
        assert store.query_historically_valid(OTHER)[0].attributes == {"amount": 2}

    def test_stale_fact_rejected_against_in_batch_record(self):
        store = InMemoryTimelineStore()
        with pytest.raises(StaleTransactionError) as exc:
            store.run_in_transaction(
                lambda txn: apply_facts(
                    txn,
                    [_fact(IDS, _d(21), amount=1), _fact(IDS, _d(20), amount=2)],
                    latest_transactions=True,
                )
            )
        assert exc.value.context.batch_index == 1
        assert store.query_historically_valid(IDS) == []

    def test_stale_allowed_without_flag(self):
        store = InMemoryTimelineStore()
        store.run_in_transaction(
            lambda txn: apply_facts(
                txn, [_fact(IDS, _d(21), amount=1), _fact(IDS, _d(20), amount=2)]
            )
        )
        history = store.query_historically_valid(IDS)
        assert [r.attributes["amount"] for r in history] == [2]
        assert history[0].effective_from == _d(20)


class TestCheckLatest:
    def test_empty_history_passes(self):
        check_latest([], _fact(IDS, _d(1)), 0)

    def test_same_start_passes(self):
        store = InMemoryTimelineStore()
        store.run_in_transaction(lambda txn: apply_facts(txn, [_fact(IDS, _d(20), a=1)]))
        check_latest(store.query_historically_valid(IDS), _fact(IDS, _d(20)), 0)


class TestPayload:
    def test_payload_shape(self):
        payload = fact_to_payload(_fact(IDS, _d(20), _d(22), amount=5))
        assert payload == {
            "identifiers": IDS,
            "update_attrs": {"amount": 5},
            "effective_from": "2018-09-20T00:00:00+00:00",
            "effective_till": "2018-09-22T00:00:00+00:00",
            "current_time": "2018-09-25T00:00:00+00:00",
        }

    def test_from_payload(self):
        fact = fact_from_payload(
            {
                "identifiers": IDS,
                "update_attrs": {"amount": 5},
                "effective_from": "2018-09-20T00:00:00Z",
                "effective_till": "3000-01-01T00:00:00Z",
                "current_time": "2018-09-25T00:00:00Z",
            }
        )
        assert fact == _fact(IDS, _d(20), amount=5)


class TestCreateMissing:
    def test_empty_timeline_rejected(self):
        store = InMemoryTimelineStore()
        with pytest.raises(TimelineNotFoundError) as exc:
            store.run_in_transaction(
                lambda txn: apply_facts(
                    txn,
                    [_fact(IDS, _d(20), amount=1), _fact(OTHER, _d(20), amount=2)],
                    create_missing=False,
                )
            )
        assert exc.value.context.batch_index == 0
        assert store.query_historically_valid(IDS) == []

    def test_existing_timeline_updated(self):
        store = InMemoryTimelineStore()
        store.run_in_transaction(lambda txn: apply_facts(txn, [_fact(IDS, _d(20), amount=1)]))
        stats = store.run_in_transaction(
            lambda txn: apply_facts(txn, [_fact(IDS, _d(21), amount=2)], create_missing=False)
        )
        assert stats.inserted == 2
