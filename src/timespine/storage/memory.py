"""
In-memory timeline store.

Manifesto:
    Tests and single-process tools need the full engine without a database.
    This store keeps every record version in a dict and gives the same
    transactional guarantees as the SQL store: a transaction works on a
    staged copy and publishes it only when the callable returns.

Example::

    store = InMemoryTimelineStore()
    timeline = Timeline(store, {"wrapper_id": 1})
    timeline.create({"amount": 50}, effective_from=sept_20)
    len(store)  # 1

Tags:
    storage, in-memory, testing, single-node, timespine
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import replace
from datetime import datetime
from typing import Any, TypeVar

from timespine.core.errors import StorageFailureError, TimelineError, TimelineStateError
from timespine.core.logging import get_logger
from timespine.core.temporal import DraftRecord, TemporalRecord, timeline_key
from timespine.core.timestamps import INFINITE, ensure_utc, generate_record_id, utc_now
from timespine.reconcile.batch import BatchStats, apply_facts, fact_from_payload

logger = get_logger(__name__)

T = TypeVar("T")


def _ordered(records: Iterable[TemporalRecord]) -> list[TemporalRecord]:
    return sorted(records, key=lambda r: r.effective_from)


class _MemoryTransaction:
    """Staged view of the store's records."""

    def __init__(self, records: Mapping[Any, TemporalRecord]) -> None:
        self._records: dict[Any, TemporalRecord] = dict(records)

    @property
    def records(self) -> dict[Any, TemporalRecord]:
        return self._records

    def query_historically_valid(
        self, identifiers: Mapping[str, Any]
    ) -> list[TemporalRecord]:
        key = timeline_key(identifiers)
        return _ordered(
            r
            for r in self._records.values()
            if r.is_historically_valid and timeline_key(r.identifiers) == key
        )

    def prefetch(
        self, identifier_sets: Iterable[Mapping[str, Any]]
    ) -> dict[tuple, list[TemporalRecord]]:
        """Historically-valid records of several timelines in one pass."""
        wanted = {timeline_key(ids) for ids in identifier_sets}
        found: dict[tuple, list[TemporalRecord]] = {key: [] for key in wanted}
        for record in self._records.values():
            key = timeline_key(record.identifiers)
            if key in wanted and record.is_historically_valid:
                found[key].append(record)
        return {key: _ordered(records) for key, records in found.items()}

    def insert(self, draft: DraftRecord, valid_from: datetime) -> TemporalRecord:
        record = TemporalRecord(
            identifiers=dict(draft.identifiers),
            attributes=dict(draft.attributes),
            effective_from=ensure_utc(draft.effective_from),
            effective_till=ensure_utc(draft.effective_till),
            valid_from=ensure_utc(valid_from),
            valid_till=INFINITE,
            record_id=generate_record_id(),
            created_at=utc_now(),
        )
        self._records[record.record_id] = record
        return record

    def mark_invalid(self, record_id: Any, at_time: datetime) -> None:
        record = self._records.get(record_id)
        if record is None or not record.is_historically_valid:
            raise TimelineStateError(
                f"record {record_id} is not historically valid"
            ).with_context(record_id=record_id)
        self._records[record_id] = replace(record, valid_till=ensure_utc(at_time))


class InMemoryTimelineStore:
    """Dict-backed :class:`~timespine.storage.protocols.TimelineStore`.

    One re-entrant lock serialises transactions; reads outside a
    transaction see only published state.
    """

    def __init__(self) -> None:
        self._records: dict[Any, TemporalRecord] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._records)

    def all_records(self) -> list[TemporalRecord]:
        """Every version ever stored, superseded ones included."""
        with self._lock:
            return list(self._records.values())

    def run_in_transaction(self, fn: Callable[[_MemoryTransaction], T]) -> T:
        with self._lock:
            txn = _MemoryTransaction(self._records)
            try:
                result = fn(txn)
            except TimelineError:
                logger.debug("transaction_rolled_back", store="memory")
                raise
            except Exception as e:
                logger.warning("transaction_failed", store="memory", error=str(e))
                raise StorageFailureError(
                    f"in-memory transaction failed: {e}", cause=e
                ) from e
            self._records = txn.records
            return result

    def query_historically_valid(
        self, identifiers: Mapping[str, Any]
    ) -> list[TemporalRecord]:
        with self._lock:
            return _MemoryTransaction(self._records).query_historically_valid(identifiers)

    def query_as_of(
        self, identifiers: Mapping[str, Any], system_time: datetime
    ) -> list[TemporalRecord]:
        key = timeline_key(identifiers)
        at = ensure_utc(system_time)
        with self._lock:
            return _ordered(
                r
                for r in self._records.values()
                if timeline_key(r.identifiers) == key and r.valid_at(at)
            )

    def bulk_reconcile(
        self,
        payload: Sequence[Mapping[str, Any]],
        latest_transactions: bool = False,
        *,
        create_missing: bool = True,
    ) -> BatchStats:
        facts = [fact_from_payload(item) for item in payload]

        def _apply(txn: _MemoryTransaction) -> BatchStats:
            histories = txn.prefetch(fact.identifiers for fact in facts)
            return apply_facts(
                txn,
                facts,
                latest_transactions=latest_transactions,
                create_missing=create_missing,
                histories=histories,
            )

        return self.run_in_transaction(_apply)


__all__ = ["InMemoryTimelineStore"]
