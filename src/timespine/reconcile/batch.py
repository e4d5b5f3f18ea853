"""
Sequential application of many facts inside one store transaction.

Shared by both reconciler strategies and by the stores' set-oriented
``bulk_reconcile``.  Per timeline the outcome equals calling
``create_or_update`` once per fact, in order: an empty timeline gets a
plain create, later facts see the records earlier facts produced.

The JSON-like payload format accepted by ``TimelineStore.bulk_reconcile``::

    {
        "identifiers": {"wrapper_id": 1, "reporting_currency": "USD"},
        "update_attrs": {"amount": 10},
        "effective_from": "2018-09-21T00:00:00+00:00",
        "effective_till": "3000-01-01T00:00:00+00:00",
        "current_time": "2018-09-25T00:00:00+00:00",
    }

Tags:
    reconcile, bulk, batch, timespine
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, MutableMapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from timespine.core.errors import StaleTransactionError, TimelineNotFoundError
from timespine.core.temporal import Fact, TemporalRecord, timeline_key
from timespine.core.timestamps import from_iso8601, to_iso8601
from timespine.reconcile.committer import commit_plan
from timespine.reconcile.planner import plan_create, plan_update

if TYPE_CHECKING:
    from timespine.storage.protocols import StoreTransaction

TimelineKey = tuple[tuple[str, Any], ...]


@dataclass(frozen=True, slots=True)
class BatchStats:
    """Counts reported for one applied batch."""

    items: int = 0
    inserted: int = 0
    invalidated: int = 0
    timelines: int = 0

    def __add__(self, other: BatchStats) -> BatchStats:
        return BatchStats(
            items=self.items + other.items,
            inserted=self.inserted + other.inserted,
            invalidated=self.invalidated + other.invalidated,
            timelines=self.timelines + other.timelines,
        )


def fact_to_payload(fact: Fact) -> dict[str, Any]:
    """Serialize a fact into the bulk payload format."""
    return {
        "identifiers": dict(fact.identifiers),
        "update_attrs": dict(fact.attributes),
        "effective_from": to_iso8601(fact.effective_from),
        "effective_till": to_iso8601(fact.effective_till),
        "current_time": to_iso8601(fact.current_time),
    }


def fact_from_payload(item: Mapping[str, Any]) -> Fact:
    """Inverse of :func:`fact_to_payload`; payload items are already validated."""
    return Fact(
        identifiers=dict(item["identifiers"]),
        attributes=dict(item.get("update_attrs") or {}),
        effective_from=from_iso8601(item["effective_from"]),
        effective_till=from_iso8601(item["effective_till"]),
        current_time=from_iso8601(item["current_time"]),
    )


def check_latest(history: Sequence[TemporalRecord], fact: Fact, index: int) -> None:
    """Reject a fact that starts before the timeline's latest record.

    Raises:
        StaleTransactionError: ``fact.effective_from`` is earlier than the
            start of the latest historically-valid record.
    """
    if not history:
        return
    latest = max(history, key=lambda r: r.effective_from)
    if fact.effective_from < latest.effective_from:
        raise StaleTransactionError(
            "effective_from is earlier than the latest record on the timeline"
        ).with_context(
            identifiers=dict(fact.identifiers),
            effective_from=fact.effective_from,
            batch_index=index,
            latest_effective_from=latest.effective_from,
        )


def apply_facts(
    txn: StoreTransaction,
    facts: Iterable[Fact],
    *,
    latest_transactions: bool = False,
    create_missing: bool = True,
    histories: MutableMapping[TimelineKey, list[TemporalRecord]] | None = None,
) -> BatchStats:
    """Plan and commit *facts* one after another inside *txn*.

    *histories* may hold prefetched historically-valid records keyed by
    :func:`timeline_key`; timelines missing from it are read through the
    transaction.  The mapping is kept current as facts are applied.

    An empty timeline gets a create, unless *create_missing* is false, in
    which case :class:`TimelineNotFoundError` is raised.
    """
    histories = {} if histories is None else histories
    inserted = invalidated = count = 0
    touched: set[TimelineKey] = set()

    for index, fact in enumerate(facts):
        key = timeline_key(fact.identifiers)
        if key not in histories:
            histories[key] = list(txn.query_historically_valid(fact.identifiers))
        history = histories[key]

        if not history and not create_missing:
            raise TimelineNotFoundError().with_context(
                identifiers=dict(fact.identifiers), batch_index=index
            )
        if latest_transactions:
            check_latest(history, fact, index)

        plan = plan_update(history, fact) if history else plan_create(fact)
        committed = commit_plan(txn, plan, fact.current_time)

        superseded = {record.record_id for record in plan.invalidated}
        histories[key] = sorted(
            [r for r in history if r.record_id not in superseded] + committed,
            key=lambda r: r.effective_from,
        )
        inserted += len(committed)
        invalidated += len(superseded)
        count += 1
        touched.add(key)

    return BatchStats(
        items=count, inserted=inserted, invalidated=invalidated, timelines=len(touched)
    )


__all__ = [
    "BatchStats",
    "apply_facts",
    "check_latest",
    "fact_from_payload",
    "fact_to_payload",
]
