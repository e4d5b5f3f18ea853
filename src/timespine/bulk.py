"""
Bulk reconciliation: many facts, many timelines, one call.

Each batch item is a flat mapping of identifier fields, business
attributes and optional ``effective_from`` / ``effective_till`` /
``current_time``.  The whole batch is validated before anything is
written; it is then applied in sub-batches of ``batch_size`` items, one
store transaction each.  A failing sub-batch rolls back on its own;
earlier sub-batches stay committed.

Per timeline the result equals calling ``create_or_update`` once per item
in batch order.

Example::

    schema = SchemaDescriptor(identifier_fields=("wrapper_id", "reporting_currency"))
    bulk = BulkReconciler(store, schema)
    result = bulk.reconcile(
        [
            {"wrapper_id": 1, "reporting_currency": "USD", "amount": 50,
             "effective_from": "2018-09-20T00:00:00Z"},
            {"wrapper_id": 1, "reporting_currency": "USD", "amount": 10,
             "effective_from": "2018-09-21T00:00:00Z"},
        ],
        batch_size=500,
    )
    result.inserted  # 3

Tags:
    bulk, batch, reconcile, timespine
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from timespine.core.errors import TimelineError
from timespine.core.logging import get_logger
from timespine.core.schema import SchemaDescriptor
from timespine.core.settings import get_settings
from timespine.core.temporal import Fact
from timespine.core.timestamps import utc_now
from timespine.core.validation import prepare_fact
from timespine.reconcile.batch import BatchStats
from timespine.reconcile.strategy import Reconciler, build_reconciler
from timespine.storage.protocols import TimelineStore

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class BulkResult:
    """Outcome of :meth:`BulkReconciler.reconcile`."""

    items: int
    batches: int
    inserted: int
    invalidated: int


class BulkReconciler:
    """Batch entry point over a store and a schema descriptor.

    Args:
        store: Persistence collaborator.
        schema: Identifier fields (required) and enum mappings.
        reconciler: Strategy; defaults to the configured ``update_mode``.
        clock: Source of ``current_time`` for items that omit it.
    """

    def __init__(
        self,
        store: TimelineStore,
        schema: SchemaDescriptor,
        *,
        reconciler: Reconciler | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._schema = schema
        self._reconciler = reconciler or build_reconciler(get_settings().update_mode)
        self._clock = clock

    def _to_fact(self, item: Mapping[str, Any], index: int, now: datetime) -> Fact:
        identifiers, rest = self._schema.split(item)
        try:
            self._schema.require_identifiers(identifiers)
            return prepare_fact(
                identifiers,
                rest,
                current_time=rest.get("current_time") or now,
                schema=self._schema,
                clock=self._clock,
            )
        except TimelineError as e:
            raise e.with_context(batch_index=index)

    def reconcile(
        self,
        batch: Sequence[Mapping[str, Any]],
        batch_size: int | None = None,
        latest_transactions_required: bool = False,
    ) -> BulkResult:
        """Validate every item, then apply sub-batches in order.

        Raises:
            IncompleteIdentifierError: an item lacks an identifier value.
            StaleTransactionError: with ``latest_transactions_required``, an
                item starts before its timeline's latest record.
            StorageFailureError: a sub-batch transaction rolled back.
        """
        size = batch_size or get_settings().batch_size
        now = self._clock()
        facts = [self._to_fact(item, index, now) for index, item in enumerate(batch)]

        totals = BatchStats()
        batches = 0
        for start in range(0, len(facts), size):
            chunk = facts[start : start + size]
            try:
                stats = self._reconciler.apply_batch(
                    self._store, chunk, latest_transactions=latest_transactions_required
                )
            except TimelineError as e:
                if e.context.batch_index is not None:
                    e.context.batch_index += start
                logger.error("bulk_batch_failed", batch=batches, error=e.to_dict())
                raise
            totals += stats
            batches += 1
            logger.info(
                "bulk_batch_applied",
                batch=batches,
                mode=self._reconciler.mode.value,
                items=stats.items,
                inserted=stats.inserted,
                invalidated=stats.invalidated,
            )

        return BulkResult(
            items=totals.items,
            batches=batches,
            inserted=totals.inserted,
            invalidated=totals.invalidated,
        )


__all__ = ["BulkReconciler", "BulkResult"]
