"""
Storage contracts consumed by the timeline engine.

The engine never owns persistence.  It needs exactly two shapes: a store
that runs a callable inside one atomic transaction, and the transaction
handle that callable receives.

Architecture:
    ::

        TimelineStore
        ├── run_in_transaction(fn)        fn(txn); commit on return,
        │                                 rollback on any exception
        ├── query_historically_valid()    read-only, outside a transaction
        ├── query_as_of()                 records believed at a system time
        └── bulk_reconcile()              set-oriented batch reconciliation

        StoreTransaction
        ├── query_historically_valid()    read within the transaction
        ├── insert(draft, valid_from)     → committed TemporalRecord
        └── mark_invalid(id, at_time)     valid_till = at_time

Guardrails:
    ❌ DON'T: let a raw driver exception escape ``run_in_transaction``
    ✅ DO: wrap it in ``StorageFailureError`` after rolling back

    ❌ DON'T: wrap ``TimelineError`` subclasses raised by *fn*
    ✅ DO: roll back and re-raise them unchanged

    ❌ DON'T: let two transactions read the same timeline's history at once
    ✅ DO: serialise writers per timeline before the first history read,
       empty timelines included

Tags:
    protocol, storage, transaction, timespine
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from datetime import datetime
from typing import Any, Protocol, TypeVar, runtime_checkable

from timespine.core.temporal import DraftRecord, TemporalRecord

T = TypeVar("T")


@runtime_checkable
class StoreTransaction(Protocol):
    """Handle passed to the callable given to ``run_in_transaction``."""

    def query_historically_valid(
        self, identifiers: Mapping[str, Any]
    ) -> list[TemporalRecord]:
        """Historically-valid records of one timeline, ordered by effective_from."""
        ...

    def insert(self, draft: DraftRecord, valid_from: datetime) -> TemporalRecord:
        """Persist *draft* with ``valid_till = INFINITE``."""
        ...

    def mark_invalid(self, record_id: Any, at_time: datetime) -> None:
        """Set ``valid_till = at_time`` on a historically-valid record."""
        ...


@runtime_checkable
class TimelineStore(Protocol):
    """Persistence collaborator for :class:`timespine.timeline.Timeline`."""

    def run_in_transaction(self, fn: Callable[[StoreTransaction], T]) -> T:
        """Call ``fn(txn)`` atomically and return its result."""
        ...

    def query_historically_valid(
        self, identifiers: Mapping[str, Any]
    ) -> list[TemporalRecord]:
        """Read-only view of a timeline's current belief."""
        ...

    def query_as_of(
        self, identifiers: Mapping[str, Any], system_time: datetime
    ) -> list[TemporalRecord]:
        """Records believed at *system_time*, ordered by effective_from."""
        ...

    def bulk_reconcile(
        self,
        payload: Sequence[Mapping[str, Any]],
        latest_transactions: bool = False,
        *,
        create_missing: bool = True,
    ) -> Any:
        """Reconcile a JSON-like batch inside the store, in one transaction.

        With ``create_missing=False`` an item whose timeline is empty raises
        ``TimelineNotFoundError`` instead of creating it.
        """
        ...


__all__ = ["StoreTransaction", "TimelineStore"]
