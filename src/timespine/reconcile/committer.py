"""Apply a :class:`ReconcilePlan` through an open store transaction."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from timespine.core.logging import get_logger
from timespine.core.temporal import TemporalRecord
from timespine.reconcile.planner import ReconcilePlan

if TYPE_CHECKING:
    from timespine.storage.protocols import StoreTransaction

logger = get_logger(__name__)


def commit_plan(
    txn: StoreTransaction,
    plan: ReconcilePlan,
    current_time: datetime,
) -> list[TemporalRecord]:
    """Insert the plan's drafts, then invalidate what they replace.

    Inserted records get ``valid_from = current_time`` and
    ``valid_till = INFINITE``; superseded records get
    ``valid_till = current_time``.  Atomicity is the transaction's job:
    if any step raises, the caller's transaction rolls everything back.
    """
    inserted = [txn.insert(draft, current_time) for draft in plan.inserts]
    for record in plan.invalidated:
        txn.mark_invalid(record.record_id, current_time)

    logger.debug(
        "plan_committed",
        inserted=len(inserted),
        invalidated=len(plan.invalidated),
        current_time=current_time.isoformat(),
    )
    return inserted


__all__ = ["commit_plan"]
