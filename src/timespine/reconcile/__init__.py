"""
timespine.reconcile - the reconciliation pipeline.

Pure planning (corrector → reconstructor → squisher → planner), the
committer that applies a plan through a store transaction, and the
reconciler strategies that choose how a plan reaches storage.
"""

from timespine.reconcile.batch import BatchStats, apply_facts
from timespine.reconcile.committer import commit_plan
from timespine.reconcile.corrector import compute_timeframes, fetch_affected
from timespine.reconcile.planner import (
    ReconcilePlan,
    plan_create,
    plan_terminate,
    plan_update,
)
from timespine.reconcile.reconstructor import reconstruct
from timespine.reconcile.squisher import squish
from timespine.reconcile.strategy import (
    NativeReconciler,
    Reconciler,
    SetReconciler,
    build_reconciler,
)

__all__ = [
    "BatchStats",
    "NativeReconciler",
    "ReconcilePlan",
    "Reconciler",
    "SetReconciler",
    "apply_facts",
    "build_reconciler",
    "commit_plan",
    "compute_timeframes",
    "fetch_affected",
    "plan_create",
    "plan_terminate",
    "plan_update",
    "reconstruct",
    "squish",
]
