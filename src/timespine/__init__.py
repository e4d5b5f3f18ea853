"""
timespine - bitemporal timeline reconciliation.

Every entity's history is a timeline of versioned records, each with an
effective interval (when the fact was true) and a validity interval (when
the system believed it).  New facts are reconciled into a non-overlapping
partition of effective time; superseded versions are closed in valid time
and never deleted.

Quick start::

    from timespine import InMemoryTimelineStore, Timeline

    store = InMemoryTimelineStore()
    timeline = Timeline(store, {"wrapper_id": 1, "reporting_currency": "USD"})
    timeline.create({"amount": 50}, effective_from="2018-09-20T00:00:00Z")
    timeline.update({"amount": 10}, effective_from="2018-09-21T00:00:00Z")
    timeline.effective_at("2018-09-20T12:00:00Z").attributes  # {'amount': 50}
"""

from timespine.bulk import BulkReconciler, BulkResult
from timespine.core.errors import (
    AlreadyExistsError,
    ConfigError,
    IdentifierConflictError,
    IncompleteIdentifierError,
    InvalidIntervalError,
    NoEffectiveRecordError,
    ReservedFieldError,
    StaleTransactionError,
    StorageFailureError,
    TimelineError,
    TimelineNotFoundError,
    UnknownEnumLabelError,
    ValidationError,
)
from timespine.core.schema import SchemaDescriptor
from timespine.core.settings import TimespineSettings, UpdateMode, get_settings
from timespine.core.temporal import DraftRecord, TemporalRecord, Timeframe
from timespine.core.timestamps import INFINITE
from timespine.reconcile.strategy import (
    NativeReconciler,
    Reconciler,
    SetReconciler,
    build_reconciler,
)
from timespine.storage.memory import InMemoryTimelineStore
from timespine.storage.sql import SqlAlchemyTimelineStore
from timespine.timeline import Timeline

__version__ = "0.1.0"

__all__ = [
    "INFINITE",
    "AlreadyExistsError",
    "BulkReconciler",
    "BulkResult",
    "ConfigError",
    "DraftRecord",
    "IdentifierConflictError",
    "InMemoryTimelineStore",
    "IncompleteIdentifierError",
    "InvalidIntervalError",
    "NativeReconciler",
    "NoEffectiveRecordError",
    "Reconciler",
    "ReservedFieldError",
    "SchemaDescriptor",
    "SetReconciler",
    "SqlAlchemyTimelineStore",
    "StaleTransactionError",
    "StorageFailureError",
    "TemporalRecord",
    "Timeframe",
    "Timeline",
    "TimelineError",
    "TimelineNotFoundError",
    "TimespineSettings",
    "UnknownEnumLabelError",
    "UpdateMode",
    "ValidationError",
    "build_reconciler",
    "get_settings",
]
