"""
timespine.core - primitives shared by the engine and its storage collaborators.

Modules:
    timestamps.py   INFINITE sentinel, UTC helpers, record ids
    temporal.py     TemporalRecord, DraftRecord, Timeframe, Fact
    schema.py       SchemaDescriptor (identifier fields, enum labels)
    validation.py   Pre-validation and default filling
    errors.py       TimelineError hierarchy
    logging.py      structlog configuration
    settings.py     TimespineSettings (pydantic-settings)
"""

from timespine.core.errors import (
    AlreadyExistsError,
    ConfigError,
    ErrorCategory,
    ErrorContext,
    IdentifierConflictError,
    IncompleteIdentifierError,
    InvalidIntervalError,
    NoEffectiveRecordError,
    ReservedFieldError,
    StaleTransactionError,
    StorageFailureError,
    TimelineError,
    TimelineNotFoundError,
    TimelineStateError,
    UnknownEnumLabelError,
    ValidationError,
)
from timespine.core.schema import SchemaDescriptor
from timespine.core.temporal import DraftRecord, Fact, TemporalRecord, Timeframe
from timespine.core.timestamps import INFINITE, ensure_utc, utc_now

__all__ = [
    "INFINITE",
    "AlreadyExistsError",
    "ConfigError",
    "DraftRecord",
    "ErrorCategory",
    "ErrorContext",
    "Fact",
    "IdentifierConflictError",
    "IncompleteIdentifierError",
    "InvalidIntervalError",
    "NoEffectiveRecordError",
    "ReservedFieldError",
    "SchemaDescriptor",
    "StaleTransactionError",
    "StorageFailureError",
    "TemporalRecord",
    "Timeframe",
    "TimelineError",
    "TimelineNotFoundError",
    "TimelineStateError",
    "UnknownEnumLabelError",
    "ValidationError",
    "ensure_utc",
    "utc_now",
]
