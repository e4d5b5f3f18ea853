"""
Structured error types for timespine.

Every failure the engine can report is a :class:`TimelineError` carrying a
category, an explicit retry flag, structured context (timeline identifiers,
interval, batch position) and an optional chained cause.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       TimelineError                             │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                 │
        │  ValidationError            TimelineStateError                  │
        │  (VALIDATION)               (STATE)                             │
        │       │                          │                              │
        │  InvalidIntervalError       AlreadyExistsError                  │
        │  ReservedFieldError         TimelineNotFoundError               │
        │  IdentifierConflictError    NoEffectiveRecordError              │
        │  IncompleteIdentifierError  StaleTransactionError               │
        │  UnknownEnumLabelError                                          │
        │                                                                 │
        │  StorageFailureError        ConfigError                         │
        │  (STORAGE)                  (CONFIG)                            │
        └─────────────────────────────────────────────────────────────────┘

Propagation:
    Validation and state errors are raised before any write.  Storage
    failures are raised after the transaction rolled back.  Nothing here
    is retried automatically; ``retryable`` only informs the caller.

Tags:
    error-handling, exception-hierarchy, timespine, bitemporal
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    VALIDATION = "VALIDATION"  # Malformed fact or batch item
    STATE = "STATE"  # Operation not allowed in the timeline's state
    STORAGE = "STORAGE"  # Transaction or commit failure
    CONFIG = "CONFIG"  # Invalid settings
    INTERNAL = "INTERNAL"  # Bugs, unexpected state


@dataclass
class ErrorContext:
    """Structured metadata attached to a :class:`TimelineError`.

    Attributes:
        identifiers: Identifier fields of the timeline involved.
        effective_from: Start of the requested effective interval.
        effective_till: End of the requested effective interval.
        batch_index: Position of the offending item in a bulk batch.
        metadata: Additional key-value pairs.
    """

    identifiers: dict[str, Any] | None = None
    effective_from: Any = None
    effective_till: Any = None
    batch_index: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ["identifiers", "effective_from", "effective_till", "batch_index"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class TimelineError(Exception):
    """
    Base exception for all timespine errors.

    Subclasses set ``default_category`` and ``default_retryable``; callers
    may override either per instance.

    Examples:
        >>> error = TimelineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(identifiers={"account_id": 1}).context.identifiers
        {'account_id': 1}
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> TimelineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise IncompleteIdentifierError("identifier missing").with_context(
                identifiers={"account_id": 1},
                effective_from=start,
            )
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(TimelineError):
    """
    Malformed input rejected before any storage access.

    Never retryable - the fact must be fixed.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


class InvalidIntervalError(ValidationError):
    """``effective_from`` is later than ``effective_till``."""

    def __init__(self, effective_from: Any, effective_till: Any, message: str | None = None):
        super().__init__(
            message or "effective_from can't be greater than effective_till",
            context=ErrorContext(effective_from=effective_from, effective_till=effective_till),
        )


class ReservedFieldError(ValidationError):
    """Attributes tried to set a field owned by the engine or the store."""


class IdentifierConflictError(ValidationError):
    """Attributes name an identifier field with a different value."""


class IncompleteIdentifierError(ValidationError):
    """A bulk item is missing one or more identifier fields."""


class UnknownEnumLabelError(ValidationError):
    """An enum-mapped field received a label the schema does not know."""


# =============================================================================
# STATE ERRORS
# =============================================================================


class TimelineStateError(TimelineError):
    """Operation is not allowed in the timeline's current state."""

    default_category = ErrorCategory.STATE
    default_retryable = False


class AlreadyExistsError(TimelineStateError):
    """``create`` called on a timeline that already has history."""

    def __init__(self, message: str = "timeline already exists", **kwargs: Any):
        super().__init__(message, **kwargs)


class TimelineNotFoundError(TimelineStateError):
    """``update`` called on a timeline without history."""

    def __init__(self, message: str = "timeline not found", **kwargs: Any):
        super().__init__(message, **kwargs)


class NoEffectiveRecordError(TimelineStateError):
    """``terminate`` called with no open-ended historically-valid record."""

    def __init__(self, message: str = "no effective record found on timeline", **kwargs: Any):
        super().__init__(message, **kwargs)


class StaleTransactionError(TimelineStateError):
    """Bulk item would correct history older than the timeline's latest record."""


# =============================================================================
# STORAGE / CONFIG ERRORS
# =============================================================================


class StorageFailureError(TimelineError):
    """
    The storage transaction failed and was rolled back completely.

    ``retryable`` is set by the store when the cause is a write-write
    conflict the caller may retry.
    """

    default_category = ErrorCategory.STORAGE
    default_retryable = False


class ConfigError(TimelineError):
    """Configuration error. Never retryable."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


__all__ = [
    "AlreadyExistsError",
    "ConfigError",
    "ErrorCategory",
    "ErrorContext",
    "IdentifierConflictError",
    "IncompleteIdentifierError",
    "InvalidIntervalError",
    "NoEffectiveRecordError",
    "ReservedFieldError",
    "StaleTransactionError",
    "StorageFailureError",
    "TimelineError",
    "TimelineNotFoundError",
    "TimelineStateError",
    "UnknownEnumLabelError",
    "ValidationError",
]
