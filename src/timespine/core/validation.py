"""
Pre-validation and default filling for timeline facts.

Plain functions the engine calls, in order, before anything touches
storage:

1. :func:`prepare_fact` pulls temporal keys out of the attributes and fills
   defaults (``current_time`` → clock, ``effective_from`` → current_time,
   ``effective_till`` → INFINITE).
2. :func:`validate_attributes` rejects system fields and identifier
   conflicts.
3. :func:`validate_interval` rejects ``effective_from > effective_till``.

The result is an immutable :class:`~timespine.core.temporal.Fact`.

Tags:
    validation, defaults, timespine
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from timespine.core.errors import (
    IdentifierConflictError,
    InvalidIntervalError,
    ReservedFieldError,
)
from timespine.core.schema import SchemaDescriptor
from timespine.core.temporal import SYSTEM_FIELDS, Fact
from timespine.core.timestamps import INFINITE, ensure_utc, from_iso8601, utc_now


def validate_interval(effective_from: datetime, effective_till: datetime) -> None:
    """Raise :class:`InvalidIntervalError` if ``effective_from > effective_till``."""
    if effective_from > effective_till:
        raise InvalidIntervalError(effective_from, effective_till)


def validate_attributes(
    attributes: Mapping[str, Any],
    identifiers: Mapping[str, Any],
) -> dict[str, Any]:
    """Return business attributes with matching identifier keys dropped.

    Raises:
        ReservedFieldError: attributes try to set a system field.
        IdentifierConflictError: attributes name an identifier field with a
            value different from the timeline's.
    """
    reserved = sorted(SYSTEM_FIELDS.intersection(attributes))
    if reserved:
        raise ReservedFieldError(
            f"{', '.join(reserved)} can't be set",
            field=reserved[0],
        )

    cleaned: dict[str, Any] = {}
    for name, value in attributes.items():
        if name in identifiers:
            if value != identifiers[name]:
                raise IdentifierConflictError(
                    f"{name} identifies the timeline and can't change",
                    field=name,
                    value=value,
                ).with_context(identifiers=dict(identifiers))
            continue
        cleaned[name] = value
    return cleaned


def prepare_fact(
    identifiers: Mapping[str, Any],
    attributes: Mapping[str, Any],
    *,
    effective_from: datetime | str | None = None,
    effective_till: datetime | str | None = None,
    current_time: datetime | str | None = None,
    schema: SchemaDescriptor | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> Fact:
    """Build a validated, default-filled :class:`Fact`.

    ``effective_from``, ``effective_till`` and ``current_time`` may also be
    passed inside *attributes*; explicit keyword arguments win.
    """
    attrs = dict(attributes)
    from_attr = attrs.pop("effective_from", None)
    till_attr = attrs.pop("effective_till", None)
    time_attr = attrs.pop("current_time", None)

    now = from_iso8601(current_time or time_attr) or ensure_utc(clock())
    start = from_iso8601(effective_from or from_attr) or now
    end = from_iso8601(effective_till or till_attr) or INFINITE

    cleaned = validate_attributes(attrs, identifiers)
    if schema is not None:
        cleaned = schema.encode(cleaned)

    try:
        validate_interval(start, end)
    except InvalidIntervalError as exc:
        raise exc.with_context(identifiers=dict(identifiers))

    return Fact(
        identifiers=dict(identifiers),
        attributes=cleaned,
        effective_from=start,
        effective_till=end,
        current_time=now,
    )


__all__ = ["prepare_fact", "validate_attributes", "validate_interval"]
