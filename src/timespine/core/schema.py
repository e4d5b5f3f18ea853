"""
Schema descriptor: which fields identify a timeline, and enum label mapping.

The caller supplies this at construction time.  The engine treats it as
opaque lookup data and never infers it from a live model.

Examples:
    >>> schema = SchemaDescriptor(
    ...     identifier_fields=("wrapper_id", "reporting_currency"),
    ...     enums={"status": {"recorded": 0, "stale": 1, "fresh": 2}},
    ... )
    >>> schema.encode({"status": "stale", "amount": 150})
    {'status': 1, 'amount': 150}
    >>> schema.decode({"status": 1})
    {'status': 'stale'}

Tags:
    schema, enum, identifiers, timespine
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from timespine.core.errors import IncompleteIdentifierError, UnknownEnumLabelError


def is_blank(value: Any) -> bool:
    """None, empty or whitespace-only strings count as blank."""
    return value is None or (isinstance(value, str) and not value.strip())


@dataclass(frozen=True)
class SchemaDescriptor:
    """Identifier fields plus ``field -> {label -> code}`` enum mappings."""

    identifier_fields: tuple[str, ...]
    enums: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "identifier_fields", tuple(self.identifier_fields))

    # -- identifiers -----------------------------------------------------

    def split(self, item: Mapping[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
        """Partition a flat mapping into ``(identifiers, everything_else)``."""
        identifiers = {k: v for k, v in item.items() if k in self.identifier_fields}
        rest = {k: v for k, v in item.items() if k not in self.identifier_fields}
        return identifiers, rest

    def missing_identifiers(self, identifiers: Mapping[str, Any]) -> list[str]:
        """Identifier fields that are absent or blank in *identifiers*."""
        return [
            name
            for name in self.identifier_fields
            if name not in identifiers or is_blank(identifiers[name])
        ]

    def require_identifiers(self, identifiers: Mapping[str, Any]) -> None:
        """Raise :class:`IncompleteIdentifierError` unless every identifier is set."""
        missing = self.missing_identifiers(identifiers)
        if missing:
            raise IncompleteIdentifierError(
                "Timeline identifiers can't be empty",
                field=missing[0],
            ).with_context(identifiers=dict(identifiers), missing=missing)

    # -- enums -----------------------------------------------------------

    def encode(self, attributes: Mapping[str, Any]) -> dict[str, Any]:
        """Replace enum labels with their stored codes.

        Codes pass through unchanged; blank values are left alone.
        """
        encoded = dict(attributes)
        for name, items in self.enums.items():
            if name not in encoded or is_blank(encoded[name]):
                continue
            value = encoded[name]
            if value in items:
                encoded[name] = items[value]
            elif value not in items.values():
                raise UnknownEnumLabelError(
                    f"'{value}' is not a valid {name}",
                    field=name,
                    value=value,
                )
        return encoded

    def decode(self, attributes: Mapping[str, Any]) -> dict[str, Any]:
        """Replace stored enum codes with their labels (for display)."""
        decoded = dict(attributes)
        for name, items in self.enums.items():
            if name not in decoded:
                continue
            for label, code in items.items():
                if decoded[name] == code:
                    decoded[name] = label
                    break
        return decoded


__all__ = ["SchemaDescriptor", "is_blank"]
