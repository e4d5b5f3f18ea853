"""
CLI utility helpers: output formatting and store construction.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from timespine.core.errors import TimelineError
from timespine.core.settings import get_settings
from timespine.core.temporal import TemporalRecord
from timespine.core.timestamps import is_infinite
from timespine.storage.sql import SqlAlchemyTimelineStore

console = Console()
err_console = Console(stderr=True)


# ── Store helper ─────────────────────────────────────────────────────────


def get_store(database: str | None = None) -> SqlAlchemyTimelineStore:
    """SQL store for *database* (a SQLAlchemy URL), else ``TIMESPINE_DATABASE_URL``."""
    settings = get_settings()
    if database:
        settings = settings.model_copy(update={"database_url": database})
    return SqlAlchemyTimelineStore.from_settings(settings)


# ── Argument parsing ─────────────────────────────────────────────────────


def parse_value(raw: str) -> Any:
    """JSON scalar if it parses (``1``, ``true``), else the raw string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def parse_identifiers(pairs: Sequence[str]) -> dict[str, Any]:
    """``["wrapper_id=1", "currency=USD"]`` → ``{"wrapper_id": 1, "currency": "USD"}``."""
    identifiers: dict[str, Any] = {}
    for pair in pairs:
        name, sep, raw = pair.partition("=")
        if not sep or not name:
            raise typer.BadParameter(f"expected KEY=VALUE, got {pair!r}")
        identifiers[name] = parse_value(raw)
    return identifiers


# ── Output helpers ───────────────────────────────────────────────────────


def fail(error: TimelineError) -> None:
    """Print a timeline error and exit non-zero."""
    err_console.print(
        f"[bold red]Error[/bold red] ({error.category.value}): {error.message}"
    )
    raise typer.Exit(code=1)


def _fmt_time(value: Any) -> str:
    if is_infinite(value):
        return "∞"
    return value.isoformat()


def output_records(
    records: Iterable[TemporalRecord],
    *,
    as_json: bool = False,
    title: str = "",
) -> None:
    """Render records as a rich table or JSON."""
    records = list(records)
    if as_json:
        console.print_json(json.dumps([r.to_dict() for r in records], default=str))
        return

    if not records:
        console.print("[dim]No records.[/dim]")
        return

    attribute_names: list[str] = []
    for record in records:
        for name in record.attributes:
            if name not in attribute_names:
                attribute_names.append(name)

    table = Table(title=title or None, show_lines=False)
    table.add_column("effective_from", style="cyan")
    table.add_column("effective_till", style="cyan")
    for name in attribute_names:
        table.add_column(name)
    table.add_column("valid_from", style="dim")
    table.add_column("valid_till", style="dim")

    for record in records:
        table.add_row(
            _fmt_time(record.effective_from),
            _fmt_time(record.effective_till),
            *[str(record.attributes.get(name, "")) for name in attribute_names],
            _fmt_time(record.valid_from),
            _fmt_time(record.valid_till),
        )
    console.print(table)


def output_summary(data: dict[str, Any], *, as_json: bool = False, title: str = "") -> None:
    """Render a flat key/value summary."""
    if as_json:
        console.print_json(json.dumps(data, default=str))
        return
    table = Table(title=title or None, show_header=False)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    for key, value in data.items():
        table.add_row(key, str(value))
    console.print(table)
