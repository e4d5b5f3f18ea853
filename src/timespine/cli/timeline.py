"""
CLI: ``timespine history`` and ``timespine apply``: read and write timelines.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer

from timespine.bulk import BulkReconciler
from timespine.cli.utils import fail, get_store, output_records, output_summary, parse_identifiers
from timespine.core.errors import TimelineError
from timespine.core.schema import SchemaDescriptor
from timespine.core.settings import UpdateMode, get_settings
from timespine.reconcile.strategy import build_reconciler
from timespine.timeline import Timeline


def history(
    identifiers: list[str] = typer.Argument(..., help="Timeline identifiers as KEY=VALUE"),
    as_of: str | None = typer.Option(None, "--as-of", help="System time (ISO 8601)"),
    database: str | None = typer.Option(None, "--database", "-d", help="SQLAlchemy URL"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Show a timeline's effective history."""
    try:
        timeline = Timeline(get_store(database), parse_identifiers(identifiers))
        records = (
            timeline.effective_history() if as_of is None else timeline.history_as_of(as_of)
        )
    except TimelineError as e:
        fail(e)
        return
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--as-of") from e

    title = "Effective history" if as_of is None else f"History as of {as_of}"
    output_records(records, as_json=json_out, title=title)


def apply(
    batch_file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="JSON array of batch items"
    ),
    identifier: list[str] = typer.Option(
        ..., "--identifier", "-i", help="Identifier field (repeatable)"
    ),
    batch_size: int | None = typer.Option(None, "--batch-size", min=1, help="Items per transaction"),
    latest_only: bool = typer.Option(
        False, "--latest-only", help="Reject items older than the timeline's latest record"
    ),
    mode: UpdateMode | None = typer.Option(None, "--mode", help="Reconciler strategy"),
    database: str | None = typer.Option(None, "--database", "-d", help="SQLAlchemy URL"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Reconcile a batch file into the database."""
    try:
        items = json.loads(batch_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise typer.BadParameter(
            f"batch file is not valid JSON: {e}", param_hint="BATCH_FILE"
        ) from e
    if not isinstance(items, list):
        raise typer.BadParameter("batch file must hold a JSON array", param_hint="BATCH_FILE")

    store = get_store(database)
    store.create_all()
    bulk = BulkReconciler(
        store,
        SchemaDescriptor(identifier_fields=tuple(identifier)),
        reconciler=build_reconciler(mode or get_settings().update_mode),
    )
    try:
        result = bulk.reconcile(
            items, batch_size=batch_size, latest_transactions_required=latest_only
        )
    except TimelineError as e:
        fail(e)
        return

    output_summary(
        {
            "items": result.items,
            "batches": result.batches,
            "inserted": result.inserted,
            "invalidated": result.invalidated,
        },
        as_json=json_out,
        title="Bulk reconcile",
    )
