"""
Root Typer application for the timespine CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from timespine.core.logging import configure_logging
from timespine.core.settings import get_settings

app = Typer(
    name="timespine",
    help="timespine: bitemporal timeline reconciliation.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("timespine")
        except PackageNotFoundError:
            v = "0.1.0"
        typer.echo(f"timespine {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """timespine CLI: inspect and reconcile bitemporal timelines."""
    settings = get_settings()
    configure_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_format=settings.log_json,
    )


# ── Sub-command registration ─────────────────────────────────────────────

from timespine.cli.db import app as db_app  # noqa: E402
from timespine.cli.timeline import apply, history  # noqa: E402

app.add_typer(db_app, name="db", help="Database operations.")
app.command()(history)
app.command()(apply)
