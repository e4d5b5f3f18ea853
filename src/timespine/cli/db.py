"""
CLI: ``timespine db``: database management commands.
"""

from __future__ import annotations

import typer

from timespine.cli.utils import console, get_store

app = typer.Typer(no_args_is_help=True)


@app.command()
def init(
    database: str | None = typer.Option(None, "--database", "-d", help="SQLAlchemy URL"),
) -> None:
    """Initialise database schema (create tables)."""
    store = get_store(database)
    store.create_all()
    console.print(
        f"[green]✓[/green] timespine_records ready at "
        f"{store.engine.url.render_as_string(hide_password=True)}"
    )
