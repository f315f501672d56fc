import asyncio
import logging
import os
import subprocess
import sys
from typing import Optional

import typer
from rich.console import Console

from catalog import database
from catalog.config import settings
from catalog.database import EntityStore, StoreError
from catalog.library import Catalog
from catalog.ui_helpers import print_authors, print_books, print_stats_result, set_output_mode

logging.basicConfig(level=settings.log_level)
console = Console()

app = typer.Typer(help="Local library catalog CLI")

# Database file chosen by the global --db option
_state = {"db_file": None}


def _catalog() -> Catalog:
    return Catalog(EntityStore(_state["db_file"] or database.DATABASE_FILE))


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    ),
    db: Optional[str] = typer.Option(None, "--db", help="SQLite database file (default: LIBRARY_DB_FILE)"),
):
    """Global CLI options (output mode, database file)."""
    if output:
        set_output_mode(output)
    _state["db_file"] = db


@app.command("init-db")
def cli_init_db():
    """Create the catalog tables."""
    db_file = _state["db_file"] or database.DATABASE_FILE
    database.initialize_database(db_file)
    print(f"Database initialized at {db_file}")


@app.command("stats")
def cli_stats():
    """Show the home page record counts."""
    try:
        counts = asyncio.run(_catalog().counts())
    except StoreError as e:
        console.print(f"[bold red]Error:[/] {e}")
        raise typer.Exit(code=1)
    print_stats_result(counts)


@app.command("authors")
def cli_authors():
    """List authors by family name."""
    try:
        page = asyncio.run(_catalog().author_list())
    except StoreError as e:
        console.print(f"[bold red]Error:[/] {e}")
        raise typer.Exit(code=1)
    print_authors(page.payload["author_list"])


@app.command("books")
def cli_books():
    """List books by title with their authors."""
    try:
        page = asyncio.run(_catalog().book_list())
    except StoreError as e:
        console.print(f"[bold red]Error:[/] {e}")
        raise typer.Exit(code=1)
    print_books(page.payload["book_list"])


@app.command("serve")
def cli_serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default: API_HOST)"),
    port: Optional[int] = typer.Option(None, "--port", help="Port (default: API_PORT)"),
    reload: bool = typer.Option(True, "--reload/--no-reload", help="Restart on code changes"),
):
    """Start the web application with Uvicorn."""
    host = host or settings.api_host
    port = int(port or settings.api_port)
    print(f"Starting catalog on http://{host}:{port}/catalog")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "catalog.api:app",
        "--host", host,
        "--port", str(port),
    ]
    if reload:
        args.append("--reload")
    env = dict(os.environ)
    if _state["db_file"]:
        env["LIBRARY_DB_FILE"] = _state["db_file"]
    try:
        subprocess.run(args, env=env)
    except FileNotFoundError:
        console.print("[bold red]Error:[/] `uvicorn` could not be started. Make sure it is installed.")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
