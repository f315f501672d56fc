import os
import json
from typing import List, Any, Dict
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "CATALOG_CLI_OUTPUT"

_console = Console()

def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode

def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()

def _print_rows(title: str, columns: List[str], rows: List[Dict[str, str]], empty: str) -> None:
    """Print view-model rows in the current output mode.
    - plain: one 'a - b - c' line per row
    - json: JSON array of the selected columns
    - rich: Rich table
    """
    mode = get_output_mode()

    if not rows:
        print(empty)
        return

    if mode == "json":
        print(json.dumps([{c: r.get(c, "") for c in columns} for r in rows], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title=title, show_lines=True, header_style="bold cyan")
        for c in columns:
            table.add_column(c.replace("_", " ").title(), style="white")
        for r in rows:
            table.add_row(*(str(r.get(c, "")) for c in columns))
        _console.print(table)
    else:
        for r in rows:
            print(" - ".join(str(r.get(c, "")) for c in columns))

def print_authors(authors: List[Dict[str, Any]]) -> None:
    _print_rows("Authors", ["id", "name", "lifespan"], authors, "No authors in catalog.")

def print_books(books: List[Dict[str, Any]]) -> None:
    rows = []
    for b in books:
        author = b.get("author")
        if isinstance(author, dict):
            author_name = "" if author.get("unresolved") else author.get("name", "")
        else:
            author_name = author or ""
        rows.append({"id": b["id"], "title": b["title"], "author": author_name})
    _print_rows("Books", ["id", "title", "author"], rows, "No books in catalog.")

def print_stats_result(stats: Dict[str, Any]) -> None:
    """Print the home page counts in the current output mode."""
    mode = get_output_mode()

    labels = {
        "book_count": "Books",
        "book_instance_count": "Copies",
        "book_instance_available_count": "Copies available",
        "author_count": "Authors",
        "genre_count": "Genres",
    }

    if mode == "json":
        print(json.dumps(stats, ensure_ascii=False))
    elif mode == "rich":
        content = "\n".join(f"[bold]{labels[k]}:[/] {stats.get(k, 0)}" for k in labels)
        _console.print(Panel.fit(content, title="Catalog", border_style="blue"))
    else:
        for key, label in labels.items():
            print(f"{label}: {stats.get(key, 0)}")
