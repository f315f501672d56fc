import asyncio
import json
import os
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from catalog.database import EntityStore
from catalog.main import app
from catalog.models import Author, Book, BookInstance

runner = CliRunner()


@pytest.fixture(autouse=True)
def plain_output(monkeypatch):
    # --output writes the mode to the environment; undo it after each test
    monkeypatch.setenv("CATALOG_CLI_OUTPUT", "plain")


def _seed(db_file):
    store = EntityStore(db_file)
    author_id = asyncio.run(store.insert(Author, Author("Frank", "Herbert")))
    book_id = asyncio.run(store.insert(Book, Book("Dune", author_id, "Spice", "isbn")))
    asyncio.run(store.insert(BookInstance, BookInstance(book_id, "Ace", "Available")))
    return author_id, book_id


def test_init_db(tmp_path):
    db_file = str(tmp_path / "fresh.db")

    result = runner.invoke(app, ["--db", db_file, "init-db"])

    assert result.exit_code == 0
    assert f"Database initialized at {db_file}" in result.output
    assert os.path.exists(db_file)


def test_stats(db_file):
    _seed(db_file)

    result = runner.invoke(app, ["--db", db_file, "stats"])

    assert result.exit_code == 0
    assert "Books: 1" in result.output
    assert "Copies: 1" in result.output
    assert "Copies available: 1" in result.output
    assert "Genres: 0" in result.output


def test_stats_json(db_file):
    result = runner.invoke(app, ["--db", db_file, "-o", "json", "stats"])

    assert result.exit_code == 0
    assert json.loads(result.output)["author_count"] == 0


def test_stats_on_broken_database(tmp_path):
    result = runner.invoke(app, ["--db", str(tmp_path / "empty.db"), "stats"])
    assert result.exit_code == 1


def test_authors_empty(db_file):
    result = runner.invoke(app, ["--db", db_file, "authors"])

    assert result.exit_code == 0
    assert "No authors in catalog." in result.output


def test_authors_and_books(db_file):
    author_id, book_id = _seed(db_file)

    authors = runner.invoke(app, ["--db", db_file, "authors"])
    books = runner.invoke(app, ["--db", db_file, "books"])

    assert f"{author_id} - Herbert, Frank" in authors.output
    assert f"{book_id} - Dune - Herbert, Frank" in books.output


def test_books_json(db_file):
    _, book_id = _seed(db_file)

    result = runner.invoke(app, ["--db", db_file, "--output", "json", "books"])

    assert json.loads(result.output) == [{"id": book_id, "title": "Dune", "author": "Herbert, Frank"}]


@patch("catalog.main.subprocess.run")
def test_serve_command(mock_subprocess_run, db_file):
    result = runner.invoke(app, ["--db", db_file, "serve", "--host", "0.0.0.0", "--port", "9000", "--no-reload"])

    assert result.exit_code == 0
    assert "Starting catalog on http://0.0.0.0:9000/catalog" in result.output
    args, kwargs = mock_subprocess_run.call_args
    assert args[0][1:] == ["-m", "uvicorn", "catalog.api:app", "--host", "0.0.0.0", "--port", "9000"]
    assert kwargs["env"]["LIBRARY_DB_FILE"] == db_file


@patch("catalog.main.subprocess.run")
def test_serve_reloads_by_default(mock_subprocess_run):
    result = runner.invoke(app, ["serve"])

    assert result.exit_code == 0
    assert mock_subprocess_run.call_args[0][0][-1] == "--reload"
