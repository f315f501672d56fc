import asyncio
import os

from fastapi.testclient import TestClient

from catalog.api import create_app
from catalog.database import EntityStore
from catalog.library import Catalog
from catalog.models import Author, Book, Genre


def _insert(db_file, kind, record):
    return asyncio.run(EntityStore(db_file).insert(kind, record))


def test_root_redirects_to_catalog(client):
    response = client.get("/", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "/catalog"


def test_home_page_counts(client, db_file):
    _insert(db_file, Genre, Genre("Poetry"))

    response = client.get("/catalog")

    assert response.status_code == 200
    body = response.json()
    assert body["view"] == "index"
    assert body["data"]["genre_count"] == 1
    assert body["data"]["book_count"] == 0


def test_author_form_post_redirects_to_detail(client, db_file):
    response = client.post(
        "/catalog/author/create",
        data={"firstName": "Jane", "familyName": "Austen", "dateOfBirth": "1775-12-16", "dateOfDeath": ""},
        follow_redirects=False,
    )

    assert response.status_code == 302
    location = response.headers["location"]
    assert location.startswith("/catalog/author/")

    detail = client.get(location).json()
    assert detail["view"] == "author_detail"
    assert detail["author"]["name"] == "Austen, Jane"
    assert detail["author"]["lifespan"] == "Dec 16, 1775 - "


def test_author_form_post_with_errors_rerenders(client):
    response = client.post("/catalog/author/create", data={"firstName": "John123", "familyName": ""})

    assert response.status_code == 200
    body = response.json()
    assert body["view"] == "author_form"
    assert body["title"] == "Create Author"
    assert body["errors"][0]["message"] == "Family name must be specified"


def test_book_create_with_several_genres(client, db_file):
    author_id = _insert(db_file, Author, Author("Frank", "Herbert"))
    g1 = _insert(db_file, Genre, Genre("Adventure"))
    g2 = _insert(db_file, Genre, Genre("Science Fiction"))

    response = client.post(
        "/catalog/book/create",
        data={"title": "Dune", "author": author_id, "summary": "Spice", "isbn": "9780441013593", "genre": [g1, g2]},
        follow_redirects=False,
    )
    assert response.status_code == 302
    assert asyncio.run(EntityStore(db_file).count(Book)) == 1

    book = client.get(response.headers["location"]).json()["book"]
    assert sorted(g["name"] for g in book["genre"]) == ["Adventure", "Science Fiction"]

    form = client.get(f"/catalog/book/{book['id']}/update").json()
    assert all(g["checked"] for g in form["genres"])


def test_book_create_form_lists_authors_and_genres(client, db_file):
    _insert(db_file, Author, Author("Frank", "Herbert"))
    _insert(db_file, Genre, Genre("Poetry"))

    body = client.get("/catalog/book/create").json()

    assert body["view"] == "book_form"
    assert [a["name"] for a in body["authors"]] == ["Herbert, Frank"]
    assert body["genres"][0]["checked"] is False


def test_book_instance_routes(client, db_file):
    author_id = _insert(db_file, Author, Author("Frank", "Herbert"))
    book_id = _insert(db_file, Book, Book("Dune", author_id, "Spice", "isbn"))

    response = client.post(
        "/catalog/bookInstance/create",
        data={"book": book_id, "imprint": "Ace", "status": "Available", "dueBack": "2026-10-18"},
        follow_redirects=False,
    )
    location = response.headers["location"]
    assert location.startswith("/catalog/bookInstance/")

    detail = client.get(location).json()
    assert detail["title"] == "Copy: Dune"
    assert detail["book_instance"]["status"] == "Available"

    listing = client.get("/catalog/bookinstances").json()
    assert [c["book"]["title"] for c in listing["book_instance_list"]] == ["Dune"]


def test_author_delete_blocked_then_allowed(client, db_file):
    author_id = _insert(db_file, Author, Author("Frank", "Herbert"))
    book_id = _insert(db_file, Book, Book("Dune", author_id, "Spice", "isbn"))

    blocked = client.post(f"/catalog/author/{author_id}/delete", follow_redirects=False)
    assert blocked.status_code == 200
    assert [b["title"] for b in blocked.json()["author_books"]] == ["Dune"]

    client.post(f"/catalog/book/{book_id}/delete", follow_redirects=False)
    deleted = client.post(f"/catalog/author/{author_id}/delete", follow_redirects=False)
    assert deleted.status_code == 302
    assert deleted.headers["location"] == "/catalog/authors"


def test_delete_page_of_missing_record_redirects(client):
    response = client.get("/catalog/genre/missing/delete", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "/catalog/genres"


def test_missing_record_renders_not_found(client):
    response = client.get("/catalog/book/missing")

    assert response.status_code == 404
    body = response.json()
    assert body["view"] == "error"
    assert body["status"] == 404


def test_update_of_missing_record_is_not_found(client):
    response = client.post("/catalog/genre/missing/update", data={"name": "Poetry"})
    assert response.status_code == 404


def test_schema_is_created_on_startup_not_on_import(tmp_path):
    db_file = str(tmp_path / "startup.db")

    app = create_app(db_file=db_file)
    assert not os.path.exists(db_file)

    with TestClient(app) as client:
        assert os.path.exists(db_file)
        assert client.get("/catalog").json()["data"]["author_count"] == 0


def test_store_failure_renders_server_error(db_file, tmp_path):
    app = create_app(db_file=db_file)
    # No catalog tables in this file
    app.state.catalog = Catalog(EntityStore(str(tmp_path / "empty.db")))

    response = TestClient(app).get("/catalog/genres")

    assert response.status_code == 500
    assert response.json()["view"] == "error"


def test_custom_renderer(db_file):
    from fastapi.responses import PlainTextResponse

    class ViewNameRenderer:
        def render(self, view, payload, status_code=200):
            return PlainTextResponse(f"{view}:{payload['title']}", status_code=status_code)

    client = TestClient(create_app(db_file=db_file, renderer=ViewNameRenderer()))

    assert client.get("/catalog/genres").text == "genre_list:Genre List"
