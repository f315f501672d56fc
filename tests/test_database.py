import asyncio
from datetime import date

import pytest

from catalog.database import EntityStore, StoreError
from catalog.models import Author, Book, BookInstance, Genre


def test_insert_assigns_id_and_get_round_trips(store):
    author = Author("Jane", "Austen", date(1775, 12, 16))

    author_id = asyncio.run(store.insert(Author, author))

    assert author_id and author.id == author_id
    assert asyncio.run(store.get(Author, author_id)) == author


def test_get_missing_returns_none(store):
    assert asyncio.run(store.get(Book, "missing")) is None


def test_list_filters_and_sorts(store):
    for first, family in [("Ann", "Carter"), ("Bob", "Adams"), ("Cy", "Baker")]:
        asyncio.run(store.insert(Author, Author(first, family)))

    ascending = asyncio.run(store.list(Author, sort="family_name"))
    descending = asyncio.run(store.list(Author, sort="-family_name"))
    adams = asyncio.run(store.list(Author, {"family_name": "Adams"}))

    assert [a.family_name for a in ascending] == ["Adams", "Baker", "Carter"]
    assert [a.family_name for a in descending] == ["Carter", "Baker", "Adams"]
    assert [a.first_name for a in adams] == ["Bob"]


def test_genre_membership_filter(store):
    asyncio.run(store.insert(Book, Book("Dune", "a1", "s", "i1", ["g1", "g2"])))
    asyncio.run(store.insert(Book, Book("Emma", "a2", "s", "i2", ["g2"])))
    asyncio.run(store.insert(Book, Book("Odd", "a3", "s", "i3")))

    g1 = asyncio.run(store.list(Book, {"genre": "g1"}))
    g2 = asyncio.run(store.list(Book, {"genre": "g2"}, sort="title"))

    assert [b.title for b in g1] == ["Dune"]
    assert [b.title for b in g2] == ["Dune", "Emma"]
    assert g1[0].genre == ["g1", "g2"]


def test_count_with_filter(store):
    asyncio.run(store.insert(BookInstance, BookInstance("b1", "Penguin", "Available")))
    asyncio.run(store.insert(BookInstance, BookInstance("b1", "Penguin", "Loaned")))
    asyncio.run(store.insert(BookInstance, BookInstance("b2", "Tor")))

    assert asyncio.run(store.count(BookInstance)) == 3
    assert asyncio.run(store.count(BookInstance, {"status": "Available"})) == 1
    assert asyncio.run(store.count(BookInstance, {"book": "b1"})) == 2


def test_new_copy_defaults(store):
    copy_id = asyncio.run(store.insert(BookInstance, BookInstance("b1", "Penguin")))
    stored = asyncio.run(store.get(BookInstance, copy_id))

    assert stored.status == "Maintenance"
    assert stored.due_back == date.today()


def test_replace_overwrites_in_place(store):
    genre_id = asyncio.run(store.insert(Genre, Genre("Fantasy")))

    updated = asyncio.run(store.replace(Genre, genre_id, Genre("Fantasy Fiction", id="ignored")))

    assert updated.id == genre_id
    assert asyncio.run(store.get(Genre, genre_id)).name == "Fantasy Fiction"
    assert asyncio.run(store.count(Genre)) == 1


def test_replace_missing_returns_none(store):
    assert asyncio.run(store.replace(Genre, "missing", Genre("Poetry"))) is None
    assert asyncio.run(store.count(Genre)) == 0


def test_delete(store):
    genre_id = asyncio.run(store.insert(Genre, Genre("Poetry")))

    assert asyncio.run(store.delete(Genre, genre_id)) is True
    assert asyncio.run(store.delete(Genre, genre_id)) is False
    assert asyncio.run(store.get(Genre, genre_id)) is None


def test_unknown_attribute_is_rejected(store):
    with pytest.raises(ValueError):
        asyncio.run(store.list(Author, {"nickname": "Jo"}))
    with pytest.raises(ValueError):
        asyncio.run(store.list(Author, sort="nickname"))


def test_database_failure_raises_store_error(tmp_path):
    # A database file without the catalog tables
    store = EntityStore(str(tmp_path / "empty.db"))

    with pytest.raises(StoreError):
        asyncio.run(store.list(Author))
