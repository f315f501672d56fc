"""Presentation-only values derived from stored records.

Nothing here touches the store or escapes text again: stored strings were
sanitized when they were submitted.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Type

from catalog.models import Author, Book, BookInstance, Genre, Record
from catalog.resolver import Unresolved

MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

DETAIL_PATHS: Dict[Type[Record], str] = {
    Author: "/catalog/author",
    Book: "/catalog/book",
    Genre: "/catalog/genre",
    BookInstance: "/catalog/bookInstance",
}

LIST_PATHS: Dict[Type[Record], str] = {
    Author: "/catalog/authors",
    Book: "/catalog/books",
    Genre: "/catalog/genres",
    BookInstance: "/catalog/bookinstances",
}


def url_for(record: Record) -> str:
    """Canonical path of a stored record."""
    return f"{DETAIL_PATHS[type(record)]}/{record.id}"


def list_path(kind: Type[Record]) -> str:
    return LIST_PATHS[kind]


def format_date(value: Optional[date]) -> str:
    """Medium date format, e.g. ``Oct 18, 2026``."""
    if value is None:
        return ""
    return f"{MONTHS[value.month - 1]} {value.day}, {value.year}"


def iso_date(value: Optional[date]) -> str:
    return value.isoformat() if value else ""


def full_name(author: Author) -> str:
    """``familyName, firstName``, or empty when either part is missing."""
    if author.first_name and author.family_name:
        return f"{author.family_name}, {author.first_name}"
    return ""


def lifespan(author: Author) -> str:
    return f"{format_date(author.date_of_birth)} - {format_date(author.date_of_death)}"


def _reference_view(value: Any, view: Callable[[Any], Dict[str, Any]]) -> Any:
    if isinstance(value, Unresolved):
        return {"id": value.id, "unresolved": True}
    if isinstance(value, Record):
        return view(value)
    return value


def author_view(author: Author) -> Dict[str, Any]:
    return {
        "id": author.id,
        "first_name": author.first_name,
        "family_name": author.family_name,
        "name": full_name(author),
        "lifespan": lifespan(author),
        "iso_date_of_birth": iso_date(author.date_of_birth),
        "iso_date_of_death": iso_date(author.date_of_death),
        "url": url_for(author),
    }


def genre_view(genre: Genre) -> Dict[str, Any]:
    return {"id": genre.id, "name": genre.name, "url": url_for(genre)}


def book_view(book: Book) -> Dict[str, Any]:
    return {
        "id": book.id,
        "title": book.title,
        "summary": book.summary,
        "isbn": book.isbn,
        "author": _reference_view(book.author, author_view),
        "genre": [_reference_view(g, genre_view) for g in book.genre],
        "url": url_for(book),
    }


def book_instance_view(instance: BookInstance) -> Dict[str, Any]:
    return {
        "id": instance.id,
        "imprint": instance.imprint,
        "status": instance.status,
        "due_back_formatted": format_date(instance.due_back),
        "iso_due_back": iso_date(instance.due_back),
        "book": _reference_view(instance.book, book_view),
        "url": url_for(instance),
    }


_VIEWS: Dict[Type[Record], Callable[[Any], Dict[str, Any]]] = {
    Author: author_view,
    Book: book_view,
    Genre: genre_view,
    BookInstance: book_instance_view,
}


def to_view(record: Optional[Record]) -> Optional[Dict[str, Any]]:
    """View model of any record; None passes through."""
    if record is None:
        return None
    return _VIEWS[type(record)](record)


def to_views(records: Iterable[Record]) -> List[Dict[str, Any]]:
    return [to_view(record) for record in records]


def mark_checked(genres: Iterable[Genre], selected: Iterable[Any]) -> List[Dict[str, Any]]:
    """Genre views flagged ``checked`` when the genre is in ``selected``.

    ``selected`` may hold identifiers or resolved genres.
    """
    chosen = {getattr(item, "id", item) for item in selected}
    return [dict(genre_view(genre), checked=genre.id in chosen) for genre in genres]
