import asyncio
import logging
from typing import Any, Dict, Mapping, Optional

from catalog.database import EntityStore
from catalog.guard import Blocked, find_dependents, guarded_delete
from catalog.models import Author, Book, BookInstance, BookStatus, Genre, Record, STATUSES
from catalog.resolver import resolve, resolve_one
from catalog.validators import AUTHOR_RULES, BOOK_INSTANCE_RULES, BOOK_RULES, GENRE_RULES
from catalog.viewmodels import list_path, mark_checked, to_view, to_views
from catalog.workflow import FormSpec, NotFoundError, Outcome, Redirect, Render, form_page, submit

logger = logging.getLogger(__name__)

__all__ = ["Catalog", "NotFoundError"]


async def _book_form_lists(store: EntityStore, book: Optional[Record]) -> Dict[str, Any]:
    authors, genres = await asyncio.gather(
        store.list(Author, sort="family_name"),
        store.list(Genre, sort="name"),
    )
    return {
        "authors": to_views(authors),
        "genres": mark_checked(genres, book.genre if book is not None else []),
    }


async def _book_instance_form_lists(store: EntityStore, instance: Optional[Record]) -> Dict[str, Any]:
    books = await store.list(Book, sort="title")
    return {"book_list": to_views(books), "statuses": list(STATUSES)}


AUTHOR_FORM = FormSpec(Author, AUTHOR_RULES, "author_form", "author")
GENRE_FORM = FormSpec(Genre, GENRE_RULES, "genre_form", "genre")
BOOK_FORM = FormSpec(
    Book, BOOK_RULES, "book_form", "book",
    references={"author": (Author, "Author not found.")},
    auxiliary=_book_form_lists,
)
BOOK_INSTANCE_FORM = FormSpec(
    BookInstance, BOOK_INSTANCE_RULES, "bookinstance_form", "book_instance",
    references={"book": (Book, "Book not found.")},
    auxiliary=_book_instance_form_lists,
)


class Catalog:
    """Page and form handlers for the library catalog.

    Every handler returns either a :class:`Render` for the template renderer
    or a :class:`Redirect`. A missing record on a detail or update page raises
    :class:`NotFoundError`; delete pages redirect to the list instead.
    """

    def __init__(self, store: EntityStore) -> None:
        self.store = store

    async def _get_or_404(self, kind, record_id: str) -> Record:
        record = await self.store.get(kind, record_id)
        if record is None:
            raise NotFoundError(kind, record_id)
        return record

    # ------------------------- Home ------------------------- #
    async def counts(self) -> Dict[str, int]:
        """Record counts shown on the home page."""
        books, copies, available, authors, genres = await asyncio.gather(
            self.store.count(Book),
            self.store.count(BookInstance),
            self.store.count(BookInstance, {"status": BookStatus.AVAILABLE.value}),
            self.store.count(Author),
            self.store.count(Genre),
        )
        return {
            "book_count": books,
            "book_instance_count": copies,
            "book_instance_available_count": available,
            "author_count": authors,
            "genre_count": genres,
        }

    async def index(self) -> Render:
        return Render("index", {"title": "Local Library Home", "data": await self.counts()})

    # ------------------------- Authors ------------------------- #
    async def author_list(self) -> Render:
        authors = await self.store.list(Author, sort="family_name")
        return Render("author_list", {"title": "Author List", "author_list": to_views(authors)})

    async def author_detail(self, author_id: str) -> Render:
        author, books = await find_dependents(self.store, Author, author_id, Book, "author")
        if author is None:
            raise NotFoundError(Author, author_id)
        return Render("author_detail", {
            "title": "Author Detail",
            "author": to_view(author),
            "author_books": to_views(books),
        })

    async def author_create_form(self) -> Render:
        return await form_page(self.store, AUTHOR_FORM, "Create Author")

    async def author_create(self, form: Mapping[str, Any]) -> Outcome:
        return await submit(self.store, AUTHOR_FORM, form, "Create Author")

    async def author_update_form(self, author_id: str) -> Render:
        author = await self._get_or_404(Author, author_id)
        return await form_page(self.store, AUTHOR_FORM, "Update Author", author)

    async def author_update(self, author_id: str, form: Mapping[str, Any]) -> Outcome:
        return await submit(self.store, AUTHOR_FORM, form, "Update Author", record_id=author_id)

    async def author_delete_form(self, author_id: str) -> Outcome:
        author, books = await find_dependents(self.store, Author, author_id, Book, "author")
        if author is None:
            return Redirect(list_path(Author))
        return Render("author_delete", {
            "title": "Delete Author",
            "author": to_view(author),
            "author_books": to_views(books),
        })

    async def author_delete(self, author_id: str) -> Outcome:
        outcome = await guarded_delete(self.store, Author, author_id, Book, "author")
        if isinstance(outcome, Blocked):
            return Render("author_delete", {
                "title": "Delete Author",
                "author": to_view(outcome.parent),
                "author_books": to_views(outcome.dependents),
            })
        return Redirect(list_path(Author))

    # ------------------------- Books ------------------------- #
    async def book_list(self) -> Render:
        books = await self.store.list(Book, sort="title")
        await resolve(self.store, books, author=Author)
        return Render("book_list", {"title": "Book List", "book_list": to_views(books)})

    async def book_detail(self, book_id: str) -> Render:
        book, copies = await asyncio.gather(
            self._resolved_book(book_id),
            self.store.list(BookInstance, {"book": book_id}),
        )
        if book is None:
            raise NotFoundError(Book, book_id)
        return Render("book_detail", {
            "title": book.title,
            "book": to_view(book),
            "book_instances": to_views(copies),
        })

    async def _resolved_book(self, book_id: str) -> Optional[Book]:
        book = await self.store.get(Book, book_id)
        return await resolve_one(self.store, book, author=Author, genre=Genre)

    async def book_create_form(self) -> Render:
        return await form_page(self.store, BOOK_FORM, "Create Book")

    async def book_create(self, form: Mapping[str, Any]) -> Outcome:
        return await submit(self.store, BOOK_FORM, form, "Create Book")

    async def book_update_form(self, book_id: str) -> Render:
        book = await self._get_or_404(Book, book_id)
        return await form_page(self.store, BOOK_FORM, "Update Book", book)

    async def book_update(self, book_id: str, form: Mapping[str, Any]) -> Outcome:
        return await submit(self.store, BOOK_FORM, form, "Update Book", record_id=book_id)

    async def book_delete_form(self, book_id: str) -> Outcome:
        book, copies = await find_dependents(self.store, Book, book_id, BookInstance, "book")
        if book is None:
            return Redirect(list_path(Book))
        return Render("book_delete", {
            "title": "Delete Book",
            "book": to_view(book),
            "book_instances": to_views(copies),
        })

    async def book_delete(self, book_id: str) -> Outcome:
        outcome = await guarded_delete(self.store, Book, book_id, BookInstance, "book")
        if isinstance(outcome, Blocked):
            return Render("book_delete", {
                "title": "Delete Book",
                "book": to_view(outcome.parent),
                "book_instances": to_views(outcome.dependents),
            })
        return Redirect(list_path(Book))

    # ------------------------- Genres ------------------------- #
    async def genre_list(self) -> Render:
        genres = await self.store.list(Genre, sort="name")
        return Render("genre_list", {"title": "Genre List", "genre_list": to_views(genres)})

    async def genre_detail(self, genre_id: str) -> Render:
        genre, books = await find_dependents(self.store, Genre, genre_id, Book, "genre")
        if genre is None:
            raise NotFoundError(Genre, genre_id)
        return Render("genre_detail", {
            "title": "Genre Detail",
            "genre": to_view(genre),
            "genre_books": to_views(books),
        })

    async def genre_create_form(self) -> Render:
        return await form_page(self.store, GENRE_FORM, "Create Genre")

    async def genre_create(self, form: Mapping[str, Any]) -> Outcome:
        return await submit(self.store, GENRE_FORM, form, "Create Genre")

    async def genre_update_form(self, genre_id: str) -> Render:
        genre = await self._get_or_404(Genre, genre_id)
        return await form_page(self.store, GENRE_FORM, "Update Genre", genre)

    async def genre_update(self, genre_id: str, form: Mapping[str, Any]) -> Outcome:
        return await submit(self.store, GENRE_FORM, form, "Update Genre", record_id=genre_id)

    async def genre_delete_form(self, genre_id: str) -> Outcome:
        genre = await self.store.get(Genre, genre_id)
        if genre is None:
            return Redirect(list_path(Genre))
        return Render("genre_delete", {"title": "Delete Genre", "genre": to_view(genre)})

    async def genre_delete(self, genre_id: str) -> Redirect:
        # Books keep the identifier; it shows up as unresolved on their pages
        if await self.store.delete(Genre, genre_id):
            logger.info(f"Deleted Genre {genre_id}")
        return Redirect(list_path(Genre))

    # ------------------------- Book instances ------------------------- #
    async def book_instance_list(self) -> Render:
        copies = await self.store.list(BookInstance)
        await resolve(self.store, copies, book=Book)
        return Render("bookinstance_list", {
            "title": "Book Instance List",
            "book_instance_list": to_views(copies),
        })

    async def book_instance_detail(self, instance_id: str) -> Render:
        instance = await self._get_or_404(BookInstance, instance_id)
        await resolve_one(self.store, instance, book=Book)
        title = instance.book.title if instance.book else ""
        return Render("bookinstance_detail", {
            "title": f"Copy: {title}",
            "book_instance": to_view(instance),
        })

    async def book_instance_create_form(self) -> Render:
        return await form_page(self.store, BOOK_INSTANCE_FORM, "Create BookInstance")

    async def book_instance_create(self, form: Mapping[str, Any]) -> Outcome:
        return await submit(self.store, BOOK_INSTANCE_FORM, form, "Create BookInstance")

    async def book_instance_update_form(self, instance_id: str) -> Render:
        instance = await self._get_or_404(BookInstance, instance_id)
        return await form_page(self.store, BOOK_INSTANCE_FORM, "Update Book Instance", instance)

    async def book_instance_update(self, instance_id: str, form: Mapping[str, Any]) -> Outcome:
        return await submit(self.store, BOOK_INSTANCE_FORM, form, "Update Book Instance", record_id=instance_id)

    async def book_instance_delete_form(self, instance_id: str) -> Outcome:
        instance = await self.store.get(BookInstance, instance_id)
        if instance is None:
            return Redirect(list_path(BookInstance))
        return Render("bookinstance_delete", {
            "title": "Delete Book Instance",
            "book_instance": to_view(instance),
        })

    async def book_instance_delete(self, instance_id: str) -> Redirect:
        if await self.store.delete(BookInstance, instance_id):
            logger.info(f"Deleted BookInstance {instance_id}")
        return Redirect(list_path(BookInstance))
