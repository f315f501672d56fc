from __future__ import annotations

import json
import uuid
from datetime import date
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple


class BookStatus(Enum):
    """Lifecycle of a physical copy."""
    AVAILABLE = "Available"
    MAINTENANCE = "Maintenance"
    LOANED = "Loaned"
    RESERVED = "Reserved"


STATUSES: Tuple[str, ...] = tuple(status.value for status in BookStatus)


def new_id() -> str:
    return uuid.uuid4().hex


def ref_id(value: Any) -> Optional[str]:
    """Return the identifier behind a reference, raw or resolved."""
    if value is None or isinstance(value, str):
        return value
    return getattr(value, "id", None)


def _to_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


class Record:
    """Base for stored entities.

    Subclasses declare their table and stored attributes; references are kept
    as bare identifiers until a resolver swaps the referenced record in.
    """

    kind: str = ""
    table: str = ""
    fields: Tuple[str, ...] = ()
    date_fields: FrozenSet[str] = frozenset()
    ref_fields: FrozenSet[str] = frozenset()
    multi_fields: FrozenSet[str] = frozenset()

    id: Optional[str]

    @classmethod
    def check_field(cls, name: str) -> str:
        if name != "id" and name not in cls.fields:
            raise ValueError(f"{cls.__name__} has no attribute {name!r}")
        return name

    @classmethod
    def column_value(cls, name: str, value: Any) -> Any:
        """Convert an attribute value into its stored column form."""
        if name in cls.multi_fields:
            if isinstance(value, (list, tuple)):
                return json.dumps([ref_id(v) for v in value])
            return ref_id(value)
        if name in cls.ref_fields:
            return ref_id(value)
        if name in cls.date_fields:
            return value.isoformat() if value else None
        return value

    def to_dict(self) -> Dict[str, Any]:
        row = {"id": self.id}
        for name in self.fields:
            row[name] = self.column_value(name, getattr(self, name))
        return row

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Record":
        values: Dict[str, Any] = {}
        for name in cls.fields:
            value = data.get(name)
            if name in cls.multi_fields and isinstance(value, str):
                value = json.loads(value) if value else []
            elif name in cls.date_fields:
                value = _to_date(value)
            values[name] = value
        return cls(id=data.get("id"), **values)

    @classmethod
    def from_form(cls, values: Mapping[str, Any], record_id: Optional[str] = None) -> "Record":
        """Build a candidate record from sanitized form values.

        The identifier always comes from the caller, never from the submitted
        values, so an update cannot be redirected onto another record.
        """
        return cls(id=record_id or new_id(), **{name: values.get(name) for name in cls.fields})

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"{type(self).__name__}({self.to_dict()!r})"


class Author(Record):
    """An author of one or more books."""

    kind = "author"
    table = "authors"
    fields = ("first_name", "family_name", "date_of_birth", "date_of_death")
    date_fields = frozenset({"date_of_birth", "date_of_death"})

    def __init__(self, first_name: Optional[str] = None, family_name: Optional[str] = None,
                 date_of_birth: Optional[date] = None, date_of_death: Optional[date] = None,
                 id: Optional[str] = None) -> None:
        self.id = id
        self.first_name = first_name or ""
        self.family_name = family_name or ""
        self.date_of_birth = date_of_birth
        self.date_of_death = date_of_death


class Genre(Record):
    kind = "genre"
    table = "genres"
    fields = ("name",)

    def __init__(self, name: Optional[str] = None, id: Optional[str] = None) -> None:
        self.id = id
        self.name = name or ""


class Book(Record):
    """A catalogued title. ``author`` and ``genre`` hold identifiers or resolved records."""

    kind = "book"
    table = "books"
    fields = ("title", "author", "summary", "isbn", "genre")
    ref_fields = frozenset({"author", "genre"})
    multi_fields = frozenset({"genre"})

    def __init__(self, title: Optional[str] = None, author: Any = None, summary: Optional[str] = None,
                 isbn: Optional[str] = None, genre: Optional[List[Any]] = None,
                 id: Optional[str] = None) -> None:
        self.id = id
        self.title = title or ""
        self.author = author
        self.summary = summary or ""
        self.isbn = isbn or ""
        self.genre = list(genre) if genre else []


class BookInstance(Record):
    """A physical copy of a book."""

    kind = "bookinstance"
    table = "book_instances"
    fields = ("book", "imprint", "status", "due_back")
    date_fields = frozenset({"due_back"})
    ref_fields = frozenset({"book"})

    def __init__(self, book: Any = None, imprint: Optional[str] = None, status: Optional[str] = None,
                 due_back: Optional[date] = None, id: Optional[str] = None) -> None:
        self.id = id
        self.book = book
        self.imprint = imprint or ""
        # Blank status and due date fall back to the defaults of a new copy
        self.status = status or BookStatus.MAINTENANCE.value
        self.due_back = due_back or date.today()
