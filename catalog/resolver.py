"""One-level reference resolution.

The store never joins. Pages that show a book together with its author, or a
copy together with its book, fetch the referenced records here and attach
them in place of the raw identifiers. Resolution stops after one level: the
author attached to a book is itself left as stored.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

from catalog.database import EntityStore
from catalog.models import Record, ref_id

logger = logging.getLogger(__name__)


class Unresolved:
    """Stands in for a reference whose record could not be found.

    Falsy, so templates can test for it the same way they test for a
    missing value, and it still carries the dangling identifier.
    """

    def __init__(self, kind: Type[Record], id: str) -> None:
        self.kind = kind
        self.id = id

    def __bool__(self) -> bool:
        return False

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Unresolved) and other.kind is self.kind and other.id == self.id

    def __hash__(self) -> int:
        return hash((self.kind, self.id))

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"Unresolved({self.kind.__name__}, {self.id!r})"


def _referenced_ids(records: Sequence[Record], name: str) -> List[str]:
    ids = set()
    for record in records:
        value = getattr(record, name)
        if name in type(record).multi_fields:
            ids.update(ref_id(v) for v in value)
        elif value is not None:
            ids.add(ref_id(value))
    ids.discard(None)
    ids.discard("")
    return sorted(ids)


async def resolve(store: EntityStore, records: Sequence[Record], **refs: Type[Record]) -> Sequence[Record]:
    """Attach referenced records to ``records`` in place and return them.

    ``refs`` maps an attribute name to the kind it references, e.g.
    ``resolve(store, books, author=Author, genre=Genre)``. Every distinct
    identifier is fetched once and all fetches run concurrently. References
    that do not resolve become :class:`Unresolved` markers instead of failing
    the whole page.
    """
    if not records or not refs:
        return records

    wanted: List[Tuple[str, str]] = []
    for name in refs:
        wanted.extend((name, record_id) for record_id in _referenced_ids(records, name))

    fetched = await asyncio.gather(*(store.get(refs[name], record_id) for name, record_id in wanted))

    lookup: Dict[Tuple[str, str], Any] = {}
    for (name, record_id), found in zip(wanted, fetched):
        if found is None:
            logger.warning(f"Unresolved {refs[name].__name__} reference: {record_id}")
            found = Unresolved(refs[name], record_id)
        lookup[(name, record_id)] = found

    for record in records:
        for name in refs:
            value = getattr(record, name)
            if name in type(record).multi_fields:
                setattr(record, name, [lookup[(name, ref_id(v))] for v in value if ref_id(v)])
            elif ref_id(value):
                setattr(record, name, lookup[(name, ref_id(value))])
    return records


async def resolve_one(store: EntityStore, record: Optional[Record], **refs: Type[Record]) -> Optional[Record]:
    """Single-record form of :func:`resolve`; passes None through."""
    if record is None:
        return None
    await resolve(store, [record], **refs)
    return record
