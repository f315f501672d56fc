"""Deletion guard for records that other records point at.

The dependent lookup and the delete are separate store calls. A dependent
created between the two is not noticed, so the guard is advisory only.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Type, Union

from catalog.database import EntityStore
from catalog.models import Record

logger = logging.getLogger(__name__)


@dataclass
class Blocked:
    """Deletion refused; ``dependents`` still reference ``parent``."""
    parent: Optional[Record]
    dependents: List[Record] = field(default_factory=list)


@dataclass
class Deleted:
    parent: Optional[Record]
    removed: bool


async def find_dependents(store: EntityStore, kind: Type[Record], record_id: str,
                          dependent_kind: Type[Record], ref_attr: str) -> Tuple[Optional[Record], List[Record]]:
    """Fetch a record and everything referencing it through ``ref_attr``, concurrently."""
    parent, dependents = await asyncio.gather(
        store.get(kind, record_id),
        store.list(dependent_kind, {ref_attr: record_id}),
    )
    return parent, dependents


async def guarded_delete(store: EntityStore, kind: Type[Record], record_id: str,
                         dependent_kind: Type[Record], ref_attr: str) -> Union[Blocked, Deleted]:
    """Delete ``record_id`` unless a ``dependent_kind`` record still references it."""
    parent, dependents = await find_dependents(store, kind, record_id, dependent_kind, ref_attr)
    if dependents:
        logger.info(
            f"Refusing to delete {kind.__name__} {record_id}: "
            f"{len(dependents)} {dependent_kind.__name__} record(s) depend on it"
        )
        return Blocked(parent, dependents)
    removed = await store.delete(kind, record_id)
    if removed:
        logger.info(f"Deleted {kind.__name__} {record_id}")
    return Deleted(parent, removed)
