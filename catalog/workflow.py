"""Create/update workflow shared by every entity form.

A submission is validated, turned into a candidate record and then either
sent back to its form with the errors, or persisted and redirected to the
record's canonical path. Validation failures are values, never exceptions.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence, Tuple, Type, Union

from catalog.database import EntityStore
from catalog.models import Record, ref_id
from catalog.validators import FieldRules, ValidationResult, validate
from catalog.viewmodels import to_view, url_for

logger = logging.getLogger(__name__)


class NotFoundError(LookupError):
    """The requested identifier does not name a stored record."""

    def __init__(self, kind: Type[Record], record_id: str) -> None:
        super().__init__(f"{kind.__name__} not found: {record_id}")
        self.kind = kind
        self.record_id = record_id


@dataclass
class Render:
    """Hand ``payload`` to the template renderer under ``view``."""
    view: str
    payload: Dict[str, Any] = field(default_factory=dict)
    status_code: int = 200


@dataclass
class Redirect:
    location: str


Outcome = Union[Render, Redirect]

AuxiliaryLoader = Callable[[EntityStore, Record], Awaitable[Dict[str, Any]]]


@dataclass(frozen=True)
class FormSpec:
    """Everything the workflow needs to know about one entity form.

    ``references`` maps a form field to the kind its value must name and the
    message reported when it names nothing. ``auxiliary`` loads the lookup
    lists the form displays next to the record.
    """

    kind: Type[Record]
    rules: Sequence[FieldRules]
    view: str
    record_key: str
    references: Mapping[str, Tuple[Type[Record], str]] = field(default_factory=dict)
    auxiliary: Optional[AuxiliaryLoader] = None


async def check_references(store: EntityStore, spec: FormSpec, candidate: Record,
                           result: ValidationResult) -> None:
    """Report references in ``candidate`` that name no existing record.

    Fields that already failed validation are not looked up.
    """
    failed = {e.field for e in result.errors}
    pending = []
    for form_field, (kind, message) in spec.references.items():
        rules = next(r for r in spec.rules if r.field == form_field)
        target = ref_id(getattr(candidate, rules.attr))
        if form_field in failed or not target:
            continue
        pending.append((form_field, kind, target, message))

    found = await asyncio.gather(*(store.get(kind, target) for _, kind, target, _ in pending))
    for (form_field, _, target, message), record in zip(pending, found):
        if record is None:
            result.add_error(form_field, message, target)


async def form_page(store: EntityStore, spec: FormSpec, title: str, record: Optional[Record] = None,
                    result: Optional[ValidationResult] = None) -> Render:
    """Build the form view, fetching its auxiliary lists fresh from the store."""
    payload: Dict[str, Any] = {"title": title}
    if spec.auxiliary is not None:
        payload.update(await spec.auxiliary(store, record))
    if record is not None:
        payload[spec.record_key] = to_view(record)
    if result is not None:
        payload["errors"] = [e.to_dict() for e in result.errors]
        payload["form"] = result.submitted
    return Render(spec.view, payload)


async def submit(store: EntityStore, spec: FormSpec, raw: Mapping[str, Any], title: str,
                 record_id: Optional[str] = None) -> Outcome:
    """Validate ``raw`` and create (``record_id`` is None) or update a record.

    On update the candidate always takes ``record_id``; an identifier in the
    submitted body is never used.
    """
    result = validate(spec.rules, raw)
    candidate = spec.kind.from_form(result.values, record_id=record_id)
    await check_references(store, spec, candidate, result)

    if not result.is_valid:
        logger.warning(f"{spec.kind.__name__} submission rejected with {len(result.errors)} error(s)")
        return await form_page(store, spec, title, candidate, result)

    if record_id is None:
        await store.insert(spec.kind, candidate)
        logger.info(f"Created {spec.kind.__name__} {candidate.id}")
    else:
        updated = await store.replace(spec.kind, record_id, candidate)
        if updated is None:
            raise NotFoundError(spec.kind, record_id)
        logger.info(f"Updated {spec.kind.__name__} {record_id}")
    return Redirect(url_for(candidate))
