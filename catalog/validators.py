from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from catalog.models import STATUSES

ALPHANUMERIC = re.compile(r"^[0-9A-Za-z]+$")

_HTML_ESCAPES = str.maketrans({
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "/": "&#x2F;",
    "\\": "&#x5C;",
    "`": "&#96;",
})


def escape(text: str) -> str:
    """Replace markup-significant characters with HTML entities."""
    return text.translate(_HTML_ESCAPES)


def parse_date(text: str) -> Optional[date]:
    """Parse an ISO 8601 calendar date or datetime; None when it is not one."""
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def normalize_multi(value: Any) -> List[Any]:
    """Normalize a possibly-repeated form field to a list.

    A checkbox group submits nothing when no box is ticked, a plain value when
    one is, and a list when several are.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


@dataclass(frozen=True)
class FieldRules:
    """Declarative rules for one form field.

    ``field`` is the submitted form name and ``attr`` the record attribute the
    sanitized value is stored under. Each check carries its own message.
    """

    field: str
    attr: str
    trim: bool = True
    required: bool = False
    required_message: str = ""
    escape: bool = True
    max_length: Optional[int] = None
    max_length_message: str = ""
    charset: Optional[str] = None
    charset_message: str = ""
    date: bool = False
    date_message: str = ""
    choices: Tuple[str, ...] = ()
    choices_message: str = ""
    multi: bool = False


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str
    value: Any = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "message": self.message, "value": self.value}


@dataclass
class ValidationResult:
    """Outcome of running a rule set over a submission.

    ``values`` holds sanitized values keyed by record attribute and
    ``submitted`` the sanitized strings keyed by form field, for redisplay.
    """

    errors: List[FieldError] = field(default_factory=list)
    values: Dict[str, Any] = field(default_factory=dict)
    submitted: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add_error(self, field_name: str, message: str, value: Any = "") -> None:
        self.errors.append(FieldError(field_name, message, value))

    def messages(self, field_name: Optional[str] = None) -> List[str]:
        return [e.message for e in self.errors if field_name is None or e.field == field_name]


def _scalar(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    return "" if value is None else str(value)


def _sanitize(rules: FieldRules, text: str) -> str:
    if rules.trim:
        text = text.strip()
    if rules.escape:
        text = escape(text)
    return text


def check_field(rules: FieldRules, raw: Any) -> Tuple[str, Any, List[str]]:
    """Run every rule for one scalar field.

    Returns the sanitized text, the converted value and the failure messages.
    Rules do not stop at the first failure.
    """
    text = _scalar(raw)
    messages: List[str] = []
    if rules.trim:
        text = text.strip()
    if rules.required and len(text) < 1:
        messages.append(rules.required_message)
    if rules.escape:
        text = escape(text)
    if rules.max_length is not None and len(text) > rules.max_length:
        messages.append(rules.max_length_message)
    # Empty values are left to the presence check
    if rules.charset == "alphanumeric" and text and not ALPHANUMERIC.match(text):
        messages.append(rules.charset_message)

    value: Any = text
    if rules.date:
        value = None
        if text:
            value = parse_date(text)
            if value is None:
                messages.append(rules.date_message)
    if rules.choices and text and text not in rules.choices:
        messages.append(rules.choices_message)
    return text, value, messages


def validate(rule_set: Sequence[FieldRules], raw: Mapping[str, Any]) -> ValidationResult:
    """Validate and sanitize a raw submission against ``rule_set``.

    Every field is checked, in rule-set order, whatever happened to the fields
    before it.
    """
    result = ValidationResult()
    for rules in rule_set:
        value = raw.get(rules.field)
        if rules.multi:
            items = [_sanitize(rules, _scalar(item)) for item in normalize_multi(value)]
            items = [item for item in items if item]
            result.values[rules.attr] = items
            result.submitted[rules.field] = items
            continue
        text, converted, messages = check_field(rules, value)
        result.values[rules.attr] = converted
        result.submitted[rules.field] = text
        for message in messages:
            result.add_error(rules.field, message, text)
    return result


def _name_rules(form_field: str, attr: str, label: str) -> FieldRules:
    return FieldRules(
        form_field, attr,
        required=True, required_message=f"{label} must be specified",
        max_length=100, max_length_message=f"{label} must not exceed 100 characters",
        charset="alphanumeric", charset_message=f"{label} has non-alphanumeric characters.",
    )


def _required(form_field: str, message: str, attr: Optional[str] = None) -> FieldRules:
    return FieldRules(form_field, attr or form_field, required=True, required_message=message)


AUTHOR_RULES: Tuple[FieldRules, ...] = (
    _name_rules("firstName", "first_name", "First name"),
    _name_rules("familyName", "family_name", "Family name"),
    FieldRules("dateOfBirth", "date_of_birth", escape=False, date=True, date_message="Invalid date of birth"),
    FieldRules("dateOfDeath", "date_of_death", escape=False, date=True, date_message="Invalid date of death"),
)

BOOK_RULES: Tuple[FieldRules, ...] = (
    _required("title", "Title must not be empty."),
    _required("author", "Author must not be empty."),
    _required("summary", "Summary must not be empty."),
    _required("isbn", "ISBN must not be empty"),
    FieldRules("genre", "genre", multi=True),
)

GENRE_RULES: Tuple[FieldRules, ...] = (
    _required("name", "Genre name must not be empty."),
)

BOOK_INSTANCE_RULES: Tuple[FieldRules, ...] = (
    _required("book", "Book instance must be specified"),
    _required("imprint", "Imprint must be specified"),
    FieldRules("status", "status", choices=STATUSES, choices_message="Invalid status"),
    FieldRules("dueBack", "due_back", escape=False, date=True, date_message="Invalid date"),
)
