"""Filter grammar and predicates.

Grammar, whitespace separated, shell-style quoting allowed:

    token          bare term, case-insensitive substring of sender, member or path
    field=value    constrain one field (sender, member, path, serial, reply_serial)
    field=         remove the constraint on that field

Clauses combine with AND. Applying a filter to the current state follows the
interactive rules: an empty string clears everything, field clauses set or
remove their field and keep the other fields, bare terms replace the previous
terms, and a string made only of bare terms drops the field constraints.
"""

import shlex
from dataclasses import dataclass, field
from typing import Callable

from ..errors import FilterParseError
from ..models import EventRecord

FILTER_FIELDS = ("sender", "member", "path", "serial", "reply_serial")
_NUMERIC_FIELDS = frozenset({"serial", "reply_serial"})

SenderLabel = Callable[[EventRecord], str]


def _no_label(record: EventRecord) -> str:
    return ""


@dataclass(frozen=True)
class ParsedFilter:
    """One filter string, parsed but not yet applied."""

    terms: tuple[str, ...] = ()
    fields: dict[str, str] = field(default_factory=dict)
    cleared: frozenset[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not (self.terms or self.fields or self.cleared)


def parse_filter(text: str) -> ParsedFilter:
    """Parse a filter string.

    Raises:
        FilterParseError: unknown field, non-numeric serial, or bad quoting.
    """
    try:
        tokens = shlex.split(text)
    except ValueError as e:
        raise FilterParseError(f"invalid filter: {e}", clause=text)

    terms: list[str] = []
    fields: dict[str, str] = {}
    cleared: set[str] = set()

    for token in tokens:
        if "=" not in token:
            terms.append(token.lower())
            continue

        name, value = token.split("=", 1)
        name = name.strip().lower()
        if name not in FILTER_FIELDS:
            raise FilterParseError(
                f"unknown filter field {name!r} (expected one of {', '.join(FILTER_FIELDS)})",
                clause=token,
            )

        if value == "":
            fields.pop(name, None)
            cleared.add(name)
            continue

        if name in _NUMERIC_FIELDS and not value.isdigit():
            raise FilterParseError(
                f"{name} must be a non-negative integer, got {value!r}",
                clause=token,
            )
        fields[name] = value
        cleared.discard(name)

    return ParsedFilter(tuple(terms), fields, frozenset(cleared))


@dataclass(frozen=True)
class FilterState:
    """The filter currently in effect."""

    fields: tuple[tuple[str, str], ...] = ()
    terms: tuple[str, ...] = ()

    @property
    def is_active(self) -> bool:
        return bool(self.fields or self.terms)

    def apply(self, parsed: ParsedFilter) -> "FilterState":
        """State after applying a parsed filter string to this one."""
        if parsed.is_empty:
            return FilterState()

        if parsed.fields or parsed.cleared:
            merged = dict(self.fields)
            for name in parsed.cleared:
                merged.pop(name, None)
            merged.update(parsed.fields)
        else:
            merged = {}

        ordered = tuple((name, merged[name]) for name in FILTER_FIELDS if name in merged)
        return FilterState(ordered, parsed.terms)

    def describe(self) -> str:
        """Filter text that reproduces this state."""
        parts = [f"{name}={shlex.quote(value)}" for name, value in self.fields]
        parts.extend(shlex.quote(term) for term in self.terms)
        return " ".join(parts)

    def predicate(
        self, sender_label: SenderLabel = _no_label
    ) -> Callable[[EventRecord], bool]:
        """Compile the state into a record predicate.

        ``sender_label`` supplies the ``app:pid`` display form of a record's
        sender, so filters can name processes as well as bus names.
        """
        checks: list[Callable[[EventRecord], bool]] = []

        for name, value in self.fields:
            if name == "serial":
                serial = int(value)
                checks.append(lambda r, s=serial: r.serial == s)
            elif name == "reply_serial":
                serial = int(value)
                checks.append(lambda r, s=serial: r.reply_serial == s)
            elif name == "sender":
                needle = value.lower()
                checks.append(
                    lambda r, n=needle: n in r.folded[0]
                    or n in sender_label(r).lower()
                )
            elif name == "member":
                needle = value.lower()
                checks.append(lambda r, n=needle: n in r.folded[1])
            else:
                needle = value.lower()
                checks.append(lambda r, n=needle: n in r.folded[2])

        for term in self.terms:
            checks.append(
                lambda r, t=term: any(t in part for part in r.folded)
                or t in sender_label(r).lower()
            )

        if not checks:
            return lambda record: True
        return lambda record: all(check(record) for check in checks)


def autofilter_clause(
    record: EventRecord, field_name: str, sender_label: SenderLabel = _no_label
) -> str:
    """``field=value`` clause that selects records like ``record``."""
    if field_name == "sender":
        value = sender_label(record) or record.sender
    elif field_name == "member":
        value = record.member
    elif field_name == "path":
        value = record.path
    elif field_name == "serial":
        value = str(record.serial)
    elif field_name == "reply_serial":
        value = "" if record.reply_serial is None else str(record.reply_serial)
    else:
        raise FilterParseError(f"unknown filter field {field_name!r}", clause=field_name)
    return f"{field_name}={shlex.quote(value) if value else ''}"
