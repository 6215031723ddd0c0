"""Grouping of filtered records."""

import bisect
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable

from ..errors import ConfigError
from ..models import EventRecord
from .thread import ThreadResult


class GroupingKey(str, Enum):
    """Fields records can be grouped by."""

    SENDER = "sender"
    MEMBER = "member"
    PATH = "path"
    SERIAL = "serial"
    NONE = "none"


CANONICAL_ORDER = (
    GroupingKey.SENDER,
    GroupingKey.MEMBER,
    GroupingKey.PATH,
    GroupingKey.SERIAL,
)
NO_GROUPING = (GroupingKey.NONE,)

_FIELD_GETTERS: dict[GroupingKey, Callable[[EventRecord], str]] = {
    GroupingKey.SENDER: lambda r: r.sender,
    GroupingKey.MEMBER: lambda r: r.member,
    GroupingKey.PATH: lambda r: r.path,
    GroupingKey.SERIAL: lambda r: str(r.serial),
}


def _coerce(key: "GroupingKey | str") -> GroupingKey:
    if isinstance(key, GroupingKey):
        return key
    try:
        return GroupingKey(str(key).strip().lower())
    except ValueError:
        raise ConfigError(f"unknown grouping key {key!r}")


def normalize_grouping(keys: Iterable["GroupingKey | str"]) -> tuple[GroupingKey, ...]:
    """Validate a key set and put it in canonical order.

    ``none`` only counts when it is the only key.
    """
    selected = {_coerce(k) for k in keys}
    if not selected:
        raise ConfigError("at least one grouping key is required")
    ordered = tuple(k for k in CANONICAL_ORDER if k in selected)
    return ordered or NO_GROUPING


def toggle_grouping_key(
    keys: Iterable["GroupingKey | str"], key: "GroupingKey | str"
) -> tuple[GroupingKey, ...]:
    """Selection-list behaviour: ``none`` clears the others, removing the
    last key falls back to ``none``."""
    key = _coerce(key)
    if key is GroupingKey.NONE:
        return NO_GROUPING
    current = set(normalize_grouping(keys)) - {GroupingKey.NONE}
    if key in current:
        current.remove(key)
    else:
        current.add(key)
    return normalize_grouping(current) if current else NO_GROUPING


@dataclass(frozen=True)
class GroupSpan:
    """A contiguous run of rows sharing one composite key."""

    key: tuple[str, ...]
    start: int
    count: int

    @property
    def end(self) -> int:
        return self.start + self.count

    @property
    def label(self) -> str:
        return " | ".join(part or "-" for part in self.key)


@dataclass
class QueryResult:
    """Rows shown for one snapshot plus their group layout.

    ``rows`` holds references into the history stores. The result is only
    valid for the snapshot ``generation`` it was computed from.
    """

    rows: list[EventRecord] = field(default_factory=list)
    groups: list[GroupSpan] = field(default_factory=list)
    grouping: tuple[GroupingKey, ...] = NO_GROUPING
    generation: tuple = ()
    thread: ThreadResult | None = None
    _starts: list[int] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        if not self._starts:
            self._starts = [g.start for g in self.groups]

    @property
    def is_grouped(self) -> bool:
        return bool(self.groups)

    def group_at(self, index: int) -> GroupSpan | None:
        """Group containing row ``index``, found by bisection."""
        if not self.groups or not 0 <= index < len(self.rows):
            return None
        return self.groups[bisect.bisect_right(self._starts, index) - 1]

    def __len__(self) -> int:
        return len(self.rows)

    def __getitem__(self, index: int) -> EventRecord:
        return self.rows[index]

    def __iter__(self):
        return iter(self.rows)


def composite_key(record: EventRecord, keys: tuple[GroupingKey, ...]) -> tuple[str, ...]:
    return tuple(_FIELD_GETTERS[k](record) for k in keys)


def group_records(
    records: Iterable[EventRecord], keys: tuple[GroupingKey, ...]
) -> tuple[list[EventRecord], list[GroupSpan]]:
    """Partition records by composite key.

    Groups appear in order of first occurrence; members of a group are
    stably sorted by timestamp. With ``none`` the input order is kept and
    no groups are produced.
    """
    if keys == NO_GROUPING:
        return list(records), []

    buckets: dict[tuple[str, ...], list[EventRecord]] = {}
    for record in records:
        buckets.setdefault(composite_key(record, keys), []).append(record)

    rows: list[EventRecord] = []
    spans: list[GroupSpan] = []
    for key, members in buckets.items():
        members.sort(key=lambda r: r.sort_key)
        spans.append(GroupSpan(key=key, start=len(rows), count=len(members)))
        rows.extend(members)
    return rows, spans
