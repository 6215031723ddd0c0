"""Bus event data models."""

import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from functools import cached_property
from typing import Any, Callable, NamedTuple

from .values import EMPTY_BODY, Undecodable, Value

U32_MAX = 0xFFFFFFFF


class BusSource(str, Enum):
    """Independent bus an event was observed on."""

    SESSION = "session"
    SYSTEM = "system"


class ViewMode(str, Enum):
    """Which histories the query engine reads."""

    SESSION = "session"
    SYSTEM = "system"
    BOTH = "both"

    @property
    def sources(self) -> tuple[BusSource, ...]:
        """Sources included in this view."""
        if self is ViewMode.SESSION:
            return (BusSource.SESSION,)
        if self is ViewMode.SYSTEM:
            return (BusSource.SYSTEM,)
        return (BusSource.SESSION, BusSource.SYSTEM)

    def next(self) -> "ViewMode":
        """Cycle session -> system -> both -> session."""
        order = [ViewMode.SESSION, ViewMode.SYSTEM, ViewMode.BOTH]
        return order[(order.index(self) + 1) % len(order)]


class MessageKind(str, Enum):
    """D-Bus message types."""

    SIGNAL = "signal"
    METHOD_CALL = "method_call"
    METHOD_RETURN = "method_return"
    ERROR = "error"


class ConnectionSerial(NamedTuple):
    """A serial scoped to the connection that allocated it."""

    source: BusSource
    connection: str
    serial: int


@dataclass
class RawEvent:
    """A parsed bus message as handed over by a transport."""

    kind: MessageKind
    sender: str
    serial: int
    path: str = ""
    interface: str = ""
    member: str = ""
    destination: str | None = None
    reply_serial: int | None = None
    body: Any = None
    sender_pid: int | None = None
    destination_pid: int | None = None
    timestamp: datetime | None = None


@dataclass(frozen=True, eq=False)
class EventRecord:
    """One normalized bus message. Immutable once ingested.

    Records compare and hash by identity; the query layers pass references
    around and never copy them.
    """

    id: int
    timestamp: datetime
    source: BusSource
    kind: MessageKind
    sender: str
    path: str
    interface: str
    member: str
    serial: int
    destination: str | None = None
    reply_serial: int | None = None
    body: Value = EMPTY_BODY
    sender_pid: int | None = None
    destination_pid: int | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.serial <= U32_MAX:
            raise ValueError(f"serial out of u32 range: {self.serial}")
        if self.reply_serial is not None:
            if not 0 <= self.reply_serial <= U32_MAX:
                raise ValueError(
                    f"reply_serial out of u32 range: {self.reply_serial}"
                )
            if self.kind not in (MessageKind.METHOD_RETURN, MessageKind.ERROR):
                raise ValueError(
                    f"reply_serial set on a {self.kind.value} message"
                )

    @property
    def is_reply(self) -> bool:
        return self.reply_serial is not None

    @property
    def call_key(self) -> ConnectionSerial:
        """Key other messages use to refer to this one."""
        return ConnectionSerial(self.source, self.sender, self.serial)

    @property
    def reply_key(self) -> ConnectionSerial | None:
        """Key of the call this message answers.

        A reply travels back to the caller, so the caller's serial is scoped
        to the reply's destination. Replies without a destination cannot be
        linked.
        """
        if self.reply_serial is None or not self.destination:
            return None
        return ConnectionSerial(self.source, self.destination, self.reply_serial)

    @property
    def sort_key(self) -> tuple[datetime, int]:
        return (self.timestamp, self.id)

    @cached_property
    def folded(self) -> tuple[str, str, str]:
        """Lower-cased sender, member and path for case-insensitive matching."""
        return (self.sender.lower(), self.member.lower(), self.path.lower())


BodyDecoder = Callable[[Any], Value]


@dataclass
class RecordFactory:
    """Builds EventRecords from RawEvents with process-unique ids."""

    decoder: BodyDecoder
    _ids: Any = field(default_factory=lambda: itertools.count(1), repr=False)

    def next_id(self) -> int:
        return next(self._ids)

    def build(self, raw: RawEvent, source: BusSource) -> EventRecord:
        """Normalize a RawEvent.

        A body the decoder rejects becomes ``Undecodable``; the record is
        still produced.
        """
        if raw.body is None:
            body: Value = EMPTY_BODY
        else:
            try:
                body = self.decoder(raw.body)
            except Exception as e:
                body = Undecodable(f"{type(e).__name__}: {e}")

        return EventRecord(
            id=self.next_id(),
            timestamp=raw.timestamp or datetime.now(timezone.utc),
            source=source,
            kind=raw.kind,
            sender=raw.sender,
            destination=raw.destination or None,
            path=raw.path,
            interface=raw.interface,
            member=raw.member,
            serial=raw.serial,
            reply_serial=raw.reply_serial,
            body=body,
            sender_pid=raw.sender_pid,
            destination_pid=raw.destination_pid,
        )
