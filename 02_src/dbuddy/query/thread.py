"""Conversation (thread) reconstruction."""

from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Iterable

from ..models import ConnectionSerial, EventRecord


@dataclass
class ThreadResult:
    """Closure of a seed record over serial/reply_serial links."""

    seed: EventRecord
    records: list[EventRecord] = field(default_factory=list)
    unresolved_calls: list[ConnectionSerial] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        """False when some reply points at a call no longer retained."""
        return not self.unresolved_calls

    def __len__(self) -> int:
        return len(self.records)


def expand_thread(seed: EventRecord, history: Iterable[EventRecord]) -> ThreadResult:
    """Collect every record linked to ``seed``, ordered by timestamp.

    Links are keyed on ``(source, connection, serial)``: a message is
    reachable from its replies (their destination plus reply_serial names
    it) and vice versa. The walk covers the whole history passed in, not
    just the filtered rows, and visits each record once.
    """
    by_call: dict[ConnectionSerial, list[EventRecord]] = defaultdict(list)
    by_reply: dict[ConnectionSerial, list[EventRecord]] = defaultdict(list)
    for record in history:
        by_call[record.call_key].append(record)
        reply_key = record.reply_key
        if reply_key is not None:
            by_reply[reply_key].append(record)

    seen: dict[int, EventRecord] = {seed.id: seed}
    unresolved: dict[ConnectionSerial, None] = {}
    queue = deque([seed])

    while queue:
        record = queue.popleft()
        linked = by_call.get(record.call_key, []) + by_reply.get(record.call_key, [])

        reply_key = record.reply_key
        if reply_key is not None:
            calls = by_call.get(reply_key)
            if calls:
                linked.extend(calls)
            else:
                unresolved[reply_key] = None
            # Other replies to the same call belong to the conversation too
            linked.extend(by_reply.get(reply_key, []))

        for other in linked:
            if other.id not in seen:
                seen[other.id] = other
                queue.append(other)

    ordered = sorted(seen.values(), key=lambda r: r.sort_key)
    return ThreadResult(seed=seed, records=ordered, unresolved_calls=list(unresolved))


def links_into(thread: ThreadResult, records: Iterable[EventRecord]) -> bool:
    """True if any of ``records`` would join the closure of ``thread``."""
    keys = {r.call_key for r in thread.records}
    keys.update(r.reply_key for r in thread.records if r.reply_key is not None)
    for record in records:
        if record.call_key in keys or record.reply_key in keys:
            return True
    return False
