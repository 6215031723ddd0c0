"""Bounded per-source history."""

import heapq
from collections import deque
from typing import Deque, Iterable, Iterator

from ..logging_config import get_logger
from ..models import BusSource, EventRecord, ViewMode

logger = get_logger(__name__)


def _sort_key(record: EventRecord):
    return record.sort_key


class HistoryStore:
    """Append-at-tail, trim-at-head record sequence for one source.

    Trimming pops from the left of a deque, so it costs O(records trimmed)
    and never touches the rest of the history. ``generation`` changes on
    every mutation and is what query caches key on.
    """

    def __init__(self, source: BusSource, max_messages: int):
        if max_messages < 1:
            raise ValueError("max_messages must be >= 1")
        self.source = source
        self.max_messages = max_messages
        self.generation = 0
        self.total_appended = 0
        self.total_trimmed = 0
        self._records: Deque[EventRecord] = deque()
        self._by_id: dict[int, EventRecord] = {}

    def extend(self, records: Iterable[EventRecord]) -> int:
        """Append a batch, then trim to ``max_messages``.

        Returns:
            Number of records trimmed from the head.
        """
        appended = 0
        for record in records:
            if self._records and record.timestamp < self._records[-1].timestamp:
                logger.warning(
                    "History %s: record %s is older than the tail",
                    self.source.value,
                    record.id,
                )
            self._records.append(record)
            self._by_id[record.id] = record
            appended += 1

        if not appended:
            return 0
        self.total_appended += appended
        self.generation += 1
        return self._trim()

    def set_max_messages(self, max_messages: int) -> int:
        """Change the cap, trimming immediately if it shrank."""
        if max_messages < 1:
            raise ValueError("max_messages must be >= 1")
        self.max_messages = max_messages
        trimmed = self._trim()
        if trimmed:
            self.generation += 1
        return trimmed

    def _trim(self) -> int:
        trimmed = 0
        while len(self._records) > self.max_messages:
            oldest = self._records.popleft()
            del self._by_id[oldest.id]
            trimmed += 1
        if trimmed:
            self.total_trimmed += trimmed
            logger.debug("History %s: trimmed %d records", self.source.value, trimmed)
        return trimmed

    def get(self, record_id: int) -> EventRecord | None:
        return self._by_id.get(record_id)

    @property
    def oldest(self) -> EventRecord | None:
        return self._records[0] if self._records else None

    @property
    def newest(self) -> EventRecord | None:
        return self._records[-1] if self._records else None

    def newer_than(self, record_id: int) -> list[EventRecord]:
        """Records with an id above ``record_id``, oldest first.

        Walks back from the tail, so the cost is the number returned.
        """
        fresh: list[EventRecord] = []
        for record in reversed(self._records):
            if record.id <= record_id:
                break
            fresh.append(record)
        fresh.reverse()
        return fresh

    def clear(self) -> None:
        self._records.clear()
        self._by_id.clear()
        self.generation += 1

    def snapshot(self) -> list[EventRecord]:
        """References to all retained records, oldest first."""
        return list(self._records)

    def __iter__(self) -> Iterator[EventRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)


class HistoryStores:
    """One HistoryStore per source plus the merged view over them."""

    def __init__(self, max_messages: int, sources: Iterable[BusSource] = tuple(BusSource)):
        self._stores: dict[BusSource, HistoryStore] = {
            source: HistoryStore(source, max_messages) for source in sources
        }

    def __getitem__(self, source: BusSource) -> HistoryStore:
        return self._stores[source]

    def __iter__(self) -> Iterator[HistoryStore]:
        return iter(self._stores.values())

    def view(self, mode: ViewMode) -> Iterator[EventRecord]:
        """Timestamp-ordered records for a view mode.

        The combined view is a lazy k-way merge over the per-source deques;
        it yields references and copies nothing.
        """
        stores = [self._stores[s] for s in mode.sources if s in self._stores]
        if len(stores) == 1:
            return iter(stores[0])
        return heapq.merge(*stores, key=_sort_key)

    def snapshot(self, mode: ViewMode) -> list[EventRecord]:
        return list(self.view(mode))

    def generation(self, mode: ViewMode) -> tuple[int, ...]:
        return tuple(
            self._stores[s].generation for s in mode.sources if s in self._stores
        )

    def get(self, record_id: int) -> EventRecord | None:
        for store in self._stores.values():
            record = store.get(record_id)
            if record is not None:
                return record
        return None

    def set_max_messages(self, max_messages: int) -> int:
        return sum(store.set_max_messages(max_messages) for store in self._stores.values())

    def clear(self) -> None:
        for store in self._stores.values():
            store.clear()
