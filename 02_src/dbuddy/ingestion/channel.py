"""Bounded per-source ingestion channels."""

import asyncio
from typing import Iterable

from ..logging_config import get_logger
from ..models import BusSource, EventRecord

logger = get_logger(__name__)

# Log the first overflow drop and then every Nth one
DROP_LOG_EVERY = 1000


class IngestionChannel:
    """Hands records from one producer to the single consumer.

    ``offer`` never blocks: when the channel is full the new record is
    dropped and counted, so a flood on one bus cannot stall the consumer.
    """

    def __init__(
        self,
        source: BusSource,
        capacity: int,
        notify: asyncio.Event | None = None,
    ):
        if capacity < 1:
            raise ValueError("channel capacity must be >= 1")
        self.source = source
        self.capacity = capacity
        self._queue: asyncio.Queue[EventRecord] = asyncio.Queue(maxsize=capacity)
        self._notify = notify
        self.received = 0
        self.dropped = 0

    def offer(self, record: EventRecord) -> bool:
        """Enqueue a record. Returns False if it was dropped."""
        try:
            self._queue.put_nowait(record)
        except asyncio.QueueFull:
            self.dropped += 1
            if self.dropped == 1 or self.dropped % DROP_LOG_EVERY == 0:
                logger.warning(
                    "Channel %s full, dropped %d records so far",
                    self.source.value,
                    self.dropped,
                    extra={"context": {"source": self.source.value, "dropped": self.dropped}},
                )
            return False

        self.received += 1
        if self._notify is not None:
            self._notify.set()
        return True

    def drain(self, limit: int | None = None) -> list[EventRecord]:
        """Take everything currently queued without waiting."""
        drained: list[EventRecord] = []
        while limit is None or len(drained) < limit:
            try:
                drained.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                break
        return drained

    async def drain_wait(self, timeout: float) -> list[EventRecord]:
        """Wait up to ``timeout`` for one record, then drain the rest."""
        try:
            first = await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return []
        return [first, *self.drain()]

    def __len__(self) -> int:
        return self._queue.qsize()


class ChannelSet:
    """All channels feeding one consumer, with a shared wake-up event."""

    def __init__(self, capacity: int, sources: Iterable[BusSource] = tuple(BusSource)):
        self._ready = asyncio.Event()
        self._channels: dict[BusSource, IngestionChannel] = {
            source: IngestionChannel(source, capacity, notify=self._ready)
            for source in sources
        }

    def __getitem__(self, source: BusSource) -> IngestionChannel:
        return self._channels[source]

    def __iter__(self):
        return iter(self._channels.values())

    def drain_all(self) -> dict[BusSource, list[EventRecord]]:
        """Non-blocking drain of every channel."""
        self._ready.clear()
        return {source: ch.drain() for source, ch in self._channels.items()}

    async def wait(self, timeout: float) -> bool:
        """Block until any channel has data or ``timeout`` expires."""
        if any(len(ch) for ch in self._channels.values()):
            return True
        try:
            await asyncio.wait_for(self._ready.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True
