"""Per-source producer tasks."""

import asyncio
from dataclasses import replace
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncIterator, Protocol

from ..logging_config import get_logger
from ..models import BusSource, RawEvent, RecordFactory
from ..process import IProcessIdentityCache
from .channel import IngestionChannel

logger = get_logger(__name__)


class SourceStatus(str, Enum):
    """Visible connection state of one bus source."""

    CONNECTING = "connecting"
    LIVE = "live"
    RETRYING = "retrying"
    STOPPED = "stopped"


class Transport(Protocol):
    """Subscription to one bus. Implemented outside the core."""

    source: BusSource

    async def connect(self) -> None:
        """Open the connection and install the monitoring match rules."""
        ...

    def events(self) -> AsyncIterator[RawEvent]:
        """Yield parsed messages until the connection drops."""
        ...


class SourceProducer:
    """Pulls RawEvents from one transport into its ingestion channel.

    Transport failures only affect this source: the producer records the
    error, waits ``retry_delay`` and reconnects.
    """

    def __init__(
        self,
        transport: Transport,
        channel: IngestionChannel,
        factory: RecordFactory,
        cache: IProcessIdentityCache,
        retry_delay: float = 2.0,
    ):
        self._transport = transport
        self._channel = channel
        self._factory = factory
        self._cache = cache
        self._retry_delay = retry_delay
        self._task: asyncio.Task | None = None
        self._running = False
        self._last_timestamp: datetime | None = None

        self.status = SourceStatus.STOPPED
        self.last_error: str | None = None
        self.rejected = 0
        self.reconnects = 0

    @property
    def source(self) -> BusSource:
        return self._transport.source

    async def start(self) -> None:
        """Start the background ingestion task."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel ingestion. Queued records stay in the channel."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._set_status(SourceStatus.STOPPED)

    async def _run(self) -> None:
        while self._running:
            self._set_status(SourceStatus.CONNECTING)
            try:
                await self._transport.connect()
                self._set_status(SourceStatus.LIVE)
                self.last_error = None
                async for raw in self._transport.events():
                    await self.ingest(raw)
                self.last_error = "event stream ended"
                logger.warning("Source %s: event stream ended", self.source.value)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.last_error = f"{type(e).__name__}: {e}"
                logger.error("Source %s transport error: %s", self.source.value, e)

            if not self._running:
                break
            self.reconnects += 1
            self._set_status(SourceStatus.RETRYING)
            await asyncio.sleep(self._retry_delay)

    async def ingest(self, raw: RawEvent) -> bool:
        """Normalize one RawEvent and hand it to the channel.

        Returns False if the record was rejected or dropped.
        """
        # Keep per-source timestamps non-decreasing
        ts = raw.timestamp or datetime.now(timezone.utc)
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        if self._last_timestamp is not None and ts < self._last_timestamp:
            ts = self._last_timestamp
        self._last_timestamp = ts

        try:
            record = self._factory.build(replace(raw, timestamp=ts), self.source)
        except ValueError as e:
            self.rejected += 1
            logger.warning(
                "Source %s: rejected malformed message serial=%s: %s",
                self.source.value,
                raw.serial,
                e,
                extra={"context": {"source": self.source.value, "rejected": self.rejected}},
            )
            return False

        for pid in (record.sender_pid, record.destination_pid):
            if pid is not None:
                await self._cache.aresolve(pid)

        return self._channel.offer(record)

    def _set_status(self, status: SourceStatus) -> None:
        if status != self.status:
            logger.info(
                "Source %s: %s -> %s",
                self.source.value,
                self.status.value,
                status.value,
                extra={"context": {"source": self.source.value, "error": self.last_error}},
            )
            self.status = status
