"""Application bootstrap and lifecycle management."""

import asyncio
from functools import partial
from typing import Iterable, Protocol

from .config import InspectorSettings
from .history import HistoryStores
from .ingestion import ChannelSet, SourceProducer, SourceStatus, Transport
from .logging_config import get_logger
from .models import (
    BodyDecoder,
    BusSource,
    EventRecord,
    RecordFactory,
    ViewMode,
    decode_python,
)
from .process import ProcessIdentityCache, ProcessLookup, lookup_process
from .projection import Projection, Viewport, project
from .query import GroupingKey, QueryEngine, QueryResult, ThreadResult

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap, lifecycle and the consumer-side entry points."""

    async def start(self) -> None:
        """Start producers and the refresh loop."""
        ...

    async def stop(self) -> None:
        """Tear the pipeline down as a unit."""
        ...

    async def reset(self) -> None:
        """Drop all retained history."""
        ...

    def refresh(self) -> int:
        """Drain all channels into history. Returns records ingested."""
        ...

    def configure(
        self,
        max_messages: int | None = None,
        grouping_keys: Iterable[GroupingKey | str] | None = None,
        filter_text: str | None = None,
        view_mode: ViewMode | str | None = None,
    ) -> None:
        """Apply new settings; rejects bad filters and keeps the old one."""
        ...

    def query(self) -> QueryResult:
        """Current rows."""
        ...

    def project(self, top: int, height: int) -> Projection:
        """Visible window and sticky header."""
        ...

    def expand_thread(self, record_id: int) -> ThreadResult:
        """Enter thread view around a record."""
        ...


class Application:
    """Wires transports, channels, history and the query engine together.

    Producers run as one task per transport. Everything else is touched only
    from the consumer side (``refresh`` and the query methods), so the
    history and the engine need no locking.
    """

    def __init__(
        self,
        settings: InspectorSettings | None = None,
        transports: Iterable[Transport] = (),
        lookup: ProcessLookup = lookup_process,
        decoder: BodyDecoder | None = None,
    ):
        self._settings = settings or InspectorSettings.from_env()
        self._transports = list(transports)

        self._cache = ProcessIdentityCache(lookup)
        self._history = HistoryStores(self._settings.max_messages)
        self._channels = ChannelSet(self._settings.channel_capacity)
        self._factory = RecordFactory(
            decoder or partial(decode_python, max_depth=self._settings.value_max_depth)
        )
        self._engine = QueryEngine(
            self._history,
            sender_label=self.sender_label,
            grouping=self._settings.grouping_keys,
            view_mode=self._settings.view_mode,
            filter_text=self._settings.filter_text,
        )

        self._producers: list[SourceProducer] = []
        self._refresh_task: asyncio.Task | None = None
        self._running = False

    async def start(self, auto_refresh: bool = True) -> None:
        """Start one producer per transport and, optionally, the refresh loop."""
        if self._running:
            return
        logger.info("Starting inspector with %d transport(s)", len(self._transports))

        for transport in self._transports:
            await self._start_producer(transport)

        self._running = True
        if auto_refresh:
            self._refresh_task = asyncio.create_task(self._refresh_loop())

    async def attach(self, transport: Transport) -> None:
        """Add a transport at runtime. One transport per source.

        Raises:
            ValueError: the source already has a running producer.
        """
        if any(p.source == transport.source for p in self._producers):
            raise ValueError(f"source {transport.source.value} already attached")
        self._transports.append(transport)
        await self._start_producer(transport)

    async def detach(self, source: BusSource) -> bool:
        """Stop and remove the producer for ``source``."""
        for producer in self._producers:
            if producer.source == source:
                await producer.stop()
                self._producers.remove(producer)
                self._transports = [t for t in self._transports if t.source != source]
                logger.info("Producer for %s detached", source.value)
                return True
        return False

    async def _start_producer(self, transport: Transport) -> None:
        producer = SourceProducer(
            transport,
            self._channels[transport.source],
            self._factory,
            self._cache,
            retry_delay=self._settings.retry_delay,
        )
        await producer.start()
        self._producers.append(producer)
        logger.info("Producer for %s started", transport.source.value)

    async def stop(self) -> None:
        """Tear the pipeline down as a unit."""
        self._running = False
        if self._refresh_task:
            self._refresh_task.cancel()
            try:
                await self._refresh_task
            except asyncio.CancelledError:
                pass
            self._refresh_task = None

        for producer in self._producers:
            await producer.stop()
        self._producers.clear()
        logger.info("Inspector stopped")

    async def reset(self) -> None:
        """Drop all retained history."""
        self._channels.drain_all()
        self._history.clear()
        self._engine.clear_thread()
        self._engine.invalidate()
        logger.info("History cleared")

    async def _refresh_loop(self) -> None:
        interval = self._settings.refresh_interval
        while self._running:
            await asyncio.sleep(interval)
            self.refresh()

    def refresh(self) -> int:
        """Drain all channels into history. Returns records ingested."""
        ingested = 0
        for source, records in self._channels.drain_all().items():
            if records:
                self._history[source].extend(records)
                ingested += len(records)
        return ingested

    async def refresh_wait(self, timeout: float) -> int:
        """Wait up to ``timeout`` for any channel to fill, then refresh."""
        await self._channels.wait(timeout)
        return self.refresh()

    # Query side

    def configure(
        self,
        max_messages: int | None = None,
        grouping_keys: Iterable[GroupingKey | str] | None = None,
        filter_text: str | None = None,
        view_mode: ViewMode | str | None = None,
    ) -> None:
        """Apply new settings; rejects bad filters and keeps the old one."""
        self._engine.configure(
            max_messages=max_messages,
            grouping_keys=grouping_keys,
            filter_text=filter_text,
            view_mode=view_mode,
        )
        if max_messages is not None:
            self._settings.max_messages = max_messages

    def query(self) -> QueryResult:
        return self._engine.query()

    def project(self, top: int, height: int) -> Projection:
        return project(self._engine.query(), Viewport(top, height))

    def expand_thread(self, record_id: int) -> ThreadResult:
        return self._engine.expand_thread(record_id)

    def clear_thread(self) -> None:
        self._engine.clear_thread()

    def record(self, record_id: int) -> EventRecord | None:
        return self._history.get(record_id)

    # Identity display

    def sender_label(self, record: EventRecord) -> str:
        """``app:pid`` of the sender, or "" when unresolved."""
        return self._cache.label(record.sender_pid, "")

    def sender_display(self, record: EventRecord) -> str:
        return self._cache.label(record.sender_pid, record.sender)

    def destination_display(self, record: EventRecord) -> str:
        if not record.destination:
            return ""
        return self._cache.label(record.destination_pid, record.destination)

    def stats(self) -> dict:
        """Per-source counters, statuses and cache figures."""
        producers = {p.source: p for p in self._producers}
        sources = {}
        for source in BusSource:
            channel = self._channels[source]
            store = self._history[source]
            producer = producers.get(source)
            sources[source.value] = {
                "status": (producer.status if producer else SourceStatus.STOPPED).value,
                "last_error": producer.last_error if producer else None,
                "received": channel.received,
                "dropped": channel.dropped,
                "rejected": producer.rejected if producer else 0,
                "reconnects": producer.reconnects if producer else 0,
                "queued": len(channel),
                "retained": len(store),
                "trimmed": store.total_trimmed,
            }
        return {
            "sources": sources,
            "max_messages": self._settings.max_messages,
            "view_mode": self._engine.view_mode.value,
            "grouping": [k.value for k in self._engine.grouping],
            "filter": self._engine.filter_text,
            "thread_seed": self._engine.thread_seed,
            "process_cache": self._cache.stats(),
        }

    @property
    def settings(self) -> InspectorSettings:
        return self._settings

    @property
    def engine(self) -> QueryEngine:
        return self._engine

    @property
    def history(self) -> HistoryStores:
        return self._history

    @property
    def channels(self) -> ChannelSet:
        return self._channels

    @property
    def cache(self) -> ProcessIdentityCache:
        return self._cache

    @property
    def producers(self) -> list[SourceProducer]:
        return list(self._producers)
