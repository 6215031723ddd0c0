"""QueryEngine implementation: filter, thread expansion, grouping."""

import heapq
from collections import deque
from typing import Deque, Iterable, Protocol

from ..errors import ConfigError, FilterParseError, RecordNotFound
from ..history import HistoryStore, HistoryStores
from ..logging_config import get_logger
from ..models import BusSource, EventRecord, ViewMode
from .filter import FilterState, SenderLabel, _no_label, parse_filter
from .grouping import (
    NO_GROUPING,
    GroupingKey,
    QueryResult,
    group_records,
    normalize_grouping,
)
from .thread import ThreadResult, expand_thread, links_into

logger = get_logger(__name__)


class IQueryEngine(Protocol):
    """Derived views over the history stores."""

    def configure(
        self,
        max_messages: int | None = None,
        grouping_keys: Iterable[GroupingKey | str] | None = None,
        filter_text: str | None = None,
        view_mode: ViewMode | str | None = None,
    ) -> None:
        """Validate and apply new settings. Nothing changes on error."""
        ...

    def query(self) -> QueryResult:
        """Rows for the current snapshot and configuration."""
        ...

    def expand_thread(self, record_id: int) -> ThreadResult:
        """Switch to the conversation around one record."""
        ...

    def clear_thread(self) -> None:
        """Leave thread view."""
        ...


class _FilteredSource:
    """Filtered references for one store, kept in step incrementally.

    Each sync drops rows trimmed from the store head and filters only the
    records appended since the last sync. Record ids grow monotonically
    within a store, which is what both steps rely on.
    """

    def __init__(self) -> None:
        self.records: Deque[EventRecord] = deque()
        self._last_id = 0
        self._version: int | None = None

    def sync(self, store: HistoryStore, predicate, version: int) -> Deque[EventRecord]:
        if version != self._version:
            self.records = deque()
            self._last_id = 0
            self._version = version

        oldest = store.oldest
        if oldest is None:
            self.records.clear()
        else:
            while self.records and self.records[0].id < oldest.id:
                self.records.popleft()

        fresh = store.newer_than(self._last_id)
        if fresh:
            self._last_id = fresh[-1].id
            self.records.extend(r for r in fresh if predicate(r))
        return self.records


class QueryEngine:
    """Applies filter, optional thread expansion and grouping to history.

    Lives in the consumer context; nothing here is shared with producers.
    Results are cached per (store generations, configuration version).
    """

    def __init__(
        self,
        history: HistoryStores,
        sender_label: SenderLabel = _no_label,
        grouping: Iterable[GroupingKey | str] = NO_GROUPING,
        view_mode: ViewMode | str = ViewMode.SESSION,
        filter_text: str = "",
    ):
        self._history = history
        self._sender_label = sender_label
        self._grouping = normalize_grouping(grouping)
        self._view_mode = ViewMode(view_mode)
        self._filter = FilterState().apply(parse_filter(filter_text))
        self._filter_version = 0
        self._config_version = 0
        self._thread_seed: int | None = None
        self._thread_source: BusSource | None = None
        self._thread: ThreadResult | None = None
        self._thread_last_id = 0
        self._filtered: dict[BusSource, _FilteredSource] = {}
        self._cache: QueryResult | None = None
        self._cache_key: tuple | None = None
        self.last_error: FilterParseError | None = None

    @property
    def filter_state(self) -> FilterState:
        return self._filter

    @property
    def filter_text(self) -> str:
        """Text form of the filter in effect (re-displayed after errors)."""
        return self._filter.describe()

    @property
    def grouping(self) -> tuple[GroupingKey, ...]:
        return self._grouping

    @property
    def view_mode(self) -> ViewMode:
        return self._view_mode

    @property
    def thread_seed(self) -> int | None:
        return self._thread_seed

    def configure(
        self,
        max_messages: int | None = None,
        grouping_keys: Iterable[GroupingKey | str] | None = None,
        filter_text: str | None = None,
        view_mode: ViewMode | str | None = None,
    ) -> None:
        """Validate and apply new settings. Nothing changes on error.

        Raises:
            FilterParseError: bad filter; the previous filter stays in effect.
            ConfigError: bad cap, grouping key or view mode.
        """
        new_filter = self._filter
        if filter_text is not None:
            try:
                new_filter = self._filter.apply(parse_filter(filter_text))
            except FilterParseError as e:
                self.last_error = e
                logger.warning(
                    "Rejected filter %r: %s (keeping %r)", filter_text, e, self.filter_text
                )
                raise

        new_grouping = (
            normalize_grouping(grouping_keys) if grouping_keys is not None else self._grouping
        )

        new_view = self._view_mode
        if view_mode is not None:
            try:
                new_view = ViewMode(view_mode)
            except ValueError:
                raise ConfigError(f"unknown view mode {view_mode!r}")

        if max_messages is not None and max_messages < 1:
            raise ConfigError(f"max_messages must be >= 1, got {max_messages}")

        # Everything validated; apply
        if max_messages is not None:
            trimmed = self._history.set_max_messages(max_messages)
            if trimmed:
                logger.info("max_messages=%d trimmed %d records", max_messages, trimmed)
        if new_filter != self._filter:
            self._filter = new_filter
            self._filter_version += 1
        self._grouping = new_grouping
        self._view_mode = new_view
        self.last_error = None
        self._config_version += 1
        logger.debug(
            "Configured filter=%r grouping=%s view=%s",
            self.filter_text,
            [k.value for k in self._grouping],
            self._view_mode.value,
        )

    def expand_thread(self, record_id: int) -> ThreadResult:
        """Switch to the conversation around one record.

        Raises:
            RecordNotFound: the record was trimmed or never existed.
        """
        seed = self._history.get(record_id)
        if seed is None:
            raise RecordNotFound(record_id)
        self._thread_seed = record_id
        self._thread_source = seed.source
        self._thread = None
        self._config_version += 1
        result = self.query()
        if result.thread is None:
            raise RecordNotFound(record_id)
        return result.thread

    def clear_thread(self) -> None:
        if self._thread_seed is not None:
            self._thread_seed = None
            self._thread_source = None
            self._thread = None
            self._config_version += 1

    def _generation(self) -> tuple[int, ...]:
        # Links never cross buses, so a thread depends on its seed's store only
        if self._thread_source is not None:
            return (self._history[self._thread_source].generation,)
        return self._history.generation(self._view_mode)

    def query(self) -> QueryResult:
        """Rows for the current snapshot and configuration."""
        key = (self._generation(), self._config_version)
        if self._cache is not None and self._cache_key == key:
            return self._cache

        result = None
        if self._thread_seed is not None:
            result = self._query_thread(key[0])
        if result is None:
            generation = self._history.generation(self._view_mode)
            rows, groups = group_records(self._filtered_view(), self._grouping)
            result = QueryResult(
                rows=rows,
                groups=groups,
                grouping=self._grouping,
                generation=generation,
            )

        # Re-read: leaving thread view bumps the config version
        self._cache_key = (self._generation(), self._config_version)
        self._cache = result
        return result

    def _query_thread(self, generation: tuple) -> QueryResult | None:
        store = self._history[self._thread_source]
        seed = store.get(self._thread_seed)
        if seed is None:
            logger.info("Thread seed %s trimmed, leaving thread view", self._thread_seed)
            self.clear_thread()
            return None

        # The whole retained history of the seed's bus, ignoring the filter.
        # Rebuild only when a closure member was trimmed or a new record links in.
        thread = self._thread
        if (
            thread is None
            or any(store.get(r.id) is None for r in thread.records)
            or links_into(thread, store.newer_than(self._thread_last_id))
        ):
            thread = expand_thread(seed, store)
        newest = store.newest
        self._thread = thread
        self._thread_last_id = newest.id if newest is not None else 0
        return QueryResult(
            rows=list(thread.records),
            grouping=NO_GROUPING,
            generation=generation,
            thread=thread,
        )

    def _filtered_view(self) -> Iterable[EventRecord]:
        sources = self._view_mode.sources
        if not self._filter.is_active:
            return self._history.view(self._view_mode)

        predicate = self._filter.predicate(self._sender_label)
        per_source = []
        for source in sources:
            state = self._filtered.setdefault(source, _FilteredSource())
            per_source.append(state.sync(self._history[source], predicate, self._filter_version))

        if len(per_source) == 1:
            return per_source[0]
        return heapq.merge(*per_source, key=lambda r: r.sort_key)

    def invalidate(self) -> None:
        """Force the next query to recompute."""
        self._cache = None
        self._cache_key = None
        self._thread = None
