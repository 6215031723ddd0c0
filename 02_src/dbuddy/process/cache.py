"""ProcessIdentityCache implementation."""

import asyncio
import threading
from concurrent.futures import Future
from typing import Protocol

from ..errors import ProcessNotFound
from ..logging_config import get_logger
from ..models import ProcessIdentity
from .lookup import ProcessLookup, lookup_process

logger = get_logger(__name__)


class IProcessIdentityCache(Protocol):
    """pid -> ProcessIdentity, shared by all producer contexts."""

    def resolve(self, pid: int) -> ProcessIdentity:
        """Return the identity for pid, looking it up at most once."""
        ...

    async def aresolve(self, pid: int) -> ProcessIdentity:
        """Async resolve; the OS lookup runs off the event loop."""
        ...

    def peek(self, pid: int) -> ProcessIdentity | None:
        """Cached identity or None. Never triggers a lookup."""
        ...


class ProcessIdentityCache:
    """Thread-safe identity cache with in-flight deduplication.

    The lock guards the two maps only. The OS lookup runs outside it, so a
    slow lookup for one pid never blocks callers asking about another.
    Failed lookups are cached as unresolved sentinels. Nothing is evicted.
    """

    def __init__(self, lookup: ProcessLookup = lookup_process):
        self._lookup = lookup
        self._lock = threading.Lock()
        self._entries: dict[int, ProcessIdentity] = {}
        self._inflight: dict[int, Future] = {}
        self._lookups = 0
        self._failures = 0

    def peek(self, pid: int) -> ProcessIdentity | None:
        """Cached identity or None. Never triggers a lookup."""
        with self._lock:
            return self._entries.get(pid)

    def resolve(self, pid: int) -> ProcessIdentity:
        """Return the identity for pid, looking it up at most once.

        Concurrent callers for the same uncached pid wait on the first
        caller's lookup instead of issuing their own.
        """
        with self._lock:
            cached = self._entries.get(pid)
            if cached is not None:
                return cached
            pending = self._inflight.get(pid)
            owner = pending is None
            if owner:
                pending = Future()
                self._inflight[pid] = pending
                self._lookups += 1

        if not owner:
            return pending.result()

        try:
            identity = ProcessIdentity.from_info(self._lookup(pid))
        except ProcessNotFound as e:
            logger.debug("Process %s unresolved: %s", pid, e)
            identity = ProcessIdentity.unresolved(pid, str(e))
        except Exception as e:
            logger.warning("Process lookup for %s failed: %s", pid, e)
            identity = ProcessIdentity.unresolved(pid, f"{type(e).__name__}: {e}")
        except BaseException as e:
            # Cancellation or interpreter exit: release the waiters, cache nothing
            with self._lock:
                del self._inflight[pid]
            pending.set_exception(e)
            raise

        with self._lock:
            self._entries[pid] = identity
            del self._inflight[pid]
            if not identity.resolved:
                self._failures += 1
        pending.set_result(identity)
        return identity

    async def aresolve(self, pid: int) -> ProcessIdentity:
        """Async resolve; the OS lookup runs off the event loop."""
        cached = self.peek(pid)
        if cached is not None:
            return cached
        return await asyncio.to_thread(self.resolve, pid)

    def label(self, pid: int | None, fallback: str) -> str:
        """``app:pid`` for a resolved pid, else ``fallback``."""
        if pid is None:
            return fallback
        identity = self.peek(pid)
        if identity is None or not identity.resolved:
            return fallback
        return identity.label

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict:
        """Cache counters for the status view."""
        with self._lock:
            return {
                "entries": len(self._entries),
                "lookups": self._lookups,
                "unresolved": self._failures,
                "in_flight": len(self._inflight),
            }
