"""History module."""

from .store import HistoryStore, HistoryStores

__all__ = ["HistoryStore", "HistoryStores"]
