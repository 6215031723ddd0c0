"""D-Buddy: bus message inspector core."""

from .app import Application, IApplication
from .config import InspectorSettings
from .errors import (
    ConfigError,
    DBuddyError,
    FilterParseError,
    ProcessNotFound,
    RecordNotFound,
    TransportError,
)
from .history import HistoryStore, HistoryStores
from .ingestion import ChannelSet, IngestionChannel, SourceProducer, SourceStatus, Transport
from .models import (
    BusSource,
    EventRecord,
    MessageKind,
    ProcessIdentity,
    RawEvent,
    Value,
    ViewMode,
)
from .process import IProcessIdentityCache, ProcessIdentityCache
from .projection import Projection, StickyHeader, Viewport, project
from .query import GroupingKey, IQueryEngine, QueryEngine, QueryResult, ThreadResult

__all__ = [
    # Application
    "Application",
    "IApplication",
    "InspectorSettings",
    # Errors
    "DBuddyError",
    "ConfigError",
    "FilterParseError",
    "ProcessNotFound",
    "RecordNotFound",
    "TransportError",
    # Models
    "BusSource",
    "EventRecord",
    "MessageKind",
    "ProcessIdentity",
    "RawEvent",
    "Value",
    "ViewMode",
    # Components
    "ChannelSet",
    "IngestionChannel",
    "SourceProducer",
    "SourceStatus",
    "Transport",
    "HistoryStore",
    "HistoryStores",
    "IProcessIdentityCache",
    "ProcessIdentityCache",
    "IQueryEngine",
    "QueryEngine",
    "QueryResult",
    "ThreadResult",
    "GroupingKey",
    "Projection",
    "StickyHeader",
    "Viewport",
    "project",
]
