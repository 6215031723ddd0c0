"""Query module: filter, thread expansion, grouping."""

from .engine import IQueryEngine, QueryEngine
from .filter import (
    FILTER_FIELDS,
    FilterState,
    ParsedFilter,
    autofilter_clause,
    parse_filter,
)
from .grouping import (
    NO_GROUPING,
    GroupingKey,
    GroupSpan,
    QueryResult,
    group_records,
    normalize_grouping,
    toggle_grouping_key,
)
from .thread import ThreadResult, expand_thread, links_into

__all__ = [
    "FILTER_FIELDS",
    "FilterState",
    "GroupSpan",
    "GroupingKey",
    "IQueryEngine",
    "NO_GROUPING",
    "ParsedFilter",
    "QueryEngine",
    "QueryResult",
    "ThreadResult",
    "autofilter_clause",
    "expand_thread",
    "group_records",
    "links_into",
    "normalize_grouping",
    "parse_filter",
    "toggle_grouping_key",
]
