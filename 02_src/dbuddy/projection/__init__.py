"""Projection of query results onto a scroll window."""

from .sticky import (
    Projection,
    StickyHeader,
    Viewport,
    WindowRow,
    format_timestamp,
    project,
)

__all__ = [
    "Projection",
    "StickyHeader",
    "Viewport",
    "WindowRow",
    "format_timestamp",
    "project",
]
