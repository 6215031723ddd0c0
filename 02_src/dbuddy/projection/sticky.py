"""Sticky group headers for virtualized list views."""

from dataclasses import dataclass, field, replace
from datetime import datetime

from ..models import EventRecord
from ..query import QueryResult


@dataclass(frozen=True)
class Viewport:
    """First visible row and number of visible rows."""

    top: int = 0
    height: int = 1

    def clamp(self, total: int) -> "Viewport":
        height = max(self.height, 1)
        top = max(0, min(self.top, max(total - height, 0)))
        return Viewport(top, height)

    def scroll(self, delta: int, total: int) -> "Viewport":
        return replace(self, top=self.top + delta).clamp(total)

    def follow_tail(self, total: int) -> "Viewport":
        """Keep the newest rows in view."""
        return replace(self, top=max(total - max(self.height, 1), 0))

    def ensure_visible(self, index: int, total: int) -> "Viewport":
        """Smallest scroll that brings row ``index`` into view."""
        if index < self.top:
            return replace(self, top=index).clamp(total)
        if index >= self.top + self.height:
            return replace(self, top=index - self.height + 1).clamp(total)
        return self.clamp(total)


@dataclass(frozen=True)
class StickyHeader:
    """Header pinned above the viewport for the group holding the top row."""

    label: str
    key: tuple[str, ...]
    count: int
    has_more_above: bool
    has_more_below: bool


@dataclass(frozen=True)
class WindowRow:
    index: int
    record: EventRecord
    starts_group: bool = False


@dataclass(frozen=True)
class Projection:
    """What a renderer needs for one frame."""

    viewport: Viewport
    total: int
    header: StickyHeader | None = None
    rows: list[WindowRow] = field(default_factory=list)


def project(result: QueryResult, viewport: Viewport) -> Projection:
    """Compute the visible window and its sticky header.

    Touches only the rows in the window and the group spans that start
    inside it; the group of the top row is found by bisection over span
    starts, so the cost does not grow with the size of the result.
    """
    total = len(result)
    vp = viewport.clamp(total)
    bottom = min(vp.top + vp.height, total)
    if bottom <= vp.top:
        return Projection(viewport=vp, total=total)

    starts: set[int] = set()
    header = None
    span = result.group_at(vp.top)
    if span is not None:
        header = StickyHeader(
            label=span.label,
            key=span.key,
            count=span.count,
            has_more_above=vp.top > span.start,
            has_more_below=span.end > bottom,
        )
        # Group boundaries inside the window
        next_start = span.end
        starts.add(span.start)
        while next_start < bottom:
            starts.add(next_start)
            following = result.group_at(next_start)
            if following is None:
                break
            next_start = following.end

    rows = [
        WindowRow(index=i, record=result.rows[i], starts_group=i in starts)
        for i in range(vp.top, bottom)
    ]
    return Projection(viewport=vp, total=total, header=header, rows=rows)


def format_timestamp(ts: datetime, now: datetime | None = None, relative: bool = False) -> str:
    """``HH:MM:SS.mmm`` or, when ``relative``, an age such as ``4.2s ago``."""
    if not relative:
        return ts.astimezone().strftime("%H:%M:%S.%f")[:-3]

    now = now or datetime.now(ts.tzinfo)
    seconds = max((now - ts).total_seconds(), 0.0)
    if seconds < 60:
        return f"{seconds:.1f}s ago"
    if seconds < 3600:
        return f"{int(seconds // 60)}m{int(seconds % 60):02d}s ago"
    return f"{int(seconds // 3600)}h{int(seconds % 3600 // 60):02d}m ago"
