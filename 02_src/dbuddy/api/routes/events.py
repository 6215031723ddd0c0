"""Event list, configuration and thread routes."""

from datetime import datetime

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException, Query

from ...app import Application
from ...errors import ConfigError, FilterParseError, RecordNotFound
from ...models import EventRecord, format_value, summarize
from ...query import autofilter_clause


class EventRow(BaseModel):
    """Response model for one list row."""

    id: int
    index: int | None = None
    starts_group: bool = False
    timestamp: datetime
    source: str
    kind: str
    sender: str
    sender_display: str
    destination: str | None = None
    destination_display: str = ""
    path: str
    interface: str
    member: str
    serial: int
    reply_serial: int | None = None
    summary: str


class StickyHeaderResponse(BaseModel):
    """Response model for the pinned group header."""

    label: str
    key: list[str]
    count: int
    has_more_above: bool
    has_more_below: bool


class EventsResponse(BaseModel):
    """Response model for a window of rows."""

    top: int
    height: int
    total: int
    grouped: bool
    thread_seed: int | None = None
    header: StickyHeaderResponse | None = None
    rows: list[EventRow]


class RecordDetailResponse(EventRow):
    """Response model for a record with its rendered body."""

    body: list[str]


class ConfigureRequest(BaseModel):
    """Request model for configure."""

    max_messages: int | None = None
    grouping_keys: list[str] | None = None
    filter_text: str | None = None
    view_mode: str | None = None


class ConfigureResponse(BaseModel):
    """Response model for configure."""

    max_messages: int
    grouping_keys: list[str]
    filter_text: str
    view_mode: str


class ThreadResponse(BaseModel):
    """Response model for thread expansion."""

    seed: int
    complete: bool
    unresolved_calls: list[str]
    rows: list[EventRow]


class AutofilterResponse(BaseModel):
    """Response model for an autofilter clause."""

    clause: str


def _row(app: Application, record: EventRecord, **extra) -> dict:
    return {
        "id": record.id,
        "timestamp": record.timestamp,
        "source": record.source.value,
        "kind": record.kind.value,
        "sender": record.sender,
        "sender_display": app.sender_display(record),
        "destination": record.destination,
        "destination_display": app.destination_display(record),
        "path": record.path,
        "interface": record.interface,
        "member": record.member,
        "serial": record.serial,
        "reply_serial": record.reply_serial,
        "summary": summarize(record.body, max_depth=app.settings.value_max_depth),
        **extra,
    }


def _config(app: Application) -> dict:
    engine = app.engine
    return {
        "max_messages": app.settings.max_messages,
        "grouping_keys": [k.value for k in engine.grouping],
        "filter_text": engine.filter_text,
        "view_mode": engine.view_mode.value,
    }


def create_events_router(app: Application) -> APIRouter:
    """Create events router."""
    router = APIRouter(prefix="/api", tags=["events"])

    @router.get("/events", response_model=EventsResponse)
    async def get_events(
        top: int = Query(0, ge=0),
        height: int = Query(50, ge=1, le=1000),
        follow: bool = Query(False, description="Pin the window to the newest rows"),
    ) -> dict:
        """Get the visible window of the current query result."""
        try:
            if follow:
                top = max(len(app.query()) - height, 0)
            projection = app.project(top, height)
            header = projection.header
            return {
                "top": projection.viewport.top,
                "height": projection.viewport.height,
                "total": projection.total,
                "grouped": app.query().is_grouped,
                "thread_seed": app.engine.thread_seed,
                "header": {
                    "label": header.label,
                    "key": list(header.key),
                    "count": header.count,
                    "has_more_above": header.has_more_above,
                    "has_more_below": header.has_more_below,
                }
                if header
                else None,
                "rows": [
                    _row(app, row.record, index=row.index, starts_group=row.starts_group)
                    for row in projection.rows
                ],
            }
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.get("/records/{record_id}", response_model=RecordDetailResponse)
    async def get_record(record_id: int) -> dict:
        """Get one retained record with its decoded body."""
        record = app.record(record_id)
        if record is None:
            raise HTTPException(status_code=404, detail=str(RecordNotFound(record_id)))
        body = format_value(record.body, max_depth=app.settings.value_max_depth)
        return _row(app, record, body=body)

    @router.get(
        "/records/{record_id}/autofilter/{field_name}", response_model=AutofilterResponse
    )
    async def get_autofilter(record_id: int, field_name: str) -> dict:
        """Get the filter clause selecting records like this one."""
        record = app.record(record_id)
        if record is None:
            raise HTTPException(status_code=404, detail=str(RecordNotFound(record_id)))
        try:
            return {"clause": autofilter_clause(record, field_name, app.sender_display)}
        except FilterParseError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @router.post("/configure", response_model=ConfigureResponse)
    async def configure(request: ConfigureRequest) -> dict:
        """Apply filter, grouping, view and retention settings."""
        try:
            app.configure(
                max_messages=request.max_messages,
                grouping_keys=request.grouping_keys,
                filter_text=request.filter_text,
                view_mode=request.view_mode,
            )
        except FilterParseError as e:
            raise HTTPException(
                status_code=400,
                detail={
                    "error": str(e),
                    "clause": e.clause,
                    "filter_text": app.engine.filter_text,
                },
            )
        except ConfigError as e:
            raise HTTPException(
                status_code=400,
                detail={
                    "error": str(e),
                    "clause": None,
                    "filter_text": app.engine.filter_text,
                },
            )
        return _config(app)

    @router.get("/thread/{record_id}", response_model=ThreadResponse)
    async def get_thread(record_id: int) -> dict:
        """Expand the conversation around a record and switch to thread view."""
        try:
            thread = app.expand_thread(record_id)
        except RecordNotFound as e:
            raise HTTPException(status_code=404, detail=str(e))
        return {
            "seed": thread.seed.id,
            "complete": thread.is_complete,
            "unresolved_calls": [
                f"{key.source.value}:{key.connection}#{key.serial}"
                for key in thread.unresolved_calls
            ],
            "rows": [_row(app, record) for record in thread.records],
        }

    @router.delete("/thread", response_model=ConfigureResponse)
    async def clear_thread() -> dict:
        """Leave thread view."""
        app.clear_thread()
        return _config(app)

    return router
