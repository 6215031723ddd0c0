"""Observability API routes."""

from typing import Any

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException

from ...app import Application


class SourceStatsResponse(BaseModel):
    """Response model for one bus source."""

    status: str
    last_error: str | None = None
    received: int
    dropped: int
    rejected: int
    reconnects: int
    queued: int
    retained: int
    trimmed: int


class StatusResponse(BaseModel):
    """Response model for status."""

    sources: dict[str, SourceStatsResponse]
    max_messages: int
    view_mode: str
    grouping: list[str]
    filter: str
    thread_seed: int | None = None
    process_cache: dict[str, Any]


def create_observability_router(app: Application) -> APIRouter:
    """Create observability router."""
    router = APIRouter(prefix="/api", tags=["observability"])

    @router.get("/status", response_model=StatusResponse)
    async def get_status() -> dict:
        """Get source statuses and pipeline counters."""
        try:
            return app.stats()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    return router
