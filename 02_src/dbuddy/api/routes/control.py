"""Control API routes."""

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException

from ...app import Application
from ...models import BusSource
from sim import SimTransport


class StatusResponse(BaseModel):
    """Response model for status."""

    status: str


class SimStartRequest(BaseModel):
    """Request model for starting synthetic traffic."""

    sources: list[BusSource] = [BusSource.SESSION, BusSource.SYSTEM]
    rate: float = 50.0
    seed: int | None = None


def create_control_router(app: Application) -> APIRouter:
    """Create control router."""
    router = APIRouter(prefix="/api/control", tags=["control"])
    # Sources currently fed by the simulator
    sim_sources: set[BusSource] = set()

    @router.post("/reset", response_model=StatusResponse)
    async def reset_system() -> dict:
        """Drop all retained history."""
        try:
            await app.reset()
            return {"status": "ok"}
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/sim/start", response_model=StatusResponse)
    async def start_sim(request: SimStartRequest | None = None) -> dict:
        """Start synthetic traffic on the requested sources."""
        request = request or SimStartRequest()
        try:
            for source in request.sources:
                if source in sim_sources:
                    continue
                await app.attach(SimTransport(source, rate=request.rate, seed=request.seed))
                sim_sources.add(source)
            return {"status": "ok"}
        except ValueError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/sim/stop", response_model=StatusResponse)
    async def stop_sim() -> dict:
        """Stop synthetic traffic."""
        if not sim_sources:
            raise HTTPException(status_code=404, detail="SIM not running")
        try:
            for source in list(sim_sources):
                await app.detach(source)
                sim_sources.discard(source)
            return {"status": "ok"}
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    return router
