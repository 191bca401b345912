"""
FastAPI server — presentation binding over the analysis scheduler.

Starts/stops the monitoring session and exposes read-only views of the
per-cycle result and the cumulative session snapshot. Nothing here can gate a
vote: /votes/attach only decorates the payload with advisory risk metadata.

Run: uvicorn backend_voteguard.api_server.server:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Callable

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field

from backend_voteguard.core.exceptions import DeviceUnavailable, NotReady
from backend_voteguard.scheduler.engine import AnalysisScheduler
from backend_voteguard.votes.metadata import attach_risk_metadata
from backend_voteguard.voteguard_logging import get_logger

logger = get_logger(__name__)


# -----------------------------------------------------------------------------
# Response models
# -----------------------------------------------------------------------------

class SessionControlResponse(BaseModel):
    """POST /session/start and /session/stop response."""

    model_config = ConfigDict(populate_by_name=True)

    active: bool = Field(..., description="True while the camera session is running")
    session_id: str | None = Field(None, alias="sessionId", description="Current session id")


class SnapshotResponse(BaseModel):
    """GET /session/snapshot response: cumulative, advisory session risk."""

    model_config = ConfigDict(populate_by_name=True)

    risk_score: int = Field(..., ge=0, le=100, alias="riskScore", description="Max risk score this session")
    anomaly_flags: bool = Field(..., alias="anomalyFlags", description="True if any flag was ever raised")
    flag_details: list[str] = Field(default_factory=list, alias="flagDetails", description="Distinct flags seen")
    analysis_count: int = Field(..., ge=0, alias="analysisCount", description="Completed cycles")
    is_flagged: bool = Field(..., alias="isFlagged", description="Advisory review flag (max score > 50)")


class VoteAttachRequest(BaseModel):
    """POST /votes/attach body: the vote payload as the submission collaborator built it."""

    vote: dict[str, Any] = Field(..., description="Opaque vote payload")


# -----------------------------------------------------------------------------
# App factory
# -----------------------------------------------------------------------------

def _default_scheduler() -> AnalysisScheduler:
    from backend_voteguard.agent_worker.runtime import build_scheduler
    from backend_voteguard.config import get_settings

    return build_scheduler(get_settings())


def get_scheduler(request: Request) -> AnalysisScheduler:
    return request.app.state.scheduler


def create_app(scheduler_factory: Callable[[], AnalysisScheduler] | None = None) -> FastAPI:
    """
    Build the API. The scheduler is created at startup but the camera is only
    opened by POST /session/start.
    """
    factory = scheduler_factory or _default_scheduler

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.scheduler = factory()
        logger.info("api_started")
        try:
            yield
        finally:
            await app.state.scheduler.shutdown()
            logger.info("api_stopped")

    app = FastAPI(title="VoteGuard Session Monitor", lifespan=lifespan)

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"ok": True}

    @app.post("/session/start", response_model=SessionControlResponse)
    async def session_start(scheduler: AnalysisScheduler = Depends(get_scheduler)):
        try:
            await scheduler.start()
        except DeviceUnavailable as e:
            raise HTTPException(status_code=503, detail=f"Camera access required: {e}") from e
        return SessionControlResponse(active=scheduler.is_active, session_id=scheduler.session_id)

    @app.post("/session/stop", response_model=SessionControlResponse)
    async def session_stop(scheduler: AnalysisScheduler = Depends(get_scheduler)):
        await scheduler.shutdown()
        return SessionControlResponse(active=False, session_id=None)

    @app.get("/session/state")
    async def session_state(scheduler: AnalysisScheduler = Depends(get_scheduler)) -> dict[str, Any]:
        return scheduler.state()

    @app.get("/session/snapshot", response_model=SnapshotResponse)
    async def session_snapshot(scheduler: AnalysisScheduler = Depends(get_scheduler)):
        return SnapshotResponse(**scheduler.snapshot().to_dict())

    @app.get("/session/preview")
    async def session_preview(scheduler: AnalysisScheduler = Depends(get_scheduler)):
        if not scheduler.config.preview_enabled:
            raise HTTPException(status_code=404, detail="Preview disabled")
        try:
            jpeg = await asyncio.to_thread(scheduler.sampler.capture_still)
        except NotReady as e:
            raise HTTPException(status_code=409, detail=str(e)) from e
        return Response(content=jpeg, media_type="image/jpeg")

    @app.post("/votes/attach")
    async def votes_attach(
        body: VoteAttachRequest,
        scheduler: AnalysisScheduler = Depends(get_scheduler),
    ) -> dict[str, Any]:
        return attach_risk_metadata(body.vote, scheduler.snapshot())

    return app


app = create_app()
