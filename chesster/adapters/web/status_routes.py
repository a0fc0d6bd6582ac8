"""Status API routes."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, FastAPI, HTTPException
from pydantic import BaseModel

from chesster import __version__
from chesster.domain.dispatch import DispatchController
from chesster.infrastructure.refresh import DirectoryRefresher


class LeagueStatus(BaseModel):
    name: str
    moderators: int
    channels: int


class StatusResponse(BaseModel):
    version: str
    botId: Optional[str]
    botName: Optional[str]
    listeners: int
    users: int
    channels: int
    leagues: List[LeagueStatus]
    refreshCount: int
    lastRefresh: Optional[datetime]
    lastRefreshOk: Optional[bool]


class HealthResponse(BaseModel):
    ok: bool
    detail: str = ""


def create_status_router(
    controller: DispatchController,
    refresher: Optional[DirectoryRefresher] = None,
) -> APIRouter:
    router = APIRouter(tags=["Status"])

    @router.get("/status", response_model=StatusResponse)
    async def status():
        directory = controller.directory
        return StatusResponse(
            version=__version__,
            botId=controller.bot_id,
            botName=controller.bot_name,
            listeners=len(controller.registry),
            users=len(directory.users),
            channels=len(directory.channels),
            leagues=[
                LeagueStatus(name=lg.name, moderators=len(lg.moderators), channels=len(lg.channel_bindings))
                for lg in controller.resolver.leagues.all()
            ],
            refreshCount=refresher.refresh_count if refresher else 0,
            lastRefresh=refresher.last_refresh_at if refresher else None,
            lastRefreshOk=refresher.last_refresh_ok if refresher else None,
        )

    @router.get("/healthz", response_model=HealthResponse)
    async def healthz():
        # Degraded (previous index kept) still counts as healthy; only an
        # empty user index with a failed refresh is reported.
        if refresher is not None and refresher.last_refresh_ok is False and len(controller.directory.users) == 0:
            raise HTTPException(status_code=503, detail="no user index")
        return HealthResponse(ok=True, detail="degraded" if refresher and refresher.last_refresh_ok is False else "")

    return router


def create_app(
    controller: DispatchController,
    refresher: Optional[DirectoryRefresher] = None,
) -> FastAPI:
    app = FastAPI(title="Chesster")
    app.include_router(create_status_router(controller, refresher))
    return app
