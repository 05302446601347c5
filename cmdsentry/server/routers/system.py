from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from cmdsentry.engine import Engine
from cmdsentry.server.state import get_engine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["system"])


class KillSwitchRequest(BaseModel):
    engaged: bool
    operator: str = Field(default="API", min_length=1, max_length=128)


@router.get("/health")
async def health_check(engine: Engine = Depends(get_engine)):
    """Simple health check endpoint."""
    return {
        "status": "ok",
        "host_version": engine.host.host_version(),
        "executing": engine.executor.is_executing(),
        "kill_switch": engine.kill_switch_active,
    }


@router.post("/kill-switch")
async def set_kill_switch(req: KillSwitchRequest, engine: Engine = Depends(get_engine)):
    """
    Engage or release the global kill switch. While engaged every execution
    attempt is rejected before it touches the workspace.
    """
    if req.engaged:
        engine.engage_kill_switch(req.operator)
    else:
        engine.disengage_kill_switch(req.operator)
    return {"kill_switch": engine.kill_switch_active}
