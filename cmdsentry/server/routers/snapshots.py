from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from cmdsentry.engine import Engine
from cmdsentry.errors import CmdSentryError, ErrorCode
from cmdsentry.server.state import get_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/snapshots", tags=["snapshots"])


@router.get("")
async def list_snapshots(engine: Engine = Depends(get_engine)):
    return {"snapshots": engine.list_snapshots()}


@router.post("")
async def create_snapshot(engine: Engine = Depends(get_engine)):
    snapshot = await engine.create_snapshot()
    return snapshot.summary()


@router.delete("")
async def clear_snapshots(engine: Engine = Depends(get_engine)):
    return {"cleared": engine.clear_all_snapshots()}


@router.post("/{snapshot_id}/restore")
async def restore_snapshot(snapshot_id: str, engine: Engine = Depends(get_engine)):
    await engine.restore_snapshot(snapshot_id)
    return {"restored": snapshot_id}


@router.delete("/{snapshot_id}")
async def delete_snapshot(snapshot_id: str, engine: Engine = Depends(get_engine)):
    if not engine.delete_snapshot(snapshot_id):
        raise CmdSentryError(
            ErrorCode.SNAPSHOT_NOT_FOUND,
            f"Snapshot {snapshot_id} not found",
            details={"snapshot_id": snapshot_id},
        )
    return {"deleted": snapshot_id}
