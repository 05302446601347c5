from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse

from cmdsentry.analysis.models import OverallRisk, SearchCriteria
from cmdsentry.engine import Engine
from cmdsentry.server.encoding import json_safe
from cmdsentry.server.state import get_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/results", tags=["results"])

_MEDIA_TYPES = {
    "json": "application/json",
    "csv": "text/csv",
    "markdown": "text/markdown",
}


@router.post("/search")
async def search_results(criteria: SearchCriteria, engine: Engine = Depends(get_engine)):
    results = engine.search_results(criteria)
    return {"count": len(results), "results": [json_safe(r.to_dict()) for r in results]}


@router.get("/stats")
async def result_statistics(engine: Engine = Depends(get_engine)):
    return engine.get_statistics()


@router.get("/export")
async def export_results(
    format: str = Query("json"),
    command_id: Optional[str] = None,
    success: Optional[bool] = None,
    risk_level: Optional[OverallRisk] = None,
    tags: Optional[List[str]] = Query(None),
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    has_notes: Optional[bool] = None,
    engine: Engine = Depends(get_engine),
):
    """Export results, optionally narrowed by the same filters as /results/search."""
    criteria = SearchCriteria(
        command_id=command_id,
        success=success,
        risk_level=risk_level,
        tags=tags,
        start=start,
        end=end,
        has_notes=has_notes,
    )
    body = engine.export_results(format, criteria if criteria.model_dump(exclude_none=True) else None)
    return PlainTextResponse(body, media_type=_MEDIA_TYPES.get(format.lower(), "text/plain"))


# Declared last so /stats and /export are not captured as ids
@router.get("/{result_id}")
async def get_result(result_id: str, engine: Engine = Depends(get_engine)):
    return json_safe(engine.capture.require_result(result_id).to_dict())
