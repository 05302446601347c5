from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, model_validator

from cmdsentry.engine import Engine
from cmdsentry.executor.models import ExecutionContext
from cmdsentry.server.encoding import json_safe
from cmdsentry.server.state import get_engine
from cmdsentry.validation.types import ParameterSpec

logger = logging.getLogger(__name__)

router = APIRouter(tags=["commands"])


class ValidateRequest(BaseModel):
    """Validate against a registered command's signature or an inline one."""
    command_id: Optional[str] = None
    signature: Optional[List[Dict[str, Any]]] = None
    values: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _needs_signature_source(self) -> "ValidateRequest":
        if self.command_id is None and self.signature is None:
            raise ValueError("Provide either command_id or signature")
        return self


class ExecuteRequest(BaseModel):
    command_id: str = Field(..., min_length=1, max_length=512)
    parameters: Dict[str, Any] = Field(default_factory=dict)
    timeout_ms: Optional[int] = Field(default=None, ge=0)
    create_snapshot: bool = False
    confirmed: bool = False
    caller_context: Dict[str, Any] = Field(default_factory=dict)
    capture_result: Optional[bool] = None
    notes: Optional[str] = Field(default=None, max_length=10_000)


@router.get("/commands")
async def list_commands(engine: Engine = Depends(get_engine)):
    """Descriptors of every command the engine knows about."""
    return {"commands": [d.to_dict() for d in engine.commands()]}


@router.post("/validate")
async def validate_parameters(req: ValidateRequest, engine: Engine = Depends(get_engine)):
    if req.signature is not None:
        signature = [ParameterSpec.from_dict(p) for p in req.signature]
    else:
        signature = list(engine.get_command(req.command_id).signature or ())
    outcome = engine.validate(signature, req.values)
    return json_safe(outcome.to_dict())


@router.post("/execute")
async def execute_command(req: ExecuteRequest, engine: Engine = Depends(get_engine)):
    """
    Run one guarded attempt. Failures come back as a result with
    success=false, not as an HTTP error; only an unknown command id is a 404.
    """
    context = ExecutionContext(
        command=engine.get_command(req.command_id),
        parameters=req.parameters,
        timeout_ms=req.timeout_ms,
        create_snapshot=req.create_snapshot,
        confirmed=req.confirmed,
        caller_context=req.caller_context,
    )
    result = await engine.execute(context, capture_result=req.capture_result, notes=req.notes)
    return json_safe(result.to_dict())
