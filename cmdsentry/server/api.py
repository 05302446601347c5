# ============================================================================
# cmdsentry/server/api.py
# FastAPI application factory
# ============================================================================
#
# PURPOSE:
# Exposes an Engine over HTTP so a UI or test runner can validate parameters,
# run guarded attempts, manage snapshots and query captured results.
#
# KEY CONCEPTS:
# - create_app(engine) attaches the engine to ApplicationState; routers pull
#   it back out through the get_engine dependency.
# - CmdSentryError anywhere in a handler becomes a JSON body with the mapped
#   HTTP status.
# - Execution failures are NOT HTTP errors: /execute answers 200 with
#   success=false and a structured error.
#
# ============================================================================

from __future__ import annotations

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cmdsentry.base.config import CmdSentryConfig, get_config
from cmdsentry.engine import Engine
from cmdsentry.errors import CmdSentryError
from cmdsentry.server.routers import commands, results, snapshots, system
from cmdsentry.server.state import get_state

logger = logging.getLogger(__name__)


def create_app(engine: Engine) -> FastAPI:
    get_state().attach(engine)

    app = FastAPI(
        title="cmdsentry API",
        description="Guarded command execution with side-effect analysis",
        version="1.0.0",
    )

    @app.exception_handler(CmdSentryError)
    async def cmdsentry_error_handler(request: Request, exc: CmdSentryError):
        logger.error(f"[API] {exc.code.value}: {exc.message}", extra={"details": exc.details})
        return JSONResponse(
            status_code=exc.http_status,
            content=exc.to_dict(),
        )

    app.include_router(system.router)
    app.include_router(commands.router)
    app.include_router(snapshots.router)
    app.include_router(results.router)
    return app


def serve(engine: Engine, port: Optional[int] = None, host: Optional[str] = None,
          config: Optional[CmdSentryConfig] = None):
    config = config or get_config()
    app = create_app(engine)
    logger.info(f"[API] Serving on {host or config.api_host}:{port or config.api_port}")
    uvicorn.run(app, host=host or config.api_host, port=port or config.api_port, log_level="info")
