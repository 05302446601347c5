from __future__ import annotations

import logging
from typing import Optional

from cmdsentry.engine import Engine
from cmdsentry.errors import CmdSentryError, ErrorCode

logger = logging.getLogger(__name__)


class ApplicationState:
    _instance = None

    @classmethod
    def instance(cls) -> ApplicationState:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def __init__(self):
        self.engine: Optional[Engine] = None

    def attach(self, engine: Engine) -> None:
        if self.engine is not None and self.engine is not engine:
            logger.info("[ApplicationState] Replacing attached engine")
            self.engine.dispose()
        self.engine = engine


def get_state() -> ApplicationState:
    return ApplicationState.instance()


def get_engine() -> Engine:
    """FastAPI dependency: the engine the app was created with."""
    engine = get_state().engine
    if engine is None:
        raise CmdSentryError(ErrorCode.SYSTEM_INTERNAL_ERROR, "No engine attached to the API server")
    return engine
