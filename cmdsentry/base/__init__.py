from .config import (
    CaptureConfig,
    CmdSentryConfig,
    DetectionConfig,
    ExecutionConfig,
    LogConfig,
    get_config,
    set_config,
    setup_logging,
)

__all__ = [
    "CaptureConfig",
    "CmdSentryConfig",
    "DetectionConfig",
    "ExecutionConfig",
    "LogConfig",
    "get_config",
    "set_config",
    "setup_logging",
]
