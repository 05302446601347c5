# ============================================================================
# cmdsentry/base/config.py
# Application Configuration Management
# ============================================================================
#
# PURPOSE:
# Defines every tunable of the engine: what the side-effect detector watches,
# how long an invocation may run, how many results the capture store keeps,
# and how logging is wired.
#
# KEY CONCEPTS:
# 1. Frozen dataclasses: each section is immutable once built
# 2. Environment variables: CMDSENTRY_* overrides (e.g. CMDSENTRY_LOG_LEVEL=DEBUG)
# 3. Process-wide instance: get_config() lazily builds one from the environment
#
# ============================================================================

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from cmdsentry.errors import CmdSentryError, ErrorCode

logger = logging.getLogger(__name__)


DEFAULT_EXCLUDE_PATTERNS: Tuple[str, ...] = (
    "**/node_modules/**",
    "**/.git/**",
    "**/dist/**",
    "**/build/**",
    "**/__pycache__/**",
    "**/.venv/**",
    "**/*.log",
    "**/tmp/**",
)

DEFAULT_WATCHED_SETTINGS: Tuple[str, ...] = (
    "editor.fontSize",
    "editor.tabSize",
    "files.autoSave",
    "workbench.colorTheme",
    "terminal.integrated.shell",
)


# ============================================================================
# Side-Effect Detection
# ============================================================================
# Controls what the detector snapshots and which live events it records.

@dataclass(frozen=True)
class DetectionConfig:
    monitor_file_system: bool = True
    monitor_settings: bool = True
    monitor_editor_state: bool = True
    monitor_views: bool = True

    # Glob patterns matched against workspace-relative, forward-slash paths ("/src/a.py")
    exclude_patterns: Tuple[str, ...] = DEFAULT_EXCLUDE_PATTERNS

    # Live events past this count are dropped (diff effects are still attempted)
    max_side_effects: int = 1000
    capture_details: bool = True

    # Directory levels below each workspace root that get walked
    max_depth: int = 10

    # Text files above this size get metadata only, no hash/line count
    text_size_limit: int = 1024 * 1024

    watched_settings: Tuple[str, ...] = DEFAULT_WATCHED_SETTINGS


# ============================================================================
# Execution
# ============================================================================

@dataclass(frozen=True)
class ExecutionConfig:
    default_timeout_ms: int = 30_000

    # After a timeout, monitoring stays live this long so a still-running
    # invocation's side effects are still observed.
    zombie_grace_ms: int = 100

    capture_results: bool = True


@dataclass(frozen=True)
class CaptureConfig:
    max_results: int = 1000
    environment_keys: Tuple[str, ...] = ("TERM", "SHELL", "VIRTUAL_ENV", "CI")


@dataclass(frozen=True)
class LogConfig:
    level: str = "INFO"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    file_enabled: bool = False
    file_name: str = "cmdsentry.log"
    max_file_size_mb: int = 10
    backup_count: int = 5


@dataclass
class CmdSentryConfig:
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    log: LogConfig = field(default_factory=LogConfig)
    data_dir: Path = field(default_factory=lambda: Path.home() / ".cmdsentry")
    debug: bool = False
    api_host: str = "127.0.0.1"
    api_port: int = 8787

    @classmethod
    def from_env(cls) -> "CmdSentryConfig":
        exclude_str = os.getenv("CMDSENTRY_EXCLUDE", "")
        exclude = tuple(p.strip() for p in exclude_str.split(",") if p.strip()) or DEFAULT_EXCLUDE_PATTERNS

        settings_str = os.getenv("CMDSENTRY_WATCHED_SETTINGS", "")
        watched = tuple(s.strip() for s in settings_str.split(",") if s.strip()) or DEFAULT_WATCHED_SETTINGS

        detection = DetectionConfig(
            monitor_file_system=_env_bool("CMDSENTRY_MONITOR_FILES", True),
            monitor_settings=_env_bool("CMDSENTRY_MONITOR_SETTINGS", True),
            monitor_editor_state=_env_bool("CMDSENTRY_MONITOR_EDITORS", True),
            monitor_views=_env_bool("CMDSENTRY_MONITOR_VIEWS", True),
            exclude_patterns=exclude,
            max_side_effects=_env_int("CMDSENTRY_MAX_SIDE_EFFECTS", 1000),
            max_depth=_env_int("CMDSENTRY_MAX_DEPTH", 10),
            text_size_limit=_env_int("CMDSENTRY_TEXT_SIZE_LIMIT", 1024 * 1024),
            watched_settings=watched,
        )

        execution = ExecutionConfig(
            default_timeout_ms=_env_int("CMDSENTRY_TIMEOUT_MS", 30_000),
            zombie_grace_ms=_env_int("CMDSENTRY_ZOMBIE_GRACE_MS", 100),
            capture_results=_env_bool("CMDSENTRY_CAPTURE_RESULTS", True),
        )

        capture = CaptureConfig(
            max_results=_env_int("CMDSENTRY_MAX_RESULTS", 1000),
        )

        log = LogConfig(
            level=os.getenv("CMDSENTRY_LOG_LEVEL", "INFO"),
            file_enabled=_env_bool("CMDSENTRY_LOG_FILE", False),
        )

        return cls(
            detection=detection,
            execution=execution,
            capture=capture,
            log=log,
            data_dir=Path(os.getenv("CMDSENTRY_DATA_DIR", str(Path.home() / ".cmdsentry"))),
            debug=_env_bool("CMDSENTRY_DEBUG", False),
            api_host=os.getenv("CMDSENTRY_API_HOST", "127.0.0.1"),
            api_port=_env_int("CMDSENTRY_API_PORT", 8787),
        )


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise CmdSentryError(
            ErrorCode.CONFIG_INVALID,
            f"{name} must be an integer, got {raw!r}",
            details={"variable": name, "value": raw},
        )
    if value < 0:
        raise CmdSentryError(
            ErrorCode.CONFIG_INVALID,
            f"{name} must not be negative, got {value}",
            details={"variable": name, "value": raw},
        )
    return value


_config: Optional[CmdSentryConfig] = None


def get_config() -> CmdSentryConfig:
    global _config
    if _config is None:
        _config = CmdSentryConfig.from_env()
    return _config


def set_config(config: Optional[CmdSentryConfig]) -> None:
    global _config
    _config = config


def setup_logging(config: Optional[CmdSentryConfig] = None) -> None:
    cfg = config or get_config()

    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if cfg.log.file_enabled:
        from logging.handlers import RotatingFileHandler
        cfg.data_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            cfg.data_dir / cfg.log.file_name,
            maxBytes=cfg.log.max_file_size_mb * 1024 * 1024,
            backupCount=cfg.log.backup_count,
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, cfg.log.level.upper(), logging.INFO),
        format=cfg.log.format,
        handlers=handlers,
        force=True,
    )
