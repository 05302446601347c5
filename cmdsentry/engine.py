"""
cmdsentry/engine.py

Purpose:
    One object that wires validator, detector, executor, capture store and
    safety interlock around a single WorkspaceHost, and exposes the
    operations callers use: validate, execute, snapshots, result queries.

Semantics:
    - The engine owns a catalog of CommandDescriptors. execute() accepts a
      full ExecutionContext; execute_command() resolves an id through the
      catalog first.
    - All components share one config. Nothing here adds behaviour the
      components do not already have; this is wiring.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from cmdsentry.analysis.capture import CriteriaLike, ResultCapture
from cmdsentry.analysis.models import TestResult
from cmdsentry.base.config import CmdSentryConfig, get_config
from cmdsentry.errors import CmdSentryError, ErrorCode
from cmdsentry.executor.executor import CommandExecutor
from cmdsentry.executor.interlock import SafetyInterlock
from cmdsentry.executor.models import CommandDescriptor, ExecutionContext, ExecutionResult
from cmdsentry.host.interface import WorkspaceHost
from cmdsentry.monitoring.detector import SideEffectDetector
from cmdsentry.monitoring.snapshot import WorkspaceSnapshot
from cmdsentry.validation.types import ParameterSpec, ValidationOutcome
from cmdsentry.validation.validator import ParameterValidator

logger = logging.getLogger(__name__)


class Engine:
    def __init__(self, host: WorkspaceHost, config: Optional[CmdSentryConfig] = None):
        self.host = host
        self.config = config or get_config()

        self.validator = ParameterValidator()
        self.detector = SideEffectDetector(host, self.config.detection)
        self.capture = ResultCapture(host, self.config.capture)
        self.interlock = SafetyInterlock()
        self.executor = CommandExecutor(
            host,
            detector=self.detector,
            validator=self.validator,
            capture=self.capture,
            interlock=self.interlock,
            config=self.config.execution,
        )
        self._commands: Dict[str, CommandDescriptor] = {}

    # ------------------------------------------------------------------
    # Command catalog
    # ------------------------------------------------------------------

    def register_command(self, descriptor: CommandDescriptor) -> None:
        self._commands[descriptor.id] = descriptor
        logger.debug(f"[Engine] Registered command {descriptor.id} ({descriptor.risk_tier.value})")

    def commands(self) -> List[CommandDescriptor]:
        return [self._commands[k] for k in sorted(self._commands)]

    def get_command(self, command_id: str) -> CommandDescriptor:
        descriptor = self._commands.get(command_id)
        if descriptor is None:
            raise CmdSentryError(
                ErrorCode.EXEC_COMMAND_NOT_FOUND,
                f"Command '{command_id}' is not registered",
                details={"command_id": command_id},
            )
        return descriptor

    # ------------------------------------------------------------------
    # Validation and execution
    # ------------------------------------------------------------------

    def validate(self, signature: List[ParameterSpec], values: Dict[str, Any]) -> ValidationOutcome:
        roots = self.host.list_workspace_roots()
        return self.validator.validate(
            list(signature),
            values,
            file_probe=self.host.file_exists,
            base_dir=roots[0] if roots else None,
        )

    async def execute(
        self,
        context: ExecutionContext,
        capture_result: Optional[bool] = None,
        notes: Optional[str] = None,
    ) -> ExecutionResult:
        return await self.executor.execute(context, capture_result=capture_result, notes=notes)

    async def execute_command(
        self,
        command_id: str,
        parameters: Optional[Dict[str, Any]] = None,
        timeout_ms: Optional[int] = None,
        create_snapshot: bool = False,
        confirmed: bool = False,
        caller_context: Optional[Dict[str, Any]] = None,
        capture_result: Optional[bool] = None,
        notes: Optional[str] = None,
    ) -> ExecutionResult:
        context = ExecutionContext(
            command=self.get_command(command_id),
            parameters=dict(parameters or {}),
            timeout_ms=timeout_ms,
            create_snapshot=create_snapshot,
            confirmed=confirmed,
            caller_context=dict(caller_context or {}),
        )
        return await self.execute(context, capture_result=capture_result, notes=notes)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    async def create_snapshot(self) -> WorkspaceSnapshot:
        return await self.executor.create_snapshot()

    async def restore_snapshot(self, snapshot_id: str) -> None:
        await self.executor.restore_snapshot(snapshot_id)

    def list_snapshots(self) -> List[Dict[str, Any]]:
        return self.executor.list_snapshots()

    def delete_snapshot(self, snapshot_id: str) -> bool:
        return self.executor.delete_snapshot(snapshot_id)

    def clear_all_snapshots(self) -> int:
        return self.executor.clear_all_snapshots()

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def get_result(self, result_id: str) -> Optional[TestResult]:
        return self.capture.get_result(result_id)

    def search_results(self, criteria: CriteriaLike = None) -> List[TestResult]:
        return self.capture.search_results(criteria)

    def get_statistics(self) -> Dict[str, Any]:
        return self.capture.get_statistics()

    def export_results(self, fmt: str, criteria: CriteriaLike = None) -> str:
        return self.capture.export_results(fmt, criteria)

    # ------------------------------------------------------------------
    # Kill switch
    # ------------------------------------------------------------------

    @property
    def kill_switch_active(self) -> bool:
        return self.interlock.kill_switch_active

    def engage_kill_switch(self, operator: str = "SYSTEM") -> None:
        self.interlock.engage_kill_switch(operator)

    def disengage_kill_switch(self, operator: str = "SYSTEM") -> None:
        self.interlock.disengage_kill_switch(operator)

    def dispose(self) -> None:
        self.detector.dispose()
