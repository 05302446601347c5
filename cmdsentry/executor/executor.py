"""
cmdsentry/executor/executor.py

Purpose:
    Orchestrates one execution attempt against the host command registry:

        safety checks -> (snapshot) -> monitoring -> timeout-raced invocation
        -> monitoring stop -> ExecutionResult -> (capture)

Semantics:
    - At most one attempt is in flight per executor. A second attempt is
      rejected immediately with SAFETY_CONCURRENT_EXECUTION; it never queues
      and never touches the detector or the snapshot store.
    - execute() never raises. Every path yields a complete ExecutionResult.
    - A timeout fails the attempt but does not cancel the host call (there is
      no cancellation primitive). Monitoring stays live for a short grace
      period so a "zombie" invocation's side effects are still reported.
    - Result capture failures are logged and swallowed.
    - restore_snapshot() is best-effort: it replays captured document content
      and the active editor selection. Created/deleted files and changed
      settings are not undone.
"""

from __future__ import annotations

import asyncio
import logging
import time
import traceback
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from cmdsentry.base.config import ExecutionConfig
from cmdsentry.errors import CmdSentryError, ErrorCode, handle_error, is_recoverable_message
from cmdsentry.host.interface import WorkspaceHost
from cmdsentry.monitoring.detector import SideEffectDetector
from cmdsentry.monitoring.effects import SideEffect, utc_now
from cmdsentry.monitoring.snapshot import WorkspaceSnapshot
from cmdsentry.utils.async_helpers import create_safe_task, wait_first
from cmdsentry.validation.validator import ParameterValidator
from .interlock import SafetyInterlock
from .models import ExecutionContext, ExecutionError, ExecutionResult

if TYPE_CHECKING:
    from cmdsentry.analysis.capture import ResultCapture

logger = logging.getLogger(__name__)


class CommandExecutor:
    def __init__(
        self,
        host: WorkspaceHost,
        detector: Optional[SideEffectDetector] = None,
        validator: Optional[ParameterValidator] = None,
        capture: Optional["ResultCapture"] = None,
        interlock: Optional[SafetyInterlock] = None,
        config: Optional[ExecutionConfig] = None,
    ):
        self.host = host
        self.detector = detector or SideEffectDetector(host)
        self.validator = validator or ParameterValidator()
        self.capture = capture
        self.interlock = interlock or SafetyInterlock()
        self.config = config or ExecutionConfig()

        self._in_flight = False
        self._snapshots: Dict[str, WorkspaceSnapshot] = {}

    def is_executing(self) -> bool:
        return self._in_flight

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(
        self,
        context: ExecutionContext,
        capture_result: Optional[bool] = None,
        notes: Optional[str] = None,
    ) -> ExecutionResult:
        started_at = utc_now()
        t0 = time.perf_counter()

        # Checked and set before the first await so two racing callers
        # can never both pass.
        if self._in_flight:
            logger.warning(f"[CommandExecutor] Rejected concurrent attempt for {context.command.id}")
            return self._result(
                context, started_at, t0,
                error=self._error_from_code(
                    ErrorCode.SAFETY_CONCURRENT_EXECUTION,
                    "Another command execution is already in progress",
                ),
            )

        self._in_flight = True
        try:
            result = await self._run(context, started_at, t0)
        except Exception as e:
            logger.exception(f"[CommandExecutor] Unexpected failure executing {context.command.id}")
            side_effects = await self._stop_monitoring()
            result = self._result(
                context, started_at, t0,
                error=self._error_from_exception(e), side_effects=side_effects,
            )
        finally:
            self._in_flight = False

        should_capture = self.config.capture_results if capture_result is None else capture_result
        if should_capture and self.capture is not None:
            try:
                await self.capture.capture_result(
                    context.command,
                    context.parameters,
                    result,
                    self._configuration(context),
                    notes=notes,
                )
            except Exception as e:
                logger.error(f"[CommandExecutor] Failed to capture test result for {context.command.id}: {e}")

        return result

    async def _run(self, context: ExecutionContext, started_at: datetime, t0: float) -> ExecutionResult:
        command = context.command
        logger.info(f"[CommandExecutor] Starting execution of {command.id}")

        # 1. Safety checks (nothing has been touched yet)
        blocked = self._safety_check(context)
        if blocked is not None:
            return self._result(context, started_at, t0, error=blocked)

        # 2. Optional snapshot
        snapshot_id: Optional[str] = None
        if context.create_snapshot:
            try:
                snapshot = await self.create_snapshot()
            except CmdSentryError as e:
                return self._result(context, started_at, t0, error=self._error_from_exception(e))
            snapshot_id = snapshot.id

        # 3. Monitoring start
        try:
            await self.detector.start_monitoring()
        except Exception as e:
            if snapshot_id:
                self._snapshots.pop(snapshot_id, None)
            logger.error(f"[CommandExecutor] Could not start monitoring for {command.id}: {e}")
            return self._result(context, started_at, t0, error=self._error_from_exception(e))

        # 4. Invocation raced against the timer
        value: Any = None
        error: Optional[ExecutionError] = None
        try:
            value, error = await self._invoke_with_timeout(context)
        finally:
            # 5. Monitoring stop (also after a timeout)
            side_effects = await self._stop_monitoring()

        # 6. Result assembly
        result = self._result(
            context, started_at, t0,
            value=value, error=error,
            side_effects=side_effects, snapshot_id=snapshot_id,
        )
        if result.success:
            logger.info(f"[CommandExecutor] {command.id} succeeded in {result.duration_ms:.1f}ms")
        else:
            logger.warning(
                f"[CommandExecutor] {command.id} failed after {result.duration_ms:.1f}ms: {error.message}"
            )
        return result

    def _safety_check(self, context: ExecutionContext) -> Optional[ExecutionError]:
        verdict = self.interlock.check(context, self.host)
        if verdict is not None:
            return self._error_from_code(verdict.code, verdict.reason)

        signature = context.command.signature
        if signature is not None:
            outcome = self.validator.validate(
                list(signature),
                context.parameters,
                file_probe=self.host.file_exists,
                base_dir=self._base_dir(),
            )
            if not outcome.valid:
                messages = ", ".join(e.message for e in outcome.errors)
                return self._error_from_code(
                    ErrorCode.VALIDATION_FAILED,
                    f"Parameter validation failed: {messages}",
                )
        return None

    async def _invoke_with_timeout(self, context: ExecutionContext):
        command = context.command
        timeout_ms = context.timeout_ms if context.timeout_ms is not None else self.config.default_timeout_ms
        args = self.build_arguments(context)

        task = create_safe_task(
            self.host.invoke_command(command.id, args),
            name=f"invoke:{command.id}",
            log_errors=False,
        )

        if await wait_first(task, timeout_ms / 1000.0):
            try:
                return task.result(), None
            except asyncio.CancelledError:
                return None, ExecutionError(
                    message="Command execution was cancelled",
                    type="CancelledError",
                    code=ErrorCode.EXEC_FAILED.value,
                    recoverable=True,
                )
            except Exception as e:
                return None, self._error_from_exception(e)

        logger.warning(
            f"[CommandExecutor] {command.id} timed out after {timeout_ms} ms; "
            f"invocation left running, monitoring kept open for {self.config.zombie_grace_ms} ms"
        )
        task.add_done_callback(lambda t: self._log_zombie_outcome(command.id, t))
        if self.config.zombie_grace_ms > 0:
            await asyncio.sleep(self.config.zombie_grace_ms / 1000.0)

        return None, ExecutionError(
            message=f"Command execution timed out after {timeout_ms} ms",
            type="TimeoutError",
            code=ErrorCode.EXEC_TIMEOUT.value,
            recoverable=True,
        )

    def _log_zombie_outcome(self, command_id: str, task: asyncio.Task) -> None:
        if task.cancelled():
            logger.warning(f"[CommandExecutor] Timed-out invocation of {command_id} was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"[CommandExecutor] Timed-out invocation of {command_id} eventually failed: {exc}")
        else:
            logger.warning(f"[CommandExecutor] Timed-out invocation of {command_id} eventually completed")

    async def _stop_monitoring(self) -> List[SideEffect]:
        if not self.detector.is_active():
            return []
        try:
            return await self.detector.stop_monitoring()
        except Exception as e:
            logger.warning(f"[CommandExecutor] Failed to stop side effect monitoring: {e}")
            self.detector.dispose()
            return []

    def build_arguments(self, context: ExecutionContext) -> List[Any]:
        """
        Positional arguments for the host call, in signature order.
        Values are the validator's coerced values; trailing unset
        optionals are dropped.
        """
        signature = context.command.signature
        if signature is None:
            return list(context.parameters.values())

        outcome = self.validator.validate(list(signature), context.parameters, base_dir=self._base_dir())
        args = [outcome.coerced_values.get(spec.name) for spec in signature]
        while args and args[-1] is None:
            args.pop()
        return args

    def _base_dir(self) -> Optional[str]:
        roots = self.host.list_workspace_roots()
        return roots[0] if roots else None

    # ------------------------------------------------------------------
    # Result and error construction
    # ------------------------------------------------------------------

    def _result(
        self,
        context: ExecutionContext,
        started_at: datetime,
        t0: float,
        value: Any = None,
        error: Optional[ExecutionError] = None,
        side_effects: Optional[List[SideEffect]] = None,
        snapshot_id: Optional[str] = None,
    ) -> ExecutionResult:
        return ExecutionResult(
            command_id=context.command.id,
            attempt_id=context.attempt_id,
            success=error is None,
            started_at=started_at,
            ended_at=utc_now(),
            duration_ms=(time.perf_counter() - t0) * 1000.0,
            result=value if error is None else None,
            error=error,
            side_effects=tuple(side_effects or ()),
            snapshot_id=snapshot_id,
        )

    def _error_from_code(self, code: ErrorCode, message: str) -> ExecutionError:
        err = CmdSentryError(code, message)
        return ExecutionError(
            message=message,
            type=type(err).__name__,
            code=code.value,
            recoverable=err.recoverable,
        )

    def _error_from_exception(self, exc: Exception) -> ExecutionError:
        wrapped = handle_error(exc)
        if isinstance(exc, CmdSentryError):
            message, recoverable = exc.message, exc.recoverable
        else:
            message = str(exc) or type(exc).__name__
            recoverable = is_recoverable_message(message)
        return ExecutionError(
            message=message,
            type=type(exc).__name__,
            code=wrapped.code.value,
            recoverable=recoverable,
            stack="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        )

    def _configuration(self, context: ExecutionContext) -> Dict[str, Any]:
        timeout_ms = context.timeout_ms if context.timeout_ms is not None else self.config.default_timeout_ms
        return {
            "timeout_ms": timeout_ms,
            "create_snapshot": context.create_snapshot,
            "confirmed": context.confirmed,
            "monitor_side_effects": True,
            "caller_context": dict(context.caller_context),
        }

    # ------------------------------------------------------------------
    # Snapshots and rollback
    # ------------------------------------------------------------------

    async def create_snapshot(self) -> WorkspaceSnapshot:
        try:
            snapshot = await self.detector.create_snapshot(include_content=True)
        except CmdSentryError:
            raise
        except Exception as e:
            raise CmdSentryError(ErrorCode.SNAPSHOT_FAILED, f"Failed to create workspace snapshot: {e}") from e
        self._snapshots[snapshot.id] = snapshot
        logger.info(f"[CommandExecutor] Created workspace snapshot {snapshot.id}")
        return snapshot

    def get_snapshot(self, snapshot_id: str) -> Optional[WorkspaceSnapshot]:
        return self._snapshots.get(snapshot_id)

    def list_snapshots(self) -> List[Dict[str, Any]]:
        return [s.summary() for s in sorted(self._snapshots.values(), key=lambda s: s.timestamp)]

    def delete_snapshot(self, snapshot_id: str) -> bool:
        return self._snapshots.pop(snapshot_id, None) is not None

    def clear_all_snapshots(self) -> int:
        count = len(self._snapshots)
        self._snapshots.clear()
        return count

    async def restore_snapshot(self, snapshot_id: str) -> None:
        snapshot = self._snapshots.get(snapshot_id)
        if snapshot is None:
            raise CmdSentryError(
                ErrorCode.SNAPSHOT_NOT_FOUND,
                f"Snapshot {snapshot_id} not found",
                details={"snapshot_id": snapshot_id},
            )

        logger.info(f"[CommandExecutor] Restoring workspace snapshot {snapshot_id}")
        restored = 0
        for doc in snapshot.open_documents:
            if doc.content is None:
                continue
            try:
                current = await self.host.get_document_text(doc.uri)
                if current != doc.content:
                    await self.host.replace_document_text(doc.uri, doc.content)
                    restored += 1
            except Exception as e:
                logger.warning(f"[CommandExecutor] Failed to restore document {doc.uri}: {e}")

        if snapshot.active_document:
            editor = snapshot.active_editor()
            try:
                await self.host.show_document(
                    snapshot.active_document,
                    editor.selection if editor is not None else None,
                )
            except Exception as e:
                logger.warning(f"[CommandExecutor] Failed to restore active editor {snapshot.active_document}: {e}")

        logger.info(f"[CommandExecutor] Snapshot {snapshot_id} restored ({restored} documents rewritten)")
