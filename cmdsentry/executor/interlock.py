"""
cmdsentry/executor/interlock.py

Purpose:
    The final safety gate before a command is dispatched to the host.
    An attempt does not proceed if:
    1. The global kill switch is active.
    2. The command is destructive and the caller did not confirm it.
    3. A declared context precondition does not hold in the live host.

Standards:
    - Audit Logging: every decision is logged structurally.
    - Fail-Safe: unknown preconditions are logged, never silently trusted
      as checked.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from cmdsentry.errors import ErrorCode
from cmdsentry.host.interface import WorkspaceHost
from .models import ExecutionContext, RiskTier

log = logging.getLogger("cmdsentry.executor.interlock")


@dataclass(frozen=True)
class InterlockVerdict:
    """A blocked decision. `None` from check() means the attempt may proceed."""
    code: ErrorCode
    reason: str


class SafetyInterlock:
    """
    Authorization gate evaluated before any snapshot or invocation.
    """
    def __init__(self):
        self._kill_switch_active = False

    @property
    def kill_switch_active(self) -> bool:
        return self._kill_switch_active

    def engage_kill_switch(self, operator: str = "SYSTEM"):
        log.warning(f"KILL SWITCH ENGAGED by {operator}. All command execution halted.")
        self._kill_switch_active = True

    def disengage_kill_switch(self, operator: str = "SYSTEM"):
        log.warning(f"Kill switch disengaged by {operator}. Command execution enabled.")
        self._kill_switch_active = False

    def check(self, context: ExecutionContext, host: WorkspaceHost) -> Optional[InterlockVerdict]:
        """
        Verifies if it is safe to proceed.
        Returns None if SAFE, otherwise the blocking verdict.
        """
        command = context.command

        # 1. Kill Switch (Top Priority)
        if self._kill_switch_active:
            return self._block(context, ErrorCode.SAFETY_KILL_SWITCH, "Global kill switch is active")

        # 2. Destructive commands need explicit confirmation
        if command.risk_tier == RiskTier.DESTRUCTIVE and not context.confirmed:
            return self._block(
                context,
                ErrorCode.SAFETY_CONFIRMATION_REQUIRED,
                f"Destructive command '{command.id}' requires explicit confirmation",
            )

        # 3. Context preconditions against live host state
        for requirement in command.context_requirements:
            reason = self._check_requirement(requirement, host)
            if reason:
                return self._block(context, ErrorCode.SAFETY_PRECONDITION_FAILED, reason)

        self._audit(context, "ALLOWED", "All checks passed.")
        return None

    def _check_requirement(self, requirement: str, host: WorkspaceHost) -> Optional[str]:
        lowered = requirement.lower()
        if "workspace" in lowered:
            if not host.list_workspace_roots():
                return f"Precondition not met: {requirement} (no workspace folder is open)"
            return None
        if "active" in lowered and ("editor" in lowered or "document" in lowered):
            if host.get_active_document() is None:
                return f"Precondition not met: {requirement} (no active document)"
            return None
        log.info(f"Unrecognized precondition '{requirement}' not evaluated")
        return None

    def _block(self, context: ExecutionContext, code: ErrorCode, reason: str) -> InterlockVerdict:
        self._audit(context, "BLOCKED", reason)
        return InterlockVerdict(code=code, reason=reason)

    def _audit(self, context: ExecutionContext, result: str, reason: str):
        """
        Emits a structured audit log.
        """
        log.info(
            f"AUDIT | Attempt={context.attempt_id} | Command={context.command.id} | "
            f"Tier={context.command.risk_tier.value} | Result={result} | Reason={reason}"
        )
