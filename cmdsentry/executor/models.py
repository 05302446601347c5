"""
cmdsentry/executor/models.py

Purpose:
    Data structures for one execution attempt.

Semantics:
    - CommandDescriptor: static metadata about a target command. Built once
      at discovery time, read-only afterward.
    - ExecutionContext: the input to exactly one attempt. Never reused.
    - ExecutionResult: the outcome of the attempt. Either carries a return
      value (success) or an ExecutionError (failure), plus every side effect
      observed while the attempt was monitored.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from cmdsentry.monitoring.effects import EffectCategory, Severity, SideEffect, SideEffectType
from cmdsentry.validation.types import ParameterSpec


class RiskTier(str, Enum):
    SAFE = "safe"
    MODERATE = "moderate"
    DESTRUCTIVE = "destructive"


@dataclass(frozen=True)
class CommandDescriptor:
    """
    Immutable metadata about a command exposed by the host registry.
    `signature` is None when the parameters were never discovered.
    """
    id: str
    risk_tier: RiskTier = RiskTier.SAFE
    context_requirements: Tuple[str, ...] = ()
    signature: Optional[Tuple[ParameterSpec, ...]] = None
    category: str = "general"
    subcategory: str = ""
    display_name: str = ""
    description: str = ""
    return_type: Optional[str] = None

    @property
    def name(self) -> str:
        return self.display_name or self.id

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CommandDescriptor":
        signature = data.get("signature")
        return cls(
            id=data["id"],
            risk_tier=RiskTier(data.get("risk_tier", "safe")),
            context_requirements=tuple(data.get("context_requirements") or ()),
            signature=tuple(ParameterSpec.from_dict(p) for p in signature) if signature is not None else None,
            category=data.get("category", "general"),
            subcategory=data.get("subcategory", ""),
            display_name=data.get("display_name", ""),
            description=data.get("description", ""),
            return_type=data.get("return_type"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "risk_tier": self.risk_tier.value,
            "context_requirements": list(self.context_requirements),
            "signature": [p.to_dict() for p in self.signature] if self.signature is not None else None,
            "category": self.category,
            "subcategory": self.subcategory,
            "display_name": self.display_name,
            "description": self.description,
            "return_type": self.return_type,
        }


@dataclass(frozen=True)
class ExecutionContext:
    """Input to one execution attempt."""
    command: CommandDescriptor
    parameters: Dict[str, Any] = field(default_factory=dict)
    timeout_ms: Optional[int] = None
    create_snapshot: bool = False
    confirmed: bool = False
    caller_context: Dict[str, Any] = field(default_factory=dict)
    attempt_id: str = field(default_factory=lambda: f"attempt_{uuid.uuid4().hex[:12]}")


@dataclass(frozen=True)
class ExecutionError:
    message: str
    type: str
    code: str
    recoverable: bool = False
    stack: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "type": self.type,
            "code": self.code,
            "recoverable": self.recoverable,
            "stack": self.stack,
        }


@dataclass(frozen=True)
class ExecutionResult:
    """
    The outcome of one attempt. Immutable once produced.
    """
    command_id: str
    success: bool
    started_at: datetime
    ended_at: datetime
    duration_ms: float
    result: Any = None
    error: Optional[ExecutionError] = None
    side_effects: Tuple[SideEffect, ...] = ()
    snapshot_id: Optional[str] = None
    attempt_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "command_id": self.command_id,
            "attempt_id": self.attempt_id,
            "success": self.success,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "duration_ms": self.duration_ms,
            "result": self.result,
            "error": self.error.to_dict() if self.error else None,
            "side_effects": [e.to_dict() for e in self.side_effects],
            "snapshot_id": self.snapshot_id,
        }


__all__ = [
    "CommandDescriptor",
    "EffectCategory",
    "ExecutionContext",
    "ExecutionError",
    "ExecutionResult",
    "RiskTier",
    "Severity",
    "SideEffect",
    "SideEffectType",
]
