"""
cmdsentry/analysis/models.py

Purpose:
    The durable record of a captured attempt and its analysis.

Semantics:
    - The analysis sub-models are pydantic models frozen on creation.
    - TestResult wraps the immutable ExecutionResult together with the
      session context and the analysis. It is created exactly once per
      captured attempt and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cmdsentry.executor.models import CommandDescriptor, ExecutionResult


class DurationCategory(str, Enum):
    FAST = "fast"
    MODERATE = "moderate"
    SLOW = "slow"
    VERY_SLOW = "very_slow"


class EffectRiskLevel(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class OverallRisk(str, Enum):
    VERY_LOW = "very_low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class AutomationSuitability(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    UNSUITABLE = "unsuitable"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Session context
# ---------------------------------------------------------------------------

class TestConfiguration(_Frozen):
    __test__ = False

    timeout_ms: int = Field(default=30_000, ge=0)
    create_snapshot: bool = False
    confirmed: bool = False
    monitor_side_effects: bool = True
    caller_context: Dict[str, Any] = Field(default_factory=dict)


class ActiveFileInfo(_Frozen):
    uri: str
    language: str
    line_count: int


class WorkspaceInfo(_Frozen):
    name: Optional[str] = None
    root_path: Optional[str] = None
    folder_count: int = 0
    open_file_count: int = 0
    active_file: Optional[ActiveFileInfo] = None
    relevant_settings: Dict[str, Any] = Field(default_factory=dict)


class TestSession(_Frozen):
    __test__ = False

    session_id: str
    host_version: str
    workspace: WorkspaceInfo
    environment: Dict[str, str] = Field(default_factory=dict)
    configuration: TestConfiguration


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------

class PerformanceAnalysis(_Frozen):
    duration_category: DurationCategory
    execution_time_ms: float


class WorkspaceChanges(_Frozen):
    files_created: int = 0
    files_modified: int = 0
    files_deleted: int = 0
    settings_changed: int = 0
    views_opened: int = 0
    views_closed: int = 0
    workspace_changed: int = 0


class SideEffectAnalysis(_Frozen):
    total_effects: int
    effects_by_type: Dict[str, int] = Field(default_factory=dict)
    risk_level: EffectRiskLevel
    significant_effects: List[Dict[str, Any]] = Field(default_factory=list, description="Up to 5 effects, as dicts")
    workspace_changes: WorkspaceChanges = Field(default_factory=WorkspaceChanges)


class ReturnStructure(_Frozen):
    is_object: bool
    is_array: bool
    key_count: Optional[int] = None
    array_length: Optional[int] = None
    nested_levels: int = 0


class SerializationInfo(_Frozen):
    is_serializable: bool
    json_size: Optional[int] = None
    complexity: str = Field(default="simple", pattern="^(simple|moderate|complex)$")


class ReturnValueAnalysis(_Frozen):
    return_type: str
    structure: Optional[ReturnStructure] = None
    contains_sensitive_data: bool = False
    serialization: SerializationInfo


class RiskAssessment(_Frozen):
    score: int = Field(ge=0)
    overall_risk: OverallRisk
    risk_factors: List[str] = Field(default_factory=list)
    automation_suitability: AutomationSuitability
    precautions: List[str] = Field(default_factory=list)
    requires_special_handling: bool = False


class ResultAnalysis(_Frozen):
    performance: PerformanceAnalysis
    side_effect_analysis: SideEffectAnalysis
    return_value_analysis: ReturnValueAnalysis
    risk_assessment: RiskAssessment
    recommendations: List[str] = Field(default_factory=list)


class SearchCriteria(_Frozen):
    """Filter for the result store. Every set field must match."""
    command_id: Optional[str] = None
    success: Optional[bool] = None
    risk_level: Optional[OverallRisk] = None
    tags: Optional[List[str]] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    has_notes: Optional[bool] = None

    @field_validator("start", "end")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


# ---------------------------------------------------------------------------
# The durable record
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TestResult:
    __test__ = False

    id: str
    command: CommandDescriptor
    parameters: Dict[str, Any]
    execution_result: ExecutionResult
    session: TestSession
    analysis: ResultAnalysis
    timestamp: datetime
    tags: Tuple[str, ...] = ()
    notes: Optional[str] = None

    @property
    def command_id(self) -> str:
        return self.command.id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "command_id": self.command.id,
            "command": self.command.to_dict(),
            "parameters": self.parameters,
            "execution_result": self.execution_result.to_dict(),
            "session": self.session.model_dump(mode="json"),
            "analysis": self.analysis.model_dump(mode="json"),
            "timestamp": self.timestamp.isoformat(),
            "tags": list(self.tags),
            "notes": self.notes,
        }
