"""
cmdsentry/analysis/analyzer.py

Purpose:
    Turn one ExecutionResult into a ResultAnalysis: performance bucket,
    side-effect risk, return-value shape, composite risk score and
    automation suitability, plus free-text recommendations and tags.

Scoring:
    descriptor tier      destructive +3, moderate +2, safe +0
    side-effect risk     high +3, medium +2, low +1, none +0
    execution failed     +1
    sensitive return     +2

    score 0 -> very_low, 1 -> low, 2-3 -> medium, 4-5 -> high, >=6 -> very_high

Sensitive-data detection is a substring heuristic over key names and
serialized content. It over- and under-flags and is not a security boundary.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional, Sequence

from cmdsentry.executor.models import CommandDescriptor, ExecutionResult, RiskTier
from cmdsentry.monitoring.effects import SideEffect, SideEffectType
from .models import (
    AutomationSuitability,
    DurationCategory,
    EffectRiskLevel,
    OverallRisk,
    PerformanceAnalysis,
    ResultAnalysis,
    ReturnStructure,
    ReturnValueAnalysis,
    RiskAssessment,
    SerializationInfo,
    SideEffectAnalysis,
    WorkspaceChanges,
)

SENSITIVE_PATTERN = re.compile(r"password|token|key|secret|credential|auth", re.IGNORECASE)
SENSITIVE_CONTENT_MARKERS = ("password", "token", "secret", "credential")

MAX_SIGNIFICANT_EFFECTS = 5

_TIER_SCORE = {
    RiskTier.DESTRUCTIVE: 3,
    RiskTier.MODERATE: 2,
    RiskTier.SAFE: 0,
}

_EFFECT_RISK_SCORE = {
    EffectRiskLevel.HIGH: 3,
    EffectRiskLevel.MEDIUM: 2,
    EffectRiskLevel.LOW: 1,
    EffectRiskLevel.NONE: 0,
}

_HIGH_RISK_EFFECTS = {SideEffectType.FILE_DELETED, SideEffectType.WORKSPACE_CHANGED}
_MODIFICATION_EFFECTS = {SideEffectType.FILE_MODIFIED, SideEffectType.SETTING_CHANGED}
_SIGNIFICANT_EFFECTS = {
    SideEffectType.FILE_DELETED,
    SideEffectType.WORKSPACE_CHANGED,
    SideEffectType.SETTING_CHANGED,
}


def categorize_duration(duration_ms: float) -> DurationCategory:
    if duration_ms < 100:
        return DurationCategory.FAST
    if duration_ms < 1000:
        return DurationCategory.MODERATE
    if duration_ms < 5000:
        return DurationCategory.SLOW
    return DurationCategory.VERY_SLOW


def score_to_risk(score: int) -> OverallRisk:
    if score >= 6:
        return OverallRisk.VERY_HIGH
    if score >= 4:
        return OverallRisk.HIGH
    if score >= 2:
        return OverallRisk.MEDIUM
    if score >= 1:
        return OverallRisk.LOW
    return OverallRisk.VERY_LOW


def automation_suitability(risk: OverallRisk, success: bool) -> AutomationSuitability:
    if risk == OverallRisk.VERY_LOW and success:
        return AutomationSuitability.EXCELLENT
    if risk == OverallRisk.LOW and success:
        return AutomationSuitability.GOOD
    if risk == OverallRisk.MEDIUM:
        return AutomationSuitability.FAIR
    if risk == OverallRisk.HIGH:
        return AutomationSuitability.POOR
    return AutomationSuitability.UNSUITABLE


def return_type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    return "object"


def nesting_level(value: Any) -> int:
    """Depth of nested containers below `value` (a flat container is 0)."""
    if isinstance(value, dict):
        children = value.values()
    elif isinstance(value, (list, tuple)):
        children = value
    else:
        return 0
    level = 0
    for child in children:
        if isinstance(child, (dict, list, tuple)):
            level = max(level, 1 + nesting_level(child))
    return level


def _key_names(value: Any) -> List[str]:
    names: List[str] = []
    if isinstance(value, dict):
        for key, child in value.items():
            names.append(str(key))
            names.extend(_key_names(child))
    elif isinstance(value, (list, tuple)):
        for child in value:
            names.extend(_key_names(child))
    return names


def contains_sensitive_data(value: Any) -> bool:
    if isinstance(value, str):
        return bool(SENSITIVE_PATTERN.search(value))
    if isinstance(value, (dict, list, tuple)):
        if any(SENSITIVE_PATTERN.search(name) for name in _key_names(value)):
            return True
        try:
            serialized = json.dumps(value, default=str).lower()
        except (TypeError, ValueError):
            return False
        return any(marker in serialized for marker in SENSITIVE_CONTENT_MARKERS)
    return False


class ResultAnalyzer:
    """Stateless analysis of execution results."""

    def analyze(self, command: CommandDescriptor, execution: ExecutionResult) -> ResultAnalysis:
        performance = self.analyze_performance(execution)
        side_effects = self.analyze_side_effects(execution.side_effects)
        return_value = self.analyze_return_value(execution.result)
        risk = self.assess_risk(command, execution, side_effects, return_value)
        recommendations = self.recommendations(execution, performance, side_effects, risk)
        return ResultAnalysis(
            performance=performance,
            side_effect_analysis=side_effects,
            return_value_analysis=return_value,
            risk_assessment=risk,
            recommendations=recommendations,
        )

    def analyze_performance(self, execution: ExecutionResult) -> PerformanceAnalysis:
        return PerformanceAnalysis(
            duration_category=categorize_duration(execution.duration_ms),
            execution_time_ms=execution.duration_ms,
        )

    def analyze_side_effects(self, effects: Sequence[SideEffect]) -> SideEffectAnalysis:
        by_type: Dict[str, int] = {}
        for effect in effects:
            by_type[effect.type.value] = by_type.get(effect.type.value, 0) + 1

        types = {effect.type for effect in effects}
        if not effects:
            risk_level = EffectRiskLevel.NONE
        elif types & _HIGH_RISK_EFFECTS:
            risk_level = EffectRiskLevel.HIGH
        elif types & _MODIFICATION_EFFECTS:
            risk_level = EffectRiskLevel.MEDIUM
        else:
            risk_level = EffectRiskLevel.LOW

        significant = [e.to_dict() for e in effects if e.type in _SIGNIFICANT_EFFECTS][:MAX_SIGNIFICANT_EFFECTS]

        return SideEffectAnalysis(
            total_effects=len(effects),
            effects_by_type=by_type,
            risk_level=risk_level,
            significant_effects=significant,
            workspace_changes=WorkspaceChanges(
                files_created=by_type.get("file_created", 0),
                files_modified=by_type.get("file_modified", 0),
                files_deleted=by_type.get("file_deleted", 0),
                settings_changed=by_type.get("setting_changed", 0),
                views_opened=by_type.get("view_opened", 0),
                views_closed=by_type.get("view_closed", 0),
                workspace_changed=by_type.get("workspace_changed", 0),
            ),
        )

    def analyze_return_value(self, value: Any) -> ReturnValueAnalysis:
        structure: Optional[ReturnStructure] = None
        if isinstance(value, (dict, list, tuple)):
            is_array = not isinstance(value, dict)
            structure = ReturnStructure(
                is_object=not is_array,
                is_array=is_array,
                key_count=None if is_array else len(value),
                array_length=len(value) if is_array else None,
                nested_levels=nesting_level(value),
            )

        try:
            encoded = json.dumps(value, allow_nan=False)
        except (TypeError, ValueError):
            serialization = SerializationInfo(is_serializable=False, complexity="complex")
        else:
            size = len(encoded)
            if size > 10_000:
                complexity = "complex"
            elif size > 1_000:
                complexity = "moderate"
            else:
                complexity = "simple"
            serialization = SerializationInfo(is_serializable=True, json_size=size, complexity=complexity)

        return ReturnValueAnalysis(
            return_type=return_type_name(value),
            structure=structure,
            contains_sensitive_data=contains_sensitive_data(value),
            serialization=serialization,
        )

    def assess_risk(
        self,
        command: CommandDescriptor,
        execution: ExecutionResult,
        side_effects: SideEffectAnalysis,
        return_value: ReturnValueAnalysis,
    ) -> RiskAssessment:
        factors: List[str] = []
        score = _TIER_SCORE[command.risk_tier]
        if command.risk_tier == RiskTier.DESTRUCTIVE:
            factors.append("Command marked as destructive")
        elif command.risk_tier == RiskTier.MODERATE:
            factors.append("Command marked as moderate risk")

        score += _EFFECT_RISK_SCORE[side_effects.risk_level]
        if side_effects.risk_level != EffectRiskLevel.NONE:
            factors.append(f"{side_effects.risk_level.value.capitalize()}-risk side effects detected")

        if not execution.success:
            score += 1
            factors.append("Command execution failed")

        if return_value.contains_sensitive_data:
            score += 2
            factors.append("Return value contains sensitive data")

        overall = score_to_risk(score)

        precautions: List[str] = []
        if side_effects.risk_level != EffectRiskLevel.NONE:
            precautions.append("Create a workspace snapshot before execution")
        if command.risk_tier == RiskTier.DESTRUCTIVE:
            precautions.append("Create workspace backup before execution")
        if return_value.contains_sensitive_data:
            precautions.append("Sanitize return values before logging")

        return RiskAssessment(
            score=score,
            overall_risk=overall,
            risk_factors=factors,
            automation_suitability=automation_suitability(overall, execution.success),
            precautions=precautions,
            requires_special_handling=overall in (OverallRisk.HIGH, OverallRisk.VERY_HIGH),
        )

    def recommendations(
        self,
        execution: ExecutionResult,
        performance: PerformanceAnalysis,
        side_effects: SideEffectAnalysis,
        risk: RiskAssessment,
    ) -> List[str]:
        out: List[str] = []
        if not execution.success:
            out.append("Investigate execution failure and retry with different parameters")
            if execution.error is not None and execution.error.recoverable:
                out.append("Error looks transient; a retry may succeed")
        if performance.duration_category == DurationCategory.VERY_SLOW:
            out.append("Consider extending the timeout for automation use")
        if side_effects.total_effects > 5:
            out.append("Test with workspace snapshot to understand all side effects")
        if risk.overall_risk in (OverallRisk.HIGH, OverallRisk.VERY_HIGH):
            out.append("Avoid using in automated workflows without manual oversight")
        return out

    def tags(self, command: CommandDescriptor, execution: ExecutionResult, analysis: ResultAnalysis) -> List[str]:
        tags: List[str] = []
        for tag in (command.category, command.subcategory, command.risk_tier.value):
            if tag and tag not in tags:
                tags.append(tag)

        for tag in (
            "success" if execution.success else "failure",
            analysis.performance.duration_category.value,
            analysis.risk_assessment.overall_risk.value,
        ):
            if tag not in tags:
                tags.append(tag)

        if analysis.side_effect_analysis.total_effects > 0:
            tags.append("has_side_effects")
        if analysis.return_value_analysis.contains_sensitive_data:
            tags.append("sensitive_data")
        if analysis.risk_assessment.requires_special_handling:
            tags.append("special_handling")
        return tags
