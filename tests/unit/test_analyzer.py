"""Unit tests for ResultAnalyzer scoring and return-value inspection."""
from datetime import timedelta

import pytest

from cmdsentry.analysis import ResultAnalyzer
from cmdsentry.analysis.analyzer import (
    categorize_duration,
    contains_sensitive_data,
    nesting_level,
    return_type_name,
    score_to_risk,
)
from cmdsentry.analysis.models import AutomationSuitability, DurationCategory, EffectRiskLevel, OverallRisk
from cmdsentry.executor import CommandDescriptor, ExecutionError, ExecutionResult, RiskTier
from cmdsentry.monitoring.effects import EffectCategory, SideEffect, SideEffectType, utc_now


def _effect(effect_type, resource="/ws/a.txt", category=EffectCategory.FILE_SYSTEM):
    return SideEffect.create(effect_type, resource, f"{effect_type.value}: {resource}", category)


def _execution(success=True, duration_ms=10.0, result=None, effects=(), error=None):
    started = utc_now()
    if not success and error is None:
        error = ExecutionError(message="boom", type="RuntimeError", code="EXEC_001")
    return ExecutionResult(
        command_id="demo.cmd",
        success=success,
        started_at=started,
        ended_at=started + timedelta(milliseconds=duration_ms),
        duration_ms=duration_ms,
        result=result,
        error=error,
        side_effects=tuple(effects),
    )


@pytest.fixture
def analyzer():
    return ResultAnalyzer()


@pytest.mark.parametrize("duration,expected", [
    (0, DurationCategory.FAST),
    (99.9, DurationCategory.FAST),
    (100, DurationCategory.MODERATE),
    (999, DurationCategory.MODERATE),
    (1000, DurationCategory.SLOW),
    (5000, DurationCategory.VERY_SLOW),
])
def test_duration_buckets(duration, expected):
    assert categorize_duration(duration) is expected


@pytest.mark.parametrize("score,expected", [
    (0, OverallRisk.VERY_LOW),
    (1, OverallRisk.LOW),
    (3, OverallRisk.MEDIUM),
    (5, OverallRisk.HIGH),
    (6, OverallRisk.VERY_HIGH),
    (9, OverallRisk.VERY_HIGH),
])
def test_score_to_risk(score, expected):
    assert score_to_risk(score) is expected


def test_fast_safe_command_is_excellent(analyzer):
    analysis = analyzer.analyze(CommandDescriptor(id="demo.cmd"), _execution(result="ok"))
    risk = analysis.risk_assessment

    assert analysis.performance.duration_category is DurationCategory.FAST
    assert analysis.side_effect_analysis.risk_level is EffectRiskLevel.NONE
    assert risk.score == 0
    assert risk.overall_risk is OverallRisk.VERY_LOW
    assert risk.automation_suitability is AutomationSuitability.EXCELLENT
    assert risk.precautions == []
    assert not risk.requires_special_handling
    assert analysis.recommendations == []


def test_failed_destructive_deletion_is_unsuitable(analyzer):
    command = CommandDescriptor(id="demo.cmd", risk_tier=RiskTier.DESTRUCTIVE)
    execution = _execution(success=False, effects=[_effect(SideEffectType.FILE_DELETED)])
    analysis = analyzer.analyze(command, execution)
    risk = analysis.risk_assessment

    assert risk.score == 7
    assert risk.overall_risk is OverallRisk.VERY_HIGH
    assert risk.automation_suitability is AutomationSuitability.UNSUITABLE
    assert risk.requires_special_handling
    assert "Command marked as destructive" in risk.risk_factors
    assert "Command execution failed" in risk.risk_factors
    assert "Create workspace backup before execution" in risk.precautions
    assert "Avoid using in automated workflows without manual oversight" in analysis.recommendations
    assert analysis.side_effect_analysis.significant_effects[0]["type"] == "file_deleted"


def test_low_risk_failure_is_not_good(analyzer):
    analysis = analyzer.analyze(CommandDescriptor(id="demo.cmd"), _execution(success=False))
    assert analysis.risk_assessment.overall_risk is OverallRisk.LOW
    assert analysis.risk_assessment.automation_suitability is AutomationSuitability.UNSUITABLE


def test_recoverable_failure_adds_retry_hint(analyzer):
    error = ExecutionError(message="timed out", type="TimeoutError", code="EXEC_002", recoverable=True)
    analysis = analyzer.analyze(CommandDescriptor(id="demo.cmd"), _execution(success=False, error=error))
    assert "Error looks transient; a retry may succeed" in analysis.recommendations


def test_side_effect_levels(analyzer):
    low = analyzer.analyze_side_effects([_effect(SideEffectType.FILE_CREATED)])
    medium = analyzer.analyze_side_effects([_effect(SideEffectType.FILE_CREATED), _effect(SideEffectType.FILE_MODIFIED)])
    high = analyzer.analyze_side_effects([_effect(SideEffectType.WORKSPACE_CHANGED, "/lib", EffectCategory.WORKSPACE)])

    assert low.risk_level is EffectRiskLevel.LOW
    assert medium.risk_level is EffectRiskLevel.MEDIUM
    assert medium.workspace_changes.files_created == 1
    assert medium.workspace_changes.files_modified == 1
    assert high.risk_level is EffectRiskLevel.HIGH


def test_significant_effects_are_capped(analyzer):
    effects = [_effect(SideEffectType.FILE_DELETED, f"/ws/{i}.txt") for i in range(8)]
    analysis = analyzer.analyze_side_effects(effects)
    assert analysis.total_effects == 8
    assert analysis.effects_by_type == {"file_deleted": 8}
    assert len(analysis.significant_effects) == 5


@pytest.mark.parametrize("effects", [
    [],
    [SideEffectType.VIEW_OPENED],
    [SideEffectType.FILE_MODIFIED],
    [SideEffectType.FILE_DELETED],
])
@pytest.mark.parametrize("tier", list(RiskTier))
def test_more_risk_never_lowers_the_score(analyzer, tier, effects):
    command = CommandDescriptor(id="demo.cmd", risk_tier=tier)
    base = analyzer.analyze(command, _execution(effects=[_effect(t) for t in effects])).risk_assessment.score
    failed = analyzer.analyze(command, _execution(success=False, effects=[_effect(t) for t in effects]))
    sensitive = analyzer.analyze(command, _execution(result={"token": "x"}, effects=[_effect(t) for t in effects]))

    assert failed.risk_assessment.score == base + 1
    assert sensitive.risk_assessment.score == base + 2


@pytest.mark.parametrize("effects", [
    [],
    [SideEffectType.VIEW_OPENED],
    [SideEffectType.FILE_MODIFIED],
    [SideEffectType.FILE_DELETED, SideEffectType.FILE_CREATED],
])
@pytest.mark.parametrize("success", [True, False])
def test_destructive_tier_scores_above_safe(analyzer, effects, success):
    execution = _execution(success=success, effects=[_effect(t) for t in effects])
    safe = analyzer.analyze(CommandDescriptor(id="demo.cmd", risk_tier=RiskTier.SAFE), execution)
    destructive = analyzer.analyze(CommandDescriptor(id="demo.cmd", risk_tier=RiskTier.DESTRUCTIVE), execution)
    assert destructive.risk_assessment.score > safe.risk_assessment.score


def test_non_finite_return_is_not_serializable(analyzer):
    assert not analyzer.analyze_return_value({"ratio": float("inf")}).serialization.is_serializable


def test_return_value_shapes(analyzer):
    obj = analyzer.analyze_return_value({"a": {"b": [1, 2]}, "c": 1})
    assert obj.return_type == "object"
    assert obj.structure.is_object
    assert obj.structure.key_count == 2
    assert obj.structure.nested_levels == 2
    assert obj.serialization.is_serializable
    assert obj.serialization.complexity == "simple"

    arr = analyzer.analyze_return_value(list(range(500)))
    assert arr.return_type == "array"
    assert arr.structure.array_length == 500
    assert arr.serialization.complexity == "moderate"

    odd = analyzer.analyze_return_value({"when": object()})
    assert not odd.serialization.is_serializable
    assert odd.serialization.complexity == "complex"


def test_scalar_helpers():
    assert return_type_name(None) == "null"
    assert return_type_name(True) == "boolean"
    assert return_type_name(1.5) == "number"
    assert return_type_name("x") == "string"
    assert nesting_level([1, 2]) == 0
    assert nesting_level([[1], {"a": [2]}]) == 2


@pytest.mark.parametrize("value,expected", [
    ({"apiKey": "abc"}, True),
    ({"nested": [{"Authorization": "Bearer x"}]}, True),
    ({"note": "contains a password somewhere"}, True),
    ("secret sauce", True),
    ({"name": "build", "count": 3}, False),
    (42, False),
    (None, False),
])
def test_sensitive_data_heuristic(value, expected):
    assert contains_sensitive_data(value) is expected


def test_tags(analyzer):
    command = CommandDescriptor(id="demo.cmd", category="editor", subcategory="format", risk_tier=RiskTier.MODERATE)
    execution = _execution(result={"token": "t"}, effects=[_effect(SideEffectType.FILE_MODIFIED)])
    analysis = analyzer.analyze(command, execution)
    tags = analyzer.tags(command, execution, analysis)

    assert tags[:4] == ["editor", "format", "moderate", "success"]
    assert "fast" in tags
    assert "has_side_effects" in tags
    assert "sensitive_data" in tags
    assert analysis.risk_assessment.score == 6
    assert "very_high" in tags
    assert "special_handling" in tags
