from .analyzer import ResultAnalyzer
from .capture import ResultCapture
from .export import export_results
from .models import (
    AutomationSuitability,
    DurationCategory,
    EffectRiskLevel,
    OverallRisk,
    ResultAnalysis,
    SearchCriteria,
    TestConfiguration,
    TestResult,
    TestSession,
)

__all__ = [
    "AutomationSuitability",
    "DurationCategory",
    "EffectRiskLevel",
    "OverallRisk",
    "ResultAnalysis",
    "ResultAnalyzer",
    "ResultCapture",
    "SearchCriteria",
    "TestConfiguration",
    "TestResult",
    "TestSession",
    "export_results",
]
