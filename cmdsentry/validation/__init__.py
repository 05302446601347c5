from .types import (
    ParameterSpec,
    ParameterType,
    TypeKind,
    ValidationCode,
    ValidationIssue,
    ValidationOutcome,
)
from .validator import ParameterValidator

__all__ = [
    "ParameterSpec",
    "ParameterType",
    "ParameterValidator",
    "TypeKind",
    "ValidationCode",
    "ValidationIssue",
    "ValidationOutcome",
]
