from .executor import CommandExecutor
from .interlock import InterlockVerdict, SafetyInterlock
from .models import (
    CommandDescriptor,
    ExecutionContext,
    ExecutionError,
    ExecutionResult,
    RiskTier,
)

__all__ = [
    "CommandDescriptor",
    "CommandExecutor",
    "ExecutionContext",
    "ExecutionError",
    "ExecutionResult",
    "InterlockVerdict",
    "RiskTier",
    "SafetyInterlock",
]
