"""Module errors: structured error taxonomy for cmdsentry."""
#
# PURPOSE:
# Provides error codes, a typed exception and helpers so every failure path in
# the engine carries a human-readable message plus a machine-readable code.
#
# ERROR CODE FORMAT:
# - VALIDATION_XXX: Parameter validation failures
# - SAFETY_XXX: Pre-execution safety check failures
# - EXEC_XXX: Invocation failures (host command threw, timed out)
# - SNAPSHOT_XXX: Workspace snapshot capture/restore failures
# - MONITOR_XXX: Side-effect monitoring failures
# - CAPTURE_XXX: Result capture/analysis/export failures
# - CONFIG_XXX: Configuration errors
#
# USAGE:
#   from cmdsentry.errors import CmdSentryError, ErrorCode
#
#   raise CmdSentryError(
#       ErrorCode.SNAPSHOT_NOT_FOUND,
#       "Snapshot snapshot_3 not found",
#       details={"snapshot_id": "snapshot_3"}
#   )
#
import json
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    # Validation Errors
    VALIDATION_FAILED = "VALIDATION_001"

    # Safety Errors
    SAFETY_CONFIRMATION_REQUIRED = "SAFETY_001"
    SAFETY_PRECONDITION_FAILED = "SAFETY_002"
    SAFETY_CONCURRENT_EXECUTION = "SAFETY_003"
    SAFETY_KILL_SWITCH = "SAFETY_004"

    # Execution Errors
    EXEC_FAILED = "EXEC_001"
    EXEC_TIMEOUT = "EXEC_002"
    EXEC_COMMAND_NOT_FOUND = "EXEC_003"

    # Snapshot Errors
    SNAPSHOT_FAILED = "SNAPSHOT_001"
    SNAPSHOT_NOT_FOUND = "SNAPSHOT_002"
    SNAPSHOT_INCOMPATIBLE = "SNAPSHOT_003"

    # Monitoring Errors
    MONITOR_ALREADY_ACTIVE = "MONITOR_001"
    MONITOR_FAILED = "MONITOR_002"

    # Capture Errors
    CAPTURE_FAILED = "CAPTURE_001"
    CAPTURE_RESULT_NOT_FOUND = "CAPTURE_002"
    CAPTURE_EXPORT_FORMAT = "CAPTURE_003"

    # Config Errors
    CONFIG_INVALID = "CONFIG_001"

    # System Errors
    SYSTEM_INTERNAL_ERROR = "SYSTEM_001"


# Codes raised before invocation; these need corrected input, never a retry.
NON_RECOVERABLE_CODES = frozenset({
    ErrorCode.VALIDATION_FAILED,
    ErrorCode.SAFETY_CONFIRMATION_REQUIRED,
    ErrorCode.SAFETY_PRECONDITION_FAILED,
    ErrorCode.SAFETY_CONCURRENT_EXECUTION,
    ErrorCode.SAFETY_KILL_SWITCH,
    ErrorCode.SNAPSHOT_FAILED,
})

RECOVERABLE_PATTERNS = (
    "timeout",
    "timed out",
    "cancelled",
    "not found",
    "permission denied",
    "invalid parameter",
)


class CmdSentryError(Exception):
    """
    Base exception class for cmdsentry with structured error information.

    Attributes:
        code: ErrorCode enum value (e.g., "SAFETY_003")
        message: Human-readable error message
        details: Optional dictionary with additional context
        http_status: Suggested HTTP status code for API responses
    """

    HTTP_STATUS_MAP: Dict[ErrorCode, int] = {
        ErrorCode.VALIDATION_FAILED: 422,
        ErrorCode.SAFETY_CONFIRMATION_REQUIRED: 403,
        ErrorCode.SAFETY_PRECONDITION_FAILED: 412,
        ErrorCode.SAFETY_CONCURRENT_EXECUTION: 409,
        ErrorCode.SAFETY_KILL_SWITCH: 503,
        ErrorCode.EXEC_FAILED: 500,
        ErrorCode.EXEC_TIMEOUT: 408,
        ErrorCode.EXEC_COMMAND_NOT_FOUND: 404,
        ErrorCode.SNAPSHOT_FAILED: 500,
        ErrorCode.SNAPSHOT_NOT_FOUND: 404,
        ErrorCode.SNAPSHOT_INCOMPATIBLE: 400,
        ErrorCode.MONITOR_ALREADY_ACTIVE: 409,
        ErrorCode.MONITOR_FAILED: 500,
        ErrorCode.CAPTURE_FAILED: 500,
        ErrorCode.CAPTURE_RESULT_NOT_FOUND: 404,
        ErrorCode.CAPTURE_EXPORT_FORMAT: 400,
        ErrorCode.CONFIG_INVALID: 500,
        ErrorCode.SYSTEM_INTERNAL_ERROR: 500,
    }

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        http_status: Optional[int] = None
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        self.http_status = http_status or self.HTTP_STATUS_MAP.get(code, 500)

        # Build exception message with code for easy debugging
        super().__init__(f"[{code.value}] {message}")

    @property
    def recoverable(self) -> bool:
        if self.code in NON_RECOVERABLE_CODES:
            return False
        return is_recoverable_message(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error to dictionary for JSON serialization.

        Returns:
            Dictionary with code, message, details, and http_status
        """
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "http_status": self.http_status
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CmdSentryError":
        code = ErrorCode(data["code"])
        return cls(code, data["message"], data.get("details", {}), data.get("http_status"))


# ============================================================================
# Convenience Functions
# ============================================================================

def is_recoverable_message(message: str) -> bool:
    """True when the message matches a known transient failure category."""
    lowered = (message or "").lower()
    return any(pattern in lowered for pattern in RECOVERABLE_PATTERNS)


def handle_error(error: Exception, context: Optional[str] = None) -> CmdSentryError:
    """
    Convert a generic exception to a CmdSentryError.

    Args:
        error: The original exception
        context: Optional context string (e.g., "while restoring snapshot")

    Returns:
        CmdSentryError with appropriate code and message
    """
    if isinstance(error, CmdSentryError):
        return error

    error_type = type(error).__name__
    lowered = str(error).lower()

    if isinstance(error, TimeoutError) or "timeout" in lowered or "timed out" in lowered:
        code = ErrorCode.EXEC_TIMEOUT
    elif isinstance(error, (LookupError, FileNotFoundError)) and "not found" in lowered:
        code = ErrorCode.EXEC_COMMAND_NOT_FOUND
    else:
        code = ErrorCode.EXEC_FAILED

    message = str(error) or error_type
    if context:
        message = f"{context}: {message}"

    return CmdSentryError(
        code=code,
        message=message,
        details={
            "original_type": error_type,
            "original_message": str(error)
        }
    )


__all__ = [
    "ErrorCode",
    "CmdSentryError",
    "NON_RECOVERABLE_CODES",
    "RECOVERABLE_PATTERNS",
    "handle_error",
    "is_recoverable_message",
]
