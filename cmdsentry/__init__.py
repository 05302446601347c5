# ============================================================================
# cmdsentry/__init__.py
# Safe command execution and side-effect analysis engine
# ============================================================================
#
# PURPOSE:
# Run commands against a workspace host under guard: validate their
# parameters, refuse unsafe attempts, snapshot and watch the workspace while
# they run, enforce a timeout, then score what happened.
#
# KEY MODULES:
# - **validation/**: parameter type checking and coercion
# - **monitoring/**: snapshots, diffs, live side-effect detection
# - **executor/**: the guarded execution pipeline and safety interlock
# - **analysis/**: risk analysis and the captured-result store
# - **host/**: the WorkspaceHost protocol and a local reference host
# - **server/**: FastAPI surface over an Engine
# - **engine.py**: the facade wiring all of the above together
#
# ============================================================================
from cmdsentry.engine import Engine
from cmdsentry.errors import CmdSentryError, ErrorCode

__version__ = "1.0.0"

__all__ = ["CmdSentryError", "Engine", "ErrorCode", "__version__"]
