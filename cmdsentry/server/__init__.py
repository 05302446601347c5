# ============================================================================
# cmdsentry/server/__init__.py
# Server Package - FastAPI HTTP surface
# ============================================================================
#
# KEY ENDPOINTS:
# - GET /health, POST /kill-switch
# - GET /commands, POST /validate, POST /execute
# - GET|POST|DELETE /snapshots, DELETE /snapshots/{id}, POST /snapshots/{id}/restore
# - GET /results/{id}, POST /results/search, GET /results/stats
# - GET /results/export?format=&command_id=&success=... (search filters as query params)
#
# KEY MODULES:
# - **api.py**: create_app() and serve()
# - **state.py**: process-wide ApplicationState holding the attached Engine
# - **routers/**: one APIRouter per resource
#
# ============================================================================
from .api import create_app, serve

__all__ = ["create_app", "serve"]
