"""
cmdsentry/server/encoding.py

Purpose:
    Make command return values safe for strict JSON responses.

Semantics:
    - Starlette renders with allow_nan=False, so NaN/Inf floats are replaced
      by their string form ("inf", "-inf", "nan").
    - Containers are walked recursively; everything else is returned as-is
      for FastAPI's own encoder.
"""

from __future__ import annotations

import math
from typing import Any


def json_safe(value: Any) -> Any:
    if isinstance(value, float):
        return value if math.isfinite(value) else repr(value)
    if isinstance(value, dict):
        return {k: json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    return value
