"""
cmdsentry/monitoring/effects.py

Purpose:
    The SideEffect record: one observed or diff-inferred change to
    workspace state attributable to an execution attempt.

Semantics:
    - Live effects are appended while monitoring runs; diff effects are
      computed at stop time. The two are reconciled with `matches()`:
      same type, same resource, timestamps less than one second apart.
    - Severity is assigned by type when the effect is created.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

DEDUP_WINDOW_SECONDS = 1.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SideEffectType(str, Enum):
    FILE_CREATED = "file_created"
    FILE_MODIFIED = "file_modified"
    FILE_DELETED = "file_deleted"
    SETTING_CHANGED = "setting_changed"
    VIEW_OPENED = "view_opened"
    VIEW_CLOSED = "view_closed"
    WORKSPACE_CHANGED = "workspace_changed"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class EffectCategory(str, Enum):
    FILE_SYSTEM = "file_system"
    EDITOR = "editor"
    SETTINGS = "settings"
    VIEWS = "views"
    WORKSPACE = "workspace"


# Severity pre-assigned to live and diff effects by type
DEFAULT_SEVERITY: Dict[SideEffectType, Severity] = {
    SideEffectType.FILE_DELETED: Severity.MEDIUM,
    SideEffectType.SETTING_CHANGED: Severity.MEDIUM,
    SideEffectType.WORKSPACE_CHANGED: Severity.HIGH,
}


def severity_for(effect_type: SideEffectType) -> Severity:
    return DEFAULT_SEVERITY.get(effect_type, Severity.LOW)


@dataclass(frozen=True)
class SideEffect:
    type: SideEffectType
    resource: Optional[str]
    description: str
    category: EffectCategory
    severity: Severity = Severity.LOW
    timestamp: datetime = field(default_factory=utc_now)
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        effect_type: SideEffectType,
        resource: Optional[str],
        description: str,
        category: EffectCategory,
        details: Optional[Dict[str, Any]] = None,
        timestamp: Optional[datetime] = None,
    ) -> "SideEffect":
        return cls(
            type=effect_type,
            resource=resource,
            description=description,
            category=category,
            severity=severity_for(effect_type),
            timestamp=timestamp or utc_now(),
            details=details or {},
        )

    def matches(self, other: "SideEffect") -> bool:
        """Dedup equality: same type and resource, under a second apart."""
        if self.type != other.type or self.resource != other.resource:
            return False
        delta = abs((self.timestamp - other.timestamp).total_seconds())
        return delta < DEDUP_WINDOW_SECONDS

    def with_details(self, details: Dict[str, Any]) -> "SideEffect":
        return replace(self, details=dict(details))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "resource": self.resource,
            "description": self.description,
            "severity": self.severity.value,
            "category": self.category.value,
            "timestamp": self.timestamp.isoformat(),
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SideEffect":
        return cls(
            type=SideEffectType(data["type"]),
            resource=data.get("resource"),
            description=data.get("description", ""),
            category=EffectCategory(data["category"]),
            severity=Severity(data.get("severity", "low")),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            details=dict(data.get("details") or {}),
        )
