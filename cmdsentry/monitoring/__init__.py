from .detector import SideEffectDetector
from .diff import diff_snapshots
from .effects import EffectCategory, Severity, SideEffect, SideEffectType
from .snapshot import DocumentInfo, FileInfo, SnapshotBuilder, WorkspaceSnapshot, content_hash

__all__ = [
    "DocumentInfo",
    "EffectCategory",
    "FileInfo",
    "Severity",
    "SideEffect",
    "SideEffectDetector",
    "SideEffectType",
    "SnapshotBuilder",
    "WorkspaceSnapshot",
    "content_hash",
    "diff_snapshots",
]
