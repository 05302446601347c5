"""
cmdsentry/monitoring/diff.py

Before/after comparison of two WorkspaceSnapshots.

The result is a flat list of SideEffects in a stable order: workspace roots,
files (created, deleted, modified), documents, active document, visible
editors, settings.
"""

from __future__ import annotations

from typing import Any, Dict, List

from cmdsentry.errors import CmdSentryError, ErrorCode
from .effects import EffectCategory, SideEffect, SideEffectType, utc_now
from .snapshot import FileInfo, WorkspaceSnapshot


def _file_details(before: FileInfo, after: FileInfo) -> Dict[str, Any]:
    details: Dict[str, Any] = {}
    if before.size != after.size:
        details["file_sizes"] = {"before": before.size, "after": after.size}
    if before.content_hash and after.content_hash and before.content_hash != after.content_hash:
        details["content_hashes"] = {"before": before.content_hash, "after": after.content_hash}
    if before.line_count and after.line_count and before.line_count != after.line_count:
        details["line_changes"] = {"before": before.line_count, "after": after.line_count}
    return details


def diff_workspace_roots(before: WorkspaceSnapshot, after: WorkspaceSnapshot) -> List[SideEffect]:
    effects = []
    now = utc_now()
    old_roots, new_roots = set(before.workspace_roots), set(after.workspace_roots)
    for root in sorted(new_roots - old_roots):
        effects.append(SideEffect.create(
            SideEffectType.WORKSPACE_CHANGED, root, f"Workspace folder added: {root}",
            EffectCategory.WORKSPACE, {"change": "added"}, timestamp=now,
        ))
    for root in sorted(old_roots - new_roots):
        effects.append(SideEffect.create(
            SideEffectType.WORKSPACE_CHANGED, root, f"Workspace folder removed: {root}",
            EffectCategory.WORKSPACE, {"change": "removed"}, timestamp=now,
        ))
    return effects


def diff_files(before: WorkspaceSnapshot, after: WorkspaceSnapshot) -> List[SideEffect]:
    effects = []
    now = utc_now()

    for path, info in after.files.items():
        if path not in before.files:
            effects.append(SideEffect.create(
                SideEffectType.FILE_CREATED, path, f"File created: {path}",
                EffectCategory.FILE_SYSTEM, {"file_sizes": {"before": 0, "after": info.size}}, timestamp=now,
            ))

    for path, info in before.files.items():
        if path not in after.files:
            effects.append(SideEffect.create(
                SideEffectType.FILE_DELETED, path, f"File deleted: {path}",
                EffectCategory.FILE_SYSTEM, {"file_sizes": {"before": info.size, "after": 0}}, timestamp=now,
            ))

    for path, after_info in after.files.items():
        before_info = before.files.get(path)
        if before_info is not None and before_info.differs_from(after_info):
            effects.append(SideEffect.create(
                SideEffectType.FILE_MODIFIED, path, f"File modified: {path}",
                EffectCategory.FILE_SYSTEM, _file_details(before_info, after_info), timestamp=now,
            ))

    return effects


def diff_documents(before: WorkspaceSnapshot, after: WorkspaceSnapshot) -> List[SideEffect]:
    effects = []
    now = utc_now()
    before_uris = {doc.uri for doc in before.open_documents}
    after_uris = {doc.uri for doc in after.open_documents}

    for doc in after.open_documents:
        if doc.uri not in before_uris:
            effects.append(SideEffect.create(
                SideEffectType.VIEW_OPENED, doc.uri, f"Document opened: {doc.uri}",
                EffectCategory.EDITOR,
                {"metadata": {"language_id": doc.language_id, "line_count": doc.line_count}},
                timestamp=now,
            ))
    for doc in before.open_documents:
        if doc.uri not in after_uris:
            effects.append(SideEffect.create(
                SideEffectType.VIEW_CLOSED, doc.uri, f"Document closed: {doc.uri}",
                EffectCategory.EDITOR, timestamp=now,
            ))

    if before.active_document != after.active_document:
        effects.append(SideEffect.create(
            SideEffectType.VIEW_OPENED, after.active_document,
            f"Active document changed: {after.active_document or 'none'}",
            EffectCategory.EDITOR,
            {"view_state": {"visible": True, "active": True}, "previous": before.active_document},
            timestamp=now,
        ))
    return effects


def diff_visible_editors(before: WorkspaceSnapshot, after: WorkspaceSnapshot) -> List[SideEffect]:
    effects = []
    now = utc_now()
    before_views = [e.document_uri for e in before.visible_editors]
    after_views = [e.document_uri for e in after.visible_editors]

    for view in after_views:
        if view not in before_views:
            effects.append(SideEffect.create(
                SideEffectType.VIEW_OPENED, view, f"View opened: {view}",
                EffectCategory.VIEWS, timestamp=now,
            ))
    for view in before_views:
        if view not in after_views:
            effects.append(SideEffect.create(
                SideEffectType.VIEW_CLOSED, view, f"View closed: {view}",
                EffectCategory.VIEWS, timestamp=now,
            ))
    return effects


def diff_settings(before: WorkspaceSnapshot, after: WorkspaceSnapshot) -> List[SideEffect]:
    effects = []
    now = utc_now()
    for key in list(after.settings) + [k for k in before.settings if k not in after.settings]:
        old, new = before.settings.get(key), after.settings.get(key)
        if old != new:
            effects.append(SideEffect.create(
                SideEffectType.SETTING_CHANGED, key, f"Setting changed: {key}",
                EffectCategory.SETTINGS, {"setting_changes": {"before": old, "after": new}}, timestamp=now,
            ))
    return effects


def diff_snapshots(before: WorkspaceSnapshot, after: WorkspaceSnapshot) -> List[SideEffect]:
    """Compare two snapshots captured by the same detector."""
    if before.detector_id != after.detector_id:
        raise CmdSentryError(
            ErrorCode.SNAPSHOT_INCOMPATIBLE,
            "Snapshots were captured by different detectors and cannot be compared",
            details={"before": before.id, "after": after.id},
        )
    effects: List[SideEffect] = []
    effects.extend(diff_workspace_roots(before, after))
    effects.extend(diff_files(before, after))
    effects.extend(diff_documents(before, after))
    effects.extend(diff_visible_editors(before, after))
    effects.extend(diff_settings(before, after))
    return effects
