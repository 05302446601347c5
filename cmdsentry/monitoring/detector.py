"""
cmdsentry/monitoring/detector.py

Purpose:
    Observe everything that changes in the workspace while a command runs.

Semantics:
    - start_monitoring() clears the effect buffer, takes a baseline snapshot
      and attaches host listeners. Each listener appends a SideEffect
      immediately (near-real-time view, readable via current_effects()).
    - stop_monitoring() detaches every listener, takes a final snapshot,
      diffs it against the baseline and merges the diff effects that are
      not already present (same type and resource, under a second apart).
    - The buffer is bounded by max_side_effects; live events past the bound
      are dropped with one warning per session.
    - Effects stamped outside [start, stop] are never reported.

Each detector owns its buffer and its subscription handles; nothing is
shared between instances.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from cmdsentry.base.config import DetectionConfig
from cmdsentry.errors import CmdSentryError, ErrorCode
from cmdsentry.host.interface import Disposable, EditorInfo, OpenDocument, WorkspaceHost
from .diff import diff_snapshots
from .effects import EffectCategory, SideEffect, SideEffectType, utc_now
from .snapshot import ExclusionMatcher, SnapshotBuilder, WorkspaceSnapshot

logger = logging.getLogger(__name__)


class SideEffectDetector:
    def __init__(self, host: WorkspaceHost, config: Optional[DetectionConfig] = None):
        self.id = f"detector_{uuid.uuid4().hex[:8]}"
        self.host = host
        self.config = config or DetectionConfig()
        self._builder = SnapshotBuilder(host, self.config, self.id)
        self._exclusions = ExclusionMatcher(self.config.exclude_patterns)

        self._effects: List[SideEffect] = []
        self._subscriptions: List[Disposable] = []
        self._baseline: Optional[WorkspaceSnapshot] = None
        self._active = False
        self._started_at: Optional[datetime] = None
        self._overflow_warned = False

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    async def create_snapshot(self, include_content: bool = False) -> WorkspaceSnapshot:
        return await self._builder.capture(include_content=include_content)

    def compare_snapshots(self, before: WorkspaceSnapshot, after: WorkspaceSnapshot) -> List[SideEffect]:
        for snap in (before, after):
            if snap.detector_id != self.id:
                raise CmdSentryError(
                    ErrorCode.SNAPSHOT_INCOMPATIBLE,
                    f"Snapshot {snap.id} was not captured by this detector",
                    details={"snapshot_id": snap.id, "detector_id": self.id},
                )
        return diff_snapshots(before, after)

    # ------------------------------------------------------------------
    # Monitoring lifecycle
    # ------------------------------------------------------------------

    def is_active(self) -> bool:
        return self._active

    def current_effects(self) -> List[SideEffect]:
        """Live-observed effects so far (non-blocking copy)."""
        return list(self._effects)

    async def start_monitoring(self) -> None:
        if self._active:
            raise CmdSentryError(
                ErrorCode.MONITOR_ALREADY_ACTIVE,
                "Side effect monitoring is already active",
            )

        self._effects.clear()
        self._dispose_subscriptions()
        self._overflow_warned = False

        try:
            self._baseline = await self.create_snapshot()
        except CmdSentryError:
            raise
        except Exception as e:
            raise CmdSentryError(
                ErrorCode.MONITOR_FAILED,
                f"Failed to capture baseline snapshot: {e}",
            ) from e

        self._started_at = utc_now()
        self._attach_listeners()
        self._active = True
        logger.info(f"[SideEffectDetector:{self.id}] Monitoring started")

    async def stop_monitoring(self) -> List[SideEffect]:
        if not self._active:
            return []

        self._dispose_subscriptions()

        if self._baseline is not None:
            try:
                final = await self.create_snapshot()
                self._merge(diff_snapshots(self._baseline, final))
            except Exception as e:
                logger.error(f"[SideEffectDetector:{self.id}] Final snapshot diff failed: {e}")

        self._active = False
        stopped_at = utc_now()
        started_at = self._started_at or stopped_at
        effects = sorted(
            (e for e in self._effects if started_at <= e.timestamp <= stopped_at),
            key=lambda e: e.timestamp,
        )
        logger.info(f"[SideEffectDetector:{self.id}] Monitoring stopped, detected {len(effects)} side effects")
        return effects

    def dispose(self) -> None:
        self._dispose_subscriptions()
        self._active = False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _dispose_subscriptions(self) -> None:
        for sub in self._subscriptions:
            try:
                sub.dispose()
            except Exception as e:
                logger.warning(f"[SideEffectDetector:{self.id}] Failed to dispose listener: {e}")
        self._subscriptions.clear()

    def _merge(self, diff_effects: List[SideEffect]) -> None:
        for effect in diff_effects:
            match_index = next(
                (i for i, live in enumerate(self._effects) if live.matches(effect)),
                None,
            )
            if match_index is None:
                self._effects.append(effect)
                continue
            live = self._effects[match_index]
            if not live.details and effect.details:
                self._effects[match_index] = live.with_details(effect.details)

    def _record(self, effect: SideEffect) -> None:
        if not self._active:
            return
        if self._started_at is not None and effect.timestamp < self._started_at:
            return
        if len(self._effects) >= self.config.max_side_effects:
            if not self._overflow_warned:
                logger.warning(
                    f"[SideEffectDetector:{self.id}] Maximum side effects "
                    f"({self.config.max_side_effects}) reached, ignoring new effects"
                )
                self._overflow_warned = True
            return
        self._effects.append(effect)

    def _attach_listeners(self) -> None:
        host = self.host
        subs = self._subscriptions
        if self.config.monitor_file_system:
            subs.append(host.on_file_created(self._on_file_created))
            subs.append(host.on_file_changed(self._on_file_changed))
            subs.append(host.on_file_deleted(self._on_file_deleted))
        if self.config.monitor_editor_state:
            subs.append(host.on_document_opened(self._on_document_opened))
            subs.append(host.on_document_closed(self._on_document_closed))
            subs.append(host.on_active_document_changed(self._on_active_document_changed))
        if self.config.monitor_settings:
            subs.append(host.on_setting_changed(self._on_setting_changed))
        if self.config.monitor_views:
            subs.append(host.on_visible_editors_changed(self._on_visible_editors_changed))

    def _file_event(self, effect_type: SideEffectType, verb: str, path: str) -> None:
        if self._exclusions.is_excluded(path, roots=self.host.list_workspace_roots()):
            return
        self._record(SideEffect.create(effect_type, path, f"File {verb}: {path}", EffectCategory.FILE_SYSTEM))

    def _on_file_created(self, path: str) -> None:
        self._file_event(SideEffectType.FILE_CREATED, "created", path)

    def _on_file_changed(self, path: str) -> None:
        self._file_event(SideEffectType.FILE_MODIFIED, "modified", path)

    def _on_file_deleted(self, path: str) -> None:
        self._file_event(SideEffectType.FILE_DELETED, "deleted", path)

    def _on_document_opened(self, document: OpenDocument) -> None:
        self._record(SideEffect.create(
            SideEffectType.VIEW_OPENED, document.uri, f"Document opened: {document.uri}",
            EffectCategory.EDITOR,
            {"metadata": {"language_id": document.language_id, "line_count": len(document.text.split("\n"))}},
        ))

    def _on_document_closed(self, document: OpenDocument) -> None:
        self._record(SideEffect.create(
            SideEffectType.VIEW_CLOSED, document.uri, f"Document closed: {document.uri}",
            EffectCategory.EDITOR,
        ))

    def _on_active_document_changed(self, uri: Optional[str]) -> None:
        if uri is None:
            return
        self._record(SideEffect.create(
            SideEffectType.VIEW_OPENED, uri, f"Active editor changed: {uri}",
            EffectCategory.EDITOR, {"view_state": {"visible": True, "active": True}},
        ))

    def _on_setting_changed(self, keys: List[str]) -> None:
        watched = set(self.config.watched_settings)
        for key in keys:
            if key not in watched:
                continue
            self._record(SideEffect.create(
                SideEffectType.SETTING_CHANGED, key, f"Setting changed: {key}",
                EffectCategory.SETTINGS,
            ))

    def _on_visible_editors_changed(self, editors: List[EditorInfo]) -> None:
        self._record(SideEffect.create(
            SideEffectType.VIEW_OPENED, None, f"Visible editors changed: {len(editors)} editors visible",
            EffectCategory.VIEWS,
            {"metadata": {"editor_count": len(editors), "editor_paths": [e.document_uri for e in editors]}},
        ))

    def __repr__(self) -> str:
        state = "active" if self._active else "idle"
        return f"<SideEffectDetector {self.id} {state} effects={len(self._effects)}>"

