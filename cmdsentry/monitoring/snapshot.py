"""
cmdsentry/monitoring/snapshot.py

Purpose:
    Point-in-time capture of workspace state: files under the workspace
    roots, watched settings, open documents, active document and visible
    editors.

Semantics:
    - Excluded paths (glob list) are never entered or recorded.
    - Recursion is capped at `max_depth` levels below each root.
    - Text files under `text_size_limit` also get a line count and an
      FNV-1a content hash. A text file that cannot be read is kept with
      readable=False; it never fails the snapshot.
    - Per-entry I/O is awaited sequentially.
"""

from __future__ import annotations

import logging
import os
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional, Pattern, Sequence

from cmdsentry.base.config import DetectionConfig
from cmdsentry.host.interface import EditorInfo, WorkspaceHost
from .effects import utc_now

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = frozenset({
    ".txt", ".md", ".js", ".ts", ".json", ".html", ".css", ".scss",
    ".py", ".java", ".cpp", ".c", ".h", ".xml", ".yaml", ".yml",
    ".sh", ".bat", ".ps1", ".sql", ".php", ".rb", ".go", ".rs",
})

_FNV_OFFSET = 0xCBF29CE484222325
_FNV_PRIME = 0x100000001B3
_MASK_64 = 0xFFFFFFFFFFFFFFFF


def content_hash(text: str) -> str:
    """64-bit FNV-1a over the UTF-8 encoding, as 16 hex digits."""
    h = _FNV_OFFSET
    for byte in text.encode("utf-8", errors="surrogatepass"):
        h ^= byte
        h = (h * _FNV_PRIME) & _MASK_64
    return f"{h:016x}"


def line_count(text: str) -> int:
    return len(text.split("\n"))


def is_text_file(path: str) -> bool:
    return os.path.splitext(path)[1].lower() in TEXT_EXTENSIONS


def glob_to_regex(pattern: str) -> Pattern[str]:
    """
    Translate an exclusion glob into an anchored regex.
    `**` spans path separators, `*` and `?` do not.
    """
    out = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif ch == "*":
            out.append("[^/]*")
            i += 1
        elif ch == "?":
            out.append("[^/]")
            i += 1
        else:
            out.append(re.escape(ch))
            i += 1
    return re.compile("^" + "".join(out) + "$")


def workspace_relative(path: str, roots: Sequence[str]) -> str:
    """`path` as "/sub/file" relative to the first root containing it, else unchanged."""
    candidate = path.replace("\\", "/")
    for root in roots:
        base = root.replace("\\", "/").rstrip("/")
        if candidate == base:
            return "/"
        if candidate.startswith(base + "/"):
            return candidate[len(base):]
    return candidate


class ExclusionMatcher:
    """Patterns are matched against the workspace-relative path ("/src/a.py")."""

    def __init__(self, patterns: Sequence[str]):
        self.patterns = tuple(patterns)
        self._regexes = [glob_to_regex(p) for p in self.patterns]

    def is_excluded(self, path: str, is_dir: bool = False, roots: Sequence[str] = ()) -> bool:
        candidate = workspace_relative(path, roots)
        if is_dir and not candidate.endswith("/"):
            candidate += "/"
        return any(rx.match(candidate) for rx in self._regexes)


@dataclass(frozen=True)
class FileInfo:
    path: str
    size: int
    last_modified: float
    type: str = "file"
    readable: bool = True
    content_hash: Optional[str] = None
    line_count: Optional[int] = None

    def differs_from(self, other: "FileInfo") -> bool:
        return (
            self.size != other.size
            or self.last_modified != other.last_modified
            or self.content_hash != other.content_hash
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "size": self.size,
            "last_modified": self.last_modified,
            "type": self.type,
            "readable": self.readable,
            "content_hash": self.content_hash,
            "line_count": self.line_count,
        }


@dataclass(frozen=True)
class DocumentInfo:
    uri: str
    language_id: str
    is_dirty: bool
    line_count: int
    content_hash: str
    # Only kept for snapshots taken for rollback
    content: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uri": self.uri,
            "language_id": self.language_id,
            "is_dirty": self.is_dirty,
            "line_count": self.line_count,
            "content_hash": self.content_hash,
        }


@dataclass(frozen=True)
class WorkspaceSnapshot:
    """
    Immutable capture of workspace state.
    Two snapshots are comparable only if they share a detector_id.
    """
    id: str
    timestamp: datetime
    detector_id: str
    workspace_roots: List[str] = field(default_factory=list)
    files: Dict[str, FileInfo] = field(default_factory=dict)
    directories: FrozenSet[str] = frozenset()
    settings: Dict[str, Any] = field(default_factory=dict)
    open_documents: List[DocumentInfo] = field(default_factory=list)
    active_document: Optional[str] = None
    visible_editors: List[EditorInfo] = field(default_factory=list)

    def document(self, uri: str) -> Optional[DocumentInfo]:
        for doc in self.open_documents:
            if doc.uri == uri:
                return doc
        return None

    def active_editor(self) -> Optional[EditorInfo]:
        for editor in self.visible_editors:
            if editor.document_uri == self.active_document:
                return editor
        return None

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "file_count": len(self.files),
            "document_count": len(self.open_documents),
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.summary()
        data.update({
            "workspace_roots": list(self.workspace_roots),
            "files": {path: info.to_dict() for path, info in self.files.items()},
            "directories": sorted(self.directories),
            "settings": dict(self.settings),
            "open_documents": [doc.to_dict() for doc in self.open_documents],
            "active_document": self.active_document,
            "visible_editors": [
                {"document_uri": e.document_uri, "column": e.column} for e in self.visible_editors
            ],
        })
        return data


class SnapshotBuilder:
    """Walks a WorkspaceHost and produces WorkspaceSnapshots."""

    def __init__(self, host: WorkspaceHost, config: DetectionConfig, detector_id: str):
        self.host = host
        self.config = config
        self.detector_id = detector_id
        self.exclusions = ExclusionMatcher(config.exclude_patterns)

    async def capture(self, include_content: bool = False) -> WorkspaceSnapshot:
        roots = list(self.host.list_workspace_roots())
        files: Dict[str, FileInfo] = {}
        directories: set = set()

        if self.config.monitor_file_system:
            for root in roots:
                await self._scan_directory(root, root, files, directories)

        settings = self._capture_settings() if self.config.monitor_settings else {}

        open_documents: List[DocumentInfo] = []
        active_document: Optional[str] = None
        visible_editors: List[EditorInfo] = []
        if self.config.monitor_editor_state:
            for doc in self.host.get_open_documents():
                open_documents.append(DocumentInfo(
                    uri=doc.uri,
                    language_id=doc.language_id,
                    is_dirty=doc.is_dirty,
                    line_count=line_count(doc.text),
                    content_hash=content_hash(doc.text),
                    content=doc.text if include_content else None,
                ))
            active_document = self.host.get_active_document()
        if self.config.monitor_views or include_content:
            visible_editors = list(self.host.get_visible_editors())

        snapshot = WorkspaceSnapshot(
            id=f"snapshot_{uuid.uuid4().hex[:12]}",
            timestamp=utc_now(),
            detector_id=self.detector_id,
            workspace_roots=roots,
            files=files,
            directories=frozenset(directories),
            settings=settings,
            open_documents=open_documents,
            active_document=active_document,
            visible_editors=visible_editors,
        )
        logger.debug(
            f"[SnapshotBuilder] Captured {snapshot.id}: {len(files)} files, "
            f"{len(open_documents)} documents"
        )
        return snapshot

    def _depth(self, root: str, path: str) -> int:
        rel = os.path.relpath(path, root)
        if rel in (".", ""):
            return 0
        return len(rel.replace("\\", "/").split("/"))

    async def _scan_directory(self, root: str, dir_path: str, files: Dict[str, FileInfo], directories: set) -> None:
        try:
            entries = await self.host.list_directory(dir_path)
        except OSError as e:
            logger.warning(f"[SnapshotBuilder] Failed to read directory {dir_path}: {e}")
            return

        for entry in entries:
            if entry.is_dir:
                if self.exclusions.is_excluded(entry.path, is_dir=True, roots=(root,)):
                    continue
                directories.add(entry.path)
                if self._depth(root, entry.path) < self.config.max_depth:
                    await self._scan_directory(root, entry.path, files, directories)
            elif entry.is_file:
                if self.exclusions.is_excluded(entry.path, roots=(root,)):
                    continue
                info = await self._file_info(entry.path)
                if info is not None:
                    files[entry.path] = info

    async def _file_info(self, path: str) -> Optional[FileInfo]:
        try:
            stat = await self.host.stat_file(path)
        except OSError as e:
            logger.debug(f"[SnapshotBuilder] Skipping inaccessible file {path}: {e}")
            return None

        info = FileInfo(
            path=path,
            size=stat.size,
            last_modified=stat.mtime,
            type="symlink" if stat.is_symlink else "file",
        )
        if not self.config.capture_details:
            return info
        if not is_text_file(path) or stat.size >= self.config.text_size_limit:
            return info

        try:
            text = await self.host.read_file_text(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"[SnapshotBuilder] Unreadable text file {path}: {e}")
            return FileInfo(path=path, size=stat.size, last_modified=stat.mtime, type=info.type, readable=False)

        return FileInfo(
            path=path,
            size=stat.size,
            last_modified=stat.mtime,
            type=info.type,
            content_hash=content_hash(text),
            line_count=line_count(text),
        )

    def _capture_settings(self) -> Dict[str, Any]:
        settings: Dict[str, Any] = {}
        for key in self.config.watched_settings:
            try:
                settings[key] = self.host.get_setting(key)
            except Exception as e:
                logger.debug(f"[SnapshotBuilder] Setting {key} not accessible: {e}")
        return settings
