"""
cmdsentry/host/local.py

Purpose:
    A WorkspaceHost over real directories with an in-process command registry.

Semantics:
    - File-system primitives hit the real disk through the default executor.
    - Editor documents, settings and visible editors live in memory.
    - Every mutation made through this host's API publishes the matching
      change event. Out-of-band disk changes publish nothing; the detector's
      stop-time diff still sees them.
    - Registered commands may be plain callables (run in a worker thread) or
      coroutine functions (awaited on the loop). Events published from a
      worker thread are marshalled back onto the loop.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional

from cmdsentry.utils.observer import Signal, Subscription
from .interface import DirEntry, EditorInfo, FileStat, OpenDocument, Selection
from .uri import ResourceUri

logger = logging.getLogger(__name__)

HOST_VERSION = "cmdsentry-local/1.0"

_LANGUAGE_BY_EXTENSION = {
    ".py": "python",
    ".js": "javascript",
    ".ts": "typescript",
    ".json": "json",
    ".md": "markdown",
    ".html": "html",
    ".css": "css",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".sh": "shellscript",
    ".txt": "plaintext",
}


@dataclass(frozen=True)
class RegisteredCommand:
    command_id: str
    handler: Callable[..., Any]
    is_async: bool


class CommandRegistry:
    """In-process registry of callables addressable by command id."""

    def __init__(self):
        self._commands: Dict[str, RegisteredCommand] = {}

    def register(self, command_id: str, handler: Callable[..., Any]) -> None:
        if command_id in self._commands:
            logger.warning(f"[CommandRegistry] Replacing existing command {command_id}")
        self._commands[command_id] = RegisteredCommand(
            command_id=command_id,
            handler=handler,
            is_async=inspect.iscoroutinefunction(handler),
        )

    def unregister(self, command_id: str) -> bool:
        return self._commands.pop(command_id, None) is not None

    def get(self, command_id: str) -> Optional[RegisteredCommand]:
        return self._commands.get(command_id)

    def ids(self) -> List[str]:
        return sorted(self._commands)

    async def invoke(self, command_id: str, args: List[Any]) -> Any:
        command = self._commands.get(command_id)
        if command is None:
            raise LookupError(f"Command '{command_id}' not found")
        if command.is_async:
            return await command.handler(*args)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: command.handler(*args))

    def __contains__(self, command_id: str) -> bool:
        return command_id in self._commands

    def __len__(self) -> int:
        return len(self._commands)


class LocalWorkspaceHost:
    def __init__(
        self,
        roots: Optional[List[str]] = None,
        settings: Optional[Dict[str, Any]] = None,
        registry: Optional[CommandRegistry] = None,
        name: Optional[str] = None,
    ):
        self._roots = [os.path.abspath(r) for r in (roots or [])]
        self._settings: Dict[str, Any] = dict(settings or {})
        self.registry = registry or CommandRegistry()
        self._name = name

        self._documents: Dict[str, OpenDocument] = {}
        self._active: Optional[str] = None
        self._editors: List[EditorInfo] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        self.file_created = Signal("file_created")
        self.file_changed = Signal("file_changed")
        self.file_deleted = Signal("file_deleted")
        self.document_opened = Signal("document_opened")
        self.document_closed = Signal("document_closed")
        self.active_document_changed = Signal("active_document_changed")
        self.visible_editors_changed = Signal("visible_editors_changed")
        self.setting_changed = Signal("setting_changed")

    # -- Identity ----------------------------------------------------------

    def host_version(self) -> str:
        return HOST_VERSION

    def workspace_name(self) -> Optional[str]:
        if self._name:
            return self._name
        return os.path.basename(self._roots[0]) if self._roots else None

    # -- Command registry --------------------------------------------------

    async def invoke_command(self, command_id: str, args: List[Any]) -> Any:
        self._loop = asyncio.get_running_loop()
        return await self.registry.invoke(command_id, list(args))

    # -- Workspace roots ---------------------------------------------------

    def list_workspace_roots(self) -> List[str]:
        return list(self._roots)

    def add_workspace_root(self, path: str) -> None:
        root = os.path.abspath(path)
        if root not in self._roots:
            self._roots.append(root)

    def remove_workspace_root(self, path: str) -> None:
        root = os.path.abspath(path)
        if root in self._roots:
            self._roots.remove(root)

    def resolve(self, path: str) -> str:
        if os.path.isabs(path) or not self._roots:
            return os.path.abspath(path)
        return os.path.abspath(os.path.join(self._roots[0], path))

    # -- File system ---------------------------------------------------------

    async def _blocking(self, fn: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    async def stat_file(self, path: str) -> FileStat:
        def _stat() -> FileStat:
            st = os.stat(path)
            return FileStat(
                size=st.st_size,
                mtime=st.st_mtime,
                is_file=os.path.isfile(path),
                is_dir=os.path.isdir(path),
                is_symlink=os.path.islink(path),
            )
        return await self._blocking(_stat)

    async def read_file_text(self, path: str) -> str:
        def _read() -> str:
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        return await self._blocking(_read)

    async def list_directory(self, path: str) -> List[DirEntry]:
        def _list() -> List[DirEntry]:
            with os.scandir(path) as it:
                return [
                    DirEntry(
                        name=entry.name,
                        path=os.path.join(path, entry.name).replace("\\", "/"),
                        is_file=entry.is_file(follow_symlinks=False),
                        is_dir=entry.is_dir(follow_symlinks=False),
                    )
                    for entry in sorted(it, key=lambda e: e.name)
                ]
        return await self._blocking(_list)

    def file_exists(self, path: str) -> bool:
        return os.path.exists(path)

    def write_file(self, path: str, text: str) -> str:
        """Write a file and publish created/changed. Safe to call from a worker thread."""
        full = self.resolve(path)
        existed = os.path.exists(full)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        with open(full, "w", encoding="utf-8") as f:
            f.write(text)
        self._publish(self.file_changed if existed else self.file_created, full)
        return full

    def delete_file(self, path: str) -> str:
        full = self.resolve(path)
        os.remove(full)
        self._publish(self.file_deleted, full)
        return full

    # -- Subscriptions -------------------------------------------------------

    def on_file_created(self, callback: Callable[[str], Any]) -> Subscription:
        return self.file_created.connect(callback)

    def on_file_changed(self, callback: Callable[[str], Any]) -> Subscription:
        return self.file_changed.connect(callback)

    def on_file_deleted(self, callback: Callable[[str], Any]) -> Subscription:
        return self.file_deleted.connect(callback)

    def on_document_opened(self, callback: Callable[[OpenDocument], Any]) -> Subscription:
        return self.document_opened.connect(callback)

    def on_document_closed(self, callback: Callable[[OpenDocument], Any]) -> Subscription:
        return self.document_closed.connect(callback)

    def on_active_document_changed(self, callback: Callable[[Optional[str]], Any]) -> Subscription:
        return self.active_document_changed.connect(callback)

    def on_visible_editors_changed(self, callback: Callable[[List[EditorInfo]], Any]) -> Subscription:
        return self.visible_editors_changed.connect(callback)

    def on_setting_changed(self, callback: Callable[[List[str]], Any]) -> Subscription:
        return self.setting_changed.connect(callback)

    def _publish(self, signal: Signal, *args: Any) -> None:
        loop = self._loop
        if loop is not None and not loop.is_closed():
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is not loop:
                loop.call_soon_threadsafe(signal.emit, *args)
                return
        signal.emit(*args)

    # -- Settings ------------------------------------------------------------

    def get_setting(self, key: str) -> Any:
        return self._settings.get(key)

    def update_setting(self, key: str, value: Any) -> None:
        if self._settings.get(key) == value and key in self._settings:
            return
        self._settings[key] = value
        self._publish(self.setting_changed, [key])

    # -- Editor state ----------------------------------------------------------

    def get_open_documents(self) -> List[OpenDocument]:
        return list(self._documents.values())

    def get_active_document(self) -> Optional[str]:
        return self._active

    def get_visible_editors(self) -> List[EditorInfo]:
        return list(self._editors)

    def open_document(self, path: str, language_id: Optional[str] = None) -> OpenDocument:
        full = self.resolve(path)
        uri = str(ResourceUri.file(full))
        if uri in self._documents:
            return self._documents[uri]
        text = ""
        if os.path.isfile(full):
            with open(full, "r", encoding="utf-8") as f:
                text = f.read()
        language = language_id or _LANGUAGE_BY_EXTENSION.get(os.path.splitext(full)[1].lower(), "plaintext")
        document = OpenDocument(uri=uri, language_id=language, is_dirty=False, text=text)
        self._documents[uri] = document
        self._publish(self.document_opened, document)
        return document

    def close_document(self, uri: str) -> None:
        document = self._documents.pop(uri, None)
        if document is None:
            return
        self._publish(self.document_closed, document)
        if any(e.document_uri == uri for e in self._editors):
            self.set_visible_editors([e for e in self._editors if e.document_uri != uri])
        if self._active == uri:
            self.set_active_document(None)

    def edit_document(self, uri: str, text: str) -> None:
        document = self._documents.get(uri)
        if document is None:
            raise KeyError(f"Document not open: {uri}")
        self._documents[uri] = replace(document, text=text, is_dirty=True)

    def set_active_document(self, uri: Optional[str]) -> None:
        if uri == self._active:
            return
        self._active = uri
        self._publish(self.active_document_changed, uri)

    def set_visible_editors(self, editors: List[EditorInfo]) -> None:
        self._editors = list(editors)
        self._publish(self.visible_editors_changed, list(self._editors))

    # -- Rollback primitives -----------------------------------------------

    async def get_document_text(self, uri: str) -> str:
        document = self._documents.get(uri)
        if document is None:
            raise KeyError(f"Document not open: {uri}")
        return document.text

    async def replace_document_text(self, uri: str, text: str) -> None:
        self.edit_document(uri, text)

    async def show_document(self, uri: str, selection: Optional[Selection] = None) -> None:
        if uri not in self._documents:
            raise KeyError(f"Document not open: {uri}")
        editors = [e for e in self._editors if e.document_uri != uri]
        column = next((e.column for e in self._editors if e.document_uri == uri), 1)
        editors.append(EditorInfo(document_uri=uri, column=column, selection=selection))
        self.set_visible_editors(editors)
        self.set_active_document(uri)
