"""
cmdsentry/host/interface.py

Purpose:
    The abstract interface for the environment commands run in.
    The engine never touches a file system, editor or command registry
    directly; everything goes through a WorkspaceHost.

Semantics:
    - invoke_command() dispatches to the external command registry and may
      raise. It has no cancellation primitive.
    - on_*() subscriptions return a Disposable; disposing detaches exactly
      that listener.
    - File-system primitives are async and may raise OSError.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class FileStat:
    size: int
    mtime: float
    is_file: bool
    is_dir: bool
    is_symlink: bool = False


@dataclass(frozen=True)
class DirEntry:
    name: str
    path: str
    is_file: bool
    is_dir: bool


@dataclass(frozen=True)
class Selection:
    start_line: int = 0
    start_character: int = 0
    end_line: int = 0
    end_character: int = 0


@dataclass(frozen=True)
class OpenDocument:
    """A text document the host editor currently has open."""
    uri: str
    language_id: str
    is_dirty: bool
    text: str


@dataclass(frozen=True)
class EditorInfo:
    document_uri: str
    column: int = 1
    selection: Optional[Selection] = None


@runtime_checkable
class Disposable(Protocol):
    def dispose(self) -> None:
        ...


@runtime_checkable
class WorkspaceHost(Protocol):
    """
    Interface for the host environment.
    Implementations might include:
    - LocalWorkspaceHost (real directories, in-process command registry)
    - An editor bridge forwarding to a running IDE
    - Test doubles recording every call
    """

    def host_version(self) -> str:
        ...

    def workspace_name(self) -> Optional[str]:
        ...

    # -- Command registry -------------------------------------------------

    async def invoke_command(self, command_id: str, args: List[Any]) -> Any:
        ...

    # -- File system ------------------------------------------------------

    def list_workspace_roots(self) -> List[str]:
        ...

    async def stat_file(self, path: str) -> FileStat:
        ...

    async def read_file_text(self, path: str) -> str:
        ...

    async def list_directory(self, path: str) -> List[DirEntry]:
        ...

    def file_exists(self, path: str) -> bool:
        ...

    # -- Change notifications --------------------------------------------

    def on_file_created(self, callback: Callable[[str], Any]) -> Disposable:
        ...

    def on_file_changed(self, callback: Callable[[str], Any]) -> Disposable:
        ...

    def on_file_deleted(self, callback: Callable[[str], Any]) -> Disposable:
        ...

    def on_document_opened(self, callback: Callable[[OpenDocument], Any]) -> Disposable:
        ...

    def on_document_closed(self, callback: Callable[[OpenDocument], Any]) -> Disposable:
        ...

    def on_active_document_changed(self, callback: Callable[[Optional[str]], Any]) -> Disposable:
        ...

    def on_visible_editors_changed(self, callback: Callable[[List[EditorInfo]], Any]) -> Disposable:
        ...

    def on_setting_changed(self, callback: Callable[[List[str]], Any]) -> Disposable:
        ...

    # -- Editor / settings state -----------------------------------------

    def get_setting(self, key: str) -> Any:
        ...

    def get_open_documents(self) -> List[OpenDocument]:
        ...

    def get_active_document(self) -> Optional[str]:
        ...

    def get_visible_editors(self) -> List[EditorInfo]:
        ...

    # -- Rollback primitives ---------------------------------------------

    async def get_document_text(self, uri: str) -> str:
        ...

    async def replace_document_text(self, uri: str, text: str) -> None:
        ...

    async def show_document(self, uri: str, selection: Optional[Selection] = None) -> None:
        ...
