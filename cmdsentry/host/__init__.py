from .interface import (
    DirEntry,
    Disposable,
    EditorInfo,
    FileStat,
    OpenDocument,
    Selection,
    WorkspaceHost,
)
from .uri import ResourceUri

__all__ = [
    "DirEntry",
    "Disposable",
    "EditorInfo",
    "FileStat",
    "OpenDocument",
    "ResourceUri",
    "Selection",
    "WorkspaceHost",
]
