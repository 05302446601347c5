"""
cmdsentry/host/uri.py

Resource locators passed to host commands.

A ResourceUri is the typed form of "a file or resource the command should act
on". Commands receive ResourceUri instances rather than raw strings so that a
path and a URI with a scheme are never confused.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, unquote, urlsplit, urlunsplit

# Two or more chars so a Windows drive letter ("C:") is never read as a scheme
_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]+:")
_DRIVE_RE = re.compile(r"^[A-Za-z]:[\\/]")


@dataclass(frozen=True)
class ResourceUri:
    scheme: str
    path: str
    authority: str = ""
    query: str = ""
    fragment: str = ""

    @classmethod
    def file(cls, path: str, base_dir: Optional[str] = None) -> "ResourceUri":
        """Build a file URI from an absolute or relative file-system path."""
        if not isinstance(path, str) or not path.strip():
            raise ValueError("file path must be a non-empty string")
        if "\x00" in path:
            raise ValueError("file path contains a NUL byte")

        normalized = path.replace("\\", "/")
        if _DRIVE_RE.match(path):
            return cls(scheme="file", path="/" + normalized)
        if not normalized.startswith("/"):
            root = base_dir if base_dir is not None else os.getcwd()
            normalized = os.path.join(root, normalized).replace("\\", "/")
        return cls(scheme="file", path=os.path.normpath(normalized).replace("\\", "/"))

    @classmethod
    def parse(cls, value: str) -> "ResourceUri":
        """Parse a string with an explicit scheme (``file:///x``, ``untitled:Untitled-1``)."""
        if not isinstance(value, str) or not value.strip():
            raise ValueError("URI must be a non-empty string")
        if "\x00" in value or any(c.isspace() for c in value.strip()):
            raise ValueError(f"URI contains illegal characters: {value!r}")
        if not _SCHEME_RE.match(value):
            raise ValueError(f"URI has no scheme: {value!r}")

        parts = urlsplit(value)
        # Reading the port validates the authority (raises ValueError on junk)
        _port = parts.port
        return cls(
            scheme=parts.scheme.lower(),
            authority=parts.netloc,
            path=unquote(parts.path),
            query=parts.query,
            fragment=parts.fragment,
        )

    @staticmethod
    def has_scheme(value: str) -> bool:
        return bool(_SCHEME_RE.match(value)) and not _DRIVE_RE.match(value)

    @property
    def is_file(self) -> bool:
        return self.scheme == "file"

    @property
    def fs_path(self) -> str:
        if re.match(r"^/[A-Za-z]:/", self.path):
            return self.path[1:]
        return self.path

    def __str__(self) -> str:
        path = quote(self.path, safe="/:@")
        if self.scheme == "file":
            return f"file://{self.authority}{path}"
        return urlunsplit((self.scheme, self.authority, path, self.query, self.fragment))
