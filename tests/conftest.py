"""Pytest configuration for cmdsentry."""
import os
from typing import Any, List, Optional, Tuple

import pytest

from cmdsentry.base.config import CmdSentryConfig, DetectionConfig, ExecutionConfig, set_config
from cmdsentry.engine import Engine
from cmdsentry.host.interface import Selection
from cmdsentry.host.local import LocalWorkspaceHost


def pytest_configure():
    os.environ.setdefault("CMDSENTRY_LOG_LEVEL", "DEBUG")


class RecordingHost(LocalWorkspaceHost):
    """LocalWorkspaceHost that records invocations and rollback calls."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.invocations: List[Tuple[str, List[Any]]] = []
        self.replaced: List[Tuple[str, str]] = []
        self.shown: List[Tuple[str, Optional[Selection]]] = []

    async def invoke_command(self, command_id, args):
        self.invocations.append((command_id, list(args)))
        return await super().invoke_command(command_id, args)

    async def replace_document_text(self, uri, text):
        self.replaced.append((uri, text))
        await super().replace_document_text(uri, text)

    async def show_document(self, uri, selection=None):
        self.shown.append((uri, selection))
        await super().show_document(uri, selection)


@pytest.fixture(autouse=True)
def _reset_global_config():
    set_config(None)
    yield
    set_config(None)


@pytest.fixture
def workspace(tmp_path):
    root = tmp_path / "ws"
    (root / "src").mkdir(parents=True)
    (root / "src" / "main.py").write_text("print('hello')\n")
    (root / "README.md").write_text("# Project\n\nSome text.\n")
    (root / "node_modules" / "pkg").mkdir(parents=True)
    (root / "node_modules" / "pkg" / "index.js").write_text("module.exports = {};\n")
    return root


@pytest.fixture
def config():
    return CmdSentryConfig(
        detection=DetectionConfig(),
        execution=ExecutionConfig(default_timeout_ms=5_000, zombie_grace_ms=50),
    )


@pytest.fixture
def host(workspace):
    return RecordingHost(roots=[str(workspace)], settings={"editor.fontSize": 14, "editor.tabSize": 4})


@pytest.fixture
def engine(host, config):
    eng = Engine(host, config)
    yield eng
    eng.dispose()
