"""Unit tests for snapshot diffing."""
import pytest

from cmdsentry.errors import CmdSentryError, ErrorCode
from cmdsentry.host.interface import EditorInfo
from cmdsentry.monitoring.diff import diff_snapshots
from cmdsentry.monitoring.effects import EffectCategory, Severity, SideEffectType, utc_now
from cmdsentry.monitoring.snapshot import DocumentInfo, FileInfo, WorkspaceSnapshot


def _snap(detector_id="d1", **kwargs):
    kwargs.setdefault("workspace_roots", ["/ws"])
    return WorkspaceSnapshot(id="s", timestamp=utc_now(), detector_id=detector_id, **kwargs)


def _file(path, size=10, mtime=1.0, digest="aa", lines=1):
    return FileInfo(path=path, size=size, last_modified=mtime, content_hash=digest, line_count=lines)


def _doc(uri):
    return DocumentInfo(uri=uri, language_id="python", is_dirty=False, line_count=1, content_hash="x")


def _types(effects):
    return sorted(e.type.value for e in effects)


def test_identical_snapshots_yield_nothing():
    files = {"/ws/a.py": _file("/ws/a.py")}
    assert diff_snapshots(_snap(files=files), _snap(files=dict(files))) == []


def test_file_created_deleted_modified():
    before = _snap(files={"/ws/a.py": _file("/ws/a.py"), "/ws/gone.txt": _file("/ws/gone.txt")})
    after = _snap(files={
        "/ws/a.py": _file("/ws/a.py", size=12, mtime=2.0, digest="bb", lines=3),
        "/ws/new.txt": _file("/ws/new.txt", size=5),
    })
    effects = diff_snapshots(before, after)
    assert _types(effects) == ["file_created", "file_deleted", "file_modified"]

    by_type = {e.type: e for e in effects}
    modified = by_type[SideEffectType.FILE_MODIFIED]
    assert modified.details["file_sizes"] == {"before": 10, "after": 12}
    assert modified.details["content_hashes"] == {"before": "aa", "after": "bb"}
    assert modified.details["line_changes"] == {"before": 1, "after": 3}
    assert by_type[SideEffectType.FILE_DELETED].severity is Severity.MEDIUM
    assert by_type[SideEffectType.FILE_CREATED].category is EffectCategory.FILE_SYSTEM


def test_mtime_only_change_is_a_modification():
    before = _snap(files={"/ws/a.py": _file("/ws/a.py", mtime=1.0)})
    after = _snap(files={"/ws/a.py": _file("/ws/a.py", mtime=5.0)})
    effects = diff_snapshots(before, after)
    assert _types(effects) == ["file_modified"]
    assert effects[0].details == {}


def test_workspace_root_changes_are_high_severity():
    effects = diff_snapshots(_snap(workspace_roots=["/ws"]), _snap(workspace_roots=["/ws", "/lib"]))
    assert len(effects) == 1
    assert effects[0].type is SideEffectType.WORKSPACE_CHANGED
    assert effects[0].category is EffectCategory.WORKSPACE
    assert effects[0].severity is Severity.HIGH
    assert effects[0].details == {"change": "added"}


def test_documents_and_active_editor():
    before = _snap(open_documents=[_doc("file:///ws/a.py")], active_document="file:///ws/a.py")
    after = _snap(open_documents=[_doc("file:///ws/b.py")], active_document="file:///ws/b.py")
    effects = diff_snapshots(before, after)

    assert _types(effects) == ["view_closed", "view_opened", "view_opened"]
    active = [e for e in effects if "Active document" in e.description]
    assert active[0].details["previous"] == "file:///ws/a.py"
    assert all(e.category is EffectCategory.EDITOR for e in effects)


def test_visible_editors():
    before = _snap(visible_editors=[EditorInfo("file:///ws/a.py")])
    after = _snap(visible_editors=[EditorInfo("file:///ws/b.py")])
    effects = diff_snapshots(before, after)
    assert _types(effects) == ["view_closed", "view_opened"]
    assert all(e.category is EffectCategory.VIEWS for e in effects)


def test_settings():
    effects = diff_snapshots(
        _snap(settings={"editor.fontSize": 14, "files.autoSave": "off"}),
        _snap(settings={"editor.fontSize": 16, "files.autoSave": "off"}),
    )
    assert len(effects) == 1
    assert effects[0].resource == "editor.fontSize"
    assert effects[0].details["setting_changes"] == {"before": 14, "after": 16}


def test_snapshots_from_different_detectors_are_incompatible():
    with pytest.raises(CmdSentryError) as exc:
        diff_snapshots(_snap("d1"), _snap("d2"))
    assert exc.value.code is ErrorCode.SNAPSHOT_INCOMPATIBLE
