"""Unit tests for workspace snapshots and their helpers."""
import pytest

from cmdsentry.base.config import DetectionConfig
from cmdsentry.monitoring.snapshot import (
    ExclusionMatcher,
    SnapshotBuilder,
    content_hash,
    glob_to_regex,
    line_count,
    workspace_relative,
)


def test_content_hash_is_stable_fnv1a():
    # FNV-1a 64 reference value for the empty input
    assert content_hash("") == "cbf29ce484222325"
    assert content_hash("abc") == content_hash("abc")
    assert content_hash("abc") != content_hash("abd")
    assert len(content_hash("anything")) == 16


def test_line_count_splits_on_newline():
    assert line_count("") == 1
    assert line_count("a\nb") == 2
    assert line_count("a\nb\n") == 3


@pytest.mark.parametrize("pattern,path,expected", [
    ("**/node_modules/**", "/node_modules/pkg/index.js", True),
    ("**/node_modules/**", "/src/node_modules/x", True),
    ("**/node_modules/**", "/src/main.py", False),
    ("**/*.log", "/logs/app.log", True),
    ("**/*.log", "/app.log.txt", False),
    ("/src/*.py", "/src/main.py", True),
    ("/src/*.py", "/src/pkg/main.py", False),
    ("/src/?.py", "/src/a.py", True),
    ("/a+b(c)/*", "/a+b(c)/x", True),
])
def test_glob_to_regex(pattern, path, expected):
    assert bool(glob_to_regex(pattern).match(path)) is expected


def test_workspace_relative():
    assert workspace_relative("/ws/src/a.py", ["/other", "/ws"]) == "/src/a.py"
    assert workspace_relative("/ws", ["/ws"]) == "/"
    assert workspace_relative("/wsx/a.py", ["/ws"]) == "/wsx/a.py"


def test_exclusions_ignore_the_root_location():
    matcher = ExclusionMatcher(["**/tmp/**"])
    # The workspace itself lives under /tmp; only paths inside it are matched
    assert not matcher.is_excluded("/tmp/ws/src/a.py", roots=["/tmp/ws"])
    assert matcher.is_excluded("/tmp/ws/tmp/cache.bin", roots=["/tmp/ws"])
    assert matcher.is_excluded("/tmp/ws/tmp", is_dir=True, roots=["/tmp/ws"])


@pytest.mark.asyncio
async def test_builder_walks_files_and_honours_exclusions(host, workspace):
    builder = SnapshotBuilder(host, DetectionConfig(), "detector_test")
    snapshot = await builder.capture()

    root = workspace.as_posix()
    assert f"{root}/src/main.py" in snapshot.files
    assert f"{root}/README.md" in snapshot.files
    assert not any("node_modules" in path for path in snapshot.files)
    assert f"{root}/src" in snapshot.directories

    main = snapshot.files[f"{root}/src/main.py"]
    assert main.content_hash == content_hash("print('hello')\n")
    assert main.line_count == 2
    assert snapshot.settings["editor.fontSize"] == 14
    assert snapshot.workspace_roots == [str(workspace)]
    assert snapshot.detector_id == "detector_test"


@pytest.mark.asyncio
async def test_builder_depth_cap(host, workspace):
    deep = workspace / "a" / "b" / "c"
    deep.mkdir(parents=True)
    (deep / "deep.txt").write_text("x")
    (workspace / "a" / "top.txt").write_text("y")

    snapshot = await SnapshotBuilder(host, DetectionConfig(max_depth=2), "d").capture()
    names = {p.rsplit("/", 1)[-1] for p in snapshot.files}
    assert "top.txt" in names
    assert "deep.txt" not in names


@pytest.mark.asyncio
async def test_binary_and_large_files_get_metadata_only(host, workspace):
    (workspace / "image.png").write_bytes(b"\x89PNG\r\n")
    (workspace / "big.txt").write_text("x" * 64)

    snapshot = await SnapshotBuilder(host, DetectionConfig(text_size_limit=32), "d").capture()
    root = workspace.as_posix()
    assert snapshot.files[f"{root}/image.png"].content_hash is None
    assert snapshot.files[f"{root}/big.txt"].content_hash is None
    assert snapshot.files[f"{root}/big.txt"].size == 64


@pytest.mark.asyncio
async def test_undecodable_text_file_is_marked_unreadable(host, workspace):
    (workspace / "broken.txt").write_bytes(b"\xff\xfe\xfa")
    snapshot = await SnapshotBuilder(host, DetectionConfig(), "d").capture()
    info = snapshot.files[f"{workspace.as_posix()}/broken.txt"]
    assert info.readable is False
    assert info.content_hash is None


@pytest.mark.asyncio
async def test_document_content_only_kept_for_rollback(host, workspace):
    doc = host.open_document("src/main.py")
    host.set_active_document(doc.uri)

    builder = SnapshotBuilder(host, DetectionConfig(), "d")
    plain = await builder.capture()
    full = await builder.capture(include_content=True)

    assert plain.document(doc.uri).content is None
    assert full.document(doc.uri).content == "print('hello')\n"
    assert full.active_document == doc.uri
    assert full.summary()["document_count"] == 1
