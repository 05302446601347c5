"""
CLI tests: main() driven in-process with argv lists.
"""
import json
import logging
import textwrap
import uuid

import pytest

from cmdsentry_cli.main import _parse_params, load_callable, main


@pytest.fixture(autouse=True)
def _restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def target_module(tmp_path, monkeypatch):
    """A throwaway importable module holding the functions the CLI runs."""
    name = f"cli_targets_{uuid.uuid4().hex[:8]}"
    (tmp_path / f"{name}.py").write_text(textwrap.dedent('''
        import os

        def greet(name, times=1):
            """Say hello."""
            return {"greeting": " ".join(["hello " + name] * times)}

        def scribble(root):
            with open(os.path.join(root, "scribble.txt"), "w") as f:
                f.write("scribbled")
            return "ok"

        def fail():
            raise RuntimeError("Permission denied: nope")
    '''))
    monkeypatch.syspath_prepend(str(tmp_path))
    return name


def test_no_subcommand_prints_help(capsys):
    assert main([]) == 2
    assert "usage: cmdsentry" in capsys.readouterr().out


def test_parse_params_decodes_json_values():
    assert _parse_params(["a=1", "b=true", "c=text", 'd={"k": [1]}', "e="]) == {
        "a": 1, "b": True, "c": "text", "d": {"k": [1]}, "e": "",
    }
    with pytest.raises(SystemExit):
        _parse_params(["novalue"])


def test_load_callable_errors(target_module):
    assert load_callable(f"{target_module}:greet").__name__ == "greet"
    with pytest.raises(SystemExit):
        load_callable(target_module)
    with pytest.raises(SystemExit):
        load_callable(f"{target_module}:missing")


def test_validate_command(capsys, tmp_path):
    signature = json.dumps([{"name": "count", "type": "number", "required": True}])

    assert main(["validate", "--signature", signature, "--values", '{"count": "42"}', "--json"]) == 0
    body = json.loads(capsys.readouterr().out)
    assert body["coerced_values"] == {"count": 42}

    assert main(["validate", "--signature", signature, "--values", "{}"]) == 1
    assert "Required parameter 'count' is missing" in capsys.readouterr().out


def test_validate_rejects_bad_json():
    with pytest.raises(SystemExit):
        main(["validate", "--signature", "not json"])


def test_snapshot_command(capsys, workspace):
    assert main(["snapshot", "--root", str(workspace), "--json"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["id"].startswith("snapshot_")
    assert data["file_count"] == 2


def test_run_success_report(capsys, workspace, target_module):
    code = main([
        "run", f"{target_module}:greet", "--root", str(workspace),
        "--param", "name=world", "--param", "times=2",
    ])
    out = capsys.readouterr().out
    assert code == 0
    assert "Success:    yes" in out
    assert "Side effects (0):" in out
    assert "Risk:       very_low (score 0)" in out
    assert "Tags:       cli, safe, success" in out


def test_run_json_includes_side_effects(capsys, workspace, target_module):
    code = main([
        "run", f"{target_module}:scribble", "--root", str(workspace),
        "--param", f"root={workspace}", "--risk-tier", "moderate", "--json",
    ])
    record = json.loads(capsys.readouterr().out)
    assert code == 0
    assert record["command"]["risk_tier"] == "moderate"
    effects = record["execution_result"]["side_effects"]
    assert [e["type"] for e in effects] == ["file_created"]
    assert record["analysis"]["risk_assessment"]["score"] == 3


def test_run_destructive_without_confirm_fails(capsys, workspace, target_module):
    code = main(["run", f"{target_module}:fail", "--root", str(workspace), "--risk-tier", "destructive"])
    out = capsys.readouterr().out
    assert code == 1
    assert "[SAFETY_001]" in out
    assert "Recoverable: no" in out


def test_run_failure_is_reported(capsys, workspace, target_module):
    code = main([
        "run", f"{target_module}:fail", "--root", str(workspace),
        "--risk-tier", "destructive", "--confirm", "--notes", "expected failure",
    ])
    out = capsys.readouterr().out
    assert code == 1
    assert "[EXEC_001] Permission denied: nope" in out
    assert "Recoverable: yes" in out
    assert "Error looks transient; a retry may succeed" in out


def test_status_unreachable_server(capsys):
    assert main(["status", "--url", "http://127.0.0.1:9", "--timeout", "0.5"]) == 1
    assert "Connection failed" in capsys.readouterr().out
