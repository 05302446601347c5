"""
Unit tests for ResultCapture: storage, search, statistics and export.
"""
import csv
import io
import json
from datetime import timedelta

import pytest

from cmdsentry.analysis import ResultCapture, SearchCriteria
from cmdsentry.analysis.models import OverallRisk
from cmdsentry.base.config import CaptureConfig
from cmdsentry.errors import CmdSentryError, ErrorCode
from cmdsentry.executor import CommandDescriptor, ExecutionError, ExecutionResult, RiskTier
from cmdsentry.monitoring.effects import utc_now


def _execution(command_id, success=True, duration_ms=12.0):
    started = utc_now()
    return ExecutionResult(
        command_id=command_id,
        success=success,
        started_at=started,
        ended_at=started + timedelta(milliseconds=duration_ms),
        duration_ms=duration_ms,
        result="ok" if success else None,
        error=None if success else ExecutionError(message="failed hard", type="RuntimeError", code="EXEC_001"),
    )


async def _capture(capture, command_id="demo.cmd", success=True, notes=None, **descriptor):
    command = CommandDescriptor(id=command_id, **descriptor)
    return await capture.capture_result(
        command, {"x": 1}, _execution(command_id, success), {"timeout_ms": 1000}, notes=notes,
    )


@pytest.fixture
def capture(host):
    return ResultCapture(host)


@pytest.mark.asyncio
async def test_capture_builds_session_and_analysis(host, capture, monkeypatch):
    monkeypatch.setenv("CI", "true")
    doc = host.open_document("src/main.py")
    host.set_active_document(doc.uri)

    record = await _capture(capture, notes="first run")

    assert record.id.startswith("result_")
    assert record.parameters == {"x": 1}
    assert record.notes == "first run"
    assert record.session.host_version == host.host_version()
    assert record.session.configuration.timeout_ms == 1000
    assert record.session.environment["CI"] == "true"

    workspace = record.session.workspace
    assert workspace.folder_count == 1
    assert workspace.open_file_count == 1
    assert workspace.active_file.language == "python"
    assert workspace.relevant_settings["editor.fontSize"] == 14
    assert record.analysis.risk_assessment.overall_risk is OverallRisk.VERY_LOW
    assert "success" in record.tags

    assert capture.get_result(record.id) is record
    assert capture.require_result(record.id) is record


@pytest.mark.asyncio
async def test_invalid_configuration_is_a_capture_failure(capture):
    with pytest.raises(CmdSentryError) as exc:
        await capture.capture_result(
            CommandDescriptor(id="demo.cmd"), {}, _execution("demo.cmd"), {"timeout_ms": -5},
        )
    assert exc.value.code is ErrorCode.CAPTURE_FAILED
    assert len(capture) == 0


def test_require_unknown_result(capture):
    assert capture.get_result("missing") is None
    with pytest.raises(CmdSentryError) as exc:
        capture.require_result("missing")
    assert exc.value.code is ErrorCode.CAPTURE_RESULT_NOT_FOUND


@pytest.mark.asyncio
async def test_search_filters_and_orders_newest_first(capture):
    first = await _capture(capture, "demo.a")
    second = await _capture(capture, "demo.a", success=False, notes="flaky")
    await _capture(capture, "demo.b", risk_tier=RiskTier.DESTRUCTIVE)

    by_command = capture.search_results({"command_id": "demo.a"})
    assert [r.id for r in by_command] == [second.id, first.id]
    assert capture.get_results_for_command("demo.a") == by_command

    assert [r.id for r in capture.search_results(SearchCriteria(success=False))] == [second.id]
    assert [r.id for r in capture.search_results({"has_notes": True})] == [second.id]
    assert len(capture.search_results({"tags": ["destructive"]})) == 1
    assert len(capture.search_results({"risk_level": "very_low"})) == 1
    assert capture.search_results({"start": utc_now() + timedelta(hours=1)}) == []
    assert len(capture.search_results()) == 3


@pytest.mark.asyncio
async def test_naive_datetimes_are_treated_as_utc(capture):
    await _capture(capture)
    naive_past = (utc_now() - timedelta(hours=1)).replace(tzinfo=None)
    assert len(capture.search_results({"start": naive_past})) == 1


@pytest.mark.asyncio
async def test_statistics(capture):
    assert capture.get_statistics()["success_rate"] == 0.0

    await _capture(capture, "demo.a")
    await _capture(capture, "demo.a", success=False)
    await _capture(capture, "demo.b")

    stats = capture.get_statistics()
    assert stats["total_results"] == 3
    assert stats["successful_results"] == 2
    assert stats["failed_results"] == 1
    assert stats["success_rate"] == pytest.approx(2 / 3)
    assert stats["commands_covered"] == 2
    assert stats["average_execution_time_ms"] == pytest.approx(12.0)
    assert stats["risk_distribution"] == {"very_low": 2, "low": 1}
    assert stats["tag_distribution"]["success"] == 2


@pytest.mark.asyncio
async def test_oldest_result_is_evicted(host):
    capture = ResultCapture(host, CaptureConfig(max_results=2))
    first = await _capture(capture, "demo.1")
    await _capture(capture, "demo.2")
    await _capture(capture, "demo.3")

    assert len(capture) == 2
    assert capture.get_result(first.id) is None
    assert [r.command_id for r in capture.all_results()] == ["demo.2", "demo.3"]


@pytest.mark.asyncio
async def test_export_formats(capture):
    record = await _capture(capture, notes="with, comma")
    await _capture(capture, "demo.fail", success=False)

    data = json.loads(capture.export_results("json"))
    assert {r["command_id"] for r in data} == {"demo.cmd", "demo.fail"}
    assert data[0]["analysis"]["risk_assessment"]["overall_risk"] in {"very_low", "low"}

    rows = list(csv.reader(io.StringIO(capture.export_results("csv"))))
    assert rows[0][:3] == ["ID", "Command ID", "Success"]
    assert rows[1][0] == record.id
    assert rows[1][-1] == "with, comma"

    markdown = capture.export_results("MARKDOWN", {"success": False})
    assert markdown.startswith("# Command Test Results")
    assert "## demo.fail" in markdown
    assert "- **Error**: failed hard" in markdown
    assert "demo.cmd" not in markdown


def test_unknown_export_format(capture):
    with pytest.raises(CmdSentryError) as exc:
        capture.export_results("xml")
    assert exc.value.code is ErrorCode.CAPTURE_EXPORT_FORMAT
    assert exc.value.details["supported"] == ["csv", "json", "markdown"]


@pytest.mark.asyncio
async def test_delete_and_clear(capture):
    record = await _capture(capture)
    assert capture.delete_result(record.id)
    assert not capture.delete_result(record.id)

    await _capture(capture)
    capture.clear_results()
    assert len(capture) == 0
