"""End-to-end engine flow: catalog, guarded execution, capture, rollback."""
import pytest

from cmdsentry.errors import CmdSentryError, ErrorCode
from cmdsentry.executor import CommandDescriptor, RiskTier
from cmdsentry.validation import ParameterSpec


@pytest.mark.asyncio
async def test_format_document_then_roll_back(engine, host):
    doc = host.open_document("src/main.py")
    await host.show_document(doc.uri)

    async def uppercase(uri):
        text = await host.get_document_text(str(uri))
        await host.replace_document_text(str(uri), text.upper())
        return {"changed": True}

    host.registry.register("demo.uppercase", uppercase)
    engine.register_command(CommandDescriptor(
        id="demo.uppercase",
        risk_tier=RiskTier.MODERATE,
        signature=(ParameterSpec.of("document", "uri", required=True),),
        context_requirements=("activeEditor",),
    ))

    result = await engine.execute_command(
        "demo.uppercase",
        {"document": doc.uri},
        create_snapshot=True,
        caller_context={"origin": "test"},
        notes="uppercase pass",
    )

    assert result.success, result.error
    assert result.snapshot_id is not None
    assert await host.get_document_text(doc.uri) == "PRINT('HELLO')\n"

    record = engine.search_results({"command_id": "demo.uppercase"})[0]
    assert record.notes == "uppercase pass"
    assert record.session.configuration.create_snapshot is True
    assert record.session.configuration.caller_context == {"origin": "test"}
    assert record.session.workspace.active_file.uri == doc.uri
    assert engine.get_result(record.id) is record

    await engine.restore_snapshot(result.snapshot_id)
    assert await host.get_document_text(doc.uri) == "print('hello')\n"


@pytest.mark.asyncio
async def test_precondition_failure_is_captured(engine, host):
    host.registry.register("demo.needs_editor", lambda: "ran")
    engine.register_command(CommandDescriptor(id="demo.needs_editor", context_requirements=("activeEditor",)))

    result = await engine.execute_command("demo.needs_editor")
    assert result.error.code == ErrorCode.SAFETY_PRECONDITION_FAILED.value
    assert host.invocations == []
    assert engine.get_statistics()["failed_results"] == 1


@pytest.mark.asyncio
async def test_unregistered_command(engine):
    with pytest.raises(CmdSentryError) as exc:
        await engine.execute_command("demo.unknown")
    assert exc.value.code is ErrorCode.EXEC_COMMAND_NOT_FOUND


def test_engine_validate_uses_workspace_root(engine, workspace):
    outcome = engine.validate([ParameterSpec.of("path", "uri")], {"path": "missing.txt"})
    assert outcome.valid
    assert outcome.coerced_values["path"].fs_path == f"{workspace.as_posix()}/missing.txt"
    assert [w.code.value for w in outcome.warnings] == ["PATH_TO_URI_CONVERSION", "FILE_NOT_FOUND"]


def test_commands_catalog_is_sorted(engine):
    engine.register_command(CommandDescriptor(id="b.cmd"))
    engine.register_command(CommandDescriptor(id="a.cmd"))
    assert [c.id for c in engine.commands()] == ["a.cmd", "b.cmd"]


def test_kill_switch_passthrough(engine):
    engine.engage_kill_switch("tester")
    assert engine.kill_switch_active
    engine.disengage_kill_switch("tester")
    assert not engine.kill_switch_active
