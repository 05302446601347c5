"""
Unit tests for the SafetyInterlock gate.
"""
import pytest

from cmdsentry.errors import ErrorCode
from cmdsentry.executor import CommandDescriptor, ExecutionContext, RiskTier, SafetyInterlock
from cmdsentry.host.local import LocalWorkspaceHost


def _ctx(risk_tier=RiskTier.SAFE, requirements=(), confirmed=False):
    command = CommandDescriptor(id="test.cmd", risk_tier=risk_tier, context_requirements=tuple(requirements))
    return ExecutionContext(command=command, confirmed=confirmed)


@pytest.fixture
def interlock():
    return SafetyInterlock()


def test_safe_command_passes(interlock, host):
    assert interlock.check(_ctx(), host) is None


def test_kill_switch_blocks_everything(interlock, host):
    interlock.engage_kill_switch(operator="tester")
    assert interlock.kill_switch_active

    verdict = interlock.check(_ctx(confirmed=True), host)
    assert verdict.code is ErrorCode.SAFETY_KILL_SWITCH

    interlock.disengage_kill_switch(operator="tester")
    assert interlock.check(_ctx(), host) is None


def test_kill_switch_takes_priority_over_confirmation(interlock, host):
    interlock.engage_kill_switch()
    verdict = interlock.check(_ctx(RiskTier.DESTRUCTIVE), host)
    assert verdict.code is ErrorCode.SAFETY_KILL_SWITCH


def test_destructive_requires_confirmation(interlock, host):
    verdict = interlock.check(_ctx(RiskTier.DESTRUCTIVE), host)
    assert verdict.code is ErrorCode.SAFETY_CONFIRMATION_REQUIRED
    assert "test.cmd" in verdict.reason

    assert interlock.check(_ctx(RiskTier.DESTRUCTIVE, confirmed=True), host) is None


def test_moderate_needs_no_confirmation(interlock, host):
    assert interlock.check(_ctx(RiskTier.MODERATE), host) is None


def test_workspace_precondition():
    interlock = SafetyInterlock()
    empty = LocalWorkspaceHost()
    verdict = interlock.check(_ctx(requirements=["workspaceFolderCount > 0"]), empty)
    assert verdict.code is ErrorCode.SAFETY_PRECONDITION_FAILED
    assert "no workspace folder" in verdict.reason


def test_active_editor_precondition(interlock, host):
    ctx = _ctx(requirements=["activeEditor"])
    assert interlock.check(ctx, host).code is ErrorCode.SAFETY_PRECONDITION_FAILED

    doc = host.open_document("src/main.py")
    host.set_active_document(doc.uri)
    assert interlock.check(ctx, host) is None


def test_unknown_precondition_is_logged_not_enforced(interlock, host, caplog):
    caplog.set_level("INFO", logger="cmdsentry.executor.interlock")
    assert interlock.check(_ctx(requirements=["gitOpenRepositoryCount > 0"]), host) is None
    assert any("not evaluated" in r.message for r in caplog.records)


def test_every_decision_is_audited(interlock, host, caplog):
    caplog.set_level("INFO", logger="cmdsentry.executor.interlock")
    interlock.check(_ctx(), host)
    interlock.check(_ctx(RiskTier.DESTRUCTIVE), host)

    audits = [r.message for r in caplog.records if r.message.startswith("AUDIT")]
    assert len(audits) == 2
    assert "Result=ALLOWED" in audits[0]
    assert "Result=BLOCKED" in audits[1]
