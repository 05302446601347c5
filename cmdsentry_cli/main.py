"""
cmdsentry CLI: run, validate and snapshot against a local workspace, or serve the API.

Usage examples:
    cmdsentry serve --root ./project --plugin mypkg.commands
    cmdsentry validate --signature '[{"name": "count", "type": "number", "required": true}]' --values '{"count": "42"}'
    cmdsentry snapshot --root ./project
    cmdsentry run mypkg.tasks:format_all --root ./project --param path=src --snapshot
    cmdsentry status --url http://127.0.0.1:8787
"""

from __future__ import annotations

import argparse
import asyncio
import importlib
import json
import logging
import sys
from typing import Any, Callable, Dict, List, Optional

import httpx

from cmdsentry.analysis.models import SearchCriteria, TestResult
from cmdsentry.base.config import get_config, setup_logging
from cmdsentry.engine import Engine
from cmdsentry.errors import CmdSentryError
from cmdsentry.executor.models import CommandDescriptor, ExecutionResult, RiskTier
from cmdsentry.host.local import LocalWorkspaceHost
from cmdsentry.validation.types import ParameterSpec

logger = logging.getLogger("cmdsentry.cli")


def _parse_json(label: str, raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise SystemExit(f"❌ {label} is not valid JSON: {e}")


def _parse_params(pairs: List[str]) -> Dict[str, Any]:
    """KEY=VALUE pairs; values that parse as JSON are decoded, the rest stay strings."""
    params: Dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise SystemExit(f"❌ --param expects KEY=VALUE, got {pair!r}")
        try:
            params[key] = json.loads(value)
        except json.JSONDecodeError:
            params[key] = value
    return params


def load_callable(target: str) -> Callable[..., Any]:
    module_name, sep, attr = target.partition(":")
    if not sep or not attr:
        raise SystemExit(f"❌ Expected MODULE:FUNCTION, got {target!r}")
    module = importlib.import_module(module_name)
    try:
        return getattr(module, attr)
    except AttributeError:
        raise SystemExit(f"❌ {module_name} has no attribute {attr!r}")


def build_engine(roots: List[str]) -> Engine:
    host = LocalWorkspaceHost(roots=roots)
    return Engine(host, get_config())


def format_report(result: ExecutionResult, record: Optional[TestResult]) -> str:
    lines = [
        f"Command:    {result.command_id}",
        f"Success:    {'yes' if result.success else 'no'}",
        f"Duration:   {result.duration_ms:.1f}ms",
    ]
    if result.error is not None:
        lines.append(f"Error:      [{result.error.code}] {result.error.message}")
        lines.append(f"Recoverable: {'yes' if result.error.recoverable else 'no'}")
    if result.snapshot_id:
        lines.append(f"Snapshot:   {result.snapshot_id}")

    lines.append(f"Side effects ({len(result.side_effects)}):")
    for effect in result.side_effects:
        lines.append(f"  - [{effect.severity.value}] {effect.type.value}: {effect.description}")

    if record is not None:
        risk = record.analysis.risk_assessment
        lines.append(f"Risk:       {risk.overall_risk.value} (score {risk.score})")
        lines.append(f"Automation: {risk.automation_suitability.value}")
        for factor in risk.risk_factors:
            lines.append(f"  * {factor}")
        for rec in record.analysis.recommendations:
            lines.append(f"  > {rec}")
        lines.append(f"Tags:       {', '.join(record.tags)}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------

def run_serve(args) -> int:
    from cmdsentry.server.api import serve

    engine = build_engine(args.root)
    for plugin in args.plugin or []:
        module = importlib.import_module(plugin)
        register = getattr(module, "register", None)
        if register is None:
            raise SystemExit(f"❌ Plugin {plugin} has no register(engine, host) function")
        register(engine, engine.host)
        logger.info(f"[CLI] Loaded plugin {plugin}")
    serve(engine, port=args.port, host=args.host)
    return 0


def run_validate(args) -> int:
    signature = [ParameterSpec.from_dict(p) for p in _parse_json("--signature", args.signature)]
    values = _parse_json("--values", args.values)
    engine = build_engine(args.root)
    outcome = engine.validate(signature, values)
    if args.json:
        print(json.dumps(outcome.to_dict(), indent=2, default=str))
    else:
        print("✅ Valid" if outcome.valid else outcome.format_errors())
        if outcome.warnings:
            print(outcome.format_warnings())
    return 0 if outcome.valid else 1


def run_snapshot(args) -> int:
    engine = build_engine(args.root)
    snapshot = asyncio.run(engine.create_snapshot())
    if args.json:
        print(json.dumps(snapshot.to_dict(), indent=2, default=str))
    else:
        summary = snapshot.summary()
        print(f"📸 {summary['id']} at {summary['timestamp']}")
        print(f"   files: {summary['file_count']}  documents: {summary['document_count']}")
    return 0


async def _run_once(engine: Engine, args) -> int:
    handler = load_callable(args.target)
    engine.host.registry.register(args.target, handler)
    engine.register_command(CommandDescriptor(
        id=args.target,
        risk_tier=RiskTier(args.risk_tier),
        category="cli",
        display_name=getattr(handler, "__name__", args.target),
        description=(handler.__doc__ or "").strip(),
    ))

    result = await engine.execute_command(
        args.target,
        parameters=_parse_params(args.param),
        timeout_ms=args.timeout_ms,
        create_snapshot=args.snapshot,
        confirmed=args.confirm,
        notes=args.notes,
    )
    records = engine.search_results(SearchCriteria(command_id=args.target))
    record = records[0] if records else None

    if args.json:
        payload = record.to_dict() if record is not None else result.to_dict()
        print(json.dumps(payload, indent=2, default=str))
    else:
        print(format_report(result, record))
    return 0 if result.success else 1


def run_command(args) -> int:
    engine = build_engine(args.root)
    try:
        return asyncio.run(_run_once(engine, args))
    finally:
        engine.dispose()


def run_status(args) -> int:
    base = args.url.rstrip("/")
    try:
        with httpx.Client(base_url=base, timeout=args.timeout) as client:
            health = client.get("/health")
            health.raise_for_status()
            stats = client.get("/results/stats")
            stats.raise_for_status()
    except httpx.HTTPError as e:
        print(f"❌ Connection failed: {e}")
        return 1
    print(f"✅ Connected to {base}")
    print(json.dumps({"health": health.json(), "statistics": stats.json()}, indent=2))
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    config = get_config()
    parser = argparse.ArgumentParser(prog="cmdsentry", description="Guarded command execution with side-effect analysis")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--root", action="append", default=[], help="Workspace root (repeatable)")
    serve_parser.add_argument("--host", default=config.api_host)
    serve_parser.add_argument("--port", type=int, default=config.api_port)
    serve_parser.add_argument("--plugin", action="append", help="Module exposing register(engine, host)")
    serve_parser.set_defaults(func=run_serve)

    validate_parser = subparsers.add_parser("validate", help="Validate parameter values against a signature")
    validate_parser.add_argument("--signature", required=True, help="JSON list of parameter specs")
    validate_parser.add_argument("--values", default="{}", help="JSON object of parameter values")
    validate_parser.add_argument("--root", action="append", default=[], help="Base directory for relative paths")
    validate_parser.add_argument("--json", action="store_true")
    validate_parser.set_defaults(func=run_validate)

    snapshot_parser = subparsers.add_parser("snapshot", help="Snapshot a workspace")
    snapshot_parser.add_argument("--root", action="append", default=[], required=True)
    snapshot_parser.add_argument("--json", action="store_true")
    snapshot_parser.set_defaults(func=run_snapshot)

    run_parser = subparsers.add_parser("run", help="Execute MODULE:FUNCTION as a monitored command")
    run_parser.add_argument("target", help="MODULE:FUNCTION")
    run_parser.add_argument("--root", action="append", default=[], required=True)
    run_parser.add_argument("--param", action="append", help="KEY=VALUE (repeatable)")
    run_parser.add_argument("--risk-tier", choices=[t.value for t in RiskTier], default=RiskTier.SAFE.value)
    run_parser.add_argument("--timeout-ms", type=int, default=None)
    run_parser.add_argument("--snapshot", action="store_true", help="Take a restorable snapshot first")
    run_parser.add_argument("--confirm", action="store_true", help="Confirm a destructive command")
    run_parser.add_argument("--notes")
    run_parser.add_argument("--json", action="store_true")
    run_parser.set_defaults(func=run_command)

    status_parser = subparsers.add_parser("status", help="Query a running API server")
    status_parser.add_argument("--url", default=f"http://{config.api_host}:{config.api_port}")
    status_parser.add_argument("--timeout", type=float, default=10.0)
    status_parser.set_defaults(func=run_status)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 2

    setup_logging()
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        return args.func(args)
    except CmdSentryError as e:
        print(f"❌ [{e.code.value}] {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
