"""
cmdsentry/analysis/capture.py

Purpose:
    Analyse execution results and keep them as TestResults for later
    retrieval, search, statistics and export.

Semantics:
    - capture_result() builds a TestSession from the host (best-effort:
      settings or state the host cannot provide are left out), runs the
      ResultAnalyzer, derives tags and stores the record keyed by id.
    - The store is in memory and bounded; the oldest record is evicted
      when a new one would exceed max_results.
    - Search results and per-command listings are ordered newest first.
"""

from __future__ import annotations

import logging
import os
import uuid
from collections import OrderedDict
from typing import Any, Dict, List, Mapping, Optional, Union

from cmdsentry.base.config import CaptureConfig
from cmdsentry.errors import CmdSentryError, ErrorCode
from cmdsentry.executor.models import CommandDescriptor, ExecutionResult
from cmdsentry.host.interface import WorkspaceHost
from cmdsentry.monitoring.effects import utc_now
from cmdsentry.monitoring.snapshot import line_count
from .analyzer import ResultAnalyzer
from .export import export_results
from .models import (
    ActiveFileInfo,
    SearchCriteria,
    TestConfiguration,
    TestResult,
    TestSession,
    WorkspaceInfo,
)

logger = logging.getLogger(__name__)

# Settings copied into WorkspaceInfo.relevant_settings
RELEVANT_SETTINGS = (
    "editor.fontSize",
    "editor.tabSize",
    "files.autoSave",
    "workbench.colorTheme",
)

CriteriaLike = Union[SearchCriteria, Mapping[str, Any], None]


class ResultCapture:
    def __init__(
        self,
        host: WorkspaceHost,
        config: Optional[CaptureConfig] = None,
        analyzer: Optional[ResultAnalyzer] = None,
    ):
        self.host = host
        self.config = config or CaptureConfig()
        self.analyzer = analyzer or ResultAnalyzer()
        self._results: "OrderedDict[str, TestResult]" = OrderedDict()
        self._session_counter = 0

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    async def capture_result(
        self,
        command: CommandDescriptor,
        parameters: Dict[str, Any],
        execution_result: ExecutionResult,
        configuration: Union[TestConfiguration, Mapping[str, Any], None] = None,
        notes: Optional[str] = None,
    ) -> TestResult:
        logger.info(f"[ResultCapture] Capturing result for {command.id}")
        try:
            if not isinstance(configuration, TestConfiguration):
                configuration = TestConfiguration.model_validate(dict(configuration or {}))
            session = self._gather_session(configuration)
            analysis = self.analyzer.analyze(command, execution_result)
            tags = self.analyzer.tags(command, execution_result, analysis)
        except CmdSentryError:
            raise
        except Exception as e:
            raise CmdSentryError(
                ErrorCode.CAPTURE_FAILED,
                f"Failed to analyse result for {command.id}: {e}",
                details={"command_id": command.id},
            ) from e

        result = TestResult(
            id=f"result_{uuid.uuid4().hex[:12]}",
            command=command,
            parameters=dict(parameters),
            execution_result=execution_result,
            session=session,
            analysis=analysis,
            timestamp=utc_now(),
            tags=tuple(tags),
            notes=notes,
        )
        self._store(result)
        logger.info(
            f"[ResultCapture] Captured {result.id} with "
            f"{analysis.side_effect_analysis.total_effects} side effects "
            f"(risk={analysis.risk_assessment.overall_risk.value})"
        )
        return result

    def _store(self, result: TestResult) -> None:
        self._results[result.id] = result
        while len(self._results) > max(self.config.max_results, 1):
            evicted_id, _ = self._results.popitem(last=False)
            logger.debug(f"[ResultCapture] Evicted oldest result {evicted_id}")

    def _gather_session(self, configuration: TestConfiguration) -> TestSession:
        self._session_counter += 1
        environment = {
            key: os.environ[key]
            for key in self.config.environment_keys
            if os.environ.get(key)
        }
        return TestSession(
            session_id=f"session_{self._session_counter}_{uuid.uuid4().hex[:6]}",
            host_version=self._safe(self.host.host_version, "unknown"),
            workspace=self._gather_workspace(),
            environment=environment,
            configuration=configuration,
        )

    def _gather_workspace(self) -> WorkspaceInfo:
        roots = self._safe(self.host.list_workspace_roots, []) or []
        documents = self._safe(self.host.get_open_documents, []) or []
        active_uri = self._safe(self.host.get_active_document, None)

        active_file = None
        for doc in documents:
            if doc.uri == active_uri:
                active_file = ActiveFileInfo(uri=doc.uri, language=doc.language_id, line_count=line_count(doc.text))
                break

        settings: Dict[str, Any] = {}
        for key in RELEVANT_SETTINGS:
            try:
                settings[key] = self.host.get_setting(key)
            except Exception:
                logger.debug(f"[ResultCapture] Setting {key} not accessible, omitted")

        return WorkspaceInfo(
            name=self._safe(self.host.workspace_name, None),
            root_path=roots[0] if roots else None,
            folder_count=len(roots),
            open_file_count=len(documents),
            active_file=active_file,
            relevant_settings=settings,
        )

    def _safe(self, getter, default):
        try:
            return getter()
        except Exception as e:
            logger.debug(f"[ResultCapture] Host query {getattr(getter, '__name__', getter)} failed: {e}")
            return default

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    def get_result(self, result_id: str) -> Optional[TestResult]:
        return self._results.get(result_id)

    def require_result(self, result_id: str) -> TestResult:
        result = self._results.get(result_id)
        if result is None:
            raise CmdSentryError(
                ErrorCode.CAPTURE_RESULT_NOT_FOUND,
                f"Result {result_id} not found",
                details={"result_id": result_id},
            )
        return result

    def get_results_for_command(self, command_id: str) -> List[TestResult]:
        return self.search_results(SearchCriteria(command_id=command_id))

    def all_results(self) -> List[TestResult]:
        return list(self._results.values())

    def search_results(self, criteria: CriteriaLike = None) -> List[TestResult]:
        if criteria is None:
            criteria = SearchCriteria()
        elif not isinstance(criteria, SearchCriteria):
            criteria = SearchCriteria.model_validate(dict(criteria))

        matches = [r for r in self._results.values() if self._matches(r, criteria)]
        return sorted(matches, key=lambda r: r.timestamp, reverse=True)

    @staticmethod
    def _matches(result: TestResult, c: SearchCriteria) -> bool:
        if c.command_id and result.command_id != c.command_id:
            return False
        if c.success is not None and result.execution_result.success != c.success:
            return False
        if c.risk_level is not None and result.analysis.risk_assessment.overall_risk != c.risk_level:
            return False
        if c.tags and not all(tag in result.tags for tag in c.tags):
            return False
        if c.start is not None and result.timestamp < c.start:
            return False
        if c.end is not None and result.timestamp > c.end:
            return False
        if c.has_notes is not None and bool(result.notes) != c.has_notes:
            return False
        return True

    def get_statistics(self) -> Dict[str, Any]:
        results = list(self._results.values())
        total = len(results)
        successful = sum(1 for r in results if r.execution_result.success)

        risk_distribution: Dict[str, int] = {}
        tag_distribution: Dict[str, int] = {}
        for r in results:
            risk = r.analysis.risk_assessment.overall_risk.value
            risk_distribution[risk] = risk_distribution.get(risk, 0) + 1
            for tag in r.tags:
                tag_distribution[tag] = tag_distribution.get(tag, 0) + 1

        return {
            "total_results": total,
            "successful_results": successful,
            "failed_results": total - successful,
            "success_rate": successful / total if total else 0.0,
            "commands_covered": len({r.command_id for r in results}),
            "average_execution_time_ms": (
                sum(r.execution_result.duration_ms for r in results) / total if total else 0.0
            ),
            "risk_distribution": risk_distribution,
            "tag_distribution": tag_distribution,
        }

    def export_results(self, fmt: str, criteria: CriteriaLike = None) -> str:
        if criteria is None:
            results = self.all_results()
        else:
            results = self.search_results(criteria)
        return export_results(results, fmt)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def delete_result(self, result_id: str) -> bool:
        return self._results.pop(result_id, None) is not None

    def clear_results(self) -> None:
        self._results.clear()
        logger.info("[ResultCapture] Cleared all results")

    def __len__(self) -> int:
        return len(self._results)
