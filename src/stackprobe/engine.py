"""
Detection engine facade.

Wires the pieces together for callers that do not want to assemble them:
- validate the repository reference
- collect files through a fetcher
- run every detection rule and summarize
- reconcile against a catalog snapshot when one is given

The engine holds no per-run state; one instance can serve any number of runs.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from pathlib import Path

from stackprobe.config import StackProbeConfig
from stackprobe.errors import TransportError
from stackprobe.matcher import detect_tools
from stackprobe.patterns import PatternRegistry
from stackprobe.reconciler import reconcile_detections as _reconcile
from stackprobe.references import validate_repository_reference
from stackprobe.schemas import (
    AnalysisReport,
    AnalysisStatus,
    AnalysisSummary,
    CatalogTool,
    RawDetection,
    ReconciledDetection,
    RepositoryFile,
)
from stackprobe.summary import summarize_detections
from stackprobe.transport import RepositoryFetcher, collect_repository_files

logger = logging.getLogger(__name__)


class DetectionEngine:
    """Runs detection rules over repository files."""

    def __init__(self, registry: PatternRegistry | None = None, config: StackProbeConfig | None = None) -> None:
        self.registry = registry if registry is not None else PatternRegistry.default()
        self.config = config if config is not None else StackProbeConfig.default()

    @classmethod
    def from_config(cls, config: StackProbeConfig) -> "DetectionEngine":
        """Build an engine, loading a custom rule file when one is configured."""
        if config.detection.patterns_file:
            registry = PatternRegistry.from_file(Path(config.detection.patterns_file))
        else:
            registry = PatternRegistry.default()
        return cls(registry=registry, config=config)

    def analyze_repository(
        self, files: Iterable[RepositoryFile]
    ) -> tuple[list[RawDetection], AnalysisSummary]:
        """
        Detect tools in already-fetched files.

        Args:
            files: Repository files, in any order

        Returns:
            (detections in rule order, summary over them)
        """
        detections = detect_tools(files, self.registry)
        summary = summarize_detections(detections)
        logger.info(
            f"Detected {summary.total_tools} tools across "
            f"{len(summary.distinct_categories)} categories"
        )
        return detections, summary

    def reconcile(
        self, detections: Iterable[RawDetection], catalog: Iterable[CatalogTool]
    ) -> list[ReconciledDetection]:
        return _reconcile(detections, catalog)

    def run(
        self,
        url: str,
        fetcher: RepositoryFetcher,
        branch: str | None = None,
        catalog: Sequence[CatalogTool] | None = None,
    ) -> AnalysisReport:
        """
        Analyse one repository end to end.

        Validation failures produce a ``rejected`` report and nothing is
        fetched. A repository that cannot be reached produces a ``failed``
        report. Files that fail individually are skipped.

        Args:
            url: Untrusted repository URL
            fetcher: Transport used to read files
            branch: Branch to analyse (default: configured default branch)
            catalog: Optional catalog snapshot for reconciliation

        Returns:
            AnalysisReport in a terminal state
        """
        fetch = self.config.fetch
        branch = branch or fetch.default_branch
        started_at = datetime.utcnow()

        reference, reason = validate_repository_reference(url)
        if reference is None:
            return AnalysisReport(
                repository_url=str(url),
                branch=branch,
                status=AnalysisStatus.REJECTED,
                started_at=started_at,
                completed_at=datetime.utcnow(),
                error=reason,
            )

        try:
            files = collect_repository_files(
                fetcher,
                reference,
                branch=branch,
                key_files=fetch.key_files,
                workflow_dir=fetch.workflow_dir,
                max_workers=fetch.max_workers,
            )
        except TransportError as e:
            logger.error(f"Analysis of {reference.slug} failed: {e.message}")
            return AnalysisReport(
                repository_url=url,
                branch=branch,
                status=AnalysisStatus.FAILED,
                reference=reference,
                started_at=started_at,
                completed_at=datetime.utcnow(),
                error=e.message,
            )

        detections, summary = self.analyze_repository(files)
        reconciled = self.reconcile(detections, catalog) if catalog is not None else []

        return AnalysisReport(
            repository_url=url,
            branch=branch,
            status=AnalysisStatus.COMPLETED,
            reference=reference,
            started_at=started_at,
            completed_at=datetime.utcnow(),
            files_fetched=len(files),
            detections=detections,
            reconciled=reconciled,
            summary=summary,
        )


def analyze_repository(files: Iterable[RepositoryFile]) -> tuple[list[RawDetection], AnalysisSummary]:
    """Detect tools with the built-in rule table."""
    return DetectionEngine().analyze_repository(files)


def reconcile_detections(
    detections: Iterable[RawDetection], catalog: Iterable[CatalogTool]
) -> list[ReconciledDetection]:
    """Reconcile detections against a catalog snapshot."""
    return _reconcile(detections, catalog)
