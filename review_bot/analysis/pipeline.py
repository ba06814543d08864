"""
Analysis pipeline.

Resolves a change selection into analyzable files, fans the files out to
the configured analyzers and merges their findings:

1. Parse diff text (or accept explicit files/paths)
2. Drop unknown and deleted entries; keep paths some analyzer accepts
3. Fetch contents concurrently, bounded by ``pipeline.fetch_concurrency``
4. Run analyzers (concurrently in worker threads, or sequentially)
5. Merge results in analyzer order once every analyzer has finished
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Union

from review_bot.analysis.diff_parser import ChangeKind, DiffParser, FileChange, LineMarker
from review_bot.analyzers.base import Analyzer
from review_bot.config import Settings
from review_bot.exceptions import VCSError
from review_bot.models import AnalysisContext, AnalyzableFile, Issue, Origin
from review_bot.observability.errors import ErrorSeverity, ErrorTracker
from review_bot.observability.logging import LogContext
from review_bot.observability.metrics import MetricNames, MetricsCollector

logger = logging.getLogger(__name__)

Source = Union[str, Sequence[Union[AnalyzableFile, str]]]


class ContentProvider(Protocol):
    """Supplies file contents at a revision (``None`` means the working tree)."""

    def get_file_content(self, path: str, revision: Optional[str] = None) -> Optional[str]: ...


class DiffSource(Protocol):
    """Supplies the diff text for a selection."""

    def get_diff(self, context: AnalysisContext) -> str: ...


@dataclass
class AnalysisRun:
    """State of one pipeline invocation."""
    context: AnalysisContext
    files: List[AnalyzableFile] = field(default_factory=list)
    analyzers: List[str] = field(default_factory=list)
    issues: List[Issue] = field(default_factory=list)
    failed_files: List[str] = field(default_factory=list)
    failed_analyzers: List[str] = field(default_factory=list)
    duration_ms: float = 0.0


class AnalysisPipeline:
    """
    Orchestrates analyzers over a set of changed files.

    Analyzers are independent: each owns its issue list, and a failure in
    one contributes zero issues without affecting the others.
    """

    def __init__(
        self,
        settings: Settings,
        analyzers: Sequence[Analyzer],
        content_provider: Optional[ContentProvider] = None,
        metrics: Optional[MetricsCollector] = None,
        error_tracker: Optional[ErrorTracker] = None,
        parser: Optional[DiffParser] = None,
    ):
        """
        Initialize pipeline.

        Args:
            settings: Run settings
            analyzers: Analyzers in the order their results are merged
            content_provider: Source of file contents; when omitted, diff
                entries are analyzed using the post-change lines in the diff
            metrics: Optional metrics collector
            error_tracker: Optional tracker for analyzer failures
            parser: Diff parser (defaults to a new ``DiffParser``)
        """
        self.settings = settings
        self.analyzers = list(analyzers)
        self.content_provider = content_provider
        self.metrics = metrics or MetricsCollector(settings)
        self.error_tracker = error_tracker
        self.parser = parser or DiffParser()

    async def run(self, source: Source, context: Optional[AnalysisContext] = None) -> List[Issue]:
        """Analyze ``source`` and return the merged issues."""
        analysis_run = await self.execute(source, context)
        return analysis_run.issues

    async def run_for_context(
        self,
        context: AnalysisContext,
        vcs: Optional[DiffSource] = None,
    ) -> List[Issue]:
        """Fetch the diff for ``context``, analyze it and return the merged issues."""
        analysis_run = await self.execute_for_context(context, vcs)
        return analysis_run.issues

    async def execute_for_context(
        self,
        context: AnalysisContext,
        vcs: Optional[DiffSource] = None,
    ) -> AnalysisRun:
        """
        Fetch the diff for ``context`` off the event loop and analyze it.

        A VCS failure is logged and treated as an empty selection.

        Args:
            context: Change selection
            vcs: Diff source; defaults to the content provider

        Returns:
            AnalysisRun: Run record
        """
        vcs = vcs or self.content_provider
        try:
            diff_text = await asyncio.to_thread(vcs.get_diff, context)
        except VCSError as e:
            logger.warning(
                f"Could not resolve changes: {e.message}",
                extra={"origin": context.origin.value, "command": e.command},
            )
            diff_text = ""

        return await self.execute(diff_text, context)

    async def execute(self, source: Source, context: Optional[AnalysisContext] = None) -> AnalysisRun:
        """
        Run the full pipeline and return the run record.

        Args:
            source: Unified diff text, or a sequence of ``AnalyzableFile``
                objects and/or paths on disk
            context: Change selection the source came from

        Returns:
            AnalysisRun: Files, analyzers, issues and timing
        """
        context = context or AnalysisContext()
        analysis_run = AnalysisRun(
            context=context,
            analyzers=[a.get_name() for a in self.analyzers],
        )
        start_time = time.perf_counter()

        with LogContext(origin=context.origin.value, **_selection_fields(context)):
            analysis_run.files = await self._resolve_files(source, context, analysis_run)
            self.metrics.record_counter(MetricNames.FILES_RESOLVED, len(analysis_run.files))

            if not analysis_run.files:
                logger.info("No files to analyze")
            else:
                logger.info(
                    "Starting analysis",
                    extra={"files": len(analysis_run.files), "analyzers": analysis_run.analyzers},
                )
                analysis_run.issues = await self._run_analyzers(analysis_run)

            analysis_run.duration_ms = (time.perf_counter() - start_time) * 1000
            self.metrics.record_timer(MetricNames.RUN_DURATION_MS, analysis_run.duration_ms)

            logger.info(
                "Analysis completed",
                extra={
                    "files": len(analysis_run.files),
                    "issues": len(analysis_run.issues),
                    "duration_ms": round(analysis_run.duration_ms, 2),
                },
            )

        return analysis_run

    # File resolution

    async def _resolve_files(
        self,
        source: Source,
        context: AnalysisContext,
        analysis_run: AnalysisRun,
    ) -> List[AnalyzableFile]:
        ready: List[AnalyzableFile] = []
        fetches = []

        if isinstance(source, str):
            for change in self._select_changes(self.parser.parse(source)):
                fetches.append(self._fetch_change(change, context, analysis_run))
        else:
            for item in source:
                if isinstance(item, AnalyzableFile):
                    if self._accepted(item.path, item.size):
                        ready.append(item)
                elif self._accepted(str(item)):
                    fetches.append(self._fetch_path(str(item), analysis_run))

        if fetches:
            fetched = await self._gather_bounded(fetches)
            ready.extend(f for f in fetched if f is not None)
        return ready

    def _select_changes(self, changes: List[FileChange]) -> List[FileChange]:
        selected = []
        for change in changes:
            if change.is_unknown:
                logger.debug("Skipping diff entry without a path")
                continue
            if change.change_kind == ChangeKind.DELETED:
                logger.debug("Skipping deleted file", extra={"file": change.path})
                continue
            if not self._accepted(change.path):
                continue
            selected.append(change)
        return selected

    def _accepted(self, path: str, size: Optional[int] = None) -> bool:
        """Coarse filter: some analyzer wants this path."""
        return any(a.should_analyze_file(path, size) for a in self.analyzers)

    async def _gather_bounded(self, coroutines) -> List[Optional[AnalyzableFile]]:
        semaphore = asyncio.Semaphore(self.settings.pipeline.fetch_concurrency)

        async def bounded(coro):
            async with semaphore:
                return await coro

        return await asyncio.gather(*(bounded(c) for c in coroutines))

    async def _fetch_change(
        self,
        change: FileChange,
        context: AnalysisContext,
        analysis_run: AnalysisRun,
    ) -> Optional[AnalyzableFile]:
        if self.content_provider is None:
            content = _post_image(change)
        else:
            content = await self._fetch(change.path, context.revision, analysis_run)
            if content is None:
                return None

        return AnalyzableFile(
            path=change.path,
            content=content,
            origin=context.origin,
            change=change,
        )

    async def _fetch_path(self, path: str, analysis_run: AnalysisRun) -> Optional[AnalyzableFile]:
        if self.content_provider is None:
            content = await self._read_local(path, analysis_run)
        else:
            content = await self._fetch(path, None, analysis_run)
        if content is None:
            return None
        return AnalyzableFile(path=path, content=content, origin=Origin.FILES)

    async def _fetch(
        self,
        path: str,
        revision: Optional[str],
        analysis_run: AnalysisRun,
    ) -> Optional[str]:
        try:
            content = await asyncio.to_thread(
                self.content_provider.get_file_content, path, revision
            )
        except Exception as e:
            logger.warning(f"Failed to fetch {path}: {e}", extra={"file": path})
            content = None
        else:
            if content is None:
                logger.warning(f"File not found: {path}", extra={"file": path, "revision": revision})

        if content is None:
            analysis_run.failed_files.append(path)
            self.metrics.record_counter(MetricNames.FILES_FETCH_FAILED)
        return content

    async def _read_local(self, path: str, analysis_run: AnalysisRun) -> Optional[str]:
        try:
            return await asyncio.to_thread(Path(path).read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read {path}: {e}", extra={"file": path})
            analysis_run.failed_files.append(path)
            self.metrics.record_counter(MetricNames.FILES_FETCH_FAILED)
            return None

    # Analyzer execution

    async def _run_analyzers(self, analysis_run: AnalysisRun) -> List[Issue]:
        jobs = []
        for analyzer in self.analyzers:
            files = [
                f for f in analysis_run.files
                if analyzer.should_analyze_file(f.path, f.size)
            ]
            jobs.append((analyzer, files))

        if self.settings.pipeline.concurrent_analyzers:
            results = await asyncio.gather(
                *(asyncio.to_thread(self._run_one, analyzer, files, analysis_run)
                  for analyzer, files in jobs)
            )
        else:
            results = [
                self._run_one(analyzer, files, analysis_run)
                for analyzer, files in jobs
            ]

        # Run state is only touched here, after every worker has finished
        issues: List[Issue] = []
        for (analyzer, _), batch in zip(jobs, results):
            if batch is None:
                analysis_run.failed_analyzers.append(analyzer.get_name())
            else:
                issues.extend(batch)

        for issue in issues:
            logger.log(
                self.settings.log_level_for(issue.severity),
                f"{issue.severity.value.upper()} {issue.title}",
                extra={
                    "file": issue.file,
                    "line": issue.line,
                    "type": issue.type,
                    "analyzer": issue.analyzer,
                },
            )
        return issues

    def _run_one(
        self,
        analyzer: Analyzer,
        files: List[AnalyzableFile],
        analysis_run: AnalysisRun,
    ) -> Optional[List[Issue]]:
        """Run one analyzer; None means it failed."""
        name = analyzer.get_name()
        if not files:
            return []

        tags = {"analyzer": name}
        try:
            with self.metrics.timer_context(MetricNames.ANALYZER_DURATION_MS, tags):
                issues = analyzer.analyze(files, analysis_run.context)
        except Exception as e:
            logger.warning(f"Analyzer {name} failed: {e}", extra={"analyzer": name})
            self.metrics.record_counter(MetricNames.ANALYZER_FAILED, tags=tags)
            if self.error_tracker is not None:
                self.error_tracker.capture_exception(
                    e, severity=ErrorSeverity.ERROR, context={"analyzer": name},
                )
            return None

        self.metrics.record_counter(MetricNames.ANALYZER_ISSUES, len(issues), tags)
        return list(issues)


def _post_image(change: FileChange) -> str:
    """Reconstruct the changed region's new-side text from the hunks."""
    lines = [
        line.text
        for hunk in change.hunks
        for line in hunk.lines
        if line.marker != LineMarker.REMOVED
    ]
    return "\n".join(lines)


def _selection_fields(context: AnalysisContext) -> dict:
    return {k: v for k, v in context.to_dict().items() if v}
