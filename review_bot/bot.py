"""
Code review bot driver.

Ties settings, the git collaborator, the analyzers, the pipeline and the
report generator together for one invocation of the command line tool.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

from review_bot.analysis.pipeline import AnalysisPipeline, AnalysisRun
from review_bot.analyzers import build_analyzers
from review_bot.analyzers.base import RuleAnalyzer
from review_bot.config import OutputFormat, Settings, merge_config, save_settings
from review_bot.exceptions import ReportWriteError
from review_bot.models import AnalysisContext, Issue, Severity
from review_bot.observability.errors import ErrorTracker
from review_bot.observability.metrics import MetricsCollector
from review_bot.review.formatter import ReportGenerator, ReportOptions
from review_bot.vcs.git import GitClient, RepositoryStats

logger = logging.getLogger(__name__)


def _git_timeout(settings: Settings) -> Optional[float]:
    """Per-command git timeout in seconds; a configured 0 means no limit."""
    timeout_ms = settings.integrations.precommit.timeout
    return timeout_ms / 1000 if timeout_ms else None


@dataclass
class AnalysisOptions:
    """What to analyze and how to report it."""
    commit: Optional[str] = None
    branch: Optional[str] = None
    staged: bool = False
    files: List[str] = field(default_factory=list)
    base_branch: Optional[str] = None
    format: Optional[str] = None
    output_file: Optional[str] = None
    include_snippets: Optional[bool] = None

    def to_context(self, default_base: str = "main") -> AnalysisContext:
        return AnalysisContext(
            commit=self.commit,
            branch=self.branch,
            staged=self.staged,
            base_branch=self.base_branch or default_base,
        )


@dataclass
class AnalysisResult:
    """
    Outcome of ``CodeReviewBot.run_analysis``.

    ``write_error`` is set when the report could not be saved; the run
    and the rendered report are kept either way.
    """
    run: AnalysisRun
    report: str
    write_error: Optional[ReportWriteError] = None

    @property
    def issues(self) -> List[Issue]:
        return self.run.issues

    def has_critical_issues(self) -> bool:
        return any(issue.severity == Severity.CRITICAL for issue in self.issues)


class CodeReviewBot:
    """
    Runs code review analyses.

    Call :meth:`initialize` before analyzing; it builds the analyzers
    named in the settings.
    """

    def __init__(
        self,
        settings: Settings,
        git: Optional[GitClient] = None,
        metrics: Optional[MetricsCollector] = None,
        error_tracker: Optional[ErrorTracker] = None,
        reporter: Optional[ReportGenerator] = None,
    ):
        """
        Initialize bot.

        Args:
            settings: Run settings
            git: Git collaborator (defaults to the current directory)
            metrics: Metrics collector
            error_tracker: Error tracker shared with the analyzers
            reporter: Report generator
        """
        self.settings = settings
        self.git = git or GitClient(timeout=_git_timeout(settings))
        self.metrics = metrics or MetricsCollector(settings)
        self.error_tracker = error_tracker or ErrorTracker(settings)
        self.reporter = reporter or ReportGenerator()
        self.analyzers: List[RuleAnalyzer] = []

    def initialize(self) -> "CodeReviewBot":
        self.analyzers = build_analyzers(self.settings, self.error_tracker)
        logger.info(
            "Code review bot initialized",
            extra={"analyzers": [a.get_name() for a in self.analyzers]},
        )
        return self

    def _pipeline(self) -> AnalysisPipeline:
        return AnalysisPipeline(
            self.settings,
            self.analyzers,
            content_provider=self.git,
            metrics=self.metrics,
            error_tracker=self.error_tracker,
        )

    async def analyze(self, options: AnalysisOptions) -> AnalysisRun:
        """
        Resolve the selection in ``options`` and run the analyzers.

        Explicit ``files`` take precedence over commit/branch/staged.
        """
        context = options.to_context()
        pipeline = self._pipeline()

        if options.files:
            return await pipeline.execute(list(options.files), context)
        return await pipeline.execute_for_context(context, self.git)

    async def run_analysis(self, options: Optional[AnalysisOptions] = None) -> AnalysisResult:
        """
        Analyze and render the report.

        Args:
            options: Selection and report options; settings provide the
                defaults for format and snippets

        Returns:
            AnalysisResult: Run record and rendered report, with
            ``write_error`` set if the report file could not be written
        """
        options = options or AnalysisOptions()
        analysis_run = await self.analyze(options)

        output = self.settings.output
        include_snippets = output.include_code_snippets
        if options.include_snippets is not None:
            include_snippets = options.include_snippets

        report_options = ReportOptions(
            format=OutputFormat(options.format or output.format),
            output_file=options.output_file,
            include_snippets=include_snippets,
            include_suggestions=output.include_suggestions,
            max_suggestions_per_file=output.max_suggestions_per_file,
        )
        result = AnalysisResult(
            run=analysis_run,
            report=self.reporter.render(analysis_run.issues, report_options),
        )
        try:
            self.reporter.emit(result.report, report_options)
        except ReportWriteError as e:
            logger.error(e.message, extra={"path": e.path, "issues": len(result.issues)})
            result.write_error = e
        return result

    def should_block(self, result: AnalysisResult) -> bool:
        """Whether a pre-commit run must fail for these results."""
        precommit = self.settings.integrations.precommit
        return precommit.enabled and precommit.blocking and result.has_critical_issues()

    async def get_total_issues_count(self) -> int:
        """Issue count for the latest commit; 0 when git has nothing to offer."""
        analysis_run = await self.analyze(AnalysisOptions())
        return len(analysis_run.issues)

    def get_stats(self) -> RepositoryStats:
        """
        Raises:
            VCSError: If repository information is unavailable
        """
        return self.git.get_repository_stats()

    def setup_configuration(
        self,
        analyzers: Optional[Iterable[str]] = None,
        blocking: Optional[bool] = None,
        report_format: Optional[str] = None,
        config_path: Optional[Union[str, Path]] = None,
    ) -> Path:
        """
        Update and save the configuration file.

        Args:
            analyzers: Analyzer names to enable
            blocking: Whether critical issues block commits
            report_format: Default output format
            config_path: File to write (``.codereviewrc.json`` by default)

        Returns:
            Path: Written config file

        Raises:
            ConfigurationError: If a value is invalid or the file cannot be written
        """
        override = {}
        if analyzers is not None:
            override.setdefault("analysis", {})["enabled_analyzers"] = list(analyzers)
        if blocking is not None:
            override["integrations"] = {"precommit": {"blocking": blocking}}
        if report_format is not None:
            override["output"] = {"format": report_format}

        self.settings = merge_config(self.settings, override)
        return save_settings(self.settings, config_path)
