"""
Analyzer contract and shared line-rule machinery.

Every analyzer exposes the same capability set (``get_name``,
``should_analyze_file``, ``analyze``, ``get_issues``). ``RuleAnalyzer``
implements the parts that are identical across variants: file
selection, per-file failure isolation, issue construction, and
regex line rules. Each instance owns its issue list; nothing is shared
between analyzers.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from fnmatch import fnmatch
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Sequence, runtime_checkable

from review_bot.analysis.diff_parser import detect_language
from review_bot.config import Settings
from review_bot.models import AnalysisContext, AnalyzableFile, Issue, Severity
from review_bot.observability.errors import ErrorSeverity, ErrorTracker

logger = logging.getLogger(__name__)

JS_LANGUAGES = frozenset({"javascript", "typescript"})
PYTHON = frozenset({"python"})


@runtime_checkable
class Analyzer(Protocol):
    """Capability set every analyzer provides."""

    def get_name(self) -> str: ...

    def should_analyze_file(self, path: str, size: Optional[int] = None) -> bool: ...

    def analyze(
        self,
        files: Sequence[AnalyzableFile],
        context: Optional[AnalysisContext] = None,
    ) -> List[Issue]: ...

    def get_issues(self) -> List[Issue]: ...


@dataclass(frozen=True)
class LineRule:
    """A regex applied to each line of a file."""
    type: str
    pattern: re.Pattern
    severity: Severity
    title: str
    message: str
    suggestion: Optional[str] = None
    languages: Optional[frozenset] = None  # None means any language

    def applies_to(self, language: Optional[str]) -> bool:
        return self.languages is None or language in self.languages


def matches_pattern(path: str, pattern: str) -> bool:
    """
    Glob match against a repository-relative path.

    ``dir/**`` matches everything below ``dir``; patterns without a slash
    also match the file's basename.
    """
    path = path.replace('\\', '/')
    if path.startswith('./'):
        path = path[2:]
    if pattern.endswith('/**'):
        prefix = pattern[:-3]
        if path == prefix or path.startswith(prefix + '/'):
            return True
    if fnmatch(path, pattern):
        return True
    if '/' not in pattern and fnmatch(path.rsplit('/', 1)[-1], pattern):
        return True
    return False


class RuleAnalyzer(ABC):
    """
    Shared implementation of the analyzer contract.

    Subclasses set ``name`` and implement ``analyze_file``.
    """

    name: str = ""

    def __init__(self, settings: Settings, error_tracker: Optional[ErrorTracker] = None):
        """
        Initialize analyzer.

        Args:
            settings: Run settings
            error_tracker: Optional tracker for per-file failures
        """
        self.settings = settings
        self.error_tracker = error_tracker
        self._issues: List[Issue] = []
        self._counter = 0

    def get_name(self) -> str:
        return self.name

    def get_issues(self) -> List[Issue]:
        """Issues from the most recent ``analyze`` call."""
        return list(self._issues)

    def should_analyze_file(self, path: str, size: Optional[int] = None) -> bool:
        """
        Check include/exclude patterns, the configured languages and the size limit.

        Args:
            path: Repository-relative path
            size: Content size in bytes; read from disk when omitted and
                the file exists there

        Returns:
            bool: True if the file should be analyzed
        """
        analysis = self.settings.analysis

        if any(matches_pattern(path, pattern) for pattern in analysis.ignored_files):
            return False

        if analysis.included_files and not any(
            matches_pattern(path, pattern) for pattern in analysis.included_files
        ):
            return False

        language = detect_language(path)
        if language is not None and language not in analysis.languages:
            return False

        if size is None:
            local = Path(path)
            if local.is_file():
                size = local.stat().st_size

        if size is not None and size > analysis.max_file_size:
            logger.debug(
                "Skipping oversized file",
                extra={"file": path, "size": size, "analyzer": self.name},
            )
            return False

        return True

    def analyze(
        self,
        files: Sequence[AnalyzableFile],
        context: Optional[AnalysisContext] = None,
    ) -> List[Issue]:
        """
        Analyze files and return the issues found.

        A failure on one file is logged and yields no issues for that
        file; the remaining files are still analyzed.

        Args:
            files: Files to analyze
            context: Selection the files came from

        Returns:
            List[Issue]: Issues in file order, then emission order
        """
        self._issues = []
        self._counter = 0
        context = context or AnalysisContext()

        if not self.is_enabled():
            logger.debug(f"{self.name} analyzer is disabled")
            return []

        for file in files:
            if not self.should_analyze_file(file.path, file.size):
                continue

            try:
                file_issues = list(self.analyze_file(file, context))
            except Exception as e:
                logger.warning(
                    f"{self.name} analyzer failed on {file.path}: {e}",
                    extra={"analyzer": self.name, "file": file.path},
                )
                if self.error_tracker is not None:
                    self.error_tracker.capture_exception(
                        e,
                        severity=ErrorSeverity.WARNING,
                        context={"analyzer": self.name, "file": file.path},
                    )
                continue

            self._issues.extend(file_issues)

        if files:
            logger.info(
                f"{self.name} analysis completed",
                extra={
                    "analyzer": self.name,
                    "files": len(files),
                    "issues": len(self._issues),
                },
            )

        return list(self._issues)

    def is_enabled(self) -> bool:
        """Whether the analyzer's own settings allow it to run."""
        return True

    @abstractmethod
    def analyze_file(self, file: AnalyzableFile, context: AnalysisContext) -> Iterable[Issue]:
        """Produce issues for one file."""

    # Helpers for subclasses

    def create_issue(
        self,
        file: AnalyzableFile,
        line: int,
        type: str,
        severity: Severity,
        title: str,
        message: str,
        column: Optional[int] = None,
        suggestion: Optional[str] = None,
        snippet: Optional[str] = None,
    ) -> Issue:
        self._counter += 1
        if snippet is None:
            snippet = self.get_snippet(file.content, line)
        return Issue(
            id=f"{self.name}-{self._counter}",
            title=title,
            message=message,
            file=file.path,
            line=line,
            column=column,
            type=type,
            analyzer=self.name,
            severity=severity,
            snippet=snippet or None,
            suggestion=suggestion,
        )

    @staticmethod
    def get_snippet(content: str, line: int, context_lines: int = 1) -> str:
        """Lines around ``line`` (1-based), joined with newlines."""
        lines = content.splitlines()
        if not lines or line < 1:
            return ""
        start = max(line - 1 - context_lines, 0)
        end = min(line + context_lines, len(lines))
        return "\n".join(lines[start:end])

    @staticmethod
    def language_of(file: AnalyzableFile) -> Optional[str]:
        if file.change is not None and file.change.language:
            return file.change.language
        return detect_language(file.path)

    def apply_line_rules(self, file: AnalyzableFile, rules: Sequence[LineRule]) -> List[Issue]:
        """Run regex rules over every line; one issue per rule per line."""
        language = self.language_of(file)
        active = [rule for rule in rules if rule.applies_to(language)]
        issues = []

        for number, text in enumerate(file.content.splitlines(), start=1):
            for rule in active:
                match = rule.pattern.search(text)
                if match:
                    issues.append(self.create_issue(
                        file,
                        line=number,
                        column=match.start() + 1,
                        type=rule.type,
                        severity=rule.severity,
                        title=rule.title,
                        message=rule.message,
                        suggestion=rule.suggestion,
                    ))

        return issues
