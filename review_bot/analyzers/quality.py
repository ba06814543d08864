"""
Quality analyzer module.

Checks maintainability heuristics against configured thresholds:
- File and per-function complexity (heuristic token count)
- Long functions and long files
- Duplicated blocks of lines
- Long lines, TODO/FIXME markers, leftover debug statements
"""

import logging
import re
from typing import Dict, List

from review_bot.analysis.complexity import ComplexityScorer
from review_bot.analyzers.base import JS_LANGUAGES, PYTHON, LineRule, RuleAnalyzer
from review_bot.models import AnalysisContext, AnalyzableFile, Issue, Severity

logger = logging.getLogger(__name__)

# Lines this short (after stripping) are too generic to count as duplication
MIN_DUPLICATE_LINE_LENGTH = 8

QUALITY_RULES = [
    LineRule(
        type="todo-comment",
        pattern=re.compile(r"(?://|#|/\*|\*)\s*(?:TODO|FIXME|HACK|XXX)\b"),
        severity=Severity.INFO,
        title="Unresolved TODO",
        message="A TODO/FIXME marker was left in the code.",
        suggestion="Resolve it or link it to a tracked issue.",
    ),
    LineRule(
        type="debug-statement",
        pattern=re.compile(r"\bconsole\.(?:log|debug|trace)\s*\(|\bdebugger\s*;"),
        severity=Severity.LOW,
        title="Debug statement",
        message="Debug output or a debugger statement was left in the code.",
        suggestion="Remove it or use the project's logger.",
        languages=JS_LANGUAGES,
    ),
    LineRule(
        type="debug-statement",
        pattern=re.compile(r"\b(?:pdb\.set_trace|breakpoint)\s*\("),
        severity=Severity.LOW,
        title="Debugger breakpoint",
        message="A debugger breakpoint was left in the code.",
        suggestion="Remove the breakpoint before committing.",
        languages=PYTHON,
    ),
]


class QualityAnalyzer(RuleAnalyzer):
    """
    Analyzes code quality using heuristic metrics.

    Complexity comes from :class:`ComplexityScorer`; everything else is
    line based.
    """

    name = "quality"

    def analyze_file(self, file: AnalyzableFile, context: AnalysisContext) -> List[Issue]:
        issues: List[Issue] = []
        issues.extend(self._check_complexity(file))
        issues.extend(self._check_file_length(file))
        issues.extend(self._check_duplication(file))
        issues.extend(self._check_line_length(file))
        issues.extend(self.apply_line_rules(file, QUALITY_RULES))
        return issues

    def _check_complexity(self, file: AnalyzableFile) -> List[Issue]:
        quality = self.settings.quality
        threshold = quality.complexity_threshold
        scorer = ComplexityScorer(self.language_of(file))
        functions = scorer.score_functions(file.content)
        issues = []

        for func in functions:
            if func.complexity > threshold:
                severity = Severity.HIGH if func.complexity >= 2 * threshold else Severity.MEDIUM
                issues.append(self.create_issue(
                    file,
                    line=func.line,
                    type="high-complexity",
                    severity=severity,
                    title=f"High complexity in {func.name}",
                    message=(
                        f"Function `{func.name}` has an estimated complexity of "
                        f"{func.complexity} (threshold {threshold})."
                    ),
                    suggestion="Split the function or simplify its branching.",
                ))

            if func.length > quality.max_function_lines:
                issues.append(self.create_issue(
                    file,
                    line=func.line,
                    type="long-function",
                    severity=Severity.LOW,
                    title=f"Long function {func.name}",
                    message=(
                        f"Function `{func.name}` spans {func.length} lines "
                        f"(limit {quality.max_function_lines})."
                    ),
                    suggestion="Extract cohesive parts into helper functions.",
                ))

        # Files without detectable functions are scored as a whole
        if not functions:
            complexity = scorer.calculate_complexity(file.content)
            if complexity > threshold:
                severity = Severity.HIGH if complexity >= 2 * threshold else Severity.MEDIUM
                issues.append(self.create_issue(
                    file,
                    line=1,
                    type="high-complexity",
                    severity=severity,
                    title="High file complexity",
                    message=(
                        f"File has an estimated complexity of {complexity} "
                        f"(threshold {threshold})."
                    ),
                    suggestion="Break the logic into smaller functions or modules.",
                    snippet="",
                ))

        return issues

    def _check_file_length(self, file: AnalyzableFile) -> List[Issue]:
        limit = self.settings.quality.max_file_lines
        count = len(file.lines)
        if count <= limit:
            return []
        return [self.create_issue(
            file,
            line=1,
            type="long-file",
            severity=Severity.LOW,
            title="Long file",
            message=f"File has {count} lines (limit {limit}).",
            suggestion="Split the file into focused modules.",
            snippet="",
        )]

    def _check_duplication(self, file: AnalyzableFile) -> List[Issue]:
        """
        Report blocks of ``duplication_threshold`` consecutive lines that
        already appeared earlier in the same file.
        """
        window = self.settings.quality.duplication_threshold
        lines = file.lines
        normalized = [line.strip() for line in lines]
        seen: Dict[tuple, int] = {}
        issues = []
        index = 0

        while index + window <= len(lines):
            block = tuple(normalized[index:index + window])
            if any(len(text) < MIN_DUPLICATE_LINE_LENGTH for text in block):
                index += 1
                continue

            first = seen.get(block)
            if first is not None and index >= first + window:
                issues.append(self.create_issue(
                    file,
                    line=index + 1,
                    type="duplicate-code",
                    severity=Severity.LOW,
                    title="Duplicated code block",
                    message=(
                        f"{window} lines starting here duplicate lines "
                        f"{first + 1}-{first + window}."
                    ),
                    suggestion="Extract the shared logic into a function.",
                    snippet="\n".join(lines[index:index + window]),
                ))
                # Skip past the reported block
                index += window
                continue

            seen.setdefault(block, index)
            index += 1

        return issues

    def _check_line_length(self, file: AnalyzableFile) -> List[Issue]:
        limit = self.settings.quality.max_line_length
        issues = []
        for number, text in enumerate(file.lines, start=1):
            if len(text) <= limit:
                continue
            if "http://" in text or "https://" in text:
                continue
            issues.append(self.create_issue(
                file,
                line=number,
                column=limit + 1,
                type="long-line",
                severity=Severity.INFO,
                title="Long line",
                message=f"Line is {len(text)} characters long (limit {limit}).",
                suggestion="Break the line up for readability.",
                snippet=text[:200],
            ))
        return issues
