"""
Performance analyzer module.

Heuristics for code that is likely to be slow or leak resources:
- Nested loops (quadratic or worse)
- Database/HTTP calls inside loops (N+1 queries)
- Awaits, linear searches, and string building inside loops
- Synchronous filesystem calls
- Timers and listeners that are never cleaned up
"""

import logging
import re
from dataclasses import dataclass
from typing import List

from review_bot.analyzers.base import JS_LANGUAGES, LineRule, RuleAnalyzer
from review_bot.models import AnalysisContext, AnalyzableFile, Issue, Severity

logger = logging.getLogger(__name__)

LOOP_PATTERN = re.compile(
    r"^\s*(?:for\b|while\b|do\s*\{)|\.(?:forEach|map|filter|reduce|some|every)\s*\("
)

# Generic method names (get, find, filter) only count on a database receiver
QUERY_PATTERN = re.compile(
    r"\.(?:query|execute|executemany|fetchone|fetchall|findOne|findAll|findById|findMany)\s*\("
    r"|\.objects\.\w+\s*\("
    r"|\b(?:db|session|cursor|conn|connection|repo|repository)\.(?:get|find\w*|filter\w*|select\w*|scalars?)\s*\("
    r"|\bfetch\s*\(|\baxios\.\w+\s*\(|\b(?:requests|httpx)\.(?:get|post|put|patch|delete)\s*\("
)

LINEAR_SEARCH_PATTERN = re.compile(r"\.(?:indexOf|includes|find|findIndex)\s*\(|\bin\s+\w+\s*:?\s*$")

STRING_CONCAT_PATTERN = re.compile(r"\b\w+\s*\+=\s*[\"'`]|\b\w+\s*\+=\s*\w+\s*\+\s*[\"'`]")

BLOCKING_IO_RULE = LineRule(
    type="blocking-io",
    pattern=re.compile(r"\b(?:fs\.)?\w+Sync\s*\("),
    severity=Severity.LOW,
    title="Synchronous I/O",
    message="Synchronous filesystem calls block the event loop.",
    suggestion="Use the promise-based or callback API instead.",
    languages=JS_LANGUAGES,
)


@dataclass
class _Loop:
    line: int
    indent: int
    braces: int


class PerformanceAnalyzer(RuleAnalyzer):
    """
    Detects performance anti-patterns.

    Loop nesting is tracked with a stack keyed on indentation (and brace
    depth for C-like sources), so bodies are approximated rather than
    parsed.
    """

    name = "performance"

    def is_enabled(self) -> bool:
        return self.settings.performance.enable_performance_analysis

    def analyze_file(self, file: AnalyzableFile, context: AnalysisContext) -> List[Issue]:
        issues = self._check_loops(file)
        issues.extend(self.apply_line_rules(file, [BLOCKING_IO_RULE]))
        if self.settings.performance.memory_leak_detection:
            issues.extend(self._check_memory_leaks(file))
        return issues

    def _check_loops(self, file: AnalyzableFile) -> List[Issue]:
        performance = self.settings.performance
        stack: List[_Loop] = []
        issues = []
        depth = 0

        for number, text in enumerate(file.lines, start=1):
            stripped = text.strip()
            if not stripped or stripped.startswith(("#", "//", "*", "/*")):
                continue

            indent = len(text) - len(text.lstrip())
            # Loops end when indentation returns to their level or braces close
            while stack and (indent <= stack[-1].indent and depth <= stack[-1].braces):
                stack.pop()

            in_loop = bool(stack)
            is_loop = bool(LOOP_PATTERN.search(text))

            if is_loop and in_loop and performance.algorithmic_complexity_analysis:
                issues.append(self.create_issue(
                    file,
                    line=number,
                    type="nested-loop",
                    severity=Severity.MEDIUM,
                    title="Nested loop",
                    message=(
                        f"Loop nested inside the loop on line {stack[-1].line}; "
                        "cost grows quadratically with input size."
                    ),
                    suggestion="Index the inner collection (e.g. with a dict/Map or set) to avoid the inner loop.",
                ))

            if in_loop:
                issues.extend(self._check_loop_body(file, number, text))

            depth += text.count("{") - text.count("}")
            depth = max(depth, 0)

            if is_loop:
                stack.append(_Loop(line=number, indent=indent, braces=depth - 1 if "{" in text else depth))

        return issues

    def _check_loop_body(self, file: AnalyzableFile, number: int, text: str) -> List[Issue]:
        performance = self.settings.performance
        issues = []

        if performance.n_plus_one_detection and QUERY_PATTERN.search(text):
            issues.append(self.create_issue(
                file,
                line=number,
                type="n-plus-one-query",
                severity=Severity.HIGH,
                title="Query inside loop",
                message="A database or network call runs once per loop iteration.",
                suggestion="Batch the lookups into a single query before the loop.",
            ))
        elif re.search(r"\bawait\b", text):
            issues.append(self.create_issue(
                file,
                line=number,
                type="await-in-loop",
                severity=Severity.LOW,
                title="Await inside loop",
                message="Awaiting inside a loop serializes independent operations.",
                suggestion="Collect the awaitables and use Promise.all / asyncio.gather.",
            ))

        if performance.algorithmic_complexity_analysis and LINEAR_SEARCH_PATTERN.search(text) \
                and not LOOP_PATTERN.search(text):
            issues.append(self.create_issue(
                file,
                line=number,
                type="linear-search-in-loop",
                severity=Severity.LOW,
                title="Linear search inside loop",
                message="Searching a list inside a loop is O(n*m).",
                suggestion="Build a set or Map once and look items up in constant time.",
            ))

        if STRING_CONCAT_PATTERN.search(text):
            issues.append(self.create_issue(
                file,
                line=number,
                type="string-concat-in-loop",
                severity=Severity.LOW,
                title="String concatenation in loop",
                message="Repeated string concatenation copies the string each time.",
                suggestion="Collect the parts in a list and join them once.",
            ))

        return issues

    def _check_memory_leaks(self, file: AnalyzableFile) -> List[Issue]:
        content = file.content
        issues = []
        pairs = [
            ("setInterval", "clearInterval", "Interval is never cleared"),
            ("addEventListener", "removeEventListener", "Event listener is never removed"),
        ]

        for opener, closer, title in pairs:
            if closer in content:
                continue
            for number, text in enumerate(file.lines, start=1):
                if re.search(rf"\b{opener}\s*\(", text):
                    issues.append(self.create_issue(
                        file,
                        line=number,
                        type="memory-leak",
                        severity=Severity.MEDIUM,
                        title=title,
                        message=f"`{opener}` is called but `{closer}` never appears in this file.",
                        suggestion=f"Keep a handle and call `{closer}` during cleanup.",
                    ))

        return issues
