"""
Bug analyzer module.

Looks for patterns that are usually mistakes rather than style choices:
loose equality, assignments inside conditions, swallowed exceptions,
comparisons with NaN, mutable default arguments, and statements that can
never run because they follow a return/throw/break/continue.
"""

import logging
import re
from typing import List, Optional

from review_bot.analyzers.base import JS_LANGUAGES, PYTHON, LineRule, RuleAnalyzer
from review_bot.models import AnalysisContext, AnalyzableFile, Issue, Severity

logger = logging.getLogger(__name__)

BUG_RULES = [
    LineRule(
        type="loose-equality",
        pattern=re.compile(r"[^=!<>]==(?!=)|!=(?!=)"),
        severity=Severity.MEDIUM,
        title="Loose equality",
        message="== and != perform type coercion before comparing.",
        suggestion="Use === or !== instead.",
        languages=JS_LANGUAGES,
    ),
    LineRule(
        type="assignment-in-condition",
        pattern=re.compile(r"\b(?:if|while)\s*\([^=!<>()]*[^=!<>]=[^=>][^)]*\)"),
        severity=Severity.MEDIUM,
        title="Assignment in condition",
        message="A single = inside a condition assigns instead of comparing.",
        suggestion="Use === for comparison, or move the assignment out of the condition.",
        languages=JS_LANGUAGES,
    ),
    LineRule(
        type="empty-catch",
        pattern=re.compile(r"\bcatch\s*(?:\([^)]*\))?\s*\{\s*\}"),
        severity=Severity.MEDIUM,
        title="Empty catch block",
        message="The error is caught and silently discarded.",
        suggestion="Log the error or handle it explicitly.",
        languages=JS_LANGUAGES,
    ),
    LineRule(
        type="var-usage",
        pattern=re.compile(r"^\s*var\s+\w"),
        severity=Severity.LOW,
        title="Use of var",
        message="var is function scoped and hoisted, which invites subtle bugs.",
        suggestion="Use let or const.",
        languages=JS_LANGUAGES,
    ),
    LineRule(
        type="nan-comparison",
        pattern=re.compile(r"[=!]==?\s*(?:NaN|float\(\s*[\"']nan[\"']\s*\))|\b(?:NaN)\s*[=!]=="),
        severity=Severity.HIGH,
        title="Comparison with NaN",
        message="NaN is never equal to anything, including itself.",
        suggestion="Use Number.isNaN() or math.isnan().",
    ),
    LineRule(
        type="bare-except",
        pattern=re.compile(r"^\s*except\s*:"),
        severity=Severity.LOW,
        title="Bare except",
        message="A bare except also catches KeyboardInterrupt and SystemExit.",
        suggestion="Catch Exception or a more specific exception type.",
        languages=PYTHON,
    ),
    LineRule(
        type="none-comparison",
        pattern=re.compile(r"[=!]=\s*None\b"),
        severity=Severity.LOW,
        title="Comparison with None",
        message="Equality with None can be overridden by __eq__.",
        suggestion="Use `is None` or `is not None`.",
        languages=PYTHON,
    ),
    LineRule(
        type="mutable-default-arg",
        pattern=re.compile(r"^\s*(?:async\s+)?def\s+\w+\s*\(.*=\s*(?:\[\s*\]|\{\s*\}|list\(\)|dict\(\)|set\(\))"),
        severity=Severity.MEDIUM,
        title="Mutable default argument",
        message="Default values are created once and shared between calls.",
        suggestion="Default to None and create the value inside the function.",
        languages=PYTHON,
    ),
]

TERMINATOR_PATTERN = re.compile(r"^(?:return|throw|raise|break|continue)\b")

# Lines that legitimately follow a terminator at the same indentation
BLOCK_BOUNDARY_PATTERN = re.compile(
    r"^(?:[}\])]|case\b|default\b|else\b|elif\b|except\b|finally\b|catch\b|@)"
)

# A terminator line ending like this continues on the next line
CONTINUATION_CHARS = "([{,+-*/=&|?:\\"


class BugAnalyzer(RuleAnalyzer):
    """Detects likely bugs using line patterns and an indentation heuristic."""

    name = "bugs"

    def analyze_file(self, file: AnalyzableFile, context: AnalysisContext) -> List[Issue]:
        issues = self.apply_line_rules(file, BUG_RULES)
        language = self.language_of(file)
        if language in PYTHON:
            issues.extend(self._check_swallowed_exceptions(file))
        issues.extend(self._check_unreachable_code(file, language))
        return issues

    def _check_swallowed_exceptions(self, file: AnalyzableFile) -> List[Issue]:
        """``except ...:`` followed directly by ``pass``."""
        lines = file.lines
        issues = []
        for index, text in enumerate(lines):
            stripped = text.strip()
            if not (stripped.startswith("except") and stripped.endswith(":")):
                continue
            following = self._next_code_line(lines, index + 1, "python")
            if following is not None and lines[following].strip() == "pass":
                issues.append(self.create_issue(
                    file,
                    line=index + 1,
                    type="empty-catch",
                    severity=Severity.MEDIUM,
                    title="Swallowed exception",
                    message="The exception is caught and silently discarded.",
                    suggestion="Log the exception or handle it explicitly.",
                ))
        return issues

    def _check_unreachable_code(self, file: AnalyzableFile, language: Optional[str]) -> List[Issue]:
        """
        Flag the first statement after a terminator at the same indentation.

        Only C-like and Python sources are checked; indentation is a proxy
        for block structure.
        """
        if language not in JS_LANGUAGES | PYTHON | {"java", "go", "csharp", "php", "c", "cpp"}:
            return []

        lines = file.lines
        issues = []
        for index, text in enumerate(lines):
            stripped = text.strip()
            if not TERMINATOR_PATTERN.match(stripped):
                continue
            if stripped.rstrip(";").endswith(tuple(CONTINUATION_CHARS)):
                continue
            # Single-line blocks such as "if (x) return;" on one line
            if "{" in stripped or "}" in stripped:
                continue

            following = self._next_code_line(lines, index + 1, language)
            if following is None:
                continue

            next_text = lines[following]
            if _indent(next_text) != _indent(text):
                continue
            if BLOCK_BOUNDARY_PATTERN.match(next_text.strip()):
                continue

            issues.append(self.create_issue(
                file,
                line=following + 1,
                type="unreachable-code",
                severity=Severity.MEDIUM,
                title="Unreachable code",
                message=f"This statement follows `{stripped.split()[0].rstrip(';')}` and never runs.",
                suggestion="Remove the dead code or fix the control flow.",
            ))
        return issues

    @staticmethod
    def _next_code_line(lines: List[str], start: int, language: Optional[str]) -> Optional[int]:
        comment_prefixes = ("#",) if language in PYTHON else ("//", "/*", "*")
        for index in range(start, len(lines)):
            stripped = lines[index].strip()
            if not stripped or stripped.startswith(comment_prefixes):
                continue
            return index
        return None


def _indent(text: str) -> int:
    return len(text) - len(text.lstrip())
