"""
Heuristic complexity scoring.

Estimates cyclomatic-style complexity by counting decision tokens in
source text. This is a token-counting approximation, not a grammar-aware
metric: it starts at 1 (the baseline path) and adds 1 for every
``if``/``for``/``while``/``case``/``catch`` keyword (plus the Python
spellings ``elif``/``except``/``and``/``or``), every ternary ``?``, and
every ``&&``/``||``.

The scanner is a single forward pass over the characters. Each operator
is consumed as an atomic token and every branch advances the cursor, so
scoring is linear in the input length and cannot fail on any operator
sequence.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)

DECISION_KEYWORDS = frozenset({
    'if', 'for', 'while', 'case', 'catch',
    'elif', 'except', 'and', 'or',
})

# Languages where '#' starts a line comment
HASH_COMMENT_LANGUAGES = frozenset({'python', 'shell', 'ruby', 'yaml'})

# Function start lines for per-function scoring
FUNCTION_PATTERNS = [
    re.compile(r'^\s*(?:async\s+)?def\s+(\w+)\s*\('),
    re.compile(r'^\s*(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s*\*?\s*(\w+)\s*\('),
    re.compile(r'^\s*(?:export\s+)?(?:const|let|var)\s+(\w+)\s*=\s*(?:async\s+)?(?:function\b|\([^()]*\)\s*=>|\w+\s*=>)'),
    re.compile(r'^\s*func\s+(?:\([^()]*\)\s*)?(\w+)\s*\('),
    re.compile(r'^\s*(?:pub\s+)?fn\s+(\w+)'),
]


def _is_ident_start(ch: str) -> bool:
    return ch.isalpha() or ch == '_' or ch == '$'


def _is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch == '_' or ch == '$'


def calculate_complexity(source_text: Optional[str], language: Optional[str] = None) -> int:
    """
    Calculate a heuristic complexity score for source text.

    Args:
        source_text: Source code (any string; None is treated as empty)
        language: Optional language name; enables ``#`` comments for
            hash-comment languages

    Returns:
        int: Complexity >= 1
    """
    if not source_text or not isinstance(source_text, str):
        return 1

    text = source_text
    n = len(text)
    hash_comments = language in HASH_COMMENT_LANGUAGES
    complexity = 1
    i = 0

    while i < n:
        ch = text[i]

        # Comments
        if ch == '/' and i + 1 < n and text[i + 1] == '/':
            end = text.find('\n', i)
            i = n if end == -1 else end + 1
            continue
        if ch == '/' and i + 1 < n and text[i + 1] == '*':
            end = text.find('*/', i + 2)
            i = n if end == -1 else end + 2
            continue
        if ch == '#' and hash_comments:
            end = text.find('\n', i)
            i = n if end == -1 else end + 1
            continue

        # String literals
        if ch in ('"', "'"):
            triple = ch * 3
            if text.startswith(triple, i):
                end = text.find(triple, i + 3)
                i = n if end == -1 else end + 3
                continue
            i = _skip_quoted(text, i, ch, stop_at_newline=True)
            continue
        if ch == '`':
            i = _skip_quoted(text, i, ch, stop_at_newline=False)
            continue

        # Logical operators
        if ch == '&' or ch == '|':
            if i + 1 < n and text[i + 1] == ch:
                if i + 2 < n and text[i + 2] == '=':
                    # &&= / ||= are assignments
                    i += 3
                    continue
                complexity += 1
                i += 2
                continue
            i += 1
            continue

        # Ternary
        if ch == '?':
            nxt = text[i + 1] if i + 1 < n else ''
            if nxt == '?':
                # ?? and ??= (nullish coalescing)
                i += 3 if i + 2 < n and text[i + 2] == '=' else 2
                continue
            if nxt in ('.', ':'):
                # ?. optional chaining, ?: optional member
                i += 2
                continue
            complexity += 1
            i += 1
            continue

        # Identifiers and keywords
        if _is_ident_start(ch):
            start = i
            i += 1
            while i < n and _is_ident_char(text[i]):
                i += 1
            if text[start:i] in DECISION_KEYWORDS:
                complexity += 1
            continue

        # Numbers are consumed whole so "1e5if" style runs do not leak keywords
        if ch.isdigit():
            i += 1
            while i < n and (_is_ident_char(text[i]) or text[i] == '.'):
                i += 1
            continue

        i += 1

    return complexity


def _skip_quoted(text: str, start: int, quote: str, stop_at_newline: bool) -> int:
    """Return the index just past a quoted literal beginning at ``start``."""
    n = len(text)
    i = start + 1
    while i < n:
        ch = text[i]
        if ch == '\\':
            i += 2
            continue
        if ch == quote:
            return i + 1
        if ch == '\n' and stop_at_newline:
            # Unterminated literal ends at the line break
            return i + 1
        i += 1
    return n


@dataclass
class FunctionScore:
    """Complexity of one heuristically detected function."""
    name: str
    line: int
    length: int
    complexity: int


class ComplexityScorer:
    """
    Scores files and heuristically delimited functions.

    Function bodies are approximated as the lines from one function start
    to the next, so nested helpers are scored with their parent's tail.
    """

    def __init__(self, language: Optional[str] = None):
        self.language = language

    def calculate_complexity(self, source_text: Optional[str]) -> int:
        """Score a whole text. See :func:`calculate_complexity`."""
        return calculate_complexity(source_text, self.language)

    def score_functions(self, source_text: str) -> List[FunctionScore]:
        """
        Score each detected function in the text.

        Args:
            source_text: Full file content

        Returns:
            List[FunctionScore]: One entry per detected function, in order
        """
        lines = source_text.splitlines()
        starts = []
        for index, line in enumerate(lines):
            for pattern in FUNCTION_PATTERNS:
                match = pattern.match(line)
                if match:
                    starts.append((index, match.group(1)))
                    break

        scores = []
        for position, (index, name) in enumerate(starts):
            end = starts[position + 1][0] if position + 1 < len(starts) else len(lines)
            body = lines[index:end]
            # Trailing blank lines do not count toward length
            while len(body) > 1 and not body[-1].strip():
                body.pop()
            scores.append(FunctionScore(
                name=name,
                line=index + 1,
                length=len(body),
                complexity=calculate_complexity('\n'.join(body), self.language),
            ))

        return scores
