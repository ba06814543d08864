"""Diff parsing, complexity scoring, the analysis pipeline and aggregation."""

from review_bot.analysis.complexity import ComplexityScorer, calculate_complexity
from review_bot.analysis.diff_parser import ChangeKind, DiffParser, FileChange, Hunk
