"""
Issue aggregation.

Partitions issues by severity, optionally sorts them by location and
collapses duplicates reported at the same (file, line, type).
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from review_bot.models import SEVERITY_ORDER, Issue, Severity

logger = logging.getLogger(__name__)


@dataclass
class AggregatedIssues:
    """Issues grouped by severity, in severity order."""
    buckets: Dict[Severity, List[Issue]] = field(
        default_factory=lambda: OrderedDict((s, []) for s in SEVERITY_ORDER)
    )

    def __getitem__(self, severity: Severity) -> List[Issue]:
        return self.buckets[Severity(severity)]

    @property
    def total(self) -> int:
        return sum(len(issues) for issues in self.buckets.values())

    def summary(self) -> Dict[str, int]:
        """Per-severity counts plus ``total``, computed from the buckets."""
        counts = {severity.value: len(issues) for severity, issues in self.buckets.items()}
        counts["total"] = self.total
        return counts

    def all_issues(self) -> List[Issue]:
        """Flatten the buckets, most severe first."""
        return [issue for issues in self.buckets.values() for issue in issues]

    def by_file(self) -> Dict[str, List[Issue]]:
        grouped: Dict[str, List[Issue]] = {}
        for issue in self.all_issues():
            grouped.setdefault(issue.file, []).append(issue)
        return grouped

    def by_analyzer(self) -> Dict[str, List[Issue]]:
        grouped: Dict[str, List[Issue]] = {}
        for issue in self.all_issues():
            grouped.setdefault(issue.analyzer, []).append(issue)
        return grouped

    def has_blocking_issues(self) -> bool:
        return bool(self.buckets[Severity.CRITICAL])


class IssueAggregator:
    """
    Groups issues by severity.

    Partitioning is stable: within a bucket, issues keep their input
    order unless ``sort_by_location`` is set.
    """

    def __init__(self, sort_by_location: bool = False, deduplicate: bool = False):
        self.sort_by_location = sort_by_location
        self.deduplicate = deduplicate

    def aggregate(self, issues: List[Issue]) -> AggregatedIssues:
        """
        Aggregate issues.

        Args:
            issues: Issues in merge order

        Returns:
            AggregatedIssues: Exhaustive, disjoint severity partition
        """
        if self.deduplicate:
            issues = self._deduplicate(issues)

        result = AggregatedIssues()
        for issue in issues:
            result.buckets[issue.severity].append(issue)

        if self.sort_by_location:
            for severity, bucket in result.buckets.items():
                result.buckets[severity] = sorted(bucket, key=_location_key)

        logger.debug("Issues aggregated", extra=result.summary())
        return result

    @staticmethod
    def _deduplicate(issues: List[Issue]) -> List[Issue]:
        """Keep the first issue per (file, line, type); count the rest."""
        first: "OrderedDict[Tuple[str, int, str], Issue]" = OrderedDict()
        counts: Dict[Tuple[str, int, str], int] = {}

        for issue in issues:
            key = (issue.file, issue.line, issue.type)
            if key not in first:
                first[key] = issue
            counts[key] = counts.get(key, 0) + issue.duplicate_count

        return [
            issue if counts[key] == issue.duplicate_count
            else issue.model_copy(update={"duplicate_count": counts[key]})
            for key, issue in first.items()
        ]


def _location_key(issue: Issue) -> Tuple[str, int, int]:
    return (issue.file, issue.line, issue.column or 0)
