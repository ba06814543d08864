"""
Tests for issue aggregation.
"""

import pytest

from review_bot.analysis.aggregator import IssueAggregator
from review_bot.models import SEVERITY_ORDER, Issue, Severity


def make_issue(n, severity, file="a.py", line=1, type="check", column=None):
    return Issue(
        id=f"test-{n}",
        title=f"Issue {n}",
        message="message",
        file=file,
        line=line,
        column=column,
        type=type,
        analyzer="test",
        severity=severity,
    )


@pytest.fixture
def mixed_issues():
    return [
        make_issue(1, Severity.LOW, line=9),
        make_issue(2, Severity.CRITICAL, line=3),
        make_issue(3, Severity.LOW, line=1),
        make_issue(4, Severity.INFO),
        make_issue(5, Severity.HIGH, file="b.py"),
    ]


class TestIssueAggregator:

    def test_partition_is_exhaustive_and_disjoint(self, mixed_issues):
        aggregated = IssueAggregator().aggregate(mixed_issues)

        ids = [i.id for severity in SEVERITY_ORDER for i in aggregated[severity]]
        assert sorted(ids) == sorted(i.id for i in mixed_issues)
        assert len(ids) == len(set(ids))
        for severity in SEVERITY_ORDER:
            assert all(i.severity == severity for i in aggregated[severity])

    def test_partition_is_stable(self, mixed_issues):
        aggregated = IssueAggregator().aggregate(mixed_issues)
        assert [i.id for i in aggregated[Severity.LOW]] == ["test-1", "test-3"]

    def test_sort_by_location(self, mixed_issues):
        aggregated = IssueAggregator(sort_by_location=True).aggregate(mixed_issues)
        assert [i.line for i in aggregated[Severity.LOW]] == [1, 9]

    def test_summary(self, mixed_issues):
        summary = IssueAggregator().aggregate(mixed_issues).summary()
        assert summary == {
            "critical": 1,
            "high": 1,
            "medium": 0,
            "low": 2,
            "info": 1,
            "total": 5,
        }

    def test_empty(self):
        aggregated = IssueAggregator().aggregate([])
        assert aggregated.total == 0
        assert aggregated.summary()["total"] == 0
        assert not aggregated.has_blocking_issues()

    def test_deduplicate(self):
        issues = [
            make_issue(1, Severity.HIGH, line=4, type="unsafe-eval"),
            make_issue(2, Severity.HIGH, line=4, type="unsafe-eval"),
            make_issue(3, Severity.HIGH, line=4, type="other"),
            make_issue(4, Severity.HIGH, line=4, type="unsafe-eval"),
        ]
        aggregated = IssueAggregator(deduplicate=True).aggregate(issues)
        high = aggregated[Severity.HIGH]

        assert [i.id for i in high] == ["test-1", "test-3"]
        assert high[0].duplicate_count == 3
        assert high[1].duplicate_count == 1

    def test_deduplicate_off_keeps_everything(self):
        issues = [make_issue(n, Severity.LOW) for n in range(3)]
        assert IssueAggregator().aggregate(issues).total == 3

    def test_groupings(self, mixed_issues):
        aggregated = IssueAggregator().aggregate(mixed_issues)

        assert aggregated.all_issues()[0].severity == Severity.CRITICAL
        assert set(aggregated.by_file()) == {"a.py", "b.py"}
        assert list(aggregated.by_analyzer()) == ["test"]
        assert aggregated.has_blocking_issues()


def test_unknown_severity_is_coerced_to_info():
    issue = Issue(
        id="x-1", title="t", message="m", file="a.py", line=1,
        type="t", analyzer="x", severity="catastrophic",
    )
    assert issue.severity == Severity.INFO


def test_issue_location():
    assert make_issue(1, Severity.LOW, line=3).location == "a.py:3"
    assert make_issue(1, Severity.LOW, line=3, column=7).location == "a.py:3:7"
