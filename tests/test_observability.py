"""
Tests for logging, metrics and error tracking.
"""

import json
import logging
import threading

import pytest

from review_bot.config import merge_config
from review_bot.observability.errors import ErrorSeverity, ErrorTracker
from review_bot.observability.logging import ContextFormatter, JSONFormatter, LogContext, setup_logging
from review_bot.observability.metrics import MetricNames, MetricsCollector


def make_record(message="Analyzing", **extra):
    record = logging.makeLogRecord({"name": "review_bot.test", "levelname": "INFO", "levelno": logging.INFO, "msg": message})
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:

    def test_json_includes_context_and_extra(self):
        with LogContext(origin="commit", commit="abc123"):
            line = JSONFormatter().format(make_record(analyzer="bugs"))

        entry = json.loads(line)
        assert entry["message"] == "Analyzing"
        assert entry["fields"] == {"origin": "commit", "commit": "abc123", "analyzer": "bugs"}

    def test_text_appends_fields(self):
        with LogContext(origin="staged"):
            line = ContextFormatter(fmt="%(message)s").format(make_record(file="a.py"))
        assert line == "Analyzing [origin=staged file=a.py]"

    def test_context_is_restored(self):
        with LogContext(origin="commit"):
            with LogContext(analyzer="quality"):
                pass
            line = ContextFormatter(fmt="%(message)s").format(make_record())
        assert line == "Analyzing [origin=commit]"
        assert ContextFormatter(fmt="%(message)s").format(make_record()) == "Analyzing"


class TestSetupLogging:

    def test_verbose_forces_debug(self, settings):
        setup_logging(settings, verbose=True)
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1

    def test_json_format(self, settings):
        setup_logging(merge_config(settings, {"log_format": "json"}))
        assert isinstance(logging.getLogger().handlers[0].formatter, JSONFormatter)


class TestMetricsCollector:

    def test_per_analyzer_breakdown(self, settings):
        metrics = MetricsCollector(settings)
        metrics.record_counter(MetricNames.ANALYZER_ISSUES, 3, {"analyzer": "security"})
        metrics.record_counter(MetricNames.ANALYZER_ISSUES, 2, {"analyzer": "bugs"})
        metrics.record_counter(MetricNames.FILES_RESOLVED, 4)

        summary = metrics.get_metric_summary()
        assert summary["counters"][MetricNames.ANALYZER_ISSUES] == 5
        assert summary["analyzers"]["security"][MetricNames.ANALYZER_ISSUES] == 3
        assert metrics.get_counter(MetricNames.FILES_RESOLVED) == 4

    def test_timer_records_on_failure(self, settings):
        metrics = MetricsCollector(settings)
        with pytest.raises(RuntimeError):
            with metrics.timer_context(MetricNames.ANALYZER_DURATION_MS, {"analyzer": "bugs"}):
                raise RuntimeError("boom")

        assert len(metrics.get_timings(MetricNames.ANALYZER_DURATION_MS)) == 1
        assert metrics.get_metric_summary()["timers"][MetricNames.ANALYZER_DURATION_MS]["count"] == 1

    def test_disabled(self, settings):
        metrics = MetricsCollector(merge_config(settings, {"enable_metrics": False}))
        metrics.record_counter(MetricNames.FILES_RESOLVED)
        assert metrics.get_metric_summary()["counters"] == {}


class TestErrorTracker:

    def test_summary_groups_by_analyzer(self, settings):
        tracker = ErrorTracker(settings)
        tracker.capture_exception(ValueError("bad"), ErrorSeverity.WARNING, {"analyzer": "bugs", "file": "a.py"})
        tracker.capture_exception(RuntimeError("worse"), context={"analyzer": "quality"})

        summary = tracker.get_error_summary()
        assert summary["total_errors"] == 2
        assert summary["by_analyzer"] == {"bugs": 1, "quality": 1}
        assert summary["severity_counts"] == {"warning": 1, "error": 1}
        assert summary["skipped_files"] == ["a.py"]

    def test_disabled(self, settings):
        tracker = ErrorTracker(merge_config(settings, {"error_tracking_enabled": False}))
        assert tracker.capture_exception(ValueError("ignored")) is None
        assert tracker.get_error_summary()["total_errors"] == 0


def test_metrics_from_many_threads(settings):
    metrics = MetricsCollector(settings)

    def record():
        for _ in range(2000):
            metrics.record_counter(MetricNames.ANALYZER_ISSUES, tags={"analyzer": "bugs"})

    threads = [threading.Thread(target=record) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert metrics.get_counter(MetricNames.ANALYZER_ISSUES) == 16000
    assert metrics.get_metric_summary()["analyzers"]["bugs"][MetricNames.ANALYZER_ISSUES] == 16000
