"""
Run metrics.

Keeps counters and timings for a single review run in memory: how many
files were resolved, how long each analyzer took, how many issues it
raised and whether it failed. ``main`` logs the summary at debug level
once the command finishes.
"""

import logging
import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from review_bot.config import Settings

logger = logging.getLogger(__name__)


class MetricNames:
    """Metric names recorded by the pipeline."""

    RUN_DURATION_MS = "run.duration_ms"
    FILES_RESOLVED = "pipeline.files_resolved"
    FILES_FETCH_FAILED = "pipeline.files_fetch_failed"
    ANALYZER_DURATION_MS = "analyzer.duration_ms"
    ANALYZER_ISSUES = "analyzer.issues"
    ANALYZER_FAILED = "analyzer.failed"


class MetricsCollector:
    """
    In-memory collector for one run.

    Counters are summed per name. Tagged values are also kept per
    analyzer so the summary can show where issues and time came from.
    Analyzers record from worker threads, so updates hold a lock.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.enabled = settings.enable_metrics if settings is not None else True
        self._counters: Dict[str, float] = defaultdict(float)
        self._timings: Dict[str, List[float]] = defaultdict(list)
        self._per_analyzer: Dict[str, Dict[str, float]] = defaultdict(lambda: defaultdict(float))
        self._lock = threading.Lock()

    def _by_analyzer(self, name: str, value: float, tags: Optional[Dict[str, str]]) -> None:
        analyzer = (tags or {}).get("analyzer")
        if analyzer:
            self._per_analyzer[analyzer][name] += value

    def record_counter(
        self,
        name: str,
        value: float = 1.0,
        tags: Optional[Dict[str, str]] = None,
    ) -> None:
        """
        Add to a counter.

        Args:
            name: One of :class:`MetricNames`
            value: Amount to add
            tags: ``{"analyzer": name}`` attributes the value to an analyzer
        """
        if not self.enabled:
            return
        with self._lock:
            self._counters[name] += value
            self._by_analyzer(name, value, tags)
        logger.debug(f"Counter {name} += {value}", extra=tags or {})

    def record_timer(
        self,
        name: str,
        duration_ms: float,
        tags: Optional[Dict[str, str]] = None,
    ) -> None:
        """Record one duration in milliseconds."""
        if not self.enabled:
            return
        with self._lock:
            self._timings[name].append(duration_ms)
            self._by_analyzer(name, duration_ms, tags)
        logger.debug(f"Timer {name} = {duration_ms:.1f}ms", extra=tags or {})

    @contextmanager
    def timer_context(self, name: str, tags: Optional[Dict[str, str]] = None):
        """
        Time a block, recording the duration even when it raises.

        Usage:
            with metrics.timer_context(MetricNames.ANALYZER_DURATION_MS, {"analyzer": "bugs"}):
                analyzer.analyze(files, context)
        """
        start_time = time.perf_counter()
        try:
            yield
        finally:
            self.record_timer(name, (time.perf_counter() - start_time) * 1000, tags)

    def get_timings(self, name: str) -> List[float]:
        """Durations recorded under ``name``, in recording order."""
        return list(self._timings.get(name, []))

    def get_counter(self, name: str) -> float:
        return self._counters.get(name, 0.0)

    def get_metric_summary(self) -> Dict[str, Any]:
        """
        Summarize the run.

        Returns:
            ``counters`` totals, ``timers`` stats per name and an
            ``analyzers`` breakdown keyed by analyzer name
        """
        timers = {
            name: {
                'count': len(values),
                'total_ms': round(sum(values), 2),
                'max_ms': round(max(values), 2),
            }
            for name, values in self._timings.items()
            if values
        }
        return {
            'counters': dict(self._counters),
            'timers': timers,
            'analyzers': {
                analyzer: dict(values) for analyzer, values in self._per_analyzer.items()
            },
        }
