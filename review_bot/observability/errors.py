"""
Tracking for failures a run survives.

A file an analyzer chokes on, or an analyzer that fails outright, does
not abort the review. The exception is recorded here instead, summarized
when the command finishes, and forwarded to Sentry when a DSN is set.
"""

import logging
import threading
import traceback
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

import sentry_sdk

from review_bot.config import Settings

logger = logging.getLogger(__name__)


class ErrorSeverity(str, Enum):
    """How much of the run a captured failure cost."""
    WARNING = "warning"  # one file skipped by one analyzer
    ERROR = "error"      # a whole analyzer produced nothing


@dataclass
class ErrorRecord:
    """A captured failure and where it happened."""

    severity: ErrorSeverity
    exception_type: str
    exception_message: str
    traceback: str
    analyzer: Optional[str] = None
    file: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp.isoformat(),
            'severity': self.severity.value,
            'analyzer': self.analyzer,
            'file': self.file,
            'exception_type': self.exception_type,
            'exception_message': self.exception_message,
        }


class ErrorTracker:
    """
    Collects failures captured during a run.

    Analyzers run in worker threads, so appends are guarded by a lock.
    """

    def __init__(self, settings: Settings):
        self.enabled = settings.error_tracking_enabled
        self.errors: List[ErrorRecord] = []
        self._lock = threading.Lock()

        self.sentry_enabled = bool(self.enabled and settings.sentry_dsn)
        if self.sentry_enabled:
            sentry_sdk.init(dsn=settings.sentry_dsn, traces_sample_rate=0.0)
            logger.info("Sentry error tracking initialized")

    def capture_exception(
        self,
        exception: BaseException,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[Dict[str, Any]] = None,
    ) -> Optional[ErrorRecord]:
        """
        Record an exception that was handled.

        Args:
            exception: The exception that was caught
            severity: ``WARNING`` for a skipped file, ``ERROR`` for a failed analyzer
            context: ``analyzer`` and ``file`` keys locate the failure

        Returns:
            The stored record, or None when tracking is disabled
        """
        if not self.enabled:
            return None

        context = context or {}
        record = ErrorRecord(
            severity=severity,
            exception_type=type(exception).__name__,
            exception_message=str(exception),
            traceback=''.join(traceback.format_exception(
                type(exception), exception, exception.__traceback__
            )),
            analyzer=context.get('analyzer'),
            file=context.get('file'),
        )
        with self._lock:
            self.errors.append(record)

        logger.debug(
            f"Captured {record.exception_type}: {record.exception_message}",
            extra={k: v for k, v in (('analyzer', record.analyzer), ('file', record.file)) if v},
        )

        if self.sentry_enabled:
            self._send_to_sentry(exception, record)
        return record

    def get_error_summary(self) -> Dict[str, Any]:
        """
        Summarize captured failures.

        Returns:
            Totals by severity, by analyzer and by exception type
        """
        with self._lock:
            errors = list(self.errors)

        return {
            'total_errors': len(errors),
            'severity_counts': dict(Counter(e.severity.value for e in errors)),
            'by_analyzer': dict(Counter(e.analyzer for e in errors if e.analyzer)),
            'most_common_types': Counter(e.exception_type for e in errors).most_common(5),
            'skipped_files': sorted({e.file for e in errors if e.file}),
        }

    def _send_to_sentry(self, exception: BaseException, record: ErrorRecord) -> None:
        with sentry_sdk.new_scope() as scope:
            if record.analyzer:
                scope.set_tag('analyzer', record.analyzer)
            if record.file:
                scope.set_extra('file', record.file)
            scope.level = record.severity.value
            sentry_sdk.capture_exception(exception)
