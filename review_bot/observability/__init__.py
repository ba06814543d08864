"""
Observability module for logging, metrics, and error tracking.

This module provides:
- Structured logging setup
- Run metrics collection
- Error tracking for handled failures
"""

from review_bot.observability.logging import setup_logging, LogContext
from review_bot.observability.metrics import MetricsCollector, MetricNames
from review_bot.observability.errors import ErrorTracker, ErrorSeverity

__all__ = [
    "setup_logging",
    "LogContext",
    "MetricsCollector",
    "MetricNames",
    "ErrorTracker",
    "ErrorSeverity",
]
