"""Analyzer variants and the registry used to build them from settings."""

import logging
from typing import Dict, List, Optional, Type

from review_bot.analyzers.base import Analyzer, LineRule, RuleAnalyzer, matches_pattern
from review_bot.analyzers.bugs import BugAnalyzer
from review_bot.analyzers.performance import PerformanceAnalyzer
from review_bot.analyzers.quality import QualityAnalyzer
from review_bot.analyzers.security import SecurityAnalyzer
from review_bot.config import Settings
from review_bot.observability.errors import ErrorTracker

logger = logging.getLogger(__name__)

ANALYZER_REGISTRY: Dict[str, Type[RuleAnalyzer]] = {
    SecurityAnalyzer.name: SecurityAnalyzer,
    QualityAnalyzer.name: QualityAnalyzer,
    BugAnalyzer.name: BugAnalyzer,
    PerformanceAnalyzer.name: PerformanceAnalyzer,
}


def build_analyzers(
    settings: Settings,
    error_tracker: Optional[ErrorTracker] = None,
) -> List[RuleAnalyzer]:
    """
    Instantiate the analyzers named in ``analysis.enabled_analyzers``.

    Args:
        settings: Run settings
        error_tracker: Optional tracker shared by all analyzers

    Returns:
        List[RuleAnalyzer]: Analyzers in configured order
    """
    analyzers = []
    for name in settings.analysis.enabled_analyzers:
        analyzer_cls = ANALYZER_REGISTRY.get(name)
        if analyzer_cls is None:
            logger.warning(f"Unknown analyzer '{name}' skipped")
            continue
        analyzers.append(analyzer_cls(settings, error_tracker))

    logger.debug("Analyzers initialized", extra={"analyzers": [a.get_name() for a in analyzers]})
    return analyzers


__all__ = [
    "ANALYZER_REGISTRY",
    "Analyzer",
    "BugAnalyzer",
    "LineRule",
    "PerformanceAnalyzer",
    "QualityAnalyzer",
    "RuleAnalyzer",
    "SecurityAnalyzer",
    "build_analyzers",
    "matches_pattern",
]
