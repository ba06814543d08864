"""Report rendering."""

from review_bot.review.formatter import ReportGenerator, ReportOptions

__all__ = ["ReportGenerator", "ReportOptions"]
