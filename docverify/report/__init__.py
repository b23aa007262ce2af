"""Report aggregation and rendering."""

from .aggregator import ReportAggregator
from .render import JsonReportRenderer, ReportRenderer, TextReportRenderer, create_renderer

__all__ = [
    "JsonReportRenderer",
    "ReportAggregator",
    "ReportRenderer",
    "TextReportRenderer",
    "create_renderer",
]
