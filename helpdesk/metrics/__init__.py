"""Quality metrics (FR1-FR4) over conversations, replies and ratings."""

from .aggregator import QualityMetricsAggregator
from .formatting import format_time, round_half_up
from .repository import (
    ALL_TIME,
    DateWindow,
    MetricsQueryError,
    SqlAlchemyMetricsReader,
    TimeWindow,
    resolve_window,
)
from .schemas import QualityMetricsSummary

__all__ = [
    "ALL_TIME",
    "DateWindow",
    "MetricsQueryError",
    "QualityMetricsAggregator",
    "QualityMetricsSummary",
    "SqlAlchemyMetricsReader",
    "TimeWindow",
    "format_time",
    "resolve_window",
    "round_half_up",
]
