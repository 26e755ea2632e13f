"""Quality metrics computed from conversation data.

Four independent, read-only metrics:

* FR1 average response time (floor of total seconds over answered messages),
* FR2 percentage of messages answered on time,
* FR3 first-interaction resolution rate,
* FR4 customer satisfaction average and distribution.

The ``compute_*`` functions are pure and hold all the arithmetic; the
:class:`QualityMetricsAggregator` feeds them from a :class:`MetricsReader`.
"""

from __future__ import annotations

import logging
from collections import Counter
from concurrent.futures import Future, ThreadPoolExecutor, wait
from decimal import Decimal
from typing import Callable, Iterable, Optional, Sequence, TypeVar

from ..models import ResolutionType
from .formatting import format_time, ratio_percentage, round_half_up
from .repository import ALL_TIME, MetricsReader, MetricsSample, TimeWindow
from .schemas import (
    AverageResponseTime,
    FirstInteractionResolution,
    OnTimeResponse,
    QualityMetricsSummary,
    RatingBuckets,
    SatisfactionAverage,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def compute_average_response_time(samples: Sequence[MetricsSample]) -> AverageResponseTime:
    if not samples:
        return AverageResponseTime()
    total_messages = sum(sample.messages_count for sample in samples)
    total_time = sum(sample.response_time_total for sample in samples)
    average = total_time // total_messages if total_messages > 0 else 0
    return AverageResponseTime(
        average_response_time=average,
        total_conversations=len(samples),
        total_messages=total_messages,
        formatted_time=format_time(average),
    )


def compute_on_time_percentage(samples: Sequence[MetricsSample]) -> OnTimeResponse:
    on_time = sum(sample.messages_responded_on_time for sample in samples)
    total = sum(sample.total_messages_received for sample in samples)
    return OnTimeResponse(
        percentage=ratio_percentage(on_time, total),
        responded_on_time=on_time,
        total_messages=total,
        not_responded_on_time=total - on_time,
    )


def compute_first_interaction_rate(
    resolution_types: Iterable[Optional[ResolutionType]],
) -> FirstInteractionResolution:
    """Unclassified conversations (``None``) are left out of the total."""

    counts = Counter(value for value in resolution_types if value is not None)
    total = sum(counts.values())
    first = counts[ResolutionType.FIRST_INTERACTION]
    return FirstInteractionResolution(
        first_interaction_rate=ratio_percentage(first, total),
        first_interaction_count=first,
        follow_up_count=counts[ResolutionType.FOLLOW_UP],
        escalated_count=counts[ResolutionType.ESCALATED],
        unresolved_count=counts[ResolutionType.UNRESOLVED],
        total_conversations=total,
    )


def compute_satisfaction_average(ratings: Sequence[int]) -> SatisfactionAverage:
    """Bucket percentages are rounded one by one and may not add up to 100."""

    if not ratings:
        return SatisfactionAverage()
    total = len(ratings)
    counts = Counter(ratings)
    distribution = {f"rating{value}": counts[value] for value in range(1, 6)}
    percentages = {
        key: int(ratio_percentage(count, total, 0)) for key, count in distribution.items()
    }
    return SatisfactionAverage(
        average_rating=round_half_up(Decimal(sum(ratings)) / total, 2),
        total_ratings=total,
        distribution=RatingBuckets(**distribution),
        percentages=RatingBuckets(**percentages),
    )


class QualityMetricsAggregator:
    """Computes the quality metrics for one reader (usually one company).

    Individual methods propagate reader failures. The summary isolates them:
    a metric that raises or exceeds ``timeout_seconds`` is reported as ``None``
    while the others are still returned.
    """

    def __init__(self, reader: MetricsReader, *, timeout_seconds: float = 10.0) -> None:
        self._reader = reader
        self._timeout_seconds = timeout_seconds

    def average_response_time(self, window: TimeWindow = ALL_TIME) -> AverageResponseTime:
        return compute_average_response_time(self._reader.metrics_records(window))

    def on_time_response_percentage(self, window: TimeWindow = ALL_TIME) -> OnTimeResponse:
        return compute_on_time_percentage(self._reader.metrics_records(window))

    def first_interaction_resolution_rate(
        self, window: TimeWindow = ALL_TIME
    ) -> FirstInteractionResolution:
        return compute_first_interaction_rate(self._reader.resolution_types(window))

    def customer_satisfaction_average(
        self, window: TimeWindow = ALL_TIME
    ) -> SatisfactionAverage:
        return compute_satisfaction_average(self._reader.ratings(window))

    def quality_metrics_summary(self, window: TimeWindow = ALL_TIME) -> QualityMetricsSummary:
        jobs: dict[str, Callable[[TimeWindow], object]] = {
            "fr1_average_response_time": self.average_response_time,
            "fr2_on_time_percentage": self.on_time_response_percentage,
            "fr3_first_interaction_rate": self.first_interaction_resolution_rate,
            "fr4_satisfaction_average": self.customer_satisfaction_average,
        }
        executor = ThreadPoolExecutor(
            max_workers=len(jobs), thread_name_prefix="quality-metrics"
        )
        try:
            futures = {name: executor.submit(job, window) for name, job in jobs.items()}
            wait(futures.values(), timeout=self._timeout_seconds)
            results = {name: self._collect(name, future) for name, future in futures.items()}
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return QualityMetricsSummary(**results)

    def _collect(self, name: str, future: Future[T]) -> Optional[T]:
        if not future.done():
            future.cancel()
            logger.warning(
                "Quality metric %s timed out after %ss", name, self._timeout_seconds
            )
            return None
        exc = future.exception()
        if exc is not None:
            logger.error("Quality metric %s failed", name, exc_info=exc)
            return None
        return future.result()


__all__ = [
    "QualityMetricsAggregator",
    "compute_average_response_time",
    "compute_first_interaction_rate",
    "compute_on_time_percentage",
    "compute_satisfaction_average",
]
