"""Dashboard endpoints for the FR1-FR4 quality metrics."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Callable, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from ..core.deps import get_quality_metrics_aggregator
from ..metrics.aggregator import QualityMetricsAggregator
from ..metrics.repository import MetricsQueryError, TimeWindow, resolve_window
from ..metrics.schemas import QualityMetricsSummary

router = APIRouter(prefix="/api/quality-metrics", tags=["quality-metrics"])

logger = logging.getLogger(__name__)

_METRICS: dict[str, Callable[[QualityMetricsAggregator, TimeWindow], BaseModel]] = {
    "response-time": QualityMetricsAggregator.average_response_time,
    "on-time": QualityMetricsAggregator.on_time_response_percentage,
    "first-interaction": QualityMetricsAggregator.first_interaction_resolution_rate,
    "satisfaction": QualityMetricsAggregator.customer_satisfaction_average,
}


def _window(
    start: Optional[dt.datetime] = Query(None, alias="from"),
    end: Optional[dt.datetime] = Query(None, alias="to"),
) -> TimeWindow:
    try:
        return resolve_window(start, end)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.get("", response_model=QualityMetricsSummary)
def quality_metrics_summary(
    window: TimeWindow = Depends(_window),
    aggregator: QualityMetricsAggregator = Depends(get_quality_metrics_aggregator),
) -> QualityMetricsSummary:
    """All four metrics; a metric that failed is returned as ``null``."""
    return aggregator.quality_metrics_summary(window)


@router.get("/{metric}")
def quality_metric(
    metric: str,
    window: TimeWindow = Depends(_window),
    aggregator: QualityMetricsAggregator = Depends(get_quality_metrics_aggregator),
) -> dict:
    compute = _METRICS.get(metric)
    if compute is None:
        raise HTTPException(status_code=404, detail=f"Unknown metric '{metric}'")
    try:
        return compute(aggregator, window).model_dump()
    except MetricsQueryError as exc:
        logger.error("Quality metric %s failed: %s", metric, exc)
        raise HTTPException(status_code=500, detail="Failed to compute metric") from exc
