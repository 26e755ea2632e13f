"""Pydantic schemas returned by the quality metrics aggregator."""

from __future__ import annotations

from pydantic import BaseModel, Field


class AverageResponseTime(BaseModel):
    """FR1: weighted average assistant response time in whole seconds."""

    average_response_time: int = 0
    total_conversations: int = 0
    total_messages: int = 0
    formatted_time: str = "0 segundos"


class OnTimeResponse(BaseModel):
    """FR2: share of customer messages answered effectively."""

    percentage: float = 0
    responded_on_time: int = 0
    total_messages: int = 0
    not_responded_on_time: int = 0


class FirstInteractionResolution(BaseModel):
    """FR3: conversations resolved without a follow-up."""

    first_interaction_rate: float = 0
    first_interaction_count: int = 0
    follow_up_count: int = 0
    escalated_count: int = 0
    unresolved_count: int = 0
    total_conversations: int = 0


class RatingBuckets(BaseModel):
    rating1: int = 0
    rating2: int = 0
    rating3: int = 0
    rating4: int = 0
    rating5: int = 0


class SatisfactionAverage(BaseModel):
    """FR4: average 1-5 rating with its distribution."""

    average_rating: float = 0
    total_ratings: int = 0
    distribution: RatingBuckets = Field(default_factory=RatingBuckets)
    percentages: RatingBuckets = Field(default_factory=RatingBuckets)


class QualityMetricsSummary(BaseModel):
    """All four metrics; a slot is ``None`` when its computation failed."""

    fr1_average_response_time: AverageResponseTime | None = None
    fr2_on_time_percentage: OnTimeResponse | None = None
    fr3_first_interaction_rate: FirstInteractionResolution | None = None
    fr4_satisfaction_average: SatisfactionAverage | None = None


__all__ = [
    "AverageResponseTime",
    "FirstInteractionResolution",
    "OnTimeResponse",
    "QualityMetricsSummary",
    "RatingBuckets",
    "SatisfactionAverage",
]
