"""FastAPI dependencies wiring the routers to the database and services.

Tests replace these through ``app.dependency_overrides``.
"""

from __future__ import annotations

import os
from functools import lru_cache
from uuid import UUID

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session, sessionmaker

from ..config import get_settings
from ..conversations.messaging import ConversationActivityService
from ..conversations.ratings import RatingService
from ..conversations.repository import SqlAlchemyConversationStore
from ..conversations.sweep import ProactiveSweep
from ..metrics.aggregator import QualityMetricsAggregator
from ..metrics.repository import SqlAlchemyMetricsReader
from ..models.session import get_default_sessionmaker


def get_session_factory() -> sessionmaker[Session]:
    try:
        return get_default_sessionmaker()
    except RuntimeError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@lru_cache(maxsize=1)
def _shared_sweep() -> ProactiveSweep:
    store = SqlAlchemyConversationStore(get_default_sessionmaker())
    return ProactiveSweep.from_settings(store)


def get_proactive_sweep() -> ProactiveSweep:
    """Process-wide sweep so HTTP ticks and the scheduler share one lock."""

    try:
        return _shared_sweep()
    except RuntimeError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def resolve_company_id(request: Request) -> UUID:
    company = getattr(request.state, "company_id", None)
    if not company:
        company = request.headers.get("X-Company-Id")
    if not company:
        company = os.getenv("COMPANY_ID")
    if not company:
        raise HTTPException(status_code=400, detail="Company identifier is required")
    try:
        return company if isinstance(company, UUID) else UUID(str(company))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid company identifier") from exc


def get_quality_metrics_aggregator(
    company_id: UUID = Depends(resolve_company_id),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> QualityMetricsAggregator:
    reader = SqlAlchemyMetricsReader(session_factory, company_id=company_id)
    return QualityMetricsAggregator(
        reader, timeout_seconds=get_settings().metric_timeout_seconds
    )


def get_rating_service(
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> RatingService:
    store = SqlAlchemyConversationStore(session_factory)
    return RatingService(store, ConversationActivityService.from_settings(store))


__all__ = [
    "get_proactive_sweep",
    "get_quality_metrics_aggregator",
    "get_rating_service",
    "get_session_factory",
    "resolve_company_id",
]
