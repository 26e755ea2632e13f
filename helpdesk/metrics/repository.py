"""Read-only queries feeding the quality metrics."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import List, Optional, Protocol, Union
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..models import (
    Conversation,
    ConversationMetricsRecord,
    ResolutionType,
    SatisfactionRating,
)


class MetricsQueryError(RuntimeError):
    """Raised when the metric inputs could not be read from the store."""


@dataclass(frozen=True)
class DateWindow:
    """Closed interval ``[start, end]``."""

    start: dt.datetime
    end: dt.datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError("Window start must not be after its end")


class AllTime:
    """No time filter."""

    _instance: Optional["AllTime"] = None

    def __new__(cls) -> "AllTime":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ALL_TIME"


ALL_TIME = AllTime()

TimeWindow = Union[DateWindow, AllTime]


def resolve_window(
    start: Optional[dt.datetime] = None, end: Optional[dt.datetime] = None
) -> TimeWindow:
    """Turn an optional ``start``/``end`` pair into a :data:`TimeWindow`.

    Both bounds or neither must be given.
    """

    if start is None and end is None:
        return ALL_TIME
    if start is None or end is None:
        raise ValueError("Both 'from' and 'to' are required to filter by date")
    return DateWindow(start=start, end=end)


@dataclass(frozen=True)
class MetricsSample:
    """Counters of one :class:`ConversationMetricsRecord`."""

    messages_count: int
    response_time_total: int
    messages_responded_on_time: int
    total_messages_received: int


class MetricsReader(Protocol):
    def metrics_records(self, window: TimeWindow) -> List[MetricsSample]: ...

    def resolution_types(self, window: TimeWindow) -> List[Optional[ResolutionType]]: ...

    def ratings(self, window: TimeWindow) -> List[int]: ...


class SqlAlchemyMetricsReader:
    """Reads metric inputs, optionally scoped to one company.

    Each call opens a short-lived session of its own so concurrent calls never
    share a connection.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        company_id: Optional[UUID] = None,
    ) -> None:
        self._session_factory = session_factory
        self._company_id = company_id

    @property
    def company_id(self) -> Optional[UUID]:
        return self._company_id

    def _scoped(self, stmt: Select, window: TimeWindow, created_at) -> Select:
        if self._company_id is not None:
            stmt = stmt.where(Conversation.company_id == self._company_id)
        if isinstance(window, DateWindow):
            stmt = stmt.where(created_at >= window.start, created_at <= window.end)
        return stmt

    def _fetch(self, stmt: Select) -> list:
        try:
            with self._session_factory() as session:
                return list(session.execute(stmt).all())
        except SQLAlchemyError as exc:
            raise MetricsQueryError(str(exc)) from exc

    def metrics_records(self, window: TimeWindow) -> List[MetricsSample]:
        stmt = select(
            ConversationMetricsRecord.messages_count,
            ConversationMetricsRecord.response_time_total,
            ConversationMetricsRecord.messages_responded_on_time,
            ConversationMetricsRecord.total_messages_received,
        ).join(Conversation, Conversation.id == ConversationMetricsRecord.conversation_id)
        stmt = self._scoped(stmt, window, Conversation.created_at)
        return [
            MetricsSample(
                messages_count=row[0] or 0,
                response_time_total=row[1] or 0,
                messages_responded_on_time=row[2] or 0,
                total_messages_received=row[3] or 0,
            )
            for row in self._fetch(stmt)
        ]

    def resolution_types(self, window: TimeWindow) -> List[Optional[ResolutionType]]:
        stmt = self._scoped(
            select(Conversation.resolution_type), window, Conversation.created_at
        )
        return [row[0] for row in self._fetch(stmt)]

    def ratings(self, window: TimeWindow) -> List[int]:
        stmt = select(SatisfactionRating.rating).join(
            Conversation, Conversation.id == SatisfactionRating.conversation_id
        )
        stmt = self._scoped(stmt, window, SatisfactionRating.created_at)
        return [int(row[0]) for row in self._fetch(stmt)]


__all__ = [
    "ALL_TIME",
    "AllTime",
    "DateWindow",
    "MetricsQueryError",
    "MetricsReader",
    "MetricsSample",
    "SqlAlchemyMetricsReader",
    "TimeWindow",
    "resolve_window",
]
