"""Database repository for conversation lifecycle data."""
from __future__ import annotations

import datetime as dt
from typing import Iterable, List, Optional, Protocol, cast
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ..models import (
    Conversation,
    ConversationMetricsRecord,
    ConversationState,
    Message,
    MessageRole,
    ResolutionType,
    SatisfactionRating,
)
from .lifecycle import Transition
from .models import ConversationSnapshot, MessageSnapshot


class ConversationNotFoundError(LookupError):
    """Raised when a conversation could not be located."""


class RatingAlreadyRecordedError(RuntimeError):
    """Raised when a conversation already holds a satisfaction rating."""


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class ConversationStore(Protocol):
    """Abstraction over the persisted conversation records."""

    def create_conversation(
        self,
        customer_id: UUID,
        company_id: UUID,
        *,
        at: Optional[dt.datetime] = None,
    ) -> ConversationSnapshot: ...

    def get_conversation(self, conversation_id: UUID) -> Optional[ConversationSnapshot]: ...

    def list_assistant_messages(
        self, since: dt.datetime, until: dt.datetime
    ) -> List[MessageSnapshot]: ...

    def list_sweep_candidates(
        self,
        *,
        inactive_before: dt.datetime,
        conversation_ids: Optional[Iterable[UUID]] = None,
    ) -> List[ConversationSnapshot]: ...

    def apply_transition(
        self, conversation_id: UUID, transition: Transition, *, at: dt.datetime
    ) -> bool: ...

    def record_user_message(
        self, conversation_id: UUID, body: str, *, at: dt.datetime
    ) -> MessageSnapshot: ...

    def reply_context(
        self, conversation_id: UUID
    ) -> tuple[Optional[MessageSnapshot], int]: ...

    def record_assistant_reply(
        self,
        conversation_id: UUID,
        body: str,
        *,
        at: dt.datetime,
        response_time_seconds: Optional[int] = None,
        responded_on_time: Optional[bool] = None,
    ) -> MessageSnapshot: ...

    def count_messages(
        self, conversation_id: UUID, role: Optional[MessageRole] = None
    ) -> int: ...

    def set_resolution_type(
        self, conversation_id: UUID, resolution_type: ResolutionType
    ) -> None: ...

    def record_rating(
        self,
        conversation_id: UUID,
        rating: int,
        *,
        comment: Optional[str] = None,
        at: dt.datetime,
    ) -> UUID: ...


class SqlAlchemyConversationStore:
    """SQLAlchemy implementation of :class:`ConversationStore`.

    Every public method runs in its own transaction so that a failure while
    persisting one conversation never rolls back work done for another.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    # Utility -----------------------------------------------------------------
    def _begin(self):
        return self._session_factory.begin()

    @staticmethod
    def _require(session: Session, conversation_id: UUID) -> Conversation:
        row = session.get(Conversation, conversation_id)
        if row is None:
            raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
        return row

    # Conversation operations --------------------------------------------------
    def create_conversation(
        self,
        customer_id: UUID,
        company_id: UUID,
        *,
        at: Optional[dt.datetime] = None,
    ) -> ConversationSnapshot:
        at = at or _utcnow()
        with self._begin() as session:
            row = Conversation(
                customer_id=customer_id,
                company_id=company_id,
                state=ConversationState.ACTIVE,
                last_user_activity_at=at,
                created_at=at,
                updated_at=at,
            )
            session.add(row)
            session.flush()
            return ConversationSnapshot.from_row(row)

    def get_conversation(self, conversation_id: UUID) -> Optional[ConversationSnapshot]:
        with self._begin() as session:
            row = session.get(Conversation, conversation_id)
            if row is None:
                return None
            return ConversationSnapshot.from_row(row)

    # Sweep selection -----------------------------------------------------------
    def list_assistant_messages(
        self, since: dt.datetime, until: dt.datetime
    ) -> List[MessageSnapshot]:
        stmt = (
            select(Message)
            .where(
                Message.role == MessageRole.ASSISTANT,
                Message.created_at >= since,
                Message.created_at < until,
            )
            .order_by(Message.created_at)
        )
        with self._begin() as session:
            return [MessageSnapshot.from_row(row) for row in session.scalars(stmt)]

    def list_sweep_candidates(
        self,
        *,
        inactive_before: dt.datetime,
        conversation_ids: Optional[Iterable[UUID]] = None,
    ) -> List[ConversationSnapshot]:
        stmt = select(Conversation).where(
            Conversation.state == ConversationState.ACTIVE,
            Conversation.satisfaction_collected.is_(False),
            Conversation.last_user_activity_at < inactive_before,
        )
        if conversation_ids is not None:
            ids = list(conversation_ids)
            if not ids:
                return []
            stmt = stmt.where(Conversation.id.in_(ids))
        stmt = stmt.order_by(Conversation.last_user_activity_at)
        with self._begin() as session:
            return [ConversationSnapshot.from_row(row) for row in session.scalars(stmt)]

    # Sweep writes --------------------------------------------------------------
    def apply_transition(
        self, conversation_id: UUID, transition: Transition, *, at: dt.datetime
    ) -> bool:
        """Persist ``transition`` if the row still satisfies its guards.

        The update is conditional on the state, the satisfaction flag and the
        activity cutoff, so a conversation that live chat re-activated after
        selection is left untouched. Returns ``True`` when the row changed.
        The rating prompt, if any, is appended in the same transaction.
        """

        with self._begin() as session:
            result = session.execute(
                update(Conversation)
                .where(
                    Conversation.id == conversation_id,
                    Conversation.state == transition.from_state,
                    Conversation.satisfaction_collected.is_(False),
                    Conversation.last_user_activity_at < transition.activity_cutoff,
                )
                .values(
                    state=transition.next_state,
                    resolved=transition.resolved,
                    satisfaction_collected=transition.satisfaction_collected,
                    updated_at=at,
                )
                .execution_options(synchronize_session=False)
            )
            if cast(CursorResult, result).rowcount != 1:
                return False
            if transition.prompt:
                session.add(
                    Message(
                        conversation_id=conversation_id,
                        role=MessageRole.ASSISTANT,
                        body=transition.prompt,
                        created_at=at,
                    )
                )
        return True

    # Messaging path ------------------------------------------------------------
    def record_user_message(
        self, conversation_id: UUID, body: str, *, at: dt.datetime
    ) -> MessageSnapshot:
        with self._begin() as session:
            conversation = self._require(session, conversation_id)
            conversation.last_user_activity_at = at
            conversation.updated_at = at
            if conversation.state is not ConversationState.ACTIVE:
                conversation.state = ConversationState.ACTIVE
                conversation.resolved = False
            message = Message(
                conversation_id=conversation_id,
                role=MessageRole.USER,
                body=body,
                created_at=at,
            )
            session.add(message)
            session.flush()
            return MessageSnapshot.from_row(message)

    def reply_context(
        self, conversation_id: UUID
    ) -> tuple[Optional[MessageSnapshot], int]:
        """Return the latest user message and the total message count."""

        with self._begin() as session:
            self._require(session, conversation_id)
            last_user = session.scalars(
                select(Message)
                .where(
                    Message.conversation_id == conversation_id,
                    Message.role == MessageRole.USER,
                )
                .order_by(Message.created_at.desc())
                .limit(1)
            ).first()
            total = session.scalar(
                select(func.count(Message.id)).where(
                    Message.conversation_id == conversation_id
                )
            )
            snapshot = MessageSnapshot.from_row(last_user) if last_user else None
            return snapshot, int(total or 0)

    def record_assistant_reply(
        self,
        conversation_id: UUID,
        body: str,
        *,
        at: dt.datetime,
        response_time_seconds: Optional[int] = None,
        responded_on_time: Optional[bool] = None,
    ) -> MessageSnapshot:
        """Append an assistant message and fold its latency into the metrics."""

        with self._begin() as session:
            self._require(session, conversation_id)
            message = Message(
                conversation_id=conversation_id,
                role=MessageRole.ASSISTANT,
                body=body,
                created_at=at,
                response_time_seconds=response_time_seconds,
                responded_on_time=responded_on_time,
            )
            session.add(message)
            if response_time_seconds is not None:
                self._add_response_sample(
                    session,
                    conversation_id,
                    response_time_seconds,
                    bool(responded_on_time),
                    at,
                )
            session.flush()
            return MessageSnapshot.from_row(message)

    @staticmethod
    def _add_response_sample(
        session: Session,
        conversation_id: UUID,
        response_time_seconds: int,
        on_time: bool,
        at: dt.datetime,
    ) -> None:
        on_time_increment = 1 if on_time else 0
        result = session.execute(
            update(ConversationMetricsRecord)
            .where(ConversationMetricsRecord.conversation_id == conversation_id)
            .values(
                response_time_total=ConversationMetricsRecord.response_time_total
                + response_time_seconds,
                messages_count=ConversationMetricsRecord.messages_count + 1,
                messages_responded_on_time=ConversationMetricsRecord.messages_responded_on_time
                + on_time_increment,
                total_messages_received=ConversationMetricsRecord.total_messages_received + 1,
                updated_at=at,
            )
            .execution_options(synchronize_session=False)
        )
        if cast(CursorResult, result).rowcount:
            return
        session.add(
            ConversationMetricsRecord(
                conversation_id=conversation_id,
                response_time_total=response_time_seconds,
                messages_count=1,
                messages_responded_on_time=on_time_increment,
                total_messages_received=1,
                created_at=at,
                updated_at=at,
            )
        )

    def count_messages(
        self, conversation_id: UUID, role: Optional[MessageRole] = None
    ) -> int:
        stmt = select(func.count(Message.id)).where(
            Message.conversation_id == conversation_id
        )
        if role is not None:
            stmt = stmt.where(Message.role == role)
        with self._begin() as session:
            return int(session.scalar(stmt) or 0)

    def set_resolution_type(
        self, conversation_id: UUID, resolution_type: ResolutionType
    ) -> None:
        with self._begin() as session:
            conversation = self._require(session, conversation_id)
            conversation.resolution_type = resolution_type

    # Ratings --------------------------------------------------------------------
    def record_rating(
        self,
        conversation_id: UUID,
        rating: int,
        *,
        comment: Optional[str] = None,
        at: dt.datetime,
    ) -> UUID:
        """Store the single rating of a conversation and close it.

        Raises :class:`RatingAlreadyRecordedError` if a rating exists already.
        """

        try:
            with self._begin() as session:
                conversation = self._require(session, conversation_id)
                record = SatisfactionRating(
                    conversation_id=conversation_id,
                    rating=rating,
                    comment=comment,
                    created_at=at,
                )
                session.add(record)
                conversation.satisfaction_collected = True
                conversation.resolved = True
                conversation.state = ConversationState.IDLE
                conversation.updated_at = at
                session.flush()
                return record.id
        except IntegrityError as exc:
            raise RatingAlreadyRecordedError(
                f"Conversation {conversation_id} already has a rating"
            ) from exc


__all__ = [
    "ConversationNotFoundError",
    "ConversationStore",
    "RatingAlreadyRecordedError",
    "SqlAlchemyConversationStore",
]
