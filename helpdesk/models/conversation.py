"""Conversation-related SQLAlchemy models.

The four tables defined here are the only durable state the lifecycle engine
depends on:

- ``conversations``: lifecycle state and resolution flags per thread.
- ``conversation_messages``: append-only message log.
- ``conversation_metrics``: per-conversation response-time counters maintained
  by the messaging path.
- ``satisfaction_ratings``: one 1-5 rating per conversation.
"""

from __future__ import annotations

import datetime as dt
import enum
import uuid
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base


def _utcnow() -> dt.datetime:
    """Return the current UTC timestamp with timezone awareness."""

    return dt.datetime.now(dt.timezone.utc)


class ConversationState(str, enum.Enum):
    ACTIVE = "ACTIVE"
    AWAITING_RATING = "AWAITING_RATING"
    IDLE = "IDLE"


class ResolutionType(str, enum.Enum):
    FIRST_INTERACTION = "FIRST_INTERACTION"
    FOLLOW_UP = "FOLLOW_UP"
    ESCALATED = "ESCALATED"
    UNRESOLVED = "UNRESOLVED"


class MessageRole(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Conversation(Base):
    """A customer interaction thread.

    Attributes:
        id: Primary key.
        customer_id: Customer who owns the thread.
        company_id: Company the customer belongs to; the aggregation scope of
            the quality metrics.
        state: Lifecycle state, always defined.
        resolution_type: Resolution classification, independent of ``state``.
        resolved: True once a terminal judgment has been recorded.
        satisfaction_collected: True once a rating was requested or obtained.
        last_user_activity_at: Timestamp of the latest customer message.
        live: Whether a human agent is engaged.
    """

    __tablename__ = "conversations"
    __table_args__ = (
        Index("ix_conversations_sweep", "state", "satisfaction_collected", "last_user_activity_at"),
        Index("ix_conversations_company_created", "company_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    company_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    state: Mapped[ConversationState] = mapped_column(
        Enum(ConversationState, name="conversation_state", native_enum=False, length=32),
        nullable=False,
        default=ConversationState.ACTIVE,
    )
    resolution_type: Mapped[ResolutionType | None] = mapped_column(
        Enum(ResolutionType, name="resolution_type", native_enum=False, length=32),
        nullable=True,
    )
    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    satisfaction_collected: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    live: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_user_activity_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    messages: Mapped[List["Message"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.created_at",
    )
    metrics: Mapped[Optional["ConversationMetricsRecord"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        uselist=False,
    )
    rating: Mapped[Optional["SatisfactionRating"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        uselist=False,
    )


class Message(Base):
    """A single turn of a conversation; never updated after insert."""

    __tablename__ = "conversation_messages"
    __table_args__ = (
        Index("ix_conversation_messages_conversation", "conversation_id", "created_at"),
        Index("ix_conversation_messages_role_created", "role", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    role: Mapped[MessageRole] = mapped_column(
        Enum(
            MessageRole,
            name="message_role",
            native_enum=False,
            length=16,
            values_callable=lambda roles: [role.value for role in roles],
        ),
        nullable=False,
    )
    body: Mapped[str] = mapped_column(Text(), nullable=False)
    response_time_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    responded_on_time: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    conversation: Mapped[Conversation] = relationship(back_populates="messages")


class ConversationMetricsRecord(Base):
    """Response-time counters for one conversation."""

    __tablename__ = "conversation_metrics"
    __table_args__ = (
        Index("ix_conversation_metrics_conversation_unique", "conversation_id", unique=True),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    response_time_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    messages_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    messages_responded_on_time: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    total_messages_received: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    conversation: Mapped[Conversation] = relationship(back_populates="metrics")


class SatisfactionRating(Base):
    """Customer answer to the rating prompt; immutable once stored."""

    __tablename__ = "satisfaction_ratings"
    __table_args__ = (
        Index("ix_satisfaction_ratings_conversation_unique", "conversation_id", unique=True),
        Index("ix_satisfaction_ratings_created", "created_at"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_satisfaction_ratings_range"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str | None] = mapped_column(String(length=1000), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    conversation: Mapped[Conversation] = relationship(back_populates="rating")
