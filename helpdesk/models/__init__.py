"""SQLAlchemy declarative base and conversation models.

This package hosts the SQLAlchemy models shared by the lifecycle sweep, the
messaging bookkeeping and the metrics readers. It exposes a single declarative
``Base`` class that other modules import when creating tables. Individual
models live in dedicated modules within this package.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy declarative models."""


# Re-export the models so callers can import them via
# ``from helpdesk.models import Conversation`` instead of touching private modules.
from .conversation import (
    Conversation,
    ConversationMetricsRecord,
    ConversationState,
    Message,
    MessageRole,
    ResolutionType,
    SatisfactionRating,
)


__all__ = [
    "Base",
    "Conversation",
    "ConversationMetricsRecord",
    "ConversationState",
    "Message",
    "MessageRole",
    "ResolutionType",
    "SatisfactionRating",
]
