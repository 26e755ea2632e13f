"""Domain values passed between the store, the lifecycle rules and the sweep."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from uuid import UUID

from ..models import Conversation, ConversationState, Message, MessageRole, ResolutionType


@dataclass(frozen=True)
class ConversationSnapshot:
    """Read-only copy of the lifecycle columns of one conversation."""

    id: UUID
    customer_id: UUID
    state: ConversationState
    satisfaction_collected: bool
    resolved: bool
    last_user_activity_at: dt.datetime
    live: bool = False
    resolution_type: ResolutionType | None = None

    @classmethod
    def from_row(cls, row: Conversation) -> "ConversationSnapshot":
        return cls(
            id=row.id,
            customer_id=row.customer_id,
            state=row.state,
            satisfaction_collected=row.satisfaction_collected,
            resolved=row.resolved,
            last_user_activity_at=row.last_user_activity_at,
            live=row.live,
            resolution_type=row.resolution_type,
        )


@dataclass(frozen=True)
class MessageSnapshot:
    id: UUID
    conversation_id: UUID
    role: MessageRole
    body: str
    created_at: dt.datetime

    @classmethod
    def from_row(cls, row: Message) -> "MessageSnapshot":
        return cls(
            id=row.id,
            conversation_id=row.conversation_id,
            role=row.role,
            body=row.body,
            created_at=row.created_at,
        )


@dataclass
class SweepSummary:
    """Counters reported by one sweep pass."""

    ran_at: dt.datetime
    help_candidates: int = 0
    inactive_candidates: int = 0
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    skipped_run: bool = False
    processed_by_trigger: dict[str, int] = field(default_factory=dict)

    @property
    def message(self) -> str:
        if self.skipped_run:
            return "Proactive sweep skipped: a previous pass is still running"
        return f"Proactive sweep: {self.processed} conversations processed"
