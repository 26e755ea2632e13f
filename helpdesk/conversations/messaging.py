"""Bookkeeping performed by the live chat path for every exchanged message.

The lifecycle sweep and the quality metrics only read what this module
writes: customer activity timestamps, the message log, per-conversation
response-time counters and the resolution classification.
"""

from __future__ import annotations

import datetime as dt
import logging
import math
import re
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from ..config import EngineSettings, get_settings
from ..models import MessageRole, ResolutionType
from .models import MessageSnapshot
from .repository import ConversationNotFoundError, ConversationStore

logger = logging.getLogger(__name__)

# Replies that ask again for data the customer normally gave at sign-in.
REDUNDANT_REQUEST_PATTERNS = (
    re.compile(r"cu[aá]l es tu (correo|email|nombre)", re.IGNORECASE),
    re.compile(r"podr[ií]as darme tu (correo|email|nombre)", re.IGNORECASE),
    re.compile(r"necesito tu (correo|email|nombre)", re.IGNORECASE),
)

ACTION_REQUEST_PATTERNS = (
    re.compile(r"(?:quiero|deseo|necesito|puedo)\s+(?:agendar|reservar)", re.IGNORECASE),
    re.compile(
        r"(?:dame|muestra|ens[eé][ñn]ame)\s+(?:productos|servicios|precios)",
        re.IGNORECASE,
    ),
)

LINK_PATTERN = re.compile(r"http")


@dataclass(frozen=True)
class ResponseEffectivenessRule:
    """Classifies an assistant reply as answered on time (effectively).

    A reply counts when the conversation is still within ``max_turns`` turns
    (one turn is a customer message plus its reply) and the reply does not ask
    for data again, or when the customer asked for a concrete action and the
    reply answers with a link. Anything else went around in circles.
    """

    max_turns: int = 2

    def is_effective(self, user_message: str, reply: str, message_count: int) -> bool:
        turns = math.ceil(message_count / 2)
        if turns <= self.max_turns and not any(
            pattern.search(reply) for pattern in REDUNDANT_REQUEST_PATTERNS
        ):
            return True
        requested_action = any(
            pattern.search(user_message) for pattern in ACTION_REQUEST_PATTERNS
        )
        # Deliberate change from the legacy chat backend, which fell back to
        # ``turns <= 2`` here and so counted redundant replies inside the budget
        # as on time. FR2 figures are lower than that system's for such data.
        return bool(requested_action and LINK_PATTERN.search(reply))


def classify_resolution(live: bool, user_message_count: int) -> ResolutionType:
    """Resolution type implied by the shape of a conversation."""

    if live:
        return ResolutionType.ESCALATED
    if user_message_count == 1:
        return ResolutionType.FIRST_INTERACTION
    if user_message_count > 1:
        return ResolutionType.FOLLOW_UP
    return ResolutionType.UNRESOLVED


class ConversationActivityService:
    """Records messages and keeps the derived counters up to date."""

    def __init__(
        self,
        store: ConversationStore,
        *,
        effectiveness: Optional[ResponseEffectivenessRule] = None,
    ) -> None:
        self._store = store
        self._effectiveness = effectiveness or ResponseEffectivenessRule()

    @classmethod
    def from_settings(
        cls, store: ConversationStore, settings: Optional[EngineSettings] = None
    ) -> "ConversationActivityService":
        settings = settings or get_settings()
        return cls(
            store,
            effectiveness=ResponseEffectivenessRule(max_turns=settings.on_time_max_turns),
        )

    @property
    def effectiveness(self) -> ResponseEffectivenessRule:
        return self._effectiveness

    def record_customer_message(
        self, conversation_id: UUID, body: str, at: Optional[dt.datetime] = None
    ) -> MessageSnapshot:
        """Append a customer message; re-activates an idle conversation."""

        at = at or dt.datetime.now(dt.timezone.utc)
        return self._store.record_user_message(conversation_id, body, at=at)

    def record_assistant_reply(
        self, conversation_id: UUID, body: str, at: Optional[dt.datetime] = None
    ) -> MessageSnapshot:
        """Append an assistant reply and fold its latency into the metrics.

        Replies without a preceding customer message (greetings, prompts) are
        stored without timing data and do not touch the metrics record.
        """

        at = at or dt.datetime.now(dt.timezone.utc)
        last_user, message_count = self._store.reply_context(conversation_id)
        if last_user is None:
            return self._store.record_assistant_reply(conversation_id, body, at=at)

        latency = _elapsed_seconds(last_user.created_at, at)
        on_time = self._effectiveness.is_effective(last_user.body, body, message_count)
        logger.debug(
            "Conversation %s reply after %ss (on time: %s)",
            conversation_id,
            latency,
            on_time,
        )
        return self._store.record_assistant_reply(
            conversation_id,
            body,
            at=at,
            response_time_seconds=latency,
            responded_on_time=on_time,
        )

    def classify_resolution(self, conversation_id: UUID) -> ResolutionType:
        """Recompute and store the resolution type of a conversation."""

        conversation = self._store.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
        user_messages = self._store.count_messages(conversation_id, MessageRole.USER)
        resolution = classify_resolution(conversation.live, user_messages)
        self._store.set_resolution_type(conversation_id, resolution)
        return resolution


def _elapsed_seconds(start: dt.datetime, end: dt.datetime) -> int:
    if start.tzinfo is None:
        start = start.replace(tzinfo=dt.timezone.utc)
    if end.tzinfo is None:
        end = end.replace(tzinfo=dt.timezone.utc)
    return max(0, math.floor((end - start).total_seconds()))


__all__ = [
    "ConversationActivityService",
    "ResponseEffectivenessRule",
    "classify_resolution",
]
