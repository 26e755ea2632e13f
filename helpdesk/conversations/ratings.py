"""Satisfaction ratings given by customers at the end of a conversation."""

from __future__ import annotations

import datetime as dt
import logging
import re
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from .messaging import ConversationActivityService
from .repository import ConversationStore

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5

RATING_PATTERNS = (
    re.compile(r"(?:califico|calificar|puntuaci[oó]n|nota|rating|estrella).*?([1-5])", re.IGNORECASE),
    re.compile(r"^([1-5])$"),
    re.compile(r"([1-5])\s*(?:estrella|star)", re.IGNORECASE),
)


class InvalidRatingError(ValueError):
    """Raised when a rating falls outside the 1 to 5 scale."""


@dataclass(frozen=True)
class RatingReceipt:
    id: UUID
    conversation_id: UUID
    rating: int


def detect_satisfaction_rating(text: str) -> Optional[int]:
    """Extract a 1-5 rating from a free-text customer reply.

    >>> detect_satisfaction_rating("4")
    4
    >>> detect_satisfaction_rating("le doy 5 estrellas")
    5
    >>> detect_satisfaction_rating("gracias") is None
    True
    """

    text = (text or "").strip()
    for pattern in RATING_PATTERNS:
        match = pattern.search(text)
        if match:
            value = int(match.group(1))
            if MIN_RATING <= value <= MAX_RATING:
                return value
    return None


class RatingService:
    """Stores ratings and closes the rated conversation."""

    def __init__(
        self,
        store: ConversationStore,
        activity: Optional[ConversationActivityService] = None,
    ) -> None:
        self._store = store
        self._activity = activity or ConversationActivityService(store)

    def submit_rating(
        self,
        conversation_id: UUID,
        rating: int,
        comment: Optional[str] = None,
        at: Optional[dt.datetime] = None,
    ) -> RatingReceipt:
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise InvalidRatingError("Rating must be an integer")
        if not MIN_RATING <= rating <= MAX_RATING:
            raise InvalidRatingError(
                f"Rating must be between {MIN_RATING} and {MAX_RATING}"
            )
        at = at or dt.datetime.now(dt.timezone.utc)
        rating_id = self._store.record_rating(
            conversation_id, rating, comment=comment, at=at
        )
        resolution = self._activity.classify_resolution(conversation_id)
        logger.info(
            "Conversation %s rated %d (resolution: %s)",
            conversation_id,
            rating,
            resolution.value,
        )
        return RatingReceipt(id=rating_id, conversation_id=conversation_id, rating=rating)

    def submit_message(
        self,
        conversation_id: UUID,
        text: str,
        at: Optional[dt.datetime] = None,
    ) -> Optional[RatingReceipt]:
        """Record a customer reply and, if it carries a rating, store it.

        Returns ``None`` when no rating could be read from ``text``; the
        message itself is recorded either way.
        """

        at = at or dt.datetime.now(dt.timezone.utc)
        self._activity.record_customer_message(conversation_id, text, at=at)
        rating = detect_satisfaction_rating(text)
        if rating is None:
            return None
        return self.submit_rating(conversation_id, rating, comment=text, at=at)


__all__ = [
    "InvalidRatingError",
    "RatingReceipt",
    "RatingService",
    "detect_satisfaction_rating",
]
