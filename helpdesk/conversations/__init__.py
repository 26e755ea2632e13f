"""Conversation lifecycle: rules, persistence, sweep and messaging bookkeeping."""

from .lifecycle import KeywordHelpDetector, LifecycleRules, Transition, Trigger, decide
from .messaging import ConversationActivityService, ResponseEffectivenessRule
from .models import ConversationSnapshot, MessageSnapshot, SweepSummary
from .ratings import InvalidRatingError, RatingService, detect_satisfaction_rating
from .repository import (
    ConversationNotFoundError,
    ConversationStore,
    RatingAlreadyRecordedError,
    SqlAlchemyConversationStore,
)
from .scheduler import SweepScheduler
from .sweep import ProactiveSweep, SweepSelectionError

__all__ = [
    "ConversationActivityService",
    "ConversationNotFoundError",
    "ConversationSnapshot",
    "ConversationStore",
    "InvalidRatingError",
    "KeywordHelpDetector",
    "LifecycleRules",
    "MessageSnapshot",
    "ProactiveSweep",
    "RatingAlreadyRecordedError",
    "RatingService",
    "ResponseEffectivenessRule",
    "SqlAlchemyConversationStore",
    "SweepScheduler",
    "SweepSelectionError",
    "SweepSummary",
    "Transition",
    "Trigger",
    "decide",
    "detect_satisfaction_rating",
]
