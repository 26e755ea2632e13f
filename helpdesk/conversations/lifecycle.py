"""Conversation lifecycle rules.

The functions here are pure: they look at a conversation snapshot and a
trigger and say what should happen, without touching the database. The sweep
(see :mod:`helpdesk.conversations.sweep`) is responsible for selecting
candidates and persisting the resulting transitions.

States::

    ACTIVE --help confirmation--> AWAITING_RATING
    ACTIVE --inactivity---------> IDLE

``AWAITING_RATING`` and ``IDLE`` are terminal from the sweep's point of view;
only a new inbound customer message brings a conversation back to ``ACTIVE``.
"""

from __future__ import annotations

import datetime as dt
import enum
from dataclasses import dataclass
from typing import Iterable, Protocol

from ..config import DEFAULT_RATING_PROMPT, EngineSettings
from ..models import ConversationState
from .models import ConversationSnapshot


class Trigger(str, enum.Enum):
    HELP_CONFIRMATION = "help_confirmation"
    INACTIVITY = "inactivity"


@dataclass(frozen=True)
class Transition:
    """Outcome of :func:`decide` for one conversation."""

    trigger: Trigger
    from_state: ConversationState
    next_state: ConversationState
    resolved: bool
    satisfaction_collected: bool
    activity_cutoff: dt.datetime
    prompt: str | None = None


@dataclass(frozen=True)
class LifecycleRules:
    """Timing thresholds used by the sweep."""

    help_delay: dt.timedelta = dt.timedelta(minutes=2)
    help_window: dt.timedelta = dt.timedelta(minutes=2)
    idle_after: dt.timedelta = dt.timedelta(minutes=5)
    rating_prompt: str = DEFAULT_RATING_PROMPT

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> "LifecycleRules":
        return cls(
            help_delay=dt.timedelta(seconds=settings.help_delay_seconds),
            help_window=dt.timedelta(seconds=settings.help_window_seconds),
            idle_after=dt.timedelta(seconds=settings.idle_after_seconds),
            rating_prompt=settings.rating_prompt,
        )


class HelpDetector(Protocol):
    """Decides whether an assistant message offered a concrete solution."""

    def is_help_offered(self, body: str) -> bool: ...


class KeywordHelpDetector:
    """Case-insensitive substring match against a set of markers."""

    def __init__(self, markers: Iterable[str] = ("enlace",)) -> None:
        self._markers = tuple(m.lower() for m in markers if m)

    @property
    def markers(self) -> tuple[str, ...]:
        return self._markers

    def is_help_offered(self, body: str) -> bool:
        text = (body or "").lower()
        return any(marker in text for marker in self._markers)


def as_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


def _is_sweepable(conversation: ConversationSnapshot, cutoff: dt.datetime) -> bool:
    return (
        conversation.state is ConversationState.ACTIVE
        and not conversation.satisfaction_collected
        and as_utc(conversation.last_user_activity_at) < as_utc(cutoff)
    )


def decide(
    conversation: ConversationSnapshot,
    trigger: Trigger,
    *,
    activity_cutoff: dt.datetime,
    rules: LifecycleRules | None = None,
) -> Transition | None:
    """Return the transition ``trigger`` causes, or ``None`` if guards fail.

    The help-marker part of the help-confirmation guard is evaluated while
    selecting candidates; here only the conversation's own flags and activity
    timestamp are checked. Rows in an inconsistent state (for instance
    ``AWAITING_RATING`` without ``satisfaction_collected``) never match.
    """

    rules = rules or LifecycleRules()
    if not _is_sweepable(conversation, activity_cutoff):
        return None

    if trigger is Trigger.HELP_CONFIRMATION:
        return Transition(
            trigger=trigger,
            from_state=conversation.state,
            next_state=ConversationState.AWAITING_RATING,
            resolved=True,
            satisfaction_collected=True,
            activity_cutoff=activity_cutoff,
            prompt=rules.rating_prompt,
        )
    if trigger is Trigger.INACTIVITY:
        return Transition(
            trigger=trigger,
            from_state=conversation.state,
            next_state=ConversationState.IDLE,
            resolved=False,
            satisfaction_collected=False,
            activity_cutoff=activity_cutoff,
        )
    raise ValueError(f"Unsupported trigger: {trigger!r}")


__all__ = [
    "HelpDetector",
    "KeywordHelpDetector",
    "LifecycleRules",
    "Transition",
    "Trigger",
    "as_utc",
    "decide",
]
