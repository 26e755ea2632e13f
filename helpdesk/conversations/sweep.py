"""Proactive sweep over idle conversations.

One pass of the sweep:

1. computes the help-confirmation and inactivity cutoffs relative to ``now``;
2. selects set A (help was offered recently and the customer went quiet) and
   set B (inactive for longer than the idle threshold, minus set A);
3. applies the lifecycle transition to every member of A, then of B, each in
   its own transaction;
4. returns a :class:`SweepSummary` with the counters.

Both sets are fixed before the first write, so a conversation moved by set A
can never be picked up again by set B in the same pass. Running the sweep a
second time is a no-op for conversations already transitioned because the
guards (``state`` and ``satisfaction_collected``) no longer match.
"""

from __future__ import annotations

import datetime as dt
import logging
import threading
from typing import Callable, Iterable, Optional

from ..config import EngineSettings, get_settings
from .lifecycle import (
    HelpDetector,
    KeywordHelpDetector,
    LifecycleRules,
    Trigger,
    decide,
)
from .models import ConversationSnapshot, SweepSummary
from .repository import ConversationStore

logger = logging.getLogger(__name__)

Clock = Callable[[], dt.datetime]


class SweepSelectionError(RuntimeError):
    """Raised when candidates could not be enumerated; nothing was written."""


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class ProactiveSweep:
    """Drives conversations forward without human input."""

    def __init__(
        self,
        store: ConversationStore,
        *,
        rules: Optional[LifecycleRules] = None,
        help_detector: Optional[HelpDetector] = None,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._rules = rules or LifecycleRules()
        self._help_detector = help_detector or KeywordHelpDetector()
        self._clock = clock
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        store: ConversationStore,
        settings: Optional[EngineSettings] = None,
        *,
        clock: Clock = utc_now,
    ) -> "ProactiveSweep":
        settings = settings or get_settings()
        return cls(
            store,
            rules=LifecycleRules.from_settings(settings),
            help_detector=KeywordHelpDetector(settings.help_markers),
            clock=clock,
        )

    def run(self, now: Optional[dt.datetime] = None) -> SweepSummary:
        """Execute one pass; skip it if another pass is still running."""

        now = now or self._clock()
        if not self._lock.acquire(blocking=False):
            logger.warning("Proactive sweep tick at %s skipped: previous pass still running", now.isoformat())
            return SweepSummary(ran_at=now, skipped_run=True)
        try:
            return self._run(now)
        finally:
            self._lock.release()

    # ------------------------------------------------------------------
    # Selection

    def _run(self, now: dt.datetime) -> SweepSummary:
        help_cutoff = now - self._rules.help_delay
        idle_cutoff = now - self._rules.idle_after

        try:
            help_set = self._select_help_candidates(help_cutoff)
            inactive_set = self._select_inactive_candidates(
                idle_cutoff, exclude={c.id for c in help_set}
            )
        except Exception as exc:
            logger.exception("Proactive sweep could not enumerate candidates")
            raise SweepSelectionError("Failed to enumerate sweep candidates") from exc

        summary = SweepSummary(
            ran_at=now,
            help_candidates=len(help_set),
            inactive_candidates=len(inactive_set),
        )
        logger.info(
            "Proactive sweep at %s: %d help-confirmation candidates, %d inactive candidates",
            now.isoformat(),
            len(help_set),
            len(inactive_set),
        )

        self._process(help_set, Trigger.HELP_CONFIRMATION, help_cutoff, now, summary)
        self._process(inactive_set, Trigger.INACTIVITY, idle_cutoff, now, summary)

        logger.info(
            "Proactive sweep finished: processed=%d failed=%d skipped=%d",
            summary.processed,
            summary.failed,
            summary.skipped,
        )
        return summary

    def _select_help_candidates(self, help_cutoff: dt.datetime) -> list[ConversationSnapshot]:
        messages = self._store.list_assistant_messages(
            help_cutoff, help_cutoff + self._rules.help_window
        )
        conversation_ids = {
            message.conversation_id
            for message in messages
            if self._help_detector.is_help_offered(message.body)
        }
        if not conversation_ids:
            return []
        return self._store.list_sweep_candidates(
            inactive_before=help_cutoff, conversation_ids=conversation_ids
        )

    def _select_inactive_candidates(
        self, idle_cutoff: dt.datetime, *, exclude: set
    ) -> list[ConversationSnapshot]:
        candidates = self._store.list_sweep_candidates(inactive_before=idle_cutoff)
        return [c for c in candidates if c.id not in exclude]

    # ------------------------------------------------------------------
    # Mutation

    def _process(
        self,
        candidates: Iterable[ConversationSnapshot],
        trigger: Trigger,
        cutoff: dt.datetime,
        now: dt.datetime,
        summary: SweepSummary,
    ) -> None:
        for conversation in candidates:
            transition = decide(
                conversation, trigger, activity_cutoff=cutoff, rules=self._rules
            )
            if transition is None:
                summary.skipped += 1
                continue
            try:
                applied = self._store.apply_transition(
                    conversation.id, transition, at=now
                )
            except Exception:
                summary.failed += 1
                logger.exception(
                    "Failed to persist %s transition for conversation %s",
                    trigger.value,
                    conversation.id,
                )
                continue
            if not applied:
                summary.skipped += 1
                logger.info(
                    "Conversation %s changed since selection; %s transition not applied",
                    conversation.id,
                    trigger.value,
                )
                continue
            summary.processed += 1
            summary.processed_by_trigger[trigger.value] = (
                summary.processed_by_trigger.get(trigger.value, 0) + 1
            )
            logger.info(
                "Conversation %s moved to %s (%s)",
                conversation.id,
                transition.next_state.value,
                trigger.value,
            )


__all__ = ["Clock", "ProactiveSweep", "SweepSelectionError", "utc_now"]
