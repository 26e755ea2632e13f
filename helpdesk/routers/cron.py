"""Scheduler trigger for the proactive sweep.

An external cron hits this route on a fixed cadence; each call runs one pass.
"""

from __future__ import annotations

import datetime as dt
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..conversations.lifecycle import Trigger
from ..conversations.sweep import ProactiveSweep, SweepSelectionError
from ..core.deps import get_proactive_sweep

router = APIRouter(prefix="/api/cron", tags=["cron"])

logger = logging.getLogger(__name__)


def _run_sweep(sweep: ProactiveSweep) -> JSONResponse:
    try:
        summary = sweep.run(dt.datetime.now(dt.timezone.utc))
    except SweepSelectionError as exc:
        logger.error("Proactive sweep request failed: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Failed to run the proactive sweep"},
        )
    return JSONResponse(
        content={
            "success": True,
            "processed": summary.processed,
            "fr3_help": summary.help_candidates,
            "fr2_fr4_inactive": summary.inactive_candidates,
            "help_confirmations": summary.processed_by_trigger.get(
                Trigger.HELP_CONFIRMATION.value, 0
            ),
            "idle_transitions": summary.processed_by_trigger.get(
                Trigger.INACTIVITY.value, 0
            ),
            "failed": summary.failed,
            "skipped": summary.skipped,
            "skipped_run": summary.skipped_run,
            "message": summary.message,
        }
    )


@router.get("/check-inactive-chats")
def check_inactive_chats(sweep: ProactiveSweep = Depends(get_proactive_sweep)) -> JSONResponse:
    """Run one sweep pass and report its counters."""
    return _run_sweep(sweep)


@router.post("/check-inactive-chats")
def trigger_inactive_chats(
    sweep: ProactiveSweep = Depends(get_proactive_sweep),
) -> JSONResponse:
    return _run_sweep(sweep)
