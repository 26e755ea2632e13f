"""Run the proactive conversation sweep from the command line.

One pass (default) prints the summary as JSON and exits with status 1 when
candidates could not be enumerated. ``--serve`` keeps running and sweeps on a
fixed interval with a blocking APScheduler scheduler.
"""

from __future__ import annotations

import argparse
import datetime as dt
import json
import logging
import sys
from typing import Sequence

from apscheduler.schedulers.blocking import BlockingScheduler
from dotenv import load_dotenv
from sqlalchemy.orm import Session, sessionmaker

from helpdesk.app_logging import init_cli_logging
from helpdesk.config import get_settings
from helpdesk.conversations.repository import SqlAlchemyConversationStore
from helpdesk.conversations.scheduler import SweepScheduler
from helpdesk.conversations.sweep import ProactiveSweep, SweepSelectionError
from helpdesk.models.session import get_sessionmaker

logger = logging.getLogger("sweep")


def _echo(message: str) -> None:
    sys.stdout.write(f"{message}\n")


def _parse_now(value: str) -> dt.datetime:
    try:
        parsed = dt.datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid ISO timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


def build_session_factory(database_url: str | None) -> sessionmaker[Session]:
    settings = get_settings()
    return get_sessionmaker(
        database_url or settings.database_url,
        statement_timeout=settings.store_timeout_seconds,
        pool_pre_ping=True,
    )


def _serve(sweep: ProactiveSweep, interval_seconds: int) -> int:
    scheduler = SweepScheduler(
        sweep,
        interval_seconds=interval_seconds,
        scheduler=BlockingScheduler(timezone="UTC"),
    )
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Interrupted; stopping scheduler")
        scheduler.shutdown()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    parser = argparse.ArgumentParser(description="Run the proactive conversation sweep")
    parser.add_argument("--database-url", default=None, help="Overrides DATABASE_URL")
    parser.add_argument(
        "--now",
        type=_parse_now,
        default=None,
        help="Evaluate the sweep as if it ran at this ISO timestamp (UTC if naive)",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Keep running and sweep every SWEEP_INTERVAL_SECONDS",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Interval in seconds for --serve (defaults to SWEEP_INTERVAL_SECONDS)",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    init_cli_logging(args.verbose)
    settings = get_settings()
    try:
        session_factory = build_session_factory(args.database_url)
    except RuntimeError as exc:
        parser.error(str(exc))

    sweep = ProactiveSweep.from_settings(
        SqlAlchemyConversationStore(session_factory), settings
    )

    if args.serve:
        if args.now is not None:
            parser.error("--now cannot be combined with --serve")
        return _serve(sweep, args.interval or settings.sweep_interval_seconds)

    try:
        summary = sweep.run(args.now)
    except SweepSelectionError as exc:
        logger.error("Sweep failed: %s", exc)
        _echo(json.dumps({"success": False, "error": str(exc)}))
        return 1

    _echo(
        json.dumps(
            {
                "success": True,
                "ran_at": summary.ran_at.isoformat(),
                "processed": summary.processed,
                "help_candidates": summary.help_candidates,
                "inactive_candidates": summary.inactive_candidates,
                "processed_by_trigger": summary.processed_by_trigger,
                "failed": summary.failed,
                "skipped": summary.skipped,
                "message": summary.message,
            }
        )
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
