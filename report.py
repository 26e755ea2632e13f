"""Print the FR1-FR4 quality metrics of one company as JSON."""

from __future__ import annotations

import argparse
import datetime as dt
import logging
import os
import sys
import uuid
from typing import Sequence

from dotenv import load_dotenv

from helpdesk.app_logging import init_cli_logging
from helpdesk.config import get_settings
from helpdesk.metrics import (
    QualityMetricsAggregator,
    SqlAlchemyMetricsReader,
    resolve_window,
)
from helpdesk.models.session import get_sessionmaker

logger = logging.getLogger("report")


def _echo(message: str) -> None:
    sys.stdout.write(f"{message}\n")


def _parse_timestamp(value: str) -> dt.datetime:
    try:
        parsed = dt.datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid ISO timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    parser = argparse.ArgumentParser(description="Quality metrics report")
    parser.add_argument(
        "--company-id",
        default=os.getenv("COMPANY_ID"),
        help="Company identifier (UUID); defaults to COMPANY_ID",
    )
    parser.add_argument("--from", dest="start", type=_parse_timestamp, default=None)
    parser.add_argument("--to", dest="end", type=_parse_timestamp, default=None)
    parser.add_argument("--database-url", default=None, help="Overrides DATABASE_URL")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    init_cli_logging(args.verbose)

    if not args.company_id:
        parser.error("--company-id is required (or set COMPANY_ID)")
    try:
        company_id = uuid.UUID(args.company_id)
    except ValueError:
        parser.error(f"invalid --company-id: {args.company_id!r}")
    try:
        window = resolve_window(args.start, args.end)
    except ValueError as exc:
        parser.error(str(exc))

    settings = get_settings()
    try:
        session_factory = get_sessionmaker(
            args.database_url or settings.database_url,
            statement_timeout=settings.store_timeout_seconds,
        )
    except RuntimeError as exc:
        parser.error(str(exc))

    aggregator = QualityMetricsAggregator(
        SqlAlchemyMetricsReader(session_factory, company_id=company_id),
        timeout_seconds=settings.metric_timeout_seconds,
    )
    summary = aggregator.quality_metrics_summary(window)
    logger.info("Quality metrics computed for company %s (%r)", company_id, window)
    _echo(summary.model_dump_json(indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
