"""Utility script to create the schema and, optionally, demo conversations."""

from __future__ import annotations

import argparse
import datetime as dt
import logging
import os
import sys
import time
import uuid
from dataclasses import dataclass
from typing import Sequence

import psycopg
from dotenv import load_dotenv
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.orm import Session, sessionmaker

from helpdesk.config import get_settings
from helpdesk.conversations.messaging import ConversationActivityService
from helpdesk.conversations.ratings import RatingService
from helpdesk.conversations.repository import SqlAlchemyConversationStore
from helpdesk.models.session import as_sqlalchemy_url, create_schema, get_sessionmaker

logger = logging.getLogger("seed")

DEMO_COMPANY_ID = uuid.UUID("00000000-0000-0000-0000-00000000c0de")


@dataclass(frozen=True)
class DemoConversation:
    """Script for one demo conversation: alternating customer/assistant turns."""

    turns: tuple[tuple[str, str], ...]
    rating: int | None = None
    reply_delay: dt.timedelta = dt.timedelta(seconds=20)


DEMO_CONVERSATIONS: tuple[DemoConversation, ...] = (
    DemoConversation(
        turns=(("Quiero agendar una cita", "Claro, aquí tienes el enlace: https://example.com/citas"),),
        rating=5,
    ),
    DemoConversation(
        turns=(
            ("Hola, ¿tienen envíos?", "Sí, enviamos a todo el país."),
            ("¿Cuánto tarda?", "Entre 2 y 4 días hábiles."),
        ),
        rating=4,
        reply_delay=dt.timedelta(seconds=45),
    ),
    DemoConversation(
        turns=(
            ("Necesito ayuda con mi pedido", "¿Podrías darme tu correo?"),
            ("cliente@example.com", "Gracias, estoy revisando."),
            ("¿Alguna novedad?", "Tu pedido sale mañana."),
        ),
        rating=3,
        reply_delay=dt.timedelta(minutes=3),
    ),
    DemoConversation(
        turns=(("Dame precios", "Nuestros precios están en https://example.com/precios"),),
    ),
)


def _safe_url(db_url: str) -> str:
    """Return a version of ``db_url`` with any password redacted."""

    try:
        parsed = make_url(db_url)
    except ArgumentError:  # pragma: no cover - malformed URL
        return db_url
    if parsed.password is None:
        return db_url
    return parsed.set(password="***").render_as_string(hide_password=False)


def wait_for_database(db_url: str, max_attempts: int = 10, delay: float = 3.0) -> None:
    """Attempt to establish a PostgreSQL connection, retrying if necessary."""

    if not make_url(as_sqlalchemy_url(db_url)).get_backend_name().startswith("postgresql"):
        return
    dsn = make_url(as_sqlalchemy_url(db_url)).set(drivername="postgresql")
    dsn_str = dsn.render_as_string(hide_password=False)
    safe_url = _safe_url(db_url)

    for attempt in range(1, max_attempts + 1):
        try:
            with psycopg.connect(dsn_str, connect_timeout=5) as connection:
                with connection.cursor() as cursor:
                    cursor.execute("SELECT 1")
        except psycopg.Error as exc:  # pragma: no cover - depends on external DB
            logger.info(
                "Database not ready (attempt %d/%d): %s; retrying in %.1fs",
                attempt,
                max_attempts,
                exc,
                delay,
            )
            if attempt >= max_attempts:
                raise RuntimeError("Database did not become ready in time") from exc
            time.sleep(delay)
            continue

        logger.info("Database connection established after %d attempt(s): %s", attempt, safe_url)
        return


def seed_demo_data(
    factory: sessionmaker[Session],
    company_id: uuid.UUID = DEMO_COMPANY_ID,
    *,
    now: dt.datetime | None = None,
) -> list[uuid.UUID]:
    """Insert the demo conversations for ``company_id``; returns their ids."""

    now = now or dt.datetime.now(dt.timezone.utc)
    store = SqlAlchemyConversationStore(factory)
    activity = ConversationActivityService.from_settings(store)
    ratings = RatingService(store, activity)

    created: list[uuid.UUID] = []
    for index, script in enumerate(DEMO_CONVERSATIONS):
        at = now - dt.timedelta(hours=len(DEMO_CONVERSATIONS) - index)
        conversation = store.create_conversation(uuid.uuid4(), company_id, at=at)
        for customer_text, reply in script.turns:
            activity.record_customer_message(conversation.id, customer_text, at=at)
            at = at + script.reply_delay
            activity.record_assistant_reply(conversation.id, reply, at=at)
            at = at + dt.timedelta(seconds=30)
        if script.rating is not None:
            ratings.submit_rating(conversation.id, script.rating, at=at)
        else:
            activity.classify_resolution(conversation.id)
        created.append(conversation.id)
    logger.info("Seeded %d demo conversations for company %s", len(created), company_id)
    return created


def main(argv: Sequence[str] | None = None) -> int:
    """Entrypoint for the seeding workflow."""

    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    parser = argparse.ArgumentParser(description="Create the helpdesk schema")
    parser.add_argument("--database-url", default=None, help="Overrides DATABASE_URL")
    parser.add_argument(
        "--demo", action="store_true", help="Also insert demo conversations"
    )
    parser.add_argument(
        "--company-id",
        default=os.getenv("COMPANY_ID") or str(DEMO_COMPANY_ID),
        help="Company that owns the demo conversations",
    )
    parser.add_argument("--no-wait", action="store_true", help="Skip the readiness check")
    args = parser.parse_args(argv)

    db_url = args.database_url or get_settings().database_url
    if not db_url:
        parser.error("DATABASE_URL is not configured")
    try:
        company_id = uuid.UUID(args.company_id)
    except ValueError:
        parser.error(f"invalid --company-id: {args.company_id!r}")

    logger.info("Starting seed process using %s", _safe_url(db_url))
    if not args.no_wait:
        wait_for_database(db_url)

    factory = get_sessionmaker(database_url=db_url)
    create_schema(factory)
    logger.info("Schema ensured successfully.")

    if args.demo:
        seed_demo_data(factory, company_id)

    logger.info("Seed process completed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
