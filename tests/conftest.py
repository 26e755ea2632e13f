import datetime as dt
import pathlib
import sys
import uuid
from dataclasses import dataclass

import pytest
from fastapi import FastAPI, Request
from sqlalchemy.orm import Session, sessionmaker

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
from helpdesk.app_logging import init_logging
from helpdesk.config import reset_settings_cache
from helpdesk.conversations.repository import SqlAlchemyConversationStore
from helpdesk.models import (
    Conversation,
    ConversationMetricsRecord,
    ConversationState,
    Message,
    MessageRole,
    ResolutionType,
    SatisfactionRating,
)
from helpdesk.models.session import create_schema, get_sessionmaker

NOW = dt.datetime(2026, 3, 2, 12, 0, tzinfo=dt.timezone.utc)


@dataclass
class ConversationFactory:
    """Inserts rows directly so tests can arrange any lifecycle state."""

    session_factory: sessionmaker[Session]
    company_id: uuid.UUID

    def conversation(
        self,
        *,
        state: ConversationState = ConversationState.ACTIVE,
        last_activity: dt.datetime | None = None,
        created_at: dt.datetime | None = None,
        satisfaction_collected: bool = False,
        resolved: bool = False,
        resolution_type: ResolutionType | None = None,
        live: bool = False,
        company_id: uuid.UUID | None = None,
    ) -> uuid.UUID:
        created = created_at or NOW - dt.timedelta(hours=1)
        with self.session_factory.begin() as session:
            row = Conversation(
                customer_id=uuid.uuid4(),
                company_id=company_id or self.company_id,
                state=state,
                satisfaction_collected=satisfaction_collected,
                resolved=resolved,
                resolution_type=resolution_type,
                live=live,
                last_user_activity_at=last_activity or created,
                created_at=created,
                updated_at=created,
            )
            session.add(row)
            session.flush()
            return row.id

    def message(
        self,
        conversation_id: uuid.UUID,
        body: str,
        *,
        at: dt.datetime,
        role: MessageRole = MessageRole.ASSISTANT,
    ) -> uuid.UUID:
        with self.session_factory.begin() as session:
            row = Message(
                conversation_id=conversation_id, role=role, body=body, created_at=at
            )
            session.add(row)
            session.flush()
            return row.id

    def metrics(
        self,
        conversation_id: uuid.UUID,
        *,
        messages_count: int,
        response_time_total: int,
        on_time: int = 0,
        received: int = 0,
    ) -> None:
        with self.session_factory.begin() as session:
            session.add(
                ConversationMetricsRecord(
                    conversation_id=conversation_id,
                    messages_count=messages_count,
                    response_time_total=response_time_total,
                    messages_responded_on_time=on_time,
                    total_messages_received=received,
                )
            )

    def rating(
        self, conversation_id: uuid.UUID, value: int, *, at: dt.datetime | None = None
    ) -> None:
        with self.session_factory.begin() as session:
            session.add(
                SatisfactionRating(
                    conversation_id=conversation_id,
                    rating=value,
                    created_at=at or NOW - dt.timedelta(minutes=30),
                )
            )

    def get(self, conversation_id: uuid.UUID) -> Conversation:
        with self.session_factory() as session:
            row = session.get(Conversation, conversation_id)
            assert row is not None
            session.expunge(row)
            return row

    def messages(self, conversation_id: uuid.UUID) -> list[Message]:
        with self.session_factory() as session:
            rows = (
                session.query(Message)
                .filter(Message.conversation_id == conversation_id)
                .order_by(Message.created_at)
                .all()
            )
            for row in rows:
                session.expunge(row)
            return rows


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings_cache()
    yield
    reset_settings_cache()


@pytest.fixture
def session_factory(tmp_path) -> sessionmaker[Session]:
    db_path = tmp_path / "helpdesk.db"
    factory = get_sessionmaker(
        f"sqlite+pysqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    create_schema(factory)
    yield factory
    factory.kw["bind"].dispose()


@pytest.fixture
def store(session_factory) -> SqlAlchemyConversationStore:
    return SqlAlchemyConversationStore(session_factory)


@pytest.fixture
def company_id() -> uuid.UUID:
    return uuid.UUID("11111111-2222-3333-4444-555555555555")


@pytest.fixture
def factory(session_factory, company_id) -> ConversationFactory:
    return ConversationFactory(session_factory=session_factory, company_id=company_id)


@pytest.fixture
def app_factory(monkeypatch):
    def _create_app(log_dir: str, log_request_bodies: bool = False):
        """Create a FastAPI app with logging initialised."""
        monkeypatch.setenv("LOG_DIR", str(log_dir))
        if log_request_bodies:
            monkeypatch.setenv("LOG_REQUEST_BODIES", "true")
        app = FastAPI()

        @app.post("/echo")
        async def echo(request: Request):
            return await request.json()

        init_logging(app)
        return app

    return _create_app


@pytest.fixture
def api_app(session_factory, store):
    """The production app wired to the per-test SQLite database."""

    from helpdesk.conversations.sweep import ProactiveSweep
    from helpdesk.core.deps import get_proactive_sweep, get_session_factory
    from helpdesk.core.limits import limiter
    from helpdesk.main import app

    sweep = ProactiveSweep(store)
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_proactive_sweep] = lambda: sweep
    limiter.reset()
    yield app
    app.dependency_overrides.clear()
    limiter.reset()
