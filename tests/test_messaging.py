import datetime as dt
import uuid

import pytest

from helpdesk.config import EngineSettings
from helpdesk.conversations.messaging import (
    ConversationActivityService,
    ResponseEffectivenessRule,
    classify_resolution,
)
from helpdesk.conversations.repository import ConversationNotFoundError
from helpdesk.models import (
    ConversationMetricsRecord,
    ConversationState,
    MessageRole,
    ResolutionType,
)

from conftest import NOW


@pytest.fixture
def activity(store):
    return ConversationActivityService(store)


def _metrics(session_factory, conversation_id):
    with session_factory() as session:
        return (
            session.query(ConversationMetricsRecord)
            .filter(ConversationMetricsRecord.conversation_id == conversation_id)
            .one_or_none()
        )


def test_customer_message_updates_activity(activity, factory):
    conversation_id = factory.conversation(last_activity=NOW - dt.timedelta(hours=1))

    message = activity.record_customer_message(conversation_id, "Hola", at=NOW)

    assert message.role is MessageRole.USER
    row = factory.get(conversation_id)
    assert row.last_user_activity_at.replace(tzinfo=None) == NOW.replace(tzinfo=None)
    assert row.state is ConversationState.ACTIVE


def test_customer_message_reactivates_idle_conversation(activity, factory):
    conversation_id = factory.conversation(
        state=ConversationState.IDLE,
        last_activity=NOW - dt.timedelta(hours=1),
        resolved=True,
    )

    activity.record_customer_message(conversation_id, "Otra pregunta", at=NOW)

    row = factory.get(conversation_id)
    assert row.state is ConversationState.ACTIVE
    assert row.resolved is False


def test_unknown_conversation_raises(activity):
    with pytest.raises(ConversationNotFoundError):
        activity.record_customer_message(uuid.uuid4(), "Hola", at=NOW)


def test_replies_accumulate_response_metrics(activity, factory, session_factory):
    conversation_id = factory.conversation()
    activity.record_customer_message(conversation_id, "¿Tienen envíos?", at=NOW)
    activity.record_assistant_reply(
        conversation_id, "Sí, a todo el país.", at=NOW + dt.timedelta(seconds=30)
    )
    activity.record_customer_message(
        conversation_id, "¿Cuánto cuesta?", at=NOW + dt.timedelta(minutes=1)
    )
    activity.record_assistant_reply(
        conversation_id,
        "Depende del peso.",
        at=NOW + dt.timedelta(minutes=1, seconds=50),
    )

    record = _metrics(session_factory, conversation_id)
    assert record.messages_count == 2
    assert record.response_time_total == 30 + 50
    assert record.total_messages_received == 2
    assert record.messages_responded_on_time == 2

    replies = [m for m in factory.messages(conversation_id) if m.role is MessageRole.ASSISTANT]
    assert [m.response_time_seconds for m in replies] == [30, 50]
    assert all(m.responded_on_time for m in replies)


def test_reply_without_customer_message_skips_metrics(activity, factory, session_factory):
    conversation_id = factory.conversation()

    activity.record_assistant_reply(conversation_id, "¡Bienvenido!", at=NOW)

    assert _metrics(session_factory, conversation_id) is None


def test_redundant_reply_is_not_on_time(activity, factory, session_factory):
    conversation_id = factory.conversation()
    activity.record_customer_message(conversation_id, "Necesito ayuda", at=NOW)
    activity.record_assistant_reply(
        conversation_id, "Claro, ¿cuál es tu correo?", at=NOW + dt.timedelta(seconds=5)
    )

    record = _metrics(session_factory, conversation_id)
    assert record.messages_responded_on_time == 0
    assert record.total_messages_received == 1


@pytest.mark.parametrize(
    "user_message, reply, message_count, expected",
    [
        ("Hola", "¿En qué te ayudo?", 1, True),
        ("Hola", "Necesito tu nombre para continuar", 1, False),
        ("Quiero agendar una cita", "Reserva aquí: https://example.com", 9, True),
        ("Quiero agendar una cita", "Con gusto, ¿qué día?", 9, False),
        ("Y eso?", "Te explico", 5, False),
        ("Y eso?", "Te explico", 7, False),
        ("Dame precios", "Lista: http://example.com/precios", 3, True),
    ],
)
def test_effectiveness_rule(user_message, reply, message_count, expected):
    rule = ResponseEffectivenessRule(max_turns=2)
    assert rule.is_effective(user_message, reply, message_count) is expected


def test_effectiveness_rule_uses_configured_turn_budget(store):
    service = ConversationActivityService.from_settings(
        store, EngineSettings(on_time_max_turns=4)
    )
    assert service.effectiveness.max_turns == 4


@pytest.mark.parametrize(
    "live, user_messages, expected",
    [
        (True, 1, ResolutionType.ESCALATED),
        (False, 1, ResolutionType.FIRST_INTERACTION),
        (False, 3, ResolutionType.FOLLOW_UP),
        (False, 0, ResolutionType.UNRESOLVED),
    ],
)
def test_classify_resolution_rule(live, user_messages, expected):
    assert classify_resolution(live, user_messages) is expected


def test_classify_resolution_persists(activity, factory):
    conversation_id = factory.conversation()
    activity.record_customer_message(conversation_id, "Hola", at=NOW)
    activity.record_customer_message(conversation_id, "¿Sigues ahí?", at=NOW)

    assert activity.classify_resolution(conversation_id) is ResolutionType.FOLLOW_UP
    assert factory.get(conversation_id).resolution_type is ResolutionType.FOLLOW_UP
