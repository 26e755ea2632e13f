import uuid

import pytest
from fastapi.testclient import TestClient

from helpdesk.models import ConversationState


@pytest.fixture
def client(api_app):
    return TestClient(api_app)


def _path(conversation_id) -> str:
    return f"/api/conversations/{conversation_id}/rating"


def test_submit_rating(client, factory):
    conversation_id = factory.conversation(
        state=ConversationState.AWAITING_RATING, satisfaction_collected=True
    )

    resp = client.post(_path(conversation_id), json={"rating": 5, "comment": "Genial"})

    assert resp.status_code == 201
    data = resp.json()
    assert data["conversation_id"] == str(conversation_id)
    assert data["rating"] == 5
    uuid.UUID(data["id"])
    row = factory.get(conversation_id)
    assert row.state is ConversationState.IDLE
    assert row.resolved is True


def test_submit_rating_unknown_conversation(client):
    resp = client.post(_path(uuid.uuid4()), json={"rating": 3})
    assert resp.status_code == 404


def test_submit_rating_twice_conflicts(client, factory):
    conversation_id = factory.conversation()

    assert client.post(_path(conversation_id), json={"rating": 4}).status_code == 201
    assert client.post(_path(conversation_id), json={"rating": 2}).status_code == 409


@pytest.mark.parametrize("payload", [{"rating": 0}, {"rating": 6}, {}, {"rating": "x"}])
def test_submit_rating_validation(client, factory, payload):
    conversation_id = factory.conversation()

    resp = client.post(_path(conversation_id), json=payload)

    assert resp.status_code == 422
    assert factory.get(conversation_id).satisfaction_collected is False


def test_health_and_version(client):
    assert client.get("/api/health").json() == {"status": "ok"}
    version = client.get("/api/version").json()
    assert version["version"]


def test_submit_rating_is_rate_limited(client):
    statuses = [
        client.post(_path(uuid.uuid4()), json={"rating": 3}).status_code
        for _ in range(11)
    ]

    assert statuses[:10] == [404] * 10
    assert statuses[10] == 429


def test_rate_limit_buckets_are_per_client(client):
    for _ in range(10):
        client.post(
            _path(uuid.uuid4()),
            json={"rating": 3},
            headers={"X-Forwarded-For": "203.0.113.7"},
        )

    blocked = client.post(
        _path(uuid.uuid4()), json={"rating": 3}, headers={"X-Forwarded-For": "203.0.113.7"}
    )
    other = client.post(
        _path(uuid.uuid4()), json={"rating": 3}, headers={"X-Forwarded-For": "198.51.100.2"}
    )

    assert blocked.status_code == 429
    assert other.status_code == 404
