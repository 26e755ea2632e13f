import datetime as dt

import pytest
from fastapi.testclient import TestClient

from helpdesk.conversations.sweep import SweepSelectionError
from helpdesk.core.deps import get_proactive_sweep
from helpdesk.models import ConversationState

CRON_PATH = "/api/cron/check-inactive-chats"


@pytest.fixture
def client(api_app):
    return TestClient(api_app)


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@pytest.mark.parametrize("method", ["get", "post"])
def test_cron_runs_one_sweep_pass(client, factory, method):
    now = _now()
    helped = factory.conversation(
        created_at=now - dt.timedelta(hours=1),
        last_activity=now - dt.timedelta(minutes=3),
    )
    factory.message(helped, "Te dejo el enlace de reserva", at=now - dt.timedelta(seconds=60))
    idle = factory.conversation(
        created_at=now - dt.timedelta(hours=1),
        last_activity=now - dt.timedelta(minutes=20),
    )

    resp = getattr(client, method)(CRON_PATH)

    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["processed"] == 2
    assert data["fr3_help"] == 1
    assert data["fr2_fr4_inactive"] == 1
    assert data["failed"] == 0
    assert "2 conversations processed" in data["message"]
    assert factory.get(helped).state is ConversationState.AWAITING_RATING
    assert factory.get(idle).state is ConversationState.IDLE


def test_cron_second_call_processes_nothing(client, factory):
    now = _now()
    factory.conversation(
        created_at=now - dt.timedelta(hours=1),
        last_activity=now - dt.timedelta(minutes=20),
    )

    first = client.get(CRON_PATH).json()
    second = client.get(CRON_PATH).json()

    assert first["processed"] == 1
    assert second["processed"] == 0
    assert second["success"] is True


class _BrokenSweep:
    def run(self, now=None):
        raise SweepSelectionError("Failed to enumerate sweep candidates")


def test_cron_reports_selection_failure(api_app):
    api_app.dependency_overrides[get_proactive_sweep] = lambda: _BrokenSweep()
    client = TestClient(api_app)

    resp = client.get(CRON_PATH)

    assert resp.status_code == 500
    body = resp.json()
    assert body["success"] is False
    assert body["error"]
