import datetime as dt
import uuid

import pytest
from fastapi.testclient import TestClient

from helpdesk.core.deps import get_quality_metrics_aggregator
from helpdesk.metrics.aggregator import QualityMetricsAggregator
from helpdesk.metrics.repository import MetricsQueryError
from helpdesk.models import ResolutionType

from conftest import NOW


@pytest.fixture
def client(api_app):
    return TestClient(api_app)


@pytest.fixture
def seeded(factory):
    first = factory.conversation(
        created_at=NOW - dt.timedelta(days=1),
        resolution_type=ResolutionType.FIRST_INTERACTION,
    )
    factory.metrics(first, messages_count=10, response_time_total=300, on_time=8, received=10)
    factory.rating(first, 5, at=NOW - dt.timedelta(days=1))

    second = factory.conversation(
        created_at=NOW - dt.timedelta(days=20),
        resolution_type=ResolutionType.ESCALATED,
    )
    factory.metrics(second, messages_count=5, response_time_total=225, on_time=5, received=10)
    factory.rating(second, 4, at=NOW - dt.timedelta(days=20))
    return factory


def _headers(company_id) -> dict[str, str]:
    return {"X-Company-Id": str(company_id)}


def test_summary_all_time(client, seeded, company_id):
    resp = client.get("/api/quality-metrics", headers=_headers(company_id))

    assert resp.status_code == 200
    data = resp.json()
    assert data["fr1_average_response_time"]["average_response_time"] == 35
    assert data["fr1_average_response_time"]["formatted_time"] == "35 segundos"
    assert data["fr2_on_time_percentage"]["percentage"] == 65
    assert data["fr3_first_interaction_rate"]["first_interaction_rate"] == 50
    assert data["fr4_satisfaction_average"]["average_rating"] == 4.5


def test_summary_with_window(client, seeded, company_id):
    params = {
        "from": (NOW - dt.timedelta(days=7)).isoformat(),
        "to": NOW.isoformat(),
    }
    resp = client.get("/api/quality-metrics", params=params, headers=_headers(company_id))

    assert resp.status_code == 200
    data = resp.json()
    assert data["fr1_average_response_time"]["average_response_time"] == 30
    assert data["fr3_first_interaction_rate"]["total_conversations"] == 1
    assert data["fr4_satisfaction_average"]["total_ratings"] == 1


def test_other_company_sees_zero_state(client, seeded):
    resp = client.get("/api/quality-metrics", headers=_headers(uuid.uuid4()))

    data = resp.json()
    assert data["fr1_average_response_time"]["formatted_time"] == "0 segundos"
    assert data["fr2_on_time_percentage"]["total_messages"] == 0
    assert data["fr4_satisfaction_average"]["percentages"]["rating5"] == 0


def test_company_falls_back_to_environment(client, seeded, company_id, monkeypatch):
    monkeypatch.setenv("COMPANY_ID", str(company_id))

    resp = client.get("/api/quality-metrics")

    assert resp.status_code == 200
    assert resp.json()["fr4_satisfaction_average"]["total_ratings"] == 2


def test_missing_company_is_rejected(client, monkeypatch):
    monkeypatch.delenv("COMPANY_ID", raising=False)

    assert client.get("/api/quality-metrics").status_code == 400
    assert (
        client.get("/api/quality-metrics", headers={"X-Company-Id": "nope"}).status_code
        == 400
    )


def test_half_open_window_is_rejected(client, company_id):
    resp = client.get(
        "/api/quality-metrics",
        params={"from": NOW.isoformat()},
        headers=_headers(company_id),
    )
    assert resp.status_code == 422


def test_inverted_window_is_rejected(client, company_id):
    params = {"from": NOW.isoformat(), "to": (NOW - dt.timedelta(days=1)).isoformat()}
    resp = client.get("/api/quality-metrics", params=params, headers=_headers(company_id))
    assert resp.status_code == 422


@pytest.mark.parametrize(
    "metric, key, expected",
    [
        ("response-time", "total_messages", 15),
        ("on-time", "responded_on_time", 13),
        ("first-interaction", "escalated_count", 1),
        ("satisfaction", "total_ratings", 2),
    ],
)
def test_single_metric(client, seeded, company_id, metric, key, expected):
    resp = client.get(f"/api/quality-metrics/{metric}", headers=_headers(company_id))

    assert resp.status_code == 200
    assert resp.json()[key] == expected


def test_unknown_metric(client, company_id):
    resp = client.get("/api/quality-metrics/nps", headers=_headers(company_id))
    assert resp.status_code == 404


class _FailingReader:
    def metrics_records(self, window):
        return []

    def resolution_types(self, window):
        raise MetricsQueryError("boom")

    def ratings(self, window):
        return [5]


def test_failing_metric_is_null_in_summary_and_500_alone(api_app):
    api_app.dependency_overrides[get_quality_metrics_aggregator] = (
        lambda: QualityMetricsAggregator(_FailingReader())
    )
    client = TestClient(api_app)

    summary = client.get("/api/quality-metrics").json()
    assert summary["fr3_first_interaction_rate"] is None
    assert summary["fr4_satisfaction_average"]["average_rating"] == 5

    assert client.get("/api/quality-metrics/first-interaction").status_code == 500
