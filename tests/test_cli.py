import datetime as dt
import json
import uuid

import pytest

import report
import seed
import sweep
from helpdesk.models import Conversation, ConversationState
from helpdesk.models.session import get_sessionmaker


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+pysqlite:///{tmp_path / 'cli.db'}"


@pytest.fixture
def seeded_url(database_url, capsys) -> str:
    assert seed.main(["--database-url", database_url, "--demo", "--no-wait"]) == 0
    capsys.readouterr()
    return database_url


def test_seed_creates_schema_only(database_url):
    assert seed.main(["--database-url", database_url, "--no-wait"]) == 0

    factory = get_sessionmaker(database_url)
    created = seed.seed_demo_data(factory, uuid.uuid4())
    assert len(created) == len(seed.DEMO_CONVERSATIONS)


def test_report_prints_quality_metrics(seeded_url, capsys):
    code = report.main(
        ["--database-url", seeded_url, "--company-id", str(seed.DEMO_COMPANY_ID)]
    )

    assert code == 0
    data = json.loads(capsys.readouterr().out)
    assert data["fr3_first_interaction_rate"]["total_conversations"] == 4
    assert data["fr3_first_interaction_rate"]["first_interaction_rate"] == 50
    assert data["fr4_satisfaction_average"]["total_ratings"] == 3
    assert data["fr4_satisfaction_average"]["average_rating"] == 4
    assert data["fr1_average_response_time"]["total_messages"] > 0


def test_report_for_unknown_company_is_zero_state(seeded_url, capsys):
    report.main(["--database-url", seeded_url, "--company-id", str(uuid.uuid4())])

    data = json.loads(capsys.readouterr().out)
    assert data["fr2_on_time_percentage"]["percentage"] == 0
    assert data["fr4_satisfaction_average"]["average_rating"] == 0


def test_report_requires_company(database_url, monkeypatch):
    monkeypatch.delenv("COMPANY_ID", raising=False)
    with pytest.raises(SystemExit):
        report.main(["--database-url", database_url])


def test_report_rejects_half_open_window(database_url):
    with pytest.raises(SystemExit):
        report.main(
            [
                "--database-url",
                database_url,
                "--company-id",
                str(seed.DEMO_COMPANY_ID),
                "--from",
                "2026-01-01T00:00:00",
            ]
        )


def test_sweep_one_pass(seeded_url, capsys):
    later = dt.datetime.now(dt.timezone.utc) + dt.timedelta(days=1)

    code = sweep.main(["--database-url", seeded_url, "--now", later.isoformat()])

    assert code == 0
    data = json.loads(capsys.readouterr().out)
    assert data["success"] is True
    assert data["processed"] == 1
    assert data["processed_by_trigger"] == {"inactivity": 1}

    with get_sessionmaker(seeded_url)() as session:
        states = {row.state for row in session.query(Conversation).all()}
    assert states == {ConversationState.IDLE}


def test_sweep_reports_selection_failure(database_url, capsys):
    # no schema
    code = sweep.main(["--database-url", database_url])

    assert code == 1
    assert json.loads(capsys.readouterr().out)["success"] is False


def test_sweep_rejects_bad_timestamp(database_url):
    with pytest.raises(SystemExit):
        sweep.main(["--database-url", database_url, "--now", "yesterday"])
