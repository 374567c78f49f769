import pytest
from fastapi.testclient import TestClient

from bapp.main import app
from bapp.schemas.period import Period

from conftest import make_records


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def _payload(period: Period, values: dict[int, int], notes: dict[int, str] | None = None) -> list[dict]:
    return [r.model_dump(mode="json") for r in make_records(period, values, notes)]


def test_health(client: TestClient) -> None:
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "app": "BAPP Period Engine"}


def test_period_options(client: TestClient) -> None:
    response = client.get("/api/periods/options")

    assert response.status_code == 200
    assert [o["label"] for o in response.json()][:2] == ["Per 1/2 Bulan", "Per 1 Bulan"]


def test_progress_options(client: TestClient) -> None:
    response = client.get("/api/periods/progress-options", params={"total_signatures": 1})

    assert [o["value"] for o in response.json()] == [0, 50, 100]


def test_partition_by_value_and_label(client: TestClient) -> None:
    by_value = client.get("/api/periods/3/partition").json()
    by_label = client.get("/api/periods/Per 3 Bulan/partition").json()

    assert by_value == by_label
    assert [b["label"] for b in by_value["buckets"]] == ["Jan - Mar", "Apr - Jun", "Jul - Sep", "Okt - Des"]


def test_unsupported_period_returns_400(client: TestClient) -> None:
    response = client.get("/api/periods/5/relevant-months")

    assert response.status_code == 400
    assert "Unsupported reporting period" in response.json()["detail"]


def test_relevant_months(client: TestClient) -> None:
    response = client.get("/api/periods/0.5/relevant-months")

    assert response.json() == list(range(1, 13))


def test_analyze_then_execute(client: TestClient) -> None:
    records = _payload(Period.QUARTERLY, {3: 0, 6: 40, 9: 40, 12: 100}, notes={9: "menunggu TTD"})

    analysis = client.post(
        "/api/periods/migrations/analyze",
        json={"old_period": 3, "new_period": 12, "records": records},
    )
    assert analysis.status_code == 200
    [candidate] = analysis.json()["merge_plan"]
    assert candidate["highest_percentage"] == 100
    assert candidate["last_percentage"] == 100

    executed = client.post(
        "/api/periods/migrations/execute",
        json={
            "old_period": 3,
            "new_period": 12,
            "records": records,
            "analysis": analysis.json(),
            "strategy": {
                "merge": {"mode": "last"},
                "keep_notes_from": [{"end_month": 9, "sub_period": None}],
            },
        },
    )
    assert executed.status_code == 200
    body = executed.json()
    assert body["label"] == "Per 12 Bulan"
    [annual] = body["records"]
    assert annual["percentage"] == 100
    assert annual["notes"] == "[Sep] menunggu TTD"


def test_execute_without_required_mode_returns_400(client: TestClient) -> None:
    response = client.post(
        "/api/periods/migrations/execute",
        json={"old_period": 12, "new_period": 6, "records": _payload(Period.ANNUAL, {12: 70})},
    )

    assert response.status_code == 400
    assert "split mode" in response.json()["detail"]


def test_execute_same_period_returns_400(client: TestClient) -> None:
    response = client.post(
        "/api/periods/migrations/execute",
        json={"old_period": 1, "new_period": 1, "records": []},
    )

    assert response.status_code == 400


def test_execute_half_month_expansion(client: TestClient) -> None:
    response = client.post(
        "/api/periods/migrations/execute",
        json={
            "old_period": 1,
            "new_period": 0.5,
            "records": _payload(Period.MONTHLY, {5: 60}),
            "strategy": {"half_month": "empty"},
        },
    )

    records = response.json()["records"]
    assert len(records) == 24
    may = [r for r in records if r["bucket"]["end_month"] == 5]
    assert [r["percentage"] for r in may] == [60, 0]


def test_contract_progress_report(client: TestClient) -> None:
    response = client.post(
        "/api/reports/contract-progress",
        json={
            "contract_id": "K-001",
            "name": "Pemeliharaan jaringan",
            "period": 3,
            "records": _payload(Period.QUARTERLY, {3: 100, 6: 50}),
        },
    )

    body = response.json()
    assert body["progress"] == 37.5
    assert body["relevant_months"] == [3, 6, 9, 12]
    assert body["yearly_status"] == "in_progress"


def test_summary_report(client: TestClient) -> None:
    response = client.post(
        "/api/reports/summary",
        json={
            "contracts": [
                {"contract_id": "A", "period": 12, "records": _payload(Period.ANNUAL, {12: 100})},
                {"contract_id": "B", "period": 6, "records": _payload(Period.SEMIANNUAL, {})},
            ]
        },
    )

    body = response.json()
    assert body["total"] == 2
    assert body["completed"] == 1
    assert body["not_started"] == 1
    assert body["progress"] == 50.0


def test_malformed_period_label_returns_400(client: TestClient) -> None:
    response = client.get("/api/periods/Per 3.5 Bulan/partition")

    assert response.status_code == 400
