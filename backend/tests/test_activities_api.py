from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from calmday.api.routes import activities as activities_routes
from calmday.main import app


@pytest.fixture()
def client(monkeypatch):
    monkeypatch.setattr(activities_routes, "get_recommender", lambda: None)
    with TestClient(app) as test_client:
        yield test_client


def _generate_payload(user_id: str, **overrides):
    payload = {
        "user_id": user_id,
        "date": "2026-10-19",
        "wake_time": "07:00",
        "bed_time": "23:00",
        "timezone": "UTC",
        "energy_windows": [{"start": "09:00", "end": "12:00"}],
        "existing_events": [{"start": "2026-10-19T14:00:00Z", "end": "2026-10-19T15:00:00Z"}],
        "energy_level": "Medium",
        "stress_level": "low",
        "mood_score": 7,
    }
    payload.update(overrides)
    return payload


def test_generate_then_cached(client) -> None:
    user_id = str(uuid4())

    first = client.post("/activities/generate", json=_generate_payload(user_id))
    second = client.post("/activities/generate", json=_generate_payload(user_id))

    assert first.status_code == 200
    body = first.json()
    assert body["cached"] is False
    assert body["source"] == "rule_based"
    assert body["intensity"]["level"] == "low"
    assert [item["type"] for item in body["activities"]] == ["workout", "movement"]
    assert body["activities"][0]["start"].startswith("2026-10-19T09:00:00")
    assert 3 <= len(body["activities"][0]["micro_steps"]) <= 5
    assert body["reasoning"].startswith("Open schedule")
    assert body["request_id"]

    assert second.status_code == 200
    assert second.json()["cached"] is True
    assert [item["id"] for item in second.json()["activities"]] == [item["id"] for item in body["activities"]]


def test_force_regenerate_and_clear(client) -> None:
    user_id = str(uuid4())
    client.post("/activities/generate", json=_generate_payload(user_id))

    forced = client.post("/activities/generate", json=_generate_payload(user_id, force_regenerate=True))
    assert forced.json()["cached"] is False

    cleared = client.post("/activities/clear", json={"user_id": user_id, "date": "2026-10-19"})
    assert cleared.status_code == 200
    assert cleared.json()["cleared"] is True

    cleared_again = client.post("/activities/clear", json={"user_id": user_id, "date": "2026-10-19"})
    assert cleared_again.json()["cleared"] is False

    regenerated = client.post("/activities/generate", json=_generate_payload(user_id))
    assert regenerated.json()["cached"] is False


def test_wake_after_bed_returns_400(client) -> None:
    response = client.post(
        "/activities/generate",
        json=_generate_payload(str(uuid4()), wake_time="23:00", bed_time="07:00"),
    )

    assert response.status_code == 400
    assert "Wake time" in response.json()["detail"]


def test_unknown_timezone_returns_400(client) -> None:
    response = client.post("/activities/generate", json=_generate_payload(str(uuid4()), timezone="Nowhere/City"))

    assert response.status_code == 400


def test_naive_event_times_are_rejected(client) -> None:
    payload = _generate_payload(
        str(uuid4()),
        existing_events=[{"start": "2026-10-19T14:00:00", "end": "2026-10-19T15:00:00"}],
    )

    response = client.post("/activities/generate", json=payload)

    assert response.status_code == 422


def test_schedule_intensity_endpoint(client) -> None:
    response = client.post(
        "/schedule/intensity",
        json={
            "date": "2026-10-19",
            "wake_time": "08:00",
            "bed_time": "22:00",
            "timezone": "UTC",
            "busy_blocks": [
                {"start": "2026-10-19T09:00:00Z", "end": "2026-10-19T12:00:00Z"},
                {"start": "2026-10-19T13:00:00Z", "end": "2026-10-19T17:00:00Z"},
                {"start": "2026-10-19T18:00:00Z", "end": "2026-10-19T19:00:00Z"},
            ],
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["level"] == "medium"
    assert body["busy_minutes"] == 480
    assert body["total_waking_minutes"] == 840
    assert body["ratio"] == pytest.approx(0.5714, abs=1e-4)


def test_schedule_gaps_endpoint(client) -> None:
    response = client.post(
        "/schedule/gaps",
        json={
            "date": "2026-10-19",
            "wake_time": "07:00",
            "bed_time": "23:00",
            "timezone": "UTC",
            "busy_blocks": [{"start": "2026-10-19T14:00:00Z", "end": "2026-10-19T15:00:00Z"}],
            "energy_windows": [{"start": "09:00", "end": "12:00"}],
        },
    )

    assert response.status_code == 200
    gaps = response.json()["gaps"]
    assert [gap["minutes"] for gap in gaps] == [420, 480]
    assert [gap["in_energy_window"] for gap in gaps] == [True, False]


def test_schedule_gaps_rejects_inverted_day(client) -> None:
    response = client.post(
        "/schedule/gaps",
        json={"date": "2026-10-19", "wake_time": "22:00", "bed_time": "08:00"},
    )

    assert response.status_code == 400
