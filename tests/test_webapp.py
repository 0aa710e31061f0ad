from __future__ import annotations

import pytest
from conftest import at, work
from fastapi.testclient import TestClient

from work_tracker.models import ActivityEvent
from work_tracker.webapp import create_app


@pytest.fixture
def client(tracker, event_store):
    for event in [
        work(9, project="Website"),
        ActivityEvent.activity(at(10), "Slack", "general"),
    ]:
        event_store.append(event)
    return TestClient(create_app(tracker=tracker, start_collector=False))


class TestReadEndpoints:
    def test_status(self, client):
        body = client.get("/api/status").json()
        assert body["collector_running"] is False
        assert body["store_degraded"] is False
        assert body["tracking_interval_seconds"] == 30

    def test_summary_for_day(self, client):
        body = client.get("/api/summary", params={"date": "2024-03-11"}).json()
        assert body["total_work_seconds"] == 3600
        assert body["sessions"][0]["project"] == "Website"
        assert body["progress"]["percentage"] == 13

    def test_invalid_date(self, client):
        assert client.get("/api/summary", params={"date": "11/03/2024"}).status_code == 400

    def test_today_is_empty(self, client):
        body = client.get("/api/today").json()
        assert body["date"] == "2024-03-12"
        assert body["current_project"] is None
        assert body["streak"] == 0

    def test_hourly(self, client):
        body = client.get("/api/hourly", params={"date": "2024-03-11"}).json()
        assert len(body["minutes"]) == 24
        assert body["minutes"][9] == 60

    def test_events(self, client):
        body = client.get("/api/events", params={"date": "2024-03-11"}).json()
        assert [event["app_name"] for event in body["events"]] == ["VSCode", "Slack"]

    def test_stats(self, client):
        body = client.get("/api/stats", params={"start": "2024-03-11", "end": "2024-03-12"}).json()
        assert body["project_stats"][0]["project"] == "Website"
        assert body["summary"]["total_sessions"] == 1

    def test_stats_rejects_reversed_range(self, client):
        response = client.get("/api/stats", params={"start": "2024-03-12", "end": "2024-03-11"})
        assert response.status_code == 400


class TestProjectEndpoints:
    def test_set_and_list(self, client):
        response = client.post(
            "/api/projects", json={"project_name": "Billing", "keywords": ["invoice"]}
        )
        assert response.status_code == 200
        body = client.get("/api/projects").json()
        assert body["keywords"] == {"Billing": ["invoice"]}
        assert body["projects"] == ["Billing", "Website"]

    def test_blank_name_rejected(self, client):
        response = client.post("/api/projects", json={"project_name": " ", "keywords": []})
        assert response.status_code == 400

    def test_delete_unknown(self, client):
        assert client.delete("/api/projects/Nope").status_code == 404


class TestConfigEndpoints:
    def test_patch_updates_settings(self, client):
        response = client.patch("/api/config", json={"dailyGoalMinutes": 120})
        assert response.status_code == 200
        assert client.get("/api/config").json()["dailyGoalMinutes"] == 120

    def test_patch_rejects_invalid_values(self, client):
        assert client.patch("/api/config", json={"dailyGoalMinutes": 0}).status_code == 400
        assert client.patch("/api/config", json={"colour": "red"}).status_code == 400


class TestExportEndpoint:
    def test_csv(self, client):
        response = client.get(
            "/api/export", params={"format": "csv", "start": "2024-03-11", "end": "2024-03-11"}
        )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "worktracker_sessions_2024-03-11.csv" in response.headers["content-disposition"]
        assert response.text.splitlines()[1].endswith("Website")

    def test_csv_without_data(self, client):
        response = client.get(
            "/api/export", params={"format": "csv", "start": "2024-01-01", "end": "2024-01-02"}
        )
        assert response.status_code == 404

    def test_json(self, client):
        body = client.get(
            "/api/export", params={"format": "json", "start": "2024-03-11", "end": "2024-03-11"}
        ).json()
        assert body["summary"]["totalSessions"] == 1
