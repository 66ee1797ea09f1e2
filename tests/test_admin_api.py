"""
Tests for the admin API surface.

The application is built around an in-memory scheduler, so no database is
needed. Starlette's TestClient runs the lifespan (scheduler start/shutdown).
"""

import time

import httpx
import pytest
from starlette.testclient import TestClient

from conftest import FakeApiFootball, envelope, league_row
from talentradar_data.api.main import create_app
from talentradar_data.core.http import ApiFootballHttpClient
from talentradar_data.services.scheduler import PopulationScheduler


@pytest.fixture
def scheduler(settings, repos) -> PopulationScheduler:
    fake = FakeApiFootball()
    fake.route("/leagues", envelope([league_row(1128)]))
    http = ApiFootballHttpClient.from_settings(settings, transport=httpx.MockTransport(fake))
    return PopulationScheduler(settings, repos, http)


@pytest.fixture
def client(scheduler):
    with TestClient(create_app(scheduler)) as c:
        yield c


def wait_until_idle(client, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        status = client.get("/admin/scheduled-tasks/status").json()
        if not status["is_running"] or time.monotonic() > deadline:
            return status
        time.sleep(0.01)


class TestHealth:
    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data

    def test_title_from_settings(self, client):
        from talentradar_data.core.config import get_settings

        assert client.get("/openapi.json").json()["info"]["title"] == get_settings().app_name


class TestPopulationTrigger:
    def test_trigger_accepted(self, client):
        r = client.post("/admin/scheduled-tasks/trigger-population")

        assert r.status_code == 202
        assert r.json()["status"] == "accepted"

        status = wait_until_idle(client)
        assert status["is_running"] is False
        assert status["last_run_status"] == "Completed successfully"
        assert status["last_summary"]["state"] == "done"

    def test_trigger_while_running_conflicts(self, client, scheduler):
        scheduler.is_running = True

        r = client.post("/admin/scheduled-tasks/trigger-population")

        assert r.status_code == 409
        assert "already running" in r.json()["detail"]
        scheduler.is_running = False

    def test_status_shape(self, client):
        data = client.get("/admin/scheduled-tasks/status").json()

        assert set(data) == {"is_running", "last_run_status", "last_run_time", "next_scheduled_run", "last_summary"}
        assert data["is_running"] is False
        assert data["last_run_status"] is None

    def test_next_scheduled_run(self, client, settings):
        data = client.get("/admin/scheduled-tasks/next-scheduled-run").json()

        assert data["next_scheduled_run"].endswith(
            f"{settings.population_cron_hour:02d}:{settings.population_cron_minute:02d}:00"
        )
