"""Tests for the worker wake-up endpoint."""

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from opsdesk.api.factory import create_app
from opsdesk.polling.poller import PollOutcome

HEADERS = {"X-API-Key": "internal-test-key"}


@pytest.fixture
def client(auth_env):
    return TestClient(create_app(role="worker"))


def _pollers(outcome):
    poller = MagicMock()
    poller.poll_once.return_value = outcome
    return {outcome.stream: poller}


def test_unknown_stream(client):
    with patch("opsdesk.api.routes.tasks_poll._get_pollers", return_value={}):
        response = client.post("/tasks/poll/other", headers=HEADERS)
    assert response.status_code == 404


def test_successful_poll(client):
    outcome = PollOutcome(stream="notifications", ok=True, hours=3, fetched=5)
    with patch("opsdesk.api.routes.tasks_poll._get_pollers", return_value=_pollers(outcome)):
        response = client.post("/tasks/poll/notifications", headers=HEADERS)

    assert response.status_code == 200
    assert response.json() == {
        "stream": "notifications",
        "ok": True,
        "hours": 3,
        "fetched": 5,
        "error": None,
    }


def test_failed_poll_still_200(client):
    outcome = PollOutcome(stream="cancellations", ok=False, hours=24, error="upstream returned HTTP 502")
    with patch("opsdesk.api.routes.tasks_poll._get_pollers", return_value=_pollers(outcome)):
        response = client.post("/tasks/poll/cancellations", headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["ok"] is False
