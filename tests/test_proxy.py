"""Tests for the upstream relay proxy."""

from unittest.mock import MagicMock, patch

import pytest
import requests
from fastapi.testclient import TestClient

from opsdesk.api.factory import create_app


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("UPSTREAM_API_URL", "https://relay.example.com/api/")
    monkeypatch.delenv("PROXY_TIMEOUT_SECONDS", raising=False)
    return TestClient(create_app(role="public"))


def _upstream_response(status_code=200, payload=None, content_type="application/json", text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 400
    resp.headers = {"content-type": content_type}
    resp.json.return_value = payload
    resp.text = text
    return resp


HEADERS = {"X-API-Key": "relay-key"}


def test_requires_api_key(client):
    with patch("opsdesk.api.routes.proxy.requests.get") as get:
        response = client.get("/api/proxy/messages/recent")

    assert response.status_code == 401
    assert response.json() == {"error": "API key is required"}
    get.assert_not_called()


def test_forwards_path_query_and_key(client):
    with patch(
        "opsdesk.api.routes.proxy.requests.get",
        return_value=_upstream_response(payload={"messages": []}),
    ) as get:
        response = client.get("/api/proxy/messages/recent", params={"hours": 3}, headers=HEADERS)

    assert response.status_code == 200
    assert response.json() == {"messages": []}
    args, kwargs = get.call_args
    assert args[0] == "https://relay.example.com/api/messages/recent"
    assert kwargs["params"] == [("hours", "3")]
    assert kwargs["headers"]["X-API-Key"] == "relay-key"
    assert kwargs["timeout"] == 15.0


def test_successful_json_is_cached(client):
    with patch(
        "opsdesk.api.routes.proxy.requests.get",
        return_value=_upstream_response(payload={"messages": [1]}),
    ) as get:
        client.get("/api/proxy/messages/recent", params={"hours": 3}, headers=HEADERS)
        second = client.get("/api/proxy/messages/recent", params={"hours": 3}, headers=HEADERS)
        client.get("/api/proxy/messages/recent", params={"hours": 4}, headers=HEADERS)

    assert second.json() == {"messages": [1]}
    assert get.call_count == 2


def test_cache_expires(client):
    with patch(
        "opsdesk.api.routes.proxy.requests.get",
        return_value=_upstream_response(payload={"messages": []}),
    ) as get, patch("opsdesk.api.routes.proxy._CACHE_TTL", 0.0):
        client.get("/api/proxy/messages/recent", headers=HEADERS)
        client.get("/api/proxy/messages/recent", headers=HEADERS)

    assert get.call_count == 2


def test_cached_response_still_requires_key(client):
    with patch(
        "opsdesk.api.routes.proxy.requests.get",
        return_value=_upstream_response(payload={"messages": []}),
    ):
        client.get("/api/proxy/messages/recent", headers=HEADERS)
        response = client.get("/api/proxy/messages/recent")

    assert response.status_code == 401


def test_cache_is_scoped_to_api_key(client):
    with patch("opsdesk.api.routes.proxy.requests.get") as get:
        get.side_effect = [
            _upstream_response(payload={"messages": [{"message": "for relay-key"}]}),
            _upstream_response(status_code=403, payload={"error": "bad key"}),
        ]
        client.get("/api/proxy/messages/recent", headers=HEADERS)
        other = client.get("/api/proxy/messages/recent", headers={"X-API-Key": "other-key"})

    assert get.call_count == 2
    assert get.call_args.kwargs["headers"]["X-API-Key"] == "other-key"
    assert other.status_code == 403
    assert other.json() == {"error": "bad key"}


def test_upstream_error_status_passed_through_and_not_cached(client):
    with patch(
        "opsdesk.api.routes.proxy.requests.get",
        return_value=_upstream_response(status_code=403, payload={"error": "bad key"}),
    ) as get:
        first = client.get("/api/proxy/messages/recent", headers=HEADERS)
        client.get("/api/proxy/messages/recent", headers=HEADERS)

    assert first.status_code == 403
    assert first.json() == {"error": "bad key"}
    assert get.call_count == 2


def test_non_json_body_returned_as_string(client):
    with patch(
        "opsdesk.api.routes.proxy.requests.get",
        return_value=_upstream_response(status_code=502, content_type="text/html", text="Bad Gateway"),
    ):
        response = client.get("/api/proxy/messages/recent", headers=HEADERS)

    assert response.status_code == 502
    assert response.json() == "Bad Gateway"


def test_timeout_is_504(client):
    with patch("opsdesk.api.routes.proxy.requests.get", side_effect=requests.Timeout()):
        response = client.get("/api/proxy/messages/recent", headers=HEADERS)

    assert response.status_code == 504


def test_connection_error_is_500(client):
    with patch("opsdesk.api.routes.proxy.requests.get", side_effect=requests.ConnectionError()):
        response = client.get("/api/proxy/messages/recent", headers=HEADERS)

    assert response.status_code == 500
    assert response.json() == {"error": "Proxy server error", "details": "ConnectionError"}


def test_upstream_not_configured(client, monkeypatch):
    monkeypatch.delenv("UPSTREAM_API_URL")

    response = client.get("/api/proxy/messages/recent", headers=HEADERS)

    assert response.status_code == 500
    assert response.json() == {"error": "Upstream not configured"}
