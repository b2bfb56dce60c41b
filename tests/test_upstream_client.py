"""Tests for the upstream relay client."""

from unittest.mock import MagicMock

import pytest
import requests

from opsdesk.polling.upstream import (
    TIMEOUT_MESSAGE,
    UpstreamClient,
    UpstreamConfigError,
    UpstreamError,
)


def _response(status_code=200, payload=None, json_error=False):
    resp = MagicMock()
    resp.status_code = status_code
    if json_error:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = payload
    return resp


def _client(session, base_url="https://relay.example.com/api/", api_key="relay-key"):
    return UpstreamClient(base_url, api_key, timeout=3.0, session=session)


class TestValidate:
    def test_missing_key(self):
        with pytest.raises(UpstreamConfigError, match="key"):
            UpstreamClient("https://relay.example.com", "").validate()

    def test_missing_url(self):
        with pytest.raises(UpstreamConfigError, match="URL"):
            UpstreamClient(None, "k").validate()

    def test_url_without_scheme(self):
        with pytest.raises(UpstreamConfigError, match="http"):
            UpstreamClient("relay.example.com", "k").validate()

    def test_config_error_makes_no_request(self):
        session = MagicMock()
        with pytest.raises(UpstreamConfigError):
            UpstreamClient("", "k", session=session).fetch_recent("messages/recent", 3)
        session.get.assert_not_called()


class TestFetchRecent:
    def test_request_shape(self):
        session = MagicMock()
        session.get.return_value = _response(payload={"messages": [{"message_id": "1"}]})

        messages = _client(session).fetch_recent("messages/recent", 4)

        assert messages == [{"message_id": "1"}]
        session.get.assert_called_once_with(
            "https://relay.example.com/api/messages/recent",
            params={"hours": 4},
            headers={"X-API-Key": "relay-key", "Accept": "application/json"},
            timeout=3.0,
        )

    def test_cancellations_key_accepted(self):
        session = MagicMock()
        session.get.return_value = _response(payload={"cancellations": [{"message_id": "c"}]})

        assert _client(session).fetch_recent("cancellations/recent", 24) == [{"message_id": "c"}]

    def test_empty_payload(self):
        session = MagicMock()
        session.get.return_value = _response(payload={})

        assert _client(session).fetch_recent("messages/recent", 1) == []

    def test_timeout_message(self):
        session = MagicMock()
        session.get.side_effect = requests.Timeout("read timed out")

        with pytest.raises(UpstreamError) as exc:
            _client(session).fetch_recent("messages/recent", 1)
        assert str(exc.value) == TIMEOUT_MESSAGE

    def test_connection_error(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("refused")

        with pytest.raises(UpstreamError, match="ConnectionError"):
            _client(session).fetch_recent("messages/recent", 1)

    def test_http_error_status(self):
        session = MagicMock()
        session.get.return_value = _response(status_code=502)

        with pytest.raises(UpstreamError, match="HTTP 502"):
            _client(session).fetch_recent("messages/recent", 1)

    def test_invalid_json(self):
        session = MagicMock()
        session.get.return_value = _response(json_error=True)

        with pytest.raises(UpstreamError, match="invalid JSON"):
            _client(session).fetch_recent("messages/recent", 1)

    @pytest.mark.parametrize("payload", [[], {"messages": "nope"}])
    def test_unexpected_payload(self, payload):
        session = MagicMock()
        session.get.return_value = _response(payload=payload)

        with pytest.raises(UpstreamError, match="unexpected payload"):
            _client(session).fetch_recent("messages/recent", 1)


def test_from_env(monkeypatch):
    monkeypatch.setenv("UPSTREAM_API_URL", " https://relay.example.com/ ")
    monkeypatch.setenv("UPSTREAM_API_KEY", "env-key")
    monkeypatch.setenv("UPSTREAM_TIMEOUT_SECONDS", "2.5")

    client = UpstreamClient.from_env()

    assert client.base_url == "https://relay.example.com"
    assert client.api_key == "env-key"
    assert client.timeout == 2.5
