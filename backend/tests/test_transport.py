from __future__ import annotations

import json

import pytest
import requests

from remote.config import FetchSettings
from remote.errors import MalformedResponse, RemoteUnavailable
from remote.transport import RETRY_STATUSES, HttpFeatureClient, retry_policy


class _Resp:
    def __init__(self, status: int = 200, text: str = ""):
        self.status_code = status
        self.ok = 200 <= status < 400
        self.text = text

    def json(self):
        return json.loads(self.text)


class _Session:
    def __init__(self, *outcomes):
        self.headers: dict[str, str] = {}
        self.outcomes = list(outcomes)
        self.calls: list[dict] = []
        self.adapters: dict[str, object] = {}

    def mount(self, prefix, adapter):
        self.adapters[prefix] = adapter

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        out = self.outcomes.pop(0)
        if isinstance(out, Exception):
            raise out
        return out


def _client(session, backoff, attempts=1):
    return HttpFeatureClient(
        settings=FetchSettings(attempts=attempts, timeout_s=5.0),
        backoff=backoff,
        session=session,
    )


def test_returns_decoded_json(backoff):
    session = _Session(_Resp(200, '{"features": []}'))
    client = _client(session, backoff)
    assert client.query("https://x.test/0/query", {"f": "json"}) == {"features": []}
    assert session.calls[0]["timeout"] == 5.0
    assert session.calls[0]["params"] == {"f": "json"}
    assert "User-Agent" in session.headers


def test_html_body_is_malformed(backoff):
    session = _Session(_Resp(200, "<!DOCTYPE html><html><body>Error</body></html>"))
    with pytest.raises(MalformedResponse):
        _client(session, backoff).query("https://x.test/0/query", {})


def test_invalid_json_is_malformed(backoff):
    session = _Session(_Resp(200, "{not json"))
    with pytest.raises(MalformedResponse):
        _client(session, backoff).query("https://x.test/0/query", {})


def test_non_success_status_is_unavailable(backoff):
    session = _Session(_Resp(503, "busy"))
    with pytest.raises(RemoteUnavailable):
        _client(session, backoff).query("https://x.test/0/query", {})


def test_network_error_is_unavailable(backoff):
    session = _Session(requests.ConnectionError("refused"))
    with pytest.raises(RemoteUnavailable):
        _client(session, backoff).query("https://x.test/0/query", {})


def test_single_attempt_does_not_sleep(backoff, sleeps):
    session = _Session(requests.Timeout("slow"))
    with pytest.raises(RemoteUnavailable):
        _client(session, backoff).query("https://x.test/0/query", {})
    assert sleeps == []
    assert len(session.calls) == 1


def test_outages_are_not_retried_by_the_client_loop(backoff, sleeps):
    # Status and connection retries belong to the mounted adapter.
    session = _Session(_Resp(503, "busy"))
    with pytest.raises(RemoteUnavailable):
        _client(session, backoff, attempts=3).query("https://x.test/0/query", {})
    assert len(session.calls) == 1
    assert sleeps == []


def test_malformed_body_is_retried_with_fixed_delay(backoff, sleeps):
    session = _Session(
        _Resp(200, "<html>maintenance</html>"),
        _Resp(200, "{broken"),
        _Resp(200, '{"features": [1]}'),
    )
    body = _client(session, backoff, attempts=3).query("https://x.test/0/query", {})
    assert body == {"features": [1]}
    assert sleeps == [0.2, 0.2]


def test_malformed_retries_exhausted_raises(backoff, sleeps):
    session = _Session(_Resp(200, "<html></html>"), _Resp(200, "<!doctype html>"))
    with pytest.raises(MalformedResponse):
        _client(session, backoff, attempts=2).query("https://x.test/0/query", {})
    assert sleeps == [0.2]
    assert len(session.calls) == 2


def test_retry_adapter_is_mounted_on_session(backoff):
    session = requests.Session()
    HttpFeatureClient(
        settings=FetchSettings(attempts=3, retry_delay_s=0.25),
        backoff=backoff,
        session=session,
    )
    for prefix in ("https://example.test/q", "http://example.test/q"):
        retry = session.get_adapter(prefix).max_retries
        assert retry.total == 2
        assert retry.backoff_factor == 0.25
        assert set(RETRY_STATUSES) <= set(retry.status_forcelist)
        assert retry.raise_on_status is False


def test_single_attempt_means_no_adapter_retries():
    retry = retry_policy(FetchSettings(attempts=1))
    assert retry.total == 0
    assert 503 in retry.status_forcelist
    assert 404 not in retry.status_forcelist
