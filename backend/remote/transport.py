from __future__ import annotations

from typing import Any, Protocol

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from remote.backoff import FixedBackoff
from remote.config import FetchSettings, fetch_settings
from remote.errors import MalformedResponse, RemoteUnavailable

RETRY_STATUSES = (429, 500, 502, 503, 504)


class FeatureTransport(Protocol):
    """
    Issues one query request and returns the decoded JSON body.

    Raises `RemoteUnavailable` / `MalformedResponse` on failure.
    """

    def query(self, url: str, params: dict[str, Any]) -> Any: ...


def retry_policy(settings: FetchSettings) -> Retry:
    """
    Connection errors, timeouts and retryable statuses, handled inside urllib3.

    `attempts` counts the first try, so `total` is one less. After the last retry the
    final response is returned (not raised) and mapped to `RemoteUnavailable`.
    """
    return Retry(
        total=max(0, int(settings.attempts) - 1),
        backoff_factor=settings.retry_delay_s,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=frozenset({"GET"}),
        raise_on_status=False,
    )


class HttpFeatureClient(FeatureTransport):
    """
    `requests`-based transport for ArcGIS-style `/query` endpoints.

    Outages and 5xx/429 answers are retried by the mounted `HTTPAdapter`. A 200 carrying
    an HTML error page or broken JSON is invisible to urllib3, so those bodies are retried
    here with the backoff policy's retry delay.
    """

    def __init__(
        self,
        *,
        settings: FetchSettings | None = None,
        backoff: FixedBackoff | None = None,
        session: requests.Session | None = None,
        user_agent: str = "geoenrich/0.1",
    ):
        self.settings = settings or fetch_settings()
        self.backoff = backoff or FixedBackoff.from_settings(self.settings)
        self.session = session or requests.Session()
        adapter = HTTPAdapter(max_retries=retry_policy(self.settings))
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)
        self.session.headers.setdefault("Accept", "application/json")
        self.session.headers["User-Agent"] = user_agent

    def query(self, url: str, params: dict[str, Any]) -> Any:
        attempts = max(1, int(self.settings.attempts))
        attempt = 1
        while True:
            try:
                return self._once(url, params)
            except MalformedResponse:
                if attempt >= attempts:
                    raise
                self.backoff.before_retry(attempt)
                attempt += 1

    def _once(self, url: str, params: dict[str, Any]) -> Any:
        try:
            resp = self.session.get(url, params=params, timeout=self.settings.timeout_s)
        except requests.RequestException as e:
            raise RemoteUnavailable(f"request failed: {type(e).__name__}: {e}") from e

        if not resp.ok:
            raise RemoteUnavailable(f"HTTP {resp.status_code} from {url}")

        text = (resp.text or "").lstrip()
        if text[:5].lower() == "<html" or text[:9].lower() == "<!doctype":
            raise MalformedResponse(f"received HTML instead of JSON: {text[:100]!r}")
        try:
            return resp.json()
        except ValueError as e:
            raise MalformedResponse(f"invalid JSON response: {text[:100]!r}") from e
