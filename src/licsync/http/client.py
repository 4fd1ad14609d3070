from __future__ import annotations
from typing import Any, Dict, Iterator, Optional
import requests

from licsync.core.logging_utils import get_logger
from licsync.http.errors import HttpError, NetworkError, error_for_status
from licsync.http.throttle import (
    ConcurrencyGate, RETRY_STATUSES, compute_sleep_seconds, parse_retry_after, sleep_backoff
)

log = get_logger(__name__)

SNIPPET_LEN = 400


class HttpClient:
    """
    requests.Session wrapper for Graph: typed errors, @odata.nextLink paging,
    and jittered backoff on 429/5xx for calls that allow retries.
    """
    def __init__(
        self,
        base_url: str = "",
        timeout: float = 30.0,
        max_retries: int = 4,
        gate: ConcurrencyGate | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self._gate = gate or ConcurrencyGate()
        self._session = session or requests.Session()

    def url_for(self, path_or_url: str) -> str:
        if path_or_url.startswith(("http://", "https://")) or not self.base_url:
            return path_or_url
        return f"{self.base_url}/{path_or_url.lstrip('/')}"

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        with self._gate:
            log.debug("HTTP %s %s", method, url)
            return self._session.request(method=method, url=url, timeout=self.timeout, **kwargs)

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        retries: Optional[int] = None,
    ) -> requests.Response:
        """Send a request and return the 2xx/3xx response.

        `retries` overrides `max_retries` for this call. License writes pass 0
        so the execution engine owns the retry policy.

        Raises:
            HttpError: A subclass matching the final status.
            NetworkError: The connection failed on the last attempt.
        """
        method = method.upper()
        full = self.url_for(url)
        budget = max(0, self.max_retries if retries is None else retries)
        attempt = 0

        while True:
            last = attempt >= budget
            attempt += 1
            try:
                resp = self._send(method, full, headers=headers or {}, params=params, json=json)
            except requests.exceptions.RequestException as ex:
                if last:
                    raise NetworkError(-1, full, str(ex)) from ex
                log.debug("%s %s failed (%s), retry %d", method, full, type(ex).__name__, attempt)
                sleep_backoff(compute_sleep_seconds(attempt - 1, None))
                continue

            if resp.status_code < 400:
                return resp
            if last or resp.status_code not in RETRY_STATUSES:
                raise _typed_error(resp, full)

            retry_after = resp.headers.get("Retry-After")
            log.debug("HTTP %s from %s, retry %d (Retry-After=%s)", resp.status_code, full, attempt, retry_after)
            sleep_backoff(compute_sleep_seconds(attempt - 1, retry_after))

    def get_json(self, url: str, **kwargs) -> dict:
        return _body(self.request("GET", url, **kwargs))

    def post_json(self, url: str, *, headers=None, json=None, retries: Optional[int] = None) -> dict:
        return _body(self.request("POST", url, headers=headers, json=json, retries=retries))

    def get_paged(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        page_limit: Optional[int] = None
    ) -> Iterator[dict]:
        """Yield Graph pages (dicts with a 'value' list) until no @odata.nextLink is left."""
        page = self.get_json(url, headers=headers, params=params)
        count = 1
        yield page
        # nextLink already carries the query string
        while page.get("@odata.nextLink") and not (page_limit and count >= page_limit):
            page = self.get_json(page["@odata.nextLink"], headers=headers)
            count += 1
            yield page


def _body(resp: requests.Response) -> dict:
    # 204 and empty 200 bodies read as {}
    return resp.json() if resp.content else {}


def _typed_error(resp: requests.Response, url: str) -> HttpError:
    err = error_for_status(resp.status_code, url, (resp.text or "")[:SNIPPET_LEN])
    err.retry_after = parse_retry_after(resp.headers.get("Retry-After"))
    return err
