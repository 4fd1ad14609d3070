# src/licsync/core/graph_client.py
from __future__ import annotations
from typing import Any, Callable, Dict, Iterator

from licsync.config.loader import get_http_config
from licsync.http.client import HttpClient
from licsync.http.throttle import ConcurrencyGate

GRAPH_BASE = "https://graph.microsoft.com"


class GraphClient:
    """
    Microsoft Graph calls with a bearer token from `token_provider()`, fetched
    per request so MSAL can refresh it during long runs.
    """
    def __init__(self, token_provider: Callable[[], str], http: HttpClient):
        self._token_provider = token_provider
        self._http = http

    @classmethod
    def from_config(
        cls,
        token_provider: Callable[[], str],
        *,
        timeout: float | None = None,
        max_retries: int | None = None,
        base_url: str = GRAPH_BASE,
    ) -> "GraphClient":
        """Build the transport from the `http` section of appsettings.json."""
        cfg = get_http_config()
        http = HttpClient(
            base_url=base_url,
            timeout=float(cfg["timeout_seconds"] if timeout is None else timeout),
            max_retries=int(cfg["max_retries"] if max_retries is None else max_retries),
            gate=ConcurrencyGate(cfg["max_concurrency"]),
        )
        return cls(token_provider, http)

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._token_provider()}", "Accept": "application/json"}

    def get_json(self, path_or_url: str, *, params: Dict[str, Any] | None = None) -> dict:
        return self._http.get_json(path_or_url, headers=self._headers(), params=params)

    def get_paged_values(
        self,
        path_or_url: str,
        *,
        params: Dict[str, Any] | None = None,
        page_limit: int | None = None,
    ) -> Iterator[dict]:
        """Flatten the 'value' arrays of every page."""
        pages = self._http.get_paged(path_or_url, headers=self._headers(), params=params, page_limit=page_limit)
        for page in pages:
            yield from page.get("value", [])

    def post_json(self, path_or_url: str, *, json: Any = None, retries: int | None = None) -> dict:
        return self._http.post_json(path_or_url, headers=self._headers(), json=json, retries=retries)
