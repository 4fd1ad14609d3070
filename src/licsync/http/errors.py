from __future__ import annotations

class HttpError(Exception):
    def __init__(self, status: int, url: str, message: str = "", body_snippet: str = ""):
        super().__init__(message or f"HTTP {status} for {url}")
        self.status = status
        self.url = url
        self.body_snippet = body_snippet
        self.retry_after: float | None = None

    def detail(self) -> str:
        """One-line description suitable for a report row."""
        parts = [f"{type(self).__name__} (HTTP {self.status})", str(self)]
        if self.body_snippet:
            parts.append(self.body_snippet.replace("\n", " ").strip())
        return ": ".join(p for p in parts if p)


# Retryable: rate limiting or temporary service capacity
class TransientApiError(HttpError): pass
class ThrottleError(TransientApiError): pass            # 429
class ServiceUnavailableError(TransientApiError): pass  # 502/503/504

# Not retried by the execution engine
class PermanentApiError(HttpError): pass
class BadRequestError(PermanentApiError): pass     # 400 (validation)
class UnauthorizedError(PermanentApiError): pass   # 401
class ForbiddenError(PermanentApiError): pass      # 403
class NotFoundError(PermanentApiError): pass       # 404
class ServerError(PermanentApiError): pass         # other 5xx
class NetworkError(PermanentApiError): pass        # request/timeout


def error_for_status(status: int, url: str, body_snippet: str = "") -> HttpError:
    if status == 400:
        return BadRequestError(400, url, "Bad Request", body_snippet)
    if status == 401:
        return UnauthorizedError(401, url, "Unauthorized", body_snippet)
    if status == 403:
        return ForbiddenError(403, url, "Forbidden", body_snippet)
    if status == 404:
        return NotFoundError(404, url, "Not Found", body_snippet)
    if status == 429:
        return ThrottleError(429, url, "Too Many Requests", body_snippet)
    if status in (502, 503, 504):
        return ServiceUnavailableError(status, url, "Service unavailable", body_snippet)
    if 500 <= status <= 599:
        return ServerError(status, url, "Server error", body_snippet)
    return PermanentApiError(status, url, "HTTP error", body_snippet)
