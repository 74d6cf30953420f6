"""Client for a FlareSolverr-compatible anti-bot bypass proxy.

The proxy loads a page in a real browser and hands back the rendered HTML::

    POST <base>/v1
    {"cmd": "request.get", "url": <target>, "maxTimeout": 60000,
     "postBody": "", "cookies": []}

    {"status": "ok", "message": "...",
     "solution": {"url": ..., "status": 200, "response": "<html>..."}}

Any ``status`` other than ``"ok"`` means the proxy could not solve the page.
"""

import json
import logging

import httpx

from .exceptions import TransportError, UpstreamError

logger = logging.getLogger(__name__)

# Browser-side budget the proxy gets per page, in milliseconds.
MAX_TIMEOUT_MS = 60000

# Our own HTTP timeout must outlast the proxy's browser budget.
_CLIENT_TIMEOUT = MAX_TIMEOUT_MS / 1000 + 10


class BypassProxy:
    """Fetch pages through a bypass proxy at *base_url*."""

    def __init__(self, base_url: str, client: httpx.Client | None = None):
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=_CLIENT_TIMEOUT)

    def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/v1"

    def fetch(self, target_url: str) -> str:
        """Return the rendered HTML of *target_url*.

        Raises TransportError when the proxy is unreachable and UpstreamError
        when it answers with an error or an unexpected body.
        """
        body = {
            "cmd": "request.get",
            "url": target_url,
            "maxTimeout": MAX_TIMEOUT_MS,
            "postBody": "",
            "cookies": [],
        }
        logger.debug("Bypass proxy %s <- %s", self.endpoint, target_url)
        try:
            resp = self.client.post(self.endpoint, json=body)
        except httpx.RequestError as exc:
            raise TransportError(self.endpoint, str(exc) or type(exc).__name__) from exc

        try:
            data = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise UpstreamError(
                self.endpoint, resp.status_code, resp.text, reason="undecodable proxy response"
            ) from exc

        status = data.get("status") if isinstance(data, dict) else None
        if status != "ok":
            message = data.get("message", "") if isinstance(data, dict) else ""
            raise UpstreamError(
                self.endpoint,
                resp.status_code,
                reason=f"proxy returned status: {status}, message: {message}",
            )

        solution = data.get("solution")
        html = solution.get("response") if isinstance(solution, dict) else None
        if not isinstance(html, str):
            raise UpstreamError(
                self.endpoint, resp.status_code, reason="proxy solution has no HTML response"
            )
        return html
