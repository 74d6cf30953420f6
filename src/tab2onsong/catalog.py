"""Single-tab fetch from the Ultimate Guitar mobile API.

Endpoint::

    GET https://api.ultimate-guitar.com/api/v1/tab/info
        ?tab_id=<id>&tab_access_type=private

The JSON body is mapped to :class:`~tab2onsong.models.RawTab`.  Unlike search,
there is nothing to fall back to here, so every failure is raised.
"""

import json
import logging

import httpx

from .auth import AuthSigner
from .exceptions import ConfigurationError, TransportError, UpstreamError
from .models import RawTab

logger = logging.getLogger(__name__)

API_BASE = "https://api.ultimate-guitar.com/api/v1"

DEFAULT_TIMEOUT = 30


class CatalogClient:
    """Fetch tabs by id from the catalog API."""

    def __init__(
        self,
        signer: AuthSigner | None = None,
        client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.signer = signer or AuthSigner()
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    @property
    def device_id(self) -> str:
        return self.signer.device_id

    def fetch_by_id(self, tab_id: str | int) -> RawTab:
        """Return the tab with catalog id *tab_id*.

        Raises:
            ConfigurationError: *tab_id* is empty.
            TransportError: the request never got a response.
            UpstreamError: non-2xx status or an undecodable body.
        """
        tab_id = str(tab_id).strip()
        if not tab_id:
            raise ConfigurationError("tab ID is required")

        request = self.client.build_request(
            "GET",
            f"{API_BASE}/tab/info",
            params={"tab_id": tab_id, "tab_access_type": "private"},
        )
        self.signer.sign(request)
        url = str(request.url)
        logger.info("Fetching tab %s", tab_id)

        try:
            resp = self.client.send(request)
        except httpx.RequestError as exc:
            raise TransportError(url, str(exc) or type(exc).__name__) from exc

        if not resp.is_success:
            raise UpstreamError(url, resp.status_code, resp.text)

        try:
            data = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise UpstreamError(url, resp.status_code, reason=f"decoding response: {exc}") from exc
        if not isinstance(data, dict):
            raise UpstreamError(url, resp.status_code, reason="expected a JSON object")

        try:
            tab = RawTab.from_api(data)
        except (TypeError, ValueError, OverflowError, AttributeError) as exc:
            raise UpstreamError(url, resp.status_code, reason=f"unexpected tab shape: {exc}") from exc
        logger.info("Fetched tab %s: %s - %s", tab.tab_id, tab.artist_name, tab.song_name)
        return tab
