"""The public search page shared by the markup-based strategies.

UG answers automated requests to ``search.php`` with a Cloudflare challenge
more often than not.  When a bypass proxy is configured the page is rendered
through it first; if the proxy fails, a plain GET with browser-like headers is
tried instead.
"""

import logging
from urllib.parse import urlencode

import httpx

from ..exceptions import Tab2OnSongError, TransportError, UpstreamError
from ..models import SearchQuery
from ..proxy import BypassProxy

logger = logging.getLogger(__name__)

SEARCH_PAGE_URL = "https://www.ultimate-guitar.com/search.php"

_FETCH_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Referer": "https://www.google.com/",
}


def build_search_url(query: SearchQuery) -> str:
    params = {"search_type": "title", "value": query.text}
    if query.type:
        params["type"] = query.type
    return f"{SEARCH_PAGE_URL}?{urlencode(params)}"


class SearchPage:
    """Lazily fetched HTML of the search page for one query.

    The page is requested at most once.  A failed fetch is remembered and
    re-raised to every later reader.
    """

    def __init__(
        self,
        query: SearchQuery,
        client: httpx.Client,
        proxy: BypassProxy | None = None,
    ):
        self.url = build_search_url(query)
        self.client = client
        self.proxy = proxy
        self._html: str | None = None
        self._error: Tab2OnSongError | None = None

    @property
    def html(self) -> str:
        if self._error is not None:
            raise self._error
        if self._html is None:
            try:
                self._html = self._fetch()
            except Tab2OnSongError as exc:
                self._error = exc
                raise
        return self._html

    def _fetch(self) -> str:
        if self.proxy is not None:
            logger.info("Fetching search page through bypass proxy at %s", self.proxy.base_url)
            try:
                return self.proxy.fetch(self.url)
            except Tab2OnSongError as exc:
                logger.warning("Bypass proxy failed, falling back to direct request: %s", exc)
        else:
            logger.debug("Bypass proxy not configured, using direct request")

        try:
            resp = self.client.get(self.url, headers=_FETCH_HEADERS, follow_redirects=True)
        except httpx.RequestError as exc:
            raise TransportError(self.url, str(exc) or type(exc).__name__) from exc
        if not resp.is_success:
            raise UpstreamError(self.url, resp.status_code, resp.text)
        return resp.text
