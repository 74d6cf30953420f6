"""Authenticated search against the UG mobile API.

None of the search endpoints are documented and they come and go, so a fixed
list is probed in order and the first one that yields results wins::

    /api/v1/suggest?value=<q>
    /api/v1/tab-search?query=<q>
    /api/v1/search?title=<q>

Two response shapes have been observed:

    {"tabs": [{"id": 123, "song_name": ..., "artist_name": ..., ...}]}
    {"data": {"results": [{"id": "123", ...}]}}

Anything else counts as "no results" rather than an error.
"""

import json
import logging
from urllib.parse import urlencode

import httpx

from ..auth import AuthSigner
from ..catalog import API_BASE
from ..exceptions import Tab2OnSongError, TransportError, UpstreamError
from ..models import SearchQuery, SearchResult
from .base import SearchStrategy, result_from_json
from .page import SearchPage

logger = logging.getLogger(__name__)

# (path, name of the query parameter) in probe order
ENDPOINTS = [
    ("suggest", "value"),
    ("tab-search", "query"),
    ("search", "title"),
]


def endpoint_urls(query: SearchQuery) -> list[str]:
    urls = []
    for path, param in ENDPOINTS:
        params = {param: query.text}
        if query.type:
            params["type"] = query.type
        urls.append(f"{API_BASE}/{path}?{urlencode(params)}")
    return urls


def parse_api_results(body) -> list[SearchResult]:
    """Extract results from either known response shape."""
    if not isinstance(body, dict):
        return []

    results = []
    tabs = body.get("tabs")
    if isinstance(tabs, list):
        for entry in tabs:
            # This shape only ever carries numeric ids; anything else is noise
            if isinstance(entry, dict) and isinstance(entry.get("id"), (int, float)):
                results.append(result_from_json(entry))

    if not results:
        data = body.get("data")
        nested = data.get("results") if isinstance(data, dict) else None
        if isinstance(nested, list):
            for entry in nested:
                if isinstance(entry, dict):
                    result = result_from_json(entry)
                    if result.id:
                        results.append(result)

    return results


class ApiSearchStrategy(SearchStrategy):
    """First tier: signed requests to the mobile API search endpoints."""

    name = "api"

    def __init__(self, signer: AuthSigner, client: httpx.Client):
        self.signer = signer
        self.client = client

    def attempt(self, query: SearchQuery, page: SearchPage) -> list[SearchResult]:
        urls = endpoint_urls(query)
        for i, url in enumerate(urls, start=1):
            logger.debug("[%d/%d] %s", i, len(urls), url)
            try:
                results = self._probe(url)
            except Tab2OnSongError as exc:
                logger.warning("API endpoint failed: %s", exc)
                continue
            if results:
                logger.info("API endpoint returned %d results", len(results))
                return results
            logger.debug("API endpoint returned no results")
        return []

    def _probe(self, url: str) -> list[SearchResult]:
        request = self.signer.sign(self.client.build_request("GET", url))
        try:
            resp = self.client.send(request)
        except httpx.RequestError as exc:
            raise TransportError(url, str(exc) or type(exc).__name__) from exc
        if not resp.is_success:
            raise UpstreamError(url, resp.status_code, resp.text)
        try:
            body = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise UpstreamError(url, resp.status_code, reason=f"decoding response: {exc}") from exc
        return parse_api_results(body)
