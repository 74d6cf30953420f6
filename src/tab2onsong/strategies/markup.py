"""Search strategies that read the public ``search.php`` page.

Embedded JSON (older server-rendered format)::

    <div class="js-store" data-content="<html-entity-encoded JSON>">
    JSON path:
        store.page.data.results[]
            .id / .song_name / .artist_name / .type / .tab_url / .rating

Rendered markup (React-rendered format, last resort).  Result links follow
the tab URL convention::

    /tab/<artist-slug>/<song-slug>-<type>-<id>
    /tab/<artist-slug>/<song-slug>-guitar-pro-<id>

The id, type and artist are all recovered from the URL; the title is the
anchor text.
"""

import html as html_module
import json
import logging
import re
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from ..exceptions import UpstreamError
from ..models import SearchQuery, SearchResult
from .base import SearchStrategy, result_from_json
from .page import SearchPage

logger = logging.getLogger(__name__)

_JS_STORE_RE = re.compile(r'<div class="js-store"[^>]*data-content="([^"]+)"')
_DIGITS_RE = re.compile(r"^\d+$")

# URL type segment -> display type
TAB_TYPES = {
    "chords": "Chords",
    "tabs": "Tab",
    "guitar": "Guitar Pro",
    "bass": "Bass",
    "drums": "Drums",
    "ukulele": "Ukulele",
    "power": "Power",
    "video": "Video",
    "official": "Official",
}


class EmbeddedJsonStrategy(SearchStrategy):
    """Third tier: decode the ``js-store`` JSON blob embedded in the page."""

    name = "embedded-json"

    def attempt(self, query: SearchQuery, page: SearchPage) -> list[SearchResult]:
        return parse_embedded_json(page.html, page.url)


class RenderedMarkupStrategy(SearchStrategy):
    """Fourth tier: harvest result links from the rendered DOM."""

    name = "rendered-markup"

    def attempt(self, query: SearchQuery, page: SearchPage) -> list[SearchResult]:
        return harvest_tab_links(page.html)


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


def parse_embedded_json(html: str, url: str = "") -> list[SearchResult]:
    """Return results from the ``js-store`` container.

    A page without the container has no results.  A container whose JSON
    cannot be decoded raises :class:`~tab2onsong.exceptions.UpstreamError`.
    """
    m = _JS_STORE_RE.search(html)
    if not m:
        logger.debug("No js-store container in search page")
        return []

    try:
        data = json.loads(html_module.unescape(m.group(1)))
    except json.JSONDecodeError as exc:
        raise UpstreamError(url, 200, reason=f"js-store JSON is malformed: {exc}") from exc

    try:
        entries = data["store"]["page"]["data"]["results"]
    except (KeyError, TypeError):
        return []
    if not isinstance(entries, list):
        return []

    results = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        result = result_from_json(entry)
        if result.id:
            results.append(result)
    return results


def harvest_tab_links(html: str) -> list[SearchResult]:
    """Return one result per distinct tab id linked from *html*."""
    soup = BeautifulSoup(html, "html.parser")

    results: list[SearchResult] = []
    seen: set[str] = set()
    for anchor in soup.select("a[href*='/tab/']"):
        href = anchor.get("href") or ""
        result = _result_from_link(href, anchor.get_text(strip=True))
        if result is None or result.id in seen:
            continue
        seen.add(result.id)
        results.append(result)
    return results


def _result_from_link(href: str, text: str) -> SearchResult | None:
    parts = href.split("-")
    tab_id = parts[-1]
    if not _DIGITS_RE.match(tab_id) or not text:
        return None

    return SearchResult(
        id=tab_id,
        title=text,
        artist=_artist_from_path(urlparse(href).path),
        type=_type_from_parts(parts),
        url=href,
    )


def _artist_from_path(path: str) -> str:
    """``/tab/the-band/the-weight-chords-1`` -> ``The Band``."""
    segments = path.strip("/").split("/")
    if len(segments) < 2:
        return ""
    for i, segment in enumerate(segments[:-1]):
        if segment == "tab":
            words = segments[i + 1].replace("-", " ").split(" ")
            return " ".join(w[:1].upper() + w[1:] for w in words)
    return ""


def _type_from_parts(parts: list[str]) -> str:
    if len(parts) < 2:
        return ""
    candidate = parts[-2]
    if candidate == "pro" and len(parts) >= 3 and parts[-3] == "guitar":
        return "Guitar Pro"
    return TAB_TYPES.get(candidate, "")
