"""Free-text search with a descending-cost fallback chain.

Strategies are tried in order and the first one that yields at least one
candidate wins:

  1. signed mobile API search           (:mod:`tab2onsong.strategies.api`)
  2. ``search.php`` fetch, via the bypass proxy when configured
                                         (:mod:`tab2onsong.strategies.page`)
  3. embedded ``js-store`` JSON          (:mod:`tab2onsong.strategies.markup`)
  4. result links in the rendered DOM    (:mod:`tab2onsong.strategies.markup`)

Strategy failures never reach the caller.  They are logged, and only when the
whole chain comes back empty does :meth:`SearchEngine.search` raise
:class:`~tab2onsong.exceptions.NoResultsError`.

Results are then reduced to one candidate per artist (see
:func:`filter_top_results`).
"""

import logging

import httpx

from .auth import AuthSigner
from .exceptions import ConfigurationError, NoResultsError, Tab2OnSongError
from .models import SearchQuery, SearchResult
from .proxy import BypassProxy
from .registry import default_strategies
from .strategies.base import SearchStrategy
from .strategies.page import SearchPage

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30

UNKNOWN_ARTIST = "Unknown"


class SearchEngine:
    """Resolve a :class:`~tab2onsong.models.SearchQuery` to ranked candidates."""

    def __init__(
        self,
        signer: AuthSigner | None = None,
        client: httpx.Client | None = None,
        proxy: BypassProxy | None = None,
        strategies: list[SearchStrategy] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.signer = signer or AuthSigner()
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=timeout)
        self.proxy = proxy
        self.strategies = (
            strategies if strategies is not None else default_strategies(self.signer, self.client)
        )

    def close(self) -> None:
        """Close the HTTP client if this instance created it, and the proxy."""
        if self._owns_client:
            self.client.close()
        if self.proxy is not None:
            self.proxy.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def search(self, query: SearchQuery | str) -> list[SearchResult]:
        """Return at most one candidate per artist for *query*.

        Raises:
            ConfigurationError: the query text is empty.
            NoResultsError: every strategy came back empty.
        """
        if isinstance(query, str):
            query = SearchQuery(text=query)
        if not query.text or not query.text.strip():
            raise ConfigurationError("search query cannot be empty")

        logger.info(
            "Searching for %r (type=%s, difficulty=%s)",
            query.text,
            query.type or "-",
            query.difficulty or "-",
        )
        page = SearchPage(query, self.client, self.proxy)

        for strategy in self.strategies:
            logger.info("Trying %s search", strategy.name)
            try:
                results = strategy.attempt(query, page)
            except (Tab2OnSongError, httpx.HTTPError) as exc:
                logger.warning("%s search failed: %s", strategy.name, exc)
                continue

            results = filter_by_difficulty(unique_by_id(results), query.difficulty)
            if results:
                logger.info("%s search found %d results", strategy.name, len(results))
                return filter_top_results(results)
            logger.info("%s search found nothing", strategy.name)

        raise NoResultsError(query.text)


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------


def artist_key(result: SearchResult) -> str:
    """Grouping key for *result*: case-folded artist, or the Unknown bucket."""
    artist = result.artist.strip()
    return (artist or UNKNOWN_ARTIST).casefold()


def candidate_rank(result: SearchResult) -> tuple[bool, float]:
    """Total order used to pick an artist's best candidate.

    Chords sheets beat every other type, then higher rating wins.
    """
    return (result.type.lower() == "chords", result.rating)


def filter_top_results(results: list[SearchResult]) -> list[SearchResult]:
    """Keep the best candidate per artist.

    A candidate replaces the incumbent only when it ranks strictly higher,
    so among equals the first one seen stays.  Output is in first-seen artist
    order.
    """
    best: dict[str, SearchResult] = {}
    for result in results:
        key = artist_key(result)
        incumbent = best.get(key)
        if incumbent is None or candidate_rank(result) > candidate_rank(incumbent):
            best[key] = result
    return list(best.values())


def unique_by_id(results: list[SearchResult]) -> list[SearchResult]:
    """Drop repeated ids, keeping the first occurrence."""
    seen: set[str] = set()
    unique = []
    for result in results:
        if result.id not in seen:
            seen.add(result.id)
            unique.append(result)
    return unique


def filter_by_difficulty(results: list[SearchResult], difficulty: str | None) -> list[SearchResult]:
    """Drop results whose declared difficulty differs from *difficulty*.

    Results without a declared difficulty are kept; most sources never send
    one.
    """
    if not difficulty:
        return results
    wanted = difficulty.lower()
    return [r for r in results if not r.difficulty or r.difficulty.lower() == wanted]
