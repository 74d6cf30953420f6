import math
from abc import ABC, abstractmethod

from ..models import SearchQuery, SearchResult
from .page import SearchPage


class SearchStrategy(ABC):
    """Abstract base class for one tier of the search fallback chain."""

    name: str = "strategy"

    @abstractmethod
    def attempt(self, query: SearchQuery, page: SearchPage) -> list[SearchResult]:
        """Return candidates for *query*, or an empty list.

        *page* is the lazily fetched public search page shared by every
        strategy in one search; strategies that do not need it never touch it.

        May raise any :class:`~tab2onsong.exceptions.Tab2OnSongError`; the
        engine logs it and moves on to the next strategy.
        """


def result_from_json(data: dict) -> SearchResult:
    """Map one catalog search entry (``id``, ``song_name``, ...) to a SearchResult.

    Numeric ids arrive as JSON numbers from some endpoints and as strings from
    others; both are normalised to a digit string.
    """
    raw_id = data.get("id")
    if isinstance(raw_id, bool):
        raw_id = None
    if isinstance(raw_id, int):
        tab_id = str(raw_id)
    elif isinstance(raw_id, float) and math.isfinite(raw_id):
        tab_id = f"{raw_id:.0f}"
    elif isinstance(raw_id, str):
        tab_id = raw_id
    else:
        tab_id = ""

    return SearchResult(
        id=tab_id,
        title=_str(data.get("song_name")),
        artist=_str(data.get("artist_name")),
        type=_str(data.get("type")),
        rating=_float(data.get("rating")),
        votes=int(_float(data.get("votes"))),
        difficulty=_str(data.get("difficulty")) or None,
        url=_str(data.get("tab_url")),
    )


def _str(value) -> str:
    return value if isinstance(value, str) else ""


def _float(value) -> float:
    """*value* as a finite float, else 0.0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    try:
        value = float(value)
    except OverflowError:
        return 0.0
    return value if math.isfinite(value) else 0.0
