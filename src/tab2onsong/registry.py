import httpx

from .auth import AuthSigner
from .strategies.api import ApiSearchStrategy
from .strategies.base import SearchStrategy
from .strategies.markup import EmbeddedJsonStrategy, RenderedMarkupStrategy


def default_strategies(signer: AuthSigner, client: httpx.Client) -> list[SearchStrategy]:
    """Return the search fallback chain, cheapest and most reliable first.

    The page-based strategies share one lazily fetched search page per query,
    so the page fetch (direct or through the bypass proxy) happens only once
    the API tier has come back empty.
    """
    return [
        ApiSearchStrategy(signer, client),
        EmbeddedJsonStrategy(),
        RenderedMarkupStrategy(),
    ]
