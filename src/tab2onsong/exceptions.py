from .models import DeliveryResult

# Longest response body excerpt carried in an error message.
_BODY_EXCERPT = 200


class Tab2OnSongError(Exception):
    """Base exception for tab2onsong."""


class ConfigurationError(Tab2OnSongError):
    """Raised when a required setting or argument is missing or invalid."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class ValidationError(Tab2OnSongError):
    """Raised when a tab lacks the data needed for conversion."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(reason)


class UpstreamError(Tab2OnSongError):
    """Raised when a remote service answers with a non-2xx or garbled response."""

    def __init__(self, url: str, status_code: int, body: str = "", reason: str | None = None):
        self.url = url
        self.status_code = status_code
        self.body = body
        self.reason = reason
        msg = f"HTTP {status_code} from {url}"
        if reason:
            msg += f": {reason}"
        if body:
            msg += f": {body[:_BODY_EXCERPT]}"
        super().__init__(msg)


class TransportError(Tab2OnSongError):
    """Raised when a request never got a response (timeout, refused, DNS...)."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Request to {url} failed: {reason}")


class NoResultsError(Tab2OnSongError):
    """Raised when every search strategy came back empty."""

    def __init__(self, query: str):
        self.query = query
        super().__init__(f"No results found for {query!r}")


class DeliveryError(Tab2OnSongError):
    """Raised when a webhook delivery gives up.

    ``result`` keeps the attempt count, duration and last error so callers can
    report the outcome even though delivery failed.
    """

    def __init__(self, result: DeliveryResult, message: str):
        self.result = result
        super().__init__(message)
