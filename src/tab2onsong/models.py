import datetime as dt
from dataclasses import dataclass, field

# Layout of the catalog's "date" field.
CATALOG_DATE_FORMAT = "%Y-%m-%d"

# Source label stamped on every delivered chord sheet.
DEFAULT_SOURCE = "Ultimate Guitar Scraper"


@dataclass
class SearchQuery:
    """A free-text search with optional type / difficulty filters."""

    text: str
    type: str | None = None  # e.g. "chords", "tabs"
    difficulty: str | None = None  # e.g. "beginner", "intermediate"


@dataclass
class SearchResult:
    """A single search candidate, site-assigned ``id`` plus display metadata."""

    id: str
    title: str = ""
    artist: str = ""
    type: str = ""
    rating: float = 0.0
    votes: int = 0
    difficulty: str | None = None
    url: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "type": self.type,
            "rating": self.rating,
            "votes": self.votes,
            "difficulty": self.difficulty or "",
            "url": self.url,
        }


@dataclass
class Contributor:
    user_id: int = 0
    username: str = ""


@dataclass
class RawTab:
    """A tab as returned by the catalog API, normalised to Python types."""

    tab_id: int
    song_name: str = ""
    artist_name: str = ""
    type: str = ""
    part: str = ""
    version: int = 0
    votes: int = 0
    rating: float = 0.0
    date: dt.date | None = None
    status: str = ""
    tonality_name: str = ""  # may be "" or the literal "undefined"
    verified: int = 0
    capo: int = 0
    tuning: str = ""
    difficulty: str = ""
    content: str = ""
    url_web: str = ""
    contributor: Contributor = field(default_factory=Contributor)

    @classmethod
    def from_api(cls, data: dict) -> "RawTab":
        """Build a RawTab from a ``/tab/info`` JSON body.

        An unparsable ``date`` is dropped rather than treated as an error and
        non-string text fields read as ``""``.  Numeric fields that are not
        numbers raise ValueError or TypeError; a non-object ``contributor``
        raises AttributeError.
        """
        contributor = data.get("contributor") or {}
        return cls(
            tab_id=int(data.get("id") or 0),
            song_name=_text(data.get("song_name")),
            artist_name=_text(data.get("artist_name")),
            type=_text(data.get("type")),
            part=_text(data.get("part")),
            version=int(data.get("version") or 0),
            votes=int(data.get("votes") or 0),
            rating=float(data.get("rating") or 0.0),
            date=_parse_date(data.get("date")),
            status=_text(data.get("status")),
            tonality_name=_text(data.get("tonality_name")),
            verified=int(data.get("verified") or 0),
            capo=max(int(data.get("capo") or 0), 0),
            tuning=_text(data.get("tuning")),
            difficulty=_text(data.get("difficulty")),
            content=_text(data.get("content")),
            url_web=_text(data.get("urlWeb")),
            contributor=Contributor(
                user_id=int(contributor.get("user_id") or 0),
                username=_text(contributor.get("username")),
            ),
        )


@dataclass
class ConversionResult:
    onsong_format: str
    key: str
    chords: list[str] = field(default_factory=list)  # unique, first-seen order
    chord_count: int = 0  # every occurrence, repeats included


@dataclass
class WebhookPayload:
    """Body POSTed to the downstream consumer."""

    title: str
    artist: str
    key: str
    onsong_format: str
    capo: int = 0
    timestamp: dt.datetime = field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))
    source: str = DEFAULT_SOURCE

    def to_dict(self) -> dict:
        body = {
            "title": self.title,
            "artist": self.artist,
            "key": self.key,
        }
        if self.capo:
            body["capo"] = self.capo
        body["onsong_format"] = self.onsong_format
        body["timestamp"] = self.timestamp.isoformat()
        body["source"] = self.source
        return body


@dataclass
class DeliveryResult:
    """Outcome of one delivery invocation, successful or not."""

    success: bool
    delivery_id: str
    attempts: int
    duration: float  # seconds
    timestamp: dt.datetime = field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))
    error: str | None = None

    def to_dict(self) -> dict:
        body = {
            "success": self.success,
            "delivery_id": self.delivery_id,
            "attempts": self.attempts,
        }
        if self.error:
            body["error"] = self.error
        body["duration"] = f"{self.duration:.3f}s"
        body["timestamp"] = self.timestamp.isoformat()
        return body


@dataclass
class WebhookConfig:
    url: str = ""
    enabled: bool = False
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "enabled": self.enabled,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WebhookConfig":
        return cls(
            url=data.get("url") or "",
            enabled=bool(data.get("enabled")),
            created_at=_parse_timestamp(data.get("created_at")),
            updated_at=_parse_timestamp(data.get("updated_at")),
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _text(value) -> str:
    return value if isinstance(value, str) else ""


def _parse_date(value) -> dt.date | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return dt.datetime.strptime(value, CATALOG_DATE_FORMAT).date()
    except ValueError:
        return None


def _parse_timestamp(value) -> dt.datetime | None:
    if not value:
        return None
    try:
        # "Z" suffix is written by shell-seeded config files
        return dt.datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
