"""Request signing for the Ultimate Guitar mobile API.

The API does not use tokens.  It authenticates a client by header fingerprint
plus an hour-bucketed hash::

    X-UG-CLIENT-ID: <device id>
    X-UG-API-KEY:   md5(<device id> + "YYYY-MM-DD:H" + "createLog()")

The date/hour is UTC and the hour has no leading zero, so a key is valid only
inside the hour it was computed in.  Keys are therefore recomputed for every
request.
"""

import datetime as dt
import hashlib
import logging
import os
import time

import httpx

logger = logging.getLogger(__name__)

USER_AGENT = "UGT_ANDROID/4.11.1 (Pixel; 8.1.0)"

_KEY_SUFFIX = "createLog()"
_DEVICE_ID_LENGTH = 16


class AuthSigner:
    """Owns a device identifier and signs requests with it.

    One signer is created at startup and shared by the catalog client and the
    search engine so both present the same device to the API.
    """

    def __init__(self, device_id: str | None = None):
        self.device_id = device_id or generate_device_id()

    def api_key(self, now: dt.datetime | None = None) -> str:
        """Return the ``X-UG-API-KEY`` value for the hour containing *now*."""
        now = (now or dt.datetime.now(dt.timezone.utc)).astimezone(dt.timezone.utc)
        window = f"{now:%Y-%m-%d}:{now.hour}"
        payload = f"{self.device_id}{window}{_KEY_SUFFIX}"
        return hashlib.md5(payload.encode("utf-8")).hexdigest()

    def headers(self, now: dt.datetime | None = None) -> dict[str, str]:
        """Return the header set the Android app sends, signature included."""
        return {
            "Accept-Charset": "utf-8",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
            "Connection": "close",
            "X-UG-CLIENT-ID": self.device_id,
            "X-UG-API-KEY": self.api_key(now),
        }

    def sign(self, request: httpx.Request) -> httpx.Request:
        """Apply the app headers to *request* in place and return it.

        httpx adds ``Accept-Encoding`` by default; the app never sends it, so
        it is removed.
        """
        request.headers.update(self.headers())
        if "Accept-Encoding" in request.headers:
            del request.headers["Accept-Encoding"]
        return request


def generate_device_id() -> str:
    """Return a 16 hex character device id.

    Falls back to a clock-derived id when the OS random source is unavailable.
    """
    try:
        raw = os.urandom(16)
    except (OSError, NotImplementedError) as exc:
        logger.warning("Random source unavailable (%s), using time-based device id", exc)
        return format(time.time_ns(), "x")[:_DEVICE_ID_LENGTH]
    return raw.hex()[:_DEVICE_ID_LENGTH]
