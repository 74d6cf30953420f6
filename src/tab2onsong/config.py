"""Runtime settings and the persisted webhook destination.

Environment variables
---------------------

``FLARESOLVERR_URL``   base URL of the bypass proxy (optional)
``CONFIG_FILE``        webhook config path
                       (default: ``<app dir>/webhook-config.json``)
``WEBHOOK_URL``        destination used when no config file exists yet
``WEBHOOK_ENABLED``    ``true``/``false`` for the above (default ``false``)
``UG_TIMEOUT``         catalog/search request timeout, seconds (default 30)
``WEBHOOK_TIMEOUT``    per-attempt webhook timeout, seconds (default 10)
"""

import dataclasses
import datetime as dt
import json
import logging
import os
import tempfile
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import click

from .exceptions import ConfigurationError
from .models import WebhookConfig

logger = logging.getLogger(__name__)

APP_NAME = "tab2onsong"
CONFIG_FILENAME = "webhook-config.json"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class Settings:
    config_file: Path
    flaresolverr_url: str | None = None
    webhook_url: str | None = None
    webhook_enabled: bool = False
    ug_timeout: float = 30.0
    webhook_timeout: float = 10.0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        config_file = env.get("CONFIG_FILE") or str(Path(click.get_app_dir(APP_NAME)) / CONFIG_FILENAME)
        return cls(
            config_file=Path(config_file),
            flaresolverr_url=env.get("FLARESOLVERR_URL") or None,
            webhook_url=env.get("WEBHOOK_URL") or None,
            webhook_enabled=env.get("WEBHOOK_ENABLED", "").strip().lower() in _TRUTHY,
            ug_timeout=_seconds(env, "UG_TIMEOUT", 30.0),
            webhook_timeout=_seconds(env, "WEBHOOK_TIMEOUT", 10.0),
        )

    def seed_webhook(self) -> WebhookConfig | None:
        """The environment-provided destination, if any."""
        if not self.webhook_url:
            return None
        return WebhookConfig(url=self.webhook_url, enabled=self.webhook_enabled)


def _seconds(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number of seconds, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def validate_webhook_config(config: WebhookConfig) -> None:
    """Raise ConfigurationError unless *config* holds a usable http(s) URL."""
    if not config.url:
        raise ConfigurationError("webhook URL is required")
    if len(config.url) < 10 or not config.url.startswith(("http://", "https://")):
        raise ConfigurationError("invalid webhook URL format")


class WebhookConfigStore:
    """Thread-safe holder for the webhook destination, persisted as JSON.

    Readers always see either the previous or the newly saved config: the
    in-memory value is swapped under a lock and the file is replaced
    atomically.
    """

    def __init__(self, path: str | Path | None, seed: WebhookConfig | None = None):
        self.path = Path(path) if path else None
        self._lock = threading.RLock()
        self._config = WebhookConfig()
        if self.path is not None:
            self._load()
        if not self._config.url and seed is not None:
            logger.info("Using webhook destination from environment: %s", seed.url)
            self._config = dataclasses.replace(seed)

    @property
    def persistent(self) -> bool:
        return self.path is not None

    def get(self) -> WebhookConfig:
        with self._lock:
            return dataclasses.replace(self._config)

    def save(self, config: WebhookConfig) -> WebhookConfig:
        validate_webhook_config(config)
        now = dt.datetime.now(dt.timezone.utc)
        with self._lock:
            updated = dataclasses.replace(
                config,
                created_at=self._config.created_at or now,
                updated_at=now,
            )
            if self.persistent:
                self._write(updated)
            self._config = updated
            return dataclasses.replace(updated)

    def is_configured(self) -> bool:
        with self._lock:
            return bool(self._config.url) and self._config.enabled

    def get_url(self) -> str:
        """The destination URL, or ``""`` when none is set or it is disabled."""
        with self._lock:
            return self._config.url if self._config.enabled else ""

    def clear(self) -> None:
        with self._lock:
            self._config = WebhookConfig()
            if self.path is not None:
                try:
                    self.path.unlink()
                except FileNotFoundError:
                    pass
                except OSError as exc:
                    raise ConfigurationError(f"removing config file {self.path}: {exc}") from exc

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable webhook config %s: %s", self.path, exc)
            return
        if not isinstance(data, dict):
            logger.warning("Ignoring webhook config %s: expected a JSON object", self.path)
            return
        self._config = WebhookConfig.from_dict(data)

    def _write(self, config: WebhookConfig) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".webhook-config.")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(config.to_dict(), fh, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            raise ConfigurationError(f"writing config file {self.path}: {exc}") from exc
