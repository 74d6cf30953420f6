import json
import logging
import re
import sys
from pathlib import Path

import click

from .auth import AuthSigner
from .catalog import CatalogClient
from .chords import chord_stats, extract_chords
from .config import Settings, WebhookConfigStore
from .exceptions import (
    ConfigurationError,
    DeliveryError,
    NoResultsError,
    TransportError,
    UpstreamError,
    ValidationError,
)
from .models import SearchQuery, WebhookConfig, WebhookPayload
from .onsong import OnSongConverter
from .proxy import BypassProxy
from .search import SearchEngine
from .webhook import WebhookClient

logger = logging.getLogger(__name__)


def _slugify(text: str) -> str:
    """Convert a string to a lowercase hyphenated slug suitable for filenames."""
    text = text.lower()
    text = re.sub(r"[^\w\s-]", "", text)   # drop punctuation
    text = re.sub(r"[\s_]+", "-", text)     # spaces/underscores → hyphens
    text = re.sub(r"-{2,}", "-", text)      # collapse multiple hyphens
    return text.strip("-")


def _default_filename(artist: str, title: str) -> str:
    return f"{_slugify(artist)}-{_slugify(title)}.onsong"


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _echo_stats(chords: list[str]) -> None:
    stats = chord_stats(chords)
    click.echo(f"Chords: {stats['total']} total, {stats['unique']} unique", err=True)
    for chord, count in stats["frequencies"]:
        click.echo(f"  {chord:<8} {count}", err=True)


# ---------------------------------------------------------------------------
# Component factories (patched in tests)
# ---------------------------------------------------------------------------


def make_search_engine(settings: Settings, signer: AuthSigner) -> SearchEngine:
    proxy = BypassProxy(settings.flaresolverr_url) if settings.flaresolverr_url else None
    return SearchEngine(signer=signer, proxy=proxy, timeout=settings.ug_timeout)


def make_catalog_client(settings: Settings, signer: AuthSigner) -> CatalogClient:
    return CatalogClient(signer=signer, timeout=settings.ug_timeout)


def make_webhook_client(settings: Settings) -> WebhookClient:
    return WebhookClient(timeout=settings.webhook_timeout)


def make_config_store(settings: Settings) -> WebhookConfigStore:
    return WebhookConfigStore(settings.config_file, seed=settings.seed_webhook())


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@click.group()
@click.option("-v", "--verbose", count=True, help="-v for progress, -vv for request detail.")
@click.pass_context
def main(ctx: click.Context, verbose: int) -> None:
    """Fetch Ultimate Guitar chord sheets as OnSong and push them to a webhook."""
    _setup_logging(verbose)
    try:
        settings = Settings.from_env()
    except ConfigurationError as exc:
        _fail(str(exc))
    ctx.obj = {"settings": settings, "signer": AuthSigner()}


@main.command()
@click.argument("query")
@click.option("--type", "tab_type", default=None, help="Only this type, e.g. chords or tabs.")
@click.option("--difficulty", default=None, help="Only this difficulty, e.g. beginner.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print results as JSON.")
@click.pass_obj
def search(obj: dict, query: str, tab_type: str | None, difficulty: str | None, as_json: bool) -> None:
    """Search for tabs; prints the best candidate per artist."""
    with make_search_engine(obj["settings"], obj["signer"]) as engine:
        try:
            results = engine.search(SearchQuery(text=query, type=tab_type, difficulty=difficulty))
        except (ConfigurationError, NoResultsError) as exc:
            _fail(str(exc))

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in results], indent=2))
        return
    for r in results:
        click.echo(f"{r.id:>10}  {r.artist} - {r.title} [{r.type or '?'}] "
                   f"({r.rating:.1f}, {r.votes} votes)")


@main.command()
@click.argument("tab_id")
@click.option("-o", "--output", "output_path", default=None, metavar="PATH",
              help="Output file path (default: <artist>-<title>.onsong)")
@click.option("--stdout", is_flag=True, default=False,
              help="Print to stdout instead of writing a file.")
@click.option("--plain", is_flag=True, default=False,
              help="Plain text instead of OnSong.")
@click.option("--stats", is_flag=True, default=False,
              help="Print a chord usage summary to stderr.")
@click.option("--send", "send_webhook", is_flag=True, default=False,
              help="Also deliver the sheet to the configured webhook.")
@click.pass_obj
def tab(obj: dict, tab_id: str, output_path: str | None, stdout: bool, plain: bool,
        stats: bool, send_webhook: bool) -> None:
    """Fetch tab TAB_ID and convert it to an OnSong chord sheet."""
    settings = obj["settings"]
    converter = OnSongConverter()

    # --- Fetch ---
    with make_catalog_client(settings, obj["signer"]) as catalog:
        logger.debug("Catalog device id: %s", catalog.device_id)
        try:
            raw = catalog.fetch_by_id(tab_id)
        except UpstreamError as exc:
            _fail(f"Could not fetch tab {tab_id} (HTTP {exc.status_code})")
        except (TransportError, ConfigurationError) as exc:
            _fail(str(exc))

    # --- Convert ---
    try:
        result = converter.convert(raw)
    except ValidationError as exc:
        _fail(f"invalid tab data: {exc}")
    text = converter.convert_to_plain_text(raw) + "\n" if plain else result.onsong_format

    if stats:
        _echo_stats(extract_chords(raw.content))

    # --- Output ---
    if stdout:
        click.echo(text, nl=False)
    else:
        dest = Path(output_path) if output_path else Path(
            _default_filename(raw.artist_name, raw.song_name)
        )
        dest.write_text(text, encoding="utf-8")
        click.echo(f"Written to {dest}")

    if send_webhook:
        payload = WebhookPayload(
            title=raw.song_name,
            artist=raw.artist_name,
            key=result.key,
            capo=raw.capo,
            onsong_format=result.onsong_format,
        )
        _deliver(settings, None, payload)


@main.command("format")
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option("--title", required=True, help="Song title.")
@click.option("--artist", default="", help="Artist (default: Unknown Artist).")
@click.option("-o", "--output", "output_path", default=None, metavar="PATH",
              help="Write to PATH instead of stdout.")
def format_command(source, title: str, artist: str, output_path: str | None) -> None:
    """Format hand-entered chord text from SOURCE ('-' for stdin) as OnSong."""
    text = OnSongConverter().format_manual_content(title, artist, source.read())
    if output_path:
        Path(output_path).write_text(text + "\n", encoding="utf-8")
        click.echo(f"Written to {output_path}")
    else:
        click.echo(text)


@main.command()
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option("--title", required=True, help="Song title.")
@click.option("--artist", default="", help="Artist.")
@click.option("--key", default="", help="Key, e.g. G or Am.")
@click.option("--capo", default=0, show_default=True, help="Capo fret.")
@click.option("--url", default=None, help="Deliver here instead of the configured webhook.")
@click.pass_obj
def send(obj: dict, source, title: str, artist: str, key: str, capo: int, url: str | None) -> None:
    """Deliver the chord sheet in SOURCE ('-' for stdin) to the webhook."""
    content = source.read()
    if not content.strip():
        _fail("title and content are required")
    payload = WebhookPayload(title=title, artist=artist, key=key, capo=capo, onsong_format=content)
    _deliver(obj["settings"], url, payload)


def _deliver(settings: Settings, url: str | None, payload: WebhookPayload) -> None:
    if not url:
        url = make_config_store(settings).get_url()
    if not url:
        _fail("webhook not configured or not enabled (see 'tab2onsong webhook set')")

    with make_webhook_client(settings) as client:
        try:
            result = client.send_with_retry(url, payload)
        except ConfigurationError as exc:
            _fail(str(exc))
        except DeliveryError as exc:
            click.echo(json.dumps(exc.result.to_dict(), indent=2))
            _fail(f"{exc} (attempts={exc.result.attempts})")
    click.echo(json.dumps(result.to_dict(), indent=2))


# ---------------------------------------------------------------------------
# Webhook configuration
# ---------------------------------------------------------------------------


@main.group()
def webhook() -> None:
    """Show, change or test the webhook destination."""


@webhook.command("show")
@click.pass_obj
def webhook_show(obj: dict) -> None:
    store = make_config_store(obj["settings"])
    config = store.get()
    if not config.url:
        click.echo(json.dumps({"configured": False}))
        return
    shown = {"configured": True, "active": store.is_configured(), **config.to_dict()}
    click.echo(json.dumps(shown, indent=2))


@webhook.command("set")
@click.argument("url")
@click.option("--disabled", is_flag=True, default=False, help="Save but do not deliver.")
@click.pass_obj
def webhook_set(obj: dict, url: str, disabled: bool) -> None:
    store = make_config_store(obj["settings"])
    try:
        store.save(WebhookConfig(url=url, enabled=not disabled))
    except ConfigurationError as exc:
        _fail(f"invalid webhook configuration: {exc}")
    click.echo("Webhook configuration saved")


@webhook.command("clear")
@click.pass_obj
def webhook_clear(obj: dict) -> None:
    try:
        make_config_store(obj["settings"]).clear()
    except ConfigurationError as exc:
        _fail(str(exc))
    click.echo("Webhook configuration cleared")


@webhook.command("test")
@click.pass_obj
def webhook_test(obj: dict) -> None:
    """Send one diagnostic payload, no retry."""
    settings = obj["settings"]
    url = make_config_store(settings).get_url()
    if not url:
        _fail("webhook not configured")
    with make_webhook_client(settings) as client:
        try:
            client.test_webhook(url)
        except (ConfigurationError, TransportError, UpstreamError) as exc:
            _fail(f"test webhook failed: {exc}")
    click.echo("Test webhook sent successfully")
