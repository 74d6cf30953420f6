"""Webhook delivery with bounded exponential-backoff retry.

Every attempt of one delivery carries the same ``X-Delivery-ID`` and an
increasing ``X-Attempt`` so the receiver can de-duplicate; delivery is
at-least-once.

What is retried:

* non-2xx responses
* transport failures (timeouts, refused connections, ...)

What is not: a request that cannot even be built (malformed URL, unsupported
scheme).  Retrying stops after ``policy.max_retries`` retries or when the
next wait would overrun ``policy.max_elapsed``, whichever comes first.
"""

import json
import logging
import random
import time

import httpx

from .backoff import BackoffPolicy, compute_delay
from .exceptions import ConfigurationError, DeliveryError, TransportError, UpstreamError
from .models import DeliveryResult, WebhookPayload

logger = logging.getLogger(__name__)

USER_AGENT = "UG-Scraper-Webhook/1.0"

DEFAULT_TIMEOUT = 10

TEST_SOURCE = "UG-Scraper Test"


class WebhookClient:
    """POST chord sheets to a single downstream webhook."""

    def __init__(
        self,
        client: httpx.Client | None = None,
        policy: BackoffPolicy | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        sleep=time.sleep,
        clock=time.monotonic,
        rand=random.random,
    ):
        self.timeout = timeout
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=timeout)
        self.policy = policy or BackoffPolicy()
        self._sleep = sleep
        self._clock = clock
        self._rand = rand

    def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def send_with_retry(self, url: str, payload: WebhookPayload) -> DeliveryResult:
        """Deliver *payload* to *url*, retrying transient failures.

        Returns the DeliveryResult on success.

        Raises:
            ConfigurationError: *url* is empty.
            DeliveryError: retries were exhausted or the failure was
                permanent; ``exc.result`` holds the DeliveryResult.
        """
        if not url:
            raise ConfigurationError("webhook URL is empty")

        start = self._clock()
        delivery_id = generate_delivery_id()
        body = json.dumps(payload.to_dict())

        attempts = 0
        last_error: str | None = None
        succeeded = False

        while True:
            attempts += 1
            headers = {"X-Delivery-ID": delivery_id, "X-Attempt": str(attempts)}
            try:
                self._post(url, body, headers)
            except ConfigurationError as exc:
                last_error = f"attempt {attempts}: {exc}"
                logger.error("Webhook %s failed permanently: %s", delivery_id, exc)
                break
            except (UpstreamError, TransportError) as exc:
                last_error = f"attempt {attempts} failed: {exc}"
                logger.warning("Webhook %s %s", delivery_id, last_error)
            else:
                succeeded = True
                break

            if attempts > self.policy.max_retries:
                logger.warning("Webhook %s: giving up after %d attempts", delivery_id, attempts)
                break
            delay = compute_delay(attempts, self.policy, self._rand)
            elapsed = self._clock() - start
            if elapsed + delay > self.policy.max_elapsed:
                logger.warning(
                    "Webhook %s: next retry would exceed %.0fs budget, giving up",
                    delivery_id,
                    self.policy.max_elapsed,
                )
                break
            logger.info("Webhook %s: retrying in %.2fs", delivery_id, delay)
            self._sleep(delay)

        result = DeliveryResult(
            success=succeeded,
            delivery_id=delivery_id,
            attempts=attempts,
            duration=self._clock() - start,
            error=None if succeeded else last_error,
        )
        if not succeeded:
            raise DeliveryError(result, f"webhook delivery failed: {last_error}")

        logger.info("Webhook %s delivered (attempts=%d)", delivery_id, attempts)
        return result

    def send(self, url: str, payload: WebhookPayload) -> None:
        """Make a single delivery attempt, no retry.

        Raises ConfigurationError, TransportError or UpstreamError.
        """
        if not url:
            raise ConfigurationError("webhook URL is empty")
        self._post(url, json.dumps(payload.to_dict()), {})

    def test_webhook(self, url: str) -> None:
        """Send a fixed diagnostic payload to *url* once."""
        payload = WebhookPayload(
            title="Test Song",
            artist="Test Artist",
            key="C",
            onsong_format="Test Song\nTest Artist\nKey: C\n\nThis is a test webhook payload.",
            source=TEST_SOURCE,
        )
        self.send(url, payload)

    def _post(self, url: str, body: str, extra_headers: dict[str, str]) -> None:
        headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
        headers.update(extra_headers)
        try:
            request = self.client.build_request(
                "POST", url, content=body, headers=headers, timeout=self.timeout
            )
            resp = self.client.send(request)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
            raise ConfigurationError(f"creating request for {url}: {exc}") from exc
        except httpx.RequestError as exc:
            raise TransportError(url, str(exc) or type(exc).__name__) from exc

        if not resp.is_success:
            raise UpstreamError(url, resp.status_code, resp.text)


def generate_delivery_id() -> str:
    return f"delivery_{time.time_ns()}"

