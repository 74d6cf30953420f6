import itertools
import json

import httpx
import pytest

from tab2onsong.backoff import BackoffPolicy
from tab2onsong.exceptions import ConfigurationError, DeliveryError, UpstreamError
from tab2onsong.models import WebhookPayload
from tab2onsong.webhook import TEST_SOURCE, USER_AGENT, WebhookClient, generate_delivery_id

URL = "https://example.com/hook"


def _payload(**overrides) -> WebhookPayload:
    fields = dict(title="The Weight", artist="The Band", key="A",
                  onsong_format="The Weight\nThe Band\n")
    fields.update(overrides)
    return WebhookPayload(**fields)


def _client(handler, sleeps=None, **kwargs) -> WebhookClient:
    http = httpx.Client(transport=httpx.MockTransport(handler))
    sleep = sleeps.append if sleeps is not None else (lambda seconds: None)
    return WebhookClient(client=http, sleep=sleep, **kwargs)


def _scripted(*responses, seen=None):
    """Handler that replays *responses* (status codes or exceptions), then 200s."""
    script = list(responses)

    def handler(request):
        if seen is not None:
            seen.append(request)
        step = script.pop(0) if script else 200
        if isinstance(step, type) and issubclass(step, Exception):
            raise step("scripted failure", request=request)
        return httpx.Response(step, text="" if step < 400 else "server says no")
    return handler


# ---------------------------------------------------------------------------
# send_with_retry: success paths
# ---------------------------------------------------------------------------


def test_first_attempt_succeeds():
    result = _client(_scripted(200)).send_with_retry(URL, _payload())
    assert result.success
    assert result.attempts == 1
    assert result.error is None
    assert result.delivery_id.startswith("delivery_")


def test_recovers_after_two_failures():
    sleeps = []
    result = _client(_scripted(500, 503, 200), sleeps=sleeps).send_with_retry(URL, _payload())
    assert result.success
    assert result.attempts == 3
    assert len(sleeps) == 2


def test_transport_errors_are_retried():
    result = _client(_scripted(httpx.ConnectError, 200)).send_with_retry(URL, _payload())
    assert result.success
    assert result.attempts == 2


def test_delivery_headers():
    seen = []
    _client(_scripted(500, 500, 200, seen=seen)).send_with_retry(URL, _payload())
    assert [r.headers["X-Attempt"] for r in seen] == ["1", "2", "3"]
    assert len({r.headers["X-Delivery-ID"] for r in seen}) == 1
    assert all(r.headers["Content-Type"] == "application/json" for r in seen)
    assert all(r.headers["User-Agent"] == USER_AGENT for r in seen)


def test_body_is_payload_json():
    seen = []
    _client(_scripted(200, seen=seen)).send_with_retry(URL, _payload(capo=2))
    body = json.loads(seen[0].content)
    assert body["title"] == "The Weight"
    assert body["capo"] == 2
    assert body["source"] == "Ultimate Guitar Scraper"


def test_body_omits_zero_capo():
    seen = []
    _client(_scripted(200, seen=seen)).send_with_retry(URL, _payload())
    assert "capo" not in json.loads(seen[0].content)


def test_backoff_waits_grow():
    sleeps = []
    client = _client(_scripted(500, 500, 500, 200), sleeps=sleeps, rand=lambda: 0.5)
    client.send_with_retry(URL, _payload())
    assert sleeps == [1.0, 1.5, 2.25]


# ---------------------------------------------------------------------------
# send_with_retry: giving up
# ---------------------------------------------------------------------------


def test_persistent_failure_exhausts_retries():
    seen = []
    with pytest.raises(DeliveryError) as exc_info:
        _client(_scripted(*[500] * 20, seen=seen)).send_with_retry(URL, _payload())
    result = exc_info.value.result
    assert not result.success
    assert 1 <= result.attempts <= 7
    assert result.attempts == len(seen)
    assert "500" in result.error
    assert result.error.startswith(f"attempt {result.attempts} failed")


def test_max_retries_bounds_attempts():
    policy = BackoffPolicy(max_retries=2)
    with pytest.raises(DeliveryError) as exc_info:
        _client(_scripted(*[500] * 10), policy=policy).send_with_retry(URL, _payload())
    assert exc_info.value.result.attempts == 3


def test_elapsed_budget_stops_retrying():
    ticks = itertools.count(0, 25)
    sleeps = []
    client = _client(_scripted(*[500] * 10), sleeps=sleeps, rand=lambda: 0.5,
                     clock=lambda: next(ticks))
    with pytest.raises(DeliveryError) as exc_info:
        client.send_with_retry(URL, _payload())
    assert exc_info.value.result.attempts == 3
    assert sleeps == [1.0, 1.5]


def test_unbuildable_request_is_not_retried():
    seen = []

    def handler(request):
        seen.append(request)
        raise httpx.UnsupportedProtocol("scheme not supported", request=request)

    sleeps = []
    with pytest.raises(DeliveryError) as exc_info:
        _client(handler, sleeps=sleeps).send_with_retry(URL, _payload())
    assert exc_info.value.result.attempts == 1
    assert sleeps == []


def test_delivery_error_message():
    with pytest.raises(DeliveryError, match="webhook delivery failed"):
        _client(_scripted(*[404] * 10)).send_with_retry(URL, _payload())


def test_empty_url_rejected():
    with pytest.raises(ConfigurationError):
        _client(_scripted()).send_with_retry("", _payload())


# ---------------------------------------------------------------------------
# send / test_webhook
# ---------------------------------------------------------------------------


def test_send_is_single_attempt():
    seen = []
    with pytest.raises(UpstreamError) as exc_info:
        _client(_scripted(500, seen=seen)).send(URL, _payload())
    assert exc_info.value.status_code == 500
    assert len(seen) == 1


def test_send_empty_url_rejected():
    with pytest.raises(ConfigurationError):
        _client(_scripted()).send("", _payload())


def test_test_webhook_payload():
    seen = []
    _client(_scripted(200, seen=seen)).test_webhook(URL)
    body = json.loads(seen[0].content)
    assert body["title"] == "Test Song"
    assert body["artist"] == "Test Artist"
    assert body["key"] == "C"
    assert body["source"] == TEST_SOURCE
    assert "X-Attempt" not in seen[0].headers


def test_generate_delivery_id_prefix():
    assert generate_delivery_id().startswith("delivery_")


def test_context_manager_closes_owned_client():
    with WebhookClient() as client:
        pass
    assert client.client.is_closed
