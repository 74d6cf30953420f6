import json

import httpx
import pytest

from tab2onsong.auth import AuthSigner
from tab2onsong.catalog import CatalogClient
from tab2onsong.exceptions import ConfigurationError, TransportError, UpstreamError

DEVICE_ID = "0123456789abcdef"

TAB_INFO = {
    "id": 61592,
    "song_name": "The Weight",
    "artist_name": "The Band",
    "type": "Chords",
    "rating": 4.81,
    "votes": 1200,
    "tonality_name": "A",
    "content": "[ch]A[/ch] Pulled into Nazareth",
    "contributor": {"user_id": 42, "username": "robbie"},
}


def _client(handler) -> CatalogClient:
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return CatalogClient(signer=AuthSigner(DEVICE_ID), client=http)


def _json_handler(body, status=200, seen=None):
    def handler(request):
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, json=body)
    return handler


# ---------------------------------------------------------------------------
# Success
# ---------------------------------------------------------------------------


def test_fetch_by_id_returns_tab():
    tab = _client(_json_handler(TAB_INFO)).fetch_by_id("61592")
    assert tab.tab_id == 61592
    assert tab.song_name == "The Weight"
    assert tab.contributor.username == "robbie"


def test_fetch_by_id_request_shape():
    seen = []
    _client(_json_handler(TAB_INFO, seen=seen)).fetch_by_id(61592)
    request = seen[0]
    assert request.method == "GET"
    assert request.url.host == "api.ultimate-guitar.com"
    assert request.url.path == "/api/v1/tab/info"
    assert request.url.params["tab_id"] == "61592"
    assert request.url.params["tab_access_type"] == "private"


def test_fetch_by_id_is_signed():
    seen = []
    _client(_json_handler(TAB_INFO, seen=seen)).fetch_by_id("61592")
    headers = seen[0].headers
    assert headers["X-UG-CLIENT-ID"] == DEVICE_ID
    assert len(headers["X-UG-API-KEY"]) == 32
    assert "Accept-Encoding" not in headers


def test_device_id_property():
    assert _client(_json_handler(TAB_INFO)).device_id == DEVICE_ID


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


def test_empty_tab_id_rejected_without_request():
    seen = []
    with pytest.raises(ConfigurationError, match="tab ID is required"):
        _client(_json_handler(TAB_INFO, seen=seen)).fetch_by_id("  ")
    assert seen == []


def test_non_success_status_raises_upstream_error():
    def handler(request):
        return httpx.Response(404, text="tab not found")

    with pytest.raises(UpstreamError) as exc_info:
        _client(handler).fetch_by_id("1")
    assert exc_info.value.status_code == 404
    assert exc_info.value.body == "tab not found"
    assert "tab not found" in str(exc_info.value)


def test_long_error_body_is_truncated_in_message():
    def handler(request):
        return httpx.Response(500, text="x" * 1000)

    with pytest.raises(UpstreamError) as exc_info:
        _client(handler).fetch_by_id("1")
    assert "x" * 201 not in str(exc_info.value)
    assert len(exc_info.value.body) == 1000


def test_invalid_json_raises_upstream_error():
    def handler(request):
        return httpx.Response(200, text="<html>challenge</html>")

    with pytest.raises(UpstreamError, match="decoding response"):
        _client(handler).fetch_by_id("1")


def test_non_object_json_raises_upstream_error():
    with pytest.raises(UpstreamError, match="expected a JSON object"):
        _client(_json_handler([1, 2, 3])).fetch_by_id("1")


def test_transport_failure_raises_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError, match="connection refused"):
        _client(handler).fetch_by_id("1")


def test_json_body_parsed_from_text():
    def handler(request):
        return httpx.Response(200, text=json.dumps(TAB_INFO),
                              headers={"Content-Type": "application/json"})

    assert _client(handler).fetch_by_id("61592").artist_name == "The Band"


@pytest.mark.parametrize("overrides", [
    {"capo": "none"},
    {"contributor": ["bob"]},
    {"votes": {"count": 3}},
])
def test_wrongly_typed_fields_raise_upstream_error(overrides):
    with pytest.raises(UpstreamError, match="unexpected tab shape"):
        _client(_json_handler({**TAB_INFO, **overrides})).fetch_by_id("61592")


def test_overflowing_number_raises_upstream_error():
    def handler(request):
        return httpx.Response(200, text='{"id": 1, "capo": 1e309}',
                              headers={"Content-Type": "application/json"})

    with pytest.raises(UpstreamError, match="unexpected tab shape"):
        _client(handler).fetch_by_id("1")


# ---------------------------------------------------------------------------
# Resource handling
# ---------------------------------------------------------------------------


def test_context_manager_closes_owned_client():
    with CatalogClient(signer=AuthSigner(DEVICE_ID)) as catalog:
        assert not catalog.client.is_closed
    assert catalog.client.is_closed


def test_close_leaves_injected_client_open():
    http = httpx.Client(transport=httpx.MockTransport(_json_handler(TAB_INFO)))
    CatalogClient(signer=AuthSigner(DEVICE_ID), client=http).close()
    assert not http.is_closed
