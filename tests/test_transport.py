"""
HttpxTransport tests using httpx's in-process mock transport.
"""

import json
from decimal import Decimal

import httpx
import pytest

from gateways.adapters.trexle import TrexleAdapter
from gateways.exceptions import TransportError
from gateways.models import ErrorKind
from gateways.transport import HttpxTransport, TransportResponse


def make_transport(handler) -> HttpxTransport:
    return HttpxTransport(client=httpx.Client(transport=httpx.MockTransport(handler)))


class TestHttpxTransport:

    def test_send_returns_status_headers_and_body(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["body"] = request.content
            seen["content_type"] = request.headers["Content-Type"]
            return httpx.Response(201, json={"response": {"token": "charge_abc"}})

        transport = make_transport(handler)
        response = transport.send(
            "POST",
            "https://core.trexle.com/api/v1/charges",
            b"amount=100",
            {"Content-Type": "application/x-www-form-urlencoded"},
        )

        assert isinstance(response, TransportResponse)
        assert response.status_code == 201
        assert json.loads(response.body) == {"response": {"token": "charge_abc"}}
        assert response.headers["content-type"] == "application/json"
        assert seen == {
            "method": "POST",
            "url": "https://core.trexle.com/api/v1/charges",
            "body": b"amount=100",
            "content_type": "application/x-www-form-urlencoded",
        }

    def test_error_statuses_are_returned_not_raised(self):
        transport = make_transport(lambda request: httpx.Response(503, text="down"))
        response = transport.send("GET", "https://example.test/", None, {})
        assert response.status_code == 503
        assert response.body == b"down"

    @pytest.mark.parametrize("error_class", [httpx.ConnectError, httpx.ReadTimeout, httpx.ConnectTimeout])
    def test_network_failures_raise_transport_error(self, error_class):
        def handler(request):
            raise error_class("boom", request=request)

        transport = make_transport(handler)
        with pytest.raises(TransportError) as exc_info:
            transport.send("POST", "https://example.test/charges", b"", {})
        assert error_class.__name__ in str(exc_info.value)

    def test_close_leaves_injected_client_open(self):
        client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
        with HttpxTransport(client=client):
            pass
        assert not client.is_closed
        client.close()

    def test_close_owned_client(self):
        transport = HttpxTransport(timeout=5.0)
        transport.close()
        assert transport._client.is_closed


class TestAdapterOverHttpx:
    """Adapter and real transport wired together."""

    def test_purchase_over_http(self, credentials, card):
        def handler(request):
            assert request.headers["Authorization"].startswith("Basic ")
            assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
            return httpx.Response(201, json={"response": {"token": "charge_xyz", "captured": True}})

        adapter = TrexleAdapter(credentials, transport=make_transport(handler))
        result = adapter.purchase(Decimal("12.34"), card)

        assert result.ok
        assert result.token == "charge_xyz"

    def test_timeout_becomes_transient_failure(self, credentials, card):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        adapter = TrexleAdapter(credentials, transport=make_transport(handler))
        result = adapter.purchase(Decimal("12.34"), card)

        assert not result.ok
        assert result.kind == ErrorKind.TRANSIENT_ERROR
        assert "sk_test_secret_123" not in result.message
