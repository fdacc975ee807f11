"""
Pytest configuration and fixtures for gateway adapter tests.
"""

import json
import os
import sys
from dataclasses import dataclass
from typing import Dict, List, Optional
from urllib.parse import parse_qsl
from uuid import uuid4

import pytest

# Make the package importable without installation
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.append(ROOT_DIR)

from gateways.models import Address, Card, Credentials  # noqa: E402
from gateways.transport import TransportResponse  # noqa: E402


def json_response(status_code: int, payload) -> TransportResponse:
    return TransportResponse(
        status_code=status_code,
        headers={"Content-Type": "application/json"},
        body=json.dumps(payload).encode("utf-8"),
    )


def form_params(body: Optional[bytes]) -> Dict[str, str]:
    return dict(parse_qsl(body.decode("utf-8"))) if body else {}


@dataclass
class RecordedRequest:
    method: str
    url: str
    body: Optional[bytes]
    headers: Dict[str, str]

    @property
    def params(self) -> Dict[str, str]:
        return form_params(self.body)


class StubTransport:
    """Transport returning queued responses and recording every request.

    A queued exception is raised instead of returned.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: List[RecordedRequest] = []

    def queue(self, response) -> "StubTransport":
        self.responses.append(response)
        return self

    def send(self, method, url, body, headers):
        self.requests.append(RecordedRequest(method, url, body, dict(headers)))
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def last(self) -> RecordedRequest:
        return self.requests[-1]


class FakeTrexleBackend:
    """In-memory stand-in for the Trexle API with real charge bookkeeping."""

    DECLINED_NUMBER = "4000000000000002"

    def __init__(self):
        self.charges: Dict[str, dict] = {}
        self.customers: Dict[str, dict] = {}
        self.requests: List[RecordedRequest] = []

    def send(self, method, url, body, headers):
        self.requests.append(RecordedRequest(method, url, body, dict(headers)))
        path = url.split("/api/v1/", 1)[1]
        parts = path.split("/")
        params = form_params(body)

        if method == "POST" and parts == ["charges"]:
            return self._charge(params)
        if method == "PUT" and len(parts) == 3 and parts[0] == "charges" and parts[2] == "capture":
            return self._capture(parts[1], params)
        if method == "POST" and len(parts) == 3 and parts[0] == "charges" and parts[2] == "refunds":
            return self._refund(parts[1], params)
        if method == "POST" and parts == ["customers"]:
            return self._customer(params)
        return json_response(404, {"error": "not_found", "detail": "Unknown endpoint"})

    def _charge(self, params):
        customer = params.get("customer_token")
        if customer is not None and customer not in self.customers:
            return json_response(400, {"error": "invalid_customer", "detail": "No such customer"})
        if params.get("card[number]") == self.DECLINED_NUMBER:
            return json_response(402, {"error": "card_declined", "detail": "The card was declined"})

        token = f"charge_{uuid4().hex}"
        amount = int(params["amount"])
        captured = params["capture"] == "true"
        self.charges[token] = {
            "amount": amount,
            "captured": captured,
            "captured_amount": amount if captured else 0,
            "refunded": 0,
        }
        return json_response(201, {"response": {"token": token, "captured": captured, "amount": amount}})

    def _capture(self, token, params):
        charge = self.charges.get(token)
        if charge is None:
            return json_response(404, {"error": "not_found", "detail": "Charge not found"})
        if charge["captured"]:
            return json_response(400, {"error": "invalid_request", "detail": "Charge has already been captured"})
        amount = int(params["amount"])
        if amount > charge["amount"]:
            return json_response(400, {"error": "invalid_amount", "detail": "Capture amount exceeds authorized amount"})
        charge["captured"] = True
        charge["captured_amount"] = amount
        return json_response(200, {"response": {"token": token, "captured": True, "amount": amount}})

    def _refund(self, token, params):
        charge = self.charges.get(token)
        if charge is None:
            return json_response(404, {"error": "not_found", "detail": "Charge not found"})
        if not charge["captured"]:
            return json_response(400, {"error": "invalid_request", "detail": "Charge cannot be refunded before capture"})
        amount = int(params["amount"])
        if charge["refunded"] + amount > charge["captured_amount"]:
            return json_response(400, {"error": "invalid_amount", "detail": "Refund amount exceeds remaining charge amount"})
        charge["refunded"] += amount
        return json_response(200, {"response": {"token": f"refund_{uuid4().hex}", "amount": amount}})

    def _customer(self, params):
        token = f"token_{uuid4().hex}"
        self.customers[token] = {"email": params.get("email")}
        return json_response(201, {"response": {"token": token, "email": params.get("email")}})


@pytest.fixture
def credentials():
    return Credentials(api_key="sk_test_secret_123", default_currency="USD")


@pytest.fixture
def card():
    return Card(
        name="John Doe",
        number="5200828282828210",
        expiry_month=1,
        expiry_year=2030,
        cvc="123",
        address=Address(
            line1="456 My Street",
            city="Ottawa",
            postcode="K1C2N6",
            state="ON",
            country="CA",
        ),
    )


@pytest.fixture
def declined_card():
    return Card(
        name="John Doe",
        number=FakeTrexleBackend.DECLINED_NUMBER,
        expiry_month=1,
        expiry_year=2030,
        cvc="123",
    )


@pytest.fixture
def stub_transport():
    return StubTransport()


@pytest.fixture
def fake_trexle():
    return FakeTrexleBackend()


@pytest.fixture
def clean_gateway_env(monkeypatch):
    """Remove gateway credentials that may leak in from the environment."""
    for name in (
        "TREXLE_API_KEY",
        "TREXLE_DEFAULT_CURRENCY",
        "STRIPE_SECRET_KEY",
        "STRIPE_DEFAULT_CURRENCY",
        "HTTP_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)
