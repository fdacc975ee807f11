"""Trexle payment gateway adapter.

Wire conventions (https://docs.trexle.com/):

* Request bodies are form-encoded; card fields use ``card[...]`` keys.
* Amounts are sent in the smallest currency unit (cents for USD) and the
  currency as an upper-case ISO code.
* Authentication is HTTP Basic with the API key as username and the fixed
  password ``password``.
* Successful responses wrap the record in ``{"response": {...}}`` with the
  charge, refund or customer token under ``token``. Errors are
  ``{"error": "<code>", "detail": "<text>"}``.

| Action    | Request                          |
| --------- | -------------------------------- |
| authorize | ``POST charges`` capture=false   |
| purchase  | ``POST charges`` capture=true    |
| capture   | ``PUT charges/{token}/capture``  |
| refund    | ``POST charges/{token}/refunds`` |
| store     | ``POST customers``               |
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from ...exceptions import ValidationError
from ...models import (
    CaptureOptions,
    Card,
    ChargeOptions,
    ErrorKind,
    Failure,
    PaymentSource,
    RefundOptions,
    Result,
    StoreOptions,
    Success,
    TransactionStatus,
)
from ..base import (
    Amount,
    GatewayAdapter,
    GatewayRequest,
    basic_auth_header,
    coerce_options,
    path_token,
    to_minor_units,
)
from ..normalization import (
    classify_status,
    infer_state_error,
    missing_token,
    parse_json_body,
    raw_text,
    unexpected_status,
    unparseable_body,
)

logger = logging.getLogger(__name__)

BASE_URL = "https://core.trexle.com/api/v1"
PLACEHOLDER_PASSWORD = "password"


# ==================== Request builders ====================

def card_params(card: Card) -> List[Tuple[str, Any]]:
    address = card.address
    return [
        ("card[name]", card.name),
        ("card[number]", card.number),
        ("card[expiry_year]", card.expiry_year),
        ("card[expiry_month]", card.expiry_month),
        ("card[cvc]", card.cvc),
        ("card[address_line1]", address.line1 if address else None),
        ("card[address_city]", address.city if address else None),
        ("card[address_postcode]", address.postcode if address else None),
        ("card[address_state]", address.state if address else None),
        ("card[address_country]", address.country if address else None),
    ]


def source_params(source: PaymentSource) -> List[Tuple[str, Any]]:
    if isinstance(source, Card):
        return card_params(source)
    if isinstance(source, str) and source.strip():
        return [("customer_token", source)]
    raise ValidationError("Payment source must be a Card or a non-empty token")


def build_auth_or_purchase(
    amount: Amount,
    source: PaymentSource,
    options: ChargeOptions,
    currency: str,
    capture: bool,
) -> GatewayRequest:
    params = [
        ("capture", capture),
        ("amount", to_minor_units(amount, currency)),
        ("currency", currency),
        ("email", options.email),
        ("ip_address", options.ip_address),
        ("description", options.description),
        ("order_id", options.order_id),
    ]
    params.extend(source_params(source))
    return GatewayRequest("POST", "charges", tuple(params))


def build_capture(token: str, amount: Amount, options: CaptureOptions, currency: str) -> GatewayRequest:
    params = (
        ("amount", to_minor_units(amount, currency)),
        ("order_id", options.order_id),
    )
    return GatewayRequest("PUT", f"charges/{path_token(token)}/capture", params)


def build_refund(token: str, amount: Amount, options: RefundOptions, currency: str) -> GatewayRequest:
    params = (
        ("amount", to_minor_units(amount, currency)),
        ("email", options.email),
        ("ip_address", options.ip_address),
        ("description", options.description),
        ("order_id", options.order_id),
    )
    return GatewayRequest("POST", f"charges/{path_token(token)}/refunds", params)


def build_store(card: Card, options: StoreOptions) -> GatewayRequest:
    if not isinstance(card, Card):
        raise ValidationError("store() requires a Card")
    params = [("email", options.email), ("description", options.description)]
    params.extend(card_params(card))
    return GatewayRequest("POST", "customers", tuple(params))


# ==================== Response normalizer ====================

def _success_status(action: str, captured: Optional[bool]) -> TransactionStatus:
    if action == "refund":
        return TransactionStatus.REFUNDED
    if action == "store":
        return TransactionStatus.STORED
    if captured is None:
        return TransactionStatus.AUTHORIZED if action == "authorize" else TransactionStatus.CAPTURED
    return TransactionStatus.CAPTURED if captured else TransactionStatus.AUTHORIZED


def _error_fields(data: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    error = data.get("error")
    detail = data.get("detail")
    if isinstance(error, dict):
        detail = detail or error.get("detail") or error.get("message")
        error = error.get("code") or error.get("type")
    message = str(error) if error else None
    return message, (str(detail) if detail else None)


def normalize_response(action: str, status_code: int, body: Any) -> Result:
    """Map any Trexle HTTP exchange onto a ``Result``."""
    kind = classify_status(status_code)
    data = parse_json_body(body)

    if kind is None:
        if data is None:
            return unparseable_body(status_code, body)
        record = data.get("response")
        token = record.get("token") if isinstance(record, dict) else None
        if not isinstance(token, str) or not token:
            return missing_token(status_code, data, "response.token")
        captured = record.get("captured")
        if not isinstance(captured, bool):
            captured = None
        amount = record.get("amount")
        return Success(
            token=token,
            status=_success_status(action, captured),
            captured=captured,
            amount=amount if isinstance(amount, int) and not isinstance(amount, bool) else None,
            raw=data,
        )

    if kind is ErrorKind.PROTOCOL_ERROR:
        return unexpected_status(status_code, kind, data, body)

    if data is None:
        return Failure(
            kind=kind,
            message=f"HTTP {status_code}",
            status_code=status_code,
            raw=raw_text(body),
        )

    message, detail = _error_fields(data)
    if kind is ErrorKind.CLIENT_ERROR and infer_state_error(message, detail):
        logger.info("Trexle rejected %s as an invalid state transition: %s", action, message)
        kind = ErrorKind.INVALID_STATE_TRANSITION
    return Failure(
        kind=kind,
        message=message or f"HTTP {status_code}",
        status_code=status_code,
        detail=detail,
        raw=data,
    )


# ==================== Adapter ====================

class TrexleAdapter(GatewayAdapter):
    """Trexle implementation of the five gateway operations.

    Trexle has no void or unstore endpoint; those operations raise
    ``NotImplementedError``.
    """

    name = "trexle"
    base_url = BASE_URL

    def auth_headers(self) -> Dict[str, str]:
        api_key = self._credentials.api_key.get_secret_value()
        return {"Authorization": basic_auth_header(api_key, PLACEHOLDER_PASSWORD)}

    def normalize_response(self, action: str, status_code: int, body: bytes) -> Result:
        return normalize_response(action, status_code, body)

    def authorize(self, amount, source, options=None) -> Result:
        options = coerce_options(options, ChargeOptions)
        request = build_auth_or_purchase(
            amount, source, options, self.resolve_currency(options.currency), capture=False
        )
        return self.commit("authorize", request)

    def purchase(self, amount, source, options=None) -> Result:
        options = coerce_options(options, ChargeOptions)
        request = build_auth_or_purchase(
            amount, source, options, self.resolve_currency(options.currency), capture=True
        )
        return self.commit("purchase", request)

    def capture(self, token, amount, options=None) -> Result:
        options = coerce_options(options, CaptureOptions)
        request = build_capture(token, amount, options, self.resolve_currency(options.currency))
        return self.commit("capture", request)

    def refund(self, amount, token, options=None) -> Result:
        options = coerce_options(options, RefundOptions)
        request = build_refund(token, amount, options, self.resolve_currency(options.currency))
        return self.commit("refund", request)

    def store(self, card, options=None) -> Result:
        options = coerce_options(options, StoreOptions)
        return self.commit("store", build_store(card, options))


__all__ = [
    "TrexleAdapter",
    "build_auth_or_purchase",
    "build_capture",
    "build_refund",
    "build_store",
    "normalize_response",
]
