"""Stripe payment processor adapter (Charges API over plain HTTP).

Wire conventions:

* Form-encoded bodies with bracketed nesting (``source[number]``,
  ``metadata[ip_address]``).
* Amounts in the smallest currency unit, currency lower-case.
* HTTP Basic with the secret key as username and an empty password.
* ``order_id`` is sent unmodified as the ``Idempotency-Key`` header.
* The record id is the top-level ``id``. Errors are
  ``{"error": {"type", "code", "message"}}``.

Besides the five core operations this adapter supports ``void`` (a refund
without amount against an uncaptured charge) and ``unstore``.
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
    VoidOptions,
)
from ..base import (
    Amount,
    GatewayAdapter,
    GatewayRequest,
    basic_auth_header,
    coerce_options,
    normalize_payment_status,
    path_token,
    require_token,
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

BASE_URL = "https://api.stripe.com/v1"

STATE_ERROR_CODES = frozenset({
    "charge_already_captured",
    "charge_already_refunded",
    "charge_expired_for_capture",
    "charge_disputed",
})


# ==================== Request builders ====================

def _idempotency_headers(order_id: Optional[str]) -> Dict[str, str]:
    return {"Idempotency-Key": order_id} if order_id else {}


def card_params(card: Card) -> List[Tuple[str, Any]]:
    address = card.address
    return [
        ("source[object]", "card"),
        ("source[number]", card.number),
        ("source[exp_month]", card.expiry_month),
        ("source[exp_year]", card.expiry_year),
        ("source[cvc]", card.cvc),
        ("source[name]", card.name),
        ("source[address_line1]", address.line1 if address else None),
        ("source[address_line2]", address.line2 if address else None),
        ("source[address_city]", address.city if address else None),
        ("source[address_state]", address.state if address else None),
        ("source[address_zip]", address.postcode if address else None),
        ("source[address_country]", address.country if address else None),
    ]


def source_params(source: PaymentSource) -> List[Tuple[str, Any]]:
    if isinstance(source, Card):
        return card_params(source)
    if isinstance(source, str) and source.strip():
        key = "customer" if source.startswith("cus_") else "source"
        return [(key, source)]
    raise ValidationError("Payment source must be a Card or a non-empty token")


def build_auth_or_purchase(
    amount: Amount,
    source: PaymentSource,
    options: ChargeOptions,
    currency: str,
    capture: bool,
) -> GatewayRequest:
    params = [
        ("amount", to_minor_units(amount, currency)),
        ("currency", currency.lower()),
        ("capture", capture),
        ("description", options.description),
        ("receipt_email", options.email),
        ("metadata[ip_address]", options.ip_address),
    ]
    params.extend(source_params(source))
    return GatewayRequest("POST", "charges", tuple(params), _idempotency_headers(options.order_id))


def build_capture(token: str, amount: Amount, options: CaptureOptions, currency: str) -> GatewayRequest:
    return GatewayRequest(
        "POST",
        f"charges/{path_token(token)}/capture",
        (("amount", to_minor_units(amount, currency)),),
        _idempotency_headers(options.order_id),
    )


def build_refund(token: str, amount: Amount, options: RefundOptions, currency: str) -> GatewayRequest:
    # Stripe refunds carry no email; description and ip are kept as metadata.
    params = (
        ("charge", require_token(token)),
        ("amount", to_minor_units(amount, currency)),
        ("metadata[description]", options.description),
        ("metadata[ip_address]", options.ip_address),
    )
    return GatewayRequest("POST", "refunds", params, _idempotency_headers(options.order_id))


def build_void(token: str, options: VoidOptions) -> GatewayRequest:
    return GatewayRequest(
        "POST",
        "refunds",
        (("charge", require_token(token)),),
        _idempotency_headers(options.order_id),
    )


def build_store(card: Card, options: StoreOptions) -> GatewayRequest:
    if not isinstance(card, Card):
        raise ValidationError("store() requires a Card")
    params = [("email", options.email), ("description", options.description)]
    params.extend(card_params(card))
    return GatewayRequest("POST", "customers", tuple(params))


def build_unstore(token: str) -> GatewayRequest:
    return GatewayRequest("DELETE", f"customers/{path_token(token)}")


# ==================== Response normalizer ====================

_ACTION_STATUS = {
    "refund": TransactionStatus.REFUNDED,
    "void": TransactionStatus.VOIDED,
    "store": TransactionStatus.STORED,
    "unstore": TransactionStatus.UNSTORED,
}


def _success_status(action: str, captured: Optional[bool]) -> TransactionStatus:
    if action in _ACTION_STATUS:
        return _ACTION_STATUS[action]
    if captured is None:
        return TransactionStatus.AUTHORIZED if action == "authorize" else TransactionStatus.CAPTURED
    return TransactionStatus.CAPTURED if captured else TransactionStatus.AUTHORIZED


def _optional_text(value: Any) -> Optional[str]:
    return str(value) if value else None


def _error_fields(data: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    error = data.get("error")
    if isinstance(error, dict):
        message = error.get("code") or error.get("type") or error.get("message")
        detail = error.get("message")
        return _optional_text(message), _optional_text(detail)
    return _optional_text(error), None


def normalize_response(action: str, status_code: int, body: Any) -> Result:
    """Map any Stripe HTTP exchange onto a ``Result``."""
    kind = classify_status(status_code)
    data = parse_json_body(body)

    if kind is None:
        if data is None:
            return unparseable_body(status_code, body)
        token = data.get("id")
        if not isinstance(token, str) or not token:
            return missing_token(status_code, data, "id")

        remote_status = data.get("status")
        if isinstance(remote_status, str) and normalize_payment_status(remote_status) in ("failed", "cancelled"):
            logger.warning("Stripe %s returned HTTP %s with status %s", action, status_code, remote_status)
            return Failure(
                kind=ErrorKind.CLIENT_ERROR,
                message=f"{data.get('object', action)}_{remote_status.lower()}",
                status_code=status_code,
                detail=_optional_text(data.get("failure_message") or data.get("failure_reason")),
                raw=data,
            )

        captured = data.get("captured")
        if not isinstance(captured, bool):
            captured = None
        amount = data.get("amount")
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
    if kind is ErrorKind.CLIENT_ERROR and (
        message in STATE_ERROR_CODES or infer_state_error(message, detail)
    ):
        kind = ErrorKind.INVALID_STATE_TRANSITION
    return Failure(
        kind=kind,
        message=message or f"HTTP {status_code}",
        status_code=status_code,
        detail=detail,
        raw=data,
    )


# ==================== Adapter ====================

class StripeAdapter(GatewayAdapter):
    """Stripe implementation of the gateway operations."""

    name = "stripe"
    base_url = BASE_URL

    def auth_headers(self) -> Dict[str, str]:
        api_key = self._credentials.api_key.get_secret_value()
        return {"Authorization": basic_auth_header(api_key, "")}

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

    def void(self, token, options=None) -> Result:
        options = coerce_options(options, VoidOptions)
        return self.commit("void", build_void(token, options))

    def unstore(self, token) -> Result:
        return self.commit("unstore", build_unstore(token))


__all__ = [
    "StripeAdapter",
    "build_auth_or_purchase",
    "build_capture",
    "build_refund",
    "build_void",
    "build_store",
    "build_unstore",
    "normalize_response",
]
