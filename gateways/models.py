from enum import Enum
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class Address(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    postcode: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


class Card(BaseModel):
    """Raw card details as supplied by the caller.

    ``number`` and ``cvc`` are hidden from ``repr()`` so a card that ends up in
    a log line or traceback does not expose them.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: Optional[str] = None
    number: str = Field(repr=False)
    expiry_month: int
    expiry_year: int
    cvc: Optional[str] = Field(default=None, repr=False)
    address: Optional[Address] = None


# A token names a charge or customer record previously returned by a backend.
PaymentSource = Union[Card, str]


class _Options(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class ChargeOptions(_Options):
    """Options for ``authorize`` and ``purchase``.

    ``currency`` overrides the credential default. ``order_id`` is handed to
    the backend unmodified for deduplication of retried requests.
    """

    email: Optional[str] = None
    ip_address: Optional[str] = None
    description: Optional[str] = None
    currency: Optional[str] = None
    order_id: Optional[str] = None


class CaptureOptions(_Options):
    # Currency of the original charge, used only to scale the amount.
    currency: Optional[str] = None
    order_id: Optional[str] = None


class RefundOptions(_Options):
    email: Optional[str] = None
    ip_address: Optional[str] = None
    description: Optional[str] = None
    currency: Optional[str] = None
    order_id: Optional[str] = None


class StoreOptions(_Options):
    email: Optional[str] = None
    description: Optional[str] = None


class VoidOptions(_Options):
    order_id: Optional[str] = None


class Credentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_key: SecretStr
    default_currency: str = "USD"


class ErrorKind(str, Enum):
    CLIENT_ERROR = "client_error"
    INVALID_STATE_TRANSITION = "invalid_state_transition"
    TRANSIENT_ERROR = "transient_error"
    PROTOCOL_ERROR = "protocol_error"

    @property
    def is_retryable(self) -> bool:
        return self is ErrorKind.TRANSIENT_ERROR


class TransactionStatus(str, Enum):
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    REFUNDED = "refunded"
    STORED = "stored"
    VOIDED = "voided"
    UNSTORED = "unstored"


class Success(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: Literal[True] = True
    token: str
    status: TransactionStatus
    captured: Optional[bool] = None
    amount: Optional[int] = None
    raw: Dict[str, Any] = Field(default_factory=dict, repr=False)


class Failure(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: Literal[False] = False
    kind: ErrorKind
    message: str
    status_code: Optional[int] = None
    detail: Optional[str] = None
    raw: Optional[Union[Dict[str, Any], str]] = Field(default=None, repr=False)


Result = Union[Success, Failure]


__all__ = [
    "Address",
    "Card",
    "PaymentSource",
    "ChargeOptions",
    "CaptureOptions",
    "RefundOptions",
    "StoreOptions",
    "VoidOptions",
    "Credentials",
    "ErrorKind",
    "TransactionStatus",
    "Success",
    "Failure",
    "Result",
]
