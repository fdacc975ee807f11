"""Uniform client layer over multiple payment gateway backends."""

from .adapters import GatewayAdapter
from .adapters.stripe import StripeAdapter
from .adapters.trexle import TrexleAdapter
from .exceptions import ConfigError, PaymentError, TransportError, ValidationError
from .models import (
    Address,
    CaptureOptions,
    Card,
    ChargeOptions,
    Credentials,
    ErrorKind,
    Failure,
    RefundOptions,
    Result,
    StoreOptions,
    Success,
    TransactionStatus,
    VoidOptions,
)
from .registry import get_gateway, register_adapter
from .transport import HttpxTransport, Transport, TransportResponse

__all__ = [
    "GatewayAdapter",
    "TrexleAdapter",
    "StripeAdapter",
    "PaymentError",
    "ConfigError",
    "ValidationError",
    "TransportError",
    "Address",
    "Card",
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
    "get_gateway",
    "register_adapter",
    "HttpxTransport",
    "Transport",
    "TransportResponse",
]
