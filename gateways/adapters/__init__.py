"""Adapters for integrating external payment processors."""

from .base import GatewayAdapter, GatewayRequest
from ..exceptions import PaymentError, ConfigError, ValidationError, TransportError

__all__ = ["GatewayAdapter", "GatewayRequest", "PaymentError", "ConfigError", "ValidationError", "TransportError"]
