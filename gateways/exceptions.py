"""Exceptions raised by gateway adapters.

Only failures discovered before a request leaves the process are raised.
Anything the remote side or the network reports is returned as a
``Failure`` result instead.
"""


class PaymentError(Exception):
    """Base exception for payment-related errors."""
    pass


class ConfigError(PaymentError):
    """Raised when credentials or adapter configuration are missing or invalid."""
    pass


class ValidationError(PaymentError):
    """Raised when operation input cannot be turned into a request."""
    pass


class TransportError(PaymentError):
    """Raised by a transport when no HTTP response was obtained."""
    pass
