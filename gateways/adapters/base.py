"""Gateway adapter contract and the helpers shared by every backend."""

import base64
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal, DecimalException
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple, Type, TypeVar, Union
from urllib.parse import quote, urlencode

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ConfigError, TransportError, ValidationError
from ..models import (
    CaptureOptions,
    Card,
    ChargeOptions,
    Credentials,
    ErrorKind,
    Failure,
    PaymentSource,
    RefundOptions,
    Result,
    StoreOptions,
    VoidOptions,
)
from ..transport import HttpxTransport, Transport

logger = logging.getLogger(__name__)

Amount = Union[Decimal, int]
Params = Sequence[Tuple[str, Any]]
OptionsT = TypeVar("OptionsT", bound=BaseModel)

# ISO 4217 currencies whose smallest unit is not 1/100 of the major unit.
ZERO_DECIMAL_CURRENCIES = frozenset({
    "BIF", "CLP", "DJF", "GNF", "JPY", "KMF", "KRW", "MGA",
    "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF",
})
THREE_DECIMAL_CURRENCIES = frozenset({"BHD", "JOD", "KWD", "OMR", "TND"})

_PAYMENT_STATUS_MAP = {
    "succeeded": "completed",
    "success": "completed",
    "completed": "completed",
    "paid": "completed",
    "requires_payment_method": "pending",
    "requires_confirmation": "pending",
    "requires_action": "pending",
    "processing": "pending",
    "pending": "pending",
    "requires_capture": "authorized",
    "authorized": "authorized",
    "failed": "failed",
    "payment_failed": "failed",
    "declined": "failed",
    "canceled": "cancelled",
    "cancelled": "cancelled",
}

_SCRUB_PATTERNS = (
    (re.compile(r"((?:\[|%5B)(?:number|cvc)(?:\]|%5D)=)[^&\s]*", re.I), r"\1[FILTERED]"),
    (re.compile(r"(\b(?:number|cvc)\b\"?\s*[:=]\s*\"?)[^&\s\",}]*", re.I), r"\1[FILTERED]"),
    (re.compile(r"(Authorization\"?\s*[:=]\s*\"?Basic\s+)[A-Za-z0-9+/=]+", re.I), r"\1[FILTERED]"),
    (re.compile(r"\b\d{13,19}\b"), "[FILTERED]"),
)


# ==================== Utilities ====================

def validate_currency_code(currency: Any) -> bool:
    """Whether ``currency`` looks like an upper-case ISO 4217 code."""
    return (
        isinstance(currency, str)
        and len(currency) == 3
        and currency.isalpha()
        and currency.isupper()
    )


def normalize_payment_status(status: str) -> str:
    """Map provider status vocabulary onto a small common set.

    Unknown values are returned lower-cased but otherwise untouched.
    """
    key = status.lower()
    return _PAYMENT_STATUS_MAP.get(key, key)


def currency_exponent(currency: str) -> int:
    currency = currency.upper()
    if currency in ZERO_DECIMAL_CURRENCIES:
        return 0
    if currency in THREE_DECIMAL_CURRENCIES:
        return 3
    return 2


def validate_amount(amount: Any) -> Decimal:
    """Check that ``amount`` is a finite Decimal or int and return it as Decimal.

    Floats and bools are rejected. Sign is not checked here.
    """
    if isinstance(amount, bool) or not isinstance(amount, (int, Decimal)):
        raise ValidationError(
            f"Amount must be Decimal or int, got {type(amount).__name__}"
        )
    value = Decimal(amount)
    if not value.is_finite():
        raise ValidationError(f"Invalid amount: {amount}")
    return value


def to_minor_units(amount: Amount, currency: str) -> int:
    """Convert a major-unit amount into the currency's smallest unit.

    Sign is preserved; range checks belong to the backend. Amounts with more
    precision than the currency allows are rejected rather than rounded.
    """
    value = validate_amount(amount)
    try:
        minor = value.scaleb(currency_exponent(currency))
    except DecimalException as exc:
        raise ValidationError(f"Invalid amount: {amount}") from exc
    if minor != minor.to_integral_value():
        raise ValidationError(
            f"Amount {amount} has more precision than {currency.upper()} allows"
        )
    return int(minor)


def basic_auth_header(username: str, password: str = "") -> str:
    credentials = f"{username}:{password}".encode("utf-8")
    return "Basic " + base64.b64encode(credentials).decode("ascii")


def _render(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_params(params: Iterable[Tuple[str, Any]]) -> str:
    """Form-encode ``params`` in order, skipping unset optional values."""
    return urlencode(
        [(key, _render(value)) for key, value in params if value is not None]
    )


def scrub(transcript: str) -> str:
    """Mask card numbers, CVCs and basic-auth material in a transcript."""
    for pattern, replacement in _SCRUB_PATTERNS:
        transcript = pattern.sub(replacement, transcript)
    return transcript


def coerce_options(options: Any, options_cls: Type[OptionsT]) -> OptionsT:
    """Accept an options instance, a mapping, or ``None``."""
    if options is None:
        return options_cls()
    if isinstance(options, options_cls):
        return options
    if isinstance(options, Mapping):
        try:
            return options_cls.model_validate(dict(options))
        except PydanticValidationError as exc:
            fields = ", ".join(
                ".".join(str(part) for part in error["loc"]) or "<root>"
                for error in exc.errors()
            )
            raise ValidationError(
                f"Invalid {options_cls.__name__}: {fields}"
            ) from exc
    raise ValidationError(
        f"Expected {options_cls.__name__} or mapping, got {type(options).__name__}"
    )


def require_token(token: Any) -> str:
    if not isinstance(token, str) or not token.strip():
        raise ValidationError("A non-empty token is required")
    return token


def path_token(token: Any) -> str:
    """Quote a caller-supplied token for use as a URL path segment."""
    return quote(require_token(token), safe="")


@dataclass(frozen=True)
class GatewayRequest:
    """A fully built, backend-specific request; the output of a builder."""

    method: str
    path: str
    params: Params = ()
    headers: Dict[str, str] = field(default_factory=dict)


# ==================== Base Adapter ====================

class GatewayAdapter(ABC):
    """Abstract base class for payment backend adapters.

    Every operation is one ``build -> send -> normalize`` cycle. Instances
    hold only their credentials and transport, so a single adapter can serve
    concurrent callers and no call influences the next.

    Expected failures (declines, bad input rejected remotely, timeouts) are
    returned as ``Failure``. Only ``ConfigError`` and ``ValidationError`` are
    raised, and only before anything is sent.
    """

    name: str = "gateway"
    base_url: str = ""

    def __init__(
        self,
        credentials: Credentials,
        transport: Optional[Transport] = None,
    ) -> None:
        if not isinstance(credentials, Credentials):
            raise ConfigError(f"{self.name}: credentials are required")
        if not credentials.api_key.get_secret_value().strip():
            raise ConfigError(f"{self.name}: api_key is missing")
        if not validate_currency_code(credentials.default_currency):
            raise ConfigError(
                f"{self.name}: invalid default currency "
                f"{credentials.default_currency!r}"
            )
        self._credentials = credentials
        self._transport = transport if transport is not None else HttpxTransport()
        logger.debug("%s initialized with %s", self.__class__.__name__,
                     self._transport.__class__.__name__)

    @property
    def default_currency(self) -> str:
        return self._credentials.default_currency

    def resolve_currency(self, override: Optional[str] = None) -> str:
        currency = (override or self.default_currency).upper()
        if not validate_currency_code(currency):
            raise ValidationError(f"Invalid currency code: {override}")
        return currency

    # -------------------- five uniform operations --------------------

    @abstractmethod
    def authorize(
        self,
        amount: Amount,
        source: PaymentSource,
        options: Union[ChargeOptions, Mapping[str, Any], None] = None,
    ) -> Result:
        """Reserve funds on a card or stored customer without moving them.

        Args:
            amount: Amount in major units of the currency (``Decimal("10.00")``
                is ten dollars); scaled to the backend's unit internally
            source: A ``Card`` or a token returned by ``store``
            options: ``ChargeOptions`` or an equivalent mapping

        Returns:
            ``Success`` whose token can be captured at most once, or ``Failure``
        """

    @abstractmethod
    def purchase(
        self,
        amount: Amount,
        source: PaymentSource,
        options: Union[ChargeOptions, Mapping[str, Any], None] = None,
    ) -> Result:
        """Authorize and capture in a single remote step.

        Args:
            amount: Amount in major units of the currency
            source: A ``Card`` or a token returned by ``store``
            options: ``ChargeOptions`` or an equivalent mapping

        Returns:
            ``Success`` with a token that can be refunded, or ``Failure``
        """

    @abstractmethod
    def capture(
        self,
        token: str,
        amount: Amount,
        options: Union[CaptureOptions, Mapping[str, Any], None] = None,
    ) -> Result:
        """Transfer previously authorized funds.

        Args:
            token: Token of the authorization
            amount: Amount in major units; may be lower than the authorization,
                a higher amount is rejected by the backend, not here
            options: ``CaptureOptions`` or an equivalent mapping

        Returns:
            ``Success`` with status ``CAPTURED``, or ``Failure``
        """

    @abstractmethod
    def refund(
        self,
        amount: Amount,
        token: str,
        options: Union[RefundOptions, Mapping[str, Any], None] = None,
    ) -> Result:
        """Return all or part of a captured charge.

        Repeatable until the refunds add up to the captured amount.

        Args:
            amount: Amount to refund in major units
            token: Token of the captured charge
            options: ``RefundOptions`` or an equivalent mapping

        Returns:
            ``Success`` carrying the refund token, or ``Failure``
        """

    @abstractmethod
    def store(
        self,
        card: Card,
        options: Union[StoreOptions, Mapping[str, Any], None] = None,
    ) -> Result:
        """Save a card with the backend for later charges.

        Storing the same card twice yields two independent tokens.

        Args:
            card: Card to store
            options: ``StoreOptions`` or an equivalent mapping

        Returns:
            ``Success`` whose token is accepted as a ``source``, or ``Failure``
        """

    # -------------------- optional lifecycle operations --------------------

    def void(
        self,
        token: str,
        options: Union[VoidOptions, Mapping[str, Any], None] = None,
    ) -> Result:
        """Release an authorization without capturing it.

        Args:
            token: Token of the authorization
            options: ``VoidOptions`` or an equivalent mapping

        Returns:
            ``Success`` with status ``VOIDED``, or ``Failure``
        """
        raise NotImplementedError(f"{self.name} does not support void")

    def unstore(self, token: str) -> Result:
        """Delete a stored payment source.

        Args:
            token: Token returned by ``store``

        Returns:
            ``Success`` with status ``UNSTORED``, or ``Failure``
        """
        raise NotImplementedError(f"{self.name} does not support unstore")

    # -------------------- plumbing --------------------

    @abstractmethod
    def auth_headers(self) -> Dict[str, str]:
        """Authentication headers for every request."""

    @abstractmethod
    def normalize_response(self, action: str, status_code: int, body: bytes) -> Result:
        """Turn any status code and body into exactly one ``Result``."""

    def commit(self, action: str, request: GatewayRequest) -> Result:
        """Send one built request and normalize whatever comes back.

        Args:
            action: Operation name, passed through to ``normalize_response``
            request: Output of one of the backend's builders

        Returns:
            ``Failure(TRANSIENT_ERROR)`` if the transport fails, otherwise
            the normalized response
        """
        method, path = request.method, request.path
        url = f"{self.base_url.rstrip('/')}/{path}"
        body = encode_params(request.params)
        request_headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }
        request_headers.update(self.auth_headers())
        request_headers.update(request.headers)

        logger.info("%s %s: %s /%s", self.name, action, method, path)
        logger.debug("%s %s params: %s", self.name, action, scrub(body))

        try:
            response = self._transport.send(
                method, url, body.encode("utf-8") if body else None, request_headers
            )
        except TransportError as exc:
            logger.warning("%s %s transport failure: %s", self.name, action, exc)
            return Failure(kind=ErrorKind.TRANSIENT_ERROR, message=str(exc))

        result = self.normalize_response(action, response.status_code, response.body)
        if result.ok:
            logger.info("%s %s succeeded: %s (%s)", self.name, action,
                        result.token, result.status.value)
        else:
            logger.warning("%s %s failed: %s %s (HTTP %s)", self.name, action,
                           result.kind.value, result.message, result.status_code)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(currency={self.default_currency!r})"


__all__ = [
    "GatewayAdapter",
    "GatewayRequest",
    "Amount",
    "validate_currency_code",
    "normalize_payment_status",
    "currency_exponent",
    "validate_amount",
    "to_minor_units",
    "basic_auth_header",
    "encode_params",
    "scrub",
    "coerce_options",
    "require_token",
    "path_token",
]
