"""Lookup of adapter classes by gateway name."""

import logging
from typing import Dict, Optional, Type

from .adapters.base import GatewayAdapter
from .adapters.stripe import StripeAdapter
from .adapters.trexle import TrexleAdapter
from .config import Settings, get_settings
from .exceptions import ConfigError
from .transport import HttpxTransport, Transport

logger = logging.getLogger(__name__)

ADAPTERS: Dict[str, Type[GatewayAdapter]] = {
    "trexle": TrexleAdapter,
    "stripe": StripeAdapter,
}


def register_adapter(name: str, adapter_class: Type[GatewayAdapter]) -> None:
    if not (isinstance(adapter_class, type) and issubclass(adapter_class, GatewayAdapter)):
        raise TypeError(f"{adapter_class!r} is not a GatewayAdapter")
    ADAPTERS[name.lower()] = adapter_class


def available_gateways() -> list[str]:
    return sorted(ADAPTERS)


def get_gateway(
    name: str,
    settings: Optional[Settings] = None,
    transport: Optional[Transport] = None,
) -> GatewayAdapter:
    """Build the adapter registered under ``name``.

    Credentials come from ``settings`` (the cached environment settings when
    omitted). Missing credentials raise ``ConfigError`` here, before any
    request can be made.
    """
    adapter_class = ADAPTERS.get(name.lower())
    if adapter_class is None:
        raise ConfigError(
            f"Unknown gateway {name!r}; available: {', '.join(available_gateways())}"
        )

    settings = settings or get_settings()
    credentials = settings.credentials_for(name)
    if transport is None:
        transport = HttpxTransport(timeout=settings.HTTP_TIMEOUT)

    logger.info("Using %s for gateway %s", adapter_class.__name__, name)
    return adapter_class(credentials, transport=transport)
