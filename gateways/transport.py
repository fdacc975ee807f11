"""Synchronous HTTP transport used by the gateway adapters."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Protocol

import httpx

from .exceptions import TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class TransportResponse:
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""


class Transport(Protocol):
    def send(
        self,
        method: str,
        url: str,
        body: Optional[bytes],
        headers: Mapping[str, str],
    ) -> TransportResponse:
        """Issue one HTTP request.

        Raises:
            TransportError: If no response could be obtained (DNS failure,
                refused connection, timeout).
        """
        ...


class HttpxTransport:
    """``Transport`` backed by a pooled ``httpx.Client``.

    The client is the only shared resource and httpx clients are safe to use
    from several threads, so one transport may serve concurrent callers.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    def send(
        self,
        method: str,
        url: str,
        body: Optional[bytes],
        headers: Mapping[str, str],
    ) -> TransportResponse:
        try:
            response = self._client.request(
                method, url, content=body, headers=dict(headers)
            )
        except httpx.HTTPError as exc:
            logger.warning("HTTP %s %s failed: %s", method, url, exc.__class__.__name__)
            raise TransportError(f"{exc.__class__.__name__} during {method} {url}") from exc

        return TransportResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response.content,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "HttpxTransport":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


__all__ = ["Transport", "TransportResponse", "HttpxTransport", "DEFAULT_TIMEOUT"]
