"""Backend-independent pieces of response normalization.

Each adapter owns the mapping from its own body layout to a ``Result``; the
helpers here cover the parts every backend shares: classifying an HTTP status
code and decoding a body without ever raising.
"""

import json
import logging
import re
from typing import Any, Dict, Optional, Union

from ..models import ErrorKind, Failure

logger = logging.getLogger(__name__)

# Client-side statuses that are worth retrying unchanged.
_TRANSIENT_CLIENT_STATUSES = frozenset({408, 425, 429})

_STATE_ERROR_PATTERNS = (
    re.compile(r"already[ _](been[ _])?(captured|refunded|voided|cancell?ed)", re.I),
    re.compile(r"expired[ _]for[ _]capture", re.I),
    re.compile(r"(cannot|can't|not[ _]allowed[ _]to)[ _]be[ _](captured|refunded)", re.I),
    re.compile(r"not[ _](capturable|refundable)", re.I),
    re.compile(r"invalid[ _]state", re.I),
)

MAX_RAW_TEXT = 512


def is_success_status(status_code: Any) -> bool:
    return isinstance(status_code, int) and 200 <= status_code < 300


def classify_status(status_code: Any) -> Optional[ErrorKind]:
    """Map an HTTP status code to an ``ErrorKind``.

    Returns ``None`` for 2xx. Defined for every input, including codes outside
    the HTTP range, which are treated as a broken exchange with the backend.
    """
    if not isinstance(status_code, int) or isinstance(status_code, bool):
        return ErrorKind.PROTOCOL_ERROR
    if 200 <= status_code < 300:
        return None
    if status_code in _TRANSIENT_CLIENT_STATUSES:
        return ErrorKind.TRANSIENT_ERROR
    if 400 <= status_code < 500:
        return ErrorKind.CLIENT_ERROR
    if 500 <= status_code < 600:
        return ErrorKind.TRANSIENT_ERROR
    # 1xx, 3xx and anything outside 100-599
    return ErrorKind.PROTOCOL_ERROR


def parse_json_body(body: Union[bytes, str, None]) -> Optional[Dict[str, Any]]:
    """Decode a JSON object body, returning ``None`` for anything else."""
    if body is None:
        return None
    if isinstance(body, bytes):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if not body.strip():
        return None
    try:
        data = json.loads(body)
    except (ValueError, RecursionError):
        return None
    return data if isinstance(data, dict) else None


def raw_text(body: Union[bytes, str, None]) -> str:
    """Printable, bounded rendering of a body for diagnostics."""
    if body is None:
        return ""
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    return body[:MAX_RAW_TEXT]


def infer_state_error(*messages: Optional[str]) -> bool:
    """Whether an error message describes an out-of-order transition."""
    for message in messages:
        if not message:
            continue
        if any(pattern.search(message) for pattern in _STATE_ERROR_PATTERNS):
            return True
    return False


def unparseable_body(status_code: int, body: Union[bytes, str, None]) -> Failure:
    logger.warning("Unparseable response body (HTTP %s)", status_code)
    return Failure(
        kind=ErrorKind.TRANSIENT_ERROR,
        message="unparseable response body",
        status_code=status_code,
        raw=raw_text(body),
    )


def missing_token(status_code: int, data: Dict[str, Any], field_name: str) -> Failure:
    logger.error(
        "Backend returned HTTP %s without a usable %r; response not trusted",
        status_code,
        field_name,
    )
    return Failure(
        kind=ErrorKind.PROTOCOL_ERROR,
        message=f"success response missing {field_name}",
        status_code=status_code,
        raw=data,
    )


def unexpected_status(status_code: Any, kind: ErrorKind, data, body) -> Failure:
    return Failure(
        kind=kind,
        message=f"unexpected HTTP status {status_code}",
        status_code=status_code if isinstance(status_code, int) else None,
        raw=data if data is not None else raw_text(body),
    )


__all__ = [
    "is_success_status",
    "classify_status",
    "parse_json_body",
    "raw_text",
    "infer_state_error",
    "unparseable_body",
    "missing_token",
    "unexpected_status",
]
