"""
Error types raised by the executor and the classifier that turns a
non-success response into a ResponseError.

Transport failures (httpx.ConnectError, httpx.TimeoutException, ...) are
not wrapped here, they reach the caller as httpx raised them.
"""

import json
from typing import Any, Dict, Optional

import httpx
import structlog

logger = structlog.get_logger(__name__)

TOO_MANY_REDIRECTS = "ERR_TOO_MANY_REDIRECTS"
TOO_MANY_REDIRECTS_STATUS = 429


class GotFetchError(Exception):
    """Base class for errors produced by gotfetch itself."""

    kind = "GotFetchError"


class ResponseError(GotFetchError):
    """A non-success HTTP outcome: status, reason phrase and parsed body."""

    kind = "ResponseError"

    def __init__(self, message: str, status: int, body: Any = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.status_code = status
        self.status_text = message
        self.body = body

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind,
            'message': self.message,
            'status': self.status,
            'statusCode': self.status_code,
            'statusText': self.status_text,
            'body': self.body,
        }

    def __repr__(self) -> str:
        return f"ResponseError(status={self.status}, message={self.message!r})"


class RequestCancelled(GotFetchError):
    """The request was superseded by a newer request under the same name."""

    kind = "Cancelled"

    def __init__(self, name: Optional[str]):
        super().__init__(f"Request '{name}' was superseded")
        self.name = name


def too_many_redirects() -> ResponseError:
    return ResponseError(TOO_MANY_REDIRECTS, TOO_MANY_REDIRECTS_STATUS)


def _is_json(content_type: str) -> bool:
    return 'application/json' in (content_type or '').lower()


def _parse_body(raw: bytes, encoding: str) -> Any:
    """Decode a drained body, preferring JSON and falling back to text."""
    if not raw:
        return None
    text = raw.decode(encoding or 'utf-8', errors='replace')
    try:
        return json.loads(text)
    except ValueError:
        return text


async def classify(response: httpx.Response) -> ResponseError:
    """Build a ResponseError from a non-success response.

    The body is always read to the end so the connection is not left
    half-consumed, then the response is closed.
    """
    error = ResponseError(response.reason_phrase, response.status_code)
    content_type = response.headers.get('content-type', '')

    try:
        if _is_json(content_type):
            raw = await response.aread()
        else:
            raw = b''
            async for chunk in response.aiter_bytes():
                raw += chunk
        error.body = _parse_body(raw, response.encoding)
    finally:
        await response.aclose()

    logger.info("response_error",
                url=str(response.url),
                status=error.status,
                status_text=error.status_text,
                content_type=content_type)
    return error
