"""
Error types.

```
                               (ClientError)
                                     ╷
          ┌──────────────────┬───────┴──────────┬─────────────────────┐
          ╵                  ╵                  ╵                     ╵
      CallError        ResponseError        BatchError      LoadSupersededError
          ╷
          ╵
   CallTimeoutError
```

``CallError`` covers transport failures, where no response was received.
``ResponseError`` covers responses with an unsuccessful status, as well as
successful responses with a malformed body (see ``is_parse_failure()``).

``EmptyResultWarning`` is not an error: it describes a valid response that
has nothing to show.
"""

import asyncio
from dataclasses import dataclass
from json import JSONDecodeError
from typing import Any, NoReturn, TypeAlias, TypeGuard

import aiohttp


__docformat__ = "google"
__all__ = (
    "ClientError",
    "CallError",
    "CallTimeoutError",
    "ResponseError",
    "ResponseErrorCause",
    "BatchError",
    "LoadSupersededError",
    "EmptyResultWarning",
    "is_call_err",
    "is_call_timeout",
    "is_server_error",
    "is_parse_failure",
    "is_oversized",
)


_OVERSIZED_STATUSES = frozenset({408, 413, 504})
"""Request Timeout, Payload Too Large, Gateway Timeout"""

_OVERSIZED_PHRASES = ("timeout", "timed out", "too large")


class ClientError(Exception):
    """Base exception for failed feature server requests."""

    @property
    def should_paginate(self) -> bool:
        """Returns ``True`` if requesting the collection in smaller pages might succeed."""
        return False


@dataclass(kw_only=True)
class CallError(ClientError):
    """
    Failed to make a request.

    This error is raised when the loader failed to get any response,
    f.e. due to connection issues.

    Attributes:
        cause: the exception that caused this error
    """

    cause: aiohttp.ClientError

    def __str__(self) -> str:
        return str(self.cause) or type(self.cause).__name__


@dataclass(kw_only=True)
class CallTimeoutError(CallError):
    """
    A request timed out.

    Attributes:
        cause: the exception that caused this error
        after_secs: the configured timeout for the request, if any
    """

    cause: asyncio.TimeoutError  # type: ignore[assignment]
    after_secs: float | None

    @property
    def should_paginate(self) -> bool:
        """Returns ``True`` if requesting the collection in smaller pages might succeed."""
        return True

    def __str__(self) -> str:
        if self.after_secs is None:
            return "request timeout"
        return f"request timeout after {self.after_secs:.1f}s"


ResponseErrorCause: TypeAlias = aiohttp.ClientResponseError | JSONDecodeError | ValueError
"""Causes for a ``ResponseError``."""


@dataclass(kw_only=True)
class ResponseError(ClientError):
    """
    Unexpected response of the feature server.

    Either the status code signals failure, or the body is not a feature collection.
    In the latter case, ``cause`` is set and ``is_parse_failure`` is ``True``.

    Attributes:
        response: the unexpected response
        body: the response body
        cause: an optional exception that may have caused this error
    """

    response: aiohttp.ClientResponse
    body: str
    cause: ResponseErrorCause | None

    @property
    def status(self) -> int:
        return self.response.status

    @property
    def should_paginate(self) -> bool:
        """Returns ``True`` if requesting the collection in smaller pages might succeed."""
        return self.status in _OVERSIZED_STATUSES

    @property
    def is_server_error(self) -> bool:
        """Returns ``True`` if this presumably a server-side error."""
        return self.status >= 500

    @property
    def is_parse_failure(self) -> bool:
        """Returns ``True`` if the status was fine, but the body could not be used."""
        return self.cause is not None and 200 <= self.status < 300

    def __str__(self) -> str:
        reason = f"{self.status} {self.response.reason}" if self.response.reason else self.status
        if self.cause is None:
            return f"unexpected response ({reason})"
        return f"unexpected response ({reason}): {self.cause}"


@dataclass(kw_only=True)
class BatchError(ClientError):
    """
    A page request failed, which aborts loading the collection in pages.

    Attributes:
        start_index: the offset of the page that failed
        cause: the error of the failed page request
    """

    start_index: int
    cause: ClientError

    def __str__(self) -> str:
        return f"page at index {self.start_index} failed: {self.cause}"


class LoadSupersededError(ClientError):
    """A load was cancelled because a more recent load was started."""

    def __str__(self) -> str:
        return "load superseded by a more recent one"


class EmptyResultWarning(Warning):
    """A valid operation yielded nothing to show."""


async def _raise_for_request_error(err: aiohttp.ClientError) -> NoReturn:
    """
    Raise an exception caused by the given request error.

    Raises:
        - ``ResponseError`` if ``err`` is an ``aiohttp.ClientResponseError``
          that still carries its response
        - ``CallError`` otherwise
    """
    if isinstance(err, aiohttp.ClientResponseError) and err.history:
        response = err.history[-1]
        await _raise_for_response(response, err)

    raise CallError(cause=err) from err


async def _raise_for_response(
    response: aiohttp.ClientResponse,
    cause: ResponseErrorCause | None,
) -> NoReturn:
    """Raise a ``ResponseError`` with an optional cause."""
    err = ResponseError(
        response=response,
        body=await response.text(errors="replace"),
        cause=cause,
    )
    if cause:
        raise err from cause
    raise err


async def _json_or_raise(response: aiohttp.ClientResponse) -> Any:
    """
    Decode a JSON response body.

    Raises:
        ResponseError: when the status is not 2xx, or the body is not JSON
    """
    if not 200 <= response.status < 300:
        await _raise_for_response(response, cause=None)

    try:
        return await response.json(content_type=None)
    except (JSONDecodeError, UnicodeDecodeError) as err:
        await _raise_for_response(response, cause=ValueError(str(err)))


async def _features_or_raise(response: aiohttp.ClientResponse) -> list[dict]:
    """
    Extract the features of a feature collection response.

    Raises:
        ResponseError: when the status is not 2xx, the body is not JSON,
                       or it has no ``features`` array
    """
    data = await _json_or_raise(response)

    features = data.get("features") if isinstance(data, dict) else None
    if not isinstance(features, list):
        await _raise_for_response(response, cause=ValueError("response has no 'features' array"))

    return features


def is_call_err(err: BaseException | None) -> TypeGuard[CallError]:
    """``True`` if this is a ``CallError``."""
    return isinstance(err, CallError)


def is_call_timeout(err: BaseException | None) -> TypeGuard[CallTimeoutError]:
    """``True`` if this is a ``CallTimeoutError``."""
    return isinstance(err, CallTimeoutError)


def is_server_error(err: BaseException | None) -> TypeGuard[ResponseError]:
    """``True`` if this is a ``ResponseError`` presumably caused by a server-side error."""
    return isinstance(err, ResponseError) and err.is_server_error


def is_parse_failure(err: BaseException | None) -> TypeGuard[ResponseError]:
    """``True`` if this is a ``ResponseError`` for a malformed body."""
    return isinstance(err, ResponseError) and err.is_parse_failure


def is_oversized(err: BaseException | None) -> TypeGuard[ClientError]:
    """
    ``True`` if the error suggests the collection is too large for a single request.

    This is the case for timeouts, statuses 408, 413 and 504, and for errors
    whose message mentions a timeout or a payload that is too large.
    """
    if not isinstance(err, ClientError):
        return False

    if err.should_paginate:
        return True

    msg = str(err).lower()
    return any(phrase in msg for phrase in _OVERSIZED_PHRASES)
