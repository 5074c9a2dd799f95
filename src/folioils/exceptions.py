"""
Custom exceptions for the folioils package.

This module provides FOLIO-specific exceptions. Request and connection failures wrap
their httpx counterparts so callers can keep catching httpx errors, while the session
and pagination layers raise the narrower authentication and upstream-data kinds.
"""

import functools
from typing import Callable, Dict, Optional, ParamSpec, Type, TypeVar

import httpx

P = ParamSpec("P")
T = TypeVar("T")


class FolioError(Exception):
    """Base exception for all FOLIO-related errors."""

    pass


# Authentication errors
class FolioAuthError(FolioError):
    """Base class for failures to establish or renew a FOLIO session token."""

    pass


class AuthProtocolError(FolioAuthError):
    """
    Raised when an otherwise successful login response lacks the expected
    credential artifact (the X-Okapi-Token header or the folioAccessToken cookie).
    """

    def __init__(self, message: str, *, response: Optional[httpx.Response] = None) -> None:
        super().__init__(message)
        self.message = message
        self.response = response

    def __str__(self) -> str:
        return f"FOLIO authentication protocol error: {self.message}"


class AuthenticationFailure(FolioAuthError):
    """
    Raised when a token renewal was attempted and failed, either because the
    login request was rejected or because FOLIO could not be reached.
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code:
            return f"FOLIO authentication failed: {self.message} (HTTP {self.status_code})"
        return f"FOLIO authentication failed: {self.message}"


# Data errors
class UpstreamDataError(FolioError):
    """
    Raised when a data endpoint returns an error status or a body that cannot be
    decoded. Carries the upstream error message when FOLIO supplied one.
    """

    def __init__(
        self,
        message: str,
        *,
        endpoint: str,
        status_code: Optional[int] = None,
        upstream_message: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.endpoint = endpoint
        self.status_code = status_code
        self.upstream_message = upstream_message

    def __str__(self) -> str:
        return self.message


class NotFoundError(FolioError):
    """Raised when a lookup by identifier matches no record."""

    def __init__(self, message: str = "Item Not Found", *, identifier: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.identifier = identifier

    def __str__(self) -> str:
        if self.identifier:
            return f"{self.message}: {self.identifier}"
        return self.message


# Connection and network errors
class FolioConnectionError(FolioError, httpx.RequestError):
    """
    Base class for FOLIO connection-related errors.
    Raised when there are network connectivity issues with the FOLIO system.
    """

    def __init__(self, message: str, *, request: httpx.Request) -> None:
        super().__init__(message)
        self.message = message
        self.request = request

    def __str__(self) -> str:
        return f"FOLIO connection error: {self.message}"


class FolioSystemUnavailableError(FolioConnectionError):
    """
    Raised when the FOLIO gateway is unreachable.
    """

    def __str__(self) -> str:
        return f"FOLIO system unavailable: {self.message}"


class FolioTimeoutError(FolioConnectionError, httpx.TimeoutException):
    """
    Raised when requests to FOLIO time out.
    """

    def __str__(self) -> str:
        return f"FOLIO request timeout: {self.message}"


class FolioNetworkError(FolioConnectionError):
    """
    Raised for other network failures: DNS resolution, refused connections,
    dropped connections.
    """

    def __str__(self) -> str:
        return f"FOLIO network error: {self.message}"


# HTTP status based exceptions
class FolioRequestError(FolioError, httpx.HTTPStatusError):
    """
    Raised when FOLIO answers with a status the caller did not allow.
    The response body is kept (truncated) for diagnostics.
    """

    def __init__(self, message: str, *, request: httpx.Request, response: httpx.Response) -> None:
        super().__init__(message, request=request, response=response)
        self.message = message

    @property
    def status_code(self) -> int:
        return self.response.status_code

    def __str__(self) -> str:
        return f"FOLIO request failed: {self.message} (HTTP {self.response.status_code})"


class FolioAuthenticationError(FolioRequestError):
    """Raised for a 401 that survived the token renewal retry."""

    def __str__(self) -> str:
        return f"FOLIO authentication rejected: {self.message}"


class FolioPermissionError(FolioRequestError):
    """Raised for 403 permission denied errors."""

    def __str__(self) -> str:
        return f"FOLIO permission denied: {self.message}"


class FolioResourceNotFoundError(FolioRequestError):
    """Raised for 404 not found errors."""

    def __str__(self) -> str:
        return f"FOLIO resource not found: {self.message}"


class FolioValidationError(FolioRequestError):
    """Raised for 422 validation errors."""

    def __str__(self) -> str:
        return f"FOLIO validation error: {self.message}"


class FolioServerError(FolioRequestError):
    """Raised for 5xx errors from FOLIO modules or the gateway."""

    def __str__(self) -> str:
        return f"FOLIO server error: {self.message} (HTTP {self.response.status_code})"


_HTTP_STATUS_EXCEPTIONS: Dict[int, Type[FolioRequestError]] = {
    401: FolioAuthenticationError,
    403: FolioPermissionError,
    404: FolioResourceNotFoundError,
    422: FolioValidationError,
}

_CONNECTION_EXCEPTIONS: Dict[Type[httpx.RequestError], Type[FolioConnectionError]] = {
    httpx.ConnectError: FolioSystemUnavailableError,
    httpx.ConnectTimeout: FolioTimeoutError,
    httpx.ReadTimeout: FolioTimeoutError,
    httpx.WriteTimeout: FolioTimeoutError,
    httpx.PoolTimeout: FolioTimeoutError,
}


def get_error_detail(response: Optional[httpx.Response]) -> str:
    """Extract error details from a FOLIO response, limited to 500 characters."""
    if response is None:
        return "No response available"
    try:
        error_text = response.text or "No error details in response"
    except (httpx.ResponseNotRead, UnicodeDecodeError):
        return "Unable to read error details from response"
    return error_text[:500] + "..." if len(error_text) > 500 else error_text


def request_error(response: httpx.Response, path: str = "") -> FolioRequestError:
    """Build the FolioRequestError subclass matching the response status."""
    status_code = response.status_code
    detail = get_error_detail(response)
    message = f"{response.request.method} {path}: {detail}" if path else detail
    if status_code in _HTTP_STATUS_EXCEPTIONS:
        exception_class = _HTTP_STATUS_EXCEPTIONS[status_code]
    elif 500 <= status_code < 600:
        exception_class = FolioServerError
    else:
        exception_class = FolioRequestError
    return exception_class(message, request=response.request, response=response)


def connection_error(original_error: httpx.RequestError) -> FolioConnectionError:
    """Create the FOLIO connection error matching an httpx transport failure."""
    exception_class = _CONNECTION_EXCEPTIONS.get(type(original_error))
    if exception_class is None:
        if isinstance(original_error, httpx.TimeoutException):
            exception_class = FolioTimeoutError
        elif isinstance(original_error, httpx.TransportError):
            exception_class = FolioNetworkError
        else:
            return FolioConnectionError(
                f"Connection error: {original_error}", request=original_error.request
            )
    return exception_class(str(original_error), request=original_error.request)


def folio_connection_errors(func: Callable[P, T]) -> Callable[P, T]:
    """
    Decorator that converts httpx request errors to FOLIO connection errors.

    HTTP status handling is left to the caller: transports return every response,
    including errors, so only failures without a response are converted here.

    Usage:
        >>> @folio_connection_errors
        ... def send(self, request):
        ...     return self.httpx_client.send(request)
    """

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        try:
            return func(*args, **kwargs)
        except FolioConnectionError:
            raise
        except httpx.RequestError as e:
            raise connection_error(e) from e

    return wrapper
