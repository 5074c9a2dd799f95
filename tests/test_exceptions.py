"""Tests for the exceptions module."""

import httpx
import pytest

from folioils.exceptions import (
    # Base exceptions
    FolioError,
    # Authentication errors
    FolioAuthError,
    AuthProtocolError,
    AuthenticationFailure,
    # Data errors
    UpstreamDataError,
    NotFoundError,
    # Connection errors
    FolioConnectionError,
    FolioSystemUnavailableError,
    FolioTimeoutError,
    FolioNetworkError,
    # HTTP errors
    FolioRequestError,
    FolioAuthenticationError,
    FolioPermissionError,
    FolioResourceNotFoundError,
    FolioValidationError,
    FolioServerError,
    # Helpers
    connection_error,
    folio_connection_errors,
    get_error_detail,
    request_error,
)


def make_response(status_code, text="", method="GET", url="https://folio.example.org/users"):
    return httpx.Response(status_code, text=text, request=httpx.Request(method, url))


class TestAuthErrors:
    def test_protocol_error(self):
        response = make_response(201)
        exc = AuthProtocolError("Could not find X-Okapi-Token header", response=response)
        assert isinstance(exc, FolioAuthError)
        assert exc.response is response
        assert str(exc) == (
            "FOLIO authentication protocol error: Could not find X-Okapi-Token header"
        )

    def test_authentication_failure(self):
        exc = AuthenticationFailure("bad password", status_code=422)
        assert isinstance(exc, FolioError)
        assert exc.status_code == 422
        assert "(HTTP 422)" in str(exc)
        assert "HTTP" not in str(AuthenticationFailure("unreachable"))


class TestDataErrors:
    def test_upstream_data_error(self):
        exc = UpstreamDataError(
            "Error: 'boom' fetching from '/users'",
            endpoint="/users",
            status_code=500,
            upstream_message="boom",
        )
        assert str(exc) == "Error: 'boom' fetching from '/users'"
        assert exc.endpoint == "/users"
        assert exc.upstream_message == "boom"

    def test_not_found(self):
        assert str(NotFoundError()) == "Item Not Found"
        assert str(NotFoundError(identifier="in00001")) == "Item Not Found: in00001"


class TestRequestErrors:
    @pytest.mark.parametrize(
        "status_code,exception_class",
        [
            (401, FolioAuthenticationError),
            (403, FolioPermissionError),
            (404, FolioResourceNotFoundError),
            (422, FolioValidationError),
            (500, FolioServerError),
            (503, FolioServerError),
            (400, FolioRequestError),
        ],
    )
    def test_status_mapping(self, status_code, exception_class):
        exc = request_error(make_response(status_code, "details"), "/users")
        assert type(exc) is exception_class
        assert isinstance(exc, httpx.HTTPStatusError)
        assert exc.status_code == status_code
        assert "GET /users: details" in str(exc)

    def test_can_be_caught_as_httpx_error(self):
        with pytest.raises(httpx.HTTPStatusError):
            raise request_error(make_response(404))

    def test_error_detail_truncated(self):
        detail = get_error_detail(make_response(500, "x" * 600))
        assert detail == "x" * 500 + "..."

    def test_error_detail_without_response(self):
        assert get_error_detail(None) == "No response available"
        assert get_error_detail(make_response(500)) == "No error details in response"


class TestConnectionErrors:
    request = httpx.Request("GET", "https://folio.example.org/users")

    @pytest.mark.parametrize(
        "original,exception_class",
        [
            (httpx.ConnectError, FolioSystemUnavailableError),
            (httpx.ReadTimeout, FolioTimeoutError),
            (httpx.ConnectTimeout, FolioTimeoutError),
            (httpx.ReadError, FolioNetworkError),
            (httpx.RemoteProtocolError, FolioNetworkError),
        ],
    )
    def test_mapping(self, original, exception_class):
        exc = connection_error(original("failed", request=self.request))
        assert type(exc) is exception_class
        assert isinstance(exc, httpx.RequestError)
        assert exc.request is self.request

    def test_timeout_is_httpx_timeout(self):
        exc = connection_error(httpx.PoolTimeout("pool", request=self.request))
        assert isinstance(exc, httpx.TimeoutException)
        assert str(exc) == "FOLIO request timeout: pool"


class TestFolioConnectionErrorsDecorator:
    request = httpx.Request("GET", "https://folio.example.org/users")

    def test_converts_httpx_errors(self):
        @folio_connection_errors
        def send():
            raise httpx.ConnectError("refused", request=self.request)

        with pytest.raises(FolioSystemUnavailableError) as exc_info:
            send()
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    def test_passes_folio_errors_through(self):
        original = FolioNetworkError("gone", request=self.request)

        @folio_connection_errors
        def send():
            raise original

        with pytest.raises(FolioConnectionError) as exc_info:
            send()
        assert exc_info.value is original

    def test_returns_value(self):
        @folio_connection_errors
        def send():
            return "response"

        assert send() == "response"
