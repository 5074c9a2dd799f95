"""Request execution with FOLIO headers and a single re-authentication retry."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any, Collection, Mapping, Optional

import httpx

from folioils.auth import TOKEN_HEADER, AuthStrategy
from folioils.config import TenantContext
from folioils.exceptions import request_error
from folioils.session import TokenLifecycle
from folioils.token_store import TokenStore
from folioils.transport import HttpTransport

logger = logging.getLogger(__name__)

CONTENT_TYPE_JSON = "application/json"
TENANT_HEADER = "X-Okapi-Tenant"


class RequestExecutor:
    """Sends requests for one tenant and keeps its session token usable.

    Parameters:
        context (TenantContext): Tenant configuration.
        transport (HttpTransport): Performs the HTTP calls.
        strategy (AuthStrategy): Login protocol for the tenant.
        store (TokenStore): Cache-backed token store.
    """

    def __init__(
        self,
        context: TenantContext,
        transport: HttpTransport,
        strategy: AuthStrategy,
        store: TokenStore,
    ):
        self.context = context
        self.transport = transport
        self.strategy = strategy
        self.session = TokenLifecycle(
            strategy,
            store,
            self.request,
            context.username,
            context.password,
            use_global_cache=context.use_global_token_cache,
        )

    def build_headers(self, headers: Optional[Mapping[str, str]] = None) -> dict[str, str]:
        """Add the tenant, content negotiation and token headers to a request."""
        request_headers = dict(headers or {})
        request_headers["Accept"] = CONTENT_TYPE_JSON
        if not any(name.lower() == "content-type" for name in request_headers):
            request_headers["Content-Type"] = CONTENT_TYPE_JSON
        request_headers[TENANT_HEADER] = self.context.tenant_id
        if self.session.token:
            request_headers[TOKEN_HEADER] = self.session.token
        return request_headers

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        allowed_error_codes: Collection[int] = (),
        *,
        json: Any = None,
        debug_params: Any = None,
    ) -> httpx.Response:
        """Send a single request with standard headers and no retry.

        Raises:
            FolioRequestError: For error statuses not in ``allowed_error_codes``.
        """
        request_headers = self.build_headers(headers)
        self.debug_request(method, path, debug_params or json or params, request_headers)
        response = self.transport.send(
            method, path, params=params, headers=request_headers, json=json
        )
        if response.is_success or response.status_code in allowed_error_codes:
            return response
        raise request_error(response, path)

    def execute(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        allowed_error_codes: Collection[int] = (),
        *,
        json: Any = None,
        debug_params: Any = None,
    ) -> httpx.Response:
        """Send a request, renewing the token and retrying once after a 401.

        Args:
            method (str): GET, POST, PUT or DELETE.
            path (str): Gateway-relative path.
            params (dict, optional): Query parameters.
            headers (dict, optional): Extra request headers.
            allowed_error_codes (Collection[int]): Error statuses returned instead of
                raised.
            json (Any, optional): JSON body for write requests.
            debug_params (Any, optional): Replacement for the body in debug logs.

        Returns:
            httpx.Response: The response.

        Raises:
            FolioRequestError: For error statuses not in ``allowed_error_codes``.
            FolioAuthError: If the token could not be renewed.
        """
        if self.strategy.reports_expiry and self.session.is_expired():
            self.session.ensure_fresh()
        attempt_number = 1
        while True:
            response = self.request(
                method,
                path,
                params,
                headers,
                tuple(allowed_error_codes) + (HTTPStatus.UNAUTHORIZED,),
                json=json,
                debug_params=debug_params,
            )
            if response.status_code != HTTPStatus.UNAUTHORIZED:
                return response
            if HTTPStatus.UNAUTHORIZED in allowed_error_codes:
                return response
            if attempt_number < 2 and not self.session.validate():
                logger.debug("Retrying request after token expired...")
                attempt_number += 1
                continue
            raise request_error(response, path)

    def debug_request(
        self, method: str, path: str, params: Any, headers: Mapping[str, str]
    ) -> None:
        """Log a request with the password removed and the token truncated.

        Only non-GET requests are logged unless debug_get_requests is set.
        """
        if method.upper() == "GET" and not self.context.debug_get_requests:
            return
        if not logger.isEnabledFor(logging.DEBUG):
            return
        log_params = params
        if isinstance(params, Mapping) and "password" in params:
            log_params = {k: v for k, v in params.items() if k != "password"}
        log_headers = dict(headers)
        if TOKEN_HEADER in log_headers:
            log_headers[TOKEN_HEADER] = log_headers[TOKEN_HEADER][:30] + "..."
        logger.debug(
            f"{method} request. URL: {path}. Params: {log_params!r}. Headers: {log_headers!r}"
        )
