from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping, Optional

import httpx

from folioils.decorators import folio_retry_on_transport_error
from folioils.exceptions import folio_connection_errors

if TYPE_CHECKING:  # pragma: no cover
    from folioils.config import TenantContext

logger = logging.getLogger(__name__)

USER_AGENT_STRING = "folioils"


class HttpTransport:
    """Executes single requests against the FOLIO gateway.

    Every response is returned as-is, error statuses included; deciding what a status
    means is left to the request executor. Network-level failures are retried
    according to the FOLIOILS_*TRANSPORT* environment variables and then raised as
    FolioConnectionError subclasses.

    Parameters:
        base_url (str): The FOLIO gateway URL.
        timeout (httpx.Timeout | None): Timeout configuration, None for no timeout.
        ssl_verify (bool | ssl.SSLContext): Whether to verify SSL certificates.
        client (httpx.Client, optional): Preconfigured client, mostly for tests.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: Optional[httpx.Timeout] = None,
        ssl_verify: Any = True,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = base_url
        self.httpx_client = client or httpx.Client(
            base_url=base_url,
            timeout=timeout if timeout is not None else httpx.Timeout(None),
            verify=ssl_verify,
            headers={"User-Agent": USER_AGENT_STRING},
        )
        self._send_with_retry = folio_retry_on_transport_error(self._send_once)

    @classmethod
    def for_context(cls, context: TenantContext) -> "HttpTransport":
        """Returns a transport configured from a TenantContext."""
        return cls(context.base_url, timeout=context.timeout, ssl_verify=context.ssl_verify)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    @property
    def is_closed(self) -> bool:
        return self.httpx_client.is_closed

    def close(self) -> None:
        if not self.httpx_client.is_closed:
            self.httpx_client.close()

    @folio_connection_errors
    def send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        json: Any = None,
    ) -> httpx.Response:
        """Send one request and return the response, whatever its status.

        Args:
            method (str): GET, POST, PUT or DELETE.
            path (str): Gateway-relative path.
            params (dict, optional): Query parameters.
            headers (dict, optional): Request headers.
            json (Any, optional): Body to serialize as JSON.

        Raises:
            FolioConnectionError: When no response could be obtained.
        """
        request = self.httpx_client.build_request(
            method.upper(),
            path.lstrip("/"),
            params=dict(params) if params else None,
            headers=dict(headers) if headers else None,
            json=json,
        )
        return self._send_with_retry(request)

    def _send_once(self, request: httpx.Request) -> httpx.Response:
        return self.httpx_client.send(request)
