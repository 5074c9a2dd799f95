"""FOLIO login protocols.

Two mutually exclusive flows exist:

* legacy: ``POST /authn/login`` returns the token in the ``X-Okapi-Token`` header. The
  token has no known lifetime, so it is considered expired as soon as it is issued and
  is validated by probing instead.
* rotating (RTR): ``POST /authn/login-with-expiry`` returns the token in the
  ``folioAccessToken`` cookie together with its expiry.

One strategy is chosen per tenant by :func:`strategy_for` and used for the lifetime of
the driver.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from http.cookiejar import Cookie
from typing import TYPE_CHECKING, Any, Callable, NamedTuple, Optional

import httpx

from folioils.exceptions import AuthProtocolError
from folioils.token_store import LEGACY_TOKEN_TTL, rotating_token_ttl

if TYPE_CHECKING:  # pragma: no cover
    from folioils.config import TenantContext

logger = logging.getLogger(__name__)

TOKEN_HEADER = "X-Okapi-Token"
ACCESS_TOKEN_COOKIE = "folioAccessToken"
REDACTED_CREDENTIALS = '{"username":"...","password":"..."}'

Requester = Callable[..., httpx.Response]


class AuthResult(NamedTuple):
    """Normalized outcome of a successful login."""

    token: str
    expiration: datetime
    cache_ttl: int
    response: httpx.Response


class AuthStrategy(ABC):
    """Interface shared by the FOLIO login protocols.

    Attributes:
        login_path (str): Credential exchange endpoint.
        reports_expiry (bool): Whether issued tokens carry a trustworthy expiry. When
            False, tokens are validated by probing the API instead.
    """

    login_path: str
    reports_expiry: bool

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id

    def authenticate(self, request: Requester, username: str, password: str) -> AuthResult:
        """Exchange credentials for a token.

        Args:
            request: Callable issuing a single request, raising on error statuses.
            username (str): FOLIO username.
            password (str): FOLIO password.

        Raises:
            AuthProtocolError: If the response lacks the expected token artifact.
        """
        credentials = {"tenant": self.tenant_id, "username": username, "password": password}
        response = request(
            "POST",
            self.login_path,
            json=credentials,
            debug_params=REDACTED_CREDENTIALS,
        )
        return self.extract_token(response)

    @abstractmethod
    def extract_token(self, response: httpx.Response) -> AuthResult:
        """Pull the token and its expiration out of a successful login response."""


class LegacyAuthStrategy(AuthStrategy):
    login_path = "/authn/login"
    reports_expiry = False

    def extract_token(self, response: httpx.Response) -> AuthResult:
        token = response.headers.get(TOKEN_HEADER)
        if not token:
            raise AuthProtocolError(
                f"Could not find {TOKEN_HEADER} header in response", response=response
            )
        # There is no option to renew legacy tokens, so assume expired as of now
        return AuthResult(
            token=token,
            expiration=datetime.now(tz=timezone.utc),
            cache_ttl=LEGACY_TOKEN_TTL,
            response=response,
        )


class RotatingAuthStrategy(AuthStrategy):
    login_path = "/authn/login-with-expiry"
    reports_expiry = True

    def extract_token(self, response: httpx.Response) -> AuthResult:
        cookie = self.get_cookie_by_name(response, ACCESS_TOKEN_COOKIE)
        if cookie is None or not cookie.value:
            raise AuthProtocolError(
                f"Could not find {ACCESS_TOKEN_COOKIE} cookie in response", response=response
            )
        expiration = self._cookie_expiration(cookie) or self._body_expiration(response)
        if expiration is None:
            raise AuthProtocolError(
                f"Could not find an expiration for the {ACCESS_TOKEN_COOKIE} cookie",
                response=response,
            )
        return AuthResult(
            token=cookie.value,
            expiration=expiration,
            cache_ttl=rotating_token_ttl(expiration),
            response=response,
        )

    @staticmethod
    def get_cookie_by_name(response: httpx.Response, name: str) -> Optional[Cookie]:
        """Return the named cookie set by the response, with its attributes."""
        for cookie in response.cookies.jar:
            if cookie.name == name:
                return cookie
        return None

    @staticmethod
    def _cookie_expiration(cookie: Cookie) -> Optional[datetime]:
        if cookie.expires is None:
            return None
        return datetime.fromtimestamp(cookie.expires, tz=timezone.utc)

    @staticmethod
    def _body_expiration(response: httpx.Response) -> Optional[datetime]:
        try:
            body: Any = response.json()
        except ValueError:
            return None
        if not isinstance(body, dict) or not body.get("accessTokenExpiration"):
            return None
        try:
            expiration = datetime.fromisoformat(body["accessTokenExpiration"].replace("Z", "+00:00"))
        except (AttributeError, ValueError):
            return None
        if expiration.tzinfo is None:
            expiration = expiration.replace(tzinfo=timezone.utc)
        return expiration


def strategy_for(context: TenantContext) -> AuthStrategy:
    """Select the login protocol configured for a tenant."""
    if context.legacy_authentication:
        return LegacyAuthStrategy(context.tenant_id)
    return RotatingAuthStrategy(context.tenant_id)
