"""Token lifecycle for one tenant session."""

from __future__ import annotations

import enum
import logging
import time
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Optional

from folioils.auth import AuthResult, AuthStrategy, Requester
from folioils.exceptions import FolioAuthError, FolioError, AuthenticationFailure
from folioils.token_store import (
    LEGACY_TOKEN_TTL,
    SessionToken,
    TokenScope,
    TokenStore,
    rotating_token_ttl,
)

logger = logging.getLogger(__name__)

# Cheap authenticated request used to validate tokens without a known expiry
PROBE_PATH = "/users"
PROBE_ALLOWED_ERRORS = (HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN)


class TokenState(enum.Enum):
    UNSET = "unset"
    CACHED = "cached"
    VALID = "valid"
    EXPIRED = "expired"


class TokenLifecycle:
    """Owns the current token of a tenant session and keeps it usable.

    The token is loaded from the token store on :meth:`initialize`, renewed through the
    login strategy when it is missing, expired or rejected, and every renewal is written
    back to the store. Renewals are not coordinated between processes: the last writer
    wins, and a stale token is replaced the next time it fails validation.

    Parameters:
        strategy (AuthStrategy): Login protocol for the tenant.
        store (TokenStore): Cache-backed token store.
        request (Requester): Issues single requests with tenant and token headers.
        username (str): API username.
        password (str): API password.
        use_global_cache (bool): Whether tokens are shared through the global scope.
    """

    def __init__(
        self,
        strategy: AuthStrategy,
        store: TokenStore,
        request: Requester,
        username: str,
        password: str,
        *,
        use_global_cache: bool = True,
    ):
        self.strategy = strategy
        self.store = store
        self.request = request
        self.use_global_cache = use_global_cache
        self._username = username
        self._password = password
        self._token: Optional[SessionToken] = None
        self.state = TokenState.UNSET

    @property
    def token(self) -> Optional[str]:
        return self._token.token if self._token else None

    @property
    def expiration(self) -> Optional[datetime]:
        return self._token.expiration if self._token else None

    def initialize(self) -> None:
        """Load a cached token, then validate it or log in."""
        cached = self.store.load(TokenScope.SESSION)
        if cached is None and self.use_global_cache:
            cached = self.store.load(TokenScope.GLOBAL)
        if cached is not None:
            self._token = cached
            self.state = TokenState.CACHED
            logger.debug(
                f"Token taken from {cached.scope.value} cache: {cached.redacted()}"
            )
            if cached.scope is TokenScope.GLOBAL and cached.expiration is not None:
                self._copy_to_session(cached)
        if self._token is None:
            self.renew()
        else:
            self.validate()

    def _copy_to_session(self, token: SessionToken) -> None:
        """Keep a session copy of a token found in the global cache."""
        if self.strategy.reports_expiry:
            ttl = rotating_token_ttl(token.expiration)
        else:
            ttl = LEGACY_TOKEN_TTL
        self.store.save(TokenScope.SESSION, token._replace(scope=TokenScope.SESSION), ttl)

    def is_expired(self) -> bool:
        return self._token is None or self._token.is_expired()

    def clear(self) -> None:
        self._token = None
        self.state = TokenState.EXPIRED

    def renew(self) -> None:
        """Log in and store a new token.

        Protocols that report expiry skip the login while the current token is
        unexpired.

        Raises:
            AuthenticationFailure: If the login request failed.
            AuthProtocolError: If the login response carried no token.
        """
        if self.strategy.reports_expiry and not self.is_expired():
            logger.debug(
                f"No need to renew token; not yet expired. {datetime.now(tz=timezone.utc)}"
                f" < {self.expiration}. Username: {self._username}"
            )
            return
        start_time = time.perf_counter()
        self.clear()
        try:
            result = self.strategy.authenticate(self.request, self._username, self._password)
        except FolioAuthError:
            raise
        except FolioError as exc:
            raise AuthenticationFailure(
                f"Unable to renew token for {self._username}: {exc}",
                status_code=getattr(exc, "status_code", None),
            ) from exc
        self.adopt(result)
        logger.debug(
            f"Token renewed in {time.perf_counter() - start_time:.3f} seconds."
            f" Username: {self._username} Token: {self._token.redacted()}"
        )

    def adopt(self, result: AuthResult) -> None:
        """Make a freshly issued token current and persist copies of it."""
        self._token = SessionToken(result.token, result.expiration, TokenScope.SESSION)
        self.state = TokenState.VALID
        self.store.save(TokenScope.SESSION, self._token, result.cache_ttl)
        if self.use_global_cache:
            self.store.save(
                TokenScope.GLOBAL, self._token._replace(scope=TokenScope.GLOBAL), result.cache_ttl
            )

    def validate(self) -> bool:
        """Check the token, renewing it when needed.

        Tokens without a reported expiry are checked with a probe request.

        Returns:
            bool: True if the token was already valid, False if it had to be renewed.
        """
        if not self.strategy.reports_expiry and self._token is not None:
            response = self.request(
                "GET", PROBE_PATH, allowed_error_codes=PROBE_ALLOWED_ERRORS
            )
            if response.status_code < 400:
                self.state = TokenState.VALID
                return True
            logger.debug(f"Token rejected by {PROBE_PATH} probe ({response.status_code})")
            self.clear()
        if self.is_expired():
            self.clear()
            self.renew()
            return False
        self.state = TokenState.VALID
        return True

    def ensure_fresh(self) -> bool:
        """Renew the token if it is expired. Returns True if a renewal happened."""
        if self.is_expired():
            self.state = TokenState.EXPIRED
            self.renew()
            return True
        return False
