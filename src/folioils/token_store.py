"""Session token model and its cache-backed store."""

from __future__ import annotations

import enum
import logging
from datetime import datetime, timezone
from typing import NamedTuple, Optional

from folioils.cache import Cache, NamespacedCache

logger = logging.getLogger(__name__)

TOKEN_CACHE_KEY = "token"

# Legacy tokens carry no expiry; cache them for 10 minutes
LEGACY_TOKEN_TTL = 600


class TokenScope(enum.Enum):
    SESSION = "session"
    GLOBAL = "global"


class SessionToken(NamedTuple):
    """An opaque FOLIO token and when it stops being valid.

    A null expiration means the token has never been validated.
    """

    token: str
    expiration: Optional[datetime]
    scope: TokenScope = TokenScope.SESSION

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(tz=timezone.utc)
        return not self.token or self.expiration is None or now >= self.expiration

    def redacted(self) -> str:
        """The first 30 characters of the token, safe for logs."""
        return f"{self.token[:30]}..."


def rotating_token_ttl(expiration: datetime, now: Optional[datetime] = None) -> int:
    """Seconds a rotating token should stay cached: its remaining lifetime, never negative."""
    now = now or datetime.now(tz=timezone.utc)
    return max(0, int((expiration - now).total_seconds()))


def _serialize(token: SessionToken) -> list:
    return [token.token, token.expiration.isoformat() if token.expiration else None]


def _deserialize(value, scope: TokenScope) -> Optional[SessionToken]:
    if not isinstance(value, (list, tuple)) or len(value) != 2 or not value[0]:
        return None
    token, expiration = value
    try:
        expires_at = datetime.fromisoformat(expiration) if expiration else None
    except (TypeError, ValueError):
        logger.warning(f"Ignoring cached {scope.value} token with unreadable expiration")
        return None
    if expires_at is not None and expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return SessionToken(token, expires_at, scope)


class TokenStore:
    """Stores copies of a tenant's token in the session and global caches.

    Parameters:
        tenant_id (str): Tenant used to namespace every cache key.
        session_cache (Cache): Cache private to the current user session.
        global_cache (Cache, optional): Cache shared by every process for the tenant.
            Without it, global scope operations are no-ops.
    """

    def __init__(self, tenant_id: str, session_cache: Cache, global_cache: Optional[Cache] = None):
        self.tenant_id = tenant_id
        self._caches = {TokenScope.SESSION: NamespacedCache(session_cache, tenant_id)}
        if global_cache is not None:
            self._caches[TokenScope.GLOBAL] = NamespacedCache(global_cache, tenant_id)

    def load(self, scope: TokenScope) -> Optional[SessionToken]:
        cache = self._caches.get(scope)
        if cache is None:
            return None
        return _deserialize(cache.get(TOKEN_CACHE_KEY), scope)

    def save(self, scope: TokenScope, token: SessionToken, ttl: int) -> bool:
        """Store a copy of the token. Returns False when nothing was written."""
        cache = self._caches.get(scope)
        if cache is None:
            return False
        if not token.token or token.expiration is None:
            raise ValueError("Refusing to cache a token without value or expiration")
        if ttl <= 0:
            logger.debug(f"Not caching {scope.value} token: no remaining lifetime")
            return False
        cache.set(TOKEN_CACHE_KEY, _serialize(token), ttl)
        return True

    def clear(self, scope: TokenScope) -> None:
        cache = self._caches.get(scope)
        if cache is not None:
            cache.delete(TOKEN_CACHE_KEY)
