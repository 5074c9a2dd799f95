"""folioils keeps authenticated sessions against the FOLIO library platform.

It handles both FOLIO login protocols, caches tokens per tenant so they can be shared
between processes, retries a request once after a token expires mid-session, and walks
paginated list endpoints lazily.
"""

import importlib.metadata

from folioils.auth import AuthStrategy, LegacyAuthStrategy, RotatingAuthStrategy, strategy_for
from folioils.cache import Cache, MemoryCache, NamespacedCache, cache_key
from folioils.config import TenantContext, load_config
from folioils.cql import escape_cql
from folioils.cursor import ResultCursor
from folioils.driver import FolioDriver
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
)
from folioils.executor import RequestExecutor
from folioils.redis_cache import RedisCache
from folioils.session import TokenLifecycle, TokenState
from folioils.token_store import SessionToken, TokenScope, TokenStore
from folioils.transport import HttpTransport

__version__ = importlib.metadata.version("folioils")
__all__ = [
    # Core driver
    "FolioDriver",
    "TenantContext",
    "load_config",
    # Session components
    "AuthStrategy",
    "LegacyAuthStrategy",
    "RotatingAuthStrategy",
    "strategy_for",
    "TokenLifecycle",
    "TokenState",
    "RequestExecutor",
    "HttpTransport",
    "ResultCursor",
    "escape_cql",
    # Token caching
    "Cache",
    "MemoryCache",
    "NamespacedCache",
    "RedisCache",
    "cache_key",
    "SessionToken",
    "TokenScope",
    "TokenStore",
    # Base exceptions
    "FolioError",
    # Authentication errors
    "FolioAuthError",
    "AuthProtocolError",
    "AuthenticationFailure",
    # Data errors
    "UpstreamDataError",
    "NotFoundError",
    # Connection errors
    "FolioConnectionError",
    "FolioSystemUnavailableError",
    "FolioTimeoutError",
    "FolioNetworkError",
    # HTTP errors
    "FolioRequestError",
    "FolioAuthenticationError",
    "FolioPermissionError",
    "FolioResourceNotFoundError",
    "FolioValidationError",
    "FolioServerError",
]
