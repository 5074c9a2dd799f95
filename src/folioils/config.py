"""Tenant configuration for folioils.

A :class:`TenantContext` is built once per driver and never changes afterwards. It can
be created directly, from a nested mapping that follows the FOLIO driver's
``API``/``User``/``IDs`` sections, or from a YAML file holding the same sections.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping, Optional

import httpx
import yaml

if TYPE_CHECKING:  # pragma: no cover
    import ssl

logger = logging.getLogger(__name__)

DEFAULT_USER_CQL_FIELD = "username"
BIB_ID_TYPES = ("instance", "hrid")


def _get_timeout_config() -> dict:
    """Get timeout configuration from environment variables.

    Returns:
        dict: connect, read, write and pool timeouts; None where unset.
    """
    return {
        "connect": float(os.environ["FOLIOILS_CONNECT_TIMEOUT"])
        if "FOLIOILS_CONNECT_TIMEOUT" in os.environ
        else None,
        "read": float(os.environ["FOLIOILS_READ_TIMEOUT"])
        if "FOLIOILS_READ_TIMEOUT" in os.environ
        else None,
        "write": float(os.environ["FOLIOILS_WRITE_TIMEOUT"])
        if "FOLIOILS_WRITE_TIMEOUT" in os.environ
        else None,
        "pool": float(os.environ["FOLIOILS_POOL_TIMEOUT"])
        if "FOLIOILS_POOL_TIMEOUT" in os.environ
        else None,
    }


def timeout_from_env() -> httpx.Timeout:
    """Construct an httpx.Timeout from environment variables.

    ``FOLIOILS_HTTP_TIMEOUT`` sets the default; the granular variables override it.
    With nothing set, requests never time out.
    """
    try:
        timeout_str = os.environ.get("FOLIOILS_HTTP_TIMEOUT")
        default = float(timeout_str) if timeout_str is not None else None
    except ValueError:
        logger.warning(f"Ignoring invalid FOLIOILS_HTTP_TIMEOUT value: {timeout_str!r}")
        default = None
    granular = {k: v for k, v in _get_timeout_config().items() if v is not None}
    if default is None and not granular:
        return httpx.Timeout(None)
    return httpx.Timeout(default, **granular)


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass(frozen=True)
class TenantContext:
    """Connection and behaviour settings for one FOLIO tenant.

    Attributes:
        base_url (str): The base URL of the FOLIO gateway.
        tenant_id (str): The tenant ID sent as X-Okapi-Tenant.
        username (str): The API user.
        password (str): The API user's password. Never shown in repr or logs.
        legacy_authentication (bool): Use /authn/login and the X-Okapi-Token header
            instead of the rotating cookie token flow.
        global_token_cache (bool): Share tokens through the global cache.
        use_user_token (bool): Replace the API token with the patron's token after
            patron login. Disables the global token cache.
        okapi_login (bool): Authenticate patrons against /authn/login.
        debug_get_requests (bool): Log GET requests as well as writes.
        bib_id_type (str): Which FOLIO identifier serves as bibliographic ID.
        username_field (str): Patron field matched against the login username.
        password_field (str | None): Patron field matched against the password.
        user_cql (str | None): Template for the patron lookup query.
        ssl_verify (bool | ssl.SSLContext): Whether to verify SSL certificates.
        timeout (httpx.Timeout): Timeout configuration for HTTP requests.
    """

    base_url: str
    tenant_id: str
    username: str
    password: str = field(repr=False)
    legacy_authentication: bool = True
    global_token_cache: bool = True
    use_user_token: bool = False
    okapi_login: bool = False
    debug_get_requests: bool = False
    bib_id_type: str = "instance"
    username_field: str = DEFAULT_USER_CQL_FIELD
    password_field: Optional[str] = None
    user_cql: Optional[str] = None
    ssl_verify: bool | ssl.SSLContext = True
    timeout: httpx.Timeout = field(default_factory=timeout_from_env)

    def __post_init__(self):
        # Normalize to tolerate minor variations in config files
        object.__setattr__(self, "bib_id_type", self.bib_id_type.strip().lower())
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @property
    def use_global_token_cache(self) -> bool:
        """User-specific tokens can never be shared through the global cache."""
        return not self.use_user_token and self.global_token_cache

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any], **overrides) -> "TenantContext":
        """Build a TenantContext from API/User/IDs sections.

        Args:
            config: Mapping with an ``API`` section and optional ``User`` and ``IDs``
                sections.
            **overrides: Field values that take precedence over the mapping
                (e.g. ``ssl_verify`` or ``timeout``).

        Raises:
            ValueError: If a required API setting is missing.
        """
        api = config.get("API") or {}
        user = config.get("User") or {}
        ids = config.get("IDs") or {}
        missing = [k for k in ("base_url", "tenant", "username", "password") if not api.get(k)]
        if missing:
            raise ValueError(f"Missing required API setting(s): {', '.join(missing)}")
        values: dict[str, Any] = {
            "base_url": api["base_url"],
            "tenant_id": api["tenant"],
            "username": api["username"],
            "password": api["password"],
            "legacy_authentication": _as_bool(api.get("legacy_authentication"), True),
            "global_token_cache": _as_bool(api.get("global_token_cache"), True),
            "debug_get_requests": _as_bool(api.get("debug_get_requests"), False),
            "use_user_token": _as_bool(user.get("use_user_token"), False),
            "okapi_login": _as_bool(user.get("okapi_login"), False),
            "username_field": user.get("username_field") or DEFAULT_USER_CQL_FIELD,
            "password_field": user.get("password_field") or None,
            "user_cql": user.get("cql") or None,
            "bib_id_type": ids.get("type") or "instance",
        }
        values.update(overrides)
        return cls(**values)


def load_config(path: str | os.PathLike, **overrides) -> TenantContext:
    """Load a TenantContext from a YAML file.

    Example file::

        API:
          base_url: https://folio-snapshot-okapi.dev.folio.org
          tenant: diku
          username: diku_admin
          password: admin
          legacy_authentication: false
        IDs:
          type: hrid
    """
    with open(path, encoding="utf-8") as config_file:
        data = yaml.safe_load(config_file) or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    logger.debug(f"Loaded FOLIO configuration from {path}")
    return TenantContext.from_mapping(data, **overrides)
