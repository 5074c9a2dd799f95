"""Driver facade over a FOLIO tenant: requests, paging and the cached lookups an ILS needs."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

import httpx

from folioils.auth import AuthStrategy, strategy_for
from folioils.cache import Cache, MemoryCache, NamespacedCache
from folioils.config import BIB_ID_TYPES, TenantContext
from folioils.cql import cql_equals, escape_cql
from folioils.cursor import DEFAULT_PAGE_SIZE, Query, ResultCursor, decode_response, result_count
from folioils.exceptions import FolioError, NotFoundError
from folioils.executor import RequestExecutor
from folioils.token_store import TokenStore
from folioils.transport import HttpTransport

logger = logging.getLogger(__name__)


class FolioDriver:
    """Tenant-scoped access to the FOLIO APIs used by the ILS driver.

    The driver owns a transport, a token session and the derived lookups (locations,
    address types, module versions) cached per tenant.

    Initialization:
        FolioDriver is designed to be used as a context manager

        >>> from folioils import FolioDriver, TenantContext
        >>> context = TenantContext(
        ...     "https://folio-snapshot-okapi.dev.folio.org", "diku", "diku_admin", "admin"
        ... )
        >>> with FolioDriver(context) as driver:
        ...     for user in driver.get_paged_results("users", "/users", 'username=="diku*"'):
        ...         print(user["username"])

    Parameters:
        context (TenantContext): Tenant configuration.
        session_cache (Cache, optional): Cache private to the current user session.
            Defaults to a new MemoryCache.
        global_cache (Cache, optional): Cache shared between processes. Defaults to a
            new MemoryCache.
        transport (HttpTransport, optional): Transport to use. Defaults to one built
            from the context.
    """

    def __init__(
        self,
        context: TenantContext,
        *,
        session_cache: Optional[Cache] = None,
        global_cache: Optional[Cache] = None,
        transport: Optional[HttpTransport] = None,
    ):
        if context.bib_id_type not in BIB_ID_TYPES:
            raise ValueError(f"Unsupported ID type: {context.bib_id_type}")
        self.context = context
        self.global_cache = global_cache if global_cache is not None else MemoryCache()
        self.session_cache = session_cache if session_cache is not None else MemoryCache()
        self.cache = NamespacedCache(self.global_cache, context.tenant_id)
        self.transport = transport or HttpTransport.for_context(context)
        self.strategy: AuthStrategy = strategy_for(context)
        self.executor = RequestExecutor(
            context,
            self.transport,
            self.strategy,
            TokenStore(context.tenant_id, self.session_cache, self.global_cache),
        )
        self.is_closed = False

    def __repr__(self) -> str:
        return (
            f"FolioDriver for tenant {self.tenant_id} at {self.context.base_url}"
            f" as {self.context.username}"
        )

    def __enter__(self):
        self.init()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self) -> None:
        self.transport.close()
        self.is_closed = True

    @property
    def tenant_id(self) -> str:
        return self.context.tenant_id

    @property
    def session(self):
        return self.executor.session

    def init(self) -> None:
        """Check or renew the API token."""
        self.session.initialize()

    def make_request(self, method, path, params=None, headers=None, allowed_error_codes=(), **kwargs):
        """Alias for `RequestExecutor.execute`"""
        return self.executor.execute(method, path, params, headers, allowed_error_codes, **kwargs)

    @staticmethod
    def extract_response_data(response: httpx.Response, key: Optional[str]) -> Any:
        """Decode a JSON response, optionally returning the value at key."""
        if not response.content:
            return None
        json_data = response.json()
        return json_data[key] if key and json_data else json_data

    def get_json(self, path: str, key: Optional[str] = None, params: Query = None) -> Any:
        """Fetches data from FOLIO and returns it as a JSON object.

        Args:
            path (str): FOLIO API endpoint path.
            key (str, optional): Key in JSON response that includes the data to return.
            params (str | dict, optional): CQL query or query parameters.
        """
        if isinstance(params, str):
            params = {"query": params}
        response = self.executor.execute("GET", path, params)
        return self.extract_response_data(response, key)

    def post_json(self, path: str, payload: Any, params: Query = None) -> Any:
        """Posts data to FOLIO and returns the decoded response, or None if empty."""
        response = self.executor.execute("POST", path, params, json=payload)
        return self.extract_response_data(response, None)

    def put_json(self, path: str, payload: Any, params: Query = None) -> Any:
        """Updates data in FOLIO and returns the decoded response, or None if empty."""
        response = self.executor.execute("PUT", path, params, json=payload)
        return self.extract_response_data(response, None)

    def delete(self, path: str, params: Query = None) -> Any:
        """Deletes data in FOLIO. A 404 is logged rather than raised."""
        response = self.executor.execute("DELETE", path, params, allowed_error_codes=(404,))
        if response.status_code == 404:
            logger.warning(f"Resource not found: {path}")
            return None
        return self.extract_response_data(response, None)

    def get_paged_results(
        self,
        result_key: str,
        endpoint: str,
        query: Query = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> ResultCursor:
        """Returns a cursor over every record of a list endpoint.

        Args:
            result_key (str): Key containing values to collect in each response.
            endpoint (str): FOLIO API endpoint path.
            query (str | dict, optional): CQL query or extra GET parameters.
            page_size (int): How many results to retrieve from FOLIO per call.
        """
        return ResultCursor(self.executor, result_key, endpoint, query, page_size)

    def get_result_count(self, endpoint: str, query: Query = None) -> int:
        """Get a total count of records from a FOLIO endpoint."""
        return result_count(self.executor, endpoint, query)

    def get_cached_data(self, key: str) -> Any:
        return self.cache.get(key)

    def put_cached_data(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        self.cache.set(key, value, ttl)

    def get_locations(self) -> Dict[str, Dict[str, Any]]:
        """Returns a map of location IDs to display name, code, status and service points.

        Display names come from discoveryDisplayName, or name when it is not set.
        """
        cache_key = "locationMap"
        location_map = self.get_cached_data(cache_key)
        if location_map is None:
            location_map = {
                location["id"]: self._location_entry(location)
                for location in self.get_paged_results("locations", "/locations")
            }
            self.put_cached_data(cache_key, location_map)
        return location_map

    @staticmethod
    def _location_entry(location: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "name": location.get("discoveryDisplayName") or location.get("name", ""),
            "code": location.get("code", ""),
            "is_active": location.get("isActive", True),
            "service_point_ids": location.get("servicePointIds", []),
        }

    def get_location_data(self, location_id: str) -> Dict[str, Any]:
        """Returns the display data of one location.

        A location missing from the cached map may have been added after the map was
        built, so it is requested directly before giving up.
        """
        location_map = self.get_locations()
        if location_id in location_map:
            return location_map[location_id]
        response = self.executor.execute(
            "GET", f"/locations/{location_id}", allowed_error_codes=(404,)
        )
        if response.is_success:
            return self._location_entry(response.json())
        return {"name": "", "code": "", "is_active": True, "service_point_ids": []}

    def get_address_types(self) -> Dict[str, str]:
        """Returns a map of address type IDs to their names."""
        cache_key = "addressTypes"
        address_types = self.get_cached_data(cache_key)
        if not address_types:
            address_types = {
                address_type["id"]: address_type["addressType"]
                for address_type in self.get_paged_results("addressTypes", "/addresstypes")
            }
            self.put_cached_data(cache_key, address_types)
        return address_types

    def get_module_major_version(self, module_name: str) -> int:
        """Get the latest major version of a module enabled for the tenant.

        Returns:
            int: The major version, or 0 if no module was found. Only non-zero
                results are cached, so an error condition is not persisted.
        """
        cache_key = f"module_version:{module_name}"
        version = self.get_cached_data(cache_key)
        if version is not None:
            return version
        response = self.executor.execute(
            "GET",
            f"/_/proxy/tenants/{self.tenant_id}/modules",
            {"filter": module_name, "latest": 1},
        )
        try:
            versions = response.json()
        except ValueError:
            versions = None
        latest = "0"
        if isinstance(versions, list) and versions and isinstance(versions[0], dict):
            latest = versions[0].get("id") or "0"
        match = re.search(r"\d+", latest)
        version = int(match.group()) if match else 0
        if version == 0:
            logger.debug(f"Unable to find version in {response.text}")
        else:
            self.put_cached_data(cache_key, version)
        return version

    def get_instance_by_bib_id(self, bib_id: str) -> Dict[str, Any]:
        """Retrieve a FOLIO instance using the configured bibliographic identifier.

        Raises:
            NotFoundError: If no instance matches.
        """
        id_field = "id" if self.context.bib_id_type == "instance" else self.context.bib_id_type
        query = {"query": cql_equals(id_field, bib_id)}
        response = self.executor.execute("GET", "/instance-storage/instances", query)
        instances = decode_response(response, "/instance-storage/instances").get("instances") or []
        if not instances:
            raise NotFoundError(identifier=bib_id)
        return instances[0]

    def get_item_by_id(self, item_id: str) -> Dict[str, Any]:
        return self.get_json(f"/item-storage/items/{item_id}")

    def get_instance_by_id(
        self,
        instance_id: Optional[str] = None,
        holding_id: Optional[str] = None,
        item_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Given an instance, holding or item identifier, retrieve the instance record."""
        if instance_id is None:
            if holding_id is None:
                if item_id is None:
                    raise ValueError("No IDs provided to get_instance_by_id.")
                holding_id = self.get_item_by_id(item_id)["holdingsRecordId"]
            holding = self.get_json(f"/holdings-storage/holdings/{holding_id}")
            instance_id = holding["instanceId"]
        return self.get_json(f"/inventory/instances/{instance_id}")

    def get_bib_id(
        self,
        instance_or_instance_id: Any = None,
        holding_id: Optional[str] = None,
        item_id: Optional[str] = None,
    ) -> str:
        """Determine the value used as bibliographic ID for an instance.

        Args:
            instance_or_instance_id: Instance record or ID (looked up from the holding
                or item ID when not provided).
            holding_id (str, optional): Holding-level id.
            item_id (str, optional): Item-level id.
        """
        id_type = self.context.bib_id_type
        # Nothing to look up when instance IDs are used and we already have one
        if id_type == "instance" and isinstance(instance_or_instance_id, str):
            return instance_or_instance_id
        if isinstance(instance_or_instance_id, dict):
            instance = instance_or_instance_id
        else:
            instance = self.get_instance_by_id(instance_or_instance_id, holding_id, item_id)
        return instance["hrid"] if id_type == "hrid" else instance["id"]

    def get_current_loan(self, item_id: str) -> Optional[Dict[str, Any]]:
        """Returns the open loan of an item, or None if it is not checked out."""
        query = f"itemId=={item_id} AND status.name==Open"
        for loan in self.get_paged_results("loans", "/circulation/loans", query):
            # Many loans may be returned; the current one has no returnDate
            if "returnDate" not in loan and "dueDate" in loan:
                return loan
        return None

    def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Given a user UUID, return the user's record (None if not found)."""
        users = self.get_json("/users", "users", {"query": cql_equals("id", user_id)}) or []
        return users[0] if users else None

    def fetch_user_with_cql(self, query: str) -> Optional[Dict[str, Any]]:
        """Fetch a single user; any other number of matches returns None."""
        users = self.get_json("/users", "users", {"query": query}) or []
        return users[0] if len(users) == 1 else None

    def build_user_cql(self, username: str, password: str) -> str:
        """Build the patron lookup query from the configured fields or template."""
        username_field = self.context.username_field
        password_field = self.context.password_field
        cql = self.context.user_cql or (
            '%%username_field%% == "%%username%%"'
            + (' and %%password_field%% == "%%password%%"' if password_field else "")
        )
        replacements = {
            "%%username_field%%": username_field,
            "%%password_field%%": password_field or "",
            "%%username%%": escape_cql(username),
            "%%password%%": escape_cql(password),
        }
        for placeholder, value in replacements.items():
            cql = cql.replace(placeholder, value)
        return cql

    def patron_login(self, username: str, password: str) -> Optional[Dict[str, Any]]:
        """Authenticate a patron.

        The patron is looked up with CQL unless only an Okapi login is configured, and
        logged in to Okapi when okapi_login is set. With use_user_token the patron's
        token replaces the API token for this session.

        Returns:
            dict: Patron summary, or None if the login was unsuccessful.
        """
        profile = None
        if not self.context.okapi_login or self.context.username_field != "username":
            profile = self.fetch_user_with_cql(self.build_user_cql(username, password))
            if profile is None:
                return None

        if self.context.okapi_login:
            login_name = profile["username"] if profile else username
            try:
                result = self.strategy.authenticate(self.executor.request, login_name, password)
            except FolioError as exc:
                logger.info(f"Okapi login failed for {login_name}: {exc}")
                return None
            logger.debug(f"User logged in. User: {login_name}.")
            if self.context.use_user_token:
                self.session.adopt(result)
            if profile is None:
                profile = self.fetch_user_with_cql(f'username == "{escape_cql(login_name)}"')
                if profile is None:
                    return None

        personal = profile.get("personal") or {}
        return {
            "id": profile["id"],
            "username": username,
            "cat_username": username,
            "cat_password": password,
            "firstname": personal.get("firstName"),
            "lastname": personal.get("lastName"),
            "email": personal.get("email"),
            "address_type_ids": [
                address.get("addressTypeId") for address in personal.get("addresses") or []
            ],
        }
