"""
Integration tests for folioils against the FOLIO community snapshot environment.

These tests are disabled by default to prevent them from running during normal test
execution.

To run these tests:
    pytest tests/integration_tests.py --run-integration

Environment: FOLIO Community Snapshot
- URL: https://folio-snapshot-okapi.dev.folio.org
- Tenant: diku
- Username: diku_admin
- Password: admin
"""

import pytest

from folioils import FolioDriver, TenantContext
from folioils.cache import MemoryCache
from folioils.exceptions import AuthenticationFailure, FolioResourceNotFoundError

SNAPSHOT_CONFIG = {
    "API": {
        "base_url": "https://folio-snapshot-okapi.dev.folio.org",
        "tenant": "diku",
        "username": "diku_admin",
        "password": "admin",
    }
}

pytestmark = pytest.mark.integration


@pytest.fixture(params=[True, False], ids=["legacy", "rotating"])
def context(request):
    api = dict(SNAPSHOT_CONFIG["API"], legacy_authentication=request.param)
    return TenantContext.from_mapping({"API": api})


@pytest.fixture
def driver(context):
    with FolioDriver(context) as folio_driver:
        yield folio_driver


class TestSession:
    def test_login(self, driver):
        assert driver.session.token

    def test_token_shared_through_global_cache(self, context):
        global_cache = MemoryCache()
        with FolioDriver(context, global_cache=global_cache) as first:
            token = first.session.token
        with FolioDriver(context, global_cache=global_cache) as second:
            assert second.session.token == token

    def test_invalid_credentials(self, context):
        api = dict(SNAPSHOT_CONFIG["API"], password="wrong")
        bad_context = TenantContext.from_mapping(
            {"API": dict(api, legacy_authentication=context.legacy_authentication)}
        )
        with pytest.raises(AuthenticationFailure):
            FolioDriver(bad_context).init()


class TestData:
    def test_paged_users(self, driver):
        users = list(driver.get_paged_results("users", "/users", page_size=10))
        assert len(users) == driver.get_result_count("/users")

    def test_locations(self, driver):
        locations = driver.get_locations()
        assert locations
        assert all("code" in location for location in locations.values())

    def test_module_version(self, driver):
        assert driver.get_module_major_version("mod-circulation") > 0

    def test_not_found(self, driver):
        with pytest.raises(FolioResourceNotFoundError):
            driver.get_item_by_id("00000000-0000-0000-0000-000000000000")
