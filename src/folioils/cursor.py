"""Offset-based traversal of FOLIO list endpoints."""

from __future__ import annotations

import logging
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Iterator,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Tuple,
    Union,
)

import httpx

from folioils.exceptions import FolioRequestError, UpstreamDataError

if TYPE_CHECKING:  # pragma: no cover
    from folioils.executor import RequestExecutor

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000

Query = Union[Mapping[str, Any], str, None]


class ResultPage(NamedTuple):
    """Items of one page and the total FOLIO reported alongside them."""

    items: List[Any]
    total_records: int


def query_params(query: Query) -> Dict[str, Any]:
    """Normalize a CQL string or a params mapping to a params dict."""
    if query is None:
        return {}
    if isinstance(query, str):
        return {"query": query} if query else {}
    return dict(query)


def decode_response(response: httpx.Response, endpoint: str) -> Dict[str, Any]:
    """Decode a list response body.

    Raises:
        UpstreamDataError: For error statuses or bodies that are not JSON objects. The
            message uses the first FOLIO error message when there is one.
    """
    parse_error = "Unable to parse response body"
    try:
        data = response.json()
    except ValueError as exc:
        data = None
        parse_error = f"Unable to parse response body: {exc}"
    if response.is_success and isinstance(data, dict):
        return data
    upstream_message = None
    if isinstance(data, dict):
        errors = data.get("errors") or []
        if errors and isinstance(errors[0], dict):
            upstream_message = errors[0].get("message")
    msg = upstream_message or parse_error
    raise UpstreamDataError(
        f"Error: '{msg}' fetching from '{endpoint}'",
        endpoint=endpoint,
        status_code=response.status_code,
        upstream_message=upstream_message,
    )


def _malformed(response: httpx.Response, endpoint: str) -> UpstreamDataError:
    return UpstreamDataError(
        f"Error: 'Unable to parse response body' fetching from '{endpoint}'",
        endpoint=endpoint,
        status_code=response.status_code,
    )


def _get(
    executor: RequestExecutor, endpoint: str, params: Dict[str, Any]
) -> Tuple[Dict[str, Any], httpx.Response]:
    try:
        response = executor.execute("GET", endpoint, params)
    except FolioRequestError as exc:
        response = exc.response
    return decode_response(response, endpoint), response


def _total_records(data: Dict[str, Any], response: httpx.Response, endpoint: str) -> int:
    total = data.get("totalRecords")
    if total is None:
        return 0
    if isinstance(total, bool) or not isinstance(total, (int, str)):
        raise _malformed(response, endpoint)
    try:
        return int(total)
    except ValueError:
        raise _malformed(response, endpoint) from None


def fetch_page(
    executor: RequestExecutor,
    result_key: str,
    endpoint: str,
    query: Query = None,
    offset: int = 0,
    limit: int = DEFAULT_PAGE_SIZE,
) -> ResultPage:
    """Retrieve a single page of results from a FOLIO list endpoint.

    Args:
        executor (RequestExecutor): Executor used for the request.
        result_key (str): Key of the result array in the response.
        endpoint (str): FOLIO API endpoint path.
        query (str | dict, optional): CQL query or extra GET parameters.
        offset (int): Starting record index.
        limit (int): Max number of records to retrieve.

    Raises:
        UpstreamDataError: If the page could not be fetched or decoded, or if the result
            array or totalRecords has the wrong type.
    """
    params = {**query_params(query), "offset": offset, "limit": limit}
    data, response = _get(executor, endpoint, params)
    items = data.get(result_key)
    if items is None:
        items = []
    elif not isinstance(items, list):
        raise _malformed(response, endpoint)
    return ResultPage(items, _total_records(data, response, endpoint))


def result_count(executor: RequestExecutor, endpoint: str, query: Query = None) -> int:
    """Get the total count of records matching a query, without fetching any."""
    params = {**query_params(query), "limit": 0}
    data, response = _get(executor, endpoint, params)
    return _total_records(data, response, endpoint)


class ResultCursor(Iterator[Any]):
    """Lazily yields every item of a FOLIO list endpoint, page by page.

    Pages are requested with increasing offsets while the offset does not exceed the
    latest ``totalRecords`` value, which FOLIO may only estimate for large result sets.
    The first page is always requested, even when the result set turns out to be
    empty. When the total is an exact multiple of the page size, one trailing empty
    page is requested as well.

    The cursor is forward-only: it keeps no previous pages, and a finished cursor stays
    finished. Create a new one to iterate again. The number of items is unknown until
    the cursor is exhausted.

    Example:
        >>> for location in ResultCursor(executor, "locations", "/locations"):
        ...     process(location)

    Raises:
        UpstreamDataError: From ``next()`` when a page fetch fails. Items already
            yielded stay yielded.
    """

    def __init__(
        self,
        executor: RequestExecutor,
        result_key: str,
        endpoint: str,
        query: Query = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        if page_size < 1:
            raise ValueError("page_size must be a positive integer")
        self.executor = executor
        self.result_key = result_key
        self.endpoint = endpoint
        self.query = query_params(query)
        self.page_size = page_size
        self.offset = 0
        self.total_estimate: Optional[int] = None
        self.pages_fetched = 0
        self._items = self._generate()

    def __iter__(self) -> "ResultCursor":
        return self

    def __next__(self) -> Any:
        return next(self._items)

    def _generate(self) -> Iterator[Any]:
        while True:
            page = fetch_page(
                self.executor,
                self.result_key,
                self.endpoint,
                self.query,
                self.offset,
                self.page_size,
            )
            self.pages_fetched += 1
            self.total_estimate = page.total_records
            logger.debug(
                f"Fetched {len(page.items)} records from {self.endpoint} at offset"
                f" {self.offset} (total estimate {self.total_estimate})"
            )
            yield from page.items
            self.offset += self.page_size
            if self.offset > self.total_estimate:
                return
