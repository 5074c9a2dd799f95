import httpx
import pytest

from folioils.cursor import ResultCursor, decode_response, fetch_page, result_count
from folioils.exceptions import UpstreamDataError

from .test_utils import FakeFolio, json_response, make_executor, paged_handler, status_response

ITEMS = ("GET", "/item-storage/items")


def offsets(fake):
    return [int(r.url.params["offset"]) for r in fake.calls(*ITEMS)]


def make_cursor(handler, **kwargs):
    fake = FakeFolio({ITEMS: handler})
    cursor = ResultCursor(make_executor(fake=fake), "items", "/item-storage/items", **kwargs)
    return cursor, fake


def test_cursor_is_lazy():
    cursor, fake = make_cursor(paged_handler(10))

    assert fake.requests == []
    assert cursor.total_estimate is None
    next(cursor)
    assert len(fake.requests) == 1


def test_empty_result_set_fetches_once():
    cursor, fake = make_cursor(paged_handler(0))

    assert list(cursor) == []
    assert cursor.pages_fetched == 1
    assert offsets(fake) == [0]


def test_partial_last_page():
    cursor, fake = make_cursor(paged_handler(2500))

    items = list(cursor)

    assert len(items) == 2500
    assert [item["id"] for item in items[998:1002]] == ["998", "999", "1000", "1001"]
    assert offsets(fake) == [0, 1000, 2000]
    assert {r.url.params["limit"] for r in fake.requests} == {"1000"}


def test_exact_multiple_fetches_trailing_empty_page():
    # offset <= totalRecords keeps going when the total lands on a page boundary
    cursor, fake = make_cursor(paged_handler(2000))

    assert len(list(cursor)) == 2000
    assert offsets(fake) == [0, 1000, 2000]


def test_custom_page_size_and_query():
    cursor, fake = make_cursor(paged_handler(5), query='status.name=="Available"', page_size=2)

    assert len(list(cursor)) == 5
    assert offsets(fake) == [0, 2, 4]
    assert fake.requests[0].url.params["query"] == 'status.name=="Available"'


def test_query_mapping_is_merged_into_params():
    cursor, fake = make_cursor(paged_handler(1), query={"query": "cql.allRecords=1", "lang": "en"})

    list(cursor)

    assert fake.requests[0].url.params["lang"] == "en"
    assert fake.requests[0].url.params["offset"] == "0"


def test_total_estimate_updates_each_page():
    totals = iter([1500, 1200])

    def shrinking(request):
        offset = int(request.url.params["offset"])
        total = next(totals)
        items = [{"id": str(n)} for n in range(offset, min(offset + 1000, total))]
        return httpx.Response(200, json={"items": items, "totalRecords": total})

    cursor, fake = make_cursor(shrinking)

    assert len(list(cursor)) == 1200
    assert cursor.total_estimate == 1200
    assert offsets(fake) == [0, 1000]


def test_finished_cursor_stays_finished():
    cursor, fake = make_cursor(paged_handler(3))

    list(cursor)

    assert list(cursor) == []
    assert len(fake.requests) == 1


def test_page_failure_keeps_yielded_items():
    cursor, _ = make_cursor(
        [
            paged_handler(1500),
            json_response({"errors": [{"message": "boom"}]}, 500),
        ]
    )

    seen = []
    with pytest.raises(UpstreamDataError) as exc_info:
        for item in cursor:
            seen.append(item)

    assert len(seen) == 1000
    assert str(exc_info.value) == "Error: 'boom' fetching from '/item-storage/items'"
    assert exc_info.value.status_code == 500
    assert exc_info.value.upstream_message == "boom"


def test_invalid_page_size():
    with pytest.raises(ValueError):
        ResultCursor(make_executor(), "items", "/item-storage/items", page_size=0)


def test_fetch_page_and_result_count():
    fake = FakeFolio({ITEMS: paged_handler(42)})
    executor = make_executor(fake=fake)

    page = fetch_page(executor, "items", "/item-storage/items", offset=40, limit=10)
    count = result_count(executor, "/item-storage/items", "barcode=123*")

    assert [item["id"] for item in page.items] == ["40", "41"]
    assert page.total_records == 42
    assert count == 42
    assert fake.requests[1].url.params["limit"] == "0"
    assert fake.requests[1].url.params["query"] == "barcode=123*"


def test_missing_result_key_is_empty_page():
    fake = FakeFolio({ITEMS: json_response({"totalRecords": 0})})

    page = fetch_page(make_executor(fake=fake), "items", "/item-storage/items")

    assert page.items == []


def test_decode_response_unparseable_body():
    fake = FakeFolio({ITEMS: status_response(200, "<html>oops</html>")})
    executor = make_executor(fake=fake)
    response = executor.execute("GET", "/item-storage/items")

    with pytest.raises(UpstreamDataError) as exc_info:
        decode_response(response, "/item-storage/items")
    assert "Unable to parse response body" in str(exc_info.value)
    assert exc_info.value.upstream_message is None


@pytest.mark.parametrize(
    "body",
    [
        {"items": [], "totalRecords": {"approx": 10}},
        {"items": [], "totalRecords": "unknown"},
        {"items": 5, "totalRecords": 1},
        {"items": {"a": 1, "b": 2}, "totalRecords": 2},
    ],
    ids=["total-object", "total-text", "items-number", "items-object"],
)
def test_wrongly_typed_page_fields_raise_upstream_error(body):
    cursor, _ = make_cursor(json_response(body))

    with pytest.raises(UpstreamDataError) as exc_info:
        list(cursor)
    assert str(exc_info.value) == (
        "Error: 'Unable to parse response body' fetching from '/item-storage/items'"
    )
    assert exc_info.value.status_code == 200


def test_numeric_text_total_is_accepted():
    cursor, _ = make_cursor(json_response({"items": [{"id": "1"}], "totalRecords": "1"}))

    assert list(cursor) == [{"id": "1"}]
    assert cursor.total_estimate == 1


def test_result_count_rejects_malformed_total():
    fake = FakeFolio({ITEMS: json_response({"totalRecords": [3]})})

    with pytest.raises(UpstreamDataError):
        result_count(make_executor(fake=fake), "/item-storage/items")
