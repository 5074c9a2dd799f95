from folioils.cql import (
    ALL_RECORDS,
    cql_and,
    cql_equals,
    cql_not_equals,
    cql_or,
    escape_cql,
    with_sortby,
)


def test_escape_quotes_and_ampersands():
    assert escape_cql('He said "hi" & left') == 'He said \\"hi\\" %26 left'


def test_escape_plain_value_unchanged():
    assert escape_cql("abc-123") == "abc-123"
    assert escape_cql(42) == "42"


def test_clauses():
    assert cql_equals("barcode", 'a"b') == 'barcode=="a\\"b"'
    assert cql_not_equals("status.name", "Closed") == 'status.name<>"Closed"'


def test_boolean_combinations():
    assert cql_and('a=="1"', "", 'b=="2"') == '(a=="1" and b=="2")'
    assert cql_or('a=="1"', 'b=="2"') == '(a=="1" or b=="2")'
    assert cql_and() == ALL_RECORDS
    assert cql_or("") == ALL_RECORDS


def test_sortby():
    assert with_sortby('a=="1"', "name") == 'a=="1" sortby name'
    assert with_sortby("", "name", "descending") == f"{ALL_RECORDS} sortby name/sort.descending"
