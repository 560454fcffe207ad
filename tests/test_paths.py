import pytest

from sigil.sigil_paths import KeyPathResolver, parse_path
from sigil.sigil_datatypes import NotFound


DATA = {
    "name": {"first": "a", "last": None},
    "items": [{"id": 1}, {"id": 2}],
    "count": 3,
    "text": "hello",
}


def test_nested_lookup():
    r = KeyPathResolver()
    assert r.resolve({"name": {"first": "a"}}, ["name", "first"]) == "a"
    assert r.resolve({"name": {"first": "a"}}, ["name", "last"]) is NotFound


def test_empty_path_returns_root():
    r = KeyPathResolver()
    assert r.resolve(DATA, []) is DATA
    assert r.resolve(7, ()) == 7


def test_sequences_take_integer_indices():
    r = KeyPathResolver()
    assert r.resolve(DATA, ["items", 1, "id"]) == 2
    assert r.resolve(DATA, ["items", -1, "id"]) == 2
    assert r.resolve(DATA, ["items", 5]) is NotFound
    assert r.resolve(DATA, ["items", "0"]) is NotFound
    assert r.resolve(DATA, ["items", True]) is NotFound


def test_stored_none_is_found():
    assert KeyPathResolver().resolve(DATA, ["name", "last"]) is None


def test_non_containers_stop_resolution():
    r = KeyPathResolver()
    assert r.resolve(DATA, ["count", "x"]) is NotFound
    # strings are not treated as sequences of characters
    assert r.resolve(DATA, ["text", 0]) is NotFound


def test_unhashable_key_is_a_miss():
    assert KeyPathResolver().resolve(DATA, [["name"]]) is NotFound


def test_string_paths_are_parsed():
    r = KeyPathResolver()
    assert r.resolve(DATA, "items[0].id") == 1
    assert r.resolve(DATA, "name.first") == "a"
    assert r.resolve(DATA, "") is DATA


@pytest.mark.parametrize(
    "text,expected",
    [
        ("a", ["a"]),
        ("a.b.c", ["a", "b", "c"]),
        ("a[0].b", ["a", 0, "b"]),
        ("a[-1]", ["a", -1]),
        ("[2][3]", [2, 3]),
        ("a.0", ["a", "0"]),
        ("  a.b  ", ["a", "b"]),
    ],
)
def test_parse_path(text, expected):
    assert parse_path(text) == expected


@pytest.mark.parametrize("text", ["a..b", "a[x]", "a[", "a]"])
def test_parse_path_rejects_malformed(text):
    with pytest.raises(ValueError):
        parse_path(text)


def test_not_found_is_a_falsy_singleton():
    assert not NotFound
    assert repr(NotFound) == "NotFound"
    assert type(NotFound)() is NotFound


@pytest.mark.parametrize("text", ["a..b", "a[x]", "name]"])
def test_malformed_string_paths_resolve_to_not_found(text):
    assert KeyPathResolver().resolve(DATA, text) is NotFound
