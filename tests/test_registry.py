import threading

import pytest

from sigil.sigil_registry import LiteralTagRegistry, literal_tag, import_handler
from sigil.sigil_datatypes import UnknownTag, NoFlagVariant


def lowercase(body, flags):
    return body.lower()


def chars(body, flags):
    return list(body.lower())


@pytest.fixture
def registry():
    r = LiteralTagRegistry()
    r.register("l", "", lowercase)
    r.register("l", {"l"}, chars)
    return r


def test_plain_and_flagged_variants(registry):
    assert registry.compile("l", "HELLO", set()) == "hello"
    assert registry.compile("l", "HELLO", {"l"}) == ["h", "e", "l", "l", "o"]
    assert registry.compile("l", "HELLO", "l") == ["h", "e", "l", "l", "o"]


def test_unknown_tag(registry):
    with pytest.raises(UnknownTag) as exc:
        registry.compile("u", "x", set())
    assert exc.value.tag == "u"


def test_flags_must_match_exactly(registry):
    # {'l', 'x'} is a superset of a registered variant, not equal to it
    with pytest.raises(NoFlagVariant) as exc:
        registry.compile("l", "HELLO", {"l", "x"})
    assert exc.value.tag == "l"
    assert exc.value.flags == frozenset({"l", "x"})


def test_lookup_misses_are_lookup_errors(registry):
    with pytest.raises(LookupError):
        registry.compile("zz", "", None)


def test_reregistration_shadows_without_removing(registry):
    registry.register("l", "", lambda body, flags: "shadowed")
    assert registry.compile("l", "HELLO", "") == "shadowed"
    # The original entry is still there, behind the new one
    assert len(registry.variants("l")) == 3
    assert registry.variants("l")[-1].handler is lowercase
    assert len(registry) == 3


def test_handler_receives_body_and_frozen_flags():
    seen = []
    r = LiteralTagRegistry()
    r.register("x", "ab", lambda body, flags: seen.append((body, flags)))
    r.compile("x", "raw", "ba")
    assert seen == [("raw", frozenset("ab"))]


def test_handler_errors_propagate():
    def bad(body, flags):
        raise ValueError("nope")

    r = LiteralTagRegistry()
    r.register("b", "", bad)
    with pytest.raises(ValueError, match="nope"):
        r.compile("b", "", "")


def test_registration_is_validated():
    r = LiteralTagRegistry()
    with pytest.raises(TypeError):
        r.register("l", "", None)
    with pytest.raises(ValueError):
        r.register("", "", lowercase)
    with pytest.raises(ValueError):
        r.register("l", ["ab"], lowercase)
    assert len(r) == 0


def test_tags_listing_and_contains(registry):
    registry.register("w", "", str.split)
    assert registry.tags() == ["l", "w"]
    assert "w" in registry
    assert "q" not in registry
    assert registry.describe()[1] == {"tag": "l", "flags": "l", "handler": "chars"}


class Host:
    def __init__(self, suffix):
        self.suffix = suffix

    @literal_tag("e")
    @literal_tag("e", "u")
    def _echo(self, body, flags):
        out = body + self.suffix
        return out.upper() if "u" in flags else out

    def not_a_tag(self, body, flags):
        return None


def test_register_host_discovers_marked_methods():
    r = LiteralTagRegistry()
    assert r.register_host(Host("!")) == 2
    assert r.compile("e", "hi", "") == "hi!"
    assert r.compile("e", "hi", "u") == "HI!"
    assert r.tags() == ["e"]


@pytest.fixture
def handler_module(tmp_path, monkeypatch):
    """An importable module of tag handlers for manifest tests."""
    (tmp_path / "manifest_handlers.py").write_text(
        "def lowercase(body, flags):\n"
        "    return body.lower()\n"
        "\n"
        "class Words:\n"
        "    @staticmethod\n"
        "    def split(body, flags):\n"
        "        return body.split()\n"
    )
    monkeypatch.syspath_prepend(str(tmp_path))
    return "manifest_handlers"


def test_load_manifest_from_yaml_text(handler_module):
    r = LiteralTagRegistry()
    manifest = f"""
tags:
  - tag: lo
    flags: ""
    handler: "{handler_module}:lowercase"
  - tag: ws
    handler: "{handler_module}:Words.split"
"""
    assert r.load_manifest(manifest, fmt="yaml") == 2
    assert r.compile("lo", "AB", "") == "ab"
    assert r.compile("ws", "a b", "") == ["a", "b"]
    assert r.tags() == ["lo", "ws"]


def test_load_manifest_from_json_file(tmp_path, handler_module):
    path = tmp_path / "tags.json"
    path.write_text('{"tags": [{"tag": "q", "flags": "x", "handler": "%s:lowercase"}]}' % handler_module)
    r = LiteralTagRegistry()
    assert r.load_manifest(path) == 1
    assert r.compile("q", "AB", "x") == "ab"
    with pytest.raises(NoFlagVariant):
        r.compile("q", "AB", "")


def test_load_manifest_from_toml_file(tmp_path, handler_module):
    path = tmp_path / "tags.toml"
    path.write_text('[[tags]]\ntag = "lo"\nhandler = "%s:lowercase"\n' % handler_module)
    r = LiteralTagRegistry()
    assert r.load_manifest(path) == 1
    assert r.compile("lo", "AB", "") == "ab"


def test_load_manifest_rejects_bad_shapes():
    r = LiteralTagRegistry()
    with pytest.raises(ValueError):
        r.load_manifest("just: text", fmt="yaml")
    with pytest.raises(ValueError):
        r.load_manifest("tags:\n  - tag: a\n", fmt="yaml")


def test_import_handler_validates_reference():
    import os.path
    assert import_handler("os.path:join") is os.path.join
    with pytest.raises(ValueError):
        import_handler("no_colon_here")
    with pytest.raises(AttributeError):
        import_handler("os.path:missing")


def test_concurrent_registration_keeps_every_entry():
    r = LiteralTagRegistry()

    def worker(n):
        for i in range(50):
            r.register(f"t{n}", "", lowercase)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(r) == 200
    assert r.compile("t3", "X", "") == "x"
