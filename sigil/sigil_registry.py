"""
The literal-tag registry.

Maps a tag name plus an exact flag set to a handler(body, flags). Entries are
append-only; registering the same (tag, flags) again shadows the earlier
entry for lookup without removing it. Lookup is a GuardedDispatcher run over
the tag's entries, newest first, with one "flags == required" guard each.
"""
import importlib
import inspect
import threading
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

from sigil.sigil_datatypes import (
    Traced, Clause, Comparison, Ref, LiteralTagEntry,
    NoClauseMatched, UnknownTag, NoFlagVariant, normalize_flags
)
from sigil.sigil_dispatch import GuardedDispatcher

Flags = Union[None, str, Iterable[str]]
TagHandler = Callable[[str, FrozenSet[str]], Any]


def literal_tag(name: str, flags: Flags = None):
    """A decorator marking a method as a literal-tag handler for register_host."""
    def deco(func):
        variants = list(getattr(func, '_literal_tags', []))
        variants.append((name, normalize_flags(flags)))
        func._literal_tags = variants
        return func
    return deco


class LiteralTagRegistry(Traced):
    """Process-wide (or per-runner) registry of literal-tag handlers."""

    def __init__(self, dispatcher: Optional[GuardedDispatcher] = None, debug: Optional[Callable[[str], None]] = None):
        self.dispatcher = dispatcher or GuardedDispatcher(debug=debug)
        self.debug = debug
        self._entries: List[LiteralTagEntry] = []
        self._lock = threading.Lock()

    def register(self, tag_name: str, required_flags: Flags, handler: TagHandler) -> LiteralTagEntry:
        if not isinstance(tag_name, str) or not tag_name:
            raise ValueError("tag name must be a non-empty string")
        if not callable(handler):
            raise TypeError(f"handler for tag {tag_name!r} must be callable, not {type(handler).__name__}")
        entry = LiteralTagEntry(tag_name, normalize_flags(required_flags), handler)
        with self._lock:
            self._entries.append(entry)
        self._dbg("register", repr(entry))
        return entry

    def _snapshot(self) -> Tuple[LiteralTagEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def variants(self, tag_name: str) -> List[LiteralTagEntry]:
        """Entries for tag_name in lookup order (most recently registered first)."""
        return [e for e in reversed(self._snapshot()) if e.tag_name == tag_name]

    def tags(self) -> List[str]:
        seen: Dict[str, None] = {}
        for e in self._snapshot():
            seen.setdefault(e.tag_name, None)
        return list(seen)

    def compile(self, tag_name: str, body: str, flags: Flags = None) -> Any:
        flag_set = normalize_flags(flags)
        entries = self.variants(tag_name)
        if not entries:
            raise UnknownTag(tag_name)
        clauses = tuple(
            Clause(Comparison('=', Ref('flags'), e.required_flags), self._invoke(e), repr(e))
            for e in entries
        )
        context = {'tag': tag_name, 'body': body, 'flags': flag_set}
        try:
            _, clause = self.dispatcher.select(clauses, context)
        except NoClauseMatched:
            raise NoFlagVariant(tag_name, flag_set) from None
        return clause.handler(context)

    @staticmethod
    def _invoke(entry: LiteralTagEntry) -> Callable[[Dict[str, Any]], Any]:
        def handler(context):
            return entry.handler(context['body'], context['flags'])
        return handler

    def describe(self) -> List[Dict[str, Any]]:
        """A plain, serializable listing of every entry in registration order."""
        out = []
        for e in self._snapshot():
            fn = e.handler
            out.append({
                'tag': e.tag_name,
                'flags': ''.join(sorted(e.required_flags)),
                'handler': getattr(fn, '__qualname__', None) or repr(fn),
            })
        return out

    def __contains__(self, tag_name: object) -> bool:
        return any(e.tag_name == tag_name for e in self._snapshot())

    def __len__(self) -> int:
        return len(self._snapshot())

    def __repr__(self) -> str:
        return f"<LiteralTagRegistry tags={self.tags()!r} entries={len(self)}>"

    # -----------------------------------------------------------------
    # Discovery
    # -----------------------------------------------------------------

    def register_host(self, host: Any) -> int:
        """Registers every @literal_tag method on host. Returns the number added."""
        added = 0
        for _name, member in inspect.getmembers(host):
            for tag_name, flags in getattr(member, '_literal_tags', ()):
                self.register(tag_name, flags, member)
                added += 1
        return added

    def load_manifest(self, source: Union[str, Path], fmt: Optional[str] = None) -> int:
        """Registers handlers listed in a JSON/YAML/TOML manifest.

        Expected shape:
            tags:
              - {tag: l, flags: "", handler: "package.module:function"}

        `source` is a Path to a manifest file or the manifest text itself.
        """
        from sigil.sigil_serialize import deserialize
        if isinstance(source, Path):
            text = source.read_text(encoding='utf-8')
            if fmt is None:
                fmt = {'.yml': 'yaml'}.get(source.suffix, source.suffix.lstrip('.') or None)
        else:
            text = source
        data = deserialize(text, fmt=fmt)
        if not isinstance(data, dict) or not isinstance(data.get('tags'), list):
            raise ValueError("manifest must be a mapping with a 'tags' list")
        added = 0
        for item in data['tags']:
            if not isinstance(item, dict) or 'tag' not in item or 'handler' not in item:
                raise ValueError(f"manifest entry needs 'tag' and 'handler': {item!r}")
            handler = import_handler(item['handler'])
            self.register(str(item['tag']), item.get('flags') or '', handler)
            added += 1
        return added


def import_handler(target: str) -> Callable:
    """Resolves 'package.module:attr.path' to the object it names."""
    if not isinstance(target, str) or ':' not in target:
        raise ValueError(f"handler reference must look like 'module:attr', got {target!r}")
    module_name, _, attr_path = target.partition(':')
    obj: Any = importlib.import_module(module_name)
    for part in attr_path.split('.'):
        obj = getattr(obj, part)
    if not callable(obj):
        raise TypeError(f"{target!r} does not name a callable")
    return obj
