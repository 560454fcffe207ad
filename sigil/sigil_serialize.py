from __future__ import annotations

import json
import re
import tomllib
from typing import Any, Optional
import collections.abc

import yaml


# --------------------------
# Helpers
# --------------------------

_TOML_TABLE = re.compile(r'^\[\[?[A-Za-z_][\w.-]*\]\]?$')
_TOML_KEY = re.compile(r'^[A-Za-z_][\w-]*\s*=')

def _norm_text(data: bytes | bytearray | str, *, encoding: Optional[str] = None) -> str:
    if isinstance(data, (bytes, bytearray)):
        enc = encoding or 'utf-8'
        try:
            return data.decode(enc, errors='replace')
        except LookupError:
            return data.decode('utf-8', errors='replace')
    if isinstance(data, str):
        return data
    return str(data)


def _to_builtin(obj: Any) -> Any:
    # frozensets (flag sets) and tuples become sorted lists / lists
    if isinstance(obj, (frozenset, set)):
        return sorted(_to_builtin(x) for x in obj)
    if isinstance(obj, (list, tuple)):
        return [_to_builtin(x) for x in obj]
    if isinstance(obj, collections.abc.Mapping):
        return {k: _to_builtin(v) for k, v in obj.items()}
    return obj


def detect_format(fmt_hint: Optional[str] = None, data_hint: Optional[str] = None) -> Optional[str]:
    """
    Returns a canonical format name among: 'json', 'yaml', 'toml'.
    Uses the hint first (a format name, file suffix or content type);
    falls back to simple data sniffing if provided.
    """
    hint = (fmt_hint or "").lower().lstrip('.')
    if 'json' in hint:
        return 'json'
    if 'yaml' in hint or hint == 'yml':
        return 'yaml'
    if 'toml' in hint:
        return 'toml'

    if data_hint is not None:
        s = data_hint.lstrip()
        first = s.splitlines()[0].strip() if s else ''
        if _TOML_TABLE.match(first) or _TOML_KEY.match(first):
            return 'toml'
        if s.startswith('{') or s.startswith('['):
            return 'json'
        if s:
            # YAML is a superset of JSON and the most forgiving default
            return 'yaml'
    return None


# --------------------------
# Public API
# --------------------------

def deserialize(data: bytes | bytearray | str,
                *,
                fmt: Optional[str] = None,
                encoding: Optional[str] = None) -> Any:
    """
    Convert manifest text (bytes/string) to native Python structures.
    Supported fmt: 'json', 'yaml', 'toml'. If fmt is None the text is sniffed.
    Returns dict/list/scalars for structured formats; returns raw text for others.
    """
    text = _norm_text(data, encoding=encoding)
    f = detect_format(fmt, text)
    if f == 'json':
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            # Declared JSON but written as YAML
            try:
                return yaml.safe_load(text)
            except yaml.YAMLError:
                return text
    if f == 'yaml':
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError:
            return text
    if f == 'toml':
        try:
            return tomllib.loads(text)
        except tomllib.TOMLDecodeError:
            return text

    # Unknown/unsupported: return text
    return text


def serialize(value: Any,
              *,
              fmt: str,
              pretty: bool = True) -> str:
    """
    Convert a native value into text.
    - fmt: 'json' | 'yaml'
    """
    f = (fmt or '').lower()
    built = _to_builtin(value)
    if f == 'json':
        return json.dumps(built, ensure_ascii=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(built, sort_keys=False)
    if f == 'toml':
        raise ValueError("TOML serialization is not supported (tomllib is read-only)")
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


__all__ = [
    "deserialize",
    "serialize",
    "detect_format",
]
