"""
Key-path lookup over nested mappings and sequences.
"""
import collections.abc
import re
from typing import Any, List, Sequence, Union

from sigil.sigil_datatypes import NotFound

PathKey = Union[str, int]

_SEGMENT = re.compile(r"\[(-?\d+)\]|\.?([^.\[\]]+)")


def parse_path(text: str) -> List[PathKey]:
    """Split a dotted path string into keys: 'a.b[0].c' -> ['a', 'b', 0, 'c']."""
    if not isinstance(text, str):
        raise TypeError(f"path must be a string, not {type(text).__name__}")
    text = text.strip()
    if not text:
        return []
    keys: List[PathKey] = []
    pos = 0
    while pos < len(text):
        m = _SEGMENT.match(text, pos)
        if m is None or m.end() == pos:
            raise ValueError(f"malformed path {text!r} at position {pos}")
        if m.group(1) is not None:
            keys.append(int(m.group(1)))
        else:
            keys.append(m.group(2))
        pos = m.end()
    return keys


class KeyPathResolver:
    """Walks a structure one key at a time. Misses return NotFound, never raise."""

    def resolve(self, structure: Any, path: Union[str, Sequence[PathKey]]) -> Any:
        if isinstance(path, str):
            try:
                path = parse_path(path)
            except ValueError:
                return NotFound
        current = structure
        for key in path:
            current = self._step(current, key)
            if current is NotFound:
                return NotFound
        return current

    def _step(self, current: Any, key: PathKey) -> Any:
        if isinstance(current, collections.abc.Mapping):
            try:
                return current[key]
            except (KeyError, TypeError):
                # TypeError covers unhashable keys
                return NotFound
        if isinstance(current, collections.abc.Sequence) and not isinstance(current, (str, bytes, bytearray)):
            if not isinstance(key, int) or isinstance(key, bool):
                return NotFound
            if -len(current) <= key < len(current):
                return current[key]
            return NotFound
        return NotFound
