"""
A pretty-printer for SIGIL values: compile results, match outcomes and guard trees.
"""
import collections.abc
import re

from sigil.sigil_datatypes import (
    Literal, Comparison, Or, And, Predicate, Ref, Bind,
    Clause, AllMatched, MismatchAt, LiteralTagEntry, NotFound
)


class Printer:
    """Formats SIGIL objects into readable strings."""

    def __init__(self, indent_width=2, width=72):
        self._indent_char = " " * indent_width
        self._width = width
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def _get_handler(self, obj):
        """Dispatcher to find the correct formatting method."""
        # Fast path for singletons
        if obj is NotFound: return self._pformat_not_found

        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, re.Pattern): return self._pformat_pattern
        if isinstance(obj, collections.abc.Mapping): return self._pformat_dict
        if isinstance(obj, (list, tuple)): return self._pformat_list
        if isinstance(obj, (set, frozenset)): return self._pformat_set
        if isinstance(obj, str): return self._pformat_str
        # Default to Python's repr for unknown types
        return lambda o, l: repr(o)

    def _create_handlers(self):
        return {
            str: self._pformat_str,
            int: self._pformat_primitive,
            float: self._pformat_primitive,
            bool: self._pformat_bool,
            type(None): self._pformat_none,
            Literal: self._pformat_literal,
            Comparison: self._pformat_comparison,
            Or: self._pformat_or,
            And: self._pformat_and,
            Predicate: self._pformat_predicate,
            Ref: self._pformat_ref,
            Bind: self._pformat_bind,
            Clause: self._pformat_clause,
            AllMatched: self._pformat_all_matched,
            MismatchAt: self._pformat_mismatch_at,
            LiteralTagEntry: self._pformat_entry,
        }

    def _pformat_primitive(self, obj, level):
        return str(obj)

    def _pformat_str(self, obj, level):
        # Basic string formatting, does not handle complex escapes
        return f"'{obj}'"

    def _pformat_bool(self, obj, level):
        return 'true' if obj else 'false'

    def _pformat_none(self, obj, level):
        return 'none'

    def _pformat_not_found(self, obj, level):
        return 'not-found'

    def _pformat_pattern(self, obj, level):
        flags = ''
        for ch, bit in (('i', re.IGNORECASE), ('m', re.MULTILINE), ('s', re.DOTALL), ('x', re.VERBOSE)):
            if obj.flags & bit:
                flags += ch
        return f"~r/{obj.pattern}/{flags}"

    # -----------------------------------------------------------------
    # Collections
    # -----------------------------------------------------------------

    def _pformat_block(self, items, level, open_char, close_char):
        if not items:
            return f"{open_char}{close_char}"
        inline = f"{open_char}{', '.join(items)}{close_char}"
        if len(inline) + len(self._indent_char) * level <= self._width and '\n' not in inline:
            return inline

        outer_indent = self._indent_char * level
        inner_indent = self._indent_char * (level + 1)
        lines = []
        for item in items:
            item_lines = item.splitlines() or [""]
            # Indent the first line; nested lines were indented by the recursive call
            lines.append("\n".join([inner_indent + item_lines[0]] + item_lines[1:]))
        return f"{open_char}\n" + ",\n".join(lines) + f"\n{outer_indent}{close_char}"

    def _pformat_list(self, obj, level):
        items = [self.pformat(x, level + 1) for x in obj]
        return self._pformat_block(items, level, '#[', ']')

    def _pformat_set(self, obj, level):
        if all(isinstance(x, str) and len(x) == 1 for x in obj):
            # Flag sets read best as the flag string itself
            return f"flags'{''.join(sorted(obj))}'"
        items = sorted(self.pformat(x, level + 1) for x in obj)
        return self._pformat_block(items, level, '#{', '}')

    def _pformat_dict(self, obj, level):
        items = [f"{k}: {self.pformat(v, level + 1)}" for k, v in obj.items()]
        return self._pformat_block(items, level, '{', '}')

    # -----------------------------------------------------------------
    # Guards
    # -----------------------------------------------------------------

    def _pformat_literal(self, obj, level):
        return self._pformat_bool(obj.value, level)

    def _pformat_ref(self, obj, level):
        if not obj.keys:
            return '.'
        out = ''
        for k in obj.keys:
            out += f"[{k}]" if isinstance(k, int) else f".{k}"
        return out

    def _pformat_comparison(self, obj, level):
        return f"({self.pformat(obj.a, level)} {obj.op} {self.pformat(obj.b, level)})"

    def _pformat_branch(self, word, exprs, level):
        if not exprs:
            return f"({word})"
        return "(" + f" {word} ".join(self.pformat(e, level) for e in exprs) + ")"

    def _pformat_or(self, obj, level):
        return self._pformat_branch('or', obj.exprs, level)

    def _pformat_and(self, obj, level):
        return self._pformat_branch('and', obj.exprs, level)

    def _pformat_predicate(self, obj, level):
        name = getattr(obj.fn, '__name__', None) or type(obj.fn).__name__
        return f"<predicate {name}>"

    def _pformat_bind(self, obj, level):
        return f"?{obj.name}" if obj.name else '_'

    def _pformat_clause(self, obj, level):
        name = obj.name or getattr(obj.handler, '__name__', 'handler')
        return f"clause {self.pformat(obj.guard, level)} -> {name}"

    # -----------------------------------------------------------------
    # Outcomes
    # -----------------------------------------------------------------

    def _pformat_all_matched(self, obj, level):
        return f"all-matched {self.pformat(obj.value, level)}"

    def _pformat_mismatch_at(self, obj, level):
        return f"mismatch-at {obj.step_index} {self.pformat(obj.value, level)}"

    def _pformat_entry(self, obj, level):
        flags = ''.join(sorted(obj.required_flags))
        name = getattr(obj.handler, '__qualname__', None) or repr(obj.handler)
        return f"~{obj.tag_name}{flags} -> {name}"
