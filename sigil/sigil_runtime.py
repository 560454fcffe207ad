# sigil_runtime.py

import itertools
import os
import re
import sys
import collections.abc
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple

import pystache

from sigil.sigil_datatypes import (
    SigilError, NoClauseMatched, GuardEvaluationFailed, UnknownTag, NoFlagVariant,
    LiteralSyntaxError
)
from sigil.sigil_paths import KeyPathResolver, parse_path
from sigil.sigil_multiset import MultisetDiff
from sigil.sigil_registry import LiteralTagRegistry, literal_tag

# ===================================================================
# 1. Literal Source Form
# ===================================================================

# ~TAG<open>BODY<close>FLAGS
_DELIMITERS = {'"': '"', "'": "'", '/': '/', '|': '|', '(': ')', '[': ']', '{': '}', '<': '>'}
_TAG = re.compile(r"~([A-Za-z][A-Za-z0-9_]*)")
_FLAGS = re.compile(r"[A-Za-z]*")


def parse_literal(source: str) -> Tuple[str, str, str]:
    """Splits '~w"a b"c' into ('w', 'a b', 'c').

    A backslash before the closing delimiter escapes it; other backslashes
    are kept as written. Columns in errors are 1-based.
    """
    s = source.strip()
    m = _TAG.match(s)
    if m is None:
        raise LiteralSyntaxError("literal must start with ~ followed by a tag name", col=1)
    tag = m.group(1)
    pos = m.end()
    if pos >= len(s) or s[pos] not in _DELIMITERS:
        raise LiteralSyntaxError(f"expected a delimiter after ~{tag}", col=pos + 1)
    close = _DELIMITERS[s[pos]]
    open_col = pos + 1
    pos += 1
    body: List[str] = []
    while True:
        if pos >= len(s):
            raise LiteralSyntaxError(f"unterminated body for ~{tag}, expected {close!r}", col=open_col)
        ch = s[pos]
        if ch == '\\' and pos + 1 < len(s) and s[pos + 1] == close:
            body.append(close)
            pos += 2
            continue
        if ch == close:
            pos += 1
            break
        body.append(ch)
        pos += 1
    fm = _FLAGS.match(s, pos)
    if fm.end() != len(s):
        raise LiteralSyntaxError(f"unexpected text after ~{tag} literal: {s[fm.end():]!r}", col=fm.end() + 1)
    return tag, ''.join(body), fm.group(0)


# ===================================================================
# 2. Built-in Tags
# ===================================================================

_REGEX_FLAGS = {'i': re.IGNORECASE, 'm': re.MULTILINE, 's': re.DOTALL, 'x': re.VERBOSE}


def _regex_variants(func):
    """Marks func as an ~r handler for every combination of the regex flags."""
    for n in range(len(_REGEX_FLAGS) + 1):
        for combo in itertools.combinations(sorted(_REGEX_FLAGS), n):
            func = literal_tag('r', ''.join(combo))(func)
    return func


def _tmpl_normalize_value(v):
    """Convert values into plain Python types for Mustache."""
    if isinstance(v, collections.abc.Mapping):
        return {k: _tmpl_normalize_value(v[k]) for k in v.keys()}
    if isinstance(v, (list, tuple)):
        return [_tmpl_normalize_value(x) for x in v]
    if isinstance(v, (set, frozenset)):
        return sorted(v)
    return v


class StdTags:
    """The tags every runner starts with. Registered by discovery of @literal_tag."""

    def __init__(self, runner: 'SigilRunner'):
        self.runner = runner
        self.resolver = KeyPathResolver()

    @literal_tag('s')
    def _string(self, body, flags): return body

    @literal_tag('l')
    def _lower(self, body, flags): return body.lower()

    @literal_tag('l', 'l')
    def _lower_chars(self, body, flags): return list(body.lower())

    @literal_tag('w')
    @literal_tag('w', 's')
    def _words(self, body, flags): return body.split()

    @literal_tag('w', 'c')
    def _word_chars(self, body, flags): return [list(w) for w in body.split()]

    @_regex_variants
    def _regex(self, body, flags):
        bits = 0
        for f in flags:
            bits |= _REGEX_FLAGS[f]
        return re.compile(body, bits)

    @literal_tag('p')
    def _path(self, body, flags): return parse_path(body)

    @literal_tag('p', 'g')
    def _get(self, body, flags):
        return self.resolver.resolve(self.runner.bindings, parse_path(body))

    @literal_tag('d')
    def _difference(self, body, flags):
        """'a b a -- a' -> ['b', 'a']"""
        left, _, right = body.partition('--')
        return MultisetDiff.subtract(left.split(), right.split())

    @literal_tag('t')
    def _template(self, body, flags):
        renderer = pystache.Renderer(escape=lambda u: u, missing_tags='ignore')
        return renderer.render(body, _tmpl_normalize_value(self.runner.bindings))


# ===================================================================
# 3. Script Execution
# ===================================================================

Token = Dict[str, Any]

@dataclass
class ExecutionResult:
    """The structured result of compiling a literal."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error_token: Optional[Token] = None
    side_effects: List[Dict] = field(default_factory=list)

    def format_error(self) -> str:
        """Formats an error message with the column if available."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        if self.error_token and self.error_token.get('col') is not None:
            if not msg.startswith("Error at col "):
                return f"Error at col {self.error_token['col']}: {msg}"
        return msg


class SigilRunner:
    """Parses literal source and compiles it through a LiteralTagRegistry.

    The registry is injected (or created here) and is the runner's only
    shared state; `bindings` feed the template and path-get tags.
    """

    def __init__(self,
                 registry: Optional[LiteralTagRegistry] = None,
                 *,
                 bindings: Optional[Dict[str, Any]] = None,
                 load_builtins: bool = True,
                 debug: Optional[Callable[[str], None]] = None,
                 trace: bool = False):
        self.side_effects: List[Dict] = []
        self.bindings: Dict[str, Any] = dict(bindings or {})
        self._debug_callback = debug
        self._tracing = trace or debug is not None or bool(os.environ.get("SIGIL_DEBUG"))
        sink = self._debug if self._tracing else None
        self.registry = registry if registry is not None else LiteralTagRegistry(debug=sink)
        if load_builtins:
            self.registry.register_host(StdTags(self))

    def _debug(self, line: str):
        self.side_effects.append({'topics': ['debug'], 'message': line})
        if self._debug_callback is not None:
            self._debug_callback(line)
        if os.environ.get("SIGIL_DEBUG"):
            print("[DBG]", line, file=sys.stderr)

    def emit(self, topic, *message_parts):
        topics = list(topic) if isinstance(topic, (list, tuple)) else [topic]
        message = " ".join(str(p) for p in message_parts)
        self.side_effects.append({'topics': topics, 'message': message})

    def register(self, tag_name: str, required_flags, handler):
        return self.registry.register(tag_name, required_flags, handler)

    def compile(self, tag_name: str, body: str, flags=None) -> Any:
        """Compiles one literal. Lookup misses raise UnknownTag / NoFlagVariant."""
        if self._tracing:
            self._debug(f"compile ~{tag_name} flags={''.join(sorted(flags or ''))!r}")
        return self.registry.compile(tag_name, body, flags)

    def _format_runtime_error(self, e: BaseException, tag: Optional[str]) -> Tuple[str, Optional[Token]]:
        token = None
        match e:
            case LiteralSyntaxError():
                msg = f"SyntaxError: {e}"
                if e.col is not None:
                    token = {'col': e.col}
            case UnknownTag():
                known = ', '.join(f"~{t}" for t in self.registry.tags()) or 'none'
                msg = f"UnknownTag: ~{e.tag}\nknown tags: {known}"
            case NoFlagVariant():
                from sigil.sigil_printer import Printer
                variants = ', '.join(Printer().pformat(v.required_flags) for v in self.registry.variants(e.tag))
                msg = f"NoFlagVariant: ~{e.tag} does not accept {Printer().pformat(e.flags)}\nvariants: {variants}"
            case GuardEvaluationFailed() | NoClauseMatched():
                msg = f"{type(e).__name__}: {e}"
            case TypeError() | ValueError() | KeyError() | re.error():
                where = f" in (~{tag})" if tag else ""
                msg = f"{type(e).__name__}: invalid-args{where}\n{e}"
            case SigilError():
                msg = f"{type(e).__name__}: {e}"
            case _:
                msg = f"InternalError: {type(e).__name__}: {e}"
        return msg, token

    def _error_result(self, e: BaseException, tag: Optional[str]) -> ExecutionResult:
        msg, token = self._format_runtime_error(e, tag)
        self.side_effects.append({'topics': ['stderr'], 'message': msg})
        return ExecutionResult(
            status='error',
            error_message=msg,
            error_token=token,
            side_effects=list(self.side_effects)
        )

    def run(self, tag_name: str, body: str, flags=None) -> ExecutionResult:
        """Compiles an already split (tag, body, flags) without raising."""
        self.side_effects.clear()
        try:
            value = self.compile(tag_name, body, flags)
        except Exception as e:
            return self._error_result(e, tag_name)
        return ExecutionResult(status='success', value=value, side_effects=list(self.side_effects))

    def handle_literal(self, source: str) -> ExecutionResult:
        """The main entry point: parse and compile one literal, never raising."""
        try:
            tag, body, flags = parse_literal(source)
        except LiteralSyntaxError as e:
            self.side_effects.clear()
            return self._error_result(e, None)
        return self.run(tag, body, flags)
