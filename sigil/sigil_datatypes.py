"""
Defines the core data types for the SIGIL runtime.

This module provides the clause, guard, match-chain and literal-tag types
that the dispatcher, combinator, match evaluator and registry work with,
plus the error taxonomy shared by all of them.
"""

import inspect
import operator
import os
import sys
from abc import ABC
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

# =================================================================
# Errors
# =================================================================

class SigilError(Exception):
    """Base class for all SIGIL runtime errors."""
    pass


class NoClauseMatched(SigilError):
    """Raised when dispatch exhausts its clauses without a true guard."""
    def __init__(self, context: Any, clause_count: int = 0):
        super().__init__(f"no clause matched {context!r} ({clause_count} clauses tried)")
        self.context = context
        self.clause_count = clause_count


class GuardEvaluationFailed(SigilError):
    """Raised when a guard itself fails. The original error is the __cause__."""
    def __init__(self, index: int, context: Any, error: Optional[BaseException] = None):
        detail = f": {type(error).__name__}: {error}" if error is not None else ""
        super().__init__(f"guard of clause {index} failed{detail}")
        self.index = index
        self.context = context


class UnknownTag(SigilError, LookupError):
    def __init__(self, tag: str):
        super().__init__(f"no literal tag registered as {tag!r}")
        self.tag = tag


class NoFlagVariant(SigilError, LookupError):
    def __init__(self, tag: str, flags: FrozenSet[str]):
        shown = ''.join(sorted(flags)) or '(none)'
        super().__init__(f"tag {tag!r} has no variant for flags {shown}")
        self.tag = tag
        self.flags = flags


class LiteralSyntaxError(SigilError, SyntaxError):
    """Malformed literal source such as an unterminated body."""
    def __init__(self, message: str, col: Optional[int] = None):
        super().__init__(message)
        self.col = col


# =================================================================
# Sentinels
# =================================================================

class _NotFoundType:
    """Singleton result of a key-path lookup that found nothing."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NotFound"

    def __reduce__(self):
        return (_NotFoundType, ())

NotFound = _NotFoundType()


class Traced:
    """Mixin giving components a `_dbg` hook.

    Lines go to the `debug` callback when one was supplied, otherwise to stderr
    when SIGIL_DEBUG is set in the environment.
    """
    debug: Optional[Callable[[str], None]] = None

    def _dbg(self, *parts):
        if self.debug is not None:
            self.debug(" ".join(str(p) for p in parts))
            return
        if os.environ.get("SIGIL_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)


def normalize_flags(flags: Union[None, str, Iterable[str]]) -> FrozenSet[str]:
    """Accepts a flag string ('il'), any iterable of characters, or None."""
    if flags is None:
        return frozenset()
    out = frozenset(flags)
    for f in out:
        if not isinstance(f, str) or len(f) != 1:
            raise ValueError(f"flags must be single characters, got {f!r}")
    return out


def call_with_bindings(fn: Callable, bindings: Dict[str, Any]) -> Any:
    """Call fn with the bindings dict when it takes an argument, otherwise with none."""
    try:
        params = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError):
        # Builtins without a signature: assume zero-arg
        return fn()
    takes_arg = any(
        p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD, p.VAR_POSITIONAL)
        for p in params
    )
    return fn(bindings) if takes_arg else fn()


# =================================================================
# Guard Expressions
# =================================================================

class GuardExpression(ABC):
    """Abstract base for the guard tree: Literal, Comparison, Or, And.

    Nodes are immutable and side-effect free. `a | b` and `a & b` build
    Or/And nodes so guards can be written inline.
    """
    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __or__(self, other: 'GuardExpression') -> 'Or':
        return Or([self, other])

    def __and__(self, other: 'GuardExpression') -> 'And':
        return And([self, other])

    def __repr__(self) -> str:
        from sigil.sigil_printer import Printer
        return Printer().pformat(self)


class Literal(GuardExpression):
    def __init__(self, value: bool):
        object.__setattr__(self, "value", bool(value))

    def __eq__(self, other):
        return isinstance(other, Literal) and self.value == other.value

    def __hash__(self):
        return hash(('literal', self.value))


class Ref:
    """A key path into the guard context, e.g. Ref('user', 'age')."""
    def __init__(self, *keys: Union[str, int]):
        object.__setattr__(self, "keys", tuple(keys))

    def __setattr__(self, name, value):
        raise AttributeError("Ref is immutable")

    def __repr__(self) -> str:
        from sigil.sigil_printer import Printer
        return Printer().pformat(self)

    def __eq__(self, other):
        return isinstance(other, Ref) and self.keys == other.keys

    def __hash__(self):
        return hash(('ref', self.keys))


def _contains(a, b):
    return a in b

def _not_contains(a, b):
    return a not in b

COMPARISON_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    '=': operator.eq,
    '!=': operator.ne,
    '<': operator.lt,
    '<=': operator.le,
    '>': operator.gt,
    '>=': operator.ge,
    'in': _contains,
    'not-in': _not_contains,
}


class Comparison(GuardExpression):
    """Compares two operands. Ref operands are resolved against the context."""
    def __init__(self, op: str, a: Any, b: Any):
        if op not in COMPARISON_OPERATORS:
            raise ValueError(f"unknown comparison operator {op!r}")
        object.__setattr__(self, "op", op)
        object.__setattr__(self, "a", a)
        object.__setattr__(self, "b", b)

    def __eq__(self, other):
        return (
            isinstance(other, Comparison) and
            self.op == other.op and self.a == other.a and self.b == other.b
        )

    def __hash__(self):
        try:
            return hash(('cmp', self.op, self.a, self.b))
        except TypeError:
            return hash(('cmp', self.op))


class _Branch(GuardExpression):
    def __init__(self, exprs: Iterable[GuardExpression]):
        flat: List[GuardExpression] = []
        for e in exprs:
            # Flatten same-kind children so (a | b) | c is one Or of three
            if type(e) is type(self):
                flat.extend(e.exprs)
            else:
                flat.append(e)
        object.__setattr__(self, "exprs", tuple(flat))

    def __eq__(self, other):
        return type(other) is type(self) and self.exprs == other.exprs

    def __hash__(self):
        return hash((type(self).__name__, self.exprs))


class Or(_Branch):
    """True at the first true sub-expression; empty Or is false."""
    pass


class And(_Branch):
    """False at the first false sub-expression; empty And is true."""
    pass


Guard = Union[GuardExpression, Callable[[Any], Any]]


# =================================================================
# Clauses
# =================================================================

class Clause:
    """A (guard, handler) pair in an ordered, precedence-significant list."""
    def __init__(self, guard: Guard, handler: Callable[[Any], Any], name: Optional[str] = None):
        if not isinstance(guard, GuardExpression) and not callable(guard):
            raise TypeError("clause guard must be a GuardExpression or a callable")
        if not callable(handler):
            raise TypeError("clause handler must be callable")
        self.guard = guard
        self.handler = handler
        self.name = name

    def or_guard(self, extra: Guard) -> 'Clause':
        """Returns a copy that also matches when `extra` holds."""
        return Clause(_as_expression(self.guard) | _as_expression(extra), self.handler, self.name)

    def __repr__(self) -> str:
        label = f" {self.name}" if self.name else ""
        return f"<Clause{label} guard={self.guard!r}>"


class Predicate(GuardExpression):
    """Wraps a plain callable so it can sit inside an Or/And tree."""
    def __init__(self, fn: Callable[[Any], Any]):
        object.__setattr__(self, "fn", fn)

    def __eq__(self, other):
        return isinstance(other, Predicate) and self.fn is other.fn

    def __hash__(self):
        return hash(('pred', id(self.fn)))


def _as_expression(guard: Guard) -> GuardExpression:
    if isinstance(guard, GuardExpression):
        return guard
    return Predicate(guard)


# =================================================================
# Match Chains
# =================================================================

class Bind:
    """Wildcard pattern. Always matches; records the value under `name` if given."""
    def __init__(self, name: Optional[str] = None):
        self.name = name

    def __repr__(self) -> str:
        return f"Bind({self.name!r})" if self.name else "ANY"

    def __eq__(self, other):
        return isinstance(other, Bind) and self.name == other.name

    def __hash__(self):
        return hash(('bind', self.name))

ANY = Bind()


class MatchStep:
    """One produce-and-compare step of a match chain."""
    def __init__(self, producer: Callable[..., Any], expected: Any = ANY, guard: Optional[Guard] = None):
        if not callable(producer):
            raise TypeError("match step producer must be callable")
        self.producer = producer
        self.expected = expected
        self.guard = guard

    def __repr__(self) -> str:
        return f"<MatchStep expected={self.expected!r}>"


class MatchChain:
    """Ordered match steps plus a body run only when all steps match."""
    def __init__(self, steps: Sequence[Union[MatchStep, Tuple[Callable, Any]]], body: Callable[..., Any]):
        norm: List[MatchStep] = []
        for s in steps:
            norm.append(s if isinstance(s, MatchStep) else MatchStep(*s))
        self.steps: Tuple[MatchStep, ...] = tuple(norm)
        if not callable(body):
            raise TypeError("match chain body must be callable")
        self.body = body

    def __len__(self) -> int:
        return len(self.steps)

    def __repr__(self) -> str:
        return f"<MatchChain steps={len(self.steps)}>"


class MatchResult(ABC):
    """Outcome of running a match chain: AllMatched or MismatchAt."""
    matched: bool = False

    def unwrap(self) -> Any:
        raise NotImplementedError


class AllMatched(MatchResult):
    matched = True

    def __init__(self, value: Any):
        self.value = value

    def unwrap(self) -> Any:
        return self.value

    def __repr__(self) -> str:
        return f"AllMatched({self.value!r})"

    def __eq__(self, other):
        return isinstance(other, AllMatched) and self.value == other.value


class MismatchAt(MatchResult):
    """The first step whose produced value did not match; the chain yields that value."""
    def __init__(self, step_index: int, value: Any):
        self.step_index = step_index
        self.value = value

    def unwrap(self) -> Any:
        return self.value

    def __repr__(self) -> str:
        return f"MismatchAt({self.step_index!r}, {self.value!r})"

    def __eq__(self, other):
        return (
            isinstance(other, MismatchAt) and
            self.step_index == other.step_index and self.value == other.value
        )


# =================================================================
# Literal Tags
# =================================================================

class LiteralTagEntry:
    """A registered handler for one (tag, exact flag set) variant."""
    def __init__(self, tag_name: str, required_flags: FrozenSet[str], handler: Callable[[str, FrozenSet[str]], Any]):
        self.tag_name = tag_name
        self.required_flags = required_flags
        self.handler = handler

    def __repr__(self) -> str:
        flags = ''.join(sorted(self.required_flags))
        return f"<LiteralTagEntry ~{self.tag_name}{flags}>"
