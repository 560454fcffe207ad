"""
Short-circuit OR/AND over lazy thunks, and lazy evaluation of guard trees.
"""
from functools import partial
from typing import Any, Callable, Iterable, Optional

from sigil.sigil_datatypes import (
    Traced, GuardExpression, Literal, Comparison, Or, And, Predicate, Ref,
    COMPARISON_OPERATORS, NotFound
)
from sigil.sigil_paths import KeyPathResolver

Thunk = Callable[[], Any]


class Decision:
    """Outcome of a short-circuit scan.

    Truthy iff `value`; unpacks as (value, index) where index is the first
    decisive thunk, or None when the scan ran to the end.
    """
    __slots__ = ('value', 'index')

    def __init__(self, value: bool, index: Optional[int]):
        self.value = value
        self.index = index

    def __bool__(self) -> bool:
        return self.value

    def __iter__(self):
        return iter((self.value, self.index))

    def __eq__(self, other):
        if isinstance(other, Decision):
            return self.value == other.value and self.index == other.index
        if isinstance(other, tuple):
            return (self.value, self.index) == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"Decision({self.value!r}, {self.index!r})"


class ShortCircuitCombinator(Traced):
    """Evaluates OR/AND chains left to right, stopping at the first decisive value."""

    def __init__(self, resolver: Optional[KeyPathResolver] = None, debug: Optional[Callable[[str], None]] = None):
        self.resolver = resolver or KeyPathResolver()
        self.debug = debug

    def evaluate_or(self, thunks: Iterable[Thunk]) -> Decision:
        for i, thunk in enumerate(thunks):
            if thunk():
                self._dbg("or: true at", i)
                return Decision(True, i)
        return Decision(False, None)

    def evaluate_and(self, thunks: Iterable[Thunk]) -> Decision:
        for i, thunk in enumerate(thunks):
            if not thunk():
                self._dbg("and: false at", i)
                return Decision(False, i)
        return Decision(True, None)

    def evaluate(self, expr: Any, context: Any) -> bool:
        """Evaluates a guard tree (or a plain predicate callable) against context."""
        match expr:
            case Literal():
                return expr.value
            case Comparison():
                return self._compare(expr, context)
            case Or():
                return self.evaluate_or(partial(self.evaluate, e, context) for e in expr.exprs).value
            case And():
                return self.evaluate_and(partial(self.evaluate, e, context) for e in expr.exprs).value
            case Predicate():
                return bool(expr.fn(context))
            case GuardExpression():
                raise TypeError(f"unsupported guard expression {type(expr).__name__}")
            case _ if callable(expr):
                return bool(expr(context))
            case _:
                raise TypeError(f"guard must be a GuardExpression or callable, not {type(expr).__name__}")

    def _operand(self, operand: Any, context: Any) -> Any:
        if isinstance(operand, Ref):
            return self.resolver.resolve(context, operand.keys)
        return operand

    def _compare(self, expr: Comparison, context: Any) -> bool:
        a = self._operand(expr.a, context)
        b = self._operand(expr.b, context)
        # A missing reference is a plain miss, not a failure
        if a is NotFound or b is NotFound:
            return False
        return bool(COMPARISON_OPERATORS[expr.op](a, b))
