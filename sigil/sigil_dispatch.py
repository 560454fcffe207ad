"""
First-match clause selection.

A dispatch target is an ordered sequence of Clause objects. The first clause
whose guard holds for the context handles it; later clauses are never
looked at. Guards may be GuardExpression trees (evaluated lazily through the
ShortCircuitCombinator) or plain predicates over the context.
"""
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from sigil.sigil_datatypes import (
    Traced, Clause, Guard, NoClauseMatched, GuardEvaluationFailed
)
from sigil.sigil_combinator import ShortCircuitCombinator


class GuardedDispatcher(Traced):
    """Selects and runs the first clause whose guard matches."""

    def __init__(self, combinator: Optional[ShortCircuitCombinator] = None, debug: Optional[Callable[[str], None]] = None):
        self.combinator = combinator or ShortCircuitCombinator(debug=debug)
        self.debug = debug

    def _guard_holds(self, index: int, guard: Guard, context: Any) -> bool:
        try:
            return self.combinator.evaluate(guard, context)
        except Exception as e:
            self._dbg("guard", index, "raised", type(e).__name__, e)
            raise GuardEvaluationFailed(index, context, e) from e

    def select(self, clauses: Sequence[Clause], context: Any) -> Tuple[int, Clause]:
        """Returns (index, clause) of the first clause whose guard holds."""
        count = 0
        for i, clause in enumerate(clauses):
            count += 1
            if self._guard_holds(i, clause.guard, context):
                self._dbg("dispatch: clause", i, clause.name or "", "matched")
                return i, clause
        self._dbg("dispatch: no clause matched after", count)
        raise NoClauseMatched(context, count)

    def dispatch(self, clauses: Sequence[Clause], context: Any) -> Any:
        _, clause = self.select(clauses, context)
        return clause.handler(context)


class GuardedFunction:
    """A callable built from clauses added over time, in definition order.

    Each `when(...)` call appends a clause; calling the function dispatches
    its single argument through them.
    """
    def __init__(self, name: Optional[str] = None, dispatcher: Optional[GuardedDispatcher] = None):
        self.name = name
        self.dispatcher = dispatcher or GuardedDispatcher()
        self._clauses: List[Clause] = []

    @property
    def clauses(self) -> Tuple[Clause, ...]:
        return tuple(self._clauses)

    def add_clause(self, clause: Clause) -> 'GuardedFunction':
        self._clauses.append(clause)
        return self

    def when(self, guard: Guard) -> Callable[[Callable[[Any], Any]], Callable[[Any], Any]]:
        """Decorator form: @fn.when(Comparison('>', Ref(), 0))."""
        def deco(handler):
            self.add_clause(Clause(guard, handler, getattr(handler, '__name__', None)))
            return handler
        return deco

    def __call__(self, context: Any) -> Any:
        return self.dispatcher.dispatch(self.clauses, context)

    def __repr__(self) -> str:
        return f"<GuardedFunction name={self.name!r} clauses={len(self._clauses)}>"


def clauses_from(pairs: Iterable[Tuple[Guard, Callable[[Any], Any]]]) -> Tuple[Clause, ...]:
    """Builds an immutable clause tuple from (guard, handler) pairs."""
    return tuple(p if isinstance(p, Clause) else Clause(*p) for p in pairs)
