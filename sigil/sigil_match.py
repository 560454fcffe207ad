"""
Sequential match chains.

Each step produces a value and compares it with its expected pattern. The
first mismatch ends the chain and the mismatching value becomes the result;
only a fully matched chain runs its body.
"""
import collections.abc
from typing import Any, Callable, Dict, Mapping, Optional

from sigil.sigil_datatypes import (
    Traced, Bind, MatchChain, MatchResult, AllMatched, MismatchAt, call_with_bindings
)
from sigil.sigil_combinator import ShortCircuitCombinator

_NO_MATCH = object()


def match_pattern(pattern: Any, value: Any, bindings: Dict[str, Any]) -> bool:
    """Structural match of value against pattern, recording binders into bindings.

    Bindings are only written when the whole pattern matches. A binder whose
    name is already bound must see an equal value.
    """
    scratch: Dict[str, Any] = {}
    if _match(pattern, value, scratch, bindings) is _NO_MATCH:
        return False
    bindings.update(scratch)
    return True


def _match(pattern, value, scratch, bound):
    if isinstance(pattern, Bind):
        if pattern.name is not None:
            if pattern.name in scratch:
                if scratch[pattern.name] != value:
                    return _NO_MATCH
            elif pattern.name in bound and bound[pattern.name] != value:
                return _NO_MATCH
            scratch[pattern.name] = value
        return True
    if isinstance(pattern, (list, tuple)):
        if type(value) is not type(pattern) or len(value) != len(pattern):
            return _NO_MATCH
        for p, v in zip(pattern, value):
            if _match(p, v, scratch, bound) is _NO_MATCH:
                return _NO_MATCH
        return True
    if isinstance(pattern, collections.abc.Mapping):
        if not isinstance(value, collections.abc.Mapping):
            return _NO_MATCH
        for k, p in pattern.items():
            if k not in value:
                return _NO_MATCH
            if _match(p, value[k], scratch, bound) is _NO_MATCH:
                return _NO_MATCH
        return True
    if pattern == value:
        return True
    return _NO_MATCH


class MatchChainEvaluator(Traced):
    def __init__(self, combinator: Optional[ShortCircuitCombinator] = None, debug: Optional[Callable[[str], None]] = None):
        self.combinator = combinator or ShortCircuitCombinator(debug=debug)
        self.debug = debug

    def run(self, chain: MatchChain, context: Optional[Mapping[str, Any]] = None) -> MatchResult:
        bindings: Dict[str, Any] = dict(context or {})
        for i, step in enumerate(chain.steps):
            produced = call_with_bindings(step.producer, bindings)
            if not match_pattern(step.expected, produced, bindings):
                self._dbg("chain: mismatch at step", i, "value", repr(produced))
                return MismatchAt(i, produced)
            if step.guard is not None and not self.combinator.evaluate(step.guard, bindings):
                self._dbg("chain: guard rejected step", i)
                return MismatchAt(i, produced)
        self._dbg("chain: all", len(chain.steps), "steps matched")
        return AllMatched(call_with_bindings(chain.body, bindings))
