from sigil.sigil_datatypes import (
    SigilError, NoClauseMatched, GuardEvaluationFailed, UnknownTag, NoFlagVariant, LiteralSyntaxError,
    NotFound, Clause, GuardExpression, Literal, Comparison, Or, And, Predicate, Ref,
    Bind, ANY, MatchStep, MatchChain, MatchResult, AllMatched, MismatchAt, LiteralTagEntry
)
from sigil.sigil_paths import KeyPathResolver, parse_path
from sigil.sigil_multiset import MultisetDiff
from sigil.sigil_combinator import ShortCircuitCombinator, Decision
from sigil.sigil_dispatch import GuardedDispatcher, GuardedFunction, clauses_from
from sigil.sigil_match import MatchChainEvaluator, match_pattern
from sigil.sigil_registry import LiteralTagRegistry, literal_tag, import_handler
from sigil.sigil_printer import Printer
from sigil.sigil_runtime import SigilRunner, ExecutionResult, StdTags, parse_literal
