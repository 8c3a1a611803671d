"""Filter expressions and ignore rules."""

from feedcore.filters.ignores import IgnoreSet, load_rules
from feedcore.filters.matcher import Predicate, compile_predicate

__all__ = ["IgnoreSet", "Predicate", "compile_predicate", "load_rules"]
