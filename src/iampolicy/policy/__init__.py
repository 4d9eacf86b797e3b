"""
Policy evaluation for iampolicy.

This package decides what a set of policy statements yields for a request.

Key concepts:
    - PatternMatcher: wildcard matching of action and resource identifiers
    - ConditionEvaluator: the condition operator library with its
      IfExists and ForAllValues/ForAnyValue modifiers
    - PolicyEngine: combines per-statement matches, deny overriding allow

The engine is deny-by-default. It must be:
    - Total: a validly constructed policy never makes it raise
    - Predictable: the same inputs always produce the same decision
    - Auditable: every decision names the statements that produced it
"""

from iampolicy.policy.conditions import ConditionEvaluator, RequestContext
from iampolicy.policy.engine import PolicyEngine, evaluate
from iampolicy.policy.matcher import PatternMatcher, compile_pattern

__all__ = [
    "ConditionEvaluator",
    "PatternMatcher",
    "PolicyEngine",
    "RequestContext",
    "compile_pattern",
    "evaluate",
]
