"""
Policy Engine for iampolicy.

The engine decides, for one request, what a pool of statements yields.

Design Principles:
    - Deny overrides: any matching Deny statement makes the decision Deny
    - Deny-by-default: with no matching statement the decision is ImplicitDeny
    - Order-independent: statement order never changes the decision
    - Total: evaluating a validly constructed Policy never raises
    - Read-only: policies and requests are never mutated

How it works:
    1. Engine receives (policies, request)
    2. Each statement is tested: principal, action, resource, condition
    3. Matching statements are recorded in first-encountered order
    4. Returns EvaluationResult (decision, matched statement ids, reason)
"""

import logging
from collections.abc import Sequence

from iampolicy.policy.conditions import ConditionEvaluator, RequestContext
from iampolicy.policy.matcher import PatternMatcher
from iampolicy.policy.variables import expand
from iampolicy.schema import (
    Decision,
    Effect,
    EvaluationOptions,
    EvaluationResult,
    Policy,
    Request,
    Statement,
    Version,
)

logger = logging.getLogger(__name__)


def statement_label(policy: Policy, policy_index: int, statement: Statement, index: int) -> str:
    """
    Identifier used for a statement in evaluation results.

    The Sid when present, otherwise a positional label such as
    ``"MyPolicy/[2]"`` or ``"[0]/[2]"`` for a policy without an Id.
    """
    if statement.sid:
        return statement.sid
    policy_label = policy.id or f"[{policy_index}]"
    return f"{policy_label}/[{index}]"


class PolicyEngine:
    """
    Evaluates requests against an immutable set of policies.

    Compiled patterns are cached for the engine's lifetime, so reuse one
    engine for repeated evaluations of the same policies. An engine holds
    no per-request state and can be shared between threads.

    Usage:
        engine = PolicyEngine([policy])
        result = engine.evaluate(Request(action="s3:GetObject", resource="arn:aws:s3:::b/k"))
        if result.allowed:
            ...

    Attributes:
        policies: The policies whose statements form the evaluation pool
        options: Engine configuration
    """

    def __init__(
        self,
        policies: Policy | Sequence[Policy],
        options: EvaluationOptions | None = None,
    ) -> None:
        if isinstance(policies, Policy):
            policies = [policies]
        self.policies: tuple[Policy, ...] = tuple(policies)
        self.options = options or EvaluationOptions()
        self.matcher = PatternMatcher()
        self.conditions = ConditionEvaluator(self.matcher)

    def evaluate(self, request: Request) -> EvaluationResult:
        """
        Evaluate a request against every statement of every policy.

        Args:
            request: The request to decide

        Returns:
            EvaluationResult with the decision and the matched statement ids
        """
        context = RequestContext(request.context, self.options.case_insensitive_keys)
        matched: list[str] = []
        denied_by: list[str] = []
        allowed_by: list[str] = []

        for policy_index, policy in enumerate(self.policies):
            expand_variables = self.options.expand_variables and policy.version is Version.V2012
            for index, statement in enumerate(policy.statements):
                label = statement_label(policy, policy_index, statement, index)
                if not self.statement_matches(statement, request, context, expand_variables, label):
                    continue
                matched.append(label)
                if statement.effect is Effect.DENY:
                    denied_by.append(label)
                else:
                    allowed_by.append(label)

        if denied_by:
            result = EvaluationResult(
                decision=Decision.DENY,
                matched_statements=tuple(matched),
                reason=f"Explicitly denied by statement {denied_by[0]}",
            )
        elif allowed_by:
            result = EvaluationResult(
                decision=Decision.ALLOW,
                matched_statements=tuple(matched),
                reason=f"Allowed by statement {allowed_by[0]}",
            )
        else:
            result = EvaluationResult(
                decision=Decision.IMPLICIT_DENY,
                reason="No statement matched the request",
            )

        logger.debug(
            "Request %s on %s: %s (matched: %s)",
            request.action,
            request.resource,
            result.decision.value,
            ", ".join(result.matched_statements) or "none",
        )
        return result

    def statement_matches(
        self,
        statement: Statement,
        request: Request,
        context: RequestContext | None = None,
        expand_variables: bool = False,
        label: str = "",
    ) -> bool:
        """
        Test whether a single statement applies to the request.

        A statement matches only if its principal, action, resource and
        condition tests all pass.
        """
        if context is None:
            context = RequestContext(request.context, self.options.case_insensitive_keys)

        if not self._principal_matches(statement, request):
            logger.debug("Statement %s: principal did not match", label)
            return False
        if not self._action_matches(statement, request.action):
            logger.debug("Statement %s: action %s did not match", label, request.action)
            return False
        if not self._resource_matches(statement, request.resource, context, expand_variables):
            logger.debug("Statement %s: resource %s did not match", label, request.resource)
            return False
        if not self.conditions.evaluate_block(statement.condition, context, expand_variables):
            logger.debug("Statement %s: condition did not match", label)
            return False
        logger.debug("Statement %s matched (%s)", label, statement.effect.value)
        return True

    # =========================================================================
    # Element Tests
    # =========================================================================

    def _principal_matches(self, statement: Statement, request: Request) -> bool:
        """
        Principal test.

        Principal passes iff the request principal is named in it;
        NotPrincipal passes iff it is not. A statement with neither block
        applies to every principal.
        """
        block, negated = statement.principal_block
        if block is None:
            return True
        if request.principal is None:
            return self.options.skip_principal_when_absent

        named = block.contains(request.principal.principal_type, request.principal.identifier)
        return not named if negated else named

    def _action_matches(self, statement: Statement, action: str) -> bool:
        patterns, negated = statement.action_block
        hit = any(self.matcher.action_matches(p, action) for p in patterns)
        return not hit if negated else hit

    def _resource_matches(
        self,
        statement: Statement,
        resource: str,
        context: RequestContext,
        expand_variables: bool,
    ) -> bool:
        patterns, negated = statement.resource_block
        if expand_variables:
            patterns = tuple(expand(p, context.single) for p in patterns)
        hit = any(self.matcher.resource_matches(p, resource) for p in patterns)
        return not hit if negated else hit


def evaluate(
    policies: Policy | Sequence[Policy],
    request: Request,
    options: EvaluationOptions | None = None,
) -> EvaluationResult:
    """
    Evaluate a request against policies.

    The compiled-pattern cache lives only for this call; use PolicyEngine
    directly to keep it across calls.
    """
    return PolicyEngine(policies, options).evaluate(request)
