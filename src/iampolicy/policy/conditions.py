"""
Condition evaluation for iampolicy.

A Condition block maps operators to ``{context-key: expected values}``.
The block passes only if every (operator, key) entry passes.

Per entry:
    1. Null checks presence: expected "true" passes when the key is absent,
       "false" when it is present. Modifiers do not change this.
    2. If the key is absent: IfExists passes, ForAllValues passes
       vacuously, a negated operator passes, anything else fails.
    3. Otherwise each request value is tested against the expected values.
       A positive operator passes for a value that matches any expected
       value; a negated operator for a value that matches none of them.
    4. ForAllValues needs every request value to pass. ForAnyValue, and
       the unquantified form, need at least one.

Request values that cannot be read as the operator's type (a non-number
for Numeric*, a malformed address for IpAddress, ...) never match.
"""

import base64
import binascii
import ipaddress
import logging
import operator as op
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation

from iampolicy.policy.matcher import PatternMatcher
from iampolicy.policy.variables import expand
from iampolicy.schema import ConditionBlock, ConditionOperator, OperatorName, Quantifier

logger = logging.getLogger(__name__)

Comparator = Callable[[str, str, PatternMatcher], bool]


class RequestContext:
    """
    Read-only view over a request's condition context.

    Keys with no values are treated as absent.

    Args:
        values: Mapping of context key to values
        case_insensitive: Look keys up ignoring case
    """

    def __init__(
        self,
        values: Mapping[str, tuple[str, ...]],
        case_insensitive: bool = True,
    ) -> None:
        self.case_insensitive = case_insensitive
        self._values: dict[str, tuple[str, ...]] = {}
        for key, vals in values.items():
            if vals:
                self._values[self._key(key)] = tuple(vals)

    def _key(self, key: str) -> str:
        return key.lower() if self.case_insensitive else key

    def get(self, key: str) -> tuple[str, ...] | None:
        """Values for key, or None if the key is absent."""
        return self._values.get(self._key(key))

    def single(self, key: str) -> str | None:
        """The value for key if it has exactly one, else None."""
        values = self.get(key)
        if values is not None and len(values) == 1:
            return values[0]
        return None

    def __contains__(self, key: str) -> bool:
        return self._key(key) in self._values


# =============================================================================
# Value Comparators
# =============================================================================


def _string_equals(value: str, expected: str, matcher: PatternMatcher) -> bool:
    return value == expected


def _string_equals_ignore_case(value: str, expected: str, matcher: PatternMatcher) -> bool:
    return value.casefold() == expected.casefold()


def _string_like(value: str, expected: str, matcher: PatternMatcher) -> bool:
    return matcher.matches(expected, value)


def _to_decimal(text: str) -> Decimal | None:
    try:
        number = Decimal(text.strip())
    except InvalidOperation:
        return None
    return None if number.is_nan() else number


def _numeric(compare: Callable[[Decimal, Decimal], bool]) -> Comparator:
    def comparator(value: str, expected: str, matcher: PatternMatcher) -> bool:
        lhs = _to_decimal(value)
        rhs = _to_decimal(expected)
        if lhs is None or rhs is None:
            return False
        return compare(lhs, rhs)

    return comparator


def parse_date(text: str) -> datetime | None:
    """
    Read a condition date: ISO-8601 or epoch seconds.

    Naive timestamps are taken to be UTC.
    """
    text = text.strip()
    try:
        return datetime.fromtimestamp(float(text), UTC)
    except (ValueError, OverflowError, OSError):
        pass
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _date(compare: Callable[[datetime, datetime], bool]) -> Comparator:
    def comparator(value: str, expected: str, matcher: PatternMatcher) -> bool:
        lhs = parse_date(value)
        rhs = parse_date(expected)
        if lhs is None or rhs is None:
            return False
        return compare(lhs, rhs)

    return comparator


_BOOLEANS = {"true": True, "false": False}


def _bool(value: str, expected: str, matcher: PatternMatcher) -> bool:
    lhs = _BOOLEANS.get(value.strip().lower())
    rhs = _BOOLEANS.get(expected.strip().lower())
    return lhs is not None and lhs == rhs


def _binary_equals(value: str, expected: str, matcher: PatternMatcher) -> bool:
    try:
        return base64.b64decode(value, validate=True) == base64.b64decode(expected, validate=True)
    except (binascii.Error, ValueError):
        return False


def _ip_address(value: str, expected: str, matcher: PatternMatcher) -> bool:
    try:
        address = ipaddress.ip_address(value.strip())
        network = ipaddress.ip_network(expected.strip(), strict=False)
    except ValueError:
        return False
    return address in network


def _arn_like(value: str, expected: str, matcher: PatternMatcher) -> bool:
    return matcher.resource_matches(expected, value)


# Negated operators share the comparator of their positive counterpart;
# the negation itself is applied in ConditionEvaluator.
COMPARATORS: dict[OperatorName, Comparator] = {
    OperatorName.STRING_EQUALS: _string_equals,
    OperatorName.STRING_NOT_EQUALS: _string_equals,
    OperatorName.STRING_EQUALS_IGNORE_CASE: _string_equals_ignore_case,
    OperatorName.STRING_NOT_EQUALS_IGNORE_CASE: _string_equals_ignore_case,
    OperatorName.STRING_LIKE: _string_like,
    OperatorName.STRING_NOT_LIKE: _string_like,
    OperatorName.NUMERIC_EQUALS: _numeric(op.eq),
    OperatorName.NUMERIC_NOT_EQUALS: _numeric(op.eq),
    OperatorName.NUMERIC_LESS_THAN: _numeric(op.lt),
    OperatorName.NUMERIC_LESS_THAN_EQUALS: _numeric(op.le),
    OperatorName.NUMERIC_GREATER_THAN: _numeric(op.gt),
    OperatorName.NUMERIC_GREATER_THAN_EQUALS: _numeric(op.ge),
    OperatorName.DATE_EQUALS: _date(op.eq),
    OperatorName.DATE_NOT_EQUALS: _date(op.eq),
    OperatorName.DATE_LESS_THAN: _date(op.lt),
    OperatorName.DATE_LESS_THAN_EQUALS: _date(op.le),
    OperatorName.DATE_GREATER_THAN: _date(op.gt),
    OperatorName.DATE_GREATER_THAN_EQUALS: _date(op.ge),
    OperatorName.BOOL: _bool,
    OperatorName.BINARY_EQUALS: _binary_equals,
    OperatorName.IP_ADDRESS: _ip_address,
    OperatorName.NOT_IP_ADDRESS: _ip_address,
    OperatorName.ARN_EQUALS: _arn_like,
    OperatorName.ARN_NOT_EQUALS: _arn_like,
    OperatorName.ARN_LIKE: _arn_like,
    OperatorName.ARN_NOT_LIKE: _arn_like,
}


# =============================================================================
# Evaluator
# =============================================================================


class ConditionEvaluator:
    """
    Evaluates condition blocks against a request context.

    Usage:
        evaluator = ConditionEvaluator()
        context = RequestContext({"aws:SecureTransport": ("true",)})
        evaluator.evaluate_block(statement.condition, context)

    Attributes:
        matcher: Pattern matcher used by the *Like and Arn* operators
    """

    def __init__(self, matcher: PatternMatcher | None = None) -> None:
        self.matcher = matcher or PatternMatcher()

    def evaluate_block(
        self,
        condition: ConditionBlock | None,
        context: RequestContext,
        expand_variables: bool = False,
    ) -> bool:
        """Return True if every entry in the block passes (an absent block passes)."""
        if not condition:
            return True
        for operator, matches in condition.items():
            for key, expected in matches.items():
                if expand_variables:
                    expected = tuple(expand(e, context.single) for e in expected)
                if not self.evaluate_entry(operator, key, expected, context):
                    logger.debug("Condition %s on %s failed", operator, key)
                    return False
        return True

    def evaluate_entry(
        self,
        operator: ConditionOperator,
        key: str,
        expected: tuple[str, ...],
        context: RequestContext,
    ) -> bool:
        """Evaluate a single (operator, key, expected values) entry."""
        values = context.get(key)

        if operator.name is OperatorName.NULL:
            return any(_null_matches(e, values is not None) for e in expected)

        if values is None:
            if operator.if_exists:
                return True
            if operator.quantifier is Quantifier.FOR_ALL_VALUES:
                return True
            return operator.negated

        comparator = COMPARATORS[operator.name]

        def value_passes(value: str) -> bool:
            hit = any(comparator(value, e, self.matcher) for e in expected)
            return not hit if operator.negated else hit

        if operator.quantifier is Quantifier.FOR_ALL_VALUES:
            return all(value_passes(v) for v in values)
        return any(value_passes(v) for v in values)


def _null_matches(expected: str, present: bool) -> bool:
    flag = _BOOLEANS.get(expected.strip().lower())
    if flag is None:
        return False
    # Null: "true" means "the key is missing".
    return flag is not present
