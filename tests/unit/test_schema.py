"""
Unit tests for the policy model.

Tests cover:
- Condition operator spellings, modifiers and rejection of unknown names
- Statement element exclusivity and emptiness rules
- Ordered-set normalization of pattern lists
- Principal blocks
- Request and EvaluationOptions models
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from iampolicy.errors import (
    EmptyValueError,
    ExclusivePropertiesError,
    MissingPropertyError,
    UnknownOperatorError,
    ValidationError,
)
from iampolicy.schema import (
    ConditionOperator,
    Decision,
    Effect,
    EvaluationOptions,
    EvaluationResult,
    OperatorName,
    Policy,
    Principal,
    PrincipalType,
    Quantifier,
    Request,
    RequestPrincipal,
    Statement,
)


# =============================================================================
# Condition Operators
# =============================================================================


class TestConditionOperator:
    """Tests for ConditionOperator parsing and spelling."""

    def test_plain_operator(self) -> None:
        """A bare operator name has no modifiers."""
        op = ConditionOperator.parse("StringEquals")
        assert op.name is OperatorName.STRING_EQUALS
        assert op.quantifier is None
        assert op.if_exists is False

    def test_if_exists_suffix(self) -> None:
        """IfExists is split off the base name."""
        op = ConditionOperator.parse("BoolIfExists")
        assert op.name is OperatorName.BOOL
        assert op.if_exists is True

    def test_quantifier_prefix(self) -> None:
        """A quantifier prefix is split off the base name."""
        op = ConditionOperator.parse("ForAllValues:StringLike")
        assert op.quantifier is Quantifier.FOR_ALL_VALUES
        assert op.name is OperatorName.STRING_LIKE

    def test_both_modifiers(self) -> None:
        """Quantifier and IfExists compose."""
        op = ConditionOperator.parse("ForAnyValue:StringEqualsIgnoreCaseIfExists")
        assert op.quantifier is Quantifier.FOR_ANY_VALUE
        assert op.name is OperatorName.STRING_EQUALS_IGNORE_CASE
        assert op.if_exists is True

    @pytest.mark.parametrize(
        "spelling",
        [
            "StringEquals",
            "NumericLessThanEqualsIfExists",
            "ForAllValues:ArnLike",
            "ForAnyValue:DateGreaterThanIfExists",
            "Null",
        ],
    )
    def test_str_reproduces_spelling(self, spelling: str) -> None:
        """str() gives back the exact spelling."""
        assert str(ConditionOperator.parse(spelling)) == spelling

    @pytest.mark.parametrize(
        "spelling",
        [
            "StringEqual",
            "stringequals",
            "ForSomeValues:StringEquals",
            "IfExists",
            "NullIfExists",
            "StringEqualsIfExistsIfExists",
        ],
    )
    def test_unknown_spellings_rejected(self, spelling: str) -> None:
        """Spellings outside the fixed table are rejected."""
        with pytest.raises(UnknownOperatorError):
            ConditionOperator.parse(spelling)

    def test_unknown_operator_is_validation_error(self) -> None:
        """An unknown operator is a validation failure."""
        with pytest.raises(ValidationError):
            ConditionOperator.parse("Maybe")

    def test_negated(self) -> None:
        """The Not* family is negated."""
        assert ConditionOperator.parse("StringNotLike").negated
        assert ConditionOperator.parse("NotIpAddress").negated
        assert not ConditionOperator.parse("StringLike").negated

    def test_hashable(self) -> None:
        """Equal operators are interchangeable as dict keys."""
        block = {ConditionOperator.parse("Bool"): 1}
        assert ConditionOperator(name=OperatorName.BOOL) in block


# =============================================================================
# Statements
# =============================================================================


class TestStatement:
    """Tests for Statement invariants."""

    def test_minimal_statement(self) -> None:
        """Effect, Action and Resource are enough."""
        st = Statement(effect=Effect.ALLOW, action="s3:GetObject", resource="*")
        assert st.action == ("s3:GetObject",)
        assert st.resource == ("*",)
        assert st.condition is None

    def test_patterns_are_ordered_sets(self) -> None:
        """Duplicates are dropped, first occurrence wins."""
        st = Statement(
            effect=Effect.ALLOW,
            action=["s3:PutObject", "s3:GetObject", "s3:PutObject"],
            resource="*",
        )
        assert st.action == ("s3:PutObject", "s3:GetObject")

    def test_action_and_not_action_rejected(self) -> None:
        """Action and NotAction are mutually exclusive."""
        with pytest.raises(ExclusivePropertiesError):
            Statement(effect=Effect.ALLOW, action="s3:*", not_action="iam:*", resource="*")

    def test_neither_action_rejected(self) -> None:
        """One of Action or NotAction is required."""
        with pytest.raises(MissingPropertyError):
            Statement(effect=Effect.ALLOW, resource="*")

    def test_resource_and_not_resource_rejected(self) -> None:
        """Resource and NotResource are mutually exclusive."""
        with pytest.raises(ExclusivePropertiesError):
            Statement(effect=Effect.DENY, action="s3:*", resource="*", not_resource="arn:aws:s3:::b")

    def test_neither_resource_rejected(self) -> None:
        """One of Resource or NotResource is required."""
        with pytest.raises(MissingPropertyError):
            Statement(effect=Effect.DENY, action="s3:*")

    def test_principal_and_not_principal_rejected(self) -> None:
        """Principal and NotPrincipal are mutually exclusive."""
        with pytest.raises(ExclusivePropertiesError):
            Statement(
                effect=Effect.ALLOW,
                principal=Principal.any(),
                not_principal=Principal.of("AWS", "arn:aws:iam::1:root"),
                action="s3:*",
                resource="*",
            )

    def test_empty_action_rejected(self) -> None:
        """An empty Action list is rejected."""
        with pytest.raises(EmptyValueError):
            Statement(effect=Effect.ALLOW, action=[], resource="*")

    def test_condition_spellings_parsed(self) -> None:
        """Condition keys given as spellings become operators."""
        st = Statement(
            effect=Effect.ALLOW,
            action="s3:*",
            resource="*",
            condition={"BoolIfExists": {"aws:MultiFactorAuthPresent": True}},
        )
        op = ConditionOperator.parse("BoolIfExists")
        assert st.condition == {op: {"aws:MultiFactorAuthPresent": ("true",)}}

    def test_condition_numbers_become_strings(self) -> None:
        """Numeric condition values are stored as text."""
        st = Statement(
            effect=Effect.ALLOW,
            action="s3:*",
            resource="*",
            condition={"NumericLessThan": {"s3:max-keys": [10, 20]}},
        )
        assert list(st.condition.values()) == [{"s3:max-keys": ("10", "20")}]

    def test_empty_condition_block_is_absent(self) -> None:
        """An empty condition block is the same as none."""
        st = Statement(effect=Effect.ALLOW, action="s3:*", resource="*", condition={})
        assert st.condition is None

    def test_unknown_condition_operator_rejected(self) -> None:
        """Unknown operators in a condition block are rejected."""
        with pytest.raises(UnknownOperatorError):
            Statement(
                effect=Effect.ALLOW,
                action="s3:*",
                resource="*",
                condition={"StringAlmostEquals": {"k": "v"}},
            )

    def test_blocks(self) -> None:
        """The *_block properties report the element in use."""
        st = Statement(effect=Effect.DENY, not_action="iam:*", resource="*")
        assert st.action_block == (("iam:*",), True)
        assert st.resource_block == (("*",), False)
        assert st.principal_block == (None, False)

    def test_immutable(self) -> None:
        """Statements cannot be modified."""
        st = Statement(effect=Effect.ALLOW, action="s3:*", resource="*")
        with pytest.raises(PydanticValidationError):
            st.effect = Effect.DENY

    def test_condition_block_read_only(self) -> None:
        """The condition block and its entries cannot be modified in place."""
        st = Statement(
            effect=Effect.ALLOW,
            action="s3:*",
            resource="*",
            condition={"Bool": {"aws:SecureTransport": "true"}},
        )
        operator = ConditionOperator.parse("Bool")
        with pytest.raises(TypeError):
            st.condition[operator] = {}
        with pytest.raises(TypeError):
            st.condition[operator]["aws:SecureTransport"] = ("false",)
        assert st.condition == {operator: {"aws:SecureTransport": ("true",)}}

    def test_condition_block_reused(self) -> None:
        """A frozen condition block can seed another statement."""
        first = Statement(
            effect=Effect.ALLOW,
            action="s3:*",
            resource="*",
            condition={"Bool": {"aws:SecureTransport": "true"}},
        )
        second = Statement(effect=Effect.DENY, action="s3:*", resource="*", condition=first.condition)
        assert second.condition == first.condition


class TestPrincipal:
    """Tests for Principal blocks."""

    def test_any(self) -> None:
        """Principal.any() matches every principal."""
        principal = Principal.any()
        assert principal.is_any
        assert principal.contains(PrincipalType.SERVICE, "ec2.amazonaws.com")

    def test_specified(self) -> None:
        """A specified principal names identifiers per type."""
        principal = Principal.of("AWS", "arn:aws:iam::1:root", "arn:aws:iam::2:root")
        assert principal.contains(PrincipalType.AWS, "arn:aws:iam::2:root")
        assert not principal.contains(PrincipalType.AWS, "arn:aws:iam::3:root")
        assert not principal.contains(PrincipalType.SERVICE, "arn:aws:iam::1:root")

    def test_wildcard_identifier(self) -> None:
        """A "*" identifier covers every principal of its type."""
        principal = Principal.of(PrincipalType.AWS, "*")
        assert principal.contains(PrincipalType.AWS, "arn:aws:iam::9:user/bob")
        assert not principal.contains(PrincipalType.FEDERATED, "cognito-identity.amazonaws.com")

    def test_empty_identifiers_rejected(self) -> None:
        """A type with no identifiers is rejected."""
        with pytest.raises(EmptyValueError):
            Principal(identifiers={PrincipalType.AWS: []})

    def test_identifiers_read_only(self) -> None:
        """Identifiers cannot be added after construction."""
        principal = Principal.of("AWS", "arn:aws:iam::1:root")
        with pytest.raises(TypeError):
            principal.identifiers[PrincipalType.SERVICE] = ("ec2.amazonaws.com",)
        assert Principal(identifiers=principal.identifiers) == principal


class TestPolicy:
    """Tests for Policy invariants."""

    def test_empty_statements_rejected(self) -> None:
        """A policy needs at least one statement."""
        with pytest.raises(EmptyValueError):
            Policy(statements=())

    def test_version_enumerated(self) -> None:
        """Only the known versions are accepted."""
        with pytest.raises(PydanticValidationError):
            Policy(
                version="2020-01-01",
                statements=(Statement(effect=Effect.ALLOW, action="s3:*", resource="*"),),
            )

    def test_structural_equality(self) -> None:
        """Policies with the same content are equal."""
        st = Statement(effect=Effect.ALLOW, action="s3:*", resource="*")
        assert Policy(id="a", statements=(st,)) == Policy(id="a", statements=(st,))


# =============================================================================
# Requests and Results
# =============================================================================


class TestRequest:
    """Tests for Request and RequestPrincipal."""

    def test_principal_spelling(self) -> None:
        """TYPE:ID strings are split at the first colon."""
        principal = RequestPrincipal.parse("AWS:arn:aws:iam::123456789012:root")
        assert principal.principal_type is PrincipalType.AWS
        assert principal.identifier == "arn:aws:iam::123456789012:root"

    def test_bad_principal_spelling(self) -> None:
        """A spelling without a type is rejected."""
        with pytest.raises(PydanticValidationError):
            RequestPrincipal.parse("alice")

    def test_context_normalized(self) -> None:
        """Context values become ordered sets of strings."""
        request = Request(
            action="s3:GetObject",
            resource="arn:aws:s3:::b/k",
            context={"aws:SecureTransport": True, "s3:prefix": ["a", "b", "a"]},
        )
        assert request.context == {
            "aws:SecureTransport": ("true",),
            "s3:prefix": ("a", "b"),
        }

    def test_action_required(self) -> None:
        """Requests need an action."""
        with pytest.raises(PydanticValidationError):
            Request(action="", resource="*")


class TestEvaluationModels:
    """Tests for EvaluationOptions and EvaluationResult."""

    def test_option_defaults(self) -> None:
        """Defaults skip an absent principal and ignore key case."""
        options = EvaluationOptions()
        assert options.skip_principal_when_absent is True
        assert options.case_insensitive_keys is True
        assert options.expand_variables is True

    def test_allowed(self) -> None:
        """Only Allow is allowed."""
        assert EvaluationResult(decision=Decision.ALLOW).allowed
        assert not EvaluationResult(decision=Decision.DENY).allowed
        assert not EvaluationResult(decision=Decision.IMPLICIT_DENY).allowed
