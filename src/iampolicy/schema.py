"""
Schema definitions for iampolicy.

This module defines the Pydantic models used throughout iampolicy:
- Policy/Statement/Principal: The policy document model
- ConditionOperator: A parsed condition operator name
- Request/RequestPrincipal: What is being asked for
- EvaluationResult/Decision: The outcome of evaluating a request
- EvaluationOptions: Engine configuration

Design Decisions:
    - Models are immutable value objects (frozen=True)
    - Action/Resource/value lists are ordered sets: duplicates are dropped,
      first occurrence wins, and they are stored as tuples
    - Model invariants raise the project's own ValidationError family
      (not pydantic's), so programmatic construction and parsing fail the
      same way
    - The model knows nothing about the JSON wire grammar; see codec.py
"""

from collections.abc import Iterable, Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from iampolicy.errors import (
    EmptyValueError,
    ExclusivePropertiesError,
    MissingPropertyError,
    UnknownOperatorError,
)

WILDCARD = "*"
IF_EXISTS_SUFFIX = "IfExists"
QUANTIFIER_SEPARATOR = ":"


# =============================================================================
# Enums
# =============================================================================


class Version(str, Enum):
    """Accepted policy language versions."""

    V2012 = "2012-10-17"
    V2008 = "2008-10-17"


class Effect(str, Enum):
    """What a matching statement contributes to the decision."""

    ALLOW = "Allow"
    DENY = "Deny"


class PrincipalType(str, Enum):
    """Keys accepted inside a Principal/NotPrincipal object."""

    AWS = "AWS"
    FEDERATED = "Federated"
    SERVICE = "Service"
    CANONICAL_USER = "CanonicalUser"


class Quantifier(str, Enum):
    """Multivalue quantifier prefix of a condition operator."""

    FOR_ALL_VALUES = "ForAllValues"
    FOR_ANY_VALUE = "ForAnyValue"


class OperatorName(str, Enum):
    """
    The closed table of base condition operators.

    Each may be combined with a Quantifier prefix and/or the IfExists
    suffix (Null excepted, see ConditionOperator).
    """

    STRING_EQUALS = "StringEquals"
    STRING_NOT_EQUALS = "StringNotEquals"
    STRING_EQUALS_IGNORE_CASE = "StringEqualsIgnoreCase"
    STRING_NOT_EQUALS_IGNORE_CASE = "StringNotEqualsIgnoreCase"
    STRING_LIKE = "StringLike"
    STRING_NOT_LIKE = "StringNotLike"
    NUMERIC_EQUALS = "NumericEquals"
    NUMERIC_NOT_EQUALS = "NumericNotEquals"
    NUMERIC_LESS_THAN = "NumericLessThan"
    NUMERIC_LESS_THAN_EQUALS = "NumericLessThanEquals"
    NUMERIC_GREATER_THAN = "NumericGreaterThan"
    NUMERIC_GREATER_THAN_EQUALS = "NumericGreaterThanEquals"
    DATE_EQUALS = "DateEquals"
    DATE_NOT_EQUALS = "DateNotEquals"
    DATE_LESS_THAN = "DateLessThan"
    DATE_LESS_THAN_EQUALS = "DateLessThanEquals"
    DATE_GREATER_THAN = "DateGreaterThan"
    DATE_GREATER_THAN_EQUALS = "DateGreaterThanEquals"
    BOOL = "Bool"
    BINARY_EQUALS = "BinaryEquals"
    IP_ADDRESS = "IpAddress"
    NOT_IP_ADDRESS = "NotIpAddress"
    ARN_EQUALS = "ArnEquals"
    ARN_NOT_EQUALS = "ArnNotEquals"
    ARN_LIKE = "ArnLike"
    ARN_NOT_LIKE = "ArnNotLike"
    NULL = "Null"


_OPERATOR_SPELLINGS = frozenset(name.value for name in OperatorName)

# Operators that pass for a request value only if it matches none of the
# expected values.
NEGATED_OPERATORS = frozenset({
    OperatorName.STRING_NOT_EQUALS,
    OperatorName.STRING_NOT_EQUALS_IGNORE_CASE,
    OperatorName.STRING_NOT_LIKE,
    OperatorName.NUMERIC_NOT_EQUALS,
    OperatorName.DATE_NOT_EQUALS,
    OperatorName.NOT_IP_ADDRESS,
    OperatorName.ARN_NOT_EQUALS,
    OperatorName.ARN_NOT_LIKE,
})


class Decision(str, Enum):
    """Outcome of evaluating a request against a set of policies."""

    ALLOW = "Allow"
    DENY = "Deny"
    IMPLICIT_DENY = "ImplicitDeny"


# =============================================================================
# Helpers
# =============================================================================


def ordered_set(values: Iterable[str]) -> tuple[str, ...]:
    """Drop duplicates from values, keeping the first occurrence of each."""
    return tuple(dict.fromkeys(values))


def _as_values(value: Any) -> Any:
    """Accept a bare string wherever an ordered set of strings is expected."""
    if value is None:
        return None
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple, set, frozenset)):
        return ordered_set(value)
    return value


# =============================================================================
# Condition Operators
# =============================================================================


class ConditionOperator(BaseModel):
    """
    A condition operator: a base operator plus its optional modifiers.

    The wire spelling is ``[ForAllValues:|ForAnyValue:]<Operator>[IfExists]``;
    ``str(operator)`` reproduces it exactly and ``ConditionOperator.parse``
    reads it back.

    Attributes:
        name: The base operator
        quantifier: Optional multivalue quantifier
        if_exists: Whether a missing context key passes the check
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: OperatorName
    quantifier: Quantifier | None = None
    if_exists: bool = False

    @model_validator(mode="before")
    @classmethod
    def accept_spelling(cls, data: Any) -> Any:
        """Allow ConditionOperator("ForAnyValue:StringLike") style construction."""
        if isinstance(data, str):
            return _split_operator(data)
        return data

    @model_validator(mode="after")
    def check_null_modifiers(self) -> "ConditionOperator":
        """Null tests presence itself, so it cannot be made existence-tolerant."""
        if self.name is OperatorName.NULL and self.if_exists:
            raise UnknownOperatorError(operator=str(self))
        return self

    @classmethod
    def parse(cls, text: str) -> "ConditionOperator":
        """
        Parse an operator spelling.

        Raises:
            UnknownOperatorError: If the spelling is not in the operator table
        """
        return cls.model_validate(text)

    @property
    def negated(self) -> bool:
        """True for the Not* family."""
        return self.name in NEGATED_OPERATORS

    def __str__(self) -> str:
        text = self.name.value
        if self.if_exists:
            text += IF_EXISTS_SUFFIX
        if self.quantifier is not None:
            text = f"{self.quantifier.value}{QUANTIFIER_SEPARATOR}{text}"
        return text


def _split_operator(text: str) -> dict[str, Any]:
    """Split an operator spelling into its parts, rejecting anything unknown."""
    quantifier = None
    base = text
    if QUANTIFIER_SEPARATOR in text:
        prefix, base = text.split(QUANTIFIER_SEPARATOR, 1)
        try:
            quantifier = Quantifier(prefix)
        except ValueError:
            raise UnknownOperatorError(operator=text) from None

    if_exists = False
    if base.endswith(IF_EXISTS_SUFFIX) and base != IF_EXISTS_SUFFIX:
        candidate = base[: -len(IF_EXISTS_SUFFIX)]
        if candidate in _OPERATOR_SPELLINGS:
            base = candidate
            if_exists = True

    try:
        name = OperatorName(base)
    except ValueError:
        raise UnknownOperatorError(operator=text) from None

    return {"name": name, "quantifier": quantifier, "if_exists": if_exists}


ConditionBlock = dict[ConditionOperator, dict[str, tuple[str, ...]]]


def _condition_value(value: Any) -> Any:
    """Condition values are compared as strings; JSON booleans become true/false."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


# =============================================================================
# Policy Models
# =============================================================================


class Principal(BaseModel):
    """
    The Principal (or NotPrincipal) block of a statement.

    Either Any (the wire's bare ``"*"``) or a mapping from principal type
    to an ordered set of identifiers.

    Attributes:
        identifiers: Read-only mapping of type to identifiers; None means Any
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    identifiers: dict[PrincipalType, tuple[str, ...]] | None = None

    @field_validator("identifiers", mode="before")
    @classmethod
    def normalize_identifiers(cls, v: Any) -> Any:
        if isinstance(v, Mapping):
            return {key: _as_values(ids) for key, ids in v.items()}
        return v

    @field_validator("identifiers", mode="after")
    @classmethod
    def freeze_identifiers(cls, v: Any) -> Any:
        return MappingProxyType(v) if v is not None else v

    @model_validator(mode="after")
    def check_not_empty(self) -> "Principal":
        """A specified principal needs at least one identifier per type."""
        if self.identifiers is not None:
            if not self.identifiers:
                raise EmptyValueError(name="Principal")
            for principal_type, ids in self.identifiers.items():
                if not ids:
                    raise EmptyValueError(name=principal_type.value)
        return self

    @classmethod
    def any(cls) -> "Principal":
        """The wildcard principal."""
        return cls()

    @classmethod
    def of(cls, principal_type: PrincipalType | str, *identifiers: str) -> "Principal":
        """A principal block naming identifiers of a single type."""
        return cls(identifiers={PrincipalType(principal_type): identifiers})

    @property
    def is_any(self) -> bool:
        return self.identifiers is None

    def contains(self, principal_type: PrincipalType, identifier: str) -> bool:
        """True if the identifier is named (or wildcarded) under its type."""
        if self.identifiers is None:
            return True
        ids = self.identifiers.get(principal_type, ())
        return WILDCARD in ids or identifier in ids


class Statement(BaseModel):
    """
    One access-control rule.

    Exactly one of action/not_action and exactly one of
    resource/not_resource must be set; at most one of
    principal/not_principal may be set.

    Attributes:
        sid: Optional statement identifier (uniqueness is not enforced)
        effect: Allow or Deny
        principal: Who the statement applies to
        not_principal: Who the statement does not apply to
        action: Action patterns the statement covers
        not_action: Action patterns the statement excludes
        resource: Resource patterns the statement covers
        not_resource: Resource patterns the statement excludes
        condition: Optional condition block, read-only
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    sid: str | None = Field(default=None, description="Optional statement identifier")
    effect: Effect = Field(..., description="Allow or Deny")
    principal: Principal | None = None
    not_principal: Principal | None = None
    action: tuple[str, ...] | None = None
    not_action: tuple[str, ...] | None = None
    resource: tuple[str, ...] | None = None
    not_resource: tuple[str, ...] | None = None
    condition: ConditionBlock | None = None

    @field_validator("action", "not_action", "resource", "not_resource", mode="before")
    @classmethod
    def normalize_patterns(cls, v: Any) -> Any:
        return _as_values(v)

    @field_validator("condition", mode="before")
    @classmethod
    def normalize_condition(cls, v: Any) -> Any:
        """Parse operator spellings and coerce values to ordered string sets."""
        if not isinstance(v, Mapping):
            return v
        if not v:
            return None
        block = {}
        for operator, matches in v.items():
            if isinstance(operator, str):
                operator = ConditionOperator.parse(operator)
            if isinstance(matches, Mapping):
                normalized = {}
                for key, values in matches.items():
                    if isinstance(values, (list, tuple, set, frozenset)):
                        values = [_condition_value(item) for item in values]
                    else:
                        values = _condition_value(values)
                    values = _as_values(values)
                    if isinstance(values, tuple) and not values:
                        raise EmptyValueError(name=key)
                    normalized[key] = values
                matches = normalized
            block[operator] = matches
        return block

    @field_validator("condition", mode="after")
    @classmethod
    def freeze_condition(cls, v: Any) -> Any:
        if v is None:
            return v
        return MappingProxyType({op: MappingProxyType(entries) for op, entries in v.items()})

    @model_validator(mode="after")
    def check_elements(self) -> "Statement":
        """Enforce the exclusivity rules between the X/NotX element pairs."""
        _exclusive(self.principal, self.not_principal, "Principal", "NotPrincipal", required=False)
        _exclusive(self.action, self.not_action, "Action", "NotAction", required=True)
        _exclusive(self.resource, self.not_resource, "Resource", "NotResource", required=True)
        for name, values in (
            ("Action", self.action),
            ("NotAction", self.not_action),
            ("Resource", self.resource),
            ("NotResource", self.not_resource),
        ):
            if values is not None and not values:
                raise EmptyValueError(name=name)
        return self

    @property
    def principal_block(self) -> tuple[Principal | None, bool]:
        """The principal block in use and whether it is negated."""
        if self.not_principal is not None:
            return self.not_principal, True
        return self.principal, False

    @property
    def action_block(self) -> tuple[tuple[str, ...], bool]:
        """The action patterns in use and whether they are negated."""
        if self.not_action is not None:
            return self.not_action, True
        return self.action or (), False

    @property
    def resource_block(self) -> tuple[tuple[str, ...], bool]:
        """The resource patterns in use and whether they are negated."""
        if self.not_resource is not None:
            return self.not_resource, True
        return self.resource or (), False


def _exclusive(first: Any, second: Any, first_name: str, second_name: str, required: bool) -> None:
    if first is not None and second is not None:
        raise ExclusivePropertiesError(names=[first_name, second_name])
    if required and first is None and second is None:
        raise MissingPropertyError(name=f"{first_name} or {second_name}")


class Policy(BaseModel):
    """
    A complete policy document.

    Attributes:
        id: Optional policy identifier
        version: Optional policy language version
        statements: Non-empty ordered sequence of statements
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str | None = Field(default=None, description="Optional policy identifier")
    version: Version | None = Field(default=None, description="Policy language version")
    statements: tuple[Statement, ...] = Field(..., description="Ordered statements")

    @model_validator(mode="after")
    def check_statements(self) -> "Policy":
        if not self.statements:
            raise EmptyValueError(name="Statement")
        return self


# =============================================================================
# Request Models
# =============================================================================


class RequestPrincipal(BaseModel):
    """
    The identity making a request.

    Attributes:
        principal_type: Which kind of principal this is
        identifier: The principal's identifier (ARN, service name, ...)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    principal_type: PrincipalType
    identifier: str = Field(..., min_length=1)

    @model_validator(mode="before")
    @classmethod
    def accept_spelling(cls, data: Any) -> Any:
        """Allow "TYPE:identifier" strings, e.g. "AWS:arn:aws:iam::123:root"."""
        if isinstance(data, str):
            principal_type, sep, identifier = data.partition(":")
            if not sep:
                raise ValueError(f"Expected TYPE:IDENTIFIER, got {data!r}")
            return {"principal_type": principal_type, "identifier": identifier}
        return data

    @classmethod
    def parse(cls, text: str) -> "RequestPrincipal":
        return cls.model_validate(text)


class Request(BaseModel):
    """
    A single request to be evaluated.

    Attributes:
        action: The action being requested, e.g. "s3:GetObject"
        resource: The resource identifier the action applies to
        principal: Optional identity making the request
        context: Condition context: key to ordered set of values
        request_id: Optional caller-supplied identifier for audit
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    action: str = Field(..., min_length=1)
    resource: str = Field(..., min_length=1)
    principal: RequestPrincipal | None = None
    context: dict[str, tuple[str, ...]] = Field(default_factory=dict)
    request_id: str | None = None

    @field_validator("context", mode="before")
    @classmethod
    def normalize_context(cls, v: Any) -> Any:
        if not isinstance(v, dict):
            return v
        normalized = {}
        for key, values in v.items():
            if isinstance(values, (list, tuple, set, frozenset)):
                values = [_condition_value(item) for item in values]
            else:
                values = _condition_value(values)
            normalized[key] = _as_values(values)
        return normalized


# =============================================================================
# Evaluation Models
# =============================================================================


class EvaluationOptions(BaseModel):
    """
    Engine configuration.

    Attributes:
        skip_principal_when_absent: A request without a principal skips the
            principal test; otherwise statements with a principal block
            never match it
        case_insensitive_keys: Condition context keys are looked up ignoring case
        expand_variables: Expand ${key} policy variables (Version 2012-10-17 only)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    skip_principal_when_absent: bool = True
    case_insensitive_keys: bool = True
    expand_variables: bool = True


class EvaluationResult(BaseModel):
    """
    Result of evaluating a request.

    Attributes:
        decision: Allow, Deny or ImplicitDeny
        matched_statements: Ids of every matching statement, first-encountered order
        reason: Human-readable explanation of the decision
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    decision: Decision
    matched_statements: tuple[str, ...] = ()
    reason: str = ""

    @property
    def allowed(self) -> bool:
        return self.decision is Decision.ALLOW
