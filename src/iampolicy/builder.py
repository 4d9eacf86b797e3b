"""
Fluent builders for policy documents.

Builders are mutable staging objects. Nothing is checked while a builder
is being filled in; every model rule is enforced once, in build(), which
returns an immutable Policy or Statement.

Usage:
    statement = (
        StatementBuilder()
        .named("ReadBucket")
        .allows()
        .actions("s3:GetObject", "s3:ListBucket")
        .resources("arn:aws:s3:::examplebucket", "arn:aws:s3:::examplebucket/*")
        .build()
    )
    policy = PolicyBuilder().with_version().add(statement).build()
"""

import uuid
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from iampolicy.codec import validation_error_from_pydantic
from iampolicy.errors import ExclusivePropertiesError, IamPolicyError, MissingPropertyError
from iampolicy.schema import (
    ConditionOperator,
    Effect,
    Policy,
    Principal,
    PrincipalType,
    Statement,
    Version,
)


class StatementBuilder:
    """
    Stages the elements of one statement.

    Calling a method more than once adds to what is already staged
    (actions, resources, principal identifiers, condition values).
    """

    def __init__(self) -> None:
        self._sid: str | None = None
        self._effect: Effect | None = None
        self._principal: dict[PrincipalType, list[str]] | None = None
        self._principal_any = False
        self._not_principal: dict[PrincipalType, list[str]] | None = None
        self._actions: list[str] | None = None
        self._not_actions: list[str] | None = None
        self._resources: list[str] | None = None
        self._not_resources: list[str] | None = None
        self._condition: dict[ConditionOperator, dict[str, list[str]]] = {}

    def named(self, sid: str) -> "StatementBuilder":
        self._sid = sid
        return self

    def auto_named(self) -> "StatementBuilder":
        """Give the statement a random Sid."""
        self._sid = uuid.uuid4().hex
        return self

    def allows(self) -> "StatementBuilder":
        self._effect = Effect.ALLOW
        return self

    def denies(self) -> "StatementBuilder":
        self._effect = Effect.DENY
        return self

    def for_principal(self, principal_type: PrincipalType | str, *identifiers: str) -> "StatementBuilder":
        """Apply the statement to the named principals."""
        self._principal = _stage_identifiers(self._principal, principal_type, identifiers)
        return self

    def not_for_principal(self, principal_type: PrincipalType | str, *identifiers: str) -> "StatementBuilder":
        """Apply the statement to everyone except the named principals."""
        self._not_principal = _stage_identifiers(self._not_principal, principal_type, identifiers)
        return self

    def any_principal(self) -> "StatementBuilder":
        self._principal_any = True
        return self

    def actions(self, *patterns: str) -> "StatementBuilder":
        self._actions = (self._actions or []) + list(patterns)
        return self

    def not_actions(self, *patterns: str) -> "StatementBuilder":
        self._not_actions = (self._not_actions or []) + list(patterns)
        return self

    def resources(self, *patterns: str) -> "StatementBuilder":
        self._resources = (self._resources or []) + list(patterns)
        return self

    def not_resources(self, *patterns: str) -> "StatementBuilder":
        self._not_resources = (self._not_resources or []) + list(patterns)
        return self

    def condition(self, operator: ConditionOperator | str, key: str, *values: Any) -> "StatementBuilder":
        """
        Add a condition entry.

        Args:
            operator: Operator or its spelling, e.g. "ForAnyValue:StringLike"
            key: Context key the entry tests
            values: Expected values; booleans and numbers are stored as text
        """
        if isinstance(operator, str):
            operator = ConditionOperator.parse(operator)
        self._condition.setdefault(operator, {}).setdefault(key, []).extend(values)
        return self

    def build(self) -> Statement:
        """
        Validate the staged elements and produce the statement.

        Raises:
            ValidationError: If the staged elements break a statement rule
        """
        fields: dict[str, Any] = {
            "sid": self._sid,
            "effect": self._effect,
            "action": self._actions,
            "not_action": self._not_actions,
            "resource": self._resources,
            "not_resource": self._not_resources,
            "condition": self._condition or None,
        }
        label = self._sid or "Statement"
        if self._effect is None:
            raise MissingPropertyError(name="Effect", element=label)
        try:
            fields["principal"] = self._build_principal()
            if self._not_principal is not None:
                fields["not_principal"] = Principal(identifiers=self._not_principal)
            return Statement(**fields)
        except IamPolicyError as err:
            raise err.at(err.context.get("element") or label) from None
        except PydanticValidationError as err:
            raise validation_error_from_pydantic(err, label) from None

    def _build_principal(self) -> Principal | None:
        if self._principal_any:
            if self._principal is not None:
                raise ExclusivePropertiesError(names=["*", "Principal"])
            return Principal.any()
        if self._principal is None:
            return None
        return Principal(identifiers=self._principal)


def _stage_identifiers(
    staged: dict[PrincipalType, list[str]] | None,
    principal_type: PrincipalType | str,
    identifiers: tuple[str, ...],
) -> dict[PrincipalType, list[str]]:
    staged = staged if staged is not None else {}
    staged.setdefault(PrincipalType(principal_type), []).extend(identifiers)
    return staged


class PolicyBuilder:
    """Stages a policy: its Id, its Version and its statements."""

    def __init__(self) -> None:
        self._id: str | None = None
        self._version: Version | None = None
        self._statements: list[Statement | StatementBuilder] = []

    def with_id(self, policy_id: str) -> "PolicyBuilder":
        self._id = policy_id
        return self

    def with_version(self, version: Version | str = Version.V2012) -> "PolicyBuilder":
        self._version = Version(version)
        return self

    def add(self, statement: Statement | StatementBuilder) -> "PolicyBuilder":
        """Add a finished statement, or a builder to be built with the policy."""
        self._statements.append(statement)
        return self

    def statement(self) -> StatementBuilder:
        """Start a new statement that will be built with the policy."""
        builder = StatementBuilder()
        self._statements.append(builder)
        return builder

    def build(self) -> Policy:
        """
        Build every staged statement and produce the policy.

        Raises:
            ValidationError: If any statement, or the policy, breaks a rule
        """
        statements = []
        for index, staged in enumerate(self._statements):
            if isinstance(staged, StatementBuilder):
                try:
                    staged = staged.build()
                except IamPolicyError as err:
                    raise err.at(f"Statement[{index}]") from None
            statements.append(staged)
        try:
            return Policy(id=self._id, version=self._version, statements=tuple(statements))
        except IamPolicyError as err:
            raise err.at("Statement") from None
