"""
Traversal over a policy document.

The document is flattened into a sequence of tagged nodes. Each node has a
kind from the closed NodeKind enumeration, so a consumer handles one case
per kind instead of overriding a method per model class.

Traversal order:
    POLICY
      STATEMENT            (one per statement, in document order)
        PRINCIPAL          (when the statement has a Principal/NotPrincipal)
        CONDITION_ENTRY    (one per operator/key pair, in document order)
"""

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from iampolicy.schema import ConditionOperator, Policy, Principal


class NodeKind(str, Enum):
    """The kinds of node a traversal can produce."""

    POLICY = "policy"
    STATEMENT = "statement"
    PRINCIPAL = "principal"
    CONDITION_ENTRY = "condition_entry"


@dataclass(frozen=True)
class PrincipalEntry:
    """A statement's principal block and whether it is a NotPrincipal."""

    principal: Principal
    negated: bool


@dataclass(frozen=True)
class ConditionEntry:
    """One operator/key pair of a condition block with its expected values."""

    operator: ConditionOperator
    key: str
    values: tuple[str, ...]


@dataclass(frozen=True)
class Node:
    """
    One step of a traversal.

    Attributes:
        kind: What the node describes
        value: The Policy, Statement, PrincipalEntry or ConditionEntry
        depth: Nesting level, 0 for the policy itself
        path: Element path, e.g. "Statement[1].Condition.Bool.aws:SecureTransport"
    """

    kind: NodeKind
    value: Any
    depth: int
    path: str


class PolicyVisitor(Protocol):
    """Anything that can receive the nodes of a traversal."""

    def visit(self, node: Node) -> None: ...


def iter_nodes(policy: Policy) -> Iterator[Node]:
    """Yield the nodes of a policy in document order."""
    yield Node(NodeKind.POLICY, policy, 0, "")
    for index, statement in enumerate(policy.statements):
        path = f"Statement[{index}]"
        yield Node(NodeKind.STATEMENT, statement, 1, path)

        principal, negated = statement.principal_block
        if principal is not None:
            name = "NotPrincipal" if negated else "Principal"
            yield Node(NodeKind.PRINCIPAL, PrincipalEntry(principal, negated), 2, f"{path}.{name}")

        for operator, entries in (statement.condition or {}).items():
            for key, values in entries.items():
                yield Node(
                    NodeKind.CONDITION_ENTRY,
                    ConditionEntry(operator, key, values),
                    2,
                    f"{path}.Condition.{operator}.{key}",
                )


def walk_policy(policy: Policy, visitor: PolicyVisitor) -> None:
    """Call visitor.visit once for every node of the policy."""
    for node in iter_nodes(policy):
        visitor.visit(node)
