"""
Markdown report generator for iampolicy.

Renders a policy document as Markdown for review: one section per
statement with its effect, principals, actions, resources and a table of
condition entries.
"""

from iampolicy.report.visitor import ConditionEntry, Node, NodeKind, PrincipalEntry, walk_policy
from iampolicy.schema import Policy, Statement


def _code_list(values: tuple[str, ...]) -> str:
    return ", ".join(f"`{v}`" for v in values)


class MarkdownReport:
    """
    Collects Markdown lines while walking a policy.

    Usage:
        report = MarkdownReport()
        walk_policy(policy, report)
        text = report.render()
    """

    def __init__(self, title: str | None = None) -> None:
        self.title = title
        self.lines: list[str] = []
        self._in_conditions = False

    def visit(self, node: Node) -> None:
        if node.kind is NodeKind.POLICY:
            self._policy(node.value)
        elif node.kind is NodeKind.STATEMENT:
            self._statement(node)
        elif node.kind is NodeKind.PRINCIPAL:
            self._principal(node.value)
        elif node.kind is NodeKind.CONDITION_ENTRY:
            self._condition(node.value)

    def render(self) -> str:
        return "\n".join(self.lines).rstrip() + "\n"

    def _policy(self, policy: Policy) -> None:
        title = self.title or (f"Policy `{policy.id}`" if policy.id else "Policy")
        self.lines.append(f"# {title}")
        self.lines.append("")
        version = policy.version.value if policy.version else "not set"
        self.lines.append(f"**Version:** {version}  ")
        self.lines.append(f"**Statements:** {len(policy.statements)}")

    def _statement(self, node: Node) -> None:
        statement: Statement = node.value
        self._in_conditions = False
        name = f"`{statement.sid}`" if statement.sid else node.path
        self.lines.append("")
        self.lines.append(f"## {name}: {statement.effect.value}")
        self.lines.append("")

        actions, negated = statement.action_block
        self.lines.append(f"- **{'NotAction' if negated else 'Action'}:** {_code_list(actions)}")
        resources, negated = statement.resource_block
        self.lines.append(f"- **{'NotResource' if negated else 'Resource'}:** {_code_list(resources)}")

    def _principal(self, entry: PrincipalEntry) -> None:
        label = "NotPrincipal" if entry.negated else "Principal"
        if entry.principal.identifiers is None:
            self.lines.append(f"- **{label}:** `*` (anyone)")
            return
        self.lines.append(f"- **{label}:**")
        for principal_type, ids in entry.principal.identifiers.items():
            self.lines.append(f"  - {principal_type.value}: {_code_list(ids)}")

    def _condition(self, entry: ConditionEntry) -> None:
        if not self._in_conditions:
            self._in_conditions = True
            self.lines.append("")
            self.lines.append("| Operator | Key | Values |")
            self.lines.append("|---|---|---|")
        self.lines.append(f"| `{entry.operator}` | `{entry.key}` | {_code_list(entry.values)} |")


def generate_markdown_report(policy: Policy, title: str | None = None) -> str:
    """
    Render a policy as Markdown.

    Args:
        policy: The policy to describe
        title: Heading to use instead of the policy Id

    Returns:
        Markdown text
    """
    report = MarkdownReport(title)
    walk_policy(policy, report)
    return report.render()
