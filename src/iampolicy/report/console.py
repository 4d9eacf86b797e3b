"""
Console report generator for iampolicy.

Renders policies and evaluation results in the terminal with Rich.

Design Principles:
    - Decision at a glance: icons and colors for Allow, Deny and ImplicitDeny
    - One row per statement: effect, actions, resources, condition count
    - Consistent formatting: predictable layout across documents
"""

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from iampolicy.schema import Decision, Effect, EvaluationResult, Policy, Request

# Decision icons
ICON_ALLOW = "[green]✓[/green]"
ICON_DENY = "[red]✗[/red]"
ICON_IMPLICIT_DENY = "[yellow]⊘[/yellow]"

DECISION_STYLES = {
    Decision.ALLOW: ("green", ICON_ALLOW),
    Decision.DENY: ("red", ICON_DENY),
    Decision.IMPLICIT_DENY: ("yellow", ICON_IMPLICIT_DENY),
}


def print_policy_summary(
    policy: Policy,
    console: Console | None = None,
    source: str | None = None,
) -> None:
    """
    Print a one-row-per-statement table for a policy.

    Args:
        policy: The policy to summarize
        console: Rich Console instance (creates one if not provided)
        source: Where the policy came from, shown in the header
    """
    if console is None:
        console = Console()

    header = Text()
    header.append(" Policy ", style="bold")
    header.append(policy.id or source or "(no id)", style="bold cyan")
    header.append(" │ ", style="dim")
    header.append(policy.version.value if policy.version else "no version", style="dim")
    console.print(Panel(header, expand=False))

    table = Table(show_header=True, header_style="bold", expand=True)
    table.add_column("#", style="dim", width=3, justify="right")
    table.add_column("Sid", style="cyan")
    table.add_column("Effect", width=6)
    table.add_column("Actions", overflow="fold")
    table.add_column("Resources", overflow="fold")
    table.add_column("Cond.", justify="right", width=5)

    for index, statement in enumerate(policy.statements):
        effect_style = "green" if statement.effect is Effect.ALLOW else "red"
        actions, not_action = statement.action_block
        resources, not_resource = statement.resource_block
        conditions = sum(len(entries) for entries in (statement.condition or {}).values())
        table.add_row(
            str(index),
            escape(statement.sid) if statement.sid else "[dim]-[/dim]",
            f"[{effect_style}]{statement.effect.value}[/{effect_style}]",
            _format_patterns(actions, not_action),
            _format_patterns(resources, not_resource),
            str(conditions) if conditions else "",
        )

    console.print(table)


def _format_patterns(patterns: tuple[str, ...], negated: bool) -> str:
    text = escape("\n".join(patterns))
    return f"[magenta]NOT[/magenta] {text}" if negated else text


def print_evaluation_result(
    result: EvaluationResult,
    request: Request,
    console: Console | None = None,
) -> None:
    """
    Print the decision for a request and the statements that produced it.

    Args:
        result: The evaluation outcome
        request: The request that was evaluated
        console: Rich Console instance (creates one if not provided)
    """
    if console is None:
        console = Console()

    style, icon = DECISION_STYLES[result.decision]
    console.print(f"{icon} [bold {style}]{result.decision.value}[/bold {style}]")
    console.print(f"  [dim]Action:[/dim]   {escape(request.action)}")
    console.print(f"  [dim]Resource:[/dim] {escape(request.resource)}")
    if request.principal is not None:
        console.print(
            f"  [dim]Principal:[/dim] {request.principal.principal_type.value}:"
            f"{escape(request.principal.identifier)}"
        )
    console.print(f"  [dim]Reason:[/dim]   {escape(result.reason)}")
    if result.matched_statements:
        console.print(f"  [dim]Matched:[/dim]  {escape(', '.join(result.matched_statements))}")
