"""
CLI entry point for iampolicy.

This module provides the Typer-based command-line interface for iampolicy.

Commands:
    verify      Parse and validate policy documents
    evaluate    Decide a request against policy documents
    report      Render a policy document as Markdown
    new         Write a starter policy document from a template
    templates   List the available templates

Exit codes for evaluate:
    0   Allow
    2   Explicit Deny
    3   Implicit Deny (no statement matched)
    1   Input error (unreadable file, invalid document, bad arguments)

Architecture Note:
    The CLI is intentionally thin - it parses arguments and delegates to
    parse/serialize/evaluate and the report module. Logging goes to stderr
    so that --json output on stdout stays machine-readable.
"""

import json
import logging
import sys
import traceback
from pathlib import Path
from typing import Annotated, Any, NoReturn, Optional

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from iampolicy import __version__
from iampolicy.codec import (
    load_options,
    load_policy,
    load_request,
    save_policy,
    validation_error_from_pydantic,
)
from iampolicy.errors import IamPolicyError, PolicyFileError
from iampolicy.policy import PolicyEngine
from iampolicy.report import (
    generate_json_report,
    generate_markdown_report,
    print_evaluation_result,
    print_policy_summary,
)
from iampolicy.schema import Decision, EvaluationOptions, Policy, Request
from iampolicy.templates import get_template, load_template, template_names

logger = logging.getLogger(__name__)

EXIT_INPUT_ERROR = 1
EXIT_CODES = {
    Decision.ALLOW: 0,
    Decision.DENY: 2,
    Decision.IMPLICIT_DENY: 3,
}

# Initialize Typer app with metadata
app = typer.Typer(
    name="iampolicy",
    help="Parse, validate and evaluate access-control policy documents.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich console for formatted output
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]iampolicy[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            help="Log evaluation details to stderr.",
        ),
    ] = False,
) -> None:
    """
    iampolicy - Access-control policy documents from the command line.

    Validate policy documents, evaluate requests against them and render
    them for review.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _output_json_error(
    error_type: str,
    message: str,
    include_traceback: bool = False,
    details: dict[str, Any] | None = None,
) -> None:
    """Output an error in JSON format."""
    output: dict[str, Any] = {
        "error": True,
        "error_type": error_type,
        "message": message,
    }
    if details:
        output["details"] = details
    if include_traceback:
        output["traceback"] = traceback.format_exc()
    print(json.dumps(output, indent=2))


def _fail(error_type: str, error: Exception, json_output: bool, debug: bool) -> NoReturn:
    """Report an input error and exit with code 1."""
    if json_output:
        details = error.to_dict() if isinstance(error, IamPolicyError) else None
        _output_json_error(error_type, str(error), debug, details)
    else:
        console.print(f"[red]Error: {escape(str(error))}[/red]")
        if debug:
            console.print(f"[dim]{escape(traceback.format_exc())}[/dim]")
    raise typer.Exit(code=EXIT_INPUT_ERROR)


@app.command()
def verify(
    files: Annotated[
        list[Path],
        typer.Argument(help="Policy documents to check (JSON, or YAML by suffix)."),
    ],
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output results in JSON format.",
        ),
    ] = False,
) -> None:
    """
    Parse and validate policy documents.

    Prints a summary of every valid document and the error for every
    invalid one. Exits with code 1 if any document fails.

    Example:
        $ iampolicy verify policy.json other.yaml
    """
    results = []
    failed = False

    for path in files:
        try:
            policy = load_policy(path)
        except IamPolicyError as e:
            failed = True
            results.append({"file": str(path), "valid": False, "error": e.to_dict()})
            if not json_output:
                console.print(f"[red]✗[/red] {escape(str(path))}: [red]{escape(str(e))}[/red]")
            continue

        results.append({
            "file": str(path),
            "valid": True,
            "id": policy.id,
            "version": policy.version.value if policy.version else None,
            "statements": len(policy.statements),
        })
        if not json_output:
            console.print(
                f"[green]✓[/green] {escape(str(path))}: {len(policy.statements)} statement(s)"
            )
            print_policy_summary(policy, console, source=str(path))

    if json_output:
        print(json.dumps({"valid": not failed, "files": results}, indent=2))

    if failed:
        raise typer.Exit(code=EXIT_INPUT_ERROR)


def _parse_context(pairs: list[str]) -> dict[str, list[str]]:
    """Turn repeated KEY=VALUE options into a context mapping."""
    context: dict[str, list[str]] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected KEY=VALUE, got {pair!r}", param_hint="--context")
        context.setdefault(key, []).append(value)
    return context


def _build_request(
    request_path: Path | None,
    action: str | None,
    resource: str | None,
    principal: str | None,
    context: list[str],
) -> Request:
    """Merge a request file with command-line overrides."""
    data: dict[str, Any] = {}
    if request_path is not None:
        data = load_request(request_path).model_dump()
    if action is not None:
        data["action"] = action
    if resource is not None:
        data["resource"] = resource
    if principal is not None:
        data["principal"] = principal
    if context:
        merged = {key: list(values) for key, values in data.get("context", {}).items()}
        for key, values in _parse_context(context).items():
            merged.setdefault(key, []).extend(values)
        data["context"] = merged
    try:
        return Request.model_validate(data)
    except PydanticValidationError as err:
        raise validation_error_from_pydantic(err, "request") from None


@app.command("evaluate")
def evaluate_request(
    files: Annotated[
        list[Path],
        typer.Argument(help="Policy documents whose statements form the evaluation pool."),
    ],
    action: Annotated[
        Optional[str],
        typer.Option("--action", "-a", help="Action being requested, e.g. s3:GetObject."),
    ] = None,
    resource: Annotated[
        Optional[str],
        typer.Option("--resource", "-r", help="Resource identifier the action applies to."),
    ] = None,
    principal: Annotated[
        Optional[str],
        typer.Option("--principal", "-p", help="Requesting principal as TYPE:ID, e.g. AWS:arn:aws:iam::123456789012:root."),
    ] = None,
    context: Annotated[
        Optional[list[str]],
        typer.Option("--context", "-c", help="Condition context entry KEY=VALUE (repeatable)."),
    ] = None,
    request_path: Annotated[
        Optional[Path],
        typer.Option("--request", help="YAML or JSON file describing the request."),
    ] = None,
    config: Annotated[
        Optional[Path],
        typer.Option("--config", help="YAML file with evaluation options."),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output results in JSON format.",
        ),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option(
            "--debug",
            help="Enable debug mode with full error tracebacks.",
        ),
    ] = False,
) -> None:
    """
    Decide a request against policy documents.

    Every statement of every document is evaluated; an explicit Deny
    overrides any Allow, and no match at all is an implicit deny.

    Example:
        $ iampolicy evaluate policy.json -a s3:GetObject -r arn:aws:s3:::b/key \\
            -c aws:SecureTransport=true
    """
    policies: list[Policy] = []
    for path in files:
        try:
            policies.append(load_policy(path))
        except IamPolicyError as e:
            _fail("policy_load_error", e, json_output, debug)

    try:
        options = load_options(config) if config is not None else EvaluationOptions()
        request = _build_request(request_path, action, resource, principal, context or [])
    except (IamPolicyError, typer.BadParameter) as e:
        _fail("request_error", e, json_output, debug)

    logger.debug("Evaluating %s on %s against %d policies", request.action, request.resource, len(policies))
    result = PolicyEngine(policies, options).evaluate(request)

    if json_output:
        print(generate_json_report(result, request, [str(f) for f in files]))
    else:
        print_evaluation_result(result, request, console)

    raise typer.Exit(code=EXIT_CODES[result.decision])


@app.command()
def report(
    file: Annotated[
        Path,
        typer.Argument(help="Policy document to describe."),
    ],
    out: Annotated[
        Optional[Path],
        typer.Option("--out", "-o", help="Write the Markdown to this file instead of stdout."),
    ] = None,
    debug: Annotated[
        bool,
        typer.Option(
            "--debug",
            help="Enable debug mode with full error tracebacks.",
        ),
    ] = False,
) -> None:
    """
    Render a policy document as Markdown.

    Example:
        $ iampolicy report policy.json --out policy.md
    """
    try:
        policy = load_policy(file)
    except IamPolicyError as e:
        _fail("policy_load_error", e, False, debug)

    text = generate_markdown_report(policy)
    if out is None:
        print(text, end="")
        return

    try:
        out.write_text(text, encoding="utf-8")
    except OSError as e:
        _fail("write_error", PolicyFileError(path=str(out), operation="write", underlying_error=str(e)), False, debug)
    console.print(f"[dim]Report written to {escape(str(out))}[/dim]")


@app.command()
def new(
    template: Annotated[
        str,
        typer.Argument(help="Template name; see `iampolicy templates`."),
    ],
    out: Annotated[
        Optional[Path],
        typer.Option("--out", "-o", help="Write the document to this file (YAML for .yaml/.yml)."),
    ] = None,
) -> None:
    """
    Write a starter policy document.

    Example:
        $ iampolicy new s3 --out bucket-policy.json
    """
    if template not in template_names():
        console.print(f"[red]Unknown template: {escape(template)}[/red]")
        console.print(f"[dim]Available: {', '.join(template_names())}[/dim]")
        raise typer.Exit(code=EXIT_INPUT_ERROR)

    if out is None:
        print(get_template(template), end="")
        return

    try:
        save_policy(load_template(template), out)
    except IamPolicyError as e:
        _fail("write_error", e, False, False)
    console.print(f"[green]✓[/green] Wrote {template} template to {escape(str(out))}")


@app.command()
def templates() -> None:
    """List the available starter templates."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("Name", style="cyan")
    table.add_column("Id")
    table.add_column("Statements", justify="right")

    for name in template_names():
        policy = load_template(name)
        table.add_row(name, policy.id or "[dim]-[/dim]", str(len(policy.statements)))

    console.print(table)


if __name__ == "__main__":
    app()
