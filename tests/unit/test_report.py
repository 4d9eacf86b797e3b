"""
Unit tests for reporting.

Tests cover:
- Node traversal order, kinds and paths
- Visitors receiving every node
- Markdown rendering
- JSON decision reports
- Console rendering
"""

import json
from io import StringIO

from rich.console import Console

from iampolicy.codec import parse
from iampolicy.policy import evaluate
from iampolicy.report import (
    MarkdownReport,
    Node,
    NodeKind,
    build_decision_dict,
    generate_json_report,
    generate_markdown_report,
    iter_nodes,
    print_evaluation_result,
    print_policy_summary,
    walk_policy,
)
from iampolicy.schema import Request, RequestPrincipal


def _secure_request(secure: str) -> Request:
    return Request(
        action="s3:GetObject",
        resource="arn:aws:s3:::examplebucket/key",
        principal=RequestPrincipal.parse("AWS:arn:aws:iam::123456789012:user/alice"),
        context={"aws:SecureTransport": secure},
        request_id="req-1",
    )


class TestTraversal:
    """Tests for iter_nodes() and walk_policy()."""

    def test_node_order(self, bucket_policy_json: str) -> None:
        """Nodes come in document order with their kinds."""
        kinds = [node.kind for node in iter_nodes(parse(bucket_policy_json))]
        assert kinds == [
            NodeKind.POLICY,
            NodeKind.STATEMENT,
            NodeKind.PRINCIPAL,
            NodeKind.STATEMENT,
            NodeKind.PRINCIPAL,
            NodeKind.CONDITION_ENTRY,
        ]

    def test_paths_and_depths(self, bucket_policy_json: str) -> None:
        """Nodes carry element paths and depths."""
        nodes = list(iter_nodes(parse(bucket_policy_json)))
        assert nodes[0].path == ""
        assert nodes[0].depth == 0
        assert nodes[3].path == "Statement[1]"
        assert nodes[5].path == "Statement[1].Condition.Bool.aws:SecureTransport"
        assert nodes[5].depth == 2

    def test_condition_entry_value(self, bucket_policy_json: str) -> None:
        """Condition entries carry operator, key and values."""
        entry = list(iter_nodes(parse(bucket_policy_json)))[-1].value
        assert str(entry.operator) == "Bool"
        assert entry.key == "aws:SecureTransport"
        assert entry.values == ("false",)

    def test_not_principal_path(self, mfa_deny_json: str) -> None:
        """Statements without principals yield no principal node."""
        kinds = [node.kind for node in iter_nodes(parse(mfa_deny_json))]
        assert NodeKind.PRINCIPAL not in kinds

    def test_walk_calls_visitor(self, bucket_policy_json: str) -> None:
        """walk_policy calls visit once per node."""

        class Collector:
            def __init__(self) -> None:
                self.nodes: list[Node] = []

            def visit(self, node: Node) -> None:
                self.nodes.append(node)

        collector = Collector()
        policy = parse(bucket_policy_json)
        walk_policy(policy, collector)
        assert collector.nodes == list(iter_nodes(policy))


class TestMarkdownReport:
    """Tests for Markdown rendering."""

    def test_sections(self, bucket_policy_json: str) -> None:
        """The report has a title and one section per statement."""
        text = generate_markdown_report(parse(bucket_policy_json))
        assert text.startswith("# Policy `BucketPolicy`")
        assert "**Version:** 2012-10-17" in text
        assert "## `AllowRead`: Allow" in text
        assert "## `DenyInsecure`: Deny" in text

    def test_elements(self, bucket_policy_json: str) -> None:
        """Actions, resources, principals and conditions are listed."""
        text = generate_markdown_report(parse(bucket_policy_json))
        assert "- **Action:** `s3:GetObject`, `s3:ListBucket`" in text
        assert "  - AWS: `arn:aws:iam::123456789012:user/alice`" in text
        assert "- **Principal:** `*` (anyone)" in text
        assert "| `Bool` | `aws:SecureTransport` | `false` |" in text

    def test_not_action(self, mfa_deny_json: str) -> None:
        """Negated elements are labelled as such."""
        text = generate_markdown_report(parse(mfa_deny_json), title="MFA")
        assert text.startswith("# MFA")
        assert "- **NotAction:** `iam:*`" in text
        assert "| `BoolIfExists` |" in text

    def test_report_object(self, mfa_deny_json: str) -> None:
        """MarkdownReport can be driven directly."""
        report = MarkdownReport()
        walk_policy(parse(mfa_deny_json), report)
        assert report.render().endswith("\n")


class TestJsonReport:
    """Tests for JSON decision reports."""

    def test_decision_dict(self, bucket_policy_json: str) -> None:
        """The dict carries the request and the decision."""
        request = _secure_request("false")
        result = evaluate([parse(bucket_policy_json)], request)
        data = build_decision_dict(result, request, ["bucket.json"])
        assert data["decision"] == "Deny"
        assert data["allowed"] is False
        assert data["matched_statements"] == ["AllowRead", "DenyInsecure"]
        assert data["request"]["principal"]["type"] == "AWS"
        assert data["request"]["context"] == {"aws:SecureTransport": ["false"]}
        assert data["request"]["request_id"] == "req-1"
        assert data["policies"] == ["bucket.json"]
        assert "generated_at" in data

    def test_json_text(self, bucket_policy_json: str) -> None:
        """generate_json_report returns parseable JSON."""
        request = _secure_request("true")
        result = evaluate([parse(bucket_policy_json)], request)
        data = json.loads(generate_json_report(result, request))
        assert data["decision"] == "Allow"
        assert data["allowed"] is True


class TestConsoleReport:
    """Tests for Rich console rendering."""

    def _console(self) -> tuple[Console, StringIO]:
        buffer = StringIO()
        return Console(file=buffer, width=200, color_system=None), buffer

    def test_policy_summary(self, bucket_policy_json: str) -> None:
        """The summary lists every statement."""
        console, buffer = self._console()
        print_policy_summary(parse(bucket_policy_json), console)
        output = buffer.getvalue()
        assert "BucketPolicy" in output
        assert "AllowRead" in output
        assert "DenyInsecure" in output

    def test_evaluation_result(self, bucket_policy_json: str) -> None:
        """The decision and matched statements are printed."""
        console, buffer = self._console()
        request = _secure_request("false")
        result = evaluate([parse(bucket_policy_json)], request)
        print_evaluation_result(result, request, console)
        output = buffer.getvalue()
        assert "Deny" in output
        assert "AllowRead, DenyInsecure" in output

    def test_bracketed_sid_and_patterns(self) -> None:
        """Sids and patterns that look like markup are printed literally."""
        console, buffer = self._console()
        policy = parse(
            '{"Statement": {"Sid": "a[/b]", "Effect": "Allow", "Action": "s3:[bold]Get",'
            ' "NotResource": "arn:aws:s3:::b/[/x]"}}'
        )
        print_policy_summary(policy, console)
        output = buffer.getvalue()
        assert "a[/b]" in output
        assert "s3:[bold]Get" in output
        assert "arn:aws:s3:::b/[/x]" in output

    def test_bracketed_request(self) -> None:
        """Request fields that look like markup are printed literally."""
        console, buffer = self._console()
        policy = parse('{"Statement": {"Sid": "[/s]", "Effect": "Allow", "Action": "*", "Resource": "*"}}')
        request = Request(
            action="s3:GetObject",
            resource="arn:aws:s3:::b/[/x]",
            principal=RequestPrincipal.parse("AWS:[red]alice"),
        )
        result = evaluate([policy], request)
        print_evaluation_result(result, request, console)
        output = buffer.getvalue()
        assert "arn:aws:s3:::b/[/x]" in output
        assert "AWS:[red]alice" in output
        assert "Allowed by statement [/s]" in output
