"""
Reporting module for iampolicy.

This module renders policies and evaluation results for people and
programs. It only reads the public policy model.

Output formats:
    - Markdown: a reviewable description of a policy document
    - Console: Rich tables for policies, decision lines for evaluations
    - JSON: structured evaluation results for programmatic consumption

Example:
    from iampolicy.report import generate_markdown_report, generate_json_report

    print(generate_markdown_report(policy))
    print(generate_json_report(result, request))
"""

from iampolicy.report.console import print_evaluation_result, print_policy_summary
from iampolicy.report.json import build_decision_dict, generate_json_report
from iampolicy.report.markdown import MarkdownReport, generate_markdown_report
from iampolicy.report.visitor import Node, NodeKind, PolicyVisitor, iter_nodes, walk_policy

__all__ = [
    "MarkdownReport",
    "Node",
    "NodeKind",
    "PolicyVisitor",
    "build_decision_dict",
    "generate_json_report",
    "generate_markdown_report",
    "iter_nodes",
    "print_evaluation_result",
    "print_policy_summary",
    "walk_policy",
]
