"""
JSON report generator for iampolicy.

Generates structured JSON for evaluation results, for programmatic
consumption and audit logs.

Design Principles:
    - Complete data: the request and the decision, with matched statements
    - Consistent schema: same structure for every decision
    - Human-readable keys: descriptive snake_case names
    - ISO timestamps: standard datetime format
"""

import json
from datetime import UTC, datetime
from typing import Any

from iampolicy.schema import EvaluationResult, Request


def build_decision_dict(
    result: EvaluationResult,
    request: Request,
    sources: list[str] | None = None,
) -> dict[str, Any]:
    """
    Build a report dictionary for one evaluation.

    Args:
        result: The evaluation outcome
        request: The request that was evaluated
        sources: Optional names of the policy files evaluated

    Returns:
        Dictionary describing the request and its decision
    """
    principal = None
    if request.principal is not None:
        principal = {
            "type": request.principal.principal_type.value,
            "identifier": request.principal.identifier,
        }

    return {
        "report_version": "1.0",
        "generated_at": datetime.now(UTC).isoformat(),
        "policies": list(sources or []),
        "request": {
            "request_id": request.request_id,
            "action": request.action,
            "resource": request.resource,
            "principal": principal,
            "context": {key: list(values) for key, values in request.context.items()},
        },
        "decision": result.decision.value,
        "allowed": result.allowed,
        "matched_statements": list(result.matched_statements),
        "reason": result.reason,
    }


def generate_json_report(
    result: EvaluationResult,
    request: Request,
    sources: list[str] | None = None,
    indent: int = 2,
) -> str:
    """
    Generate a JSON report for one evaluation.

    Args:
        result: The evaluation outcome
        request: The request that was evaluated
        sources: Optional names of the policy files evaluated
        indent: JSON indentation level (default: 2)

    Returns:
        JSON string
    """
    return json.dumps(build_decision_dict(result, request, sources), indent=indent)
