"""
iampolicy - Parse, validate and evaluate access-control policy documents.

iampolicy models the JSON policy language used by cloud access-control
systems and decides requests against it. It provides:
- An immutable, validated policy model
- A wire codec that reads and writes hand-written policy documents
- A deny-overrides evaluation engine with the full condition operator table
- Builders, reports and a command-line tool on top of the model

Example usage:
    from iampolicy import Request, evaluate, parse

    policy = parse(text)
    result = evaluate([policy], Request(action="s3:GetObject", resource="arn:aws:s3:::b/k"))

    $ iampolicy verify policy.json
    $ iampolicy evaluate policy.json --action s3:GetObject --resource arn:aws:s3:::b/k
"""

__version__ = "0.1.0"
__author__ = "iampolicy Contributors"

from iampolicy.codec import load_policy, parse, save_policy, serialize
from iampolicy.errors import (
    IamPolicyError,
    ParseError,
    PolicyFileError,
    ValidationError,
)
from iampolicy.policy import PolicyEngine, evaluate
from iampolicy.schema import (
    ConditionOperator,
    Decision,
    Effect,
    EvaluationOptions,
    EvaluationResult,
    Policy,
    Principal,
    PrincipalType,
    Request,
    RequestPrincipal,
    Statement,
    Version,
)

__all__ = [
    "__version__",
    "__author__",
    "ConditionOperator",
    "Decision",
    "Effect",
    "EvaluationOptions",
    "EvaluationResult",
    "IamPolicyError",
    "ParseError",
    "Policy",
    "PolicyEngine",
    "PolicyFileError",
    "Principal",
    "PrincipalType",
    "Request",
    "RequestPrincipal",
    "Statement",
    "ValidationError",
    "Version",
    "evaluate",
    "load_policy",
    "parse",
    "save_policy",
    "serialize",
]
