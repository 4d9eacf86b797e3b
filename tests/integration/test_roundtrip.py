"""
Integration tests for documents moving through files and the engine.

Tests cover:
- Templates surviving JSON and YAML file round trips
- Built policies surviving a round trip with unchanged decisions
- The public package entry points
"""

from pathlib import Path

import pytest

import iampolicy
from iampolicy.builder import PolicyBuilder
from iampolicy.codec import load_policy, save_policy
from iampolicy.templates import load_template, template_names


class TestTemplateRoundTrip:
    """Templates through files."""

    @pytest.mark.parametrize("name", template_names())
    @pytest.mark.parametrize("suffix", [".json", ".yaml"])
    def test_round_trip(self, name: str, suffix: str, temp_dir: Path) -> None:
        """A saved template loads back equal."""
        policy = load_template(name)
        path = save_policy(policy, temp_dir / f"{name}{suffix}")
        assert load_policy(path) == policy

    def test_mfa_template_decisions(self) -> None:
        """The MFA template only allows confidential reads with MFA."""
        policy = load_template("mfa")
        resource = "arn:aws:s3:::confidential-data/plans.txt"
        with_mfa = iampolicy.Request(
            action="s3:GetObject",
            resource=resource,
            context={"aws:MultiFactorAuthPresent": "true"},
        )
        without_mfa = iampolicy.Request(action="s3:GetObject", resource=resource)
        assert iampolicy.evaluate([policy], with_mfa).decision is iampolicy.Decision.ALLOW
        assert iampolicy.evaluate([policy], without_mfa).decision is iampolicy.Decision.IMPLICIT_DENY


class TestPublicApi:
    """The package-level parse, serialize and evaluate."""

    def test_build_serialize_parse_evaluate(self) -> None:
        """A built policy decides the same after a text round trip."""
        builder = PolicyBuilder().with_version()
        builder.statement().named("Read").allows().actions("s3:Get*").resources("arn:aws:s3:::b/*")
        (
            builder.statement()
            .named("NoDeletes")
            .denies()
            .actions("s3:DeleteObject")
            .resources("*")
            .condition("StringNotEquals", "aws:username", "admin")
        )
        policy = builder.build()
        copy = iampolicy.parse(iampolicy.serialize(policy))
        assert copy == policy

        requests = [
            iampolicy.Request(action="s3:GetObject", resource="arn:aws:s3:::b/k"),
            iampolicy.Request(action="s3:DeleteObject", resource="arn:aws:s3:::b/k"),
            iampolicy.Request(
                action="s3:DeleteObject",
                resource="arn:aws:s3:::b/k",
                context={"aws:username": "admin"},
            ),
        ]
        decisions = [iampolicy.evaluate(copy, r).decision for r in requests]
        assert decisions == [
            iampolicy.Decision.ALLOW,
            iampolicy.Decision.DENY,
            iampolicy.Decision.IMPLICIT_DENY,
        ]

    def test_errors_exported(self) -> None:
        """Parse failures are catchable from the package root."""
        with pytest.raises(iampolicy.IamPolicyError):
            iampolicy.parse("{")
        with pytest.raises(iampolicy.ValidationError):
            iampolicy.parse('{"Statement": []}')
