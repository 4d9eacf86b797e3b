"""
Pytest configuration and fixtures for iampolicy tests.

This module provides shared fixtures used across unit and integration
tests.
"""

import tempfile
from pathlib import Path
from typing import Generator

import pytest


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def bucket_policy_json() -> str:
    """Return a bucket policy with an allow and a deny statement."""
    return """
{
  "Version": "2012-10-17",
  "Id": "BucketPolicy",
  "Statement": [
    {
      "Sid": "AllowRead",
      "Effect": "Allow",
      "Principal": {"AWS": "arn:aws:iam::123456789012:user/alice"},
      "Action": ["s3:GetObject", "s3:ListBucket"],
      "Resource": ["arn:aws:s3:::examplebucket", "arn:aws:s3:::examplebucket/*"]
    },
    {
      "Sid": "DenyInsecure",
      "Effect": "Deny",
      "Principal": "*",
      "Action": "s3:*",
      "Resource": "arn:aws:s3:::examplebucket/*",
      "Condition": {"Bool": {"aws:SecureTransport": "false"}}
    }
  ]
}
"""


@pytest.fixture
def mfa_deny_json() -> str:
    """Return a policy denying everything outside IAM without MFA."""
    return """
{
  "Version": "2012-10-17",
  "Statement": {
    "Sid": "DenyAllExceptListedIfNoMFA",
    "Effect": "Deny",
    "NotAction": "iam:*",
    "Resource": "*",
    "Condition": {"BoolIfExists": {"aws:MultiFactorAuthPresent": "false"}}
  }
}
"""


@pytest.fixture
def bucket_policy_file(temp_dir: Path, bucket_policy_json: str) -> Path:
    """Write the bucket policy to a JSON file."""
    path = temp_dir / "bucket.json"
    path.write_text(bucket_policy_json)
    return path


@pytest.fixture
def mfa_deny_file(temp_dir: Path, mfa_deny_json: str) -> Path:
    """Write the MFA deny policy to a JSON file."""
    path = temp_dir / "mfa.json"
    path.write_text(mfa_deny_json)
    return path
