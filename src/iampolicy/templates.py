"""
Starter policy documents.

Each template is a complete, valid policy document in the JSON wire
format, meant to be copied and edited.
"""

from iampolicy.codec import parse
from iampolicy.schema import Policy

TEMPLATES: dict[str, str] = {
    "s3": """{
  "Version": "2012-10-17",
  "Id": "S3-Account-Permissions",
  "Statement": [
    {
      "Sid": "1",
      "Effect": "Allow",
      "Principal": {"AWS": ["arn:aws:iam::ACCOUNT-ID-WITHOUT-HYPHENS:root"]},
      "Action": "s3:*",
      "Resource": [
        "arn:aws:s3:::mybucket",
        "arn:aws:s3:::mybucket/*"
      ]
    }
  ]
}
""",
    "mfa": """{
  "Version": "2012-10-17",
  "Statement": [
    {
      "Sid": "FirstStatement",
      "Effect": "Allow",
      "Action": ["iam:ChangePassword"],
      "Resource": "*"
    },
    {
      "Sid": "SecondStatement",
      "Effect": "Allow",
      "Action": "s3:ListAllMyBuckets",
      "Resource": "*"
    },
    {
      "Sid": "ThirdStatement",
      "Effect": "Allow",
      "Action": [
        "s3:List*",
        "s3:Get*"
      ],
      "Resource": [
        "arn:aws:s3:::confidential-data",
        "arn:aws:s3:::confidential-data/*"
      ],
      "Condition": {"Bool": {"aws:MultiFactorAuthPresent": "true"}}
    }
  ]
}
""",
    "iam": """{
  "Version": "2012-10-17",
  "Statement": [
    {
      "Effect": "Allow",
      "Action": [
        "iam:GenerateCredentialReport",
        "iam:Get*",
        "iam:List*"
      ],
      "Resource": "*"
    }
  ]
}
""",
}


def template_names() -> list[str]:
    return sorted(TEMPLATES)


def get_template(name: str) -> str:
    """
    Text of a named template.

    Raises:
        KeyError: If there is no template with that name
    """
    return TEMPLATES[name]


def load_template(name: str) -> Policy:
    """Parse a named template into a Policy."""
    return parse(get_template(name))
