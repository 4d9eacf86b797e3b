"""
Wire codec for iampolicy.

Converts between the policy model (schema.py) and the JSON policy grammar.

The grammar lets Statement, the Action/Resource lists (and their Not*
forms), principal identifier lists and condition values appear either as
a single scalar or as an array. OneOrMany absorbs that polymorphism in one
place: decoding accepts both shapes, encoding emits a bare scalar for
exactly one element and an array otherwise.

Design Decisions:
    - Shape problems (bad JSON, wrong JSON type, unknown key) raise ParseError
    - Rule violations (exclusive pairs, empty lists, bad enum values) raise
      ValidationError
    - Every error carries the path of the offending element
    - Key order on output follows the conventional document layout
    - YAML documents are read and written for files ending in .yaml/.yml

Usage:
    policy = parse(text)
    text = serialize(policy)
"""

import json
import logging
from collections.abc import Callable, Sequence
from datetime import date, datetime
from pathlib import Path
from typing import Any, Generic, TypeVar

import yaml
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from iampolicy.errors import (
    IamPolicyError,
    InvalidJsonError,
    MissingPropertyError,
    PolicyFileError,
    TypeMismatchError,
    UnexpectedPropertyError,
    UnexpectedValueError,
    ValidationError,
)
from iampolicy.schema import (
    WILDCARD,
    ConditionBlock,
    ConditionOperator,
    Effect,
    EvaluationOptions,
    Policy,
    Principal,
    PrincipalType,
    Request,
    Statement,
    Version,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

YAML_SUFFIXES = (".yaml", ".yml")

POLICY_KEYS = ("Version", "Id", "Statement")
STATEMENT_KEYS = (
    "Sid",
    "Effect",
    "Principal",
    "NotPrincipal",
    "Action",
    "NotAction",
    "Resource",
    "NotResource",
    "Condition",
)


# =============================================================================
# Helpers
# =============================================================================


def json_type(value: Any) -> str:
    """Name of the JSON type of a decoded value, for error messages."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _expect_object(raw: Any, element: str) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise TypeMismatchError(expecting="object", found=json_type(raw), element=element)
    return raw


def _expect_string(raw: Any, element: str) -> str:
    if not isinstance(raw, str):
        raise TypeMismatchError(expecting="string", found=json_type(raw), element=element)
    return raw


def _check_keys(raw: dict[str, Any], allowed: Sequence[str], element: str) -> None:
    unexpected = [key for key in raw if key not in allowed]
    if unexpected:
        raise UnexpectedPropertyError(properties=unexpected, element=element)


def _join(element: str, name: str) -> str:
    return f"{element}.{name}" if element else name


def validation_error_from_pydantic(err: PydanticValidationError, element: str = "") -> ValidationError:
    """Translate a pydantic ValidationError into the project's ValidationError."""
    details = err.errors()
    if details:
        first = details[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = first.get("msg", str(err))
        if location:
            message = f"{location}: {message}"
    else:
        message = str(err)
    return ValidationError(message=message, element=element)


# =============================================================================
# One-or-many
# =============================================================================


class OneOrMany(Generic[T]):
    """
    A wire field that holds either one item or an array of items.

    Attributes:
        expecting: Description of the accepted item shape, for errors
        decode_item: Converts one raw item (with its element path)
        encode_item: Converts one model item back to its wire form
    """

    def __init__(
        self,
        expecting: str,
        decode_item: Callable[[Any, str], T],
        encode_item: Callable[[T], Any],
    ) -> None:
        self.expecting = expecting
        self.decode_item = decode_item
        self.encode_item = encode_item

    def decode(self, raw: Any, element: str) -> tuple[T, ...]:
        """Decode a scalar or an array into a tuple of items."""
        if isinstance(raw, list):
            return tuple(self.decode_item(item, f"{element}[{i}]") for i, item in enumerate(raw))
        if isinstance(raw, dict) and self.expecting != "object":
            raise TypeMismatchError(
                expecting=f"{self.expecting} or array",
                found=json_type(raw),
                element=element,
            )
        return (self.decode_item(raw, element),)

    def encode(self, values: Sequence[T]) -> Any:
        """A bare item for exactly one value, an array otherwise."""
        if len(values) == 1:
            return self.encode_item(values[0])
        return [self.encode_item(value) for value in values]


def _decode_condition_value(raw: Any, element: str) -> str:
    if isinstance(raw, bool):
        return "true" if raw else "false"
    if isinstance(raw, (int, float)):
        return str(raw)
    # YAML reads unquoted timestamps as dates.
    if isinstance(raw, (date, datetime)):
        return raw.isoformat()
    return _expect_string(raw, element)


def _identity(value: str) -> str:
    return value


STRINGS: OneOrMany[str] = OneOrMany("string", _expect_string, _identity)
CONDITION_VALUES: OneOrMany[str] = OneOrMany("string", _decode_condition_value, _identity)


# =============================================================================
# Decoding
# =============================================================================


def _decode_version(raw: Any, element: str) -> Version:
    if isinstance(raw, date):
        raw = raw.isoformat()
    value = _expect_string(raw, element)
    try:
        return Version(value)
    except ValueError:
        raise UnexpectedValueError(
            name="Version",
            value=value,
            allowed=[v.value for v in Version],
            element=element,
        ) from None


def _decode_effect(raw: Any, element: str) -> Effect:
    value = _expect_string(raw, element)
    try:
        return Effect(value)
    except ValueError:
        raise UnexpectedValueError(
            name="Effect",
            value=value,
            allowed=[e.value for e in Effect],
            element=element,
        ) from None


def _decode_principal(raw: Any, element: str) -> Principal:
    if raw == WILDCARD:
        return Principal.any()
    if isinstance(raw, str):
        raise UnexpectedValueError(
            name=element.rsplit(".", 1)[-1],
            value=raw,
            allowed=[WILDCARD],
            element=element,
        )
    raw = _expect_object(raw, element)

    identifiers: dict[PrincipalType, tuple[str, ...]] = {}
    for key, ids in raw.items():
        try:
            principal_type = PrincipalType(key)
        except ValueError:
            raise UnexpectedValueError(
                name="principal type",
                value=key,
                allowed=[p.value for p in PrincipalType],
                element=element,
            ) from None
        identifiers[principal_type] = STRINGS.decode(ids, _join(element, key))

    try:
        return Principal(identifiers=identifiers)
    except IamPolicyError as err:
        raise err.at(element) from None


def _decode_condition(raw: Any, element: str) -> ConditionBlock:
    raw = _expect_object(raw, element)
    block: ConditionBlock = {}
    for spelling, entries in raw.items():
        entry_element = _join(element, spelling)
        try:
            operator = ConditionOperator.parse(spelling)
        except IamPolicyError as err:
            raise err.at(entry_element) from None
        entries = _expect_object(entries, entry_element)
        block[operator] = {
            key: CONDITION_VALUES.decode(values, _join(entry_element, key))
            for key, values in entries.items()
        }
    return block


def statement_from_dict(raw: Any, element: str = "Statement") -> Statement:
    """
    Decode one statement object.

    Args:
        raw: The decoded JSON value
        element: Path of the statement, used in errors

    Returns:
        The validated Statement

    Raises:
        ParseError: If the value has the wrong shape
        ValidationError: If the statement breaks a model invariant
    """
    raw = _expect_object(raw, element)
    _check_keys(raw, STATEMENT_KEYS, element)

    if "Effect" not in raw:
        raise MissingPropertyError(name="Effect", element=element)

    fields: dict[str, Any] = {"effect": _decode_effect(raw["Effect"], _join(element, "Effect"))}
    if "Sid" in raw:
        fields["sid"] = _expect_string(raw["Sid"], _join(element, "Sid"))
    for key, field_name in (("Principal", "principal"), ("NotPrincipal", "not_principal")):
        if key in raw:
            fields[field_name] = _decode_principal(raw[key], _join(element, key))
    for key, field_name in (
        ("Action", "action"),
        ("NotAction", "not_action"),
        ("Resource", "resource"),
        ("NotResource", "not_resource"),
    ):
        if key in raw:
            fields[field_name] = STRINGS.decode(raw[key], _join(element, key))
    if "Condition" in raw:
        fields["condition"] = _decode_condition(raw["Condition"], _join(element, "Condition"))

    try:
        return Statement(**fields)
    except IamPolicyError as err:
        raise err.at(err.context.get("element") or element) from None
    except PydanticValidationError as err:
        raise validation_error_from_pydantic(err, element) from None


STATEMENTS: OneOrMany[Statement] = OneOrMany(
    "object",
    statement_from_dict,
    lambda statement: statement_to_dict(statement),
)


def policy_from_dict(raw: Any) -> Policy:
    """
    Decode a policy document that has already been read from JSON or YAML.

    Raises:
        ParseError: If the document has the wrong shape
        ValidationError: If the document breaks a model invariant
    """
    raw = _expect_object(raw, "")
    _check_keys(raw, POLICY_KEYS, "")

    if "Statement" not in raw:
        raise MissingPropertyError(name="Statement")

    fields: dict[str, Any] = {}
    if "Version" in raw:
        fields["version"] = _decode_version(raw["Version"], "Version")
    if "Id" in raw:
        fields["id"] = _expect_string(raw["Id"], "Id")
    fields["statements"] = STATEMENTS.decode(raw["Statement"], "Statement")

    try:
        policy = Policy(**fields)
    except IamPolicyError as err:
        raise err.at(err.context.get("element") or "Statement") from None
    except PydanticValidationError as err:
        raise validation_error_from_pydantic(err) from None

    logger.debug("Decoded policy %s with %d statement(s)", policy.id or "<no id>", len(policy.statements))
    return policy


def parse(text: str) -> Policy:
    """
    Parse a JSON policy document.

    Args:
        text: The document text

    Returns:
        The validated Policy

    Raises:
        InvalidJsonError: If the text is not valid JSON
        ParseError: If the document has the wrong shape
        ValidationError: If the document breaks a model invariant
    """
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidJsonError(
            message=f"Malformed JSON: {e.msg} at line {e.lineno}, column {e.colno}",
            line=e.lineno,
            column=e.colno,
        ) from None
    return policy_from_dict(raw)


def parse_yaml(text: str) -> Policy:
    """Parse a policy document written in YAML."""
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        line = mark.line + 1 if mark is not None else 0
        column = mark.column + 1 if mark is not None else 0
        raise InvalidJsonError(
            message=f"Malformed YAML: {getattr(e, 'problem', None) or e}",
            line=line,
            column=column,
        ) from None
    return policy_from_dict(raw)


# =============================================================================
# Encoding
# =============================================================================


def _encode_principal(principal: Principal) -> Any:
    if principal.identifiers is None:
        return WILDCARD
    return {
        principal_type.value: STRINGS.encode(ids)
        for principal_type, ids in principal.identifiers.items()
    }


def _encode_condition(condition: ConditionBlock) -> dict[str, Any]:
    return {
        str(operator): {key: CONDITION_VALUES.encode(values) for key, values in entries.items()}
        for operator, entries in condition.items()
    }


def statement_to_dict(statement: Statement) -> dict[str, Any]:
    """Encode one statement in conventional key order."""
    out: dict[str, Any] = {}
    if statement.sid is not None:
        out["Sid"] = statement.sid
    out["Effect"] = statement.effect.value
    if statement.principal is not None:
        out["Principal"] = _encode_principal(statement.principal)
    if statement.not_principal is not None:
        out["NotPrincipal"] = _encode_principal(statement.not_principal)
    for key, values in (
        ("Action", statement.action),
        ("NotAction", statement.not_action),
        ("Resource", statement.resource),
        ("NotResource", statement.not_resource),
    ):
        if values is not None:
            out[key] = STRINGS.encode(values)
    if statement.condition:
        out["Condition"] = _encode_condition(statement.condition)
    return out


def policy_to_dict(policy: Policy) -> dict[str, Any]:
    """Encode a policy as plain JSON-compatible data."""
    out: dict[str, Any] = {}
    if policy.version is not None:
        out["Version"] = policy.version.value
    if policy.id is not None:
        out["Id"] = policy.id
    out["Statement"] = STATEMENTS.encode(policy.statements)
    return out


def serialize(policy: Policy, indent: int | None = 2) -> str:
    """
    Serialize a policy to JSON text.

    Args:
        policy: The policy to encode
        indent: JSON indentation level, None for a single line

    Returns:
        The document text
    """
    logger.debug("Encoding policy %s", policy.id or "<no id>")
    return json.dumps(policy_to_dict(policy), indent=indent)


# =============================================================================
# Files
# =============================================================================


def _is_yaml(path: Path) -> bool:
    return path.suffix.lower() in YAML_SUFFIXES


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise PolicyFileError(path=str(path), operation="read", underlying_error=str(e)) from e


def load_policy(path: Path | str) -> Policy:
    """
    Load a policy document from a file.

    Files ending in .yaml or .yml are read as YAML, anything else as JSON.

    Raises:
        PolicyFileError: If the file cannot be read
        ParseError: If the document has the wrong shape
        ValidationError: If the document breaks a model invariant
    """
    path = Path(path)
    text = _read_text(path)
    policy = parse_yaml(text) if _is_yaml(path) else parse(text)
    logger.debug("Loaded policy from %s", path)
    return policy


def save_policy(policy: Policy, path: Path | str) -> Path:
    """
    Write a policy document to a file, as YAML or JSON by suffix.

    Returns:
        The path written

    Raises:
        PolicyFileError: If the file cannot be written
    """
    path = Path(path)
    if _is_yaml(path):
        text = yaml.safe_dump(policy_to_dict(policy), sort_keys=False)
    else:
        text = serialize(policy) + "\n"
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise PolicyFileError(path=str(path), operation="write", underlying_error=str(e)) from e
    return path


ModelT = TypeVar("ModelT", bound=BaseModel)


def _load_model(path: Path | str, model: type[ModelT]) -> ModelT:
    path = Path(path)
    text = _read_text(path)
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise InvalidJsonError(message=f"Malformed YAML in {path}: {e}") from None
    try:
        return model.model_validate(data or {})
    except PydanticValidationError as err:
        raise validation_error_from_pydantic(err, str(path)) from None


def load_request(path: Path | str) -> Request:
    """
    Load an evaluation request from a YAML (or JSON) file.

    Example file:
        action: s3:GetObject
        resource: arn:aws:s3:::examplebucket/key
        principal: AWS:arn:aws:iam::123456789012:user/alice
        context:
          aws:SecureTransport: "true"
    """
    return _load_model(path, Request)


def load_options(path: Path | str) -> EvaluationOptions:
    """Load EvaluationOptions from a YAML (or JSON) file."""
    return _load_model(path, EvaluationOptions)
