"""
Exception hierarchy for iampolicy.

All iampolicy exceptions inherit from IamPolicyError, allowing callers to
catch every project-specific failure with a single except clause.

Exception Categories:
    - ParseError: The text is not a well-shaped policy document
    - ValidationError: The document is well-shaped but breaks a model invariant
    - PolicyFileError: A policy, request or options file could not be read/written

ParseError and ValidationError are siblings. A caller that only cares
about "is this document usable" catches IamPolicyError; a caller that wants
to distinguish malformed input from semantically invalid input catches them
separately.

Design Principles:
    - All errors have error codes for programmatic handling
    - All errors name the offending element in their context
    - Errors are designed to be both human-readable and machine-parseable
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Parse errors: 1xxx
ERROR_PARSE_FAILED = 1001
ERROR_PARSE_INVALID_JSON = 1002
ERROR_PARSE_TYPE_MISMATCH = 1003
ERROR_PARSE_UNEXPECTED_PROPERTY = 1004

# Validation errors: 2xxx
ERROR_VALIDATION_FAILED = 2001
ERROR_VALIDATION_MISSING_PROPERTY = 2002
ERROR_VALIDATION_EXCLUSIVE_PROPERTIES = 2003
ERROR_VALIDATION_EMPTY_VALUE = 2004
ERROR_VALIDATION_UNEXPECTED_VALUE = 2005
ERROR_VALIDATION_UNKNOWN_OPERATOR = 2006

# File errors: 3xxx
ERROR_FILE_READ = 3001
ERROR_FILE_WRITE = 3002


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class IamPolicyError(Exception):
    """
    Base exception for all iampolicy errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        element = self.context.get("element")
        if element:
            parts.append(f" (at {element})")
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def at(self, element: str) -> "IamPolicyError":
        """Record the path of the element that failed and return self."""
        if hasattr(self, "element"):
            self.element = element
        self.context["element"] = element
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Parse Errors
# =============================================================================


@dataclass
class ParseError(IamPolicyError):
    """
    Raised when a document cannot be decoded into the policy model.

    These errors are about shape: malformed JSON, a field holding the
    wrong JSON type, or a key the policy grammar does not define.

    Attributes:
        element: Path of the element being decoded (e.g. "Statement[0].Action")
    """

    element: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_PARSE_FAILED
        self.context["element"] = self.element


@dataclass
class InvalidJsonError(ParseError):
    """Raised when the document text is not valid JSON (or YAML)."""

    line: int = 0
    column: int = 0

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Malformed document at line {self.line}, column {self.column}"
        if self.code == 0:
            self.code = ERROR_PARSE_INVALID_JSON
        super().__post_init__()
        self.context.update({
            "line": self.line,
            "column": self.column,
        })


@dataclass
class TypeMismatchError(ParseError):
    """Raised when an element has the wrong JSON type."""

    expecting: str = ""
    found: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Invalid type; expecting {self.expecting} but found {self.found}"
            )
        if self.code == 0:
            self.code = ERROR_PARSE_TYPE_MISMATCH
        super().__post_init__()
        self.context.update({
            "expecting": self.expecting,
            "found": self.found,
        })


@dataclass
class UnexpectedPropertyError(ParseError):
    """Raised when an object carries keys the policy grammar does not define."""

    properties: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            names = ", ".join(self.properties)
            self.message = f"Unexpected properties: {names}"
        if self.code == 0:
            self.code = ERROR_PARSE_UNEXPECTED_PROPERTY
        super().__post_init__()
        self.context["properties"] = list(self.properties)


# =============================================================================
# Validation Errors
# =============================================================================


@dataclass
class ValidationError(IamPolicyError):
    """
    Raised when a document violates a policy model invariant.

    The input was well-shaped, but the values break a rule such as
    Action/NotAction exclusivity or an empty statement list.

    Attributes:
        element: Path of the offending element
    """

    element: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_VALIDATION_FAILED
        self.context["element"] = self.element


@dataclass
class MissingPropertyError(ValidationError):
    """Raised when a required element is absent."""

    name: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"A required property `{self.name}` was not found"
        if self.code == 0:
            self.code = ERROR_VALIDATION_MISSING_PROPERTY
        super().__post_init__()
        self.context["name"] = self.name


@dataclass
class ExclusivePropertiesError(ValidationError):
    """Raised when both members of a mutually exclusive pair are present."""

    names: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            pair = " and ".join(f"`{n}`" for n in self.names)
            self.message = f"Only one of {pair} may appear"
        if self.code == 0:
            self.code = ERROR_VALIDATION_EXCLUSIVE_PROPERTIES
        if not self.suggestion:
            self.suggestion = "Remove one of the two properties"
        super().__post_init__()
        self.context["names"] = list(self.names)


@dataclass
class EmptyValueError(ValidationError):
    """Raised when a list element that needs at least one value is empty."""

    name: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"`{self.name}` must have at least one value"
        if self.code == 0:
            self.code = ERROR_VALIDATION_EMPTY_VALUE
        super().__post_init__()
        self.context["name"] = self.name


@dataclass
class UnexpectedValueError(ValidationError):
    """Raised when an enumerated element holds a value outside its set."""

    name: str = ""
    value: str = ""
    allowed: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unexpected value `{self.value}` for `{self.name}`"
        if self.code == 0:
            self.code = ERROR_VALIDATION_UNEXPECTED_VALUE
        if not self.suggestion and self.allowed:
            self.suggestion = "Use one of: " + ", ".join(self.allowed)
        super().__post_init__()
        self.context.update({
            "name": self.name,
            "value": self.value,
        })


@dataclass
class UnknownOperatorError(ValidationError):
    """Raised when a condition operator name is not in the fixed operator table."""

    operator: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unknown condition operator: {self.operator}"
        if self.code == 0:
            self.code = ERROR_VALIDATION_UNKNOWN_OPERATOR
        if not self.suggestion:
            self.suggestion = (
                "Operators are spelled [ForAllValues:|ForAnyValue:]<Operator>[IfExists], "
                "e.g. StringEquals or ForAnyValue:StringLikeIfExists"
            )
        super().__post_init__()
        self.context["operator"] = self.operator


# =============================================================================
# File Errors
# =============================================================================


@dataclass
class PolicyFileError(IamPolicyError):
    """
    Raised when a policy, request or options file cannot be read or written.

    Attributes:
        path: The file path involved
        operation: "read" or "write"
        underlying_error: The OS-level error text
    """

    path: str = ""
    operation: str = "read"
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Could not {self.operation} {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_FILE_READ if self.operation == "read" else ERROR_FILE_WRITE
        self.context.update({
            "path": self.path,
            "operation": self.operation,
            "underlying_error": self.underlying_error,
        })
