"""
Policy variable expansion.

A ``${key}`` placeholder in a resource pattern or a condition value is
replaced by the request's single value for that context key. Placeholders
that cannot be resolved (unknown key, or a key carrying several values) are
left verbatim.
"""

import re
from collections.abc import Callable

VARIABLE_PATTERN = re.compile(r"\$\{([^${}]+)\}")


def has_variables(value: str) -> bool:
    return VARIABLE_PATTERN.search(value) is not None


def expand(value: str, lookup: Callable[[str], str | None]) -> str:
    """
    Replace each ``${key}`` in value with lookup(key).

    Args:
        value: Text that may contain placeholders
        lookup: Returns the replacement for a key, or None to keep the placeholder

    Returns:
        The expanded text
    """
    if not has_variables(value):
        return value

    def replace(match: re.Match[str]) -> str:
        replacement = lookup(match.group(1).strip())
        return match.group(0) if replacement is None else replacement

    return VARIABLE_PATTERN.sub(replace, value)
