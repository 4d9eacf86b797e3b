"""
Wildcard matching for action and resource identifiers.

Patterns use two wildcards:
    - ``*`` matches any run of zero or more characters
    - ``?`` matches exactly one character

There is no escape character; every ``*`` and ``?`` in a pattern is a
wildcard.

Action identifiers (``service:ActionName``) match case-insensitively.
Resource identifiers match case-sensitively. When both the pattern and the
candidate are ARN-shaped (``arn:partition:service:region:account:resource``)
they are compared field by field, and an empty field on either side matches
anything in that position. This is what lets ``arn:aws:s3:::bucket/*`` cover
objects whose ARN carries no region or account.

Compilation is pure and deterministic. PatternMatcher memoizes compiled
patterns for its own lifetime; the cache only ever grows with immutable
entries, so a matcher can be shared by concurrent readers.
"""

from dataclasses import dataclass

WILDCARD_ANY = "*"
WILDCARD_ONE = "?"
ARN_PREFIX = "arn"
ARN_FIELD_COUNT = 6


@dataclass(frozen=True)
class CompiledPattern:
    """
    A pattern split into literal runs and wildcard tokens.

    Tokens are either ``"*"``, ``"?"`` or a literal run that contains
    neither character.
    """

    source: str
    tokens: tuple[str, ...]

    @property
    def is_universal(self) -> bool:
        """True when the pattern matches every string."""
        return self.tokens == (WILDCARD_ANY,)

    @property
    def is_literal(self) -> bool:
        return all(t not in (WILDCARD_ANY, WILDCARD_ONE) for t in self.tokens)

    def matches(self, text: str) -> bool:
        """Return True if the whole of text is matched by this pattern."""
        if self.is_universal:
            return True
        if self.is_literal:
            return text == self.source

        tokens = self.tokens
        ti = 0
        pos = 0
        star_ti = -1
        star_pos = 0
        while True:
            if ti < len(tokens):
                token = tokens[ti]
                if token == WILDCARD_ANY:
                    star_ti = ti
                    star_pos = pos
                    ti += 1
                    continue
                if token == WILDCARD_ONE:
                    if pos < len(text):
                        pos += 1
                        ti += 1
                        continue
                elif text.startswith(token, pos):
                    pos += len(token)
                    ti += 1
                    continue
            elif pos == len(text):
                return True

            # Mismatch: let the most recent * swallow one more character.
            if star_ti < 0 or star_pos >= len(text):
                return False
            star_pos += 1
            ti = star_ti + 1
            pos = star_pos


def compile_pattern(pattern: str) -> CompiledPattern:
    """
    Split a pattern into literal runs and wildcards.

    Consecutive ``*`` collapse into one.

    Examples:
        "s3:*"        -> ("s3:", "*")
        "s3:Get*Acl?" -> ("s3:Get", "*", "Acl", "?")
        ""            -> ()
    """
    tokens: list[str] = []
    literal: list[str] = []
    for char in pattern:
        if char in (WILDCARD_ANY, WILDCARD_ONE):
            if literal:
                tokens.append("".join(literal))
                literal = []
            if char == WILDCARD_ANY and tokens and tokens[-1] == WILDCARD_ANY:
                continue
            tokens.append(char)
        else:
            literal.append(char)
    if literal:
        tokens.append("".join(literal))
    return CompiledPattern(source=pattern, tokens=tuple(tokens))


def split_arn(identifier: str) -> tuple[str, str, str, str, str] | None:
    """
    Split an ARN into (partition, service, region, account, resource).

    The resource part keeps any further ``:`` separators. Returns None for
    anything that is not ARN-shaped.
    """
    parts = identifier.split(":", ARN_FIELD_COUNT - 1)
    if len(parts) != ARN_FIELD_COUNT or parts[0] != ARN_PREFIX:
        return None
    _, partition, service, region, account, resource = parts
    return partition, service, region, account, resource


class PatternMatcher:
    """
    Matches identifiers against wildcard patterns, caching compiled patterns.

    Usage:
        matcher = PatternMatcher()
        matcher.action_matches("s3:Get*", "s3:GetObject")        # True
        matcher.resource_matches("arn:aws:s3:::b/*", "arn:aws:s3:::b/k")  # True
    """

    def __init__(self) -> None:
        self._cache: dict[str, CompiledPattern] = {}

    def compiled(self, pattern: str) -> CompiledPattern:
        """Return the compiled form of pattern, compiling it on first use."""
        compiled = self._cache.get(pattern)
        if compiled is None:
            compiled = compile_pattern(pattern)
            self._cache[pattern] = compiled
        return compiled

    def matches(self, pattern: str, text: str, ignore_case: bool = False) -> bool:
        """Plain wildcard match over the whole string."""
        if ignore_case:
            return self.compiled(pattern.lower()).matches(text.lower())
        return self.compiled(pattern).matches(text)

    def action_matches(self, pattern: str, action: str) -> bool:
        """Case-insensitive match of a ``service:Action`` identifier."""
        return self.matches(pattern, action, ignore_case=True)

    def resource_matches(self, pattern: str, resource: str) -> bool:
        """
        Case-sensitive match of a resource identifier.

        ARN-shaped pattern/candidate pairs are compared field by field;
        anything else is matched as a whole string.
        """
        if pattern == WILDCARD_ANY:
            return True

        pattern_fields = split_arn(pattern)
        resource_fields = split_arn(resource)
        if pattern_fields is None or resource_fields is None:
            return self.matches(pattern, resource)

        for pattern_field, resource_field in zip(pattern_fields, resource_fields):
            if not pattern_field or not resource_field:
                continue
            if not self.matches(pattern_field, resource_field):
                return False
        return True

    def cache_size(self) -> int:
        return len(self._cache)
