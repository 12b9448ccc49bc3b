"""Wildcard permission patterns.

Permission keys are segmented strings such as ``endpoint.users.delete`` or
``billing:invoices:read``. A pattern ending in a separator plus ``*`` covers its
prefix and every key nested under it; ``*`` alone covers everything.
"""

from permgraph.core.constants import (
    DEFAULT_SEPARATOR,
    MAX_PERMISSION_KEY_LENGTH,
    SEPARATORS,
    WILDCARD,
)
from permgraph.core.errors import InvalidArgumentError


def detect_separator(key: str) -> str:
    """Detect which separator a key uses.

    Args:
        key: A permission key or pattern

    Returns:
        "." if the key contains a dot, ":" if it only contains colons,
        otherwise the default separator
    """
    for separator in SEPARATORS:
        if separator in key:
            return separator
    return DEFAULT_SEPARATOR


def matches(pattern: str, key: str) -> bool:
    """Check if a pattern covers a concrete permission key.

    Args:
        pattern: Pattern like "endpoint.*", ":*"-suffixed, or "*"
        key: Permission key like "endpoint.admin.users"

    Returns:
        True if the pattern covers the key
    """
    if pattern == WILDCARD:
        return True

    if pattern == key:
        return True

    # Wildcard suffix: accept either separator spelling on the pattern side
    for separator in SEPARATORS:
        suffix = f"{separator}{WILDCARD}"
        if pattern.endswith(suffix):
            prefix = pattern[: -len(suffix)]
            return key == prefix or key.startswith(prefix + separator)

    return False


def ancestor_patterns(key: str, separator: str | None = None) -> list[str]:
    """Generate the wildcard patterns that could cover a key.

    The key itself is not included. Patterns are ordered from most to least
    specific, ending with the universal pattern.

    Args:
        key: Permission key like "endpoint.admin.users.delete"
        separator: Separator to split on; detected from the key when None

    Returns:
        ["endpoint.admin.users.*", "endpoint.admin.*", "endpoint.*", "*"]
    """
    sep = separator or detect_separator(key)
    parts = key.split(sep)

    patterns = [sep.join([*parts[:i], WILDCARD]) for i in range(len(parts) - 1, 0, -1)]
    patterns.append(WILDCARD)
    return patterns


def is_wildcard(key: str) -> bool:
    """Check if a key is a wildcard pattern rather than a concrete key."""
    return key == WILDCARD or any(key.endswith(f"{sep}{WILDCARD}") for sep in SEPARATORS)


def validate_key(key: str) -> str:
    """Validate a permission key or wildcard pattern.

    Args:
        key: The key to validate

    Returns:
        The key, unchanged

    Raises:
        InvalidArgumentError: If the key is empty or too long, has empty segments,
            or uses the wildcard token anywhere but the last segment
    """
    if not key or not key.strip():
        raise InvalidArgumentError(
            "Permission key must not be empty",
            details={"permission_key": key},
        )
    if len(key) > MAX_PERMISSION_KEY_LENGTH:
        raise InvalidArgumentError(
            "Permission key is too long",
            details={"permission_key": key, "max_length": MAX_PERMISSION_KEY_LENGTH},
        )

    if key == WILDCARD:
        return key

    parts = key.split(detect_separator(key))
    if any(part == "" for part in parts):
        raise InvalidArgumentError(
            "Permission key has an empty segment",
            details={"permission_key": key},
        )
    if any(WILDCARD in part for part in parts[:-1]) or (
        WILDCARD in parts[-1] and parts[-1] != WILDCARD
    ):
        raise InvalidArgumentError(
            "Wildcard is only allowed as the whole last segment",
            details={"permission_key": key},
        )
    return key


class WildcardMatcher:
    """Pattern matcher bound to a deployment's separator convention.

    With ``separator=None`` each key's separator is detected from the key
    itself. Keys that mix both separators are not supported.
    """

    def __init__(self, separator: str | None = None) -> None:
        if separator is not None and separator not in SEPARATORS:
            raise InvalidArgumentError(
                f"Unsupported separator: {separator!r}",
                details={"separator": separator},
            )
        self.separator = separator

    def matches(self, pattern: str, key: str) -> bool:
        return matches(pattern, key)

    def ancestor_patterns(self, key: str) -> list[str]:
        return ancestor_patterns(key, self.separator)
