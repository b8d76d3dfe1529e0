"""Cache key and invalidation pattern schema.

Key format: {entity}:{selector}[:{value}...]

Where:
- entity: plural namespace ("courses", "categories", "enrollments", ...)
- selector: lookup kind ("id", "slug", "list", "tree", "user", ...)
- value: selector arguments; free text is trimmed and lower-cased, and an
  empty value becomes the placeholder "_" so every key stays well-formed

Patterns are either exact keys or a prefix followed by a single trailing
"*" ("courses:list:*"). Only the trailing star is a wildcard; any other
character, including "*", "?" and "[", is matched literally.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

PLACEHOLDER = "_"
WILDCARD = "*"

# Characters with special meaning in a Redis SCAN MATCH glob
_REDIS_GLOB_SPECIAL = frozenset("*?[]\\^")


def normalize_text(value: str | None) -> str:
    """Trim and lower-case free text; empty or missing becomes the placeholder."""
    if value is None:
        return PLACEHOLDER
    cleaned = value.strip().lower()
    return cleaned or PLACEHOLDER


def segment(value: Any) -> str:
    """Render a non-text key segment (ids, numbers, flags)."""
    if value is None:
        return PLACEHOLDER
    if isinstance(value, bool):
        return "1" if value else "0"
    rendered = str(value)
    return rendered if rendered.strip() else PLACEHOLDER


def build_key(entity: str, selector: str, *params: Any) -> str:
    """Join an entity namespace, selector and parameters into a cache key.

    String parameters are treated as free text and normalized; everything
    else is rendered with ``str``.
    """
    parts = [entity, selector]
    for param in params:
        if isinstance(param, str):
            parts.append(normalize_text(param))
        else:
            parts.append(segment(param))
    return ":".join(parts)


def prefix_pattern(*segments: Any) -> str:
    """Pattern matching every key under the given segments ("a", "b" -> "a:b:*")."""
    return ":".join(segment(s) for s in segments) + ":" + WILDCARD


@dataclass(frozen=True)
class CachePattern:
    """Parsed invalidation pattern."""

    text: str
    prefix: str
    is_prefix: bool

    @classmethod
    def parse(cls, pattern: str) -> "CachePattern":
        if pattern.endswith(WILDCARD):
            return cls(text=pattern, prefix=pattern[: -len(WILDCARD)], is_prefix=True)
        return cls(text=pattern, prefix=pattern, is_prefix=False)

    def matches(self, key: str) -> bool:
        if self.is_prefix:
            return key.startswith(self.prefix)
        return key == self.prefix

    def redis_match(self) -> str:
        """Glob for Redis SCAN MATCH with the literal prefix escaped."""
        escaped = "".join("\\" + ch if ch in _REDIS_GLOB_SPECIAL else ch for ch in self.prefix)
        return escaped + WILDCARD if self.is_prefix else escaped


def pattern_matches(pattern: str, key: str) -> bool:
    """True when ``key`` is selected by the invalidation ``pattern``."""
    return CachePattern.parse(pattern).matches(key)


def parse_key(key: str) -> dict[str, str] | None:
    """Split a key into entity, selector and the remaining value text.

    Returns None if the key has fewer than two segments.
    """
    parts = key.split(":", 2)
    if len(parts) < 2 or not parts[0] or not parts[1]:
        return None
    return {
        "entity": parts[0],
        "selector": parts[1],
        "value": parts[2] if len(parts) > 2 else "",
    }


MAX_PATTERN_LENGTH = 256


def validate_pattern(pattern: str) -> str:
    """Check an operator-supplied invalidation pattern; returns it stripped.

    Patterns must name an entity namespace ("courses:...") and may only use
    a single trailing "*". Raises ValueError otherwise.
    """
    cleaned = pattern.strip()
    if not cleaned:
        raise ValueError("Pattern must not be empty")
    if len(cleaned) > MAX_PATTERN_LENGTH:
        raise ValueError("Pattern is too long")
    if WILDCARD in cleaned[:-1]:
        raise ValueError("Only a trailing '*' wildcard is supported")
    namespace, sep, _ = cleaned.partition(":")
    if not sep or not namespace or WILDCARD in namespace:
        raise ValueError("Pattern must start with an entity namespace, e.g. 'courses:'")
    return cleaned
