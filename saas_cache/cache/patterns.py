"""Wildcard pattern rules for bulk invalidation.

Patterns are always anchored at the start of the key and only ``*`` is
special.  A trailing ``:*`` is a segment wildcard: it matches the base
key itself and anything nested under it, but never a sibling whose id
merely shares a prefix.

  user:1:*   matches  user:1, user:1:sessions
             skips    user:10, user:10:sessions
  user:*     matches  user:1, user:1:sessions, user:10
  admin:list-*  matches  admin:list-page=1, admin:list-page=2
"""

from __future__ import annotations

import re
from functools import lru_cache

SEGMENT_WILDCARD = ":*"

# Redis glob metacharacters other than "*" that must be taken literally
_GLOB_SPECIAL = re.compile(r"([?\[\]\\])")


def split_segment_wildcard(pattern: str) -> tuple[str, bool]:
    """Return (base, is_segment_wildcard) for a pattern."""
    if pattern.endswith(SEGMENT_WILDCARD):
        return pattern[: -len(SEGMENT_WILDCARD)], True
    return pattern, False


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    if not pattern:
        raise ValueError("pattern must not be empty")

    base, segment = split_segment_wildcard(pattern)
    body = ".*".join(re.escape(part) for part in base.split("*"))
    if segment:
        body += r"(?::.*)?"
    return re.compile(f"^{body}$", re.DOTALL)


def matches(pattern: str, key: str) -> bool:
    return compile_pattern(pattern).match(key) is not None


def to_scan_globs(pattern: str, prefix: str = "") -> list[str]:
    """Translate a pattern into Redis SCAN MATCH globs.

    A segment wildcard needs two globs: the nested keys and the base key
    itself.  Literal glob metacharacters in the pattern are escaped.
    """
    if not pattern:
        raise ValueError("pattern must not be empty")

    base, segment = split_segment_wildcard(pattern)
    escaped_prefix = _GLOB_SPECIAL.sub(r"\\\1", prefix)
    escaped_base = _GLOB_SPECIAL.sub(r"\\\1", base)
    if segment:
        return [
            f"{escaped_prefix}{escaped_base}:*",
            f"{escaped_prefix}{escaped_base}",
        ]
    return [f"{escaped_prefix}{escaped_base}"]
