"""Wildcard pattern matching for file paths.

Only ``*`` is special. Patterns are never anchored: ``*.ts`` matches any path
containing ``.ts`` followed by anything, and a pattern without ``*`` matches
any path that contains it as a substring.
"""

from __future__ import annotations

import functools
import re
from collections.abc import Iterable

WILDCARD = "*"


@functools.lru_cache(maxsize=512)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(".*".join(re.escape(part) for part in pattern.split(WILDCARD)))


def matches_pattern(pattern: str, path: str) -> bool:
    """Return True if *path* matches the wildcard *pattern*."""
    if pattern == WILDCARD:
        return True
    if WILDCARD in pattern:
        return _compile(pattern).search(path) is not None
    return pattern in path


def matches_any(patterns: Iterable[str], path: str) -> bool:
    return any(matches_pattern(pattern, path) for pattern in patterns)
