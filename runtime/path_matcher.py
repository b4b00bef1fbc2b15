"""Glob-style path matching for manifest scopes and exceptions.

Pattern syntax:
- ``**`` matches any run of characters, including ``/``
- ``*`` matches any run of characters except ``/``
- ``?`` matches exactly one character
- everything else is literal

The literal pattern ``"all"`` matches every path. Matches are always against
the full path, never a prefix.
"""

from __future__ import annotations

import re
from functools import lru_cache

from contracts.manifest import SCOPE_ALL

_TOKEN_RE = re.compile(r"(\*\*|\*|\?)")

# ``**`` is tokenised before ``*`` so it never expands twice.
_WILDCARDS = {
    "**": ".*",
    "*": "[^/]*",
    "?": ".",
}


@lru_cache(maxsize=1024)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a manifest path pattern to an anchored regular expression."""
    parts = []
    for token in _TOKEN_RE.split(pattern):
        if token in _WILDCARDS:
            parts.append(_WILDCARDS[token])
        elif token:
            parts.append(re.escape(token))
    return re.compile("^" + "".join(parts) + "$", re.DOTALL)


def matches(request_path: str, pattern: str) -> bool:
    """Does *request_path* fall under *pattern*?"""
    if pattern == SCOPE_ALL:
        return True
    return compile_pattern(pattern).fullmatch(request_path) is not None


def matches_any(request_path: str, patterns: list[str]) -> bool:
    return any(matches(request_path, p) for p in patterns)
