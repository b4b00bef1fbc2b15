"""Automated-agent classification.

Both tables are static, ordered data. Keep them declarative so they can be
audited and updated without touching the matching logic. Classification is
a heuristic over the User-Agent string, not verification.
"""

from __future__ import annotations

import re
from typing import Any

from contracts.api import HEADER_PURPOSE, HEADER_USER_AGENT, get_header

UNKNOWN_PURPOSE = "unknown"

# ── Known agent signatures ───────────────────────────────────────────

AGENT_SIGNATURES: tuple[re.Pattern[str], ...] = tuple(
    re.compile(sig, re.IGNORECASE)
    for sig in (
        r"GPTBot",
        r"ChatGPT-User",
        r"Claude-Web",
        r"anthropic-ai",
        r"Google-Extended",
        r"CCBot",
        r"Googlebot",
        r"Bingbot",
        r"Slurp",
        r"DuckDuckBot",
        r"Baiduspider",
        r"YandexBot",
        r"Sogou",
        r"Exabot",
        r"facebookexternalhit",
        r"ia_archiver",
        r"PerplexityBot",
        r"Omgilibot",
        r"Diffbot",
    )
)

# ── User-Agent → purpose (first match wins) ──────────────────────────

PURPOSE_SIGNATURES: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(sig, re.IGNORECASE), purpose)
    for sig, purpose in (
        (r"GPTBot", "training"),
        (r"Claude-Web", "indexing"),
        (r"Google-Extended", "training"),
        (r"Googlebot", "indexing"),
    )
)


def is_automated_agent(user_agent: Any) -> bool:
    """True iff *user_agent* matches a known bot or crawler signature."""
    if not isinstance(user_agent, str) or not user_agent:
        return False
    return any(sig.search(user_agent) for sig in AGENT_SIGNATURES)


def infer_purpose(headers: Any) -> str:
    """Work out what the requester intends to do with the content.

    An explicit ``AI-Purpose`` header always wins; otherwise the purpose is
    inferred from the User-Agent, falling back to ``"unknown"``.
    """
    declared = get_header(headers, HEADER_PURPOSE)
    if declared:
        return declared.lower()

    user_agent = get_header(headers, HEADER_USER_AGENT) or ""
    for sig, purpose in PURPOSE_SIGNATURES:
        if sig.search(user_agent):
            return purpose

    return UNKNOWN_PURPOSE
