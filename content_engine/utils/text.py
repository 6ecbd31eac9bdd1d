"""Text helpers shared by the workspace and gateway."""

from __future__ import annotations

import re

WHITESPACE_RE = re.compile(r"\s+")
REWRITE_SUMMARY_LIMIT = 80


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to at most ``limit`` characters, marking the cut with '...'."""
    if limit <= 0:
        return ""
    if len(text) <= limit:
        return text
    if limit <= 3:
        return text[:limit]
    return text[: limit - 3] + "..."


def word_count(text: str) -> int:
    return len(text.split())


def join_blocks(blocks: list[str]) -> str:
    """Join trimmed blocks with a blank line, skipping empty ones."""
    return "\n\n".join(b.strip() for b in blocks if b and b.strip())


def summarize_rewrite(notes: str | None) -> str:
    """Short human label describing a rewrite request."""
    trimmed = WHITESPACE_RE.sub(" ", notes or "").strip()
    if not trimmed:
        return "Rewrite with updated instructions (no details provided)."
    return "Rewrite: " + truncate(trimmed, REWRITE_SUMMARY_LIMIT)
