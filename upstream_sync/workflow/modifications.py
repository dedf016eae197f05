"""Detect whether a local workflow diverged from its upstream snapshot."""

from __future__ import annotations

import logging

from .frontmatter import remove_top_level_field

logger = logging.getLogger(__name__)

SOURCE_FIELD = "source"


def normalize_for_comparison(content: str) -> str:
    """Drop the source field, trailing whitespace, and trailing blank lines."""
    stripped = remove_top_level_field(content, SOURCE_FIELD)
    lines = [line.rstrip() for line in stripped.split("\n")]
    while lines and not lines[-1]:
        lines.pop()
    return "\n".join(lines)


def has_local_modifications(upstream: str, local: str, source_spec: str = "") -> bool:
    """
    Return True when ``local`` differs from the pristine ``upstream`` snapshot.

    The comparison ignores the source field, which only the local copy
    carries, and whitespace at line ends. Any other difference counts.
    """
    modified = normalize_for_comparison(upstream) != normalize_for_comparison(local)
    if modified:
        logger.debug("Local copy differs from upstream snapshot %s", source_spec or "<unknown>")
    return modified


__all__ = [
    "SOURCE_FIELD",
    "has_local_modifications",
    "normalize_for_comparison",
]
