"""Three-way merge of base, local, and upstream workflow content."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from merge3 import Merge3

from .frontmatter import remove_top_level_field, set_top_level_field
from .modifications import SOURCE_FIELD
from .refs import SourceSpec, parse_source_spec

logger = logging.getLogger(__name__)

START_MARKER = "<<<<<<<"
MID_MARKER = "======="
END_MARKER = ">>>>>>>"
LOCAL_LABEL = "local"
UPSTREAM_LABEL = "upstream"


@dataclass(frozen=True)
class MergeOutcome:
    merged_text: str
    has_conflicts: bool


def _prepare(content: str) -> list[str]:
    text = remove_top_level_field(content, SOURCE_FIELD)
    if text and not text.endswith("\n"):
        text += "\n"
    return text.splitlines(True)


def merge_workflow_content(
    base: str,
    local: str,
    upstream: str,
    source_spec: SourceSpec | str,
    new_ref: str,
) -> MergeOutcome:
    """
    Merge local edits and upstream changes made since ``base``.

    Changes to disjoint regions are both applied. Overlapping changes become
    an inline conflict block with the local lines above ``=======`` and the
    upstream lines below. The source field is kept out of the merge and then
    set to ``repo/path@new_ref`` in the result.

    Raises:
        SourceSpecError: If ``source_spec`` cannot be parsed
    """
    spec = source_spec if isinstance(source_spec, SourceSpec) else parse_source_spec(source_spec)

    merger = Merge3(_prepare(base), _prepare(local), _prepare(upstream))
    conflicts = sum(1 for region in merger.merge_regions() if region[0] == "conflict")
    merged = "".join(
        merger.merge_lines(
            name_a=LOCAL_LABEL,
            name_b=UPSTREAM_LABEL,
            start_marker=START_MARKER,
            mid_marker=MID_MARKER,
            end_marker=END_MARKER,
        )
    )

    if conflicts:
        logger.debug("Merge of %s produced %d conflict region(s)", spec.path, conflicts)

    merged = set_top_level_field(merged, SOURCE_FIELD, str(spec.with_ref(new_ref)))
    return MergeOutcome(merged_text=merged, has_conflicts=conflicts > 0)


def count_conflict_markers(text: str) -> tuple[int, int]:
    """Return the number of start and end conflict markers in ``text``."""
    starts = ends = 0
    for line in text.splitlines():
        if line.startswith(START_MARKER):
            starts += 1
        elif line.startswith(END_MARKER):
            ends += 1
    return starts, ends


__all__ = [
    "END_MARKER",
    "MID_MARKER",
    "MergeOutcome",
    "START_MARKER",
    "count_conflict_markers",
    "merge_workflow_content",
]
