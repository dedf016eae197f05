"""Discover workflows with a source field and update them one by one."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from ..utils.logging_config import log_exception
from .frontmatter import FrontmatterError, parse_frontmatter
from .modifications import SOURCE_FIELD
from .refs import WorkflowRecord
from .updater import UpdateOutcome, UpdateStatus, WorkflowUpdateError, WorkflowUpdater

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock.yml"


class BatchUpdateError(RuntimeError):
    """Raised when a batch matched nothing or no workflow could be updated."""

    def __init__(self, message: str, result: Optional["BatchResult"] = None):
        super().__init__(message)
        self.result = result


@dataclass(frozen=True)
class UpdateFailure:
    name: str
    error: str


@dataclass
class BatchResult:
    successes: list[str] = field(default_factory=list)
    failures: list[UpdateFailure] = field(default_factory=list)
    outcomes: list[UpdateOutcome] = field(default_factory=list)

    @property
    def conflicted(self) -> list[str]:
        return [o.name for o in self.outcomes if o.status is UpdateStatus.UPDATED_WITH_CONFLICTS]

    def summary(self) -> str:
        """Human-readable summary, successes first."""
        lines: list[str] = []
        if self.successes:
            lines.append(f"Successfully processed {len(self.successes)} workflow(s):")
            conflicted = set(self.conflicted)
            for name in self.successes:
                suffix = " (conflicts to resolve)" if name in conflicted else ""
                lines.append(f"  - {name}{suffix}")
        if self.failures:
            lines.append(f"Failed to update {len(self.failures)} workflow(s):")
            for failure in self.failures:
                lines.append(f"  - {failure.name}: {failure.error}")
        if not lines:
            lines.append("No workflows processed.")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, object]:
        return {
            "successes": list(self.successes),
            "failures": [{"name": f.name, "error": f.error} for f in self.failures],
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


def normalize_workflow_id(name: str) -> str:
    """Reduce a workflow name or path to its bare id (``daily-report.md`` -> ``daily-report``)."""
    base = os.path.basename(name.strip())
    for suffix in (LOCK_SUFFIX, ".md"):
        if base.endswith(suffix):
            return base[: -len(suffix)]
    return base


def find_workflows_with_source(
    directory: str | os.PathLike[str],
    names: Optional[Iterable[str]] = None,
) -> list[WorkflowRecord]:
    """
    List markdown workflows in ``directory`` that carry a source field.

    Files that cannot be read or whose frontmatter is not valid YAML are
    skipped. When ``names`` is given only workflows whose normalized id is in
    it are returned.
    """
    root = Path(directory)
    if not root.is_dir():
        logger.debug("Workflow directory %s does not exist", root)
        return []

    wanted = {normalize_workflow_id(n) for n in names} if names else None
    records: list[WorkflowRecord] = []

    for path in sorted(root.glob("*.md")):
        if not path.is_file():
            continue
        workflow_id = normalize_workflow_id(path.name)
        if wanted is not None and workflow_id not in wanted:
            continue

        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Skipping unreadable workflow %s: %s", path, exc)
            continue

        try:
            frontmatter = parse_frontmatter(content)
        except FrontmatterError as exc:
            logger.warning("Skipping %s: %s", path, exc)
            continue

        source = frontmatter.get(SOURCE_FIELD)
        if not isinstance(source, str) or not source.strip():
            continue

        records.append(WorkflowRecord(name=workflow_id, path=str(path), source_spec=source.strip()))

    logger.debug("Found %d workflow(s) with a source field in %s", len(records), root)
    return records


def update_workflows(
    directory: str | os.PathLike[str],
    updater: WorkflowUpdater,
    names: Optional[Iterable[str]] = None,
) -> BatchResult:
    """
    Update every matching workflow in ``directory``.

    Failures are collected per workflow and never stop the batch.

    Raises:
        BatchUpdateError: If ``names`` matched nothing, or if every workflow failed
    """
    name_list = [n for n in (names or []) if n.strip()]
    records = find_workflows_with_source(directory, name_list or None)
    result = BatchResult()

    if not records:
        if name_list:
            raise BatchUpdateError("no workflows found matching the specified names")
        logger.info("No workflows with a source field found in %s", directory)
        return result

    logger.info("Found %d workflow(s) to update", len(records))

    for record in records:
        try:
            outcome = updater.update(record)
        except WorkflowUpdateError as exc:
            log_exception(logger, f"Failed to update {record.name}", exc)
            result.failures.append(UpdateFailure(name=record.name, error=str(exc)))
            result.outcomes.append(
                UpdateOutcome(name=record.name, status=UpdateStatus.FAILED, message=str(exc))
            )
            continue
        result.successes.append(record.name)
        result.outcomes.append(outcome)

    if result.failures and not result.successes:
        raise BatchUpdateError("no workflows were successfully updated", result)

    return result


__all__ = [
    "BatchResult",
    "BatchUpdateError",
    "UpdateFailure",
    "find_workflows_with_source",
    "normalize_workflow_id",
    "update_workflows",
]
