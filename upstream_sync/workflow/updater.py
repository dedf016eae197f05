"""
Per-workflow update orchestration.

``WorkflowUpdater.update`` takes one local workflow from its current source
ref to the latest upstream ref. It ends in one of four states: already up to
date (file untouched), updated, updated with merge conflicts (compiler not
run), or failed (``WorkflowUpdateError``).
"""

from __future__ import annotations

import enum
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from ..integrations.github.client import GitHubAPIError
from .frontmatter import FrontmatterError, remove_stop_after, set_stop_after, set_top_level_field
from .includes import IncludeRewriter, rewrite_includes
from .merge import merge_workflow_content
from .modifications import SOURCE_FIELD, has_local_modifications
from .refs import (
    RefResolutionError,
    RefResolver,
    SourceSpec,
    SourceSpecError,
    WorkflowRecord,
    is_branch_ref,
    parse_source_spec,
    short_ref,
)
from .compiler import CompileError

if TYPE_CHECKING:
    from ..integrations.github.content import ContentFetcher
    from ..integrations.github.metadata import RemoteMetadata
    from .compiler import WorkflowCompiler

logger = logging.getLogger(__name__)

DEFAULT_REF = "main"


class WorkflowUpdateError(RuntimeError):
    """Raised when a single workflow cannot be updated."""

    def __init__(self, workflow_name: str, message: str):
        super().__init__(message)
        self.workflow_name = workflow_name


class UpdateStatus(enum.Enum):
    NO_OP_UP_TO_DATE = "up_to_date"
    UPDATED = "updated"
    UPDATED_WITH_CONFLICTS = "updated_with_conflicts"
    FAILED = "failed"


@dataclass(frozen=True)
class UpdateOutcome:
    name: str
    status: UpdateStatus
    current_ref: str = ""
    latest_ref: str = ""
    persisted_ref: str = ""
    local_modifications: bool = False
    message: str = ""

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "status": self.status.value,
            "current_ref": self.current_ref,
            "latest_ref": self.latest_ref,
            "persisted_ref": self.persisted_ref,
            "local_modifications": self.local_modifications,
            "message": self.message,
        }


@dataclass(frozen=True)
class UpdateOptions:
    """Caller choices applied to every workflow in a run."""

    allow_major: bool = False
    force: bool = False
    no_merge: bool = False
    stop_after: Optional[str] = None
    no_stop_after: bool = False
    append: Optional[str] = None
    default_ref: str = DEFAULT_REF


def _decode(data: bytes | str) -> str:
    if isinstance(data, str):
        return data
    return data.decode("utf-8")


def write_atomic(path: str | os.PathLike[str], content: str) -> None:
    """Write ``content`` to ``path`` through a temporary file in the same directory."""
    target = Path(path)
    tmp_path = target.with_name(target.name + ".tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
        os.replace(tmp_path, target)
    except OSError:
        if tmp_path.exists():
            tmp_path.unlink()
        raise


def append_text(content: str, extra: str) -> str:
    """Append ``extra`` to the end of the body, separated by a newline."""
    if not extra:
        return content
    if content and not content.endswith("\n"):
        content += "\n"
    if not extra.endswith("\n"):
        extra += "\n"
    return content + extra


class WorkflowUpdater:
    """Update one workflow at a time against its upstream source."""

    def __init__(
        self,
        fetcher: "ContentFetcher",
        metadata: "RemoteMetadata",
        compiler: "WorkflowCompiler",
        include_rewriter: Optional[IncludeRewriter] = None,
        options: Optional[UpdateOptions] = None,
    ):
        self.fetcher = fetcher
        self.resolver = RefResolver(metadata)
        self.compiler = compiler
        self.include_rewriter = include_rewriter or rewrite_includes
        self.options = options or UpdateOptions()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fetch(self, spec: SourceSpec, ref: str) -> str:
        return _decode(self.fetcher.fetch(spec.repo, spec.path, ref))

    @staticmethod
    def _read_local(record: WorkflowRecord) -> str:
        return Path(record.path).read_text(encoding="utf-8")

    def _fail(self, record: WorkflowRecord, message: str, exc: BaseException) -> WorkflowUpdateError:
        logger.debug("Update of %s failed: %s", record.name, message)
        return WorkflowUpdateError(record.name, f"{message}: {exc}")

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(self, record: WorkflowRecord) -> UpdateOutcome:
        """
        Bring ``record`` up to date with its upstream source.

        Returns:
            UpdateOutcome describing what happened

        Raises:
            WorkflowUpdateError: If any required step fails
        """
        opts = self.options
        logger.debug("Updating workflow %s from %s", record.name, record.source_spec)

        try:
            spec = parse_source_spec(record.source_spec)
        except SourceSpecError as exc:
            raise self._fail(record, "failed to parse source spec", exc) from exc

        current_ref = spec.ref or opts.default_ref

        try:
            latest_ref = self.resolver.resolve_latest_ref(spec.repo, current_ref, opts.allow_major)
        except RefResolutionError as exc:
            raise self._fail(record, "failed to resolve latest ref", exc) from exc

        # Branch-tracked workflows keep following the branch
        persist_ref = current_ref if is_branch_ref(current_ref) else latest_ref
        logger.debug("Current ref %s, latest ref %s, persisted ref %s", current_ref, latest_ref, persist_ref)

        if not opts.force and current_ref == latest_ref:
            return self._report_up_to_date(record, spec, current_ref)

        try:
            upstream = self._fetch(spec, latest_ref)
        except (GitHubAPIError, UnicodeDecodeError) as exc:
            raise self._fail(record, "failed to download workflow", exc) from exc

        base: Optional[str] = None
        base_error: Optional[Exception] = None
        merge = not opts.no_merge
        local_modified = False
        if merge:
            try:
                base = self._fetch(spec, current_ref)
            except (GitHubAPIError, UnicodeDecodeError) as exc:
                base_error = exc
                logger.debug("Could not fetch base snapshot of %s at %s: %s", record.name, current_ref, exc)
            if base is not None:
                try:
                    local_modified = has_local_modifications(base, self._read_local(record), record.source_spec)
                except (OSError, UnicodeDecodeError) as exc:
                    logger.debug("Could not read %s for comparison: %s", record.path, exc)
                    local_modified = False
                if local_modified:
                    logger.info("Local modifications detected in %s, merging to preserve your changes", record.name)
                else:
                    merge = False

        has_conflicts = False
        if merge:
            if base is None:
                raise self._fail(record, "failed to download base workflow", base_error) from base_error
            try:
                local = self._read_local(record)
            except (OSError, UnicodeDecodeError) as exc:
                raise self._fail(record, "failed to read current workflow", exc) from exc
            try:
                outcome = merge_workflow_content(base, local, upstream, spec, persist_ref)
            except (SourceSpecError, FrontmatterError) as exc:
                raise self._fail(record, "failed to merge workflow content", exc) from exc
            content = outcome.merged_text
            has_conflicts = outcome.has_conflicts
        else:
            content = self._override(record, spec, upstream, persist_ref)

        content = self._apply_stop_after(record, content)
        if opts.append:
            content = append_text(content, opts.append)

        try:
            write_atomic(record.path, content)
        except OSError as exc:
            raise self._fail(record, "failed to write updated workflow", exc) from exc

        if has_conflicts:
            message = (
                f"Updated {record.name} from {short_ref(current_ref)} to {short_ref(latest_ref)} "
                "with CONFLICTS - please review and resolve manually"
            )
            logger.warning(message)
            return UpdateOutcome(
                name=record.name,
                status=UpdateStatus.UPDATED_WITH_CONFLICTS,
                current_ref=current_ref,
                latest_ref=latest_ref,
                persisted_ref=persist_ref,
                local_modifications=local_modified,
                message=message,
            )

        message = f"Updated {record.name} from {short_ref(current_ref)} to {short_ref(latest_ref)}"
        logger.info(message)

        try:
            self.compiler.compile(record.path)
        except CompileError as exc:
            raise self._fail(record, "failed to compile updated workflow", exc) from exc

        return UpdateOutcome(
            name=record.name,
            status=UpdateStatus.UPDATED,
            current_ref=current_ref,
            latest_ref=latest_ref,
            persisted_ref=persist_ref,
            local_modifications=local_modified,
            message=message,
        )

    def _report_up_to_date(self, record: WorkflowRecord, spec: SourceSpec, current_ref: str) -> UpdateOutcome:
        message = f"Workflow {record.name} is already up to date ({short_ref(current_ref)})"
        modified = False
        try:
            snapshot = self._fetch(spec, current_ref)
        except (GitHubAPIError, UnicodeDecodeError) as exc:
            logger.debug("Failed to download source for comparison: %s", exc)
        else:
            try:
                local = self._read_local(record)
            except (OSError, UnicodeDecodeError) as exc:
                raise self._fail(record, "failed to read current workflow", exc) from exc
            modified = has_local_modifications(snapshot, local, record.source_spec)

        logger.info(message)
        if modified:
            logger.warning("Local copy of %s has been modified from source", record.name)

        return UpdateOutcome(
            name=record.name,
            status=UpdateStatus.NO_OP_UP_TO_DATE,
            current_ref=current_ref,
            latest_ref=current_ref,
            persisted_ref=current_ref,
            local_modifications=modified,
            message=message,
        )

    def _override(self, record: WorkflowRecord, spec: SourceSpec, upstream: str, persist_ref: str) -> str:
        pinned = spec.with_ref(persist_ref)
        try:
            content = set_top_level_field(upstream, SOURCE_FIELD, str(pinned))
        except FrontmatterError as exc:
            logger.warning("Failed to update source in new content of %s: %s", record.name, exc)
            content = upstream

        try:
            return self.include_rewriter(content, pinned)
        except (ValueError, FrontmatterError) as exc:
            logger.warning("Failed to process includes in %s: %s", record.name, exc)
            return content

    def _apply_stop_after(self, record: WorkflowRecord, content: str) -> str:
        opts = self.options
        if opts.no_stop_after:
            updated = remove_stop_after(content)
            if updated != content:
                logger.info("Removed stop-after field from %s", record.name)
            return updated
        if opts.stop_after:
            try:
                updated = set_stop_after(content, opts.stop_after)
            except FrontmatterError as exc:
                logger.warning("Failed to set stop-after field in %s: %s", record.name, exc)
                return content
            logger.info("Set stop-after field of %s to %s", record.name, opts.stop_after)
            return updated
        return content


__all__ = [
    "DEFAULT_REF",
    "UpdateOptions",
    "UpdateOutcome",
    "UpdateStatus",
    "WorkflowUpdateError",
    "WorkflowUpdater",
    "append_text",
    "write_atomic",
]
