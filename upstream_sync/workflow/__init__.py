"""Workflow update core: ref resolution, frontmatter edits, merging, orchestration."""

from .batch import BatchResult, BatchUpdateError, UpdateFailure, find_workflows_with_source, update_workflows
from .merge import MergeOutcome, merge_workflow_content
from .refs import RefResolver, SourceSpec, WorkflowRecord, parse_source_spec
from .updater import UpdateOptions, UpdateOutcome, UpdateStatus, WorkflowUpdateError, WorkflowUpdater

__all__ = [
    "BatchResult",
    "BatchUpdateError",
    "MergeOutcome",
    "RefResolver",
    "SourceSpec",
    "UpdateFailure",
    "UpdateOptions",
    "UpdateOutcome",
    "UpdateStatus",
    "WorkflowRecord",
    "WorkflowUpdateError",
    "WorkflowUpdater",
    "find_workflows_with_source",
    "merge_workflow_content",
    "parse_source_spec",
    "update_workflows",
]
