"""Tests for format-preserving frontmatter edits."""

from __future__ import annotations

import pytest

from upstream_sync.workflow.frontmatter import (
    FrontmatterError,
    format_scalar,
    get_top_level_field,
    parse_frontmatter,
    remove_nested_field,
    remove_stop_after,
    remove_top_level_field,
    set_nested_field,
    set_stop_after,
    set_top_level_field,
    split_frontmatter,
)

WORKFLOW = """---
# Daily report workflow
on:
    schedule: daily
    workflow_dispatch:

    stop-after: +48h
permissions:
  contents: read
source: octo-org/agentics/workflows/daily-report.md@v1.0.0 # pinned
---
# Daily Report

Summarize yesterday's activity.
"""


# =============================================================================
# Splitting and parsing
# =============================================================================


class TestSplitFrontmatter:
    def test_render_is_byte_identical(self) -> None:
        doc = split_frontmatter(WORKFLOW)

        assert doc is not None
        assert doc.render() == WORKFLOW
        assert doc.body.startswith("# Daily Report")
        assert doc.lines[0] == "# Daily report workflow\n"

    def test_crlf_is_preserved(self) -> None:
        content = WORKFLOW.replace("\n", "\r\n")
        doc = split_frontmatter(content)

        assert doc.newline == "\r\n"
        assert doc.render() == content

    @pytest.mark.parametrize("content", ["", "# Just markdown\n", "---\ntitle: x\nno closing\n"])
    def test_missing_frontmatter(self, content: str) -> None:
        assert split_frontmatter(content) is None

    def test_parse_frontmatter(self) -> None:
        data = parse_frontmatter(WORKFLOW)

        assert data["source"] == "octo-org/agentics/workflows/daily-report.md@v1.0.0"
        assert data["permissions"] == {"contents": "read"}

    def test_parse_invalid_yaml(self) -> None:
        with pytest.raises(FrontmatterError):
            parse_frontmatter("---\nkey: [unclosed\n---\n")

    def test_parse_non_mapping(self) -> None:
        with pytest.raises(FrontmatterError):
            parse_frontmatter("---\n- a\n- b\n---\n")

    def test_parse_without_frontmatter(self) -> None:
        assert parse_frontmatter("plain text") == {}


# =============================================================================
# Top-level fields
# =============================================================================


class TestTopLevelFields:
    def test_get_strips_comment_and_quotes(self) -> None:
        assert get_top_level_field(WORKFLOW, "source") == "octo-org/agentics/workflows/daily-report.md@v1.0.0"
        assert get_top_level_field('---\nname: "Report"\n---\n', "name") == "Report"
        assert get_top_level_field(WORKFLOW, "missing") is None

    def test_get_ignores_nested_keys(self) -> None:
        assert get_top_level_field(WORKFLOW, "contents") is None

    def test_set_rewrites_value_and_keeps_comment(self) -> None:
        updated = set_top_level_field(WORKFLOW, "source", "octo-org/agentics/workflows/daily-report.md@v1.1.0")

        assert "source: octo-org/agentics/workflows/daily-report.md@v1.1.0 # pinned\n" in updated
        assert updated.replace("v1.1.0", "v1.0.0") == WORKFLOW

    def test_set_keeps_indentation(self) -> None:
        content = "---\n  name: old\n  engine: copilot\n---\nbody\n"

        assert set_top_level_field(content, "name", "new") == "---\n  name: new\n  engine: copilot\n---\nbody\n"

    def test_set_replaces_block_value_without_orphans(self) -> None:
        content = "---\ntools:\n  github:\n    toolsets: [all]\n  edit:\nengine: copilot\n---\nbody\n"

        updated = set_top_level_field(content, "tools", "none")

        assert updated == "---\ntools: none\nengine: copilot\n---\nbody\n"
        assert parse_frontmatter(updated) == {"tools": "none", "engine": "copilot"}

    def test_set_replaces_sequence_value(self) -> None:
        content = "---\nlabels:\n- a\n- b\nengine: copilot\n---\n"

        assert set_top_level_field(content, "labels", "x") == "---\nlabels: x\nengine: copilot\n---\n"

    def test_set_appends_missing_field(self) -> None:
        content = "---\non: push\n\n---\nbody\n"

        assert set_top_level_field(content, "source", "a/b/c.md@v1") == "---\non: push\nsource: a/b/c.md@v1\n\n---\nbody\n"

    def test_set_without_frontmatter_creates_block(self) -> None:
        updated = set_top_level_field("# Title\n", "source", "a/b/c.md@v1")

        assert updated.startswith("---\n")
        assert updated.endswith("---\n# Title\n")
        assert parse_frontmatter(updated) == {"source": "a/b/c.md@v1"}

    def test_set_does_not_match_key_prefix(self) -> None:
        content = "---\nsources: list\n---\n"

        assert set_top_level_field(content, "source", "x") == "---\nsources: list\nsource: x\n---\n"

    def test_remove_field(self) -> None:
        content = "---\nname: x\nsource: a/b/c.md@v1\nengine: copilot\n---\nbody\n"

        assert remove_top_level_field(content, "source") == "---\nname: x\nengine: copilot\n---\nbody\n"
        assert remove_top_level_field(content, "missing") == content

    def test_remove_field_with_block_value(self) -> None:
        content = "---\nsource:\n  repo: a/b\n  ref: v1\nname: x\n---\n"

        assert remove_top_level_field(content, "source") == "---\nname: x\n---\n"


# =============================================================================
# Nested fields
# =============================================================================


class TestRemoveNestedField:
    def test_removes_field_from_block(self) -> None:
        updated = remove_nested_field(WORKFLOW, "on", "stop-after")

        assert "stop-after" not in updated
        assert "    workflow_dispatch:\n\npermissions:" in updated
        assert updated.replace("    workflow_dispatch:\n\n", "    workflow_dispatch:\n\n    stop-after: +48h\n") == WORKFLOW

    def test_removes_multiline_value(self) -> None:
        content = "---\non:\n  push:\n  stop-after: >\n    +48h\n    later\n  issues:\nname: x\n---\n"

        assert remove_nested_field(content, "on", "stop-after") == "---\non:\n  push:\n  issues:\nname: x\n---\n"

    def test_inline_scalar_parent_is_unchanged(self) -> None:
        content = "---\non: push\nname: x\n---\nbody\n"

        assert remove_nested_field(content, "on", "stop-after") == content

    def test_missing_parent_or_field_is_unchanged(self) -> None:
        assert remove_nested_field(WORKFLOW, "triggers", "stop-after") == WORKFLOW
        assert remove_nested_field(WORKFLOW, "on", "reaction") == WORKFLOW

    def test_exact_key_match_only(self) -> None:
        content = "---\non:\n    stop-after-hours: 3\n---\n"

        assert remove_nested_field(content, "on", "stop-after") == content

    @pytest.mark.parametrize("opener", ['"on":', "'on':", "on: # triggers"])
    def test_quoted_and_commented_openers(self, opener: str) -> None:
        content = f"---\n{opener}\n    push:\n    stop-after: +1d\nname: x\n---\n"

        assert remove_nested_field(content, "on", "stop-after") == f"---\n{opener}\n    push:\nname: x\n---\n"

    def test_comment_lines_do_not_end_block(self) -> None:
        content = "---\non:\n# note\n    push:\n    stop-after: +1d\nname: x\n---\n"

        assert remove_nested_field(content, "on", "stop-after") == "---\non:\n# note\n    push:\nname: x\n---\n"

    def test_only_searches_parent_block(self) -> None:
        content = "---\non:\n    push:\nsafe-outputs:\n    stop-after: keep\n---\n"

        assert remove_nested_field(content, "on", "stop-after") == content


class TestSetNestedField:
    def test_updates_existing_field_in_place(self) -> None:
        updated = set_nested_field(WORKFLOW, "on", "stop-after", "+72h")

        assert updated == WORKFLOW.replace("stop-after: +48h", "stop-after: +72h")

    def test_inserts_after_last_block_line(self) -> None:
        content = "---\non:\n    push:\n    issues:\n\nname: x\n---\n"

        assert set_nested_field(content, "on", "stop-after", "+1d") == (
            "---\non:\n    push:\n    issues:\n    stop-after: +1d\n\nname: x\n---\n"
        )

    def test_matches_existing_child_indentation(self) -> None:
        content = "---\non:\n  workflow_dispatch:\n---\n"

        updated = set_nested_field(content, "on", "stop-after", "+1d")

        assert updated == "---\non:\n  workflow_dispatch:\n  stop-after: +1d\n---\n"
        assert parse_frontmatter(updated)[True] == {"workflow_dispatch": None, "stop-after": "+1d"}

    def test_empty_block(self) -> None:
        content = "---\non:\nname: x\n---\n"

        assert set_nested_field(content, "on", "stop-after", "+1d") == "---\non:\n    stop-after: +1d\nname: x\n---\n"

    def test_creates_missing_parent(self) -> None:
        content = "---\nname: x\n---\nbody\n"

        updated = set_nested_field(content, "on", "stop-after", "+1d")

        assert updated == "---\non:\n    stop-after: +1d\nname: x\n---\nbody\n"

    def test_inline_scalar_parent_fails(self) -> None:
        with pytest.raises(FrontmatterError, match="inline value"):
            set_nested_field("---\non: push\n---\n", "on", "stop-after", "+1d")

    def test_no_frontmatter_fails(self) -> None:
        with pytest.raises(FrontmatterError, match="no frontmatter"):
            set_nested_field("# body only\n", "on", "stop-after", "+1d")

    def test_keeps_trailing_comment_on_update(self) -> None:
        content = "---\non:\n    stop-after: +1d  # expire\n---\n"

        assert set_nested_field(content, "on", "stop-after", "+2d") == "---\non:\n    stop-after: +2d  # expire\n---\n"

    def test_crlf_insertions_use_document_newline(self) -> None:
        content = "---\r\non:\r\n    push:\r\n---\r\nbody\r\n"

        assert set_nested_field(content, "on", "stop-after", "+1d") == (
            "---\r\non:\r\n    push:\r\n    stop-after: +1d\r\n---\r\nbody\r\n"
        )


class TestRoundTrip:
    def test_remove_then_set_restores_content(self) -> None:
        content = "---\non:\n    push:\n    stop-after: +48h\nname: x\n---\nbody\n"

        removed = remove_nested_field(content, "on", "stop-after")

        assert removed != content
        assert set_nested_field(removed, "on", "stop-after", "+48h") == content

    def test_remove_absent_field_is_idempotent(self) -> None:
        content = "---\non:\n    push:\n---\n"

        assert remove_nested_field(remove_nested_field(content, "on", "stop-after"), "on", "stop-after") == content

    def test_stop_after_helpers(self) -> None:
        content = set_stop_after("---\non:\n    push:\n---\n", "+25h")

        assert parse_frontmatter(content)[True]["stop-after"] == "+25h"
        assert remove_stop_after(content) == "---\non:\n    push:\n---\n"


class TestFormatScalar:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("owner/repo/a.md@v1.0.0", "owner/repo/a.md@v1.0.0"),
            ("+48h", "+48h"),
            ("", '""'),
            ("@weird", '"@weird"'),
            ("a: b", '"a: b"'),
            ("x #y", '"x #y"'),
        ],
    )
    def test_quotes_only_when_needed(self, value: str, expected: str) -> None:
        assert format_scalar(value) == expected
