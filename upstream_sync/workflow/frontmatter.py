"""
Format-preserving edits of workflow frontmatter.

Frontmatter is handled as the raw list of lines between the opening and
closing ``---`` delimiters. Every edit touches only the lines it has to, so
comments, blank lines, key order and indentation elsewhere in the file come
back byte-identical. Structured serialization through PyYAML is used only to
read values and to create a frontmatter block for a file that has none.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Optional

import yaml

DELIMITER = "---"
NESTED_INDENT = "    "

_YAML_INDICATORS = set("-?:,[]{}#&*!|>'\"%@`")


class FrontmatterError(ValueError):
    """Raised when frontmatter is missing, malformed, or cannot take an edit."""


@dataclass
class FrontmatterDocument:
    """A workflow file split around its frontmatter block.

    ``render()`` reassembles the exact original text when nothing changed.
    """

    opening: str
    lines: list[str] = field(default_factory=list)
    closing: str = DELIMITER + "\n"
    body: str = ""

    @property
    def newline(self) -> str:
        return "\r\n" if self.opening.endswith("\r\n") else "\n"

    @property
    def text(self) -> str:
        return "".join(self.lines)

    def render(self) -> str:
        return self.opening + "".join(self.lines) + self.closing + self.body


@dataclass(frozen=True)
class _KeyLine:
    index: int
    indent: str
    key: str
    value: str
    comment: str
    ending: str

    @property
    def width(self) -> int:
        return len(self.indent)

    @property
    def is_block_opener(self) -> bool:
        return not self.value.strip()

    def with_value(self, value: str) -> str:
        return f"{self.indent}{self.key}: {format_scalar(value)}{self.comment}{self.ending}"


# ============================================================================
# Parsing helpers
# ============================================================================

def _split_lines(text: str) -> list[str]:
    parts = text.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def _split_ending(line: str) -> tuple[str, str]:
    if line.endswith("\r\n"):
        return line[:-2], "\r\n"
    if line.endswith("\n"):
        return line[:-1], "\n"
    return line, ""


def _is_delimiter(line: str) -> bool:
    return _split_ending(line)[0].rstrip() == DELIMITER


def _indent_width(text: str) -> int:
    return len(text) - len(text.lstrip(" \t"))


def _is_blank(text: str) -> bool:
    return not text.strip()


def _is_comment(text: str) -> bool:
    return text.lstrip(" \t").startswith("#")


def _is_content(text: str) -> bool:
    return not _is_blank(text) and not _is_comment(text)


def _key_pattern(key: str) -> re.Pattern:
    escaped = re.escape(key)
    return re.compile(rf"^(?P<indent>[ \t]*)(?P<key>{escaped}|\"{escaped}\"|'{escaped}')[ \t]*:(?P<rest>.*)$")


def _split_comment(rest: str) -> tuple[str, str]:
    """Split the text after a key's colon into value and trailing comment."""
    in_single = in_double = False
    for i, ch in enumerate(rest):
        if ch == "'" and not in_double:
            in_single = not in_single
        elif ch == '"' and not in_single and (i == 0 or rest[i - 1] != "\\"):
            in_double = not in_double
        elif ch == "#" and not in_single and not in_double and (i == 0 or rest[i - 1] in " \t"):
            start = i
            while start > 0 and rest[start - 1] in " \t":
                start -= 1
            return rest[:start], rest[start:]
    return rest, ""


def _match_key(lines: list[str], index: int, key: str) -> Optional[_KeyLine]:
    text, ending = _split_ending(lines[index])
    match = _key_pattern(key).match(text)
    if match is None:
        return None
    rest = match.group("rest")
    # "key:value" is a plain scalar in YAML, not a mapping entry
    if rest and rest[0] not in " \t":
        return None
    value, comment = _split_comment(rest)
    return _KeyLine(
        index=index,
        indent=match.group("indent"),
        key=match.group("key"),
        value=value.strip(),
        comment=comment,
        ending=ending,
    )


def _top_level_width(lines: list[str]) -> int:
    widths = [_indent_width(_split_ending(line)[0]) for line in lines if _is_content(_split_ending(line)[0])]
    return min(widths) if widths else 0


def _find_key(lines: list[str], key: str, start: int, stop: int, width: int) -> Optional[_KeyLine]:
    for index in range(start, stop):
        found = _match_key(lines, index, key)
        if found is not None and found.width == width:
            return found
    return None


def _child_span_end(lines: list[str], key_line: _KeyLine, stop: int) -> int:
    """Index one past the last line belonging to ``key_line``'s value."""
    end = key_line.index + 1
    index = key_line.index + 1
    while index < stop:
        text = _split_ending(lines[index])[0]
        if _is_blank(text):
            index += 1
            continue
        width = _indent_width(text)
        is_sequence_item = width == key_line.width and text.lstrip(" \t").startswith("- ")
        if width > key_line.width or (key_line.is_block_opener and is_sequence_item):
            end = index + 1
            index += 1
            continue
        break
    return end


def _block_end(lines: list[str], parent: _KeyLine) -> int:
    """Index of the first line after ``parent``'s block."""
    for index in range(parent.index + 1, len(lines)):
        text = _split_ending(lines[index])[0]
        if _is_content(text) and _indent_width(text) <= parent.width:
            return index
    return len(lines)


def _child_width(lines: list[str], start: int, stop: int) -> Optional[int]:
    for index in range(start, stop):
        text = _split_ending(lines[index])[0]
        if _is_content(text):
            return _indent_width(text)
    return None


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def format_scalar(value: Any) -> str:
    """Render ``value`` as a single-line YAML scalar, quoting only when needed."""
    text = str(value)
    needs_quotes = (
        not text
        or text != text.strip()
        or text[0] in _YAML_INDICATORS
        or ": " in text
        or " #" in text
        or text.endswith(":")
        or "\n" in text
    )
    if not needs_quotes:
        return text
    escaped = text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


# ============================================================================
# Document access
# ============================================================================

def split_frontmatter(content: str) -> Optional[FrontmatterDocument]:
    """Split ``content`` into its frontmatter parts, or None when there is no frontmatter."""
    lines = _split_lines(content)
    if not lines or not _is_delimiter(lines[0]):
        return None
    for index in range(1, len(lines)):
        if _is_delimiter(lines[index]):
            return FrontmatterDocument(
                opening=lines[0],
                lines=lines[1:index],
                closing=lines[index],
                body="".join(lines[index + 1:]),
            )
    return None


def parse_frontmatter(content: str) -> dict[str, Any]:
    """
    Parse the frontmatter of ``content`` as YAML.

    Returns an empty dict when the file has no frontmatter.

    Raises:
        FrontmatterError: If the frontmatter is not a valid YAML mapping
    """
    doc = split_frontmatter(content)
    if doc is None:
        return {}
    try:
        data = yaml.safe_load(doc.text)
    except yaml.YAMLError as exc:
        raise FrontmatterError(f"invalid frontmatter YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise FrontmatterError("frontmatter must be a YAML mapping")
    return data


def get_top_level_field(content: str, field_name: str) -> Optional[str]:
    """Return the raw scalar value of a top-level field, or None when absent."""
    doc = split_frontmatter(content)
    if doc is None:
        return None
    width = _top_level_width(doc.lines)
    found = _find_key(doc.lines, field_name, 0, len(doc.lines), width)
    if found is None:
        return None
    return _unquote(found.value)


# ============================================================================
# Top-level edits
# ============================================================================

def set_top_level_field(content: str, field_name: str, value: str) -> str:
    """
    Set a top-level field, rewriting only its line.

    Indentation and a trailing comment are kept. Child lines of a former block
    value are dropped. A missing field is appended after the last non-blank
    frontmatter line. Content without frontmatter gets a new block prepended.
    """
    doc = split_frontmatter(content)
    if doc is None:
        serialized = yaml.safe_dump({field_name: value}, default_flow_style=False, sort_keys=False, allow_unicode=True)
        return f"{DELIMITER}\n{serialized}{DELIMITER}\n{content}"

    lines = doc.lines
    width = _top_level_width(lines)
    found = _find_key(lines, field_name, 0, len(lines), width)
    if found is not None:
        end = _child_span_end(lines, found, len(lines))
        lines[found.index:end] = [found.with_value(value)]
        return doc.render()

    insert_at = len(lines)
    while insert_at > 0 and _is_blank(_split_ending(lines[insert_at - 1])[0]):
        insert_at -= 1
    if insert_at > 0 and not lines[insert_at - 1].endswith("\n"):
        lines[insert_at - 1] += doc.newline
    lines.insert(insert_at, f"{' ' * width}{field_name}: {format_scalar(value)}{doc.newline}")
    return doc.render()


def remove_top_level_field(content: str, field_name: str) -> str:
    """Remove a top-level field and any lines of its value; unchanged when absent."""
    doc = split_frontmatter(content)
    if doc is None:
        return content
    lines = doc.lines
    found = _find_key(lines, field_name, 0, len(lines), _top_level_width(lines))
    if found is None:
        return content
    del lines[found.index:_child_span_end(lines, found, len(lines))]
    return doc.render()


# ============================================================================
# Nested edits
# ============================================================================

def _locate_child(lines: list[str], parent: _KeyLine, field_name: str) -> tuple[int, Optional[_KeyLine]]:
    end = _block_end(lines, parent)
    width = _child_width(lines, parent.index + 1, end)
    if width is None:
        return end, None
    return end, _find_key(lines, field_name, parent.index + 1, end, width)


def remove_nested_field(content: str, parent_key: str, field_name: str) -> str:
    """
    Remove ``field_name`` from the ``parent_key`` block.

    The field line goes together with every following line indented deeper
    than it. Content is returned unchanged when the parent is missing, is an
    inline scalar, or does not contain the field.
    """
    doc = split_frontmatter(content)
    if doc is None:
        return content
    lines = doc.lines
    parent = _find_key(lines, parent_key, 0, len(lines), _top_level_width(lines))
    if parent is None or not parent.is_block_opener:
        return content

    end, child = _locate_child(lines, parent, field_name)
    if child is None:
        return content
    del lines[child.index:_child_span_end(lines, child, end)]
    return doc.render()


def set_nested_field(content: str, parent_key: str, field_name: str, value: str) -> str:
    """
    Set ``field_name`` inside the ``parent_key`` block.

    An existing field is rewritten in place. A new field is added after the
    last line of the block at the indentation of the block's existing
    children, or four spaces deeper than the parent when it has none. A
    missing parent block is created at the top of the frontmatter.

    Raises:
        FrontmatterError: If there is no frontmatter or the parent is an inline scalar
    """
    doc = split_frontmatter(content)
    if doc is None:
        raise FrontmatterError(f"cannot set {parent_key}.{field_name}: no frontmatter found")
    lines = doc.lines
    newline = doc.newline
    width = _top_level_width(lines)
    parent = _find_key(lines, parent_key, 0, len(lines), width)

    if parent is None:
        indent = " " * width
        lines[0:0] = [
            f"{indent}{parent_key}:{newline}",
            f"{indent}{NESTED_INDENT}{field_name}: {format_scalar(value)}{newline}",
        ]
        return doc.render()

    if not parent.is_block_opener:
        raise FrontmatterError(
            f"cannot set {parent_key}.{field_name}: {parent_key!r} has an inline value, not a block"
        )

    end, child = _locate_child(lines, parent, field_name)
    if child is not None:
        span_end = _child_span_end(lines, child, end)
        lines[child.index:span_end] = [child.with_value(value)]
        return doc.render()

    insert_at = parent.index + 1
    for index in range(parent.index + 1, end):
        text = _split_ending(lines[index])[0]
        if _is_blank(text) or (_is_comment(text) and _indent_width(text) <= parent.width):
            continue
        insert_at = index + 1
    if not lines[insert_at - 1].endswith("\n"):
        lines[insert_at - 1] += newline
    width = _child_width(lines, parent.index + 1, end)
    indent = " " * width if width is not None and width > parent.width else parent.indent + NESTED_INDENT
    lines.insert(insert_at, f"{indent}{field_name}: {format_scalar(value)}{newline}")
    return doc.render()


STOP_AFTER_PARENT = "on"
STOP_AFTER_FIELD = "stop-after"


def remove_stop_after(content: str) -> str:
    return remove_nested_field(content, STOP_AFTER_PARENT, STOP_AFTER_FIELD)


def set_stop_after(content: str, value: str) -> str:
    return set_nested_field(content, STOP_AFTER_PARENT, STOP_AFTER_FIELD, value)


__all__ = [
    "FrontmatterDocument",
    "FrontmatterError",
    "format_scalar",
    "get_top_level_field",
    "parse_frontmatter",
    "remove_nested_field",
    "remove_stop_after",
    "remove_top_level_field",
    "set_nested_field",
    "set_stop_after",
    "set_top_level_field",
    "split_frontmatter",
]
