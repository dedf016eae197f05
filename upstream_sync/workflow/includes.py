"""Pin relative include and import directives to the upstream repository."""

from __future__ import annotations

import logging
import posixpath
import re
from typing import Callable

from .frontmatter import split_frontmatter
from .refs import SourceSpec

logger = logging.getLogger(__name__)

IncludeRewriter = Callable[[str, SourceSpec], str]

_INCLUDE_LINE = re.compile(r"^(?P<lead>\s*@include(?P<optional>\?)?\s+)(?P<target>\S+)(?P<trail>\s*)$")
_IMPORT_LINE = re.compile(r"^(?P<lead>\s*\{\{#import(?P<optional>\?)?\s+)(?P<target>[^\s}]+)(?P<trail>\s*\}\}\s*)$")
_FENCE = re.compile(r"^\s*(```|~~~)")


def _pin_target(target: str, spec: SourceSpec) -> str:
    path, hash_sign, section = target.partition("#")
    # Already points at a remote ref
    if "@" in path or not path:
        return target
    if path.startswith("/"):
        resolved = path.lstrip("/")
    else:
        resolved = posixpath.normpath(posixpath.join(posixpath.dirname(spec.path), path))
    if resolved.startswith("../") or resolved == "..":
        logger.warning("Include %s escapes the repository root, leaving it unchanged", target)
        return target
    pinned = f"{spec.repo}/{resolved}@{spec.ref}" if spec.ref else f"{spec.repo}/{resolved}"
    return f"{pinned}{hash_sign}{section}"


def rewrite_includes(content: str, spec: SourceSpec) -> str:
    """
    Rewrite relative ``@include`` and ``{{#import}}`` body directives.

    A relative target is resolved against the directory of ``spec.path`` and
    becomes ``owner/repo/path@ref``. Targets that already carry a ref, and
    lines inside fenced code blocks, are left alone.
    """
    doc = split_frontmatter(content)
    head, body = ("", content) if doc is None else (content[: len(content) - len(doc.body)], doc.body)

    in_fence = False
    changed = 0
    lines = body.split("\n")
    for index, line in enumerate(lines):
        if _FENCE.match(line):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        text = line[:-1] if line.endswith("\r") else line
        cr = "\r" if line.endswith("\r") else ""
        for pattern in (_INCLUDE_LINE, _IMPORT_LINE):
            match = pattern.match(text)
            if match is None:
                continue
            target = match.group("target")
            pinned = _pin_target(target, spec)
            if pinned != target:
                lines[index] = f"{match.group('lead')}{pinned}{match.group('trail')}{cr}"
                changed += 1
            break

    if changed:
        logger.debug("Pinned %d include directive(s) to %s", changed, spec)
    return head + "\n".join(lines)


__all__ = [
    "IncludeRewriter",
    "rewrite_includes",
]
