"""Semantic version parsing and ordering for release tags."""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass
from typing import Optional

_NUMBER = r"(?:0|[1-9][0-9]*)"
_PRERELEASE_ID = r"(?:0|[1-9][0-9]*|[0-9]*[A-Za-z-][0-9A-Za-z-]*)"
_VERSION_PATTERN = re.compile(
    rf"^v?(?P<major>{_NUMBER})"
    rf"(?:\.(?P<minor>{_NUMBER})(?:\.(?P<patch>{_NUMBER}))?)?"
    rf"(?:-(?P<prerelease>{_PRERELEASE_ID}(?:\.{_PRERELEASE_ID})*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


@functools.total_ordering
@dataclass(frozen=True)
class SemanticVersion:
    """A parsed version tag.

    ``raw`` keeps the tag as written (without any ``v`` prefix) so that
    shorthand tags such as ``v6`` can be told apart from ``v6.0.0``.
    """

    major: int
    minor: int
    patch: int
    prerelease: str = ""
    raw: str = ""

    @property
    def is_precise(self) -> bool:
        """True when major, minor and patch were all written out."""
        core = self.raw.split("-", 1)[0].split("+", 1)[0]
        return core.count(".") >= 2

    def is_newer(self, other: "SemanticVersion") -> bool:
        return compare_versions(self, other) > 0

    def __str__(self) -> str:
        text = f"v{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += f"-{self.prerelease}"
        return text

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return compare_versions(self, other) == 0

    def __lt__(self, other: "SemanticVersion") -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return compare_versions(self, other) < 0

    def __hash__(self) -> int:
        return hash((self.major, self.minor, self.patch, self.prerelease))


def _match(ref: str) -> Optional[re.Match]:
    if not ref:
        return None
    match = _VERSION_PATTERN.match(ref)
    if match is None:
        return None
    # Shorthand forms (v1, v1.2) cannot carry a prerelease or build suffix
    if match.group("patch") is None and (match.group("prerelease") or match.group("build")):
        return None
    return match


def is_version_tag(ref: str) -> bool:
    """Return True when ``ref`` is a valid semantic version tag."""
    return _match(ref) is not None


def parse_version(ref: str) -> Optional[SemanticVersion]:
    """Parse ``ref`` into a SemanticVersion, or None when it is not a version tag."""
    match = _match(ref)
    if match is None:
        return None
    return SemanticVersion(
        major=int(match.group("major")),
        minor=int(match.group("minor") or 0),
        patch=int(match.group("patch") or 0),
        prerelease=match.group("prerelease") or "",
        raw=ref[1:] if ref.startswith("v") else ref,
    )


def _compare_int(a: int, b: int) -> int:
    return (a > b) - (a < b)


def _compare_prerelease(a: str, b: str) -> int:
    if a == b:
        return 0
    # A release sorts above any prerelease of the same version
    if not a:
        return 1
    if not b:
        return -1

    left = a.split(".")
    right = b.split(".")
    for x, y in zip(left, right):
        if x == y:
            continue
        x_numeric = x.isdigit()
        y_numeric = y.isdigit()
        if x_numeric and y_numeric:
            return _compare_int(int(x), int(y))
        if x_numeric:
            return -1
        if y_numeric:
            return 1
        return -1 if x < y else 1
    return _compare_int(len(left), len(right))


def compare_versions(a: SemanticVersion | str, b: SemanticVersion | str) -> int:
    """
    Compare two versions.

    Returns -1, 0 or 1. String arguments are parsed first; an unparseable
    string raises ValueError.
    """
    left = _coerce(a)
    right = _coerce(b)
    for x, y in ((left.major, right.major), (left.minor, right.minor), (left.patch, right.patch)):
        result = _compare_int(x, y)
        if result:
            return result
    return _compare_prerelease(left.prerelease, right.prerelease)


def _coerce(value: SemanticVersion | str) -> SemanticVersion:
    if isinstance(value, SemanticVersion):
        return value
    parsed = parse_version(value)
    if parsed is None:
        raise ValueError(f"Not a semantic version: {value!r}")
    return parsed


__all__ = [
    "SemanticVersion",
    "compare_versions",
    "is_version_tag",
    "parse_version",
]
