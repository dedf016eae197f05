"""Source specs, reference classification, and latest-ref resolution."""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .semver import is_version_tag, parse_version

if TYPE_CHECKING:
    from ..integrations.github.metadata import RemoteMetadata

logger = logging.getLogger(__name__)

_COMMIT_SHA_PATTERN = re.compile(r"^[0-9a-fA-F]{40}$")
SHORT_SHA_LENGTH = 7


class SourceSpecError(ValueError):
    """Raised when a source field cannot be parsed as owner/repo/path[@ref]."""


class RefResolutionError(RuntimeError):
    """Raised when the latest upstream ref cannot be determined."""


class ReferenceKind(enum.Enum):
    VERSION_TAG = "version_tag"
    COMMIT_SHA = "commit_sha"
    BRANCH = "branch"


@dataclass(frozen=True)
class SourceSpec:
    """Where a workflow was installed from: ``owner/repo/path@ref``."""

    repo: str
    path: str
    ref: str = ""

    def with_ref(self, ref: str) -> "SourceSpec":
        return SourceSpec(repo=self.repo, path=self.path, ref=ref)

    def __str__(self) -> str:
        base = f"{self.repo}/{self.path}"
        return f"{base}@{self.ref}" if self.ref else base


@dataclass(frozen=True)
class WorkflowRecord:
    """A local workflow file that carries a source field."""

    name: str
    path: str
    source_spec: str


def parse_source_spec(text: str) -> SourceSpec:
    """
    Parse ``owner/repo/path[@ref]`` into a SourceSpec.

    The ref is taken from the last ``@`` so paths may contain the character.

    Raises:
        SourceSpecError: If the repository or path part is missing
    """
    value = (text or "").strip()
    if not value:
        raise SourceSpecError("source spec is empty")

    location, ref = value, ""
    if "@" in value:
        location, ref = value.rsplit("@", 1)
        ref = ref.strip()
        if not ref:
            raise SourceSpecError(f"invalid source spec {text!r}: empty ref after '@'")

    parts = location.split("/")
    if len(parts) < 3:
        raise SourceSpecError(f"invalid source spec {text!r}: must be in format owner/repo/path[@ref]")

    owner, name = parts[0], parts[1]
    path = "/".join(parts[2:])
    if not owner or not name or not path.strip("/"):
        raise SourceSpecError(f"invalid source spec {text!r}: owner, repo and path must be non-empty")

    return SourceSpec(repo=f"{owner}/{name}", path=path, ref=ref)


def is_commit_sha(ref: str) -> bool:
    """True for a full 40-character hexadecimal commit hash."""
    return bool(ref) and _COMMIT_SHA_PATTERN.match(ref) is not None


def classify_ref(ref: str) -> ReferenceKind:
    # Order matters: a 40-digit hex string is never treated as a version
    if is_commit_sha(ref):
        return ReferenceKind.COMMIT_SHA
    if is_version_tag(ref):
        return ReferenceKind.VERSION_TAG
    return ReferenceKind.BRANCH


def is_branch_ref(ref: str) -> bool:
    return classify_ref(ref) is ReferenceKind.BRANCH


def short_ref(ref: str) -> str:
    """Abbreviate commit hashes for display; other refs are returned as-is."""
    if is_commit_sha(ref):
        return ref[:SHORT_SHA_LENGTH]
    return ref


class RefResolver:
    """Resolve the newest upstream ref comparable to a workflow's current ref."""

    def __init__(self, metadata: "RemoteMetadata"):
        self.metadata = metadata

    def resolve_latest_ref(self, repo: str, current_ref: str, allow_major: bool = False) -> str:
        """
        Resolve the latest ref for ``current_ref`` in ``repo``.

        Version tags resolve to the highest compatible release (same major
        unless ``allow_major``). Commit SHAs resolve to the head of the default
        branch. Branch names resolve to their head commit.

        Raises:
            RefResolutionError: When nothing suitable is found or a remote query fails
        """
        kind = classify_ref(current_ref)
        logger.debug("Resolving latest ref for %s@%s (%s)", repo, current_ref, kind.value)

        if kind is ReferenceKind.VERSION_TAG:
            return self._resolve_latest_release(repo, current_ref, allow_major)
        if kind is ReferenceKind.COMMIT_SHA:
            return self._resolve_default_branch_head(repo)
        return self._resolve_branch_head(repo, current_ref)

    def _resolve_latest_release(self, repo: str, current_ref: str, allow_major: bool) -> str:
        try:
            releases = self.metadata.list_release_tags(repo)
        except Exception as exc:
            raise RefResolutionError(f"failed to fetch releases for {repo}: {exc}") from exc

        if not releases:
            raise RefResolutionError(f"no releases found for {repo}")

        current = parse_version(current_ref)
        if current is None:
            logger.debug("Current ref %s is not a parseable version, using %s", current_ref, releases[0])
            return releases[0]

        latest_tag = ""
        latest = None
        for tag in releases:
            version = parse_version(tag)
            if version is None:
                continue
            if not allow_major and version.major != current.major:
                continue
            if latest is None or version.is_newer(latest):
                latest, latest_tag = version, tag

        if latest is None:
            raise RefResolutionError(f"no compatible release found for {repo} (current {current_ref})")

        logger.debug("Latest compatible release for %s: %s", repo, latest_tag)
        return latest_tag

    def _resolve_default_branch_head(self, repo: str) -> str:
        try:
            branch = self.metadata.default_branch(repo)
        except Exception as exc:
            raise RefResolutionError(f"failed to get default branch for {repo}: {exc}") from exc
        logger.debug("Default branch for %s is %s", repo, branch)
        return self._resolve_branch_head(repo, branch)

    def _resolve_branch_head(self, repo: str, branch: str) -> str:
        try:
            sha = self.metadata.branch_head_commit(repo, branch)
        except Exception as exc:
            raise RefResolutionError(f"failed to get latest commit for branch {branch} in {repo}: {exc}") from exc
        logger.debug("Head of %s in %s is %s", branch, repo, short_ref(sha))
        return sha


__all__ = [
    "RefResolutionError",
    "RefResolver",
    "ReferenceKind",
    "SourceSpec",
    "SourceSpecError",
    "WorkflowRecord",
    "classify_ref",
    "is_branch_ref",
    "is_commit_sha",
    "parse_source_spec",
    "short_ref",
]
