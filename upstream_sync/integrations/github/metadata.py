"""Remote repository metadata queries: releases, default branch, branch heads."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol
from urllib.parse import quote

from .client import GitHubAPIError, GitHubClient, normalize_repository

logger = logging.getLogger(__name__)

RELEASES_PER_PAGE = 100
MAX_RELEASE_PAGES = 10


class RemoteMetadata(Protocol):
    """The three repository queries the updater needs."""

    def list_release_tags(self, repo: str) -> list[str]:
        """Release tag names, most recent first."""

    def default_branch(self, repo: str) -> str:
        """Name of the repository's default branch."""

    def branch_head_commit(self, repo: str, branch: str) -> str:
        """Full commit SHA at the head of ``branch``."""


@dataclass
class RemoteLookupCache:
    """Memoized remote lookups for one run.

    Owned by whoever creates it and passed to clients explicitly; call
    ``clear()`` to forget everything (tests do this between cases).
    """

    release_tags: dict[str, list[str]] = field(default_factory=dict)
    default_branches: dict[str, str] = field(default_factory=dict)
    branch_heads: dict[tuple[str, str], str] = field(default_factory=dict)

    def clear(self) -> None:
        self.release_tags.clear()
        self.default_branches.clear()
        self.branch_heads.clear()


class GitHubMetadataClient:
    """``RemoteMetadata`` backed by the GitHub REST API."""

    def __init__(
        self,
        client: GitHubClient,
        *,
        cache: RemoteLookupCache | None = None,
        cache_branch_heads: bool = False,
    ):
        self.client = client
        self.cache = cache if cache is not None else RemoteLookupCache()
        # Branch heads move; only memoize them when the caller opts in.
        self.cache_branch_heads = cache_branch_heads

    def list_release_tags(self, repo: str) -> list[str]:
        owner, name = normalize_repository(repo)
        cached = self.cache.release_tags.get(repo)
        if cached is not None:
            return list(cached)

        tags: list[str] = []
        for page in range(1, MAX_RELEASE_PAGES + 1):
            data = self.client.get_json(
                f"/repos/{owner}/{name}/releases",
                params={"per_page": RELEASES_PER_PAGE, "page": page},
            )
            if not isinstance(data, list):
                raise GitHubAPIError(f"Unexpected releases payload for {repo}")
            tags.extend(str(item["tag_name"]) for item in data if isinstance(item, dict) and item.get("tag_name"))
            if len(data) < RELEASES_PER_PAGE:
                break

        logger.debug("Fetched %d release tags for %s", len(tags), repo)
        self.cache.release_tags[repo] = tags
        return list(tags)

    def default_branch(self, repo: str) -> str:
        owner, name = normalize_repository(repo)
        cached = self.cache.default_branches.get(repo)
        if cached:
            return cached

        data = self.client.get_json(f"/repos/{owner}/{name}")
        branch = str(data.get("default_branch") or "").strip() if isinstance(data, dict) else ""
        if not branch:
            raise GitHubAPIError(f"empty default branch returned for {repo}")

        self.cache.default_branches[repo] = branch
        return branch

    def branch_head_commit(self, repo: str, branch: str) -> str:
        owner, name = normalize_repository(repo)
        key = (repo, branch)
        if self.cache_branch_heads and key in self.cache.branch_heads:
            return self.cache.branch_heads[key]

        # Branch names may contain slashes (feature/foo)
        data = self.client.get_json(f"/repos/{owner}/{name}/branches/{quote(branch, safe='')}")
        sha = ""
        if isinstance(data, dict):
            commit = data.get("commit") or {}
            sha = str(commit.get("sha") or "").strip()
        if not sha:
            raise GitHubAPIError(f"empty commit SHA returned for branch {branch}")

        if self.cache_branch_heads:
            self.cache.branch_heads[key] = sha
        return sha


__all__ = [
    "GitHubMetadataClient",
    "RemoteLookupCache",
    "RemoteMetadata",
]
