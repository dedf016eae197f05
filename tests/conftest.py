"""Shared fakes and fixtures for the test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest

from upstream_sync.integrations.github.client import ContentNotFoundError, GitHubAPIError
from upstream_sync.workflow.compiler import CompileError

REPO = "octo-org/agentics"
WORKFLOW_PATH = "workflows/daily-report.md"
SHA_OLD = "6c79ed2ea350161ad5dcc9624cf510f134c6a9e3"
SHA_NEW = "f43a0e5ff2bd294095638e18286ca9a3d1956744"


class FakeFetcher:
    """In-memory content fetcher keyed by (repo, path, ref)."""

    def __init__(self) -> None:
        self.contents: dict[tuple[str, str, str], str] = {}
        self.errors: dict[tuple[str, str, str], GitHubAPIError] = {}
        self.calls: list[tuple[str, str, str]] = []

    def add(self, ref: str, text: str, *, repo: str = REPO, path: str = WORKFLOW_PATH) -> None:
        self.contents[(repo, path, ref)] = text

    def fail(self, ref: str, error: GitHubAPIError, *, repo: str = REPO, path: str = WORKFLOW_PATH) -> None:
        self.errors[(repo, path, ref)] = error

    def fetch(self, repo: str, path: str, ref: str) -> bytes:
        key = (repo, path, ref)
        self.calls.append(key)
        if key in self.errors:
            raise self.errors[key]
        if key not in self.contents:
            raise ContentNotFoundError(f"{repo}/{path}@{ref} not found", 404)
        return self.contents[key].encode("utf-8")


class FakeMetadata:
    """In-memory remote metadata with call recording."""

    def __init__(
        self,
        releases: Optional[list[str]] = None,
        default_branches: Optional[dict[str, str]] = None,
        heads: Optional[dict[tuple[str, str], str]] = None,
    ) -> None:
        self.releases = list(releases or [])
        self.default_branches = dict(default_branches or {})
        self.heads = dict(heads or {})
        self.calls: list[tuple[str, ...]] = []
        self.error: Optional[Exception] = None

    def list_release_tags(self, repo: str) -> list[str]:
        self.calls.append(("list_release_tags", repo))
        if self.error:
            raise self.error
        return list(self.releases)

    def default_branch(self, repo: str) -> str:
        self.calls.append(("default_branch", repo))
        if self.error:
            raise self.error
        return self.default_branches.get(repo, "main")

    def branch_head_commit(self, repo: str, branch: str) -> str:
        self.calls.append(("branch_head_commit", repo, branch))
        if self.error:
            raise self.error
        try:
            return self.heads[(repo, branch)]
        except KeyError:
            raise ContentNotFoundError(f"branch {branch} not found", 404) from None


class RecordingCompiler:
    def __init__(self, error: Optional[str] = None) -> None:
        self.compiled: list[str] = []
        self.error = error

    def compile(self, path: str) -> None:
        self.compiled.append(path)
        if self.error:
            raise CompileError(self.error)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def metadata() -> FakeMetadata:
    return FakeMetadata()


@pytest.fixture
def compiler() -> RecordingCompiler:
    return RecordingCompiler()


@pytest.fixture
def workflows_dir(tmp_path: Path) -> Path:
    directory = tmp_path / ".github" / "workflows"
    directory.mkdir(parents=True)
    return directory


def write_workflow(directory: Path, name: str, content: str) -> Path:
    path = directory / f"{name}.md"
    path.write_text(content, encoding="utf-8")
    return path
