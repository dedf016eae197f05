"""Fetch raw workflow files from a repository at a given ref.

Two transports are provided. ``GitHubContentFetcher`` uses the REST contents
API and falls back to ``GitContentFetcher`` (a depth-1 fetch of the single ref
through the ``git`` executable) when the API refuses the request for lack of
credentials. Both raise the same three error kinds:
``ContentNotFoundError``, ``AuthRequiredError`` and ``NetworkError``.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import subprocess
import tempfile
from typing import Protocol, Sequence

from .client import (
    AuthRequiredError,
    ContentNotFoundError,
    GitHubAPIError,
    GitHubClient,
    NetworkError,
    normalize_repository,
    quote_path,
)

logger = logging.getLogger(__name__)

DEFAULT_GIT_URL = "https://github.com"

_NOT_FOUND_MARKERS = (
    "couldn't find remote ref",
    "repository not found",
    "does not exist",
    "exists on disk, but not in",
    "not our ref",
    "unadvertised object",
)
_AUTH_MARKERS = (
    "authentication failed",
    "could not read username",
    "permission denied",
    "terminal prompts disabled",
)


class ContentFetcher(Protocol):
    """Fetch the bytes of ``path`` in ``repo`` at ``ref``."""

    def fetch(self, repo: str, path: str, ref: str) -> bytes:
        ...


class GitContentFetcher:
    """Retrieve a single file with ``git fetch --depth 1`` into a scratch repository."""

    def __init__(
        self,
        *,
        token: str | None = None,
        git_url: str = DEFAULT_GIT_URL,
        git_executable: str = "git",
        timeout: int = 120,
    ):
        self.token = token
        self.git_url = git_url.rstrip("/")
        self.git_executable = git_executable
        self.timeout = timeout

    def _remote_url(self, owner: str, name: str) -> str:
        if self.token and self.git_url.startswith("https://"):
            host = self.git_url[len("https://"):]
            return f"https://x-access-token:{self.token}@{host}/{owner}/{name}.git"
        return f"{self.git_url}/{owner}/{name}.git"

    def _run(self, args: Sequence[str], cwd: str) -> subprocess.CompletedProcess:
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"
        try:
            return subprocess.run(
                [self.git_executable, *args],
                cwd=cwd,
                env=env,
                capture_output=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise NetworkError(f"git {args[0]} timed out after {self.timeout}s") from exc
        except FileNotFoundError as exc:
            raise NetworkError(f"git executable not found: {self.git_executable}") from exc
        except OSError as exc:
            raise NetworkError(f"failed to run {self.git_executable}: {exc}") from exc

    def _raise_for(self, result: subprocess.CompletedProcess, operation: str) -> None:
        if result.returncode == 0:
            return
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        # Never echo a credential embedded in the remote URL
        if self.token:
            stderr = stderr.replace(self.token, "***")
        message = f"git {operation} failed: {stderr or f'exit status {result.returncode}'}"
        lowered = stderr.lower()
        if any(marker in lowered for marker in _AUTH_MARKERS):
            raise AuthRequiredError(message)
        if any(marker in lowered for marker in _NOT_FOUND_MARKERS):
            raise ContentNotFoundError(message)
        raise NetworkError(message)

    def fetch(self, repo: str, path: str, ref: str) -> bytes:
        owner, name = normalize_repository(repo)
        logger.debug("Fetching %s/%s@%s via git", repo, path, ref)

        try:
            workspace = tempfile.TemporaryDirectory(prefix="upstream-sync-")
        except OSError as exc:
            raise NetworkError(f"failed to create git workspace: {exc}") from exc
        with workspace as workdir:
            self._raise_for(self._run(["init", "--quiet"], workdir), "init")
            self._raise_for(
                self._run(["remote", "add", "origin", self._remote_url(owner, name)], workdir),
                "remote add",
            )
            self._raise_for(
                self._run(["fetch", "--quiet", "--depth", "1", "--filter=blob:none", "origin", ref], workdir),
                "fetch",
            )
            result = self._run(["show", f"FETCH_HEAD:{path.lstrip('/')}"], workdir)
            self._raise_for(result, "show")
            return result.stdout


class GitHubContentFetcher:
    """Fetch file content through the GitHub contents API."""

    def __init__(self, client: GitHubClient, *, fallback: ContentFetcher | None = None):
        self.client = client
        self.fallback = fallback

    def fetch(self, repo: str, path: str, ref: str) -> bytes:
        try:
            return self._fetch_via_api(repo, path, ref)
        except AuthRequiredError as exc:
            if self.fallback is None:
                raise
            logger.info("GitHub API denied access to %s/%s, falling back to git: %s", repo, path, exc)
            return self.fallback.fetch(repo, path, ref)

    def _fetch_via_api(self, repo: str, path: str, ref: str) -> bytes:
        owner, name = normalize_repository(repo)
        endpoint = f"/repos/{owner}/{name}/contents/{quote_path(path)}"
        data = self.client.get_json(endpoint, params={"ref": ref} if ref else None)

        if isinstance(data, list):
            raise ContentNotFoundError(f"{path} is a directory in {repo}@{ref}")
        if not isinstance(data, dict):
            raise GitHubAPIError(f"Unexpected contents payload for {repo}/{path}")

        content = data.get("content")
        if data.get("encoding") == "base64" and content:
            try:
                # The payload is wrapped at 60 columns
                return base64.b64decode("".join(str(content).split()), validate=True)
            except (binascii.Error, ValueError) as exc:
                raise GitHubAPIError(f"Failed to decode content of {repo}/{path}: {exc}") from exc

        # Files over 1 MB come back without inline content
        download_url = data.get("download_url")
        if download_url:
            return self.client.get(str(download_url)).content
        if data.get("size") == 0:
            return b""
        raise GitHubAPIError(f"No content returned for {repo}/{path}@{ref}")


__all__ = [
    "ContentFetcher",
    "DEFAULT_GIT_URL",
    "GitContentFetcher",
    "GitHubContentFetcher",
]
