"""Shared GitHub REST transport and error types."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import requests

from ...utils.logging_config import log_retry_attempt

DEFAULT_API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"

logger = logging.getLogger(__name__)


class GitHubAPIError(RuntimeError):
    """Raised when the GitHub API returns an error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ContentNotFoundError(GitHubAPIError):
    """Raised when the requested repository, path, or ref does not exist."""


class AuthRequiredError(GitHubAPIError):
    """Raised when the request needs (different) credentials."""


class NetworkError(GitHubAPIError):
    """Raised when GitHub cannot be reached or answers with a server error."""


def normalize_repository(repository: str | None) -> tuple[str, str]:
    """Split an ``owner/repo`` string into its two components."""

    if not repository:
        raise GitHubAPIError("Repository must be provided as 'owner/repo'.")
    owner, sep, name = repository.partition("/")
    if not sep or not owner or not name or "/" in name:
        raise GitHubAPIError(f"Invalid repository format: {repository!r}")
    return owner, name


def quote_path(path: str) -> str:
    """Quote a repository path for use in a URL, keeping separators."""

    return quote(path.lstrip("/"), safe="/")


def _error_for_status(status_code: int, message: str) -> GitHubAPIError:
    if status_code == 404:
        return ContentNotFoundError(message, status_code)
    if status_code in (401, 403):
        return AuthRequiredError(message, status_code)
    if status_code >= 500:
        return NetworkError(message, status_code)
    return GitHubAPIError(message, status_code)


class GitHubClient:
    """Thin JSON client for the GitHub REST API."""

    def __init__(
        self,
        *,
        token: str | None = None,
        api_url: str = DEFAULT_API_URL,
        timeout: int = 30,
        max_attempts: int = 2,
        session: requests.Session | None = None,
    ):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.session = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def get_json(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """GET ``endpoint`` (relative to the API root, or absolute) and decode JSON."""

        response = self.get(endpoint, params=params)
        try:
            return response.json()
        except ValueError as exc:
            raise GitHubAPIError(f"Invalid JSON response from {endpoint}: {exc}") from exc

    def get(self, endpoint: str, params: dict[str, Any] | None = None) -> requests.Response:
        """GET ``endpoint`` and return the response, mapping failures to error kinds."""

        url = endpoint if endpoint.startswith(("http://", "https://")) else f"{self.api_url}{endpoint}"
        last_exc: requests.RequestException | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = self.session.get(url, headers=self._headers(), params=params, timeout=self.timeout)
            except (requests.ConnectionError, requests.Timeout) as exc:
                last_exc = exc
                if attempt < self.max_attempts:
                    log_retry_attempt(logger, f"GET {url}", attempt + 1, self.max_attempts, exc)
                    continue
                break
            except requests.RequestException as exc:
                raise NetworkError(f"Failed to reach GitHub API: {exc}\nEndpoint: {url}") from exc

            if response.status_code >= 400:
                error_text = response.text.strip()
                message = f"GitHub API error ({response.status_code}): {error_text}\nOperation: GET {url}"
                logger.debug("GitHub request failed: GET %s -> %s", url, response.status_code)
                raise _error_for_status(response.status_code, message)
            return response

        raise NetworkError(f"Failed to reach GitHub API: {last_exc}\nEndpoint: {url}") from last_exc


__all__ = [
    "API_VERSION",
    "DEFAULT_API_URL",
    "AuthRequiredError",
    "ContentNotFoundError",
    "GitHubAPIError",
    "GitHubClient",
    "NetworkError",
    "normalize_repository",
    "quote_path",
]
