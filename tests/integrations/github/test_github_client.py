"""Tests for the GitHub REST transport."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from upstream_sync.integrations.github.client import (
    AuthRequiredError,
    ContentNotFoundError,
    GitHubAPIError,
    GitHubClient,
    NetworkError,
    normalize_repository,
    quote_path,
)


def _response(status: int = 200, payload=None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.text = text
    response.json.return_value = payload
    return response


# =============================================================================
# Helpers
# =============================================================================


class TestHelpers:
    def test_normalize_repository(self) -> None:
        assert normalize_repository("octo-org/agentics") == ("octo-org", "agentics")

    @pytest.mark.parametrize("repo", [None, "", "octo-org", "octo-org/", "/agentics", "a/b/c"])
    def test_normalize_repository_invalid(self, repo) -> None:
        with pytest.raises(GitHubAPIError):
            normalize_repository(repo)

    def test_quote_path(self) -> None:
        assert quote_path("/workflows/my report.md") == "workflows/my%20report.md"


# =============================================================================
# Requests
# =============================================================================


class TestGitHubClient:
    def test_get_json_sends_headers(self) -> None:
        session = MagicMock()
        session.get.return_value = _response(payload={"default_branch": "main"})
        client = GitHubClient(token="secret", session=session, timeout=7)

        assert client.get_json("/repos/octo-org/agentics") == {"default_branch": "main"}

        args, kwargs = session.get.call_args
        assert args[0] == "https://api.github.com/repos/octo-org/agentics"
        assert kwargs["headers"]["Authorization"] == "Bearer secret"
        assert kwargs["headers"]["Accept"] == "application/vnd.github+json"
        assert kwargs["timeout"] == 7

    def test_anonymous_requests_have_no_authorization(self) -> None:
        session = MagicMock()
        session.get.return_value = _response(payload={})

        GitHubClient(session=session).get_json("/rate_limit")

        assert "Authorization" not in session.get.call_args.kwargs["headers"]

    def test_absolute_urls_are_used_verbatim(self) -> None:
        session = MagicMock()
        session.get.return_value = _response(payload={})

        GitHubClient(session=session, api_url="https://ghe.example.com/api/v3/").get("https://raw.example.com/x")

        assert session.get.call_args.args[0] == "https://raw.example.com/x"

    @pytest.mark.parametrize(
        ("status", "error_type"),
        [
            (404, ContentNotFoundError),
            (401, AuthRequiredError),
            (403, AuthRequiredError),
            (502, NetworkError),
            (422, GitHubAPIError),
        ],
    )
    def test_status_codes_map_to_error_kinds(self, status: int, error_type: type) -> None:
        session = MagicMock()
        session.get.return_value = _response(status=status, text="nope")

        with pytest.raises(error_type) as excinfo:
            GitHubClient(session=session).get("/repos/octo-org/agentics")

        assert excinfo.value.status_code == status
        assert f"GitHub API error ({status}): nope" in str(excinfo.value)

    def test_connection_errors_are_retried(self) -> None:
        session = MagicMock()
        session.get.side_effect = [requests.ConnectionError("reset"), _response(payload={"ok": True})]

        assert GitHubClient(session=session, max_attempts=2).get_json("/x") == {"ok": True}
        assert session.get.call_count == 2

    def test_exhausted_retries_raise_network_error(self) -> None:
        session = MagicMock()
        session.get.side_effect = requests.Timeout("slow")

        with pytest.raises(NetworkError, match="slow"):
            GitHubClient(session=session, max_attempts=3).get("/x")

        assert session.get.call_count == 3

    def test_invalid_json(self) -> None:
        session = MagicMock()
        response = _response()
        response.json.side_effect = ValueError("not json")
        session.get.return_value = response

        with pytest.raises(GitHubAPIError, match="Invalid JSON"):
            GitHubClient(session=session).get_json("/x")
