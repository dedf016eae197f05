"""GitHub transport, remote metadata, and content fetching."""

from .client import (
    AuthRequiredError,
    ContentNotFoundError,
    GitHubAPIError,
    GitHubClient,
    NetworkError,
)
from .content import ContentFetcher, GitContentFetcher, GitHubContentFetcher
from .metadata import GitHubMetadataClient, RemoteLookupCache, RemoteMetadata

__all__ = [
    "AuthRequiredError",
    "ContentFetcher",
    "ContentNotFoundError",
    "GitContentFetcher",
    "GitHubAPIError",
    "GitHubClient",
    "GitHubContentFetcher",
    "GitHubMetadataClient",
    "NetworkError",
    "RemoteLookupCache",
    "RemoteMetadata",
]
