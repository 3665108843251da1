"""GitHub API client for workflow-run artifacts.

This module provides a wrapper around the GitHub API for:
- Listing the artifacts of a workflow run
- Selecting the artifact with the configured name
- Downloading an artifact's zip archive
"""

from src.artifact_sync.github.client import (
    ArtifactContentTypeError,
    GitHubAPIError,
    GitHubClient,
    select_artifact,
)
from src.artifact_sync.github.models import ArchiveDownload, Artifact

__all__ = [
    "ArchiveDownload",
    "Artifact",
    "ArtifactContentTypeError",
    "GitHubAPIError",
    "GitHubClient",
    "select_artifact",
]
