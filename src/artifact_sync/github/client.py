"""GitHub API client for workflow-run artifacts.

This module provides an async wrapper around the two GitHub API calls
the sync pipeline makes:
- Listing the artifacts produced by a workflow run
- Downloading one artifact's zip archive

Both calls are single-attempt. A failed delivery is answered with a 5xx
and GitHub's own redelivery takes care of retrying, so the client does
not retry internally. Both calls are bounded by a timeout so a stalled
upstream cannot hold a request task indefinitely.

Source:
- src/artifact_sync/github/models.py (Artifact, ArchiveDownload)
- src/artifact_sync/config.py (token, github_base_url, timeouts)
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from src.artifact_sync import __version__
from src.artifact_sync.github.models import (
    ArchiveDownload,
    Artifact,
    WorkflowArtifactsResponse,
)

logger = logging.getLogger(__name__)

USER_AGENT = f"GithubArtifactSync/{__version__}"

# Largest page the artifacts endpoint serves; the default is 30
ARTIFACTS_PER_PAGE = 100


class GitHubAPIError(Exception):
    """Raised when a GitHub API request fails.

    Transport failures, non-2xx responses and unparseable bodies are all
    reported through this one type.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the response, if any.
        request_url: The URL that was requested.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        request_url: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.request_url = request_url
        super().__init__(message)


class ArtifactContentTypeError(GitHubAPIError):
    """Raised when a downloaded artifact is not a zip archive.

    Attributes:
        content_type: The media type the server reported (may be empty).
    """

    def __init__(self, content_type: str, **kwargs: Any):
        self.content_type = content_type
        super().__init__(
            f"Artifact download has content type {content_type or '<missing>'!r}, "
            "expected a zip archive",
            **kwargs,
        )


def select_artifact(artifacts: Sequence[Artifact], name: str) -> Optional[Artifact]:
    """Return the first artifact named exactly *name*, in upstream order."""
    for artifact in artifacts:
        if artifact.name == name:
            return artifact
    return None


class GitHubClient:
    """Async GitHub API client for the Actions artifacts endpoints.

    Attributes:
        token: GitHub API token (PAT or GitHub App token).
        base_url: Base URL for GitHub API (default: https://api.github.com).
        api_timeout: Timeout in seconds for the artifact list call.
        download_timeout: Timeout in seconds for the archive download.

    Example:
        >>> client = GitHubClient(token="ghp_xxx")
        >>> async with client:
        ...     artifacts = await client.list_run_artifacts("acme", "app", 42)
    """

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        api_timeout: float = 30.0,
        download_timeout: float = 300.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the GitHub client.

        Args:
            token: GitHub API token for authentication.
            base_url: Base URL for GitHub API. Use this to support
                      GitHub Enterprise Server endpoints.
            api_timeout: Timeout in seconds for the artifact list call.
            download_timeout: Timeout in seconds for the archive download.
            transport: Optional httpx transport, used by tests.
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.api_timeout = api_timeout
        self.download_timeout = download_timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it if necessary."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                timeout=self.api_timeout,
                transport=self._transport,
            )
        return self._client

    def _default_headers(self) -> Dict[str, str]:
        """Build default headers for GitHub API requests."""
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": USER_AGENT,
        }

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _get(
        self,
        url: str,
        timeout: float,
        follow_redirects: bool = False,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Issue one GET and fail on transport errors or non-2xx statuses.

        Raises:
            GitHubAPIError: On any transport failure, an unusable URL or a
                non-2xx response.
        """
        try:
            response = await self.client.get(
                url,
                params=params,
                timeout=timeout,
                follow_redirects=follow_redirects,
            )
        except httpx.TimeoutException as exc:
            raise GitHubAPIError(
                f"GitHub API request timed out after {timeout}s",
                request_url=url,
            ) from exc
        except httpx.HTTPError as exc:
            raise GitHubAPIError(
                f"GitHub API request failed: {exc}",
                request_url=url,
            ) from exc
        except httpx.InvalidURL as exc:
            raise GitHubAPIError(
                f"GitHub API request has an invalid URL: {exc}",
                request_url=url,
            ) from exc

        if not response.is_success:
            logger.warning(
                "GitHub API error",
                extra={
                    "status_code": response.status_code,
                    "url": str(response.url),
                    "response_body": response.text[:500],
                },
            )
            raise GitHubAPIError(
                f"GitHub API error: {response.status_code}",
                status_code=response.status_code,
                request_url=str(response.url),
            )
        return response

    async def list_run_artifacts(
        self,
        owner: str,
        repo: str,
        run_id: int,
    ) -> List[Artifact]:
        """List the artifacts produced by a workflow run.

        Args:
            owner: Repository owner (user or organization).
            repo: Repository name.
            run_id: Workflow run identifier.

        Returns:
            The artifacts in upstream order; possibly empty.

        Raises:
            GitHubAPIError: If the request fails or the body does not
                match the expected schema.
        """
        path = f"/repos/{owner}/{repo}/actions/runs/{run_id}/artifacts"
        response = await self._get(
            path,
            timeout=self.api_timeout,
            params={"per_page": ARTIFACTS_PER_PAGE},
        )

        try:
            parsed = WorkflowArtifactsResponse.model_validate_json(response.content)
        except ValidationError as exc:
            raise GitHubAPIError(
                "Unintelligible workflow artifacts response",
                status_code=response.status_code,
                request_url=str(response.url),
            ) from exc

        logger.debug("Workflow run artifacts: %r", parsed.artifacts)
        return parsed.artifacts

    async def download_artifact(self, artifact: Artifact) -> ArchiveDownload:
        """Download an artifact's zip archive into memory.

        GitHub answers with a redirect to short-lived blob storage; httpx
        follows it and drops the Authorization header when the redirect
        crosses origins.

        The whole archive is buffered in memory, so memory use grows with
        artifact size.

        Args:
            artifact: The artifact to download.

        Returns:
            The response headers and archive bytes.

        Raises:
            GitHubAPIError: If the download fails.
            ArtifactContentTypeError: If the response is not a zip archive.
        """
        response = await self._get(
            artifact.archive_download_url,
            timeout=self.download_timeout,
            follow_redirects=True,
        )
        download = ArchiveDownload(
            headers={k.lower(): v for k, v in response.headers.items()},
            content=response.content,
        )
        if not download.is_zip:
            raise ArtifactContentTypeError(
                download.content_type,
                status_code=response.status_code,
                request_url=str(response.url),
            )

        logger.info(
            "Downloaded artifact archive",
            extra={"artifact_id": artifact.id, "size": len(download.content)},
        )
        return download
