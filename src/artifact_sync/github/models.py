"""Models for the GitHub Actions artifacts API.

Source:
- GET /repos/{owner}/{repo}/actions/runs/{run_id}/artifacts
- GET {archive_download_url}
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

ZIP_CONTENT_TYPES = frozenset(
    {
        "application/zip",
        "application/x-zip-compressed",
        "application/x-zip",
    }
)


class Artifact(BaseModel):
    """A workflow-run artifact as reported by GitHub.

    Attributes:
        id: Artifact identifier.
        name: Name given by the ``upload-artifact`` step.
        archive_download_url: API URL that redirects to the zip archive.
        size_in_bytes: Archive size, when reported.
        expired: Whether the artifact has passed its retention period.
    """

    id: int
    name: str
    archive_download_url: str
    size_in_bytes: Optional[int] = None
    expired: bool = False


class WorkflowArtifactsResponse(BaseModel):
    total_count: int = 0
    artifacts: List[Artifact]


class ArchiveDownload(BaseModel):
    """A downloaded artifact archive, held in memory for one request.

    Attributes:
        headers: Response headers with lower-cased names.
        content: The raw archive bytes.
    """

    headers: Dict[str, str] = Field(default_factory=dict)
    content: bytes

    @property
    def content_type(self) -> str:
        """Media type of the download, lower-cased and without parameters."""
        raw = self.headers.get("content-type", "")
        return raw.split(";", 1)[0].strip().lower()

    @property
    def is_zip(self) -> bool:
        return self.content_type in ZIP_CONTENT_TYPES
