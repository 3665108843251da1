"""Sync pipeline connecting all stages of a webhook delivery.

Drives one delivery through the pipeline:
signature → event type → payload → status/branch → artifact lookup →
download → install.

Each stage either hands a value to the next one or stops the pipeline
with a terminal SyncOutcome. There is no retry loop: a failed delivery
is answered with a 5xx and GitHub redelivers it. Replaying a delivery is
safe because installation overwrites the output directory and replaces
the symlink.

Source:
- src/artifact_sync/webhook/signature.py (extract_signature, verify_signature)
- src/artifact_sync/webhook/handler.py (WebhookHandler)
- src/artifact_sync/github/client.py (GitHubClient, select_artifact)
- src/artifact_sync/installer/archive.py (ArchiveInstaller)
- src/artifact_sync/metrics.py (SyncMetrics)
"""

import logging
import time
from typing import Mapping, Optional

from src.artifact_sync.config import SyncSettings
from src.artifact_sync.github.client import (
    ArtifactContentTypeError,
    GitHubAPIError,
    GitHubClient,
    select_artifact,
)
from src.artifact_sync.installer.archive import (
    ArchiveExtractionError,
    ArchiveInstaller,
    SymlinkPublishError,
)
from src.artifact_sync.installer.templates import PathTemplateError
from src.artifact_sync.metrics import SyncMetrics
from src.artifact_sync.outcome import SyncOutcome, SyncResult
from src.artifact_sync.webhook.handler import WebhookHandler
from src.artifact_sync.webhook.models import WorkflowJobEvent
from src.artifact_sync.webhook.signature import (
    SIGNATURE_HEADER,
    extract_signature,
    verify_signature,
)

logger = logging.getLogger(__name__)


class SyncPipeline:
    """Runs the artifact sync pipeline for each webhook delivery.

    Accepts all dependencies via constructor injection. The settings are
    shared read-only between concurrent deliveries.

    Attributes:
        settings: Frozen service settings.
        webhook_handler: Event type, payload and branch filtering.
        github_client: GitHub API client for artifact lookup and download.
        installer: Extracts archives and publishes the symlink.
        metrics: Prometheus metrics, optional.
    """

    def __init__(
        self,
        settings: SyncSettings,
        webhook_handler: WebhookHandler,
        github_client: GitHubClient,
        installer: ArchiveInstaller,
        metrics: Optional[SyncMetrics] = None,
    ):
        self.settings = settings
        self.webhook_handler = webhook_handler
        self.github_client = github_client
        self.installer = installer
        self.metrics = metrics
        self._secret = settings.secret.encode()

    async def handle(self, headers: Mapping[str, str], body: bytes) -> SyncResult:
        """Process one webhook delivery.

        Args:
            headers: Request headers; names are matched case-insensitively.
            body: The raw request body.

        Returns:
            The terminal SyncResult for this delivery.
        """
        headers = {name.lower(): value for name, value in headers.items()}
        result = await self._run(headers, body)

        if self.metrics is not None:
            self.metrics.record_outcome(result.outcome)

        logger.debug(
            "Webhook delivery finished",
            extra={"outcome": result.outcome.value, "detail": result.detail},
        )
        return result

    async def _run(self, headers: Mapping[str, str], body: bytes) -> SyncResult:
        signature = extract_signature(headers.get(SIGNATURE_HEADER.lower()))
        if signature is None or not verify_signature(body, self._secret, signature):
            logger.warning("The signature is invalid or missing, ignoring delivery")
            return SyncResult(SyncOutcome.UNAUTHENTICATED, "invalid or missing signature")

        if not self.webhook_handler.is_workflow_job_event(headers):
            logger.warning(
                "The event is not a workflow_job, ignoring delivery",
                extra={"event": headers.get("x-github-event")},
            )
            return SyncResult(SyncOutcome.WRONG_EVENT, "unexpected event type")

        event = self.webhook_handler.parse_event(body)
        if event is None:
            return SyncResult(SyncOutcome.MALFORMED, "unintelligible payload")

        filtered = self.webhook_handler.filter_event(event)
        if filtered is not None:
            return SyncResult(filtered, "event filtered out")

        return await self._sync(event)

    async def _sync(self, event: WorkflowJobEvent) -> SyncResult:
        """Look up, download and install the artifact for a completed job."""
        job = event.workflow_job
        log_extra = {
            "repository": event.full_repository,
            "run_id": job.run_id,
            "head_sha": job.head_sha,
        }
        logger.info("Workflow job completed, querying run artifacts", extra=log_extra)

        try:
            artifacts = await self.github_client.list_run_artifacts(
                event.repository.owner.login,
                event.repository.name,
                job.run_id,
            )
        except GitHubAPIError as exc:
            logger.warning(
                "Artifact lookup failed: %s", exc, extra=log_extra
            )
            return SyncResult(SyncOutcome.UPSTREAM_QUERY_FAILED, str(exc))

        artifact = select_artifact(artifacts, self.settings.artifact)
        if artifact is None:
            logger.info(
                "No artifact named %r among %d, nothing to do",
                self.settings.artifact,
                len(artifacts),
                extra=log_extra,
            )
            return SyncResult(SyncOutcome.NO_MATCHING_ARTIFACT, "no matching artifact")

        started = time.monotonic()
        try:
            download = await self.github_client.download_artifact(artifact)
        except ArtifactContentTypeError as exc:
            logger.warning("Artifact download rejected: %s", exc, extra=log_extra)
            return SyncResult(SyncOutcome.BAD_CONTENT_TYPE, str(exc))
        except GitHubAPIError as exc:
            logger.warning("Artifact download failed: %s", exc, extra=log_extra)
            return SyncResult(SyncOutcome.DOWNLOAD_FAILED, str(exc))

        if self.metrics is not None:
            self.metrics.record_download(len(download.content))

        try:
            installed = await self.installer.install(
                download.content,
                self.settings.output,
                self.settings.symlink,
                job.head_sha,
            )
        except PathTemplateError as exc:
            logger.warning("Output path resolution failed: %s", exc, extra=log_extra)
            return SyncResult(SyncOutcome.EXTRACT_FAILED, str(exc))
        except ArchiveExtractionError as exc:
            logger.warning("Archive extraction failed: %s", exc, extra=log_extra)
            return SyncResult(
                SyncOutcome.EXTRACT_FAILED, str(exc), output_path=exc.output_path
            )
        except SymlinkPublishError as exc:
            logger.warning(
                "Archive extracted but symlink publication failed: %s",
                exc,
                extra=log_extra,
            )
            return SyncResult(
                SyncOutcome.SYMLINK_FAILED,
                str(exc),
                output_path=exc.target,
                symlink_path=exc.symlink_path,
            )

        if self.metrics is not None:
            self.metrics.record_install_duration(time.monotonic() - started)

        logger.info(
            "Installed artifact %r into %s",
            artifact.name,
            installed.output_path,
            extra=log_extra,
        )
        return SyncResult(
            SyncOutcome.INSTALLED,
            f"installed {installed.entries} entries",
            output_path=installed.output_path,
            symlink_path=installed.symlink_path,
        )
