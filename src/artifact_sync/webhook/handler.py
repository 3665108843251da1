"""GitHub ``workflow_job`` webhook filtering and parsing.

The handler implements the stages that follow signature verification:

1. The ``X-GitHub-Event`` header must be ``workflow_job``.
2. The body must parse into a WorkflowJobEvent.
3. The job must be ``completed`` and must have run on the target branch.

Stages 1 and 2 reject the delivery; stage 3 only decides that there is
nothing to do. The caller runs them strictly in that order and only
after the signature has been verified, so an unauthenticated body is
never parsed.
"""

import logging
from typing import Mapping, Optional

from pydantic import ValidationError

from src.artifact_sync.outcome import SyncOutcome
from src.artifact_sync.webhook.models import WorkflowJobEvent

logger = logging.getLogger(__name__)

EVENT_HEADER = "X-GitHub-Event"
WORKFLOW_JOB_EVENT = "workflow_job"


class WebhookHandler:
    """Filter and parse ``workflow_job`` deliveries for one target branch.

    Attributes:
        branch: Only jobs whose head branch equals this are installed.
    """

    def __init__(self, branch: str) -> None:
        self.branch = branch

    def is_workflow_job_event(self, headers: Mapping[str, str]) -> bool:
        """Check the event type header.

        Args:
            headers: Request headers with lower-cased names.

        Returns:
            True only when the header is present and equals ``workflow_job``.
        """
        return headers.get(EVENT_HEADER.lower()) == WORKFLOW_JOB_EVENT

    def parse_event(self, body: bytes) -> Optional[WorkflowJobEvent]:
        """Parse the raw request body into a WorkflowJobEvent.

        Args:
            body: The raw, already authenticated request body.

        Returns:
            The parsed event, or None for invalid JSON or a payload that
            misses required fields or carries wrongly typed ones.
        """
        try:
            event = WorkflowJobEvent.model_validate_json(body)
        except ValidationError as exc:
            logger.warning(
                "Unintelligible workflow_job payload",
                extra={"error_count": exc.error_count()},
            )
            return None

        logger.debug("Parsed workflow_job event: %r", event)
        return event

    def filter_event(self, event: WorkflowJobEvent) -> Optional[SyncOutcome]:
        """Apply the status and branch filters.

        Args:
            event: A parsed event.

        Returns:
            The no-op outcome when the event is irrelevant, or None when
            the pipeline should go on to look up artifacts.
        """
        job = event.workflow_job
        if not event.is_completed:
            logger.info(
                "Workflow job not completed yet, ignoring it",
                extra={"job_id": job.id, "status": job.status},
            )
            return SyncOutcome.NOT_COMPLETED

        if job.head_branch != self.branch:
            logger.info(
                "Workflow job ran on another branch, ignoring it",
                extra={"job_id": job.id, "head_branch": job.head_branch},
            )
            return SyncOutcome.WRONG_BRANCH

        return None
