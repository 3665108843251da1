"""Terminal outcomes of a single webhook delivery.

Every request walks the sync pipeline once and stops in exactly one of
the states below. Each state maps to the HTTP status code returned to
the webhook sender; the reason itself is only ever written to the
operator log, never to the response body.

    400  the delivery was rejected (signature, event type, payload)
    204  the delivery was accepted (ignored, nothing to do, or installed)
    500  an upstream call or local I/O step failed; GitHub may redeliver
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class SyncOutcome(str, Enum):
    """Terminal state of the sync pipeline for one request.

    Attributes:
        UNAUTHENTICATED: Signature header missing, malformed or wrong.
        WRONG_EVENT: X-GitHub-Event is not ``workflow_job``.
        MALFORMED: Payload is not valid JSON or misses required fields.
        NOT_COMPLETED: The job has not completed yet.
        WRONG_BRANCH: The job ran on a branch other than the target.
        UPSTREAM_QUERY_FAILED: Listing the run artifacts failed.
        NO_MATCHING_ARTIFACT: The run has no artifact with the target name.
        DOWNLOAD_FAILED: Downloading the archive failed.
        BAD_CONTENT_TYPE: The download was not a zip archive.
        EXTRACT_FAILED: Resolving the output path or extracting failed.
        SYMLINK_FAILED: Extraction succeeded but the symlink was not published.
        INSTALLED: The artifact was extracted (and published).
    """

    UNAUTHENTICATED = "unauthenticated"
    WRONG_EVENT = "wrong_event"
    MALFORMED = "malformed"
    NOT_COMPLETED = "not_completed"
    WRONG_BRANCH = "wrong_branch"
    UPSTREAM_QUERY_FAILED = "upstream_query_failed"
    NO_MATCHING_ARTIFACT = "no_matching_artifact"
    DOWNLOAD_FAILED = "download_failed"
    BAD_CONTENT_TYPE = "bad_content_type"
    EXTRACT_FAILED = "extract_failed"
    SYMLINK_FAILED = "symlink_failed"
    INSTALLED = "installed"

    @property
    def status_code(self) -> int:
        """HTTP status code reported to the webhook sender."""
        return OUTCOME_STATUS_CODES[self]

    @property
    def is_failure(self) -> bool:
        return self.status_code >= 500


OUTCOME_STATUS_CODES = {
    SyncOutcome.UNAUTHENTICATED: 400,
    SyncOutcome.WRONG_EVENT: 400,
    SyncOutcome.MALFORMED: 400,
    SyncOutcome.NOT_COMPLETED: 204,
    SyncOutcome.WRONG_BRANCH: 204,
    SyncOutcome.UPSTREAM_QUERY_FAILED: 500,
    SyncOutcome.NO_MATCHING_ARTIFACT: 204,
    SyncOutcome.DOWNLOAD_FAILED: 500,
    SyncOutcome.BAD_CONTENT_TYPE: 500,
    SyncOutcome.EXTRACT_FAILED: 500,
    SyncOutcome.SYMLINK_FAILED: 500,
    SyncOutcome.INSTALLED: 204,
}


@dataclass(frozen=True)
class SyncResult:
    """Immutable result of processing one webhook delivery.

    Attributes:
        outcome: The terminal state reached.
        detail: Operator-facing description; never sent to the caller.
        output_path: Extraction directory, once it has been resolved.
        symlink_path: Published symlink, when one was configured.
    """

    outcome: SyncOutcome
    detail: str = ""
    output_path: Optional[Path] = None
    symlink_path: Optional[Path] = None

    @property
    def status_code(self) -> int:
        return self.outcome.status_code
