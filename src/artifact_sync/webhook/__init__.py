"""GitHub webhook handling for the artifact sync service.

This module authenticates and parses GitHub webhook events, specifically
``workflow_job`` deliveries:
- X-Hub-Signature-256 HMAC verification
- Event type, job status and branch filtering
"""

from .handler import WebhookHandler
from .models import WorkflowJob, WorkflowJobEvent
from .signature import extract_signature, verify_signature

__all__ = [
    "WebhookHandler",
    "WorkflowJob",
    "WorkflowJobEvent",
    "extract_signature",
    "verify_signature",
]
