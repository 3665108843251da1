"""Webhook-triggered GitHub Actions artifact synchronization service.

This package receives GitHub ``workflow_job`` webhook events and, for
completed jobs on a configured branch, installs a named workflow-run
artifact into a local deployment directory:

- HMAC-SHA256 webhook signature verification
- Event type, job status and branch filtering
- Artifact lookup and download through the GitHub REST API
- Safe zip extraction into a commit-templated output directory
- Atomic republication of a "latest" symlink
"""

__version__ = "0.1.0"
