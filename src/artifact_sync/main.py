"""FastAPI application entry point for the artifact sync service.

This module binds the sync pipeline to HTTP. It receives GitHub
``workflow_job`` webhooks, runs each delivery through the SyncPipeline
and answers with the status code of the outcome. The response body is
always empty: failure reasons are written to the log only.

Routes:
- ``POST /api/github/workflow`` -- GitHub webhook receiver
- ``GET  /health``              -- Liveness probe
- ``GET  /metrics``             -- Prometheus metrics
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST

from src.artifact_sync import __version__
from src.artifact_sync.config import SyncSettings, get_settings
from src.artifact_sync.github.client import GitHubClient
from src.artifact_sync.installer.archive import ArchiveInstaller
from src.artifact_sync.metrics import SyncMetrics
from src.artifact_sync.orchestrator import SyncPipeline
from src.artifact_sync.webhook.handler import WebhookHandler

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def _redact_secret(value: str, visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters.

    Args:
        value: The secret value to redact.
        visible_chars: Number of characters to show at the start.

    Returns:
        Redacted string with asterisks replacing hidden characters.
    """
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _log_configuration(settings: SyncSettings) -> None:
    """Log configuration values with secrets redacted."""
    logger.info("Artifact sync configuration:")
    logger.info(f"  Listen Address: {settings.addr}:{settings.port}")
    logger.info(f"  GitHub Base URL: {settings.github_base_url}")
    logger.info(f"  GitHub Token: {_redact_secret(settings.token)}")
    logger.info(f"  Webhook Secret: {_redact_secret(settings.secret)}")
    logger.info(f"  Branch: {settings.branch}")
    logger.info(f"  Artifact: {settings.artifact}")
    logger.info(f"  Output Template: {settings.output}")
    logger.info(f"  Symlink Template: {settings.symlink or '<none>'}")
    logger.info(f"  API Timeout Seconds: {settings.api_timeout_seconds}")
    logger.info(f"  Download Timeout Seconds: {settings.download_timeout_seconds}")


def configure_logging(settings: SyncSettings) -> None:
    logging.basicConfig(level=settings.log_level_value, format=LOG_FORMAT)


def build_pipeline(
    settings: SyncSettings,
    metrics: Optional[SyncMetrics] = None,
) -> SyncPipeline:
    """Wire all sync dependencies into a SyncPipeline.

    Args:
        settings: Validated service settings.
        metrics: Metrics container; a default-registry one is created
                 when omitted.

    Returns:
        Fully wired SyncPipeline.
    """
    github_client = GitHubClient(
        token=settings.token,
        base_url=settings.github_base_url,
        api_timeout=settings.api_timeout_seconds,
        download_timeout=settings.download_timeout_seconds,
    )
    return SyncPipeline(
        settings=settings,
        webhook_handler=WebhookHandler(branch=settings.branch),
        github_client=github_client,
        installer=ArchiveInstaller(),
        metrics=metrics if metrics is not None else SyncMetrics(),
    )


def create_app(
    settings: Optional[SyncSettings] = None,
    pipeline: Optional[SyncPipeline] = None,
) -> FastAPI:
    """Create the FastAPI application.

    Settings are loaded from the environment at startup unless given.
    Passing a pre-built pipeline skips wiring, which tests use to inject
    fake transports and private metric registries.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager for startup and shutdown."""
        sync_pipeline = pipeline
        if sync_pipeline is None:
            sync_settings = settings if settings is not None else get_settings()
            configure_logging(sync_settings)
            sync_pipeline = build_pipeline(sync_settings)
        _log_configuration(sync_pipeline.settings)
        app.state.pipeline = sync_pipeline

        logger.info("Artifact sync started successfully")

        yield

        logger.info("Artifact sync shutting down...")
        await sync_pipeline.github_client.close()
        logger.info("Artifact sync shutdown complete")

    app = FastAPI(
        title="GitHub Artifact Sync",
        description="Installs GitHub Actions artifacts on workflow_job webhooks",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health():
        """Liveness probe endpoint."""
        return {"status": "healthy"}

    @app.get("/metrics")
    async def metrics(request: Request):
        """Prometheus metrics endpoint."""
        sync_pipeline: SyncPipeline = request.app.state.pipeline
        if sync_pipeline.metrics is None:
            return Response(status_code=404)
        return Response(
            content=sync_pipeline.metrics.generate(),
            media_type=CONTENT_TYPE_LATEST,
        )

    @app.post("/api/github/workflow")
    async def github_workflow(request: Request):
        """GitHub workflow_job webhook receiver.

        Returns 400 for unauthenticated or invalid deliveries, 204 when
        the delivery was accepted, and 500 when an upstream or local
        step failed. No body is returned in any case.
        """
        logger.info("Processing webhook delivery")
        sync_pipeline: SyncPipeline = request.app.state.pipeline
        body = await request.body()
        result = await sync_pipeline.handle(request.headers, body)
        return Response(status_code=result.status_code)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    main_settings = get_settings()
    uvicorn.run(
        create_app(settings=main_settings),
        host=main_settings.addr,
        port=main_settings.port,
        log_level=main_settings.log_level.lower(),
    )
