"""Service configuration using pydantic-settings.

This module defines the SyncSettings class that reads configuration
from environment variables with the GH_ARTIFACT_SYNC_ prefix. Settings
are loaded once at startup and frozen: every request handler shares the
same read-only instance, so no locking is needed around it.

A settings validation error is fatal at boot. In particular an empty
webhook secret is refused here rather than surfacing as a per-request
signature failure later on.
"""

import logging
from typing import Optional

from pydantic import AliasChoices, Field, ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.artifact_sync.installer.templates import (
    PathTemplateError,
    validate_path_template,
)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class SyncSettings(BaseSettings):
    """Artifact sync configuration from environment variables.

    All environment variables are prefixed with GH_ARTIFACT_SYNC_
    (e.g., GH_ARTIFACT_SYNC_TOKEN).

    Required fields (must be set via environment variables):
    - secret: Shared secret used to sign webhook deliveries
    - token: GitHub API token able to read Actions artifacts
    - branch: Only jobs that ran on this branch are installed
    - artifact: Name of the workflow-run artifact to install
    - output: Output directory template, e.g. /srv/app/{HEAD_SHA}
    """

    model_config = SettingsConfigDict(
        env_prefix="GH_ARTIFACT_SYNC_",
        case_sensitive=False,
        frozen=True,
        populate_by_name=True,
    )

    # -------------------------------------------------------------------------
    # Server Configuration
    # -------------------------------------------------------------------------
    addr: str = "0.0.0.0"

    port: int = 8080

    # -------------------------------------------------------------------------
    # GitHub Configuration
    # -------------------------------------------------------------------------
    # Secret for validating webhook signatures
    secret: str

    # API token used for the artifact list and download calls
    token: str

    # Base URL for GitHub API (supports GitHub Enterprise)
    github_base_url: str = "https://api.github.com"

    # Upper bound on the artifact list call
    api_timeout_seconds: float = 30.0

    # Upper bound on the archive download
    download_timeout_seconds: float = 300.0

    # -------------------------------------------------------------------------
    # Sync Target
    # -------------------------------------------------------------------------
    branch: str

    artifact: str

    output: str

    # Optional "latest" pointer, republished after every install
    symlink: Optional[str] = None

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    # GH_ARTIFACT_SYNC_LOG is the name older deployments set
    log_level: str = Field(
        "INFO",
        validation_alias=AliasChoices(
            "GH_ARTIFACT_SYNC_LOG_LEVEL",
            "GH_ARTIFACT_SYNC_LOG",
        ),
    )

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("secret", "token", "branch", "artifact")
    @classmethod
    def validate_not_blank(cls, v: str, info: ValidationInfo) -> str:
        """Validate that required string settings are not blank."""
        if not v or not v.strip():
            raise ValueError(f"{info.field_name} cannot be empty")
        return v

    @field_validator("output")
    @classmethod
    def validate_output_template(cls, v: str) -> str:
        """Validate the output directory template."""
        try:
            return validate_path_template(v)
        except PathTemplateError as exc:
            raise ValueError(str(exc)) from exc

    @field_validator("symlink")
    @classmethod
    def validate_symlink_template(cls, v: Optional[str]) -> Optional[str]:
        """Validate the symlink template, treating blank as unset."""
        if v is None or not v.strip():
            return None
        try:
            return validate_path_template(v)
        except PathTemplateError as exc:
            raise ValueError(str(exc)) from exc

    @field_validator("github_base_url")
    @classmethod
    def validate_github_base_url(cls, v: str) -> str:
        """Validate that the GitHub base URL is an http(s) URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("github_base_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("api_timeout_seconds", "download_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float, info: ValidationInfo) -> float:
        """Validate that timeouts are positive."""
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate that port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level

    @model_validator(mode="after")
    def validate_symlink_differs_from_output(self) -> "SyncSettings":
        """The symlink must never be published over the output directory."""
        if self.symlink is not None and self.symlink == self.output:
            raise ValueError("symlink template must differ from output template")
        return self

    @property
    def log_level_value(self) -> int:
        return logging.getLevelName(self.log_level)


def get_settings() -> SyncSettings:
    """Create and return SyncSettings instance.

    Returns:
        SyncSettings: Configured settings instance.

    Raises:
        pydantic.ValidationError: If required fields are missing or invalid.
    """
    return SyncSettings()
