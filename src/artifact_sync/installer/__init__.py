"""Artifact installation into the deployment directory.

Resolves commit-templated output paths, extracts archives with path
traversal checks, and atomically republishes the latest-symlink.
"""

from .archive import (
    ArchiveExtractionError,
    ArchiveInstaller,
    InstallError,
    InstallResult,
    SymlinkPublishError,
)
from .templates import (
    HEAD_SHA_PLACEHOLDER,
    PathTemplateError,
    resolve_path_template,
    validate_path_template,
)

__all__ = [
    "ArchiveExtractionError",
    "ArchiveInstaller",
    "HEAD_SHA_PLACEHOLDER",
    "InstallError",
    "InstallResult",
    "PathTemplateError",
    "SymlinkPublishError",
    "resolve_path_template",
    "validate_path_template",
]
