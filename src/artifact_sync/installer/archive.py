"""Artifact archive installation.

Extracts a downloaded zip archive into the commit-templated output
directory and republishes the optional "latest" symlink. Handles:

- Path resolution from the configured templates
- Rejection of archive entries that would escape the output directory,
  checked for every entry before anything is written
- Extraction with overwrite semantics, so replaying a delivery for the
  same commit converges on the same tree
- Atomic symlink replacement: a new link is created under a temporary
  name next to the final one and renamed over it, so readers only ever
  see the previous target or the new, fully extracted one

Extraction and symlink publication are blocking filesystem work and run
in a worker thread so the event loop keeps serving other deliveries.
"""

import asyncio
import logging
import os
import re
import secrets
import zipfile
from contextlib import asynccontextmanager
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path, PurePosixPath
from typing import AsyncIterator, Dict, Optional

from src.artifact_sync.installer.templates import (
    PathTemplateError,
    resolve_path_template,
)

logger = logging.getLogger(__name__)

_DRIVE_RE = re.compile(r"^[A-Za-z]:")


class InstallError(Exception):
    """Raised when an artifact cannot be installed."""

    pass


class ArchiveExtractionError(InstallError):
    """Raised when the archive cannot be extracted into the output directory."""

    def __init__(self, output_path: Path, message: str):
        self.output_path = output_path
        super().__init__(f"Failed to extract archive into {output_path}: {message}")


class SymlinkPublishError(InstallError):
    """Raised when the symlink cannot be pointed at the new output directory."""

    def __init__(self, symlink_path: Path, target: Path, message: str):
        self.symlink_path = symlink_path
        self.target = target
        super().__init__(
            f"Failed to point symlink {symlink_path} at {target}: {message}"
        )


@dataclass(frozen=True)
class InstallResult:
    """Result of a successful installation.

    Attributes:
        output_path: Directory the archive was extracted into.
        symlink_path: Published symlink, or None when not configured.
        entries: Number of archive members extracted.
    """

    output_path: Path
    symlink_path: Optional[Path]
    entries: int


class ArchiveInstaller:
    """Installs artifact archives and publishes the latest-symlink.

    Installs targeting the same output directory are serialised within
    this process. Deliveries handled by separate processes are not.
    """

    def __init__(self) -> None:
        self._locks: Dict[Path, asyncio.Lock] = {}
        self._lock_users: Dict[Path, int] = {}

    def resolve_paths(
        self,
        output_template: str,
        symlink_template: Optional[str],
        head_sha: str,
    ) -> tuple[Path, Optional[Path]]:
        """Resolve the output and symlink templates for a commit.

        Raises:
            PathTemplateError: If either template does not resolve to a
                usable path, or both resolve to the same path.
        """
        output_path = resolve_path_template(output_template, head_sha)
        symlink_path = None
        if symlink_template is not None:
            symlink_path = resolve_path_template(symlink_template, head_sha)
            if symlink_path == output_path:
                raise PathTemplateError(
                    symlink_template, "resolves to the output directory"
                )
        return output_path, symlink_path

    @asynccontextmanager
    async def _output_lock(self, output_path: Path) -> AsyncIterator[None]:
        """Hold the lock for *output_path*, dropping it once nobody waits on it."""
        lock = self._locks.get(output_path)
        if lock is None:
            lock = self._locks[output_path] = asyncio.Lock()
        self._lock_users[output_path] = self._lock_users.get(output_path, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[output_path] -= 1
            if not self._lock_users[output_path]:
                del self._lock_users[output_path]
                del self._locks[output_path]

    async def install(
        self,
        archive: bytes,
        output_template: str,
        symlink_template: Optional[str],
        head_sha: str,
    ) -> InstallResult:
        """Extract *archive* and publish the symlink, if configured.

        Args:
            archive: Raw zip archive bytes.
            output_template: Output directory template.
            symlink_template: Optional symlink template.
            head_sha: Commit hash substituted into both templates.

        Returns:
            InstallResult describing what was written.

        Raises:
            PathTemplateError: If a template cannot be resolved.
            ArchiveExtractionError: If extraction fails.
            SymlinkPublishError: If extraction succeeded but the symlink
                could not be replaced.
        """
        output_path, symlink_path = self.resolve_paths(
            output_template, symlink_template, head_sha
        )

        async with self._output_lock(output_path):
            entries = await asyncio.to_thread(self.extract, archive, output_path)
            logger.info(
                "Extracted artifact archive",
                extra={"output_path": str(output_path), "entries": entries},
            )

            if symlink_path is not None:
                await asyncio.to_thread(
                    self.publish_symlink, symlink_path, output_path
                )
                logger.info(
                    "Published symlink",
                    extra={
                        "symlink_path": str(symlink_path),
                        "target": str(output_path),
                    },
                )

        return InstallResult(
            output_path=output_path,
            symlink_path=symlink_path,
            entries=entries,
        )

    def extract(self, archive: bytes, output_path: Path) -> int:
        """Extract every member of *archive* under *output_path*.

        Members are all checked before the first one is written. Existing
        files are overwritten.

        Returns:
            Number of archive members extracted.

        Raises:
            ArchiveExtractionError: If the archive is corrupt, uses an
                unsupported feature, has an escaping member, or the
                filesystem refuses a write.
        """
        try:
            with zipfile.ZipFile(BytesIO(archive)) as zf:
                members = zf.infolist()
                for member in members:
                    self._check_member(member.filename, output_path)

                self._create_output_directory(output_path)
                zf.extractall(output_path)
        except ArchiveExtractionError:
            raise
        except zipfile.BadZipFile as exc:
            raise ArchiveExtractionError(output_path, f"corrupt archive: {exc}") from exc
        except (NotImplementedError, RuntimeError) as exc:
            # Unsupported compression method or encrypted member
            raise ArchiveExtractionError(output_path, f"unsupported archive: {exc}") from exc
        except (OSError, EOFError, ValueError) as exc:
            raise ArchiveExtractionError(output_path, str(exc)) from exc

        return len(members)

    def _check_member(self, name: str, output_path: Path) -> None:
        """Reject member names that would land outside *output_path*."""
        normalized = name.replace("\\", "/")
        member = PurePosixPath(normalized)
        if (
            not normalized
            or "\x00" in normalized
            or member.is_absolute()
            or ".." in member.parts
            or _DRIVE_RE.match(normalized)
        ):
            raise ArchiveExtractionError(
                output_path, f"archive member {name!r} escapes the output directory"
            )

        root = output_path.resolve()
        if not (root / member).resolve().is_relative_to(root):
            raise ArchiveExtractionError(
                output_path, f"archive member {name!r} escapes the output directory"
            )

    def _create_output_directory(self, output_path: Path) -> None:
        try:
            output_path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ArchiveExtractionError(
                output_path, f"cannot create output directory: {exc}"
            ) from exc
        if not output_path.is_dir():
            raise ArchiveExtractionError(output_path, "output path is not a directory")

    def publish_symlink(self, symlink_path: Path, target: Path) -> None:
        """Atomically point *symlink_path* at *target*.

        Creates the new link as a hidden temporary sibling of the final
        name and renames it into place, replacing any existing link.

        Raises:
            SymlinkPublishError: If the link cannot be created or renamed.
        """
        parent = symlink_path.parent
        temp_path = parent / f".{symlink_path.name}.{secrets.token_hex(8)}.tmp"

        try:
            parent.mkdir(parents=True, exist_ok=True)
            os.symlink(target, temp_path, target_is_directory=True)
            os.replace(temp_path, symlink_path)
        except OSError as exc:
            try:
                temp_path.unlink(missing_ok=True)
            except OSError:
                logger.warning(
                    "Could not remove temporary symlink",
                    extra={"temp_path": str(temp_path)},
                )
            raise SymlinkPublishError(symlink_path, target, str(exc)) from exc
