"""Unit tests for the archive installer.

Tests zip extraction, path traversal rejection, atomic symlink
publication and replay idempotence for the ArchiveInstaller.
"""

import asyncio
import io
import os
import zipfile
from pathlib import Path
from typing import Dict
from unittest.mock import patch

import pytest

from src.artifact_sync.installer import (
    ArchiveExtractionError,
    ArchiveInstaller,
    PathTemplateError,
    SymlinkPublishError,
)


HEAD_SHA = "3f786850e387550fdab836ed7e6dc881de23001b"


def run_async(coro):
    return asyncio.run(coro)


def _make_zip(files: Dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


@pytest.fixture
def installer():
    return ArchiveInstaller()


@pytest.fixture
def deploy_root(tmp_path):
    root = tmp_path / "deploy"
    root.mkdir()
    return root


@pytest.fixture
def site_archive():
    return _make_zip({
        "index.html": b"<h1>hello</h1>",
        "assets/app.js": b"console.log('hi');",
        "assets/": b"",
    })


class TestExtraction:

    def test_extracts_full_tree(self, installer, deploy_root, site_archive):
        result = run_async(installer.install(
            site_archive, f"{deploy_root}/{{HEAD_SHA}}", None, HEAD_SHA))

        output = deploy_root / HEAD_SHA
        assert result.output_path == output
        assert result.symlink_path is None
        assert (output / "index.html").read_bytes() == b"<h1>hello</h1>"
        assert (output / "assets" / "app.js").read_bytes() == b"console.log('hi');"

    def test_creates_intermediate_directories(self, installer, deploy_root, site_archive):
        run_async(installer.install(
            site_archive, f"{deploy_root}/a/b/{{HEAD_SHA}}/site", None, HEAD_SHA))
        assert (deploy_root / "a" / "b" / HEAD_SHA / "site" / "index.html").is_file()

    def test_reports_entry_count(self, installer, deploy_root, site_archive):
        result = run_async(installer.install(
            site_archive, f"{deploy_root}/{{HEAD_SHA}}", None, HEAD_SHA))
        assert result.entries == 3

    def test_corrupt_archive_raises(self, installer, deploy_root):
        with pytest.raises(ArchiveExtractionError, match="corrupt archive"):
            run_async(installer.install(
                b"PK\x03\x04 definitely not a zip", f"{deploy_root}/{{HEAD_SHA}}",
                None, HEAD_SHA))
        assert not (deploy_root / HEAD_SHA).exists()

    def test_output_path_occupied_by_file_raises(self, installer, deploy_root, site_archive):
        (deploy_root / HEAD_SHA).write_text("in the way")
        with pytest.raises(ArchiveExtractionError):
            run_async(installer.install(
                site_archive, f"{deploy_root}/{{HEAD_SHA}}", None, HEAD_SHA))

    def test_unresolvable_template_raises(self, installer, site_archive):
        with pytest.raises(PathTemplateError):
            run_async(installer.install(site_archive, "{HEAD_SHA}", None, HEAD_SHA))


class TestPathTraversal:

    @pytest.mark.parametrize("name", [
        "../escape.txt",
        "nested/../../escape.txt",
        "/etc/passwd",
        "..\\escape.txt",
        "C:/windows/escape.txt",
    ])
    def test_escaping_member_rejected_before_writing(self, installer, deploy_root, name):
        archive = _make_zip({"aaa-first.txt": b"ok", name: b"pwned"})

        with pytest.raises(ArchiveExtractionError, match="escapes the output directory"):
            run_async(installer.install(
                archive, f"{deploy_root}/{{HEAD_SHA}}", None, HEAD_SHA))

        assert not (deploy_root / HEAD_SHA).exists()
        assert not (deploy_root / "escape.txt").exists()

    def test_member_through_existing_symlink_rejected(self, installer, deploy_root, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        output = deploy_root / HEAD_SHA
        output.mkdir()
        (output / "link").symlink_to(outside, target_is_directory=True)

        archive = _make_zip({"link/escape.txt": b"pwned"})
        with pytest.raises(ArchiveExtractionError):
            run_async(installer.install(
                archive, f"{deploy_root}/{{HEAD_SHA}}", None, HEAD_SHA))
        assert not (outside / "escape.txt").exists()

    def test_dot_segments_inside_tree_allowed(self, installer, deploy_root):
        archive = _make_zip({"./docs/readme.txt": b"read me"})
        run_async(installer.install(
            archive, f"{deploy_root}/{{HEAD_SHA}}", None, HEAD_SHA))
        assert (deploy_root / HEAD_SHA / "docs" / "readme.txt").is_file()


class TestSymlinkPublication:

    def test_symlink_points_at_output(self, installer, deploy_root, site_archive):
        result = run_async(installer.install(
            site_archive, f"{deploy_root}/{{HEAD_SHA}}", f"{deploy_root}/latest", HEAD_SHA))

        latest = deploy_root / "latest"
        assert result.symlink_path == latest
        assert latest.is_symlink()
        assert latest.resolve() == (deploy_root / HEAD_SHA).resolve()
        assert (latest / "index.html").is_file()

    def test_symlink_replaced_for_new_commit(self, installer, deploy_root, site_archive):
        other_sha = "a" * 40
        run_async(installer.install(
            site_archive, f"{deploy_root}/{{HEAD_SHA}}", f"{deploy_root}/latest", HEAD_SHA))
        run_async(installer.install(
            site_archive, f"{deploy_root}/{{HEAD_SHA}}", f"{deploy_root}/latest", other_sha))

        assert (deploy_root / "latest").resolve() == (deploy_root / other_sha).resolve()
        assert (deploy_root / HEAD_SHA / "index.html").is_file()

    def test_no_temporary_links_left_behind(self, installer, deploy_root, site_archive):
        run_async(installer.install(
            site_archive, f"{deploy_root}/{{HEAD_SHA}}", f"{deploy_root}/latest", HEAD_SHA))
        assert sorted(p.name for p in deploy_root.iterdir()) == sorted([HEAD_SHA, "latest"])

    def test_symlink_parent_created(self, installer, deploy_root, site_archive):
        run_async(installer.install(
            site_archive, f"{deploy_root}/{{HEAD_SHA}}",
            f"{deploy_root}/current/site", HEAD_SHA))
        assert (deploy_root / "current" / "site").is_symlink()

    def test_symlink_over_real_directory_fails_after_extraction(
        self, installer, deploy_root, site_archive
    ):
        blocker = deploy_root / "latest"
        blocker.mkdir()
        (blocker / "keep.txt").write_text("keep")

        with pytest.raises(SymlinkPublishError) as exc_info:
            run_async(installer.install(
                site_archive, f"{deploy_root}/{{HEAD_SHA}}", f"{deploy_root}/latest", HEAD_SHA))

        assert exc_info.value.symlink_path == blocker
        assert (deploy_root / HEAD_SHA / "index.html").is_file()
        assert (blocker / "keep.txt").read_text() == "keep"
        assert not [p for p in deploy_root.iterdir() if p.name.endswith(".tmp")]

    def test_rename_failure_cleans_temporary_link(self, installer, deploy_root):
        target = deploy_root / HEAD_SHA
        target.mkdir()
        with patch("src.artifact_sync.installer.archive.os.replace",
                   side_effect=OSError("read-only file system")):
            with pytest.raises(SymlinkPublishError, match="read-only file system"):
                installer.publish_symlink(deploy_root / "latest", target)
        assert sorted(p.name for p in deploy_root.iterdir()) == [HEAD_SHA]

    def test_symlink_resolving_to_output_rejected(self, installer, deploy_root, site_archive):
        with pytest.raises(PathTemplateError, match="output directory"):
            run_async(installer.install(
                site_archive, f"{deploy_root}/{{HEAD_SHA}}", f"{deploy_root}/{HEAD_SHA}",
                HEAD_SHA))


class TestIdempotence:

    def test_replaying_install_converges(self, installer, deploy_root, site_archive):
        args = (site_archive, f"{deploy_root}/{{HEAD_SHA}}", f"{deploy_root}/latest", HEAD_SHA)

        first = run_async(installer.install(*args))
        snapshot = {
            str(p.relative_to(deploy_root)): p.read_bytes()
            for p in deploy_root.rglob("*") if p.is_file()
        }
        second = run_async(installer.install(*args))

        assert first == second
        assert snapshot == {
            str(p.relative_to(deploy_root)): p.read_bytes()
            for p in deploy_root.rglob("*") if p.is_file()
        }
        assert os.readlink(deploy_root / "latest") == str(deploy_root / HEAD_SHA)

    def test_reinstall_overwrites_changed_files(self, installer, deploy_root):
        template = f"{deploy_root}/{{HEAD_SHA}}"
        run_async(installer.install(_make_zip({"a.txt": b"old"}), template, None, HEAD_SHA))
        run_async(installer.install(_make_zip({"a.txt": b"new"}), template, None, HEAD_SHA))
        assert (deploy_root / HEAD_SHA / "a.txt").read_bytes() == b"new"

    def test_concurrent_installs_of_same_commit(self, installer, deploy_root, site_archive):
        args = (site_archive, f"{deploy_root}/{{HEAD_SHA}}", f"{deploy_root}/latest", HEAD_SHA)

        async def install_twice():
            return await asyncio.gather(
                installer.install(*args), installer.install(*args))

        first, second = run_async(install_twice())
        assert first.output_path == second.output_path
        assert (deploy_root / "latest" / "index.html").is_file()
        assert installer._locks == {}

    def test_lock_released_after_each_commit(self, installer, deploy_root, site_archive):
        for sha in ("a" * 40, "b" * 40, "c" * 40):
            run_async(installer.install(
                site_archive, f"{deploy_root}/{{HEAD_SHA}}", None, sha))
        assert installer._locks == {}
        assert installer._lock_users == {}

    def test_lock_released_after_failure(self, installer, deploy_root):
        with pytest.raises(ArchiveExtractionError):
            run_async(installer.install(
                b"not a zip", f"{deploy_root}/{{HEAD_SHA}}", None, HEAD_SHA))
        assert installer._locks == {}
