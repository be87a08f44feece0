"""Unit tests for release archive validation and extraction."""

import os
import sys
import zipfile

import pytest

from haystack_client.installer.archive import ArchiveInstaller
from haystack_client.installer.exceptions import ArchiveError


class TestArchiveInstaller:
    """Test archive layouts, permissions, and failure handling."""

    def test_flat_archive(self, tmp_path, make_archive):
        archive = make_archive(tmp_path / "flat.zip", padding=0)
        installer = ArchiveInstaller(tmp_path / "bin", "haystack")

        executable = installer.install(archive)

        assert executable == tmp_path / "bin" / "haystack"
        assert executable.read_bytes().startswith(b"#!/bin/sh")
        assert (tmp_path / "bin" / "README.txt").exists()

    def test_archive_with_top_level_folder(self, tmp_path, make_archive):
        archive = make_archive(
            tmp_path / "nested.zip", folder="haystack-linux-amd64", padding=0
        )
        installer = ArchiveInstaller(tmp_path / "bin", "haystack")

        executable = installer.install(archive)

        assert executable == tmp_path / "bin" / "haystack"
        assert executable.is_file()
        assert not (tmp_path / "bin" / "haystack-linux-amd64").exists()

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_executable_bit_is_set(self, tmp_path, make_archive):
        archive = make_archive(tmp_path / "flat.zip", padding=0)
        installer = ArchiveInstaller(tmp_path / "bin", "haystack")

        executable = installer.install(archive)

        assert os.access(executable, os.X_OK)

    def test_staging_directory_is_removed(self, tmp_path, make_archive):
        archive = make_archive(tmp_path / "flat.zip", padding=0)
        installer = ArchiveInstaller(tmp_path / "bin", "haystack")

        installer.install(archive)

        assert not [p for p in (tmp_path / "bin").iterdir() if p.name.startswith(".extract-")]

    def test_reinstall_replaces_existing_files(self, tmp_path, make_archive):
        bin_dir = tmp_path / "bin"
        (bin_dir / "assets").mkdir(parents=True)
        (bin_dir / "assets" / "old.bin").write_bytes(b"old")
        (bin_dir / "haystack").write_bytes(b"old executable")
        archive = make_archive(tmp_path / "flat.zip", padding=10)

        ArchiveInstaller(bin_dir, "haystack").install(archive)

        assert (bin_dir / "haystack").read_bytes().startswith(b"#!/bin/sh")
        assert not (bin_dir / "assets" / "old.bin").exists()
        assert (bin_dir / "assets" / "padding.bin").exists()

    def test_not_a_zip(self, tmp_path):
        archive = tmp_path / "broken.zip"
        archive.write_bytes(b"this is not a zip file")
        installer = ArchiveInstaller(tmp_path / "bin", "haystack")

        with pytest.raises(ArchiveError):
            installer.install(archive)

        assert not (tmp_path / "bin" / "haystack").exists()

    def test_missing_executable(self, tmp_path, make_archive):
        archive = make_archive(tmp_path / "other.zip", executable_name="other", padding=0)
        installer = ArchiveInstaller(tmp_path / "bin", "haystack")

        with pytest.raises(ArchiveError, match="does not contain haystack"):
            installer.install(archive)

    def test_unsafe_member_path(self, tmp_path):
        archive = tmp_path / "evil.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("../escape.txt", b"nope")
            zf.writestr("haystack", b"binary")
        installer = ArchiveInstaller(tmp_path / "bin", "haystack")

        with pytest.raises(ArchiveError, match="Unsafe member path"):
            installer.install(archive)

        assert not (tmp_path / "escape.txt").exists()
