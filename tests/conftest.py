"""
Shared pytest fixtures for Haystack client tests.

Provides an isolated configuration rooted in ``tmp_path`` and helpers for
building release archives.
"""

import zipfile
from pathlib import Path
from typing import Callable, Optional

import pytest

from haystack_client.config import Config, ReleaseConfig, StorageConfig
from haystack_client.installer.sources import MIN_ARCHIVE_SIZE

PRIMARY_ROOT = "https://primary.example.com/releases"
FALLBACK_ROOT = "https://fallback.example.com/releases"


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Configuration whose state lives entirely under ``tmp_path``."""
    return Config(
        release=ReleaseConfig(
            version="1.2.3",
            primary_download_root=PRIMARY_ROOT,
            fallback_download_root=FALLBACK_ROOT,
        ),
        storage=StorageConfig(
            data_dir=tmp_path / "data",
            bundled_dir=tmp_path / "bundled",
        ),
    )


def build_archive(
    path: Path,
    executable_name: str = "haystack",
    folder: Optional[str] = None,
    padding: int = MIN_ARCHIVE_SIZE,
) -> Path:
    """Write a release zip holding the executable plus padding.

    Members are stored uncompressed so the file is at least ``padding`` bytes.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    prefix = f"{folder}/" if folder else ""
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_STORED) as zf:
        zf.writestr(f"{prefix}{executable_name}", b"#!/bin/sh\necho haystack\n")
        zf.writestr(f"{prefix}README.txt", b"haystack daemon")
        if padding:
            zf.writestr(f"{prefix}assets/padding.bin", b"\0" * padding)
    return path


@pytest.fixture
def make_archive() -> Callable[..., Path]:
    return build_archive
