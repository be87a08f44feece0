"""Daemon binary acquisition, verification, and installation."""

from .archive import ArchiveInstaller
from .downloader import MAX_REDIRECTS, Downloader
from .exceptions import (
    AcquisitionError,
    ArchiveError,
    DownloadError,
    InstallationError,
    InstallerError,
    TooManyRedirectsError,
    UnsupportedPlatformError,
)
from .lifecycle import BinaryLifecycleManager, InstallState, RunStatus
from .platform_resolver import SUPPORTED_TARGETS, PlatformResolver, PlatformTarget
from .sources import (
    MIN_ARCHIVE_SIZE,
    CandidateSource,
    CandidateSourceChain,
    SourceAttempt,
    SourceKind,
)

__all__ = [
    "ArchiveInstaller",
    "Downloader",
    "MAX_REDIRECTS",
    "AcquisitionError",
    "ArchiveError",
    "DownloadError",
    "InstallationError",
    "InstallerError",
    "TooManyRedirectsError",
    "UnsupportedPlatformError",
    "BinaryLifecycleManager",
    "InstallState",
    "RunStatus",
    "SUPPORTED_TARGETS",
    "PlatformResolver",
    "PlatformTarget",
    "MIN_ARCHIVE_SIZE",
    "CandidateSource",
    "CandidateSourceChain",
    "SourceAttempt",
    "SourceKind",
]
