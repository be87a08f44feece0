"""Ordered candidate sources for obtaining a daemon release archive."""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional, Union

from ..config import Config
from .platform_resolver import PlatformTarget

logger = logging.getLogger(__name__)

# Archives smaller than this are treated as truncated downloads.
MIN_ARCHIVE_SIZE = 1024 * 1024


class SourceKind(Enum):
    """Where a candidate archive comes from."""

    CACHED_DOWNLOAD = "cached-download"
    BUNDLED = "bundled"
    REMOTE_PRIMARY = "remote-primary"
    REMOTE_FALLBACK = "remote-fallback"

    @property
    def is_remote(self) -> bool:
        return self in (SourceKind.REMOTE_PRIMARY, SourceKind.REMOTE_FALLBACK)


@dataclass(frozen=True)
class CandidateSource:
    """One possible origin of the release archive.

    ``location`` is a filesystem path for local kinds and a URL for remote
    kinds. Remote candidates also carry the cache path they download into.
    """

    kind: SourceKind
    location: str
    cache_path: Optional[Path] = None

    def locate(self) -> Union[Path, str]:
        """Return the path (local kinds) or URL (remote kinds) of the archive."""
        if self.kind.is_remote:
            return self.location
        return Path(self.location)

    def __str__(self) -> str:
        return f"{self.kind.value} ({self.location})"


@dataclass
class SourceAttempt:
    """Outcome of trying one candidate source."""

    kind: SourceKind
    location: str
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class CandidateSourceChain:
    """Fixed-order list of candidate sources for one install attempt."""

    def __init__(self, sources: List[CandidateSource]):
        self._sources = list(sources)

    @classmethod
    def for_target(cls, config: Config, target: PlatformTarget) -> "CandidateSourceChain":
        """Build the standard chain: cache, bundled, primary, fallback."""
        archive_name = config.release.archive_name(target.target_id)
        cache_path = config.storage.download_cache_dir / archive_name

        return cls(
            [
                CandidateSource(SourceKind.CACHED_DOWNLOAD, str(cache_path)),
                CandidateSource(
                    SourceKind.BUNDLED, str(config.storage.bundled_dir / archive_name)
                ),
                CandidateSource(
                    SourceKind.REMOTE_PRIMARY,
                    config.release.primary_url(target.target_id),
                    cache_path=cache_path,
                ),
                CandidateSource(
                    SourceKind.REMOTE_FALLBACK,
                    config.release.fallback_url(target.target_id),
                    cache_path=cache_path,
                ),
            ]
        )

    def __iter__(self) -> Iterator[CandidateSource]:
        return iter(self._sources)

    def __len__(self) -> int:
        return len(self._sources)

    @property
    def sources(self) -> List[CandidateSource]:
        return list(self._sources)


def check_local_archive(source: CandidateSource) -> Optional[Path]:
    """Return the archive path if a local candidate is usable, else None.

    An undersized cached download is deleted so it is never reused; an
    undersized bundled archive is skipped but left in place.
    """
    path = Path(source.location)
    if not path.is_file():
        logger.debug(f"No archive for {source.kind.value} at {path}")
        return None

    size = path.stat().st_size
    if size >= MIN_ARCHIVE_SIZE:
        return path

    if source.kind is SourceKind.CACHED_DOWNLOAD:
        logger.warning(
            f"Cached archive {path} is only {size} bytes, deleting truncated download"
        )
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to remove truncated download {path}: {e}")
    else:
        logger.warning(f"Bundled archive {path} is only {size} bytes, skipping")
    return None
