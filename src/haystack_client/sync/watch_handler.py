"""
Sync Watch Handler for standalone watch mode.

Bridges watchdog file system events (delivered on the observer thread) onto
the event loop that owns the SyncCoordinator.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Callable, Dict, FrozenSet, Optional

from watchdog.events import FileSystemEventHandler

from .coordinator import DEFAULT_DEBOUNCE_SECONDS, SyncCoordinator

logger = logging.getLogger(__name__)

IGNORED_DIRECTORIES: FrozenSet[str] = frozenset({".git", ".hg", ".svn"})


class SyncWatchHandler(FileSystemEventHandler):
    """File system event handler that forwards changes to a SyncCoordinator."""

    def __init__(
        self,
        coordinator: SyncCoordinator,
        loop: asyncio.AbstractEventLoop,
        ignored_directories: FrozenSet[str] = IGNORED_DIRECTORIES,
        creation_window_seconds: Optional[float] = None,
    ):
        """
        Initialize sync watch handler.

        Args:
            coordinator: Coordinator receiving save/create/delete events
            loop: Event loop the coordinator runs on
            ignored_directories: Directory names whose contents are never synced
            creation_window_seconds: Modifications this soon after a creation are
                dropped; defaults to the debounce interval
        """
        super().__init__()
        self.coordinator = coordinator
        self.loop = loop
        self.ignored_directories = ignored_directories
        if creation_window_seconds is None:
            creation_window_seconds = DEFAULT_DEBOUNCE_SECONDS
        self.creation_window_seconds = creation_window_seconds

        # Path -> monotonic time of its created event
        self._recently_created: Dict[Path, float] = {}

        # Statistics
        self.events_forwarded = 0
        self.events_ignored = 0
        self.events_coalesced = 0

    def on_modified(self, event):
        """Handle file modification events (debounced)."""
        if event.is_directory:
            return
        file_path = _to_path(event.src_path)
        if self._follows_creation(file_path):
            self.events_coalesced += 1
            logger.debug(f"Coalesced modification of new file {file_path}")
            return
        self._forward(self.coordinator.on_file_saved, file_path)

    def on_created(self, event):
        """Handle file creation events."""
        if event.is_directory:
            return
        file_path = _to_path(event.src_path)
        self._recently_created[file_path] = time.monotonic()
        self._forward(self.coordinator.on_file_created, file_path)

    def on_deleted(self, event):
        """Handle file deletion events."""
        if event.is_directory:
            return
        file_path = _to_path(event.src_path)
        self._recently_created.pop(file_path, None)
        self._forward(self.coordinator.on_file_deleted, file_path)

    def on_moved(self, event):
        """Handle file move events as delete old + create new."""
        if event.is_directory:
            return
        src_path = _to_path(event.src_path)
        dest_path = _to_path(event.dest_path)
        self._recently_created.pop(src_path, None)
        self._recently_created[dest_path] = time.monotonic()
        self._forward(self.coordinator.on_file_deleted, src_path)
        self._forward(self.coordinator.on_file_created, dest_path)

    def _follows_creation(self, path: Path) -> bool:
        now = time.monotonic()
        expired = [
            p
            for p, created_at in self._recently_created.items()
            if now - created_at >= self.creation_window_seconds
        ]
        for p in expired:
            del self._recently_created[p]
        return path in self._recently_created

    def _is_ignored(self, path: Path) -> bool:
        workspace = self.coordinator.workspace
        if workspace is not None:
            try:
                path = path.relative_to(workspace.root_path)
            except ValueError:
                pass

        # Hidden directories below the root are skipped, hidden files are not
        for part in path.parts[:-1]:
            if part in self.ignored_directories or part.startswith("."):
                return True
        return False

    def _forward(self, callback: Callable, file_path: Path) -> None:
        if self._is_ignored(file_path):
            self.events_ignored += 1
            return

        try:
            self.loop.call_soon_threadsafe(callback, file_path)
            self.events_forwarded += 1
        except RuntimeError as e:
            # Loop already closed during shutdown
            logger.debug(f"Dropped event for {file_path}: {e}")


def _to_path(raw_path) -> Path:
    if isinstance(raw_path, bytes):
        raw_path = raw_path.decode("utf-8", errors="surrogateescape")
    return Path(raw_path)
