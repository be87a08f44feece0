"""BinaryLifecycleManager - guarantees the daemon executable is installed.

Drives an explicit install state machine:

    checking -> installed
    checking -> not-installed -> (downloading | installing)* -> installed
    checking -> not-installed -> (downloading | installing)* -> error
    unsupported (terminal, decided before checking)

Candidate sources are consumed strictly in order by a single loop and the
first one that yields an extracted executable wins.
"""

import asyncio
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from ..config import Config
from .archive import ArchiveInstaller
from .downloader import Downloader
from .exceptions import (
    AcquisitionError,
    ArchiveError,
    InstallationError,
    UnsupportedPlatformError,
)
from .platform_resolver import PlatformResolver, PlatformTarget
from .sources import (
    CandidateSource,
    CandidateSourceChain,
    SourceAttempt,
    SourceKind,
    check_local_archive,
)

logger = logging.getLogger(__name__)


class InstallState(Enum):
    """Installation state of the daemon executable."""

    CHECKING = "checking"
    DOWNLOADING = "downloading"
    INSTALLING = "installing"
    INSTALLED = "installed"
    NOT_INSTALLED = "not-installed"
    UNSUPPORTED = "unsupported"
    ERROR = "error"


class RunStatus(Enum):
    """Run status reported to status collaborators."""

    INITIALIZING = "initializing"
    UNSUPPORTED = "unsupported"
    ERROR = "error"
    RUNNING = "running"
    STOPPED = "stopped"


class BinaryLifecycleManager:
    """Acquires, verifies, and unpacks the daemon executable.

    The state machine runs as a single asyncio task started by ``start()``;
    callers await ``wait_until_ready()`` (or use ``create()``) instead of
    assuming readiness after construction. Once started it always runs to a
    terminal state. All ``get_*`` accessors are side-effect free.
    """

    def __init__(
        self,
        config: Config,
        resolver: Optional[PlatformResolver] = None,
        downloader: Optional[Downloader] = None,
        archive_installer: Optional[ArchiveInstaller] = None,
        on_state_change: Optional[Callable[[InstallState], None]] = None,
    ):
        self.config = config
        self.resolver = resolver or PlatformResolver()
        self._target = self.resolver.resolve()
        self._binary_dir = config.storage.bin_dir
        executable_name = self.resolver.executable_name(config.release.product)
        self._executable_path = self._binary_dir / executable_name

        self._downloader = downloader or Downloader()
        self._archive_installer = archive_installer or ArchiveInstaller(
            self._binary_dir,
            executable_name,
            make_executable=not self._target.is_windows,
        )
        self._on_state_change = on_state_change

        self._install_state = InstallState.CHECKING
        self._run_status = RunStatus.INITIALIZING
        self._last_error: Optional[str] = None
        self._attempts: List[SourceAttempt] = []
        self._task: Optional["asyncio.Task[InstallState]"] = None

    @classmethod
    async def create(cls, config: Config, **kwargs) -> "BinaryLifecycleManager":
        """Construct a manager and run its state machine to completion."""
        manager = cls(config, **kwargs)
        await manager.wait_until_ready()
        return manager

    # Read-only accessors

    def get_install_status(self) -> InstallState:
        return self._install_state

    def get_run_status(self) -> RunStatus:
        return self._run_status

    def get_executable_path(self) -> Path:
        return self._executable_path

    def get_binary_directory(self) -> Path:
        return self._binary_dir

    def get_platform(self) -> PlatformTarget:
        return self._target

    def get_last_error(self) -> Optional[str]:
        return self._last_error

    def get_attempts(self) -> List[SourceAttempt]:
        """Per-source outcomes of the most recent install sequence."""
        return list(self._attempts)

    def is_ready(self) -> bool:
        return self._task is not None and self._task.done()

    # Lifecycle

    def start(self) -> "asyncio.Task[InstallState]":
        """Schedule the state machine on the running loop (idempotent)."""
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    async def wait_until_ready(self) -> InstallState:
        """Start the state machine if needed and wait for a terminal state."""
        return await self.start()

    async def reinstall(self) -> InstallState:
        """Remove the installed executable and run the state machine again."""
        if self._task is not None and not self._task.done():
            await self._task

        if not self._target.supported:
            return self._install_state

        logger.info(f"Reinstalling daemon executable at {self._executable_path}")
        await asyncio.to_thread(self._remove_executable)
        self._install_state = InstallState.CHECKING
        self._run_status = RunStatus.INITIALIZING
        self._last_error = None
        self._attempts = []
        self._task = asyncio.get_running_loop().create_task(self._run())
        return await self._task

    def report_daemon_reachability(self, reachable: bool) -> None:
        """Fold daemon reachability into the run status.

        Only meaningful once installed. An unreachable daemon whose executable
        has also disappeared moves the install state to ``error``.
        """
        if self._install_state is not InstallState.INSTALLED:
            return

        if reachable:
            self._run_status = RunStatus.RUNNING
        elif not self._is_executable_present():
            self._last_error = f"Daemon executable missing: {self._executable_path}"
            logger.error(self._last_error)
            self._set_install_state(InstallState.ERROR)
            self._run_status = RunStatus.ERROR
        else:
            self._run_status = RunStatus.STOPPED

    # State machine

    async def _run(self) -> InstallState:
        if not self._target.supported:
            error = UnsupportedPlatformError(
                "Unsupported platform",
                f"{self._target.os}/{self._target.arch}",
            )
            self._last_error = str(error)
            self._set_install_state(InstallState.UNSUPPORTED)
            self._run_status = RunStatus.UNSUPPORTED
            return self._install_state

        try:
            installed = await asyncio.to_thread(self._check_installed)
            if installed:
                logger.info(f"Daemon executable found at {self._executable_path}")
                self._set_install_state(InstallState.INSTALLED)
            else:
                logger.info(
                    f"Daemon executable not found at {self._executable_path}"
                )
                self._set_install_state(InstallState.NOT_INSTALLED)
                await self._install()
        except InstallationError as e:
            logger.error(f"Daemon installation failed: {e}")
            self._last_error = str(e)
            self._set_install_state(InstallState.ERROR)
        except Exception as e:
            logger.error(f"Unexpected error during daemon installation: {e}")
            self._last_error = f"Unexpected error: {e}"
            self._set_install_state(InstallState.ERROR)

        if self._install_state is InstallState.INSTALLED:
            self._run_status = RunStatus.RUNNING
        else:
            self._run_status = RunStatus.ERROR
        return self._install_state

    async def _install(self) -> None:
        chain = CandidateSourceChain.for_target(self.config, self._target)
        self._attempts = []

        for source in chain:
            archive: Optional[Path] = None
            try:
                archive = await self._acquire(source)
                if archive is None:
                    self._attempts.append(
                        SourceAttempt(source.kind, source.location, "not available")
                    )
                    continue

                self._set_install_state(InstallState.INSTALLING)
                await asyncio.to_thread(self._archive_installer.install, archive)
            except AcquisitionError as e:
                logger.warning(f"Candidate {source} unavailable: {e}")
                self._attempts.append(SourceAttempt(source.kind, source.location, str(e)))
                continue
            except ArchiveError as e:
                logger.warning(f"Candidate {source} failed to extract: {e}")
                self._attempts.append(SourceAttempt(source.kind, source.location, str(e)))
                if archive is not None and source.kind is not SourceKind.BUNDLED:
                    await asyncio.to_thread(_discard, archive)
                continue
            except OSError as e:
                logger.warning(f"Candidate {source} failed with I/O error: {e}")
                self._attempts.append(SourceAttempt(source.kind, source.location, str(e)))
                continue

            logger.info(f"Installed daemon from {source}")
            self._attempts.append(SourceAttempt(source.kind, source.location))
            self._set_install_state(InstallState.INSTALLED)
            return

        raise InstallationError("All candidate sources exhausted", self._attempts)

    async def _acquire(self, source: CandidateSource) -> Optional[Path]:
        if not source.kind.is_remote:
            return await asyncio.to_thread(check_local_archive, source)

        if source.cache_path is None:
            raise AcquisitionError(f"No download destination for {source}")

        self._set_install_state(InstallState.DOWNLOADING)
        logger.info(f"Downloading daemon archive from {source.location}")
        return await self._downloader.download(source.location, source.cache_path)

    def _check_installed(self) -> bool:
        self._binary_dir.mkdir(parents=True, exist_ok=True)
        return self._is_executable_present()

    def _is_executable_present(self) -> bool:
        if not self._executable_path.is_file():
            return False
        if self._target.is_windows:
            return True
        return os.access(self._executable_path, os.X_OK)

    def _remove_executable(self) -> None:
        _discard(self._executable_path)

    def _set_install_state(self, state: InstallState) -> None:
        if state is self._install_state:
            return
        logger.debug(f"Install state {self._install_state.value} -> {state.value}")
        self._install_state = state
        if self._on_state_change:
            try:
                self._on_state_change(state)
            except Exception as e:
                logger.warning(f"Install state callback failed: {e}")


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to remove {path}: {e}")
