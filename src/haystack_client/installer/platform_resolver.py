"""Host platform detection for daemon release builds."""

import logging
import platform
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

SUPPORTED_TARGETS = {
    ("linux", "amd64"): "linux-amd64",
    ("linux", "arm64"): "linux-arm64",
    ("darwin", "amd64"): "darwin-amd64",
    ("darwin", "arm64"): "darwin-arm64",
    ("windows", "amd64"): "windows-amd64",
    ("windows", "arm64"): "windows-arm64",
}

_OS_ALIASES = {
    "linux": "linux",
    "darwin": "darwin",
    "macos": "darwin",
    "windows": "windows",
    "win32": "windows",
}

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "x64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv8": "arm64",
}


@dataclass(frozen=True)
class PlatformTarget:
    """Resolved release target for the running host."""

    os: str
    arch: str
    target_id: str
    supported: bool

    @property
    def is_windows(self) -> bool:
        return self.os == "windows"

    @property
    def executable_suffix(self) -> str:
        return ".exe" if self.is_windows else ""


class PlatformResolver:
    """Maps the host OS family and CPU architecture to a release target.

    The host is read once on first resolution and cached for the session;
    an unsupported result is permanent.
    """

    def __init__(self, system: Optional[str] = None, machine: Optional[str] = None):
        self._system = system
        self._machine = machine
        self._target: Optional[PlatformTarget] = None

    @staticmethod
    def normalize_os(system: str) -> str:
        key = system.strip().lower()
        return _OS_ALIASES.get(key, key)

    @staticmethod
    def normalize_arch(machine: str) -> str:
        key = machine.strip().lower()
        return _ARCH_ALIASES.get(key, key)

    def resolve(self) -> PlatformTarget:
        """Resolve the release target for this host."""
        if self._target is not None:
            return self._target

        system = self._system if self._system is not None else platform.system()
        machine = self._machine if self._machine is not None else platform.machine()

        os_name = self.normalize_os(system)
        arch = self.normalize_arch(machine)
        target_id = SUPPORTED_TARGETS.get((os_name, arch))

        if target_id is None:
            logger.warning(f"Unsupported platform: {system} {machine}")
            self._target = PlatformTarget(
                os=os_name,
                arch=arch,
                target_id=f"{os_name}-{arch}",
                supported=False,
            )
        else:
            logger.debug(f"Resolved platform target {target_id}")
            self._target = PlatformTarget(
                os=os_name, arch=arch, target_id=target_id, supported=True
            )

        return self._target

    def executable_name(self, product: str) -> str:
        """Daemon executable name for this host (``<product>.exe`` on Windows)."""
        return f"{product}{self.resolve().executable_suffix}"
