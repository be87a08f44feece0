"""Release archive validation and extraction."""

import logging
import os
import shutil
import stat
import tempfile
import zipfile
from pathlib import Path
from typing import Optional

from .exceptions import ArchiveError

logger = logging.getLogger(__name__)


class ArchiveInstaller:
    """Unpacks a release archive into the binary directory.

    The archive may hold the executable at its root or inside a single
    top-level folder; either layout is flattened into ``binary_dir``.
    """

    def __init__(
        self, binary_dir: Path, executable_name: str, make_executable: bool = True
    ):
        """
        Initialize archive installer.

        Args:
            binary_dir: Directory that receives the extracted files
            executable_name: Expected executable file name (``haystack`` or ``haystack.exe``)
            make_executable: Whether to set execute permission bits (False on Windows)
        """
        self.binary_dir = Path(binary_dir)
        self.executable_name = executable_name
        self.make_executable = make_executable

    @property
    def executable_path(self) -> Path:
        return self.binary_dir / self.executable_name

    def validate(self, archive: Path) -> None:
        """Check archive integrity and member paths.

        Raises:
            ArchiveError: If the archive is not a readable, well-formed zip
        """
        if not zipfile.is_zipfile(archive):
            raise ArchiveError(f"Not a zip archive: {archive}")

        try:
            with zipfile.ZipFile(archive) as zf:
                bad_member = zf.testzip()
                if bad_member is not None:
                    raise ArchiveError(
                        f"Corrupt archive {archive}", f"CRC mismatch in {bad_member}"
                    )
                for name in zf.namelist():
                    member = Path(name)
                    if member.is_absolute() or ".." in member.parts:
                        raise ArchiveError(
                            f"Unsafe member path in {archive}", name
                        )
        except zipfile.BadZipFile as e:
            raise ArchiveError(f"Corrupt archive {archive}", str(e)) from e
        except OSError as e:
            raise ArchiveError(f"Cannot read archive {archive}", str(e)) from e

    def install(self, archive: Path) -> Path:
        """Validate and extract ``archive``, returning the executable path.

        Raises:
            ArchiveError: If the archive is corrupt, lacks the executable,
                or the binary directory cannot be written
        """
        archive = Path(archive)
        self.validate(archive)
        logger.info(f"Extracting {archive} into {self.binary_dir}")

        staging: Optional[Path] = None
        try:
            self.binary_dir.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=".extract-", dir=self.binary_dir))

            with zipfile.ZipFile(archive) as zf:
                zf.extractall(staging)

            content_root = self._find_content_root(staging)
            if content_root is None:
                raise ArchiveError(
                    f"Archive {archive} does not contain {self.executable_name}"
                )

            for entry in content_root.iterdir():
                self._move_into_place(entry, self.binary_dir / entry.name)

            executable = self.executable_path
            if self.make_executable:
                executable.chmod(
                    executable.stat().st_mode
                    | stat.S_IXUSR
                    | stat.S_IXGRP
                    | stat.S_IXOTH
                )
        except ArchiveError:
            raise
        except (OSError, zipfile.BadZipFile) as e:
            raise ArchiveError(f"Failed to extract {archive}", str(e)) from e
        finally:
            if staging is not None:
                shutil.rmtree(staging, ignore_errors=True)

        logger.info(f"Installed daemon executable at {executable}")
        return executable

    def _find_content_root(self, staging: Path) -> Optional[Path]:
        if (staging / self.executable_name).is_file():
            return staging

        for child in staging.iterdir():
            if child.is_dir() and (child / self.executable_name).is_file():
                return child

        return None

    @staticmethod
    def _move_into_place(source: Path, target: Path) -> None:
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        elif target.exists() or target.is_symlink():
            target.unlink()

        if source.is_dir():
            shutil.move(str(source), str(target))
        else:
            os.replace(source, target)
