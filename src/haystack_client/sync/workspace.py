"""Workspace root resolution."""

import os
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Optional, Sequence, Union

PathLike = Union[str, "os.PathLike[str]"]


@dataclass(frozen=True)
class WorkspaceDescriptor:
    """The project root currently being edited and indexed."""

    root_path: Path

    @classmethod
    def from_roots(cls, roots: Sequence[PathLike]) -> Optional["WorkspaceDescriptor"]:
        """Use the first open project root, or None when nothing is open."""
        for root in roots:
            if root and str(root).strip():
                return cls(Path(root).expanduser().resolve())
        return None

    @property
    def workspace(self) -> str:
        """Workspace identifier sent to the daemon (absolute root path)."""
        return str(self.root_path)

    def relative_path(self, path: PathLike) -> Optional[str]:
        """Path relative to the root with POSIX separators, or None if outside."""
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.root_path / candidate
        candidate = candidate.resolve()

        try:
            relative = candidate.relative_to(self.root_path)
        except ValueError:
            return None

        if relative == PurePath("."):
            return None
        return relative.as_posix()
