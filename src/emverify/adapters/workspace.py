"""
Local Workspace - the directory tree mirrored onto the shadow branch.

Maps local paths to repository-relative paths and reads local content.
Content overrides let a caller sync a buffer that has not been saved yet.
"""

from __future__ import annotations

import os
import stat
from pathlib import Path

from emverify.core.domain.enums import FileMode


class LocalWorkspace:
    """A workspace root on the local filesystem."""

    def __init__(self, root: str | Path, overrides: dict[str, bytes] | None = None):
        self.root = Path(os.path.normpath(os.path.abspath(Path(root).expanduser())))
        self._overrides: dict[str, bytes] = {}
        for path, content in (overrides or {}).items():
            self.set_override(path, content)

    def resolve(self, path: str | Path) -> Path:
        """Absolute form of a path; relative paths are taken from the root."""
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self.root / candidate
        return Path(os.path.normpath(candidate))

    def relative_path(self, path: str | Path) -> str | None:
        """
        Repository-relative (POSIX) path, or None if outside the workspace.
        """
        absolute = self.resolve(path)
        try:
            relative = absolute.relative_to(self.root)
        except ValueError:
            return None
        if relative == Path("."):
            return None
        return relative.as_posix()

    def set_override(self, path: str | Path, content: bytes) -> None:
        """Use ``content`` instead of what is on disk for ``path``."""
        self._overrides[str(self.resolve(path))] = content

    def read_bytes(self, path: str | Path) -> bytes | None:
        """Local content of a file, or None if it does not exist."""
        absolute = self.resolve(path)
        override = self._overrides.get(str(absolute))
        if override is not None:
            return override
        try:
            return absolute.read_bytes()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            return None

    def exists(self, path: str | Path) -> bool:
        absolute = self.resolve(path)
        return str(absolute) in self._overrides or absolute.is_file()

    def is_directory(self, path: str | Path) -> bool:
        return self.resolve(path).is_dir()

    def file_mode(self, path: str | Path) -> FileMode:
        """Git file mode for a local file."""
        try:
            mode = self.resolve(path).stat().st_mode
        except OSError:
            return FileMode.REGULAR
        if mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH):
            return FileMode.EXECUTABLE
        return FileMode.REGULAR

    def write_text(self, path: str | Path, text: str) -> None:
        """Replace a file's content, e.g. with formatter output."""
        absolute = self.resolve(path)
        absolute.write_text(text, encoding="utf-8")
        self._overrides.pop(str(absolute), None)
