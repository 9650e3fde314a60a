"""
Change Tracker - records the paths touched during an edit session.

Creates, modifications and deletions share one set; whether a path is an
upsert or a delete is decided at sync time by probing the local file.

The set is drained only after a sync has fully succeeded, so a failed sync
leaves it intact and the next cycle retries the same paths.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterable, Iterator
from pathlib import Path


logger = logging.getLogger("ChangeTracker")


class ChangeTracker:
    """
    Set of absolute paths changed since the last successful sync.

    When a ``state_file`` is given, every mutation is written through to it
    so that the set survives process restarts (each CLI invocation is a new
    process).
    """

    STATE_VERSION = 1

    def __init__(self, state_file: str | Path | None = None):
        self.state_file = Path(state_file) if state_file else None
        self._paths: set[str] = set()
        if self.state_file is not None:
            self._paths = self._load(self.state_file)

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------

    @staticmethod
    def normalize(path: str | Path) -> str:
        """Absolute, normalised form of a path."""
        return os.path.normpath(os.path.abspath(os.path.expanduser(str(path))))

    def record_change(self, path: str | Path) -> None:
        """Record a created or modified file."""
        self._add([path])

    def record_deletion(self, path: str | Path) -> None:
        """Record a deleted file."""
        self._add([path])

    def record_all(self, paths: Iterable[str | Path]) -> None:
        self._add(paths)

    def _add(self, paths: Iterable[str | Path]) -> None:
        before = len(self._paths)
        self._paths.update(self.normalize(p) for p in paths)
        if len(self._paths) != before:
            self._save()

    # -------------------------------------------------------------------------
    # Reading and draining
    # -------------------------------------------------------------------------

    @property
    def pending(self) -> frozenset[str]:
        """Snapshot of the recorded paths, without draining."""
        return frozenset(self._paths)

    def drain(self) -> set[str]:
        """
        Return the recorded paths and reset the set to empty.

        Call only after the sync covering these paths has succeeded.
        """
        drained = self._paths
        self._paths = set()
        self._save()
        return drained

    def discard(self, paths: Iterable[str | Path]) -> None:
        """Forget specific paths, keeping any recorded since."""
        before = len(self._paths)
        self._paths.difference_update(self.normalize(p) for p in paths)
        if len(self._paths) != before:
            self._save()

    def __len__(self) -> int:
        return len(self._paths)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        return self.normalize(path) in self._paths

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._paths))

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _load(self, state_file: Path) -> set[str]:
        if not state_file.exists():
            return set()
        try:
            data = json.loads(state_file.read_text(encoding="utf-8"))
            paths = data.get("paths", [])
            if not isinstance(paths, list):
                raise ValueError("'paths' is not a list")
            return {self.normalize(p) for p in paths if isinstance(p, str)}
        except (OSError, ValueError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable change state {state_file}: {e}")
            return set()

    def _save(self) -> None:
        if self.state_file is None:
            return

        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        payload = {"version": self.STATE_VERSION, "paths": sorted(self._paths)}

        # Atomic write: temp file + replace
        fd, temp_path = tempfile.mkstemp(
            dir=self.state_file.parent,
            prefix=".changes_",
            suffix=".json.tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
                f.write("\n")
            os.replace(temp_path, self.state_file)
        except Exception:
            Path(temp_path).unlink(missing_ok=True)
            raise
