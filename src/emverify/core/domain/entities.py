"""
Domain Entities - value types exchanged between the sync engine, the job
client and the reporting layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from emverify.core.exceptions import ServerJobError

from .enums import DiagnosticSeverity, FileMode, JobStage, JobState


@dataclass(frozen=True)
class BlobEntry:
    """
    A changed file ready to be placed in a new tree.

    ``sha`` is the content hash of a blob already created on the remote, or
    None for a tree entry that removes the path.
    """

    path: str
    sha: str | None
    mode: FileMode = FileMode.REGULAR

    @property
    def is_deletion(self) -> bool:
        return self.sha is None

    def to_tree_entry(self) -> dict[str, Any]:
        """Convert to the git-hosting API tree entry format."""
        return {
            "path": self.path,
            "mode": self.mode.value,
            "type": "blob",
            "sha": self.sha,
        }


@dataclass(frozen=True)
class RemoteFile:
    """Content of a file at a given ref on the remote."""

    path: str
    sha: str
    content: bytes


@dataclass(frozen=True)
class BranchHead:
    """Latest commit of a branch and the tree it points at."""

    commit_sha: str
    tree_sha: str


@dataclass(frozen=True)
class PositionalError:
    """
    An error reported by the job server or the linter.

    ``line`` and ``column`` are 1-indexed, as sent by the server.
    """

    line: int
    column: int
    message: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PositionalError:
        return cls(
            line=int(data.get("errorLine", 1) or 1),
            column=int(data.get("errorColumn", 1) or 1),
            message=str(data.get("errorMessage", "")),
        )


@dataclass(frozen=True)
class Diagnostic:
    """
    A diagnostic attached to a document.

    ``line`` and ``column`` are 0-indexed.
    """

    line: int
    column: int
    message: str
    severity: DiagnosticSeverity = DiagnosticSeverity.ERROR
    source: str = "emverify"

    def format(self, document: str) -> str:
        """Render as ``path:line:col: severity: message`` (1-indexed)."""
        return (
            f"{document}:{self.line + 1}:{self.column + 1}: "
            f"{self.severity.label}: {self.message}"
        )


@dataclass(frozen=True)
class JobSnapshot:
    """One status response for a job, parsed from the server's JSON."""

    queue_num: int = 0
    is_makeenv_finish: bool = False
    is_makeenv_success: bool = False
    makeenv_text: str = ""
    progress_phases: tuple[str, ...] = ()
    progress_percent: float = 0.0
    num_of_errors: int = 0
    error_list: tuple[PositionalError, ...] = ()
    is_verifier_finish: bool = False
    is_verifier_success: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JobSnapshot:
        """Parse a ``GET verifier/{id}`` response body."""
        return cls(
            queue_num=int(data.get("queueNum") or 0),
            is_makeenv_finish=bool(data.get("isMakeenvFinish", False)),
            is_makeenv_success=bool(data.get("isMakeenvSuccess", False)),
            makeenv_text=str(data.get("makeenvText") or ""),
            progress_phases=tuple(str(p) for p in data.get("progressPhases") or []),
            progress_percent=float(data.get("progressPercent") or 0),
            num_of_errors=int(data.get("numOfErrors") or 0),
            error_list=tuple(
                PositionalError.from_dict(e) for e in data.get("errorList") or []
            ),
            is_verifier_finish=bool(data.get("isVerifierFinish", False)),
            is_verifier_success=bool(data.get("isVerifierSuccess", False)),
        )


@dataclass
class JobOutcome:
    """Terminal result of a job, handed to the caller once polling stops."""

    job_id: str
    command: str
    state: JobState
    failed_stage: JobStage | None = None
    errors: list[PositionalError] = field(default_factory=list)
    num_of_errors: int = 0
    polls: int = 0

    @property
    def succeeded(self) -> bool:
        return self.state is JobState.SUCCEEDED

    @property
    def cancelled(self) -> bool:
        return self.state is JobState.CANCELLED

    def __str__(self) -> str:
        text = f"{self.command} job {self.job_id}: {self.state.display_name}"
        if self.failed_stage is not None:
            text += f" during {self.failed_stage.value}"
        if self.num_of_errors:
            text += f" ({self.num_of_errors} errors)"
        return text

    def raise_for_failure(self) -> None:
        """
        Raise ServerJobError if the job failed on the server.

        A cancelled job is not a failure.
        """
        if self.state is not JobState.FAILED:
            return
        stage = self.failed_stage or JobStage.ANALYSIS
        raise ServerJobError(
            f"{self.command} failed during {stage.value} with {self.num_of_errors} errors",
            stage=stage.value,
            errors=list(self.errors),
        )
