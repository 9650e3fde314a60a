"""
Domain enums - job states, file modes, diagnostic severities and commands.
"""

from __future__ import annotations

from enum import Enum, IntEnum, auto


class JobState(Enum):
    """Lifecycle state of a remote verification job as seen by the client."""

    QUEUED = auto()
    PREPARING_ENV = auto()
    RUNNING_ANALYSIS = auto()
    SUCCEEDED = auto()
    FAILED = auto()
    CANCELLED = auto()

    @property
    def is_terminal(self) -> bool:
        """Check if no further transitions are possible."""
        return self in (JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELLED)

    @property
    def display_name(self) -> str:
        """Human-readable name."""
        return {
            JobState.QUEUED: "Queued",
            JobState.PREPARING_ENV: "Preparing environment",
            JobState.RUNNING_ANALYSIS: "Running analysis",
            JobState.SUCCEEDED: "Succeeded",
            JobState.FAILED: "Failed",
            JobState.CANCELLED: "Cancelled",
        }[self]


class JobStage(Enum):
    """Server-side stage a job failure belongs to."""

    ENVIRONMENT = "environment"
    ANALYSIS = "analysis"


class FileMode(Enum):
    """Git tree entry modes the sync engine produces."""

    REGULAR = "100644"
    EXECUTABLE = "100755"


class DiagnosticSeverity(IntEnum):
    """Severity of a diagnostic, numbered as in the Language Server Protocol."""

    ERROR = 1
    WARNING = 2
    INFORMATION = 3
    HINT = 4

    @property
    def label(self) -> str:
        return self.name.lower()


class VerifierCommand(Enum):
    """
    Commands the job server can run against a file.

    The value is what the server expects in the ``command`` field.
    """

    VERIFIER = "verifier"
    IRRTHS = "irrths"
    RELINFER = "relinfer"
    TRIVDEMO = "trivdemo"
    RELITERS = "reliters"
    RELPREM = "relprem"
    IRRVOC = "irrvoc"
    INACC = "inacc"
    CHKLAB = "chklab"

    @classmethod
    def from_string(cls, value: str) -> VerifierCommand:
        """
        Parse a command name.

        Accepts the bare server name (``irrths``) and the editor command id
        (``mizar-irrths``); ``mizar-verify`` maps to the verifier.

        Raises:
            ValueError: If the name is not a known command.
        """
        name = value.strip().lower()
        if name.startswith("mizar-"):
            name = name[len("mizar-") :]
        if name == "verify":
            name = "verifier"
        for command in cls:
            if command.value == name:
                return command
        valid = ", ".join(c.value for c in cls)
        raise ValueError(f"Unknown command '{value}'. Valid commands: {valid}")

    @property
    def description(self) -> str:
        """Human-readable description of what the command reports."""
        return {
            VerifierCommand.VERIFIER: "Mizar Compile",
            VerifierCommand.IRRTHS: "Irrelevant Theorems",
            VerifierCommand.RELINFER: "Irrelevant Inferences",
            VerifierCommand.TRIVDEMO: "Trivial Proofs",
            VerifierCommand.RELITERS: "Irrelevant Iterative Steps",
            VerifierCommand.RELPREM: "Irrelevant Premises",
            VerifierCommand.IRRVOC: "Irrelevant Vocabularies",
            VerifierCommand.INACC: "Inaccessible Items",
            VerifierCommand.CHKLAB: "Irrelevant Labels",
        }[self]
