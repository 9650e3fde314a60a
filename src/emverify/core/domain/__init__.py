"""
Domain layer - entities and enums shared by every other layer.
"""

from .entities import (
    BlobEntry,
    BranchHead,
    Diagnostic,
    JobOutcome,
    JobSnapshot,
    PositionalError,
    RemoteFile,
)
from .enums import DiagnosticSeverity, FileMode, JobStage, JobState, VerifierCommand


__all__ = [
    "BlobEntry",
    "BranchHead",
    "Diagnostic",
    "DiagnosticSeverity",
    "FileMode",
    "JobOutcome",
    "JobSnapshot",
    "JobStage",
    "JobState",
    "PositionalError",
    "RemoteFile",
    "VerifierCommand",
]
