"""
Application layer - use cases built on the ports.

- sync: shadow-branch sync engine and change tracking
- jobs: job polling, progress rendering, diagnostics
- session: the user-facing verify, lint and format commands
"""

from .jobs import DiagnosticsReporter, JobClient, ProgressRenderer
from .session import VerificationSession
from .sync import ChangeTracker, SyncEngine, SyncResult


__all__ = [
    "ChangeTracker",
    "DiagnosticsReporter",
    "JobClient",
    "ProgressRenderer",
    "SyncEngine",
    "SyncResult",
    "VerificationSession",
]
