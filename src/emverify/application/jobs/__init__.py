"""
Jobs module - remote job polling, progress rendering and diagnostics.
"""

from .client import JobClient, advance_state, failed_stage
from .diagnostics import DiagnosticCollection, DiagnosticsReporter, to_diagnostic
from .progress import MAX_OUTPUT, ProgressRenderer, ProgressState, calculate_progress_diff


__all__ = [
    "MAX_OUTPUT",
    "DiagnosticCollection",
    "DiagnosticsReporter",
    "JobClient",
    "ProgressRenderer",
    "ProgressState",
    "advance_state",
    "calculate_progress_diff",
    "failed_stage",
    "to_diagnostic",
]
