"""
Verification Session - the user-facing commands.

Each command first brings the shadow branch up to date, then asks the job
server to work on the file there:

- verify: sync everything recorded, run a job, stream progress, report errors
- lint:   sync one file, lint it, report findings
- format: sync one file, return (and optionally write) the formatted body
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from emverify.adapters.workspace import LocalWorkspace
from emverify.core.domain.entities import Diagnostic, JobOutcome, JobSnapshot
from emverify.core.domain.enums import DiagnosticSeverity, JobStage, JobState, VerifierCommand
from emverify.core.exceptions import UnsupportedFileError
from emverify.core.ports.config_provider import AppConfig
from emverify.core.ports.git_host import GitHostPort
from emverify.core.ports.job_server import JobBusyError, JobServerPort

from .jobs.client import JobClient, SleepFunc
from .jobs.diagnostics import DiagnosticsReporter
from .jobs.progress import ProgressRenderer, TextSink
from .sync.engine import SyncEngine, SyncResult
from .sync.tracker import ChangeTracker


ERRORS_DETECTED = "\n**** Some errors detected."


class VerificationSession:
    """
    Wires sync, job polling, progress output and diagnostics together.

    Output goes to ``sink`` (append-only); diagnostics go to ``reporter``.
    """

    def __init__(
        self,
        config: AppConfig,
        host: GitHostPort,
        server: JobServerPort,
        workspace: LocalWorkspace | None = None,
        tracker: ChangeTracker | None = None,
        sink: TextSink | None = None,
        reporter: DiagnosticsReporter | None = None,
        sleep: SleepFunc | None = None,
    ):
        self.config = config
        self.host = host
        self.server = server
        self.workspace = workspace or LocalWorkspace(config.workspace_root)
        self.tracker = tracker if tracker is not None else ChangeTracker(config.state_file)
        self.sink = sink
        self.reporter = reporter or DiagnosticsReporter()
        self.logger = logging.getLogger("VerificationSession")

        self.engine = SyncEngine(host, self.workspace, config.sync)
        self.renderer = ProgressRenderer(sink)
        self.jobs = JobClient(
            server,
            poll_interval=config.job_server.poll_interval,
            queue_grace_period=config.job_server.queue_grace_period,
            on_queued=self._on_queued,
            on_environment_ready=self._on_environment_ready,
            on_progress=self._on_progress,
            sleep=sleep,
        )

        self._document = ""
        self._command = ""
        self._syncing = False
        self._cancel_requested = False

    @property
    def active(self) -> bool:
        return self._syncing or self.jobs.active

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def _write(self, text: str) -> None:
        if self.sink is not None and text:
            self.sink.append(text)

    def _write_line(self, text: str = "") -> None:
        self._write(text + "\n")

    def _on_queued(self, queue_num: int) -> None:
        self._write_line(
            f"Your verification request is in queue. There are {queue_num} requests ahead."
        )

    def _on_environment_ready(self, snapshot: JobSnapshot) -> None:
        if snapshot.makeenv_text:
            self._write_line(snapshot.makeenv_text)
        self._write_line(f"Running {self._command} on {self._document}\n")
        self._write_line(self.renderer.header())

    def _on_progress(self, snapshot: JobSnapshot) -> None:
        self.renderer.update(snapshot)

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def _check_document(self, document: str | Path) -> Path:
        path = self.workspace.resolve(document)
        extension = self.config.file_extension
        if extension and path.suffix != extension:
            raise UnsupportedFileError(str(path), f"not a {extension} file")
        if self.workspace.relative_path(path) is None:
            raise UnsupportedFileError(str(path), f"outside workspace {self.workspace.root}")
        if not self.workspace.exists(path):
            raise UnsupportedFileError(str(path), "file does not exist")
        return path

    def sync(self) -> SyncResult:
        """Sync everything recorded so far."""
        return self.engine.sync_tracked(self.tracker)

    async def _run_sync(self) -> SyncResult:
        """Run the blocking sync in a worker thread so cancel() can arrive meanwhile."""
        self._syncing = True
        self._cancel_requested = False
        try:
            return await asyncio.to_thread(self.sync)
        finally:
            self._syncing = False

    def _sync_single(self, path: Path) -> SyncResult:
        result = self.engine.sync([path])
        if not result.dry_run:
            self.tracker.discard([path])
        return result

    async def verify(self, document: str | Path, command: str = "verifier") -> JobOutcome:
        """
        Sync recorded changes and run a command on the server.

        Raises:
            JobBusyError: If a job is already running in this session.
            UnsupportedFileError: If the document cannot be checked.
            GitHostError: If the sync fails (nothing is drained).
            JobServerError: If the server cannot be reached.
        """
        if self.active:
            raise JobBusyError(self.jobs.job_id)

        path = self._check_document(document)
        command_name = VerifierCommand.from_string(command).value
        self.reporter.clear(str(path))

        # The checked file goes up even if no change was recorded for it
        self.tracker.record_change(path)
        result = await self._run_sync()
        self.logger.debug(result.summary())

        self._document = str(path)
        self._command = command_name
        self.renderer.reset()

        if self._cancel_requested:
            # Cancelled while syncing; the job is never submitted
            outcome = JobOutcome(job_id="", command=command_name, state=JobState.CANCELLED)
            self._report_outcome(outcome, str(path))
            return outcome

        outcome = await self.jobs.run(command_name, str(path), self.host.repository_url)
        self._report_outcome(outcome, str(path))
        return outcome

    def _report_outcome(self, outcome: JobOutcome, document: str) -> None:
        if outcome.state is JobState.CANCELLED:
            self._write_line("\nCancelled.")
            return

        if outcome.failed_stage is JobStage.ENVIRONMENT:
            self.reporter.report(document, outcome.errors, DiagnosticSeverity.ERROR)
            return

        self.renderer.finish(outcome.num_of_errors)
        self._write_line("\nEnd.")
        if outcome.state is JobState.FAILED:
            self._write_line(ERRORS_DETECTED)
            self.reporter.report(document, outcome.errors, DiagnosticSeverity.ERROR)

    async def lint(self, document: str | Path) -> list[Diagnostic]:
        """Sync one file, lint it and report the findings."""
        path = self._check_document(document)
        self.reporter.clear(str(path))
        self._sync_single(path)

        errors = await self.server.lint(
            path.name, self.host.repository_url, self.config.lint.to_settings()
        )
        return self.reporter.report(str(path), errors, DiagnosticSeverity.INFORMATION)

    async def format(self, document: str | Path, write: bool = False) -> str:
        """
        Sync one file and format it on the server.

        Args:
            document: File to format
            write: Replace the local file with the result

        Returns:
            The formatted file body.
        """
        path = self._check_document(document)
        self._sync_single(path)

        formatted = await self.server.format(
            path.name, self.host.repository_url, self.config.format.to_settings()
        )
        if write:
            self.workspace.write_text(path, formatted)
            self.tracker.record_change(path)
            self.logger.info(f"Formatted {path}")
        return formatted

    def cancel(self) -> bool:
        """
        Stop the running job, if any.

        During the sync that precedes a job, the sync runs to completion and
        the job is then not submitted.
        """
        if self._syncing:
            self._cancel_requested = True
            return True
        return self.jobs.cancel()

    async def close(self) -> None:
        self.host.close()
        await self.server.close()
