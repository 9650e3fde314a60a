"""
Job Client - submits a verification job and polls it to completion.

State machine (driven only by poll responses):

    QUEUED -> PREPARING_ENV -> RUNNING_ANALYSIS -> SUCCEEDED | FAILED
                     \\-> FAILED (environment stage)

CANCELLED is local only: the client stops polling and tells the server,
whatever the server's view of the job is.

Polls are strictly sequential: the next one is scheduled only after the
previous response has been handled. A response reporting a non-empty queue
suspends polling for the grace period instead of the poll interval.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import PurePath

from emverify.core.domain.entities import JobOutcome, JobSnapshot
from emverify.core.domain.enums import JobStage, JobState
from emverify.core.ports.job_server import JobBusyError, JobServerError, JobServerPort


logger = logging.getLogger("JobClient")

SleepFunc = Callable[[float], Awaitable[None]]

# States that come before the environment is ready
_EARLY_STATES = (JobState.QUEUED, JobState.PREPARING_ENV)


def advance_state(state: JobState, snapshot: JobSnapshot) -> JobState:
    """
    Compute the next job state from a poll response.

    Terminal states never change. Once analysis has started the job does not
    move back to an earlier state, whatever the snapshot says.
    """
    if state.is_terminal:
        return state

    if not snapshot.is_makeenv_finish:
        candidate = JobState.QUEUED if snapshot.queue_num > 0 else JobState.PREPARING_ENV
        return state if state is JobState.RUNNING_ANALYSIS else candidate

    if not snapshot.is_makeenv_success:
        return JobState.FAILED

    if snapshot.is_verifier_finish:
        return JobState.SUCCEEDED if snapshot.is_verifier_success else JobState.FAILED

    return JobState.RUNNING_ANALYSIS


def failed_stage(snapshot: JobSnapshot) -> JobStage:
    """The stage a failed snapshot failed in."""
    if not snapshot.is_makeenv_success:
        return JobStage.ENVIRONMENT
    return JobStage.ANALYSIS


class JobClient:
    """
    Runs one remote job at a time against a JobServerPort.

    Callbacks:
        on_queued(queue_num): the server reported requests ahead of ours
        on_environment_ready(snapshot): environment prepared, analysis begins
        on_progress(snapshot): every snapshot from analysis onwards
        on_finished(outcome): the job reached a terminal state

    After a cancel, ``wait`` returns once the server acknowledges the DELETE
    or ``cancel_timeout`` seconds pass, whichever comes first.
    """

    def __init__(
        self,
        server: JobServerPort,
        poll_interval: float = 1.0,
        queue_grace_period: float = 5.0,
        cancel_timeout: float = 2.0,
        on_queued: Callable[[int], None] | None = None,
        on_environment_ready: Callable[[JobSnapshot], None] | None = None,
        on_progress: Callable[[JobSnapshot], None] | None = None,
        on_finished: Callable[[JobOutcome], None] | None = None,
        sleep: SleepFunc | None = None,
    ):
        self.server = server
        self.poll_interval = poll_interval
        self.queue_grace_period = queue_grace_period
        self.cancel_timeout = cancel_timeout

        self.on_queued = on_queued
        self.on_environment_ready = on_environment_ready
        self.on_progress = on_progress
        self.on_finished = on_finished

        self._sleep: SleepFunc = sleep or asyncio.sleep

        self._busy = False
        self._job_id: str | None = None
        self._command = ""
        self._cancelled = False
        self._timer: asyncio.Future[None] | None = None
        self._background: set[asyncio.Task[None]] = set()

    @property
    def active(self) -> bool:
        """Whether a job is being submitted or polled."""
        return self._busy

    @property
    def job_id(self) -> str | None:
        return self._job_id

    # -------------------------------------------------------------------------
    # Submission and polling
    # -------------------------------------------------------------------------

    async def submit(self, command: str, target_path: str, repository_url: str) -> str:
        """
        Submit a job for a file and make it the active job.

        Raises:
            JobBusyError: If a job is already active. No request is made.
            JobServerError: If the server rejects the submission.
        """
        if self._busy:
            raise JobBusyError(self._job_id)

        self._busy = True
        self._cancelled = False
        self._command = command
        try:
            self._job_id = await self.server.submit(
                command, PurePath(target_path).name, repository_url
            )
        except BaseException:
            self._reset()
            raise

        if self._cancelled:
            # cancel() arrived before the server assigned an id
            self._schedule_cancel(self._job_id)
        return self._job_id

    async def poll(self, job_id: str) -> JobSnapshot:
        """Fetch one status snapshot."""
        return JobSnapshot.from_dict(await self.server.get_status(job_id))

    async def wait(self) -> JobOutcome:
        """
        Poll the active job until it is terminal or cancelled.

        Raises:
            JobServerError: If a poll fails. The client is idle afterwards.
        """
        if self._job_id is None:
            raise JobServerError("No job has been submitted")

        job_id = self._job_id
        outcome = JobOutcome(job_id=job_id, command=self._command, state=JobState.QUEUED)
        environment_ready = False

        try:
            while not self._cancelled:
                snapshot = await self.poll(job_id)
                outcome.polls += 1

                # Cancelled while the request was in flight
                if self._cancelled:
                    break

                outcome.state = advance_state(outcome.state, snapshot)
                logger.debug(f"Job {job_id}: {outcome.state.display_name}")

                if snapshot.queue_num > 0 and self.on_queued is not None:
                    self.on_queued(snapshot.queue_num)

                if (
                    not environment_ready
                    and snapshot.is_makeenv_finish
                    and snapshot.is_makeenv_success
                ):
                    environment_ready = True
                    if self.on_environment_ready is not None:
                        self.on_environment_ready(snapshot)

                if environment_ready and self.on_progress is not None:
                    self.on_progress(snapshot)

                if outcome.state.is_terminal:
                    outcome.num_of_errors = snapshot.num_of_errors
                    outcome.errors = list(snapshot.error_list)
                    if outcome.state is JobState.FAILED:
                        outcome.failed_stage = failed_stage(snapshot)
                    break

                delay = self.queue_grace_period if snapshot.queue_num > 0 else self.poll_interval
                await self._wait(delay)

            if self._cancelled:
                outcome.state = JobState.CANCELLED
                outcome.failed_stage = None
                if self._background:
                    # The DELETE keeps running past the timeout
                    _, pending = await asyncio.wait(
                        set(self._background), timeout=self.cancel_timeout
                    )
                    if pending:
                        logger.warning(f"Server has not confirmed cancellation of job {job_id}")
        finally:
            self._reset()

        logger.info(str(outcome))
        if self.on_finished is not None:
            self.on_finished(outcome)
        return outcome

    async def run(self, command: str, target_path: str, repository_url: str) -> JobOutcome:
        """Submit a job and wait for it."""
        await self.submit(command, target_path, repository_url)
        return await self.wait()

    async def _wait(self, delay: float) -> None:
        """Sleep between polls in a future that ``cancel`` can interrupt."""
        self._timer = asyncio.ensure_future(self._sleep(delay))
        try:
            await self._timer
        except asyncio.CancelledError:
            if not self._cancelled:
                raise
        finally:
            self._timer = None

    def _reset(self) -> None:
        self._busy = False
        self._job_id = None
        self._timer = None

    # -------------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------------

    def cancel(self) -> bool:
        """
        Stop polling the active job and tell the server, best effort.

        Safe to call from a signal handler running on the event loop.

        Returns:
            True if there was an active job to cancel.
        """
        if not self._busy:
            return False

        self._cancelled = True
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()

        if self._job_id is not None:
            self._schedule_cancel(self._job_id)
        return True

    def _schedule_cancel(self, job_id: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No event loop; server not told to cancel job {job_id}")
            return
        task = loop.create_task(self._notify_cancel(job_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _notify_cancel(self, job_id: str) -> None:
        try:
            await self.server.cancel(job_id)
        except JobServerError as e:
            logger.warning(f"Server did not accept cancellation of job {job_id}: {e}")
