"""
Tests for the JobClient state machine, poll timing and cancellation.
"""

import asyncio

import pytest

from emverify.application.jobs import JobClient, advance_state, failed_stage
from emverify.core.domain.entities import JobSnapshot
from emverify.core.domain.enums import JobStage, JobState
from emverify.core.exceptions import JobBusyError, JobServerError


REPO = "https://github.com/owner/repo"


class RecordedSleep:
    """Sleep function that records delays and returns immediately."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


async def wait_until(condition, attempts=100):
    for _ in range(attempts):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


@pytest.fixture
def sleep():
    return RecordedSleep()


@pytest.fixture
def events():
    return []


@pytest.fixture
def client(job_server, sleep, events):
    return JobClient(
        job_server,
        poll_interval=1.0,
        queue_grace_period=5.0,
        on_queued=lambda n: events.append(("queued", n)),
        on_environment_ready=lambda s: events.append(("environment", s.makeenv_text)),
        on_progress=lambda s: events.append(("progress", s.progress_percent)),
        on_finished=lambda o: events.append(("finished", o.state)),
        sleep=sleep,
    )


# =============================================================================
# State machine
# =============================================================================


class TestAdvanceState:
    @pytest.mark.parametrize(
        "snapshot,expected",
        [
            (JobSnapshot(queue_num=3), JobState.QUEUED),
            (JobSnapshot(queue_num=0), JobState.PREPARING_ENV),
            (JobSnapshot(is_makeenv_finish=True, is_makeenv_success=False), JobState.FAILED),
            (JobSnapshot(is_makeenv_finish=True, is_makeenv_success=True), JobState.RUNNING_ANALYSIS),
            (
                JobSnapshot(
                    is_makeenv_finish=True,
                    is_makeenv_success=True,
                    is_verifier_finish=True,
                    is_verifier_success=True,
                ),
                JobState.SUCCEEDED,
            ),
            (
                JobSnapshot(
                    is_makeenv_finish=True,
                    is_makeenv_success=True,
                    is_verifier_finish=True,
                    is_verifier_success=False,
                ),
                JobState.FAILED,
            ),
        ],
    )
    def test_transitions_from_queued(self, snapshot, expected):
        assert advance_state(JobState.QUEUED, snapshot) is expected

    @pytest.mark.parametrize("state", [JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELLED])
    def test_terminal_states_are_final(self, state):
        snapshot = JobSnapshot(is_makeenv_finish=True, is_makeenv_success=True)
        assert advance_state(state, snapshot) is state

    def test_analysis_does_not_regress(self):
        assert advance_state(JobState.RUNNING_ANALYSIS, JobSnapshot(queue_num=2)) is (
            JobState.RUNNING_ANALYSIS
        )

    def test_failed_stage(self):
        assert failed_stage(JobSnapshot(is_makeenv_finish=True)) is JobStage.ENVIRONMENT
        assert failed_stage(
            JobSnapshot(is_makeenv_finish=True, is_makeenv_success=True, is_verifier_finish=True)
        ) is JobStage.ANALYSIS


# =============================================================================
# Polling
# =============================================================================


class TestRun:
    @pytest.mark.asyncio
    async def test_successful_job(self, client, job_server, make_status, events, sleep):
        job_server.statuses = [
            make_status(queueNum=2),
            make_status(queueNum=1),
            make_status(),
            make_status(
                isMakeenvFinish=True,
                isMakeenvSuccess=True,
                makeenvText="Make Environment",
                progressPhases=["Parser"],
                progressPercent=40,
            ),
            make_status(
                isMakeenvFinish=True,
                isMakeenvSuccess=True,
                progressPhases=["Parser"],
                progressPercent=100,
                isVerifierFinish=True,
                isVerifierSuccess=True,
            ),
        ]

        outcome = await client.run("verifier", "/w/text/article.miz", REPO)

        assert outcome.state is JobState.SUCCEEDED
        assert outcome.polls == 5
        assert job_server.submitted == [("verifier", "article.miz", REPO)]
        assert sleep.delays == [5.0, 5.0, 1.0, 1.0]
        assert events == [
            ("queued", 2),
            ("queued", 1),
            ("environment", "Make Environment"),
            ("progress", 40.0),
            ("progress", 100.0),
            ("finished", JobState.SUCCEEDED),
        ]
        assert not client.active
        assert client.job_id is None

    @pytest.mark.asyncio
    async def test_analysis_failure(self, client, job_server, make_status):
        job_server.statuses = [
            make_status(
                isMakeenvFinish=True,
                isMakeenvSuccess=True,
                isVerifierFinish=True,
                isVerifierSuccess=False,
                numOfErrors=2,
                errorList=[
                    {"errorLine": 3, "errorColumn": 7, "errorMessage": "Unknown label"},
                    {"errorLine": 9, "errorColumn": 1, "errorMessage": "Unexpected end"},
                ],
            )
        ]

        outcome = await client.run("verifier", "a.miz", REPO)

        assert outcome.state is JobState.FAILED
        assert outcome.failed_stage is JobStage.ANALYSIS
        assert outcome.num_of_errors == 2
        assert [e.line for e in outcome.errors] == [3, 9]

    @pytest.mark.asyncio
    async def test_environment_failure(self, client, job_server, make_status, events):
        job_server.statuses = [
            make_status(
                isMakeenvFinish=True,
                isMakeenvSuccess=False,
                errorList=[{"errorLine": 1, "errorColumn": 1, "errorMessage": "bad environ"}],
            )
        ]

        outcome = await client.run("verifier", "a.miz", REPO)

        assert outcome.state is JobState.FAILED
        assert outcome.failed_stage is JobStage.ENVIRONMENT
        assert outcome.errors[0].message == "bad environ"
        assert events == [("finished", JobState.FAILED)]

    @pytest.mark.asyncio
    async def test_poll_error_leaves_client_idle(self, client, job_server):
        job_server.statuses = [JobServerError("Could not reach job server")]

        with pytest.raises(JobServerError):
            await client.run("verifier", "a.miz", REPO)

        assert not client.active
        assert client.job_id is None

    @pytest.mark.asyncio
    async def test_submit_error_leaves_client_idle(self, client, job_server):
        def fail():
            raise JobServerError("rejected", status_code=400)

        job_server.on_submit = fail

        with pytest.raises(JobServerError):
            await client.submit("verifier", "a.miz", REPO)
        assert not client.active

    @pytest.mark.asyncio
    async def test_wait_without_submit(self, client):
        with pytest.raises(JobServerError, match="No job"):
            await client.wait()

    @pytest.mark.asyncio
    async def test_default_sleep(self, job_server, make_status):
        job_server.statuses = [
            make_status(),
            make_status(
                isMakeenvFinish=True,
                isMakeenvSuccess=True,
                isVerifierFinish=True,
                isVerifierSuccess=True,
            ),
        ]
        client = JobClient(job_server, poll_interval=0.001)

        outcome = await client.run("verifier", "a.miz", REPO)
        assert outcome.succeeded


# =============================================================================
# Concurrency
# =============================================================================


class TestBusy:
    @pytest.mark.asyncio
    async def test_second_submit_is_rejected_without_request(self, job_server, make_status):
        release = asyncio.Event()

        async def blocking_sleep(delay):
            await release.wait()

        job_server.statuses = [make_status(queueNum=1)]
        client = JobClient(job_server, sleep=blocking_sleep)
        task = asyncio.create_task(client.run("verifier", "a.miz", REPO))
        await wait_until(lambda: len(job_server.polled) == 1)

        with pytest.raises(JobBusyError) as exc_info:
            await client.submit("verifier", "b.miz", REPO)

        assert exc_info.value.job_id == "job-1"
        assert len(job_server.submitted) == 1

        client.cancel()
        outcome = await task
        assert outcome.cancelled


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_idle_client(self, client):
        assert client.cancel() is False

    @pytest.mark.asyncio
    async def test_cancel_during_wait(self, job_server, make_status, events):
        async def blocking_sleep(delay):
            await asyncio.Event().wait()

        job_server.statuses = [make_status(queueNum=4)]
        client = JobClient(
            job_server,
            on_finished=lambda o: events.append(o.state),
            sleep=blocking_sleep,
        )
        task = asyncio.create_task(client.run("verifier", "a.miz", REPO))
        await wait_until(lambda: client._timer is not None)

        assert client.cancel() is True
        outcome = await task

        assert outcome.state is JobState.CANCELLED
        assert job_server.cancelled == ["job-1"]
        assert len(job_server.polled) == 1
        assert events == [JobState.CANCELLED]
        assert not client.active

    @pytest.mark.asyncio
    async def test_response_in_flight_is_discarded(self, client, job_server, make_status, events):
        job_server.statuses = [
            make_status(
                isMakeenvFinish=True,
                isMakeenvSuccess=True,
                isVerifierFinish=True,
                isVerifierSuccess=False,
                numOfErrors=3,
            )
        ]
        # cancel() arrives while the poll request is outstanding
        job_server.on_poll = lambda n: client.cancel()

        outcome = await client.run("verifier", "a.miz", REPO)

        assert outcome.state is JobState.CANCELLED
        assert outcome.num_of_errors == 0
        assert outcome.failed_stage is None
        assert events == [("finished", JobState.CANCELLED)]
        assert job_server.cancelled == ["job-1"]

    @pytest.mark.asyncio
    async def test_cancel_before_id_is_known(self, client, job_server, make_status):
        job_server.statuses = [make_status()]
        job_server.on_submit = lambda: client.cancel()

        outcome = await client.run("verifier", "a.miz", REPO)

        assert outcome.cancelled
        assert job_server.polled == []
        assert job_server.cancelled == ["job-1"]

    @pytest.mark.asyncio
    async def test_server_refusing_cancel_is_logged(self, client, job_server, make_status, caplog):
        async def refuse(job_id):
            raise JobServerError("gone")

        job_server.cancel = refuse
        job_server.statuses = [make_status()]
        job_server.on_poll = lambda n: client.cancel()

        outcome = await client.run("verifier", "a.miz", REPO)

        assert outcome.cancelled
        assert "did not accept cancellation" in caplog.text

    @pytest.mark.asyncio
    async def test_unresponsive_server_does_not_hold_up_cancel(
        self, job_server, make_status, caplog
    ):
        release = asyncio.Event()

        async def hang(job_id):
            await release.wait()
            job_server.cancelled.append(job_id)

        job_server.cancel = hang
        job_server.statuses = [make_status()]
        client = JobClient(job_server, cancel_timeout=0.01)
        job_server.on_poll = lambda n: client.cancel()

        outcome = await asyncio.wait_for(client.run("verifier", "a.miz", REPO), timeout=5)

        assert outcome.cancelled
        assert not client.active
        assert "has not confirmed cancellation" in caplog.text

        # The request is still allowed to finish
        release.set()
        await wait_until(lambda: job_server.cancelled == ["job-1"])
