"""Unit tests for publish dispatch and status polling."""

import pytest

from folio_core.ports.orchestrator import PublishError, PublishErrorCode
from folio_core.service import build_status_view
from folio_schemas.jobs import Job
from folio_schemas.primitives import JobStatus
from tests.helpers.publish import (
    ASSIGNMENT_ID,
    USER_ID,
    PublishHarness,
    StubModerationGate,
    StubTranslationProvider,
    build_request,
    text_question,
)


@pytest.mark.asyncio
async def test_publish_returns_handle_before_run_finishes() -> None:
    """Ensure publishing schedules the run and returns immediately."""
    harness = PublishHarness(provider=StubTranslationProvider(delay=0.05))
    harness.seed_assignment()

    handle = await harness.service.publish_assignment(
        ASSIGNMENT_ID, build_request([text_question("q", "Hello")]), USER_ID
    )

    assert handle.message == "Publishing started"
    assert harness.service.running_jobs == [handle.job_id]
    status = await harness.service.get_job_status(handle.job_id)
    assert status.done is False

    final = await harness.service.wait_for_job(handle.job_id)
    assert final.status == JobStatus.COMPLETED
    assert final.percentage == 100
    assert final.done is True
    assert final.result is not None
    assert harness.service.running_jobs == []


@pytest.mark.asyncio
async def test_publish_rejects_failed_preconditions(harness: PublishHarness) -> None:
    """Ensure no job is created when preconditions fail."""
    harness.seed_assignment()

    with pytest.raises(PublishError) as exc_info:
        await harness.service.publish_assignment(
            ASSIGNMENT_ID, build_request(introduction=""), USER_ID
        )

    assert exc_info.value.info.code == PublishErrorCode.PRECONDITION_FAILED
    assert harness.store.jobs == []


@pytest.mark.asyncio
async def test_publish_rejects_missing_assignment(harness: PublishHarness) -> None:
    """Ensure publishing an unknown assignment fails synchronously."""
    with pytest.raises(PublishError) as exc_info:
        await harness.service.publish_assignment(
            ASSIGNMENT_ID, build_request(), USER_ID
        )

    assert exc_info.value.info.code == PublishErrorCode.ASSIGNMENT_NOT_FOUND


@pytest.mark.asyncio
async def test_background_failure_is_recorded_on_job() -> None:
    """Ensure a failing run is visible through polling and logged."""
    harness = PublishHarness(moderation=StubModerationGate({"Rejected"}))
    harness.seed_assignment()
    first = await harness.service.publish_assignment(
        ASSIGNMENT_ID, build_request([text_question("q", "Accepted")]), USER_ID
    )
    await harness.service.wait_for_job(first.job_id)

    second = await harness.service.publish_assignment(
        ASSIGNMENT_ID, build_request([text_question(1, "Rejected")]), USER_ID
    )
    status = await harness.service.wait_for_job(second.job_id)

    assert status.status == JobStatus.FAILED
    assert status.done is True
    assert status.result is not None
    assert status.result.success is False
    assert status.progress.startswith("Error during Processing questions")
    assert "publish_task_failed" in harness.log_sink.events()


@pytest.mark.asyncio
async def test_get_job_status_unknown_job(harness: PublishHarness) -> None:
    """Ensure polling an unknown job raises job_not_found."""
    with pytest.raises(PublishError) as exc_info:
        await harness.service.get_job_status(404)

    assert exc_info.value.info.code == PublishErrorCode.JOB_NOT_FOUND


@pytest.mark.asyncio
async def test_drain_waits_for_every_run() -> None:
    """Ensure drain returns only after all scheduled runs settle."""
    harness = PublishHarness(provider=StubTranslationProvider(delay=0.01))
    harness.seed_assignment()
    handles = [
        await harness.service.publish_assignment(
            ASSIGNMENT_ID,
            build_request([text_question("q", f"Text {index}")]),
            USER_ID,
        )
        for index in range(3)
    ]

    await harness.service.drain()

    assert harness.service.running_jobs == []
    for handle in handles:
        status = await harness.service.get_job_status(handle.job_id)
        assert status.done is True


def test_build_status_view_marks_terminal_jobs() -> None:
    """Ensure only completed and failed jobs are reported done."""
    job = Job(
        id=3,
        assignment_id=1,
        user_id="author",
        status=JobStatus.IN_PROGRESS,
        progress="Starting: Processing questions",
        percentage=16,
        created_at="2026-01-26T12:00:00Z",
        updated_at="2026-01-26T12:00:01Z",
    )

    view = build_status_view(job)

    assert view.job_id == 3
    assert view.percentage == 16
    assert view.done is False
    assert build_status_view(job.model_copy(update={"status": "failed"})).done is True
