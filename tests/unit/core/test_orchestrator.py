"""Unit tests for the publish orchestrator state machine."""

import pytest

from folio_core.ports.orchestrator import PublishError, PublishErrorCode
from folio_core.ports.translation import TranslationError
from folio_schemas.assignments import Question
from folio_schemas.primitives import JobStatus
from tests.helpers.publish import (
    ASSIGNMENT_ID,
    USER_ID,
    PublishHarness,
    StubLanguageDetector,
    StubModerationGate,
    StubTranslationProvider,
    build_request,
    choice_question,
    text_question,
)


async def _new_job(harness: PublishHarness) -> int:
    job = await harness.store.create_job(ASSIGNMENT_ID, USER_ID)
    return job.id


@pytest.mark.asyncio
async def test_run_completes_job_and_publishes(harness: PublishHarness) -> None:
    """Ensure a successful run publishes the assignment at 100%."""
    harness.seed_assignment()
    job_id = await _new_job(harness)
    request = build_request(
        [text_question("q-a", "What is a cell?"), text_question("q-b", "Name one")]
    )

    result = await harness.orchestrator.run(job_id, ASSIGNMENT_ID, request, USER_ID)

    assert result.success is True
    assert result.question_order == [1, 2]
    assert [question.id for question in result.questions or []] == [1, 2]
    job = await harness.store.get_job(job_id)
    assert job is not None
    assert job.status == JobStatus.COMPLETED
    assert job.percentage == 100
    assert job.progress == "Publishing completed"
    assert job.result == result
    assignment = await harness.store.get_assignment(ASSIGNMENT_ID)
    assert assignment is not None
    assert assignment.published is True
    assert assignment.question_order == [1, 2]
    assert assignment.language_code == "en"
    assert assignment.introduction == "Learn about cells"


@pytest.mark.asyncio
async def test_run_emits_lifecycle_logs(harness: PublishHarness) -> None:
    """Ensure job and step lifecycle events are logged in order."""
    harness.seed_assignment()
    job_id = await _new_job(harness)

    await harness.orchestrator.run(
        job_id, ASSIGNMENT_ID, build_request([text_question("n", "Hi")]), USER_ID
    )

    lifecycle = [
        event
        for event in harness.log_sink.events()
        if event.startswith(("job_", "settings_", "questions_", "finalize_"))
        or event.startswith("assignment_translations_")
    ]
    assert lifecycle == [
        "job_started",
        "settings_started",
        "settings_completed",
        "questions_started",
        "questions_completed",
        "assignment_translations_started",
        "assignment_translations_completed",
        "finalize_started",
        "finalize_completed",
        "job_completed",
    ]


@pytest.mark.asyncio
async def test_progress_history_is_monotonic(harness: PublishHarness) -> None:
    """Ensure every recorded percentage is at least the previous one."""
    harness.seed_assignment()
    job_id = await _new_job(harness)
    request = build_request(
        [text_question(f"q{index}", f"Question {index}") for index in range(6)]
    )

    await harness.orchestrator.run(job_id, ASSIGNMENT_ID, request, USER_ID)

    percentages = [update.percentage for update in harness.progress_sink.updates]
    assert percentages == sorted(percentages)
    assert percentages[0] == 0
    assert percentages[-1] == 100
    assert 60 in percentages


@pytest.mark.asyncio
async def test_run_requires_existing_job(harness: PublishHarness) -> None:
    """Ensure running an unknown job fails before any write."""
    harness.seed_assignment()

    with pytest.raises(PublishError) as exc_info:
        await harness.orchestrator.run(99, ASSIGNMENT_ID, build_request(), USER_ID)

    assert exc_info.value.info.code == PublishErrorCode.JOB_NOT_FOUND


@pytest.mark.asyncio
async def test_missing_assignment_leaves_job_pending(harness: PublishHarness) -> None:
    """Ensure a missing assignment is reported without touching the job."""
    job_id = await _new_job(harness)

    with pytest.raises(PublishError) as exc_info:
        await harness.orchestrator.run(job_id, ASSIGNMENT_ID, build_request(), USER_ID)

    assert exc_info.value.info.code == PublishErrorCode.ASSIGNMENT_NOT_FOUND
    job = await harness.store.get_job(job_id)
    assert job is not None
    assert job.status == JobStatus.PENDING


@pytest.mark.asyncio
async def test_blank_introduction_fails_precondition(harness: PublishHarness) -> None:
    """Ensure a whitespace-only introduction is rejected before any write."""
    harness.seed_assignment()
    job_id = await _new_job(harness)

    with pytest.raises(PublishError) as exc_info:
        await harness.orchestrator.run(
            job_id, ASSIGNMENT_ID, build_request(introduction="   "), USER_ID
        )

    assert exc_info.value.info.code == PublishErrorCode.PRECONDITION_FAILED
    job = await harness.store.get_job(job_id)
    assert job is not None
    assert job.status == JobStatus.PENDING
    assert job.percentage == 0
    assert harness.log_sink.entries == []


@pytest.mark.asyncio
async def test_empty_question_list_skips_step_and_retires_questions(
    harness: PublishHarness,
) -> None:
    """Ensure submitting no questions skips the step but retires old ones."""
    harness.seed_assignment()
    harness.store.put_question(
        Question(id=1, assignment_id=ASSIGNMENT_ID, question="Old", type="TEXT")
    )
    job_id = await _new_job(harness)

    result = await harness.orchestrator.run(
        job_id, ASSIGNMENT_ID, build_request([]), USER_ID
    )

    assert result.questions == []
    assert result.question_order == []
    assert harness.store.questions[0].is_deleted is True
    events = harness.log_sink.events()
    assert "questions_skipped" in events
    assert "questions_started" not in events
    assert harness.linker.calls == []


@pytest.mark.asyncio
async def test_moderation_rejection_fails_job() -> None:
    """Ensure a rejected question marks the job failed during questions."""
    harness = PublishHarness(moderation=StubModerationGate({"Forbidden text"}))
    harness.seed_assignment()
    harness.store.put_question(
        Question(id=1, assignment_id=ASSIGNMENT_ID, question="Fine text", type="TEXT")
    )
    job_id = await _new_job(harness)

    with pytest.raises(PublishError) as exc_info:
        await harness.orchestrator.run(
            job_id,
            ASSIGNMENT_ID,
            build_request([text_question(1, "Forbidden text")]),
            USER_ID,
        )

    assert exc_info.value.info.code == PublishErrorCode.MODERATION_REJECTED
    job = await harness.store.get_job(job_id)
    assert job is not None
    assert job.status == JobStatus.FAILED
    assert job.percentage == 16
    assert job.progress.startswith("Error during Processing questions: ")
    assert job.result is not None
    assert job.result.success is False
    assert job.result.error == str(exc_info.value)
    events = harness.log_sink.events()
    assert events[-2:] == ["questions_failed", "job_failed"]
    assert harness.log_sink.entries[-1].data is not None
    assert harness.log_sink.entries[-1].data["error_code"] == "moderation_rejected"


@pytest.mark.asyncio
async def test_failed_run_keeps_earlier_writes() -> None:
    """Ensure writes made before a failure are not rolled back."""
    harness = PublishHarness(
        moderation=StubModerationGate({"Rejected text"}, delay=0.01)
    )
    harness.seed_assignment()
    for question_id, text in ((5, "Old text"), (6, "Dropped")):
        harness.store.put_question(
            Question(
                id=question_id, assignment_id=ASSIGNMENT_ID, question=text, type="TEXT"
            )
        )
    job_id = await _new_job(harness)
    request = build_request(
        [text_question("new", "Brand new"), text_question(5, "Rejected text")],
        instructions="Read chapter one",
    )

    with pytest.raises(PublishError):
        await harness.orchestrator.run(job_id, ASSIGNMENT_ID, request, USER_ID)

    assignment = await harness.store.get_assignment(ASSIGNMENT_ID)
    assert assignment is not None
    assert assignment.introduction == "Learn about cells"
    assert assignment.instructions == "Read chapter one"
    assert assignment.language_code == "en"
    assert assignment.published is False
    assert await harness.store.has_author(ASSIGNMENT_ID, USER_ID) is True
    by_text = {question.question: question for question in harness.store.questions}
    assert by_text["Brand new"].is_deleted is False
    assert by_text["Dropped"].is_deleted is True
    assert by_text["Old text"].is_deleted is False
    assert "Rejected text" not in by_text


@pytest.mark.asyncio
async def test_translation_error_fails_job() -> None:
    """Ensure a provider returning too few choices fails the run."""
    harness = PublishHarness(provider=StubTranslationProvider(drop_choice=True))
    harness.seed_assignment()
    job_id = await _new_job(harness)

    with pytest.raises(TranslationError):
        await harness.orchestrator.run(
            job_id,
            ASSIGNMENT_ID,
            build_request([choice_question("c", "Pick", ["A", "B"])]),
            USER_ID,
        )

    job = await harness.store.get_job(job_id)
    assert job is not None
    assert job.status == JobStatus.FAILED
    assert harness.log_sink.entries[-1].data is not None
    assert harness.log_sink.entries[-1].data["error_code"] == "choice_count_mismatch"
    assignment = await harness.store.get_assignment(ASSIGNMENT_ID)
    assert assignment is not None
    assert assignment.published is False


@pytest.mark.asyncio
async def test_undetectable_introduction_clears_language() -> None:
    """Ensure an invalid detected code stores no assignment language."""
    harness = PublishHarness(detector=StubLanguageDetector(default="unknown"))
    harness.seed_assignment(language_code="fr")
    job_id = await _new_job(harness)

    await harness.orchestrator.run(job_id, ASSIGNMENT_ID, build_request(), USER_ID)

    assignment = await harness.store.get_assignment(ASSIGNMENT_ID)
    assert assignment is not None
    assert assignment.language_code is None
    assert harness.store.assignment_translations == []


@pytest.mark.asyncio
async def test_author_is_recorded_once(harness: PublishHarness) -> None:
    """Ensure repeated publishes do not duplicate authorship."""
    harness.seed_assignment()

    for _ in range(2):
        job_id = await _new_job(harness)
        await harness.orchestrator.run(
            job_id, ASSIGNMENT_ID, build_request(), USER_ID
        )

    assert len(harness.store.authors) == 1
    assert harness.store.authors[0].user_id == USER_ID


@pytest.mark.asyncio
async def test_finalize_links_grading_context(harness: PublishHarness) -> None:
    """Ensure grading-context links are stored on each published question."""
    harness.seed_assignment()
    job_id = await _new_job(harness)
    request = build_request(
        [text_question("b", "Second"), text_question("a", "First")]
    )

    result = await harness.orchestrator.run(job_id, ASSIGNMENT_ID, request, USER_ID)

    order = result.question_order or []
    assert harness.linker.calls == [order]
    questions = {question.id: question for question in result.questions or []}
    assert questions[order[0]].grading_context_question_ids == []
    assert questions[order[1]].grading_context_question_ids == [order[0]]


@pytest.mark.asyncio
async def test_settings_only_write_explicit_fields(harness: PublishHarness) -> None:
    """Ensure settings left out of the request keep their stored values."""
    harness.seed_assignment(instructions="Read chapter 2", graded=True)
    job_id = await _new_job(harness)

    await harness.orchestrator.run(
        job_id, ASSIGNMENT_ID, build_request(graded=False), USER_ID
    )

    assignment = await harness.store.get_assignment(ASSIGNMENT_ID)
    assert assignment is not None
    assert assignment.instructions == "Read chapter 2"
    assert assignment.graded is False
