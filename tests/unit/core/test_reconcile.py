"""Unit tests for question and variant reconciliation."""

import pytest

from folio_core.ports.orchestrator import PublishError, PublishErrorCode
from folio_core.reconcile import (
    ReconciliationEngine,
    compute_content_hash,
    match_variants,
)
from folio_io.storage import InMemoryLogSink, InMemoryStore
from folio_schemas.assignments import Question, Variant
from folio_schemas.publish import QuestionDraft, VariantDraft
from tests.helpers.publish import StubModerationGate, text_question

ASSIGNMENT_ID = 1


def _question(question_id: int, text: str) -> Question:
    return Question(
        id=question_id,
        assignment_id=ASSIGNMENT_ID,
        question=text,
        type="TEXT",
        total_points=5,
    )


def _variant(variant_id: int, question_id: int, content: str) -> Variant:
    return Variant(
        id=variant_id,
        question_id=question_id,
        variant_content=content,
        content_hash=compute_content_hash(content),
    )


def _engine(
    rejected: set[str] | None = None,
) -> tuple[ReconciliationEngine, InMemoryStore, StubModerationGate, InMemoryLogSink]:
    store = InMemoryStore()
    moderation = StubModerationGate(rejected)
    sink = InMemoryLogSink()
    engine = ReconciliationEngine(store, moderation, log_sink=sink)
    return engine, store, moderation, sink


def test_content_hash_ignores_whitespace_runs() -> None:
    """Ensure whitespace differences do not change the content hash."""
    assert compute_content_hash("What  is\n a cell?") == compute_content_hash(
        " What is a cell? "
    )
    assert compute_content_hash("a cell") != compute_content_hash("a Cell")


def test_match_variants_prefers_id_then_hash() -> None:
    """Ensure ids win over content and each persisted variant matches once."""
    persisted = [_variant(1, 9, "Alpha"), _variant(2, 9, "Beta")]
    drafts = [
        VariantDraft(id=2, variant_content="Changed"),
        VariantDraft(id="new", variant_content="Alpha"),
        VariantDraft(variant_content="Alpha"),
    ]

    matches = match_variants(drafts, persisted)

    assert [match.id if match else None for match in matches] == [2, 1, None]


@pytest.mark.asyncio
async def test_reconcile_creates_updates_and_soft_deletes() -> None:
    """Ensure absent questions are retired and new ones created in order."""
    engine, store, _, sink = _engine()
    store.put_question(_question(1, "Keep me"))
    store.put_question(_question(2, "Drop me"))
    persisted = await store.list_active_questions(ASSIGNMENT_ID)

    result = await engine.reconcile(
        ASSIGNMENT_ID,
        persisted,
        [
            QuestionDraft.model_validate(text_question("draft-a", "Brand new")),
            QuestionDraft.model_validate(text_question(1, "Keep me", total_points=8)),
        ],
        job_id=5,
    )

    assert result.id_map == {"draft-a": 3, 1: 1}
    assert result.created_question_ids == [3]
    assert result.deleted_question_ids == [2]
    assert [question.id for question in result.questions] == [3, 1]
    assert result.questions[1].total_points == 8
    deleted = [question for question in store.questions if question.is_deleted]
    assert [question.id for question in deleted] == [2]
    assert sink.events() == ["question_soft_deleted", "question_created"]
    assert all(entry.job_id == 5 for entry in sink.entries)


@pytest.mark.asyncio
async def test_reconcile_treats_unknown_int_id_as_new() -> None:
    """Ensure an integer id that is not persisted creates a question."""
    engine, store, _, _ = _engine()

    result = await engine.reconcile(
        ASSIGNMENT_ID,
        [],
        [QuestionDraft.model_validate(text_question(42, "Fresh"))],
    )

    assert result.id_map == {42: 1}
    assert [question.id for question in store.questions] == [1]


@pytest.mark.asyncio
async def test_moderation_runs_only_for_changed_text() -> None:
    """Ensure unchanged text, ignoring surrounding whitespace, skips moderation."""
    engine, store, moderation, _ = _engine()
    store.put_question(_question(1, "Same text"))
    store.put_question(_question(2, "Old text"))
    persisted = await store.list_active_questions(ASSIGNMENT_ID)

    await engine.reconcile(
        ASSIGNMENT_ID,
        persisted,
        [
            QuestionDraft.model_validate(text_question(1, "  Same text  ")),
            QuestionDraft.model_validate(text_question(2, "New text")),
        ],
    )

    assert moderation.calls == ["New text"]


@pytest.mark.asyncio
async def test_moderation_rejection_raises_publish_error() -> None:
    """Ensure rejected question text fails reconciliation."""
    engine, store, _, _ = _engine(rejected={"Bad text"})
    store.put_question(_question(1, "Good text"))
    persisted = await store.list_active_questions(ASSIGNMENT_ID)

    with pytest.raises(PublishError) as exc_info:
        await engine.reconcile(
            ASSIGNMENT_ID,
            persisted,
            [QuestionDraft.model_validate(text_question(1, "Bad text"))],
        )

    assert exc_info.value.info.code == PublishErrorCode.MODERATION_REJECTED
    assert exc_info.value.info.details is not None
    assert exc_info.value.info.details.question_id == 1
    assert store.questions[0].question == "Good text"


@pytest.mark.asyncio
async def test_new_questions_skip_moderation() -> None:
    """Ensure created questions are not sent to moderation."""
    engine, _, moderation, _ = _engine(rejected={"Anything"})

    await engine.reconcile(
        ASSIGNMENT_ID,
        [],
        [QuestionDraft.model_validate(text_question("n1", "Anything"))],
    )

    assert moderation.calls == []


@pytest.mark.asyncio
async def test_variants_are_matched_updated_and_retired() -> None:
    """Ensure variant reconciliation keeps matches and retires leftovers."""
    engine, store, _, sink = _engine()
    store.put_question(_question(1, "Parent"))
    store.put_variant(_variant(1, 1, "Keep by id"))
    store.put_variant(_variant(2, 1, "Keep  by hash"))
    store.put_variant(_variant(3, 1, "Retire me"))
    persisted = await store.list_active_questions(ASSIGNMENT_ID)
    draft = QuestionDraft.model_validate(
        text_question(
            1,
            "Parent",
            variants=[
                {"id": 1, "variant_content": "Kept by id, reworded"},
                {"variant_content": "Keep by hash"},
                {"variant_content": "Another variant"},
            ],
        )
    )

    result = await engine.reconcile(ASSIGNMENT_ID, persisted, [draft])

    variants = result.questions[0].variants
    assert [variant.id for variant in variants] == [1, 2, 4]
    assert variants[0].variant_content == "Kept by id, reworded"
    assert variants[0].content_hash == compute_content_hash("Kept by id, reworded")
    retired = [variant.id for variant in store.variants if variant.is_deleted]
    assert retired == [3]
    assert sink.events() == ["variant_soft_deleted", "variant_created"]


@pytest.mark.asyncio
async def test_resolve_order_follows_desired_order() -> None:
    """Ensure provisional ids resolve to persisted ids in request order."""
    engine, store, _, _ = _engine()
    store.put_question(_question(7, "Existing"))
    persisted = await store.list_active_questions(ASSIGNMENT_ID)
    drafts = [
        QuestionDraft.model_validate(text_question("b", "Second new")),
        QuestionDraft.model_validate(text_question(7, "Existing")),
        QuestionDraft.model_validate(text_question("a", "First new")),
    ]

    result = await engine.reconcile(ASSIGNMENT_ID, persisted, drafts)

    order = result.resolve_order([draft.id for draft in drafts])
    assert order[1] == 7
    assert sorted(order) == [7, 8, 9]
    assert len(set(order)) == 3
