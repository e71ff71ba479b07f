"""Reconciliation of desired question trees against persisted state."""

from __future__ import annotations

import hashlib
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field

from folio_core.limiter import gather_fail_fast
from folio_core.ports.collaborators import ModerationGateProtocol
from folio_core.ports.orchestrator import (
    LogSinkProtocol,
    PublishError,
    PublishErrorCode,
    PublishErrorDetails,
    PublishErrorInfo,
    build_event_log,
)
from folio_core.ports.storage import QuestionStoreProtocol
from folio_schemas.assignments import QuestionWithVariants, Variant
from folio_schemas.events import ReconcileEvent
from folio_schemas.logs import LogEntry
from folio_schemas.primitives import (
    AssignmentId,
    DraftId,
    JobId,
    PublishStep,
    QuestionId,
    Timestamp,
    now_timestamp,
)
from folio_schemas.publish import QuestionDraft, VariantDraft


def normalize_text(text: str) -> str:
    """Trim surrounding whitespace from source text.

    Returns:
        str: Trimmed text.
    """
    return text.strip()


def compute_content_hash(text: str) -> str:
    """Hash variant content with all whitespace runs collapsed.

    Returns:
        str: Hex-encoded SHA-256 digest.
    """
    normalized = " ".join(text.split())
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


@dataclass(slots=True)
class ReconciliationResult:
    """Outcome of reconciling one assignment's questions."""

    id_map: dict[DraftId, QuestionId]
    questions: list[QuestionWithVariants]
    created_question_ids: list[QuestionId] = field(default_factory=list)
    deleted_question_ids: list[QuestionId] = field(default_factory=list)

    def resolve_order(self, draft_ids: list[DraftId]) -> list[QuestionId]:
        """Rewrite desired ids through the id map, keeping their order.

        Args:
            draft_ids: Question ids in desired order.

        Returns:
            list[QuestionId]: Persisted ids in the same relative order.
        """
        return [self.id_map[draft_id] for draft_id in draft_ids]


class ReconciliationEngine:
    """Derives create, update and soft-delete sets for questions and variants."""

    def __init__(
        self,
        question_store: QuestionStoreProtocol,
        moderation_gate: ModerationGateProtocol,
        log_sink: LogSinkProtocol | None = None,
        clock: Callable[[], Timestamp] | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            question_store: Store for question and variant rows.
            moderation_gate: Approval check for changed question text.
            log_sink: Optional sink for entity-level events.
            clock: Optional timestamp provider.
        """
        self._question_store = question_store
        self._moderation_gate = moderation_gate
        self._log_sink = log_sink
        self._clock = clock or now_timestamp

    async def reconcile(
        self,
        assignment_id: AssignmentId,
        persisted: list[QuestionWithVariants],
        desired: list[QuestionDraft],
        job_id: JobId | None = None,
    ) -> ReconciliationResult:
        """Bring persisted questions in line with the desired list.

        Persisted questions absent from the desired list are soft-deleted and
        their variants are left as they are. Desired questions are reconciled
        concurrently; writes already made are kept when one of them fails.

        Args:
            assignment_id: Assignment owning the questions.
            persisted: Active persisted questions with their active variants.
            desired: Desired questions in order.
            job_id: Publish job, for log correlation.

        Returns:
            ReconciliationResult: Id map and final questions in desired order.
        """
        persisted_by_id = {question.id: question for question in persisted}
        desired_ids = {draft.id for draft in desired}
        deleted: list[QuestionId] = []
        for question in persisted:
            if question.id in desired_ids:
                continue
            await self._question_store.soft_delete_question(question.id)
            deleted.append(question.id)
            await self._emit_log(
                job_id,
                ReconcileEvent.QUESTION_SOFT_DELETED,
                "Question soft-deleted",
                {"question_id": question.id},
            )

        questions = await gather_fail_fast(
            [
                lambda draft=draft: self._reconcile_question(
                    assignment_id, draft, _lookup(persisted_by_id, draft.id), job_id
                )
                for draft in desired
            ]
        )
        id_map = {
            draft.id: question.id
            for draft, question in zip(desired, questions, strict=True)
        }
        created = [
            question.id
            for draft, question in zip(desired, questions, strict=True)
            if _lookup(persisted_by_id, draft.id) is None
        ]
        return ReconciliationResult(
            id_map=id_map,
            questions=questions,
            created_question_ids=created,
            deleted_question_ids=deleted,
        )

    async def _reconcile_question(
        self,
        assignment_id: AssignmentId,
        draft: QuestionDraft,
        existing: QuestionWithVariants | None,
        job_id: JobId | None,
    ) -> QuestionWithVariants:
        if existing is None:
            question = await self._question_store.create_question(assignment_id, draft)
            await self._emit_log(
                job_id,
                ReconcileEvent.QUESTION_CREATED,
                "Question created",
                {"question_id": question.id, "draft_id": str(draft.id)},
            )
            persisted_variants: list[Variant] = []
        else:
            if normalize_text(draft.question) != normalize_text(existing.question):
                await self._moderate(draft, existing.id)
            question = await self._question_store.update_question(existing.id, draft)
            persisted_variants = existing.variants
        variants = await self._reconcile_variants(
            question.id, draft.variants, persisted_variants, job_id
        )
        return QuestionWithVariants(**question.model_dump(), variants=variants)

    async def _moderate(self, draft: QuestionDraft, question_id: QuestionId) -> None:
        accepted = await self._moderation_gate.validate(draft.question)
        if accepted:
            return
        raise PublishError(
            PublishErrorInfo(
                code=PublishErrorCode.MODERATION_REJECTED,
                message=f"Question {question_id} was rejected by content moderation",
                details=PublishErrorDetails(
                    step=PublishStep.QUESTIONS,
                    question_id=question_id,
                    field="question",
                ),
            )
        )

    async def _reconcile_variants(
        self,
        question_id: QuestionId,
        drafts: list[VariantDraft],
        persisted: list[Variant],
        job_id: JobId | None,
    ) -> list[Variant]:
        matches = match_variants(drafts, persisted)
        matched_ids = {variant.id for variant in matches if variant is not None}
        for variant in persisted:
            if variant.id in matched_ids:
                continue
            await self._question_store.soft_delete_variant(variant.id)
            await self._emit_log(
                job_id,
                ReconcileEvent.VARIANT_SOFT_DELETED,
                "Variant soft-deleted",
                {"question_id": question_id, "variant_id": variant.id},
            )

        results: list[Variant] = []
        for draft, match in zip(drafts, matches, strict=True):
            content_hash = compute_content_hash(draft.variant_content)
            if match is None:
                variant = await self._question_store.create_variant(
                    question_id, draft, content_hash
                )
                await self._emit_log(
                    job_id,
                    ReconcileEvent.VARIANT_CREATED,
                    "Variant created",
                    {"question_id": question_id, "variant_id": variant.id},
                )
            else:
                variant = await self._question_store.update_variant(
                    match.id, draft, content_hash
                )
            results.append(variant)
        return results

    async def _emit_log(
        self,
        job_id: JobId | None,
        event: ReconcileEvent,
        message: str,
        data: dict[str, int | str],
    ) -> None:
        if self._log_sink is None:
            return
        entry: LogEntry = build_event_log(
            self._clock(),
            job_id,
            PublishStep.QUESTIONS,
            event,
            message,
            data=dict(data),
        )
        await self._log_sink.emit_log(entry)


def match_variants(
    drafts: list[VariantDraft], persisted: list[Variant]
) -> list[Variant | None]:
    """Pair desired variants with persisted ones.

    A draft first matches the persisted variant carrying its id, then any
    remaining persisted variant with the same content hash. Each persisted
    variant is matched at most once.

    Args:
        drafts: Desired variants of one question.
        persisted: Active persisted variants of the same question.

    Returns:
        list[Variant | None]: Match for each draft, aligned to input order.
    """
    by_id = {variant.id: variant for variant in persisted}
    by_hash: dict[str, list[Variant]] = defaultdict(list)
    for variant in persisted:
        by_hash[variant.content_hash].append(variant)
    matches: list[Variant | None] = [None] * len(drafts)
    claimed: set[int] = set()

    for index, draft in enumerate(drafts):
        if not isinstance(draft.id, int) or isinstance(draft.id, bool):
            continue
        variant = by_id.get(draft.id)
        if variant is None or variant.id in claimed:
            continue
        matches[index] = variant
        claimed.add(variant.id)

    for index, draft in enumerate(drafts):
        if matches[index] is not None:
            continue
        content_hash = compute_content_hash(draft.variant_content)
        for variant in by_hash.get(content_hash, []):
            if variant.id in claimed:
                continue
            matches[index] = variant
            claimed.add(variant.id)
            break
    return matches


def _lookup(
    persisted_by_id: dict[QuestionId, QuestionWithVariants], draft_id: DraftId
) -> QuestionWithVariants | None:
    if not isinstance(draft_id, int) or isinstance(draft_id, bool):
        return None
    return persisted_by_id.get(draft_id)
