"""In-memory storage adapter for every publish entity."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from folio_core.ports.storage import (
    AssignmentStoreProtocol,
    JobStoreProtocol,
    QuestionStoreProtocol,
    TranslationStoreProtocol,
    build_not_found_error,
)
from folio_core.translation import choices_key
from folio_schemas.assignments import (
    Assignment,
    AssignmentAuthor,
    AssignmentTranslation,
    AssignmentTranslationFields,
    AssignmentUpdate,
    Choice,
    Question,
    QuestionFields,
    QuestionWithVariants,
    Translation,
    TranslationContent,
    Variant,
    VariantFields,
)
from folio_schemas.jobs import Job, JobUpdate
from folio_schemas.primitives import (
    AssignmentId,
    JobId,
    LanguageCode,
    QuestionId,
    Timestamp,
    TranslationId,
    UserId,
    VariantId,
    now_timestamp,
)
from folio_schemas.storage import StoreSnapshot

_QUESTION_FIELDS = set(QuestionFields.model_fields)
_VARIANT_FIELDS = set(VariantFields.model_fields)


class InMemoryStore(
    AssignmentStoreProtocol,
    QuestionStoreProtocol,
    TranslationStoreProtocol,
    JobStoreProtocol,
):
    """Dictionary-backed store implementing every storage port.

    Each operation yields to the event loop once before touching state so
    concurrent runs interleave the way they would against a database.
    """

    def __init__(self, clock: Callable[[], Timestamp] | None = None) -> None:
        """Initialize an empty store.

        Args:
            clock: Optional timestamp provider.
        """
        self._clock = clock or now_timestamp
        self._assignments: dict[AssignmentId, Assignment] = {}
        self._authors: list[AssignmentAuthor] = []
        self._questions: dict[QuestionId, Question] = {}
        self._variants: dict[VariantId, Variant] = {}
        self._translations: list[Translation] = []
        self._assignment_translations: dict[TranslationId, AssignmentTranslation] = {}
        self._jobs: dict[JobId, Job] = {}
        self._next_ids = {
            "question": 1,
            "variant": 1,
            "translation": 1,
            "assignment_translation": 1,
            "job": 1,
        }

    @classmethod
    def from_snapshot(
        cls, snapshot: StoreSnapshot, clock: Callable[[], Timestamp] | None = None
    ) -> InMemoryStore:
        """Build a store holding the content of a snapshot.

        Returns:
            InMemoryStore: Populated store.
        """
        store = cls(clock=clock)
        for assignment in snapshot.assignments:
            store.put_assignment(assignment)
        store._authors = list(snapshot.authors)
        for question in snapshot.questions:
            store.put_question(question)
        for variant in snapshot.variants:
            store.put_variant(variant)
        for translation in snapshot.translations:
            store.put_translation(translation)
        for row in snapshot.assignment_translations:
            store._assignment_translations[row.id] = row
            store._bump("assignment_translation", row.id)
        for job in snapshot.jobs:
            store._jobs[job.id] = job
            store._bump("job", job.id)
        return store

    def to_snapshot(self) -> StoreSnapshot:
        """Return the full store content.

        Returns:
            StoreSnapshot: Serializable snapshot.
        """
        return StoreSnapshot(
            assignments=list(self._assignments.values()),
            authors=list(self._authors),
            questions=list(self._questions.values()),
            variants=list(self._variants.values()),
            translations=list(self._translations),
            assignment_translations=list(self._assignment_translations.values()),
            jobs=list(self._jobs.values()),
        )

    def put_assignment(self, assignment: Assignment) -> None:
        """Insert or replace an assignment."""
        self._assignments[assignment.id] = assignment

    def put_question(self, question: Question) -> None:
        """Insert or replace a question, ignoring any nested variants."""
        self._questions[question.id] = Question.model_validate(
            question.model_dump(exclude={"variants"})
        )
        self._bump("question", question.id)

    def put_variant(self, variant: Variant) -> None:
        """Insert or replace a variant."""
        self._variants[variant.id] = variant
        self._bump("variant", variant.id)

    def put_translation(self, translation: Translation) -> None:
        """Append an existing translation row."""
        self._translations.append(translation)
        self._bump("translation", translation.id)

    @property
    def questions(self) -> list[Question]:
        """Return every question, including soft-deleted ones."""
        return list(self._questions.values())

    @property
    def variants(self) -> list[Variant]:
        """Return every variant, including soft-deleted ones."""
        return list(self._variants.values())

    @property
    def translations(self) -> list[Translation]:
        """Return every translation row in insertion order."""
        return list(self._translations)

    @property
    def assignment_translations(self) -> list[AssignmentTranslation]:
        """Return every assignment translation row."""
        return list(self._assignment_translations.values())

    @property
    def authors(self) -> list[AssignmentAuthor]:
        """Return every authorship record."""
        return list(self._authors)

    @property
    def jobs(self) -> list[Job]:
        """Return every job record."""
        return list(self._jobs.values())

    async def get_assignment(self, assignment_id: AssignmentId) -> Assignment | None:
        """Load an assignment if present.

        Returns:
            Assignment | None: Stored assignment.
        """
        await asyncio.sleep(0)
        return self._assignments.get(assignment_id)

    async def update_assignment(
        self, assignment_id: AssignmentId, update: AssignmentUpdate
    ) -> Assignment:
        """Apply the explicitly set fields of an update.

        Returns:
            Assignment: Updated assignment.

        Raises:
            StorageError: If the assignment does not exist.
        """
        await asyncio.sleep(0)
        assignment = self._assignments.get(assignment_id)
        if assignment is None:
            raise build_not_found_error(
                "update_assignment", "Assignment", assignment_id
            )
        changes = update.model_dump(exclude_unset=True)
        updated = Assignment.model_validate(
            {**assignment.model_dump(), **changes, "updated_at": self._clock()}
        )
        self._assignments[assignment_id] = updated
        return updated

    async def has_author(self, assignment_id: AssignmentId, user_id: UserId) -> bool:
        """Return whether the user is recorded as an author.

        Returns:
            bool: True when an authorship record exists.
        """
        await asyncio.sleep(0)
        return any(
            author.assignment_id == assignment_id and author.user_id == user_id
            for author in self._authors
        )

    async def add_author(self, author: AssignmentAuthor) -> None:
        """Record authorship."""
        await asyncio.sleep(0)
        self._authors.append(author)

    async def get_assignment_translation(
        self, assignment_id: AssignmentId, language_code: LanguageCode
    ) -> AssignmentTranslation | None:
        """Load the assignment translation row for a language.

        Returns:
            AssignmentTranslation | None: Stored row.
        """
        await asyncio.sleep(0)
        for row in self._assignment_translations.values():
            if (
                row.assignment_id == assignment_id
                and row.language_code == language_code
            ):
                return row
        return None

    async def create_assignment_translation(
        self,
        assignment_id: AssignmentId,
        language_code: LanguageCode,
        fields: AssignmentTranslationFields,
    ) -> AssignmentTranslation:
        """Create an assignment translation row.

        Returns:
            AssignmentTranslation: Created row.
        """
        await asyncio.sleep(0)
        row = AssignmentTranslation(
            id=self._allocate("assignment_translation"),
            assignment_id=assignment_id,
            language_code=language_code,
            **fields.model_dump(),
        )
        self._assignment_translations[row.id] = row
        return row

    async def update_assignment_translation(
        self, translation_id: TranslationId, fields: AssignmentTranslationFields
    ) -> AssignmentTranslation:
        """Update the explicitly set fields of an assignment translation row.

        Returns:
            AssignmentTranslation: Updated row.

        Raises:
            StorageError: If the row does not exist.
        """
        await asyncio.sleep(0)
        row = self._assignment_translations.get(translation_id)
        if row is None:
            raise build_not_found_error(
                "update_assignment_translation", "AssignmentTranslation", translation_id
            )
        updated = AssignmentTranslation.model_validate(
            {**row.model_dump(), **fields.model_dump(exclude_unset=True)}
        )
        self._assignment_translations[translation_id] = updated
        return updated

    async def list_active_questions(
        self, assignment_id: AssignmentId
    ) -> list[QuestionWithVariants]:
        """List non-deleted questions with their non-deleted variants.

        Returns:
            list[QuestionWithVariants]: Active questions in id order.
        """
        await asyncio.sleep(0)
        results: list[QuestionWithVariants] = []
        for question in sorted(self._questions.values(), key=lambda item: item.id):
            if question.assignment_id != assignment_id or question.is_deleted:
                continue
            variants = [
                variant
                for variant in sorted(self._variants.values(), key=lambda item: item.id)
                if variant.question_id == question.id and not variant.is_deleted
            ]
            results.append(
                QuestionWithVariants(**question.model_dump(), variants=variants)
            )
        return results

    async def create_question(
        self, assignment_id: AssignmentId, fields: QuestionFields
    ) -> Question:
        """Create a question and assign its persisted id.

        Returns:
            Question: Created question.
        """
        await asyncio.sleep(0)
        question = Question(
            id=self._allocate("question"),
            assignment_id=assignment_id,
            **fields.model_dump(include=_QUESTION_FIELDS),
        )
        self._questions[question.id] = question
        return question

    async def update_question(
        self, question_id: QuestionId, fields: QuestionFields
    ) -> Question:
        """Overwrite a question's scalar fields.

        Returns:
            Question: Updated question.

        Raises:
            StorageError: If the question does not exist.
        """
        await asyncio.sleep(0)
        question = self._questions.get(question_id)
        if question is None:
            raise build_not_found_error("update_question", "Question", question_id)
        updated = Question.model_validate(
            {**question.model_dump(), **fields.model_dump(include=_QUESTION_FIELDS)}
        )
        self._questions[question_id] = updated
        return updated

    async def soft_delete_question(self, question_id: QuestionId) -> None:
        """Mark a question deleted.

        Raises:
            StorageError: If the question does not exist.
        """
        await asyncio.sleep(0)
        question = self._questions.get(question_id)
        if question is None:
            raise build_not_found_error("soft_delete_question", "Question", question_id)
        self._questions[question_id] = question.model_copy(update={"is_deleted": True})

    async def set_grading_context(
        self, question_id: QuestionId, linked_question_ids: list[QuestionId]
    ) -> None:
        """Persist grading-context links for a question.

        Raises:
            StorageError: If the question does not exist.
        """
        await asyncio.sleep(0)
        question = self._questions.get(question_id)
        if question is None:
            raise build_not_found_error("set_grading_context", "Question", question_id)
        self._questions[question_id] = question.model_copy(
            update={"grading_context_question_ids": list(linked_question_ids)}
        )

    async def create_variant(
        self, question_id: QuestionId, fields: VariantFields, content_hash: str
    ) -> Variant:
        """Create a variant and assign its persisted id.

        Returns:
            Variant: Created variant.
        """
        await asyncio.sleep(0)
        variant = Variant(
            id=self._allocate("variant"),
            question_id=question_id,
            content_hash=content_hash,
            **fields.model_dump(include=_VARIANT_FIELDS),
        )
        self._variants[variant.id] = variant
        return variant

    async def update_variant(
        self, variant_id: VariantId, fields: VariantFields, content_hash: str
    ) -> Variant:
        """Overwrite a variant's fields.

        Returns:
            Variant: Updated variant.

        Raises:
            StorageError: If the variant does not exist.
        """
        await asyncio.sleep(0)
        variant = self._variants.get(variant_id)
        if variant is None:
            raise build_not_found_error("update_variant", "Variant", variant_id)
        updated = Variant.model_validate(
            {
                **variant.model_dump(),
                **fields.model_dump(include=_VARIANT_FIELDS),
                "content_hash": content_hash,
            }
        )
        self._variants[variant_id] = updated
        return updated

    async def soft_delete_variant(self, variant_id: VariantId) -> None:
        """Mark a variant deleted.

        Raises:
            StorageError: If the variant does not exist.
        """
        await asyncio.sleep(0)
        variant = self._variants.get(variant_id)
        if variant is None:
            raise build_not_found_error("soft_delete_variant", "Variant", variant_id)
        self._variants[variant_id] = variant.model_copy(update={"is_deleted": True})

    async def find_translation(
        self,
        language_code: LanguageCode,
        untranslated_text: str,
        untranslated_choices: list[Choice] | None,
    ) -> Translation | None:
        """Find the first row with matching source content, regardless of owner.

        Returns:
            Translation | None: Matching row.
        """
        await asyncio.sleep(0)
        key = choices_key(untranslated_choices)
        for row in self._translations:
            if (
                row.language_code == language_code
                and row.untranslated_text == untranslated_text
                and choices_key(row.untranslated_choices) == key
            ):
                return row
        return None

    async def get_translation(
        self,
        question_id: QuestionId,
        variant_id: VariantId | None,
        language_code: LanguageCode,
    ) -> Translation | None:
        """Load the latest row owned by a question or variant for a language.

        Returns:
            Translation | None: Latest owned row.
        """
        await asyncio.sleep(0)
        for row in reversed(self._translations):
            if (
                row.question_id == question_id
                and row.variant_id == variant_id
                and row.language_code == language_code
            ):
                return row
        return None

    async def create_translation(
        self,
        question_id: QuestionId,
        variant_id: VariantId | None,
        content: TranslationContent,
    ) -> Translation:
        """Append a translation row bound to its owner.

        Returns:
            Translation: Created row.
        """
        await asyncio.sleep(0)
        row = Translation(
            id=self._allocate("translation"),
            question_id=question_id,
            variant_id=variant_id,
            **content.model_dump(),
        )
        self._translations.append(row)
        return row

    async def create_job(self, assignment_id: AssignmentId, user_id: UserId) -> Job:
        """Create a pending job.

        Returns:
            Job: Created job.
        """
        await asyncio.sleep(0)
        timestamp = self._clock()
        job = Job(
            id=self._allocate("job"),
            assignment_id=assignment_id,
            user_id=user_id,
            created_at=timestamp,
            updated_at=timestamp,
        )
        self._jobs[job.id] = job
        return job

    async def get_job(self, job_id: JobId) -> Job | None:
        """Load a job if present.

        Returns:
            Job | None: Stored job.
        """
        await asyncio.sleep(0)
        return self._jobs.get(job_id)

    async def update_job(self, job_id: JobId, update: JobUpdate) -> Job:
        """Apply the non-null fields of a job update.

        Returns:
            Job: Updated job.

        Raises:
            StorageError: If the job does not exist.
        """
        await asyncio.sleep(0)
        job = self._jobs.get(job_id)
        if job is None:
            raise build_not_found_error("update_job", "Job", job_id)
        updated = apply_job_update(job, update, self._clock())
        self._jobs[job_id] = updated
        return updated

    def _allocate(self, kind: str) -> int:
        value = self._next_ids[kind]
        self._next_ids[kind] = value + 1
        return value

    def _bump(self, kind: str, used_id: int) -> None:
        self._next_ids[kind] = max(self._next_ids[kind], used_id + 1)


def apply_job_update(job: Job, update: JobUpdate, timestamp: Timestamp) -> Job:
    """Apply the non-null fields of an update to a job.

    Returns:
        Job: Updated job record.
    """
    changes: dict[str, object] = {"updated_at": timestamp}
    if update.status is not None:
        changes["status"] = update.status
    if update.progress is not None:
        changes["progress"] = update.progress
    if update.percentage is not None:
        changes["percentage"] = update.percentage
    if update.result is not None:
        changes["result"] = update.result
    return job.model_copy(update=changes)
