"""Filesystem-backed storage adapters."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from json import JSONDecodeError
from pathlib import Path

from pydantic import ValidationError

from folio_core.ports.storage import (
    JobStoreProtocol,
    LogStoreProtocol,
    StorageError,
    StorageErrorCode,
    StorageErrorDetails,
    StorageErrorInfo,
    build_not_found_error,
)
from folio_io.storage.memory import apply_job_update
from folio_schemas.base import BaseSchema
from folio_schemas.jobs import Job, JobUpdate
from folio_schemas.logs import LogEntry
from folio_schemas.primitives import (
    AssignmentId,
    JobId,
    Timestamp,
    UserId,
    now_timestamp,
)
from folio_schemas.storage import StoreSnapshot

SERVICE_LOG_NAME = "service"


class FileSystemJobStore(JobStoreProtocol):
    """Job store keeping one JSON document per job."""

    def __init__(
        self, base_dir: str, clock: Callable[[], Timestamp] | None = None
    ) -> None:
        """Initialize the job store."""
        self._jobs_dir = Path(base_dir) / "jobs"
        self._clock = clock or now_timestamp
        self._lock = asyncio.Lock()

    async def create_job(self, assignment_id: AssignmentId, user_id: UserId) -> Job:
        """Create a pending job with the next free id.

        Returns:
            Job: Created job.

        Raises:
            StorageError: If the job cannot be written.
        """
        async with self._lock:
            try:
                job_id = await asyncio.to_thread(_next_job_id, self._jobs_dir)
            except OSError as exc:
                raise _io_error("create_job", self._jobs_dir, exc) from exc
            timestamp = self._clock()
            job = Job(
                id=job_id,
                assignment_id=assignment_id,
                user_id=user_id,
                created_at=timestamp,
                updated_at=timestamp,
            )
            await self._write(job, "create_job")
        return job

    async def get_job(self, job_id: JobId) -> Job | None:
        """Load a job if present.

        Returns:
            Job | None: Stored job.

        Raises:
            StorageError: If the job document cannot be read.
        """
        path = self._job_path(job_id)
        if not await asyncio.to_thread(path.exists):
            return None
        try:
            return await asyncio.to_thread(_read_job, path)
        except (ValidationError, JSONDecodeError, ValueError) as exc:
            raise StorageError(
                _build_record_parse_error_info(
                    entity="Job record",
                    operation="get_job",
                    path=path,
                    exc=exc,
                    entity_id=job_id,
                )
            ) from exc
        except OSError as exc:
            raise _io_error("get_job", path, exc, entity_id=job_id) from exc

    async def update_job(self, job_id: JobId, update: JobUpdate) -> Job:
        """Apply the non-null fields of an update and rewrite the document.

        Returns:
            Job: Updated job.

        Raises:
            StorageError: If the job is missing or cannot be written.
        """
        async with self._lock:
            job = await self.get_job(job_id)
            if job is None:
                raise build_not_found_error("update_job", "Job", job_id)
            updated = apply_job_update(job, update, self._clock())
            await self._write(updated, "update_job")
        return updated

    async def _write(self, job: Job, operation: str) -> None:
        path = self._job_path(job.id)
        try:
            await asyncio.to_thread(_write_json_file, path, job)
        except OSError as exc:
            raise _io_error(operation, path, exc, entity_id=job.id) from exc

    def _job_path(self, job_id: JobId) -> Path:
        return self._jobs_dir / f"{job_id}.json"


class FileSystemLogStore(LogStoreProtocol):
    """Filesystem-backed JSONL log store, one file per job."""

    def __init__(self, logs_dir: str) -> None:
        """Initialize the log store."""
        self._logs_dir = Path(logs_dir)

    async def append_log(self, entry: LogEntry) -> None:
        """Append a single log entry.

        Raises:
            StorageError: If the log entry cannot be written.
        """
        path = self.log_path(entry.job_id)
        try:
            await asyncio.to_thread(_append_jsonl, path, entry, exclude_none=False)
        except OSError as exc:
            raise _io_error("append_log", path, exc, entity_id=entry.job_id) from exc

    def log_path(self, job_id: JobId | None) -> Path:
        """Return the log file used for a job.

        Returns:
            Path: JSONL log path.
        """
        name = SERVICE_LOG_NAME if job_id is None else str(job_id)
        return self._logs_dir / f"{name}.jsonl"


async def load_snapshot(path: Path) -> StoreSnapshot:
    """Load a store snapshot document.

    Returns:
        StoreSnapshot: Parsed snapshot.

    Raises:
        StorageError: If the snapshot cannot be read or parsed.
    """
    try:
        return await asyncio.to_thread(_read_snapshot, path)
    except (ValidationError, JSONDecodeError, ValueError) as exc:
        raise StorageError(
            _build_record_parse_error_info(
                entity="Store snapshot",
                operation="load_snapshot",
                path=path,
                exc=exc,
            )
        ) from exc
    except OSError as exc:
        raise _io_error("load_snapshot", path, exc) from exc


async def save_snapshot(path: Path, snapshot: StoreSnapshot) -> None:
    """Write a store snapshot document.

    Raises:
        StorageError: If the snapshot cannot be written.
    """
    try:
        await asyncio.to_thread(_write_json_file, path, snapshot)
    except OSError as exc:
        raise _io_error("save_snapshot", path, exc) from exc


def _next_job_id(jobs_dir: Path) -> JobId:
    if not jobs_dir.exists():
        return 1
    existing = [
        int(path.stem) for path in jobs_dir.glob("*.json") if path.stem.isdigit()
    ]
    return max(existing, default=0) + 1


def _read_job(path: Path) -> Job:
    return Job.model_validate_json(path.read_text(encoding="utf-8"))


def _read_snapshot(path: Path) -> StoreSnapshot:
    return StoreSnapshot.model_validate_json(path.read_text(encoding="utf-8"))


def _write_json_file(path: Path, payload: BaseSchema) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload_json = payload.model_dump_json(exclude_none=True, indent=2)
    path.write_text(payload_json, encoding="utf-8")


def _append_jsonl(
    path: Path, payload: BaseSchema, *, exclude_none: bool = True
) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as handle:
        handle.write(payload.model_dump_json(exclude_none=exclude_none) + "\n")


def _io_error(
    operation: str, path: Path, exc: OSError, *, entity_id: int | None = None
) -> StorageError:
    return StorageError(
        StorageErrorInfo(
            code=StorageErrorCode.IO_ERROR,
            message=str(exc),
            details=StorageErrorDetails(
                operation=operation, entity_id=entity_id, path=str(path)
            ),
        )
    )


def _is_json_validation_error(exc: ValidationError) -> bool:
    for error in exc.errors():
        error_type = str(error.get("type", ""))
        if error_type.startswith("json_"):
            return True
    return False


def _build_record_parse_error_info(
    *,
    entity: str,
    operation: str,
    path: Path,
    exc: Exception,
    entity_id: int | None = None,
) -> StorageErrorInfo:
    code = StorageErrorCode.VALIDATION_ERROR
    message = f"{entity} failed schema validation"
    if isinstance(exc, ValidationError):
        if _is_json_validation_error(exc):
            code = StorageErrorCode.SERIALIZATION_ERROR
            message = f"{entity} JSON could not be parsed"
    elif isinstance(exc, (JSONDecodeError, ValueError)):
        code = StorageErrorCode.SERIALIZATION_ERROR
        message = f"{entity} JSON could not be parsed"
    return StorageErrorInfo(
        code=code,
        message=message,
        details=StorageErrorDetails(
            operation=operation,
            entity=entity,
            entity_id=entity_id,
            path=str(path),
            reason=str(exc),
        ),
    )
