"""Unit tests for filesystem storage adapters."""

import json
from pathlib import Path

import pytest

from folio_core.ports.storage import StorageError, StorageErrorCode
from folio_io.storage import (
    FileSystemJobStore,
    FileSystemLogStore,
    InMemoryStore,
    load_snapshot,
    save_snapshot,
)
from folio_schemas.assignments import Assignment, Question
from folio_schemas.jobs import JobUpdate
from folio_schemas.logs import LogEntry
from folio_schemas.primitives import JobStatus, LogLevel
from folio_schemas.storage import StoreSnapshot
from tests.helpers.publish import FixedClock


@pytest.mark.asyncio
async def test_job_store_round_trip(tmp_path: Path) -> None:
    """Ensure jobs are written as JSON documents and read back."""
    store = FileSystemJobStore(str(tmp_path), clock=FixedClock())

    job = await store.create_job(1, "author")
    await store.update_job(
        job.id, JobUpdate(status=JobStatus.IN_PROGRESS, percentage=8)
    )

    loaded = await store.get_job(job.id)
    assert loaded is not None
    assert loaded.status == JobStatus.IN_PROGRESS
    assert loaded.percentage == 8
    payload = json.loads((tmp_path / "jobs" / "1.json").read_text(encoding="utf-8"))
    assert payload["user_id"] == "author"
    assert "result" not in payload


@pytest.mark.asyncio
async def test_job_store_allocates_ids_after_existing_files(tmp_path: Path) -> None:
    """Ensure a new store continues numbering from existing job files."""
    first = FileSystemJobStore(str(tmp_path))
    await first.create_job(1, "author")
    await first.create_job(1, "author")

    job = await FileSystemJobStore(str(tmp_path)).create_job(2, "other")

    assert job.id == 3


@pytest.mark.asyncio
async def test_job_store_missing_job(tmp_path: Path) -> None:
    """Ensure missing jobs read as None and cannot be updated."""
    store = FileSystemJobStore(str(tmp_path))

    assert await store.get_job(7) is None
    with pytest.raises(StorageError) as exc_info:
        await store.update_job(7, JobUpdate(percentage=10))
    assert exc_info.value.info.code == StorageErrorCode.NOT_FOUND


@pytest.mark.asyncio
async def test_job_store_reports_corrupt_documents(tmp_path: Path) -> None:
    """Ensure unreadable job documents raise serialization errors."""
    jobs_dir = tmp_path / "jobs"
    jobs_dir.mkdir()
    (jobs_dir / "1.json").write_text("{not json", encoding="utf-8")
    store = FileSystemJobStore(str(tmp_path))

    with pytest.raises(StorageError) as exc_info:
        await store.get_job(1)

    assert exc_info.value.info.code == StorageErrorCode.SERIALIZATION_ERROR
    assert exc_info.value.info.details is not None
    assert exc_info.value.info.details.path == str(jobs_dir / "1.json")


@pytest.mark.asyncio
async def test_job_store_reports_schema_violations(tmp_path: Path) -> None:
    """Ensure well-formed JSON with bad fields raises validation errors."""
    jobs_dir = tmp_path / "jobs"
    jobs_dir.mkdir()
    (jobs_dir / "1.json").write_text(
        json.dumps({"id": 1, "assignment_id": 1}), encoding="utf-8"
    )

    with pytest.raises(StorageError) as exc_info:
        await FileSystemJobStore(str(tmp_path)).get_job(1)

    assert exc_info.value.info.code == StorageErrorCode.VALIDATION_ERROR


@pytest.mark.asyncio
async def test_log_store_appends_jsonl_per_job(tmp_path: Path) -> None:
    """Ensure log entries land in per-job and service JSONL files."""
    store = FileSystemLogStore(str(tmp_path))
    entry = LogEntry(
        timestamp="2026-01-26T12:00:00Z",
        level=LogLevel.INFO,
        event="job_started",
        job_id=4,
        message="Publish started",
    )

    await store.append_log(entry)
    await store.append_log(entry)
    await store.append_log(entry.model_copy(update={"job_id": None}))

    lines = store.log_path(4).read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert json.loads(lines[0])["event"] == "job_started"
    assert store.log_path(None) == tmp_path / "service.jsonl"
    assert store.log_path(None).exists()


@pytest.mark.asyncio
async def test_snapshot_round_trip(tmp_path: Path) -> None:
    """Ensure a saved snapshot restores the same store content."""
    store = InMemoryStore()
    store.put_assignment(Assignment(id=1, name="Cells"))
    store.put_question(
        Question(id=3, assignment_id=1, question="What is a cell?", type="TEXT")
    )
    path = tmp_path / "nested" / "store.json"

    await save_snapshot(path, store.to_snapshot())
    restored = await load_snapshot(path)

    assert restored == store.to_snapshot()


@pytest.mark.asyncio
async def test_load_snapshot_missing_file(tmp_path: Path) -> None:
    """Ensure a missing snapshot raises an io error."""
    with pytest.raises(StorageError) as exc_info:
        await load_snapshot(tmp_path / "missing.json")

    assert exc_info.value.info.code == StorageErrorCode.IO_ERROR


@pytest.mark.asyncio
async def test_load_snapshot_tolerates_empty_document(tmp_path: Path) -> None:
    """Ensure an empty JSON object loads as an empty snapshot."""
    path = tmp_path / "store.json"
    path.write_text("{}", encoding="utf-8")

    assert await load_snapshot(path) == StoreSnapshot()
