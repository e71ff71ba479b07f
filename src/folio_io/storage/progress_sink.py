"""Progress sink adapters for publish job updates."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from pathlib import Path

from folio_core.ports.orchestrator import ProgressSinkProtocol
from folio_schemas.primitives import JobId
from folio_schemas.progress import ProgressUpdate


class FileSystemProgressSink(ProgressSinkProtocol):
    """Progress sink appending JSONL updates to one file per job."""

    def __init__(self, progress_dir: str) -> None:
        """Initialize the progress sink with a directory."""
        self._progress_dir = Path(progress_dir)

    def progress_path(self, job_id: JobId) -> Path:
        """Return the progress file used for a job.

        Returns:
            Path: JSONL progress path.
        """
        return self._progress_dir / f"{job_id}.jsonl"

    async def emit_progress(self, update: ProgressUpdate) -> None:
        """Append a progress update to the job's JSONL file."""
        path = self.progress_path(update.job_id)
        await asyncio.to_thread(_append_jsonl, path, update)


class InMemoryProgressSink(ProgressSinkProtocol):
    """Progress sink that stores updates in memory."""

    def __init__(self) -> None:
        """Initialize the in-memory progress sink."""
        self._updates: list[ProgressUpdate] = []

    @property
    def updates(self) -> list[ProgressUpdate]:
        """Return a copy of stored progress updates."""
        return list(self._updates)

    async def emit_progress(self, update: ProgressUpdate) -> None:
        """Store a progress update in memory."""
        self._updates.append(update)


class CompositeProgressSink(ProgressSinkProtocol):
    """Progress sink that forwards updates to multiple sinks."""

    def __init__(self, sinks: Iterable[ProgressSinkProtocol]) -> None:
        """Initialize the composite progress sink."""
        self._sinks = list(sinks)

    async def emit_progress(self, update: ProgressUpdate) -> None:
        """Forward progress updates to each sink."""
        for sink in self._sinks:
            await sink.emit_progress(update)


def _append_jsonl(path: Path, update: ProgressUpdate) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload_json = update.model_dump_json(exclude_none=True)
    with open(path, "a", encoding="utf-8") as handle:
        handle.write(payload_json + "\n")
