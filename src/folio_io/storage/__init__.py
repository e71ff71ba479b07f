"""Storage adapters for publish entities, jobs and logs."""

from folio_io.storage.filesystem import (
    FileSystemJobStore,
    FileSystemLogStore,
    load_snapshot,
    save_snapshot,
)
from folio_io.storage.log_sink import (
    CompositeLogSink,
    ConsoleLogSink,
    InMemoryLogSink,
    NoopLogSink,
    StorageLogSink,
    build_log_sink,
)
from folio_io.storage.memory import InMemoryStore, apply_job_update
from folio_io.storage.progress_sink import (
    CompositeProgressSink,
    FileSystemProgressSink,
    InMemoryProgressSink,
)

__all__ = [
    "CompositeLogSink",
    "CompositeProgressSink",
    "ConsoleLogSink",
    "FileSystemJobStore",
    "FileSystemLogStore",
    "FileSystemProgressSink",
    "InMemoryLogSink",
    "InMemoryProgressSink",
    "InMemoryStore",
    "NoopLogSink",
    "StorageLogSink",
    "apply_job_update",
    "build_log_sink",
    "load_snapshot",
    "save_snapshot",
]
