"""folio-io: Storage, sink and configuration adapters."""

from folio_io.config import ConfigError, load_config, load_env_file, resolve_api_key
from folio_io.storage import (
    CompositeLogSink,
    CompositeProgressSink,
    ConsoleLogSink,
    FileSystemJobStore,
    FileSystemLogStore,
    FileSystemProgressSink,
    InMemoryLogSink,
    InMemoryProgressSink,
    InMemoryStore,
    NoopLogSink,
    StorageLogSink,
    build_log_sink,
    load_snapshot,
    save_snapshot,
)

__version__ = "0.1.0"

__all__ = [
    "CompositeLogSink",
    "CompositeProgressSink",
    "ConfigError",
    "ConsoleLogSink",
    "FileSystemJobStore",
    "FileSystemLogStore",
    "FileSystemProgressSink",
    "InMemoryLogSink",
    "InMemoryProgressSink",
    "InMemoryStore",
    "NoopLogSink",
    "StorageLogSink",
    "build_log_sink",
    "load_config",
    "load_env_file",
    "load_snapshot",
    "resolve_api_key",
    "save_snapshot",
]
