"""CLI entry point - thin adapter over folio-core."""

from __future__ import annotations

import asyncio
import sys
from enum import Enum
from pathlib import Path
from typing import NamedTuple, TypeVar

import typer
from pydantic import ValidationError
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn
from rich.table import Table

from folio_core import VERSION, PublishOrchestrator, PublishService
from folio_core.ports.collaborators import (
    GradingContextLinkerProtocol,
    LanguageDetectorProtocol,
    ModerationGateProtocol,
    TranslationProviderProtocol,
)
from folio_core.ports.orchestrator import (
    LogSinkProtocol,
    ProgressSinkProtocol,
    PublishError,
    PublishErrorCode,
    PublishErrorDetails,
    PublishErrorInfo,
    build_event_log,
)
from folio_core.ports.storage import StorageError
from folio_core.ports.translation import TranslationError
from folio_core.service import build_status_view
from folio_io import (
    ConfigError,
    FileSystemJobStore,
    FileSystemLogStore,
    FileSystemProgressSink,
    InMemoryStore,
    build_log_sink,
    load_config,
    load_snapshot,
    resolve_api_key,
    save_snapshot,
)
from folio_llm import build_llm_collaborators, create_model
from folio_schemas.config import PublishConfig
from folio_schemas.events import ProgressEvent
from folio_schemas.primitives import (
    PUBLISH_STEP_LABELS,
    JobStatus,
    JsonValue,
    LogLevel,
    now_timestamp,
)
from folio_schemas.progress import ProgressUpdate
from folio_schemas.publish import JobStatusView, PublishRequest
from folio_schemas.responses import ApiResponse, ErrorResponse, MetaInfo

CONFIG_OPTION = typer.Option(
    Path("folio.toml"),
    "--config",
    "-c",
    help="Path to folio TOML config",
)
SNAPSHOT_OPTION = typer.Option(
    ...,
    "--snapshot",
    "-s",
    help="Store snapshot JSON; rewritten with the published state",
)
REQUEST_OPTION = typer.Option(
    ..., "--request", "-r", help="Publish request JSON file"
)
ASSIGNMENT_OPTION = typer.Option(
    ..., "--assignment-id", "-a", help="Assignment to publish"
)
USER_OPTION = typer.Option(..., "--user-id", "-u", help="Author publishing")
JSON_OPTION = typer.Option(False, "--json", help="Output result as JSON")

app = typer.Typer(
    help="Assignment publish pipeline",
    no_args_is_help=True,
)


@app.callback()
def main() -> None:
    """Folio CLI."""


@app.command()
def version() -> None:
    """Display version information."""
    rprint(f"[bold]folio[/bold] v{VERSION}")


@app.command()
def publish(
    assignment_id: int = ASSIGNMENT_OPTION,
    request_path: Path = REQUEST_OPTION,
    snapshot_path: Path = SNAPSHOT_OPTION,
    user_id: str = USER_OPTION,
    config_path: Path = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Publish an assignment and wait for the job to finish.

    Raises:
        typer.Exit: When the publish fails.
    """
    log_sink: LogSinkProtocol | None = None
    progress: Progress | None = None
    console: Console | None = None
    try:
        config = load_config(config_path)
        request = _load_request(request_path)
        bundle = _build_storage_bundle(config)
        log_sink = bundle.log_sink
        progress_sink: ProgressSinkProtocol = bundle.progress_sink
        if not json_output and _should_render_progress():
            console = Console(stderr=True)
            progress = _build_progress(console)
            progress_sink = _ProgressReporter(progress_sink, progress, console)
        args: dict[str, JsonValue] = {
            "config_path": str(config_path),
            "assignment_id": assignment_id,
            "snapshot_path": str(snapshot_path),
        }
        _emit_command_log_sync(
            log_sink, "command_started", "Command publish started", args
        )
        if progress is not None:
            with progress:
                view = asyncio.run(
                    _publish_async(
                        config,
                        bundle,
                        progress_sink,
                        snapshot_path,
                        assignment_id,
                        request,
                        user_id,
                    )
                )
        else:
            view = asyncio.run(
                _publish_async(
                    config,
                    bundle,
                    progress_sink,
                    snapshot_path,
                    assignment_id,
                    request,
                    user_id,
                )
            )
        _emit_command_log_sync(
            log_sink, "command_completed", "Command publish completed", None
        )
        response: ApiResponse[JobStatusView] = ApiResponse(
            data=view, error=None, meta=MetaInfo(timestamp=now_timestamp())
        )
    except Exception as exc:
        error = _error_from_exception(exc)
        if log_sink is not None:
            _emit_command_log_sync(
                log_sink,
                "command_failed",
                f"Command publish failed: {error.message}",
                {"error_code": error.code},
            )
        response = _error_response(error)
    if json_output:
        print(response.model_dump_json())
    elif response.data is not None:
        _render_status(response.data)
    elif response.error is not None:
        rprint(f"[red]Error:[/red] {response.error.message}")
    if response.error is not None or (
        response.data is not None and response.data.status == JobStatus.FAILED
    ):
        raise typer.Exit(code=1)


@app.command("status")
def status(
    job_id: int = typer.Argument(..., help="Publish job identifier"),
    config_path: Path = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Show the status of a publish job.

    Raises:
        typer.Exit: When the job failed or cannot be loaded.
    """
    try:
        config = load_config(config_path)
        job_store = FileSystemJobStore(config.storage.data_dir)
        job = asyncio.run(job_store.get_job(job_id))
        if job is None:
            raise PublishError(
                PublishErrorInfo(
                    code=PublishErrorCode.JOB_NOT_FOUND,
                    message=f"Job {job_id} not found",
                    details=PublishErrorDetails(job_id=job_id),
                )
            )
        view = build_status_view(job)
    except Exception as exc:
        error = _error_from_exception(exc)
        if json_output:
            print(_error_response(error).model_dump_json())
        else:
            rprint(f"[red]Error:[/red] {error.message}")
        raise typer.Exit(code=1) from None
    if json_output:
        response: ApiResponse[JobStatusView] = ApiResponse(
            data=view, error=None, meta=MetaInfo(timestamp=now_timestamp())
        )
        print(response.model_dump_json())
    else:
        _render_status(view)
    if view.status == JobStatus.FAILED:
        raise typer.Exit(code=1)


ResponseT = TypeVar("ResponseT")


class _StorageBundle(NamedTuple):
    job_store: FileSystemJobStore
    log_store: FileSystemLogStore
    log_sink: LogSinkProtocol
    progress_sink: ProgressSinkProtocol


class _Collaborators(NamedTuple):
    moderation_gate: ModerationGateProtocol
    language_detector: LanguageDetectorProtocol
    translation_provider: TranslationProviderProtocol
    grading_context_linker: GradingContextLinkerProtocol


class _ProgressReporter(ProgressSinkProtocol):
    def __init__(
        self,
        sink: ProgressSinkProtocol,
        progress: Progress,
        console: Console,
    ) -> None:
        self._sink = sink
        self._progress = progress
        self._console = console
        self._task: TaskID | None = None

    async def emit_progress(self, update: ProgressUpdate) -> None:
        await self._sink.emit_progress(update)
        self._handle_update(update)

    def _handle_update(self, update: ProgressUpdate) -> None:
        if update.event == ProgressEvent.STEP_STARTED and update.step is not None:
            self._console.print(f"Starting: {PUBLISH_STEP_LABELS[update.step]}")
        if update.event == ProgressEvent.JOB_FAILED:
            self._console.print(update.message or "Publishing failed")
        if self._task is None:
            self._task = self._progress.add_task("publish", total=100)
        self._progress.update(
            self._task,
            completed=update.percentage,
            description=update.message or "publish",
        )
        self._progress.refresh()


def _should_render_progress() -> bool:
    return sys.stderr.isatty()


def _build_progress(console: Console) -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}%"),
        console=console,
    )


def _load_request(path: Path) -> PublishRequest:
    try:
        payload = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read publish request: {exc}") from exc
    return PublishRequest.model_validate_json(payload)


def _build_storage_bundle(config: PublishConfig) -> _StorageBundle:
    data_dir = Path(config.storage.data_dir)
    log_store = FileSystemLogStore(str(data_dir / "logs"))
    return _StorageBundle(
        job_store=FileSystemJobStore(str(data_dir)),
        log_store=log_store,
        log_sink=build_log_sink(config.logging, log_store),
        progress_sink=FileSystemProgressSink(str(data_dir / "progress")),
    )


def _build_collaborators(config: PublishConfig) -> _Collaborators:
    if config.endpoint is None:
        raise ConfigError("Config must define an [endpoint] table to publish")
    model, model_settings = create_model(
        config.endpoint, resolve_api_key(config.endpoint)
    )
    collaborators = build_llm_collaborators(model, model_settings)
    return _Collaborators(
        moderation_gate=collaborators.moderation_gate,
        language_detector=collaborators.language_detector,
        translation_provider=collaborators.translation_provider,
        grading_context_linker=collaborators.grading_context_linker,
    )


async def _publish_async(
    config: PublishConfig,
    bundle: _StorageBundle,
    progress_sink: ProgressSinkProtocol,
    snapshot_path: Path,
    assignment_id: int,
    request: PublishRequest,
    user_id: str,
) -> JobStatusView:
    collaborators = _build_collaborators(config)
    store = InMemoryStore.from_snapshot(await load_snapshot(snapshot_path))
    orchestrator = PublishOrchestrator(
        assignment_store=store,
        question_store=store,
        translation_store=store,
        job_store=bundle.job_store,
        moderation_gate=collaborators.moderation_gate,
        language_detector=collaborators.language_detector,
        translation_provider=collaborators.translation_provider,
        grading_context_linker=collaborators.grading_context_linker,
        config=config,
        log_sink=bundle.log_sink,
        progress_sink=progress_sink,
    )
    service = PublishService(orchestrator, bundle.job_store, log_sink=bundle.log_sink)
    handle = await service.publish_assignment(assignment_id, request, user_id)
    view = await service.wait_for_job(handle.job_id)
    await save_snapshot(snapshot_path, store.to_snapshot())
    return view


def _emit_command_log_sync(
    log_sink: LogSinkProtocol,
    event: str,
    message: str,
    data: dict[str, JsonValue] | None,
) -> None:
    level = LogLevel.ERROR if event == "command_failed" else LogLevel.INFO
    entry = build_event_log(
        now_timestamp(), None, None, event, message, data=data, level=level
    )
    asyncio.run(log_sink.emit_log(entry))


def _render_status(view: JobStatusView) -> None:
    rprint(_build_status_panel(view))


def _build_status_panel(view: JobStatusView) -> Panel:
    header = Table.grid(padding=(0, 1))
    header.add_column(justify="right", style="bold")
    header.add_column()
    header.add_row("Job ID", str(view.job_id))
    header.add_row("Status", _format_enum(view.status))
    header.add_row("Progress", view.progress)
    header.add_row("Percent", f"{view.percentage}%")
    result = view.result
    if result is not None:
        header.add_row("Assignment", str(result.assignment_id))
        if result.question_order is not None:
            order = ", ".join(str(question_id) for question_id in result.question_order)
            header.add_row("Question Order", order or "n/a")
        if result.error is not None:
            header.add_row("Error", f"[red]{result.error}[/red]")
    return Panel(header, title="folio publish job", expand=True)


def _format_enum(value: Enum | str | int | float | bool | None) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def _error_response(error: ErrorResponse) -> ApiResponse[ResponseT]:
    return ApiResponse(
        data=None,
        error=error,
        meta=MetaInfo(timestamp=now_timestamp()),
    )


def _error_from_exception(exc: Exception) -> ErrorResponse:
    if isinstance(exc, PublishError):
        return exc.info.to_error_response()
    if isinstance(exc, TranslationError):
        return exc.info.to_error_response()
    if isinstance(exc, StorageError):
        return exc.info.to_error_response()
    if isinstance(exc, ValidationError):
        message = "Validation failed"
        errors = exc.errors()
        if errors:
            first = errors[0]
            loc = first.get("loc", [])
            label = ".".join(str(part) for part in loc) if loc else ""
            detail = first.get("msg", "")
            if label and detail:
                message = f"Validation failed: {label} - {detail}"
            elif detail:
                message = f"Validation failed: {detail}"
        return ErrorResponse(code="validation_error", message=message, details=None)
    if isinstance(exc, ConfigError):
        return ErrorResponse(code="config_error", message=str(exc), details=None)
    if isinstance(exc, ValueError):
        return ErrorResponse(code="validation_error", message=str(exc), details=None)
    return ErrorResponse(code="runtime_error", message=str(exc), details=None)


if __name__ == "__main__":
    app()
