"""API entry point - thin adapter over folio-core."""

import asyncio
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated

import uvicorn
from fastapi import FastAPI, Header, Request
from fastapi import Path as PathParam
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from folio_core import VERSION, PublishOrchestrator, PublishService
from folio_core.ports.orchestrator import PublishError, PublishErrorCode
from folio_core.ports.storage import StorageError, StorageErrorCode
from folio_io import (
    ConfigError,
    FileSystemLogStore,
    InMemoryStore,
    build_log_sink,
    load_config,
    load_snapshot,
    resolve_api_key,
)
from folio_llm import build_llm_collaborators, create_model
from folio_schemas.primitives import now_timestamp
from folio_schemas.publish import JobStatusView, PublishHandle, PublishRequest
from folio_schemas.responses import (
    ApiResponse,
    ErrorDetails,
    ErrorResponse,
    MetaInfo,
)
from folio_schemas.storage import StoreSnapshot

DEFAULT_CONFIG_PATH = "folio.toml"

_PUBLISH_ERROR_STATUS = {
    PublishErrorCode.ASSIGNMENT_NOT_FOUND: 404,
    PublishErrorCode.JOB_NOT_FOUND: 404,
    PublishErrorCode.PRECONDITION_FAILED: 422,
    PublishErrorCode.MODERATION_REJECTED: 422,
}


def create_app(service: PublishService) -> FastAPI:
    """Create the API application around a publish service.

    Args:
        service: Service dispatching publish jobs.

    Returns:
        FastAPI: Configured application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await service.drain()

    app = FastAPI(
        title="folio",
        description="Assignment publishing API",
        version=str(VERSION),
        lifespan=lifespan,
    )
    app.state.service = service

    @app.exception_handler(PublishError)
    async def handle_publish_error(_: Request, exc: PublishError) -> JSONResponse:
        status_code = _PUBLISH_ERROR_STATUS.get(exc.info.code, 500)
        return _error_json(status_code, exc.info.to_error_response())

    @app.exception_handler(StorageError)
    async def handle_storage_error(_: Request, exc: StorageError) -> JSONResponse:
        status_code = 404 if exc.info.code == StorageErrorCode.NOT_FOUND else 500
        return _error_json(status_code, exc.info.to_error_response())

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        _: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        field = None
        if errors:
            field = ".".join(str(part) for part in errors[0].get("loc", ()))
        return _error_json(
            422,
            ErrorResponse(
                code="validation_error",
                message="Request validation failed",
                details=ErrorDetails(field=field or None),
            ),
        )

    @app.get("/health")
    async def health() -> ApiResponse[dict[str, str]]:
        """Health check endpoint.

        Returns:
            ApiResponse envelope containing status and version.
        """
        return ApiResponse[dict[str, str]](
            data={"status": "ok", "version": str(VERSION)},
            error=None,
            meta=_meta(),
        )

    @app.post("/assignments/{assignment_id}/publish", status_code=202)
    async def publish_assignment(
        assignment_id: Annotated[int, PathParam(ge=1)],
        request: PublishRequest,
        user_id: Annotated[str, Header(alias="X-User-Id", min_length=1)],
    ) -> ApiResponse[PublishHandle]:
        """Start publishing an assignment.

        Returns:
            ApiResponse envelope containing the job handle.
        """
        handle = await service.publish_assignment(assignment_id, request, user_id)
        return ApiResponse[PublishHandle](data=handle, error=None, meta=_meta())

    @app.get("/jobs/{job_id}")
    async def get_job_status(
        job_id: Annotated[int, PathParam(ge=1)],
    ) -> ApiResponse[JobStatusView]:
        """Poll the status of a publish job.

        Returns:
            ApiResponse envelope containing the job status.
        """
        view = await service.get_job_status(job_id)
        return ApiResponse[JobStatusView](data=view, error=None, meta=_meta())

    return app


def build_service(config_path: Path, snapshot_path: Path | None) -> PublishService:
    """Build a publish service from a configuration file.

    Args:
        config_path: Path to the TOML configuration.
        snapshot_path: Optional store snapshot used to seed the in-memory store.

    Returns:
        PublishService: Service ready to serve requests.

    Raises:
        ConfigError: If the configuration lacks a model endpoint.
    """
    config = load_config(config_path)
    if config.endpoint is None:
        raise ConfigError("Config must define an [endpoint] table to serve the API")
    api_key = resolve_api_key(config.endpoint)
    model, model_settings = create_model(config.endpoint, api_key)
    collaborators = build_llm_collaborators(model, model_settings)
    snapshot = StoreSnapshot()
    if snapshot_path is not None:
        snapshot = asyncio.run(load_snapshot(snapshot_path))
    store = InMemoryStore.from_snapshot(snapshot)
    log_store = FileSystemLogStore(str(Path(config.storage.data_dir) / "logs"))
    log_sink = build_log_sink(config.logging, log_store)
    orchestrator = PublishOrchestrator(
        assignment_store=store,
        question_store=store,
        translation_store=store,
        job_store=store,
        moderation_gate=collaborators.moderation_gate,
        language_detector=collaborators.language_detector,
        translation_provider=collaborators.translation_provider,
        grading_context_linker=collaborators.grading_context_linker,
        config=config,
        log_sink=log_sink,
    )
    return PublishService(orchestrator, store, log_sink=log_sink)


def main() -> None:
    """Run the API server."""
    config_path = Path(os.getenv("FOLIO_CONFIG", DEFAULT_CONFIG_PATH))
    snapshot = os.getenv("FOLIO_SNAPSHOT")
    service = build_service(config_path, Path(snapshot) if snapshot else None)
    uvicorn.run(
        create_app(service),
        host=os.getenv("FOLIO_HOST", "0.0.0.0"),
        port=int(os.getenv("FOLIO_PORT", "8000")),
    )


def _meta() -> MetaInfo:
    return MetaInfo(
        timestamp=now_timestamp(),
        request_id=None,
    )


def _error_json(status_code: int, error: ErrorResponse) -> JSONResponse:
    payload = ApiResponse[None](data=None, error=error, meta=_meta())
    return JSONResponse(
        status_code=status_code, content=payload.model_dump(mode="json")
    )


if __name__ == "__main__":
    main()
