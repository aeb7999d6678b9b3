import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse

from anondrop.config import Settings, get_settings
from anondrop.errors import DependencyUnavailable, IntentValidationError, RecordNotFound
from anondrop.lifecycle import Clock
from anondrop.logging_config import setup_logging
from anondrop.metadata import MetadataStore
from anondrop.models import (
    DownloadInfoResponse,
    SweepResponse,
    UploadIntentRequest,
    UploadIntentResponse,
)
from anondrop.storage import ObjectStore
from anondrop.sweeper import run_periodic_sweeps
from anondrop.wiring import build_manager

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"


def create_app(
    settings: Settings | None = None,
    *,
    metadata_store: MetadataStore | None = None,
    object_store: ObjectStore | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    manager, closers = build_manager(
        settings,
        metadata_store=metadata_store,
        object_store=object_store,
        clock=clock,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        sweeper = None
        if settings.sweep_interval_seconds > 0:
            sweeper = asyncio.create_task(run_periodic_sweeps(manager, settings.sweep_interval_seconds))
        try:
            yield
        finally:
            if sweeper is not None:
                sweeper.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sweeper
            for close in closers:
                close()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.manager = manager

    @app.get("/")
    def root() -> dict:
        return {"status": "ok", "service": settings.app_name}

    def error_response(status_code: int, message: str, code: str) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={"error": {"code": code, "message": message}},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(_: Request, exc: RequestValidationError):
        missing_fields = [
            ".".join(str(item) for item in error["loc"] if item != "body")
            for error in exc.errors()
            if error.get("type") == "missing"
        ]
        if missing_fields:
            message = f"missing parameters: {', '.join(missing_fields)}"
        else:
            message = "invalid request parameters"
        return error_response(400, message, "bad_request")

    @app.exception_handler(HTTPException)
    async def http_exception_handler(_: Request, exc: HTTPException):
        message = str(exc.detail) if exc.detail else "request failed"
        code_map = {
            400: "bad_request",
            404: "not_found",
            405: "method_not_allowed",
        }
        return error_response(exc.status_code, message, code_map.get(exc.status_code, "error"))

    @app.exception_handler(DependencyUnavailable)
    async def dependency_exception_handler(request: Request, exc: DependencyUnavailable):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return error_response(500, "storage backend unavailable", "dependency_unavailable")

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "environment": settings.app_env}

    @app.post("/api/upload-intent", response_model=UploadIntentResponse)
    def create_upload_intent(payload: UploadIntentRequest):
        try:
            intent = manager.create_upload_intent(
                display_name=payload.display_name,
                content_type=payload.content_type,
                size_bytes=payload.size_bytes,
            )
        except IntentValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return UploadIntentResponse(upload_url=intent.upload_url, id=intent.id)

    @app.get("/api/download-info/{file_id}", response_model=DownloadInfoResponse)
    def download_info(file_id: str):
        try:
            grant = manager.resolve_download(file_id)
        except RecordNotFound as exc:
            raise HTTPException(status_code=404, detail="file not found") from exc
        return DownloadInfoResponse(
            display_name=grant.display_name,
            size_bytes=grant.size_bytes,
            download_url=grant.download_url,
        )

    @app.post("/api/sweep", response_model=SweepResponse)
    def sweep():
        report = manager.sweep()
        return SweepResponse(
            purged_count=report.purged,
            scanned_count=report.scanned,
            failed_count=len(report.failed),
        )

    @app.get("/download/{file_id}")
    def download_page(file_id: str):
        return FileResponse(path=STATIC_DIR / "download.html", media_type="text/html")

    return app


app = create_app()
