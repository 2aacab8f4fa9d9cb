from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import Dict, List, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, FastAPI, File, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from starlette.background import BackgroundTask
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .availability import AvailabilityProbe
from .configuration import ServiceConfig, describe_config, load_config
from .conversion import ConversionOrchestrator, ConversionResult
from .diagnostics import run_diagnostics
from .errors import ConversionError, ValidationError
from .middleware import RequestLoggingMiddleware
from .models import ConversionPhase, DiagnosticsReport, ErrorKind, ErrorResponse, HealthResponse
from .utils import (
    allowed_archive_extensions,
    cleanup_old_files,
    delete_path,
    delete_paths,
    ensure_directory,
    sanitize_filename,
)

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_BYTES = 8 * 1024 * 1024

STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.EXTRACTION: 400,
    ErrorKind.NOT_FOUND: 400,
    ErrorKind.INPUT_MISSING: 400,
    ErrorKind.LAUNCH: 503,
}

router = APIRouter()


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def get_config(request: Request) -> ServiceConfig:
    return request.app.state.config


def get_orchestrator(request: Request) -> ConversionOrchestrator:
    return request.app.state.orchestrator


def _error_response(kind: ErrorKind, detail: str, max_size: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(error=kind.value, detail=detail, max_size=max_size)
    return JSONResponse(status_code=STATUS_BY_KIND.get(kind, 500), content=body.model_dump(exclude_none=True))


def _result_response(result: ConversionResult) -> JSONResponse:
    return _error_response(result.error_kind or ErrorKind.INTERNAL, result.message or "Failed to process file")


def _cleanup_files(paths: List[Optional[Path]]) -> None:
    if delete_paths(paths):
        logger.info("Cleaned up temporary files")


async def _store_upload(file: UploadFile, config: ServiceConfig) -> Path:
    """Stream an upload into the upload directory, enforcing the size limit."""
    destination = config.upload_dir / f"{uuid4().hex}{Path(file.filename or '').suffix.lower()}"
    written = 0
    try:
        ensure_directory(config.upload_dir)
        with destination.open("wb") as buffer:
            while chunk := await file.read(UPLOAD_CHUNK_BYTES):
                written += len(chunk)
                if written > config.max_file_size_bytes:
                    raise ValidationError("File too large")
                buffer.write(chunk)
    except ValidationError:
        destination.unlink(missing_ok=True)
        raise
    except OSError as exc:
        delete_path(destination)
        raise ConversionError(f"Could not store upload: {exc}", phase=ConversionPhase.VALIDATION) from exc
    finally:
        await file.close()
    logger.info(f"File uploaded: {destination} ({written} bytes)")
    return destination


@router.get("/health", response_model=HealthResponse)
def healthcheck() -> HealthResponse:
    return HealthResponse(status="ok", message="Server is running")


@router.get("/diagnostics", response_model=DiagnosticsReport)
def diagnostics(config: ServiceConfig = Depends(get_config)) -> DiagnosticsReport:
    return run_diagnostics(config)


@router.post("/api/upload")
async def upload(
    file: Optional[UploadFile] = File(None),
    config: ServiceConfig = Depends(get_config),
    orchestrator: ConversionOrchestrator = Depends(get_orchestrator),
):
    if file is None or not file.filename:
        return _error_response(ErrorKind.VALIDATION, "No file uploaded")

    if Path(file.filename).suffix.lower() not in allowed_archive_extensions():
        await file.close()
        return _error_response(ErrorKind.VALIDATION, "Only .zip files are allowed")

    cleanup_targets: List[Optional[Path]] = []
    handed_off = False
    try:
        try:
            upload_path = await _store_upload(file, config)
        except ValidationError as exc:
            return _error_response(exc.kind, exc.message, max_size=f"{config.max_file_size_mb}MB")
        except ConversionError as exc:
            logger.error(f"Upload error: {exc.describe()}")
            return _error_response(exc.kind, exc.describe())
        cleanup_targets.append(upload_path)

        extract_dir = config.extract_dir / uuid4().hex
        cleanup_targets.append(extract_dir)

        # InDesign runs for minutes; keep the event loop free meanwhile
        result = await asyncio.to_thread(orchestrator.convert_archive, upload_path, extract_dir)
        if not result.ok:
            return _result_response(result)

        cleanup_targets.append(result.artifact_path)
        download_name = f"{sanitize_filename(Path(file.filename).stem, 'document')}.pdf"
        response = FileResponse(
            result.artifact_path,
            media_type="application/pdf",
            filename=download_name,
            background=BackgroundTask(_cleanup_files, cleanup_targets),
        )
        handed_off = True
        return response
    finally:
        if not handed_off:
            _cleanup_files(cleanup_targets)


def _sweep_temp_directories(config: ServiceConfig) -> None:
    for directory in (config.upload_dir, config.extract_dir):
        cleanup_old_files(directory, config.cleanup_max_age_hours)


async def _periodic_cleanup(config: ServiceConfig) -> None:
    interval = config.cleanup_interval_hours * 60 * 60
    while True:
        await asyncio.sleep(interval)
        await asyncio.to_thread(_sweep_temp_directories, config)


def _log_availability(probe: AvailabilityProbe) -> None:
    logger.info("Testing Adobe InDesign availability...")
    if probe.is_available():
        logger.info(f"Adobe InDesign is available at {probe.resolved_path()}")
        return
    logger.warning("Adobe InDesign not found")
    logger.warning("The server will start, but PDF conversion will fail until InDesign is installed")
    logger.warning("Set INDESIGN_APP_PATH or run `python -m indesign_pdf_backend.diagnostics` to check the host")


def create_app(
    config: ServiceConfig | None = None,
    orchestrator: ConversionOrchestrator | None = None,
    probe: AvailabilityProbe | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Service configuration (default: ``load_config()``)
        orchestrator: Conversion orchestrator (default: one built from ``config``)
        probe: InDesign availability probe used for the startup check
    """
    config = config or load_config()
    configure_logging(config.log_level)
    orchestrator = orchestrator or ConversionOrchestrator(config)
    probe = probe or AvailabilityProbe(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ensure_directory(config.upload_dir)
        ensure_directory(config.extract_dir)
        logger.info("Temporary directories initialized")
        _sweep_temp_directories(config)
        logger.info("Old temporary files cleaned up")
        _log_availability(probe)
        logger.info(f"Configuration: {describe_config(config)}")

        cleanup_task = None
        if config.cleanup_interval_hours > 0:
            cleanup_task = asyncio.create_task(_periodic_cleanup(config))
        yield
        if cleanup_task is not None:
            cleanup_task.cancel()
            with suppress(asyncio.CancelledError):
                await cleanup_task

    app = FastAPI(title="InDesign PDF API", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.orchestrator = orchestrator
    app.state.probe = probe

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(router)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            body = ErrorResponse(error=ErrorKind.NOT_FOUND.value, detail="Endpoint not found")
        else:
            body = ErrorResponse(error="http_error", detail=str(exc.detail))
        return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True))

    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn on the configured host and port."""
    import uvicorn

    config: ServiceConfig = app.state.config
    uvicorn.run(app, host=config.host, port=config.port, timeout_keep_alive=30 * 60)


if __name__ == "__main__":
    run()
