"""FastAPI endpoints for the Expense Import Service.

This module defines the routes for previewing an import file, starting an import job, polling a
job's status, listing a user's import history, and health checks. Uploads are validated here and
handed to the background job runner.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, UploadFile

from app.api.dependencies import get_current_user_id, get_import_service
from app.core.exceptions import FileParseError, FileTooLargeError, ImportServiceError
from app.core.models import ImportJobSnapshot, ImportPreview
from app.core.store import to_snapshot
from app.core.utils import get_logger
from app.services.import_service import ImportService
from app.workers.job_runner import run_import

router = APIRouter()
logger = get_logger("expense-import.api")


def _to_http_error(exc: ImportServiceError) -> HTTPException:
    if isinstance(exc, FileTooLargeError):
        return HTTPException(413, str(exc))
    if isinstance(exc, FileParseError):
        return HTTPException(400, f"Failed to parse file: {exc}")
    return HTTPException(400, str(exc))


@router.post(
    "/import/preview",
    response_model=ImportPreview,
    summary="Preview an expense import file",
    description=(
        "Parse and validate a CSV or XLSX expense file without saving anything.\n\n"
        "**Request:**\n"
        "- Content-Type: multipart/form-data\n"
        "- Form field: `file` (CSV or XLSX file)\n"
        "- Header: `X-User-Id`\n\n"
        "**Response:**\n"
        "- 200 OK: file name, row count, column headers, the first rows and every validation error.\n"
        "- 400 Bad Request: unsupported file, unreadable file or unknown user.\n"
        "- 413 Payload Too Large: file over 10 MiB."
    ),
    responses={
        400: {
            "description": "Rejected upload.",
            "content": {"application/json": {"example": {"detail": "Only CSV and Excel files are allowed"}}},
        },
        413: {"description": "File too large."},
    },
)
async def preview_import(
    file: UploadFile,
    user_id: str = Depends(get_current_user_id),
    service: ImportService = Depends(get_import_service),
) -> ImportPreview:
    """Preview an import file."""
    logger.info(f"Received preview request: filename={file.filename}, user={user_id}")
    data = await file.read()
    try:
        return service.preview(data, file.filename or "", file.content_type, user_id)
    except ImportServiceError as exc:
        logger.warning(f"Preview rejected for {file.filename}: {exc}")
        raise _to_http_error(exc) from exc


@router.post(
    "/import/upload",
    status_code=202,
    response_model=ImportJobSnapshot,
    summary="Upload an expense file and start an import job",
    description=(
        "Upload a CSV or XLSX expense file. The server records a pending import job and processes "
        "the rows in the background. Poll `/import/status/{job_id}` for progress.\n\n"
        "**Response:**\n"
        "- 202 Accepted: the new job in `pending` status.\n"
        "- 400 Bad Request: unsupported file type or unknown user.\n"
        "- 413 Payload Too Large: file over 10 MiB."
    ),
    response_description="Job accepted.",
)
async def upload_import(
    background_tasks: BackgroundTasks,
    file: UploadFile,
    user_id: str = Depends(get_current_user_id),
    service: ImportService = Depends(get_import_service),
) -> ImportJobSnapshot:
    """Upload a file and start an import job."""
    logger.info(f"Received upload request: filename={file.filename}, user={user_id}")
    data = await file.read()
    file_name = file.filename or ""
    try:
        job = service.start_import(data, file_name, file.content_type, user_id)
    except ImportServiceError as exc:
        logger.warning(f"Upload rejected for {file.filename}: {exc}")
        raise _to_http_error(exc) from exc
    snapshot = to_snapshot(job)
    background_tasks.add_task(run_import, job.id, data, file_name)
    logger.info(f"Background job scheduled: job_id={job.id}")
    return snapshot


@router.get(
    "/import/status/{job_id}",
    response_model=ImportJobSnapshot,
    summary="Get import job status",
    description=(
        "Check the status of an import job.\n\n"
        "**Response:**\n"
        "- 200 OK: status, progress, row counters, errors and timestamps.\n"
        "- 404 Not Found: if the job does not exist."
    ),
    responses={
        404: {
            "description": "Job not found.",
            "content": {"application/json": {"example": {"detail": "Import record not found"}}},
        },
    },
)
async def get_import_status(job_id: str, service: ImportService = Depends(get_import_service)) -> ImportJobSnapshot:
    """Get the status of an import job."""
    snapshot = service.get_status(job_id)
    if snapshot is None:
        raise HTTPException(404, "Import record not found")
    return snapshot


@router.get(
    "/import/history",
    response_model=list[ImportJobSnapshot],
    summary="List the caller's import jobs",
    description="Return every import job uploaded by the caller, newest first.",
)
async def get_import_history(
    user_id: str = Depends(get_current_user_id),
    service: ImportService = Depends(get_import_service),
) -> list[ImportJobSnapshot]:
    """List the caller's import jobs."""
    return service.get_history(user_id)


@router.get(
    "/health",
    summary="Health check",
    description="Simple health check endpoint. Returns status ok.",
    response_description="Status ok.",
    responses={200: {"description": "API is healthy.", "content": {"application/json": {"example": {"status": "ok"}}}}},
)
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}
