"""Request-side operations of the import pipeline: preview, commit, status and history.

Preview parses and validates synchronously without persisting anything. Commit only checks the
request, records a PENDING job and leaves the processing to the background runner; the caller
schedules ``run_import`` with the same bytes.
"""

from sqlalchemy.orm import Session

from app.core.db import ImportRecord, User
from app.core.exceptions import FileParseError, FileTooLargeError, UnsupportedFileError, UserNotFoundError
from app.core.models import ImportJobSnapshot, ImportPreview
from app.core.settings import Settings, get_settings
from app.core.store import ImportJobStore, UserDirectory, to_snapshot
from app.core.utils import get_logger
from app.services.file_parser import HEADERS, FileParser, row_to_display
from app.services.validation import ValidationEngine

logger = get_logger("expense-import.service")

ALLOWED_MIME_TYPES = frozenset(
    {
        "text/csv",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    }
)


class ImportService:
    """Facade over parsing, validation and the job store for one request."""

    def __init__(self, session: Session, settings: Settings | None = None) -> None:
        """Initialize the service with a SQLAlchemy session and settings."""
        self.session = session
        self.settings = settings or get_settings()
        self.jobs = ImportJobStore(session)
        self.users = UserDirectory(session)
        self.parser = FileParser(self.settings.max_upload_bytes)

    def check_upload(self, data: bytes, mime_type: str | None, user_id: str) -> User:
        """Reject uploads with a bad MIME type, an oversized body or an unknown user."""
        if mime_type not in ALLOWED_MIME_TYPES:
            logger.warning(f"Rejected upload with MIME type {mime_type}")
            msg = "Only CSV and Excel files are allowed"
            raise UnsupportedFileError(msg)
        if len(data) > self.settings.max_upload_bytes:
            raise FileTooLargeError(len(data), self.settings.max_upload_bytes)
        user = self.users.get(user_id)
        if user is None:
            msg = "User not found"
            raise UserNotFoundError(msg)
        return user

    def preview(self, data: bytes, file_name: str, mime_type: str | None, user_id: str) -> ImportPreview:
        """Parse and validate a file without persisting anything."""
        self.check_upload(data, mime_type, user_id)
        try:
            rows = self.parser.parse(data, file_name)
        except UnsupportedFileError as exc:
            raise FileParseError(str(exc)) from exc
        _, errors = ValidationEngine.from_session(self.session).validate(rows)
        sample = [row_to_display(row) for row in rows[: self.settings.preview_sample_rows]]
        logger.info(f"Preview of {file_name}: {len(rows)} rows, {len(errors)} errors")
        return ImportPreview(
            file_name=file_name,
            total_rows=len(rows),
            headers=list(HEADERS),
            sample_data=sample,
            errors=errors,
        )

    def start_import(self, data: bytes, file_name: str, mime_type: str | None, user_id: str) -> ImportRecord:
        """Create the PENDING job for an upload; processing happens in the background."""
        user = self.check_upload(data, mime_type, user_id)
        job = self.jobs.create(file_name, len(data), mime_type, user.id)
        logger.info(f"Created import job {job.id} for {file_name} ({len(data)} bytes)")
        return job

    def get_status(self, job_id: str) -> ImportJobSnapshot | None:
        """Return the current snapshot of a job, or None if unknown."""
        job = self.jobs.load(job_id)
        return to_snapshot(job) if job else None

    def get_history(self, user_id: str) -> list[ImportJobSnapshot]:
        """Return a user's jobs, newest first."""
        return [to_snapshot(job) for job in self.jobs.list_by_owner(user_id)]
