"""Background orchestration of expense import jobs.

A job moves PENDING -> PROCESSING -> COMPLETED | FAILED and never leaves a terminal state.
Exactly one runner may own a job at a time: runs are serialized per job id and a job that is
no longer PENDING is not picked up again. Progress is written every ``progress_flush_every`` processed
rows plus once at the end. There is no cancellation or timeout; a stuck materialization keeps
the job in PROCESSING.
"""

import threading
from collections.abc import Callable

from sqlalchemy.orm import Session, sessionmaker

from app.core.db import ImportRecord, get_session_factory
from app.core.models import ImportRowError, ImportStatus, ParsedRow
from app.core.settings import Settings, get_settings
from app.core.store import ImportJobStore, UserDirectory
from app.core.utils import get_logger, utcnow
from app.services.file_parser import FileParser
from app.services.materializer import RowMaterializer
from app.services.validation import ValidationEngine

logger = get_logger("expense-import.worker")


class JobLocks:
    """Registry of one lock per job id."""

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def acquire(self, job_id: str) -> "threading.Lock | None":
        """Try to take ownership of a job; None if another runner holds it."""
        with self._guard:
            lock = self._locks.setdefault(job_id, threading.Lock())
        return lock if lock.acquire(blocking=False) else None

    def release(self, job_id: str, lock: threading.Lock) -> None:
        """Give up ownership of a job, unregistering the lock only if it is still the current one."""
        with self._guard:
            if self._locks.get(job_id) is lock:
                del self._locks[job_id]
        lock.release()


job_locks = JobLocks()


def progress_percent(processed: int, total: int) -> int:
    """Return processed/total as a rounded percentage (100 for an empty file)."""
    if total <= 0:
        return 100
    return min(100, int(processed * 100 / total + 0.5))


class ImportJobRunner:
    """Drives one import job from PENDING to a terminal status."""

    def __init__(
        self,
        settings: Settings | None = None,
        session_factory: sessionmaker | None = None,
        materializer_factory: Callable[[Session], RowMaterializer] = RowMaterializer,
        locks: JobLocks = job_locks,
    ) -> None:
        """Initialize the runner with settings, a session factory and a materializer factory."""
        self.settings = settings or get_settings()
        self.session_factory = session_factory or get_session_factory()
        self.materializer_factory = materializer_factory
        self.locks = locks
        self.parser = FileParser(self.settings.max_upload_bytes)

    def run(self, job_id: str, data: bytes, file_name: str) -> None:
        """Process an uploaded file for a PENDING job."""
        lock = self.locks.acquire(job_id)
        if lock is None:
            logger.warning(f"Job {job_id} is already being processed, ignoring duplicate run")
            return
        job_session = self.session_factory()
        work_session = self.session_factory()
        try:
            store = ImportJobStore(job_session)
            job = store.load(job_id)
            if job is None:
                logger.error(f"Job {job_id} not found")
                return
            if job.status != ImportStatus.PENDING.value:
                logger.warning(f"Job {job_id} is {job.status}, not pending; skipping")
                return
            self._process(store, job, work_session, data, file_name)
        finally:
            work_session.close()
            job_session.close()
            self.locks.release(job_id, lock)

    def _process(
        self, store: ImportJobStore, job: ImportRecord, work_session: Session, data: bytes, file_name: str
    ) -> None:
        logger.info(f"Starting job: {job.id}, file: {file_name}")
        job.status = ImportStatus.PROCESSING.value
        store.save(job)
        try:
            self._process_rows(store, job, work_session, data, file_name)
        except Exception as exc:
            logger.exception(f"Error processing job {job.id}")
            store.session.rollback()
            self._fail(store, job, exc)

    def _process_rows(
        self, store: ImportJobStore, job: ImportRecord, work_session: Session, data: bytes, file_name: str
    ) -> None:
        candidates, errors = self._parse_and_validate(work_session, data, file_name)
        job.total_rows = len(candidates)
        store.save(job)
        user = UserDirectory(work_session).get(job.uploaded_by_id)
        materializer = self.materializer_factory(work_session)

        successful = 0
        failed_rows = {err.row for err in errors}
        for index, candidate in enumerate(candidates):
            row_number = index + 1
            if candidate is not None:
                if self._materialize(materializer, work_session, candidate, user, row_number, errors):
                    successful += 1
                else:
                    failed_rows.add(row_number)
            job.processed_rows = row_number
            job.progress = progress_percent(row_number, job.total_rows)
            if row_number % self.settings.progress_flush_every == 0:
                job.successful_rows = successful
                store.save(job)
                logger.info(f"Job {job.id}: {row_number}/{job.total_rows} rows processed")

        job.status = ImportStatus.COMPLETED.value
        job.progress = 100
        job.successful_rows = successful
        job.error_rows = len(failed_rows)
        job.errors = [err.model_dump() for err in errors]
        job.completed_at = utcnow()
        store.save(job)
        logger.info(
            f"Job {job.id} completed: {successful} imported, {job.error_rows} rows with errors "
            f"({len(errors)} errors)"
        )

    def _parse_and_validate(
        self, work_session: Session, data: bytes, file_name: str
    ) -> tuple[list[ParsedRow | None], list[ImportRowError]]:
        rows = self.parser.parse(data, file_name)
        return ValidationEngine.from_session(work_session).validate(rows)

    @staticmethod
    def _materialize(
        materializer: RowMaterializer,
        work_session: Session,
        row: ParsedRow,
        user: object,
        row_number: int,
        errors: list[ImportRowError],
    ) -> bool:
        try:
            if user is None:
                msg = "Uploader no longer exists"
                raise LookupError(msg)
            materializer.materialize(row, user)
        except Exception as exc:
            work_session.rollback()
            logger.warning(f"Row {row_number}: failed to create expense: {exc}")
            errors.append(
                ImportRowError(row=row_number, field="general", message=f"Failed to create expense: {exc}")
            )
            return False
        return True

    @staticmethod
    def _fail(store: ImportJobStore, job: ImportRecord, exc: Exception) -> None:
        job.status = ImportStatus.FAILED.value
        job.errors = [ImportRowError(row=0, field="general", message=f"Import failed: {exc}").model_dump()]
        job.error_rows = 0
        job.completed_at = utcnow()
        store.save(job)


def run_import(job_id: str, data: bytes, file_name: str) -> None:
    """Top-level function to run an import job (for background tasks)."""
    runner = ImportJobRunner()
    runner.run(job_id, data, file_name)
