"""Persistence helpers: the import job store and the reference-data directories.

Every class wraps a SQLAlchemy session and holds no business rules. The job store is read
by status polling requests while the background task writes through its own session.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.db import Category, Expense, ImportRecord, User, Vendor
from app.core.models import ImportJobSnapshot, ImportRowError, ImportStatus


class ImportJobStore:
    """CRUD for ImportRecord rows."""

    def __init__(self, session: Session) -> None:
        """Initialize the store with a SQLAlchemy session."""
        self.session = session

    def create(self, file_name: str, file_size: int, mime_type: str, owner_id: str) -> ImportRecord:
        """Insert a new PENDING job and return it."""
        job = ImportRecord(
            file_name=file_name,
            file_size=file_size,
            mime_type=mime_type,
            status=ImportStatus.PENDING.value,
            progress=0,
            total_rows=0,
            processed_rows=0,
            successful_rows=0,
            error_rows=0,
            errors=[],
            uploaded_by_id=owner_id,
        )
        self.session.add(job)
        self.session.commit()
        return job

    def load(self, job_id: str) -> ImportRecord | None:
        """Fetch a job by id, bypassing any stale identity-map copy."""
        return self.session.get(ImportRecord, job_id, populate_existing=True)

    def save(self, job: ImportRecord) -> None:
        """Persist the current state of a job."""
        self.session.add(job)
        self.session.commit()

    def list_by_owner(self, owner_id: str) -> list[ImportRecord]:
        """Return the jobs uploaded by a user, newest first."""
        stmt = (
            select(ImportRecord)
            .where(ImportRecord.uploaded_by_id == owner_id)
            .order_by(ImportRecord.created_at.desc())
        )
        return list(self.session.scalars(stmt))


def to_snapshot(job: ImportRecord) -> ImportJobSnapshot:
    """Convert an ImportRecord into its API snapshot."""
    errors = [ImportRowError(**err) for err in job.errors or []]
    return ImportJobSnapshot(
        id=job.id,
        file_name=job.file_name,
        file_size=job.file_size,
        mime_type=job.mime_type,
        status=ImportStatus(job.status),
        progress=job.progress,
        total_rows=job.total_rows,
        processed_rows=job.processed_rows,
        successful_rows=job.successful_rows,
        error_rows=job.error_rows,
        error_count=len(errors),
        errors=errors,
        created_at=job.created_at,
        completed_at=job.completed_at,
    )


class UserDirectory:
    """Lookup of uploading users."""

    def __init__(self, session: Session) -> None:
        """Initialize the directory with a SQLAlchemy session."""
        self.session = session

    def get(self, user_id: str) -> User | None:
        """Return the user with the given id, if any."""
        return self.session.get(User, user_id)


class VendorDirectory:
    """Existence checks, lookup and creation of vendors."""

    def __init__(self, session: Session) -> None:
        """Initialize the directory with a SQLAlchemy session."""
        self.session = session

    def all_names(self) -> list[str]:
        """Return every vendor name."""
        return list(self.session.scalars(select(Vendor.name)))

    def find_by_name(self, name: str) -> Vendor | None:
        """Return the first vendor whose name matches exactly (case-sensitive)."""
        return self.session.scalars(select(Vendor).where(Vendor.name == name).limit(1)).first()

    def create(self, name: str, created_by: User) -> Vendor:
        """Create and flush a new vendor."""
        vendor = Vendor(name=name, created_by_id=created_by.id)
        self.session.add(vendor)
        self.session.flush()
        return vendor


class CategoryDirectory:
    """Existence checks, lookup and creation of categories."""

    def __init__(self, session: Session) -> None:
        """Initialize the directory with a SQLAlchemy session."""
        self.session = session

    def all_names(self) -> list[str]:
        """Return every category name."""
        return list(self.session.scalars(select(Category.name)))

    def find_by_name(self, name: str) -> Category | None:
        """Return the first category whose name matches exactly (case-sensitive)."""
        return self.session.scalars(select(Category).where(Category.name == name).limit(1)).first()

    def create(self, name: str, created_by: User) -> Category:
        """Create and flush a new category."""
        category = Category(name=name, created_by_id=created_by.id)
        self.session.add(category)
        self.session.flush()
        return category


class ExpenseSink:
    """Durable sink for materialized expense records."""

    def __init__(self, session: Session) -> None:
        """Initialize the sink with a SQLAlchemy session."""
        self.session = session

    def add(self, expense: Expense) -> Expense:
        """Persist an expense and commit."""
        self.session.add(expense)
        self.session.commit()
        return expense
