"""DB engine, session factory and ORM models for the Expense Import Service."""

import uuid
from collections.abc import Iterator
from functools import lru_cache

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker

from app.core.models import ExpenseStatus, ExpenseType, ImportStatus
from app.core.utils import utcnow

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """A user who can upload import files."""

    __tablename__ = "users"
    id = Column(String, primary_key=True, default=_new_id)
    email = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    role = Column(String, nullable=False, default="USER")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Vendor(Base):
    """A vendor referenced by expenses."""

    __tablename__ = "vendors"
    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default="ACTIVE")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    created_by_id = Column(String, ForeignKey("users.id"), nullable=True)


class Category(Base):
    """An expense category."""

    __tablename__ = "categories"
    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, nullable=False, index=True)
    description = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    created_by_id = Column(String, ForeignKey("users.id"), nullable=True)


class Expense(Base):
    """An expense record; imported rows become DRAFT expenses."""

    __tablename__ = "expenses"
    id = Column(String, primary_key=True, default=_new_id)
    payment_id = Column(String, nullable=True)
    sub_id = Column(String, nullable=True)
    transaction_date = Column(Date, nullable=False)
    expense_month = Column(String, nullable=False)
    category = Column(String, nullable=False)
    type = Column(String, nullable=False, default=ExpenseType.OUT.value)
    amount_before_vat = Column(Numeric(15, 2), nullable=False)
    vat_percentage = Column(Numeric(5, 2), nullable=True)
    vat_amount = Column(Numeric(15, 2), nullable=True)
    amount = Column(Numeric(15, 2), nullable=False)
    currency = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    payment_method = Column(String, nullable=False)
    status = Column(String, nullable=False, default=ExpenseStatus.DRAFT.value)
    invoice_link = Column(String, nullable=True)
    submitter_id = Column(String, ForeignKey("users.id"), nullable=False)
    vendor_id = Column(String, ForeignKey("vendors.id"), nullable=False)
    category_entity_id = Column(String, ForeignKey("categories.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    created_by_id = Column(String, ForeignKey("users.id"), nullable=True)

    vendor = relationship(Vendor)
    category_entity = relationship(Category)


class ImportRecord(Base):
    """Persisted lifecycle record of one import attempt."""

    __tablename__ = "import_records"
    id = Column(String, primary_key=True, default=_new_id)
    file_name = Column(String, nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String, nullable=False)
    status = Column(String, nullable=False, default=ImportStatus.PENDING.value)
    progress = Column(Integer, nullable=False, default=0)
    total_rows = Column(Integer, nullable=False, default=0)
    processed_rows = Column(Integer, nullable=False, default=0)
    successful_rows = Column(Integer, nullable=False, default=0)
    error_rows = Column(Integer, nullable=False, default=0)
    errors = Column(JSON, nullable=False, default=list)
    uploaded_by_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)


@lru_cache
def get_engine() -> Engine:
    """Create a SQLAlchemy engine using the configured database URL."""
    from app.core.settings import get_settings

    url = get_settings().database_url
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


@lru_cache
def get_session_factory() -> sessionmaker:
    """Return the process-wide session factory bound to the engine."""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=get_engine())


def init_db() -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(get_engine())


def get_db() -> Iterator[Session]:
    """Yield a SQLAlchemy session and close it afterwards."""
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()
