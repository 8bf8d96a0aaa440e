"""Pydantic models for the Expense Import Service.

This module defines the import pipeline's in-memory and API-facing models: the raw ParsedRow
read from an upload, the ImportRowError reported for invalid rows, the preview payload, and the
ImportJobSnapshot returned for status polling. JSON payloads use camelCase field names.
"""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ImportStatus(StrEnum):
    """Lifecycle status of an import job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({ImportStatus.COMPLETED, ImportStatus.FAILED})


class ExpenseType(StrEnum):
    """Direction of money for an expense record."""

    IN = "IN"
    OUT = "OUT"


class ExpenseStatus(StrEnum):
    """Workflow status of an expense record; imports always create drafts."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    PAID = "PAID"
    CLOSED = "CLOSED"


class PaymentMethod(StrEnum):
    """Payment methods accepted in import files."""

    BANK_TRANSFER = "BANK_TRANSFER"
    PETTY_CASH = "PETTY_CASH"
    CREDIT_CARD = "CREDIT_CARD"


class CamelModel(BaseModel):
    """Base model serializing field names as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ParsedRow(BaseModel):
    """One data row of an import file, fields kept verbatim as strings."""

    parent_id: str | None = None
    sub_id: str | None = None
    vendor: str | None = None
    description: str | None = None
    type: str | None = None
    amount_before_vat: str | None = None
    vat_amount: str | None = None
    amount_after_vat: str | None = None
    currency: str | None = None
    transaction_date: str | None = None
    category: str | None = None
    payment_method: str | None = None
    invoice_link: str | None = None


class ImportRowError(BaseModel):
    """A problem found in one row (row 0 for file-level failures)."""

    row: int
    field: str
    message: str
    value: str | None = None


class ImportPreview(CamelModel):
    """Dry-run result of parsing and validating an upload."""

    file_name: str
    total_rows: int
    headers: list[str]
    sample_data: list[dict[str, str]]
    errors: list[ImportRowError]


class ImportJobSnapshot(CamelModel):
    """Point-in-time view of an import job for status polling and history."""

    id: str
    file_name: str
    file_size: int
    mime_type: str
    status: ImportStatus
    progress: int = Field(ge=0, le=100)
    total_rows: int = 0
    processed_rows: int = 0
    successful_rows: int = 0
    error_rows: int = 0
    error_count: int = 0
    errors: list[ImportRowError] = Field(default_factory=list)
    created_at: datetime
    completed_at: datetime | None = None
