"""Row validation for expense imports.

Validation runs over the whole file at once: the vendor and category names are loaded a single
time, every row is checked against every rule, and all errors are returned together so a user
sees the full report in one pass. Results depend only on the rows and the two name sets.
"""

from collections.abc import Iterable, Sequence

from sqlalchemy.orm import Session

from app.core.models import ImportRowError, ParsedRow, PaymentMethod
from app.core.store import CategoryDirectory, VendorDirectory
from app.core.utils import get_logger, parse_amount, parse_date

logger = get_logger("expense-import.validation")

VALID_TYPES = ("In", "Out")
VALID_PAYMENT_METHODS = tuple(method.value for method in PaymentMethod)


def _blank(value: str | None) -> bool:
    return not value or not value.strip()


class ValidationEngine:
    """Checks ParsedRow records against field rules and known reference names."""

    def __init__(self, vendor_names: Iterable[str], category_names: Iterable[str]) -> None:
        """Initialize the engine with the known vendor and category names."""
        self.vendor_names = {name.lower() for name in vendor_names}
        self.category_names = {name.lower() for name in category_names}

    @classmethod
    def from_session(cls, session: Session) -> "ValidationEngine":
        """Build an engine from the vendor and category names currently stored."""
        return cls(VendorDirectory(session).all_names(), CategoryDirectory(session).all_names())

    def validate(self, rows: Sequence[ParsedRow]) -> tuple[list[ParsedRow | None], list[ImportRowError]]:
        """Validate all rows.

        Returns the candidate list, positionally aligned with ``rows`` (``None`` where the row
        has at least one error), and every error found. Row numbers are 1-based over ``rows``.
        """
        candidates: list[ParsedRow | None] = []
        errors: list[ImportRowError] = []
        for index, row in enumerate(rows):
            row_errors = self.validate_row(row, index + 1)
            errors.extend(row_errors)
            candidates.append(None if row_errors else row)
        invalid = sum(1 for candidate in candidates if candidate is None)
        logger.info(f"Validated {len(rows)} rows: {invalid} invalid, {len(errors)} errors")
        return candidates, errors

    def validate_row(self, row: ParsedRow, row_number: int) -> list[ImportRowError]:
        """Return every rule violation of a single row."""
        errors: list[ImportRowError] = []

        def fail(field: str, message: str, value: str | None) -> None:
            errors.append(ImportRowError(row=row_number, field=field, message=message, value=value))

        if _blank(row.vendor):
            fail("vendor", "Vendor is required", row.vendor)
        if _blank(row.description):
            fail("description", "Description is required", row.description)
        if row.type not in VALID_TYPES:
            fail("type", 'Type must be "In" or "Out"', row.type)

        if _blank(row.amount_after_vat):
            fail("amountAfterVat", "Amount is required", row.amount_after_vat)
        elif parse_amount(row.amount_after_vat) is None:
            fail("amountAfterVat", "Invalid amount format", row.amount_after_vat)

        if _blank(row.currency):
            fail("currency", "Currency is required", row.currency)

        if _blank(row.transaction_date):
            fail("transactionDate", "Transaction date is required", row.transaction_date)
        elif parse_date(row.transaction_date) is None:
            fail("transactionDate", "Invalid date format", row.transaction_date)

        if _blank(row.category):
            fail("category", "Category is required", row.category)

        if _blank(row.payment_method):
            fail("paymentMethod", "Payment method is required", row.payment_method)
        elif row.payment_method.strip().upper() not in VALID_PAYMENT_METHODS:
            fail(
                "paymentMethod",
                f"Payment method must be one of: {', '.join(VALID_PAYMENT_METHODS)}",
                row.payment_method,
            )

        if not _blank(row.vendor) and row.vendor.lower() not in self.vendor_names:
            fail("vendor", "Vendor does not exist in the system", row.vendor)
        if not _blank(row.category) and row.category.lower() not in self.category_names:
            fail("category", "Category does not exist in the system", row.category)
        return errors
