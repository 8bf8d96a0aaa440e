"""Conversion of validated import rows into DRAFT expense records."""

from decimal import Decimal

from sqlalchemy.orm import Session

from app.core.db import Expense, User
from app.core.models import ExpenseStatus, ExpenseType, ParsedRow
from app.core.store import CategoryDirectory, ExpenseSink, VendorDirectory
from app.core.utils import get_logger, parse_amount, parse_date

logger = get_logger("expense-import.materializer")

_HUNDRED = Decimal(100)


def _amount(value: str | None, field: str, *, default: Decimal | None = None) -> Decimal | None:
    if value is None or not value.strip():
        return default
    amount = parse_amount(value)
    if amount is None:
        msg = f"Invalid {field}: {value!r}"
        raise ValueError(msg)
    return amount


def vat_percentage(amount_before_vat: Decimal | None, vat_amount: Decimal | None) -> Decimal | None:
    """Return the VAT rate in percent, or None unless both amounts are positive."""
    if not amount_before_vat or not vat_amount or amount_before_vat <= 0 or vat_amount <= 0:
        return None
    return (vat_amount / amount_before_vat * _HUNDRED).quantize(Decimal("0.01"))


class RowMaterializer:
    """Resolves referenced vendor/category and persists one expense per valid row.

    Vendors and categories are looked up by exact, case-sensitive name and created when
    missing, while validation matches them case-insensitively. A row naming "acme" where only
    "Acme" exists therefore passes validation and creates a second vendor "acme". Creation is
    not serialized across concurrent imports.
    """

    def __init__(self, session: Session) -> None:
        """Initialize the materializer over a SQLAlchemy session."""
        self.session = session
        self.vendors = VendorDirectory(session)
        self.categories = CategoryDirectory(session)
        self.sink = ExpenseSink(session)

    def materialize(self, row: ParsedRow, user: User) -> Expense:
        """Create the DRAFT expense for a validated row; raises on unusable data."""
        transaction_date = parse_date(row.transaction_date)
        if transaction_date is None:
            msg = f"Invalid transaction date: {row.transaction_date!r}"
            raise ValueError(msg)
        amount_before_vat = _amount(row.amount_before_vat, "amount before VAT", default=Decimal(0))
        vat_amount = _amount(row.vat_amount, "VAT amount")
        amount = _amount(row.amount_after_vat, "amount after VAT")
        if amount is None:
            msg = "Amount after VAT is required"
            raise ValueError(msg)

        vendor = self.vendors.find_by_name(row.vendor)
        if vendor is None:
            vendor = self.vendors.create(row.vendor, user)
            logger.info(f"Created vendor '{row.vendor}' during import")
        category = self.categories.find_by_name(row.category)
        if category is None:
            category = self.categories.create(row.category, user)
            logger.info(f"Created category '{row.category}' during import")

        expense = Expense(
            payment_id=row.parent_id or None,
            sub_id=row.sub_id or None,
            transaction_date=transaction_date,
            expense_month=transaction_date.strftime("%B"),
            category=category.name,
            category_entity_id=category.id,
            type=(ExpenseType.IN if row.type == "In" else ExpenseType.OUT).value,
            amount_before_vat=amount_before_vat,
            vat_amount=vat_amount,
            vat_percentage=vat_percentage(amount_before_vat, vat_amount),
            amount=amount,
            currency=row.currency.strip(),
            description=row.description,
            payment_method=row.payment_method.strip().upper(),
            status=ExpenseStatus.DRAFT.value,
            invoice_link=row.invoice_link or None,
            submitter_id=user.id,
            vendor_id=vendor.id,
            created_by_id=user.id,
        )
        return self.sink.add(expense)
